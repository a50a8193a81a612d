# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Quorum validation of the primary agent.

Five independent validators vote on the top-ranked agent under one shared
deadline. Each vote is AGREE, DISAGREE or ABSTAIN; a validator that raises or
is still running at the deadline abstains.

Decision rules:
    - APPROVE: at least 3 validators agree
    - TIMEOUT: fewer than 3 agree and at least one was still pending at the
      deadline
    - ESCALATE: fewer than 3 agree and every validator reported
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass

from omniroute.routing.enums import EnumConsensusResult, EnumValidatorVote
from omniroute.routing.experts import ExpertInputs
from omniroute.routing.models import (
    ModelAgentProfile,
    ModelConsensusRecord,
    ModelPatternRequest,
    ModelRankedAgent,
)

logger = logging.getLogger(__name__)

QUORUM = 3
SUCCESS_RATE_THRESHOLD = 0.7
LOAD_THRESHOLD = 0.8


@dataclass(frozen=True)
class ConsensusCheck:
    """What every validator sees about the primary agent."""

    primary: ModelRankedAgent
    runner_up: ModelRankedAgent | None
    profile: ModelAgentProfile
    inputs: ExpertInputs
    similarity_gap_threshold: float = 0.1
    high_similarity_threshold: float = 0.85


Validator = Callable[[ConsensusCheck], Awaitable[bool]]


# =============================================================================
# Validators
# =============================================================================


async def validate_similarity_gap(check: ConsensusCheck) -> bool:
    """Primary clearly ahead of the runner-up, or highly similar outright."""
    if check.primary.similarity >= check.high_similarity_threshold:
        return True
    runner_up = check.runner_up.similarity if check.runner_up else 0.0
    return check.primary.similarity - runner_up > check.similarity_gap_threshold


async def validate_success_rate(check: ConsensusCheck) -> bool:
    rate = check.profile.success_rate_for(check.inputs.request.pattern_type)
    return rate > SUCCESS_RATE_THRESHOLD


async def validate_mandatory_skills(check: ConsensusCheck) -> bool:
    return check.inputs.request.required_skills <= check.profile.skills


async def validate_availability(check: ConsensusCheck) -> bool:
    return check.profile.available and check.profile.agent_id not in check.inputs.excluded


async def validate_load(check: ConsensusCheck) -> bool:
    return check.profile.load_fraction < LOAD_THRESHOLD


VALIDATORS: dict[str, Validator] = {
    "similarity_gap": validate_similarity_gap,
    "success_rate": validate_success_rate,
    "mandatory_skills": validate_mandatory_skills,
    "availability": validate_availability,
    "load": validate_load,
}


# =============================================================================
# Validator group
# =============================================================================


def tally(
    votes: Mapping[str, EnumValidatorVote], timed_out: bool, quorum: int = QUORUM
) -> EnumConsensusResult:
    """Reduce votes to a group result."""
    agreed = sum(1 for v in votes.values() if v == EnumValidatorVote.AGREE)
    if agreed >= quorum:
        return EnumConsensusResult.APPROVE
    if timed_out:
        return EnumConsensusResult.TIMEOUT
    return EnumConsensusResult.ESCALATE


class ConsensusValidator:
    """Run the validator group against a primary agent under a deadline.

    Example:
        validator = ConsensusValidator(timeout_ms=50)
        record = await validator.validate(primary, runner_up, profile, inputs)
        if record.result != EnumConsensusResult.APPROVE:
            ...  # hand off to the fallback chain
    """

    def __init__(
        self,
        validators: Mapping[str, Validator] | None = None,
        timeout_ms: float = 50.0,
        similarity_gap_threshold: float = 0.1,
        high_similarity_threshold: float = 0.85,
        quorum: int = QUORUM,
    ) -> None:
        self.validators = dict(validators if validators is not None else VALIDATORS)
        self.timeout_s = timeout_ms / 1000.0
        self.similarity_gap_threshold = similarity_gap_threshold
        self.high_similarity_threshold = high_similarity_threshold
        self.quorum = quorum

    @staticmethod
    def is_required(request: ModelPatternRequest, critical_categories: Iterable[str]) -> bool:
        return request.constraints.require_consensus or request.is_critical(critical_categories)

    async def validate(
        self,
        primary: ModelRankedAgent,
        runner_up: ModelRankedAgent | None,
        profile: ModelAgentProfile,
        inputs: ExpertInputs,
    ) -> ModelConsensusRecord:
        check = ConsensusCheck(
            primary=primary,
            runner_up=runner_up,
            profile=profile,
            inputs=inputs,
            similarity_gap_threshold=self.similarity_gap_threshold,
            high_similarity_threshold=self.high_similarity_threshold,
        )
        start = time.perf_counter()

        tasks = {
            name: asyncio.create_task(fn(check), name=f"consensus-{name}")
            for name, fn in self.validators.items()
        }
        pending: set[asyncio.Task[bool]] = set()
        if tasks:
            _, pending = await asyncio.wait(tasks.values(), timeout=self.timeout_s)
            # Abandon stragglers; their results are never read.
            for task in pending:
                task.cancel()

        votes: dict[str, EnumValidatorVote] = {}
        for name, task in tasks.items():
            if task in pending or task.cancelled():
                votes[name] = EnumValidatorVote.ABSTAIN
                continue
            error = task.exception()
            if error is not None:
                logger.debug(
                    f"Consensus validator {name} failed, counting as abstention",
                    exc_info=error,
                    extra={"validator": name, "agent_id": primary.agent_id},
                )
                votes[name] = EnumValidatorVote.ABSTAIN
                continue
            votes[name] = EnumValidatorVote.AGREE if task.result() else EnumValidatorVote.DISAGREE

        result = tally(votes, timed_out=bool(pending), quorum=self.quorum)
        agreed = sum(1 for v in votes.values() if v == EnumValidatorVote.AGREE)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"Consensus {result.value} for {primary.agent_id} ({agreed}/{len(votes)} agreed)",
            extra={
                "pattern_id": inputs.request.pattern_id,
                "agent_id": primary.agent_id,
                "votes": {k: v.value for k, v in votes.items()},
                "elapsed_ms": elapsed_ms,
            },
        )
        return ModelConsensusRecord(
            required=True,
            validators=votes,
            agreed=agreed,
            result=result,
            elapsed_ms=elapsed_ms,
        )


__all__ = [
    "ConsensusCheck",
    "ConsensusValidator",
    "QUORUM",
    "VALIDATORS",
    "Validator",
    "tally",
]
