# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Ordered fallback chain for degraded agent selection.

Strategies are tried in order until one selects an agent. Each strategy
returns a ``FallbackOutcome`` (selected or try-next) rather than raising for
control flow; a strategy that does raise is logged and skipped.

    1. alternatives     (0.70) first available ranked alternate
    2. skill_match      (0.60) best coverage of the requested skills
    3. success_history  (0.55) best success rate for the pattern type
    4. round_robin      (0.40) persistent rotation over available agents
    5. default_agent    (0.30) configured catch-all agent
    6. FallbackExhaustedError
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from omniroute.routing.enums import EnumFallbackStrategy
from omniroute.routing.errors import FallbackExhaustedError
from omniroute.routing.models import (
    ModelAgentProfile,
    ModelPatternRequest,
    ModelRankedAgent,
)

logger = logging.getLogger(__name__)

STRATEGY_CONFIDENCE: dict[EnumFallbackStrategy, float] = {
    EnumFallbackStrategy.ALTERNATIVES: 0.7,
    EnumFallbackStrategy.SKILL_MATCH: 0.6,
    EnumFallbackStrategy.SUCCESS_HISTORY: 0.55,
    EnumFallbackStrategy.ROUND_ROBIN: 0.4,
    EnumFallbackStrategy.DEFAULT_AGENT: 0.3,
}


@dataclass(frozen=True)
class FallbackRequest:
    """Inputs shared by every strategy for one fallback run.

    Attributes:
        reason: The failure that started the chain.
        ranked: Agents ranked by the primary path (may be empty). Index 0 is
            the primary that could not be committed to.
        pool: Every known agent profile, keyed by id.
        excluded: Combined request and preference deny lists.
    """

    reason: str
    request: ModelPatternRequest
    ranked: Sequence[ModelRankedAgent] = ()
    pool: Mapping[str, ModelAgentProfile] = field(default_factory=dict)
    excluded: frozenset[str] = frozenset()

    def selectable(self) -> list[ModelAgentProfile]:
        """Available, non-excluded agents in id order."""
        return sorted(
            (
                p
                for p in self.pool.values()
                if p.available and p.agent_id not in self.excluded
            ),
            key=lambda p: p.agent_id,
        )


@dataclass(frozen=True)
class FallbackOutcome:
    agent: ModelAgentProfile | None = None
    score: float = 0.0
    note: str = ""

    @property
    def selected(self) -> bool:
        return self.agent is not None

    @classmethod
    def select(cls, agent: ModelAgentProfile, score: float, note: str) -> FallbackOutcome:
        return cls(agent=agent, score=max(0.0, min(1.0, score)), note=note)

    @classmethod
    def try_next(cls, note: str) -> FallbackOutcome:
        return cls(note=note)


@dataclass(frozen=True)
class FallbackSelection:
    strategy: EnumFallbackStrategy
    agent: ModelAgentProfile
    score: float
    confidence: float
    reason: str
    note: str
    attempted: tuple[str, ...] = ()


Strategy = Callable[[FallbackRequest], FallbackOutcome]


class FallbackManager:
    """Run the fallback strategies in order.

    The round-robin pointer persists across calls on the same manager.
    """

    def __init__(self, default_agent_id: str = "") -> None:
        self.default_agent_id = default_agent_id.strip()
        self._rotation = 0
        self.strategies: list[tuple[EnumFallbackStrategy, Strategy]] = [
            (EnumFallbackStrategy.ALTERNATIVES, self._alternatives),
            (EnumFallbackStrategy.SKILL_MATCH, self._skill_match),
            (EnumFallbackStrategy.SUCCESS_HISTORY, self._success_history),
            (EnumFallbackStrategy.ROUND_ROBIN, self._round_robin),
            (EnumFallbackStrategy.DEFAULT_AGENT, self._default_agent),
        ]

    def select(self, request: FallbackRequest) -> FallbackSelection:
        """Return the first strategy's selection, or raise FallbackExhaustedError."""
        attempted: list[str] = []
        for strategy, fn in self.strategies:
            attempted.append(strategy.value)
            try:
                outcome = fn(request)
            except Exception:
                logger.warning(
                    f"Fallback strategy {strategy.value} failed, trying next",
                    exc_info=True,
                    extra={"pattern_id": request.request.pattern_id, "strategy": strategy.value},
                )
                continue

            agent = outcome.agent
            if agent is None:
                logger.debug(
                    f"Fallback strategy {strategy.value} skipped: {outcome.note}",
                    extra={"pattern_id": request.request.pattern_id},
                )
                continue

            ranked_score = next(
                (r.score for r in request.ranked if r.agent_id == agent.agent_id), None
            )
            logger.info(
                f"Fallback {strategy.value} selected {agent.agent_id}",
                extra={
                    "pattern_id": request.request.pattern_id,
                    "strategy": strategy.value,
                    "reason": request.reason,
                },
            )
            return FallbackSelection(
                strategy=strategy,
                agent=agent,
                score=ranked_score if ranked_score is not None else outcome.score,
                confidence=STRATEGY_CONFIDENCE[strategy],
                reason=request.reason,
                note=outcome.note,
                attempted=tuple(attempted),
            )

        logger.error(
            f"All fallback strategies exhausted: {request.reason}",
            extra={"pattern_id": request.request.pattern_id, "attempted": attempted},
        )
        raise FallbackExhaustedError(
            request.reason,
            attempted=attempted,
            details={"pattern_id": request.request.pattern_id},
        )

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def _alternatives(self, request: FallbackRequest) -> FallbackOutcome:
        for alternate in request.ranked[1:]:
            profile = request.pool.get(alternate.agent_id)
            if profile is None or not profile.available:
                continue
            if profile.agent_id in request.excluded:
                continue
            return FallbackOutcome.select(
                profile, alternate.score, f"ranked alternate #{alternate.rank}"
            )
        return FallbackOutcome.try_next("no available ranked alternates")

    def _skill_match(self, request: FallbackRequest) -> FallbackOutcome:
        wanted = request.request.required_skills or request.request.requested_skills
        if not wanted:
            return FallbackOutcome.try_next("no skills requested")

        pattern_type = request.request.pattern_type
        best: tuple[float, float, ModelAgentProfile] | None = None
        for profile in request.selectable():
            coverage = len(profile.skills & wanted) / len(wanted)
            if coverage <= 0.0:
                continue
            rate = profile.success_rate_for(pattern_type)
            if best is None or (coverage, rate) > (best[0], best[1]):
                best = (coverage, rate, profile)

        if best is None:
            return FallbackOutcome.try_next("no available agent covers the requested skills")
        coverage, _, profile = best
        return FallbackOutcome.select(profile, coverage, f"covers {coverage:.0%} of requested skills")

    def _success_history(self, request: FallbackRequest) -> FallbackOutcome:
        pattern_type = request.request.pattern_type
        best: tuple[float, ModelAgentProfile] | None = None
        for profile in request.selectable():
            rate = profile.success_rate_for(pattern_type)
            if best is None or rate > best[0]:
                best = (rate, profile)
        if best is None:
            return FallbackOutcome.try_next("no available agents")
        rate, profile = best
        return FallbackOutcome.select(profile, rate, f"{rate:.0%} success on {pattern_type}")

    def _round_robin(self, request: FallbackRequest) -> FallbackOutcome:
        candidates = request.selectable()
        if not candidates:
            return FallbackOutcome.try_next("no available agents")
        profile = candidates[self._rotation % len(candidates)]
        self._rotation += 1
        rate = profile.success_rate_for(request.request.pattern_type)
        return FallbackOutcome.select(profile, rate, "round-robin rotation")

    def _default_agent(self, request: FallbackRequest) -> FallbackOutcome:
        if not self.default_agent_id:
            return FallbackOutcome.try_next("no default agent configured")
        profile = request.pool.get(self.default_agent_id)
        if profile is None or not profile.available:
            return FallbackOutcome.try_next(f"default agent {self.default_agent_id} unavailable")
        if profile.agent_id in request.excluded:
            return FallbackOutcome.try_next(f"default agent {self.default_agent_id} excluded")
        rate = profile.success_rate_for(request.request.pattern_type)
        return FallbackOutcome.select(profile, rate, "default catch-all agent")


__all__ = [
    "FallbackManager",
    "FallbackOutcome",
    "FallbackRequest",
    "FallbackSelection",
    "STRATEGY_CONFIDENCE",
]
