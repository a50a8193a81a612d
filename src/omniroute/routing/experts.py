# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Expert scoring engine.

Eight independent experts score each eligible agent; a fixed-weight reducer
combines them into the agent's final score.

Expert Weights:
    1. Similarity (25%) - nearest-neighbor similarity within the candidate set
    2. Metadata match (15%) - skill/specialization overlap, mandatory skills
    3. Success rate (20%) - EMA success rate for the pattern type
    4. Recency (10%) - success rate boosted by recent same-type successes
    5. Load/diversity (10%) - capacity headroom and assignment spread
    6. Latency fit (10%) - p99 against the request's priority tier
    7. Context relevance (7%) - caller preferences and requester history
    8. Confidence calibration (3%) - the agent's recent decision accuracy

Every expert is a pure function ``(agent, inputs) -> float``. An expert that
raises returns the neutral score 0.5; it never aborts the scoring pass.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from omniroute.routing.enums import EnumExpert, EnumPriorityTier
from omniroute.routing.errors import ScoringError
from omniroute.routing.models import (
    CandidateSet,
    ModelAgentProfile,
    ModelExecutionContext,
    ModelExpertScores,
    ModelPatternRequest,
)

logger = logging.getLogger(__name__)

EXPERT_WEIGHTS: dict[EnumExpert, float] = {
    EnumExpert.SIMILARITY: 0.25,
    EnumExpert.METADATA_MATCH: 0.15,
    EnumExpert.SUCCESS_RATE: 0.20,
    EnumExpert.RECENCY: 0.10,
    EnumExpert.LOAD_DIVERSITY: 0.10,
    EnumExpert.LATENCY_FIT: 0.10,
    EnumExpert.CONTEXT_RELEVANCE: 0.07,
    EnumExpert.CONFIDENCE_CALIBRATION: 0.03,
}
WEIGHT_TOLERANCE = 1e-4

NEUTRAL_SCORE = 0.5
RANK_DISCOUNT = 0.02
RECENCY_WINDOW = timedelta(minutes=60)
RECENCY_MAX_BOOST = 0.2
HIGH_LOAD = 0.8
LOW_LOAD = 0.3
SIMILAR_AGENT_JACCARD = 0.8

# (target_ms, acceptable_ms) per priority tier
LATENCY_TIERS: dict[EnumPriorityTier, tuple[float, float]] = {
    EnumPriorityTier.CRITICAL: (50.0, 100.0),
    EnumPriorityTier.HIGH: (100.0, 250.0),
    EnumPriorityTier.NORMAL: (250.0, 1000.0),
    EnumPriorityTier.LOW: (1000.0, 5000.0),
}


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def validate_weights(weights: Mapping[EnumExpert, float]) -> None:
    """Raise ValueError unless the weights cover every expert and sum to 1.0."""
    missing = set(EnumExpert) - set(weights)
    if missing:
        raise ValueError(f"missing expert weights: {sorted(m.value for m in missing)}")
    if any(w < 0 for w in weights.values()):
        raise ValueError("expert weights must be non-negative")
    total = sum(weights.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ValueError(f"expert weights must sum to 1.0, got {total:.6f}")


validate_weights(EXPERT_WEIGHTS)


@dataclass(frozen=True)
class ExpertInputs:
    """Everything an expert may read, shared by every agent in one pass.

    Attributes:
        profiles: Profile snapshot for candidates and already-assigned agents.
        latency_ceiling_ms: Tightest of the request and preference ceilings.
        min_security_level: Strictest of the request and preference minima.
        excluded: Request and preference deny lists combined.
        preferred: Request and preference allow lists combined, minus excluded.
    """

    request: ModelPatternRequest
    context: ModelExecutionContext
    candidates: CandidateSet
    profiles: Mapping[str, ModelAgentProfile]
    now: datetime
    latency_ceiling_ms: float | None
    min_security_level: int | None
    excluded: frozenset[str]
    preferred: frozenset[str]

    @classmethod
    def build(
        cls,
        request: ModelPatternRequest,
        context: ModelExecutionContext,
        candidates: CandidateSet,
        profiles: Mapping[str, ModelAgentProfile] | None = None,
        now: datetime | None = None,
    ) -> ExpertInputs:
        prefs = context.preferences
        ceilings = [
            c
            for c in (request.constraints.max_latency_ms, prefs.max_latency_ms)
            if c is not None
        ]
        minima = [
            m
            for m in (request.constraints.min_security_level, prefs.min_security_level)
            if m is not None
        ]
        excluded = frozenset(request.excluded_agents) | frozenset(prefs.excluded_agents)
        preferred = (
            frozenset(request.preferred_agents) | frozenset(prefs.preferred_agents)
        ) - excluded
        return cls(
            request=request,
            context=context,
            candidates=candidates,
            profiles=profiles or {},
            now=now or datetime.now(UTC),
            latency_ceiling_ms=min(ceilings) if ceilings else None,
            min_security_level=max(minima) if minima else None,
            excluded=excluded,
            preferred=preferred,
        )


ExpertFn = Callable[[ModelAgentProfile, ExpertInputs], float]


# =============================================================================
# Experts
# =============================================================================


def score_similarity(agent: ModelAgentProfile, inputs: ExpertInputs) -> float:
    """Normalized similarity with a 2% per-rank discount.

    Degenerate candidate sets (one candidate or all-equal similarities) score
    1.0 for every candidate, with no discount.
    """
    candidates = inputs.candidates
    rank = candidates.rank_of(agent.agent_id)
    if rank is None:
        return 0.0
    if candidates.is_degenerate:
        return 1.0
    similarity = candidates.similarity_of(agent.agent_id) or 0.0
    top = candidates.max_similarity
    if top <= 0.0:
        return 1.0 if similarity == top else 0.0
    normalized = max(0.0, similarity) / top
    return clamp(normalized * (1.0 - RANK_DISCOUNT * rank))


def score_metadata_match(agent: ModelAgentProfile, inputs: ExpertInputs) -> float:
    request = inputs.request
    requested = request.requested_skills
    specs = request.requested_specializations
    required = request.required_skills

    skill_overlap = len(agent.skills & requested) / len(requested) if requested else NEUTRAL_SCORE
    spec_overlap = len(agent.specializations & specs) / len(specs) if specs else NEUTRAL_SCORE
    if not required:
        mandatory = 1.0
    else:
        mandatory = len(agent.skills & required) / len(required)

    return 0.4 * skill_overlap + 0.3 * spec_overlap + 0.3 * mandatory


def score_success_rate(agent: ModelAgentProfile, inputs: ExpertInputs) -> float:
    return agent.success_rate_for(inputs.request.pattern_type)


def score_recency(agent: ModelAgentProfile, inputs: ExpertInputs) -> float:
    """Success-rate baseline plus up to +0.2 for recent same-type successes."""
    pattern_type = inputs.request.pattern_type
    baseline = agent.success_rate_for(pattern_type)
    window = [
        o
        for o in agent.recent_outcomes
        if timedelta(0) <= inputs.now - o.completed_at <= RECENCY_WINDOW
    ]
    if not window:
        return baseline
    hits = sum(1 for o in window if o.success and o.pattern_type == pattern_type)
    return clamp(baseline + RECENCY_MAX_BOOST * hits / len(window))


def score_load_diversity(agent: ModelAgentProfile, inputs: ExpertInputs) -> float:
    score = 1.0
    assigned = inputs.context.assigned_agent_ids
    if agent.agent_id in assigned:
        score -= 0.2

    load = agent.load_fraction
    if load > HIGH_LOAD:
        score -= 0.5 * min(1.0, (load - HIGH_LOAD) / (1.0 - HIGH_LOAD))
    elif load < LOW_LOAD:
        score += 0.1

    similar = 0
    for other_id in assigned:
        if other_id == agent.agent_id:
            continue
        other = inputs.profiles.get(other_id)
        if other is not None and (
            jaccard(agent.capability_terms, other.capability_terms) >= SIMILAR_AGENT_JACCARD
        ):
            similar += 1
    if similar > 2:
        score -= 0.15

    return clamp(score)


def score_latency_fit(agent: ModelAgentProfile, inputs: ExpertInputs) -> float:
    ceiling = inputs.latency_ceiling_ms
    if ceiling is not None and agent.latency.max_ms > ceiling:
        return 0.0

    target, acceptable = LATENCY_TIERS[inputs.request.priority]
    p99 = agent.latency.p99_ms
    if p99 <= target:
        return 1.0
    if p99 <= acceptable:
        return 1.0 - 0.4 * (p99 - target) / (acceptable - target)
    return 0.1


def score_context_relevance(agent: ModelAgentProfile, inputs: ExpertInputs) -> float:
    if agent.agent_id in inputs.excluded:
        return 0.0

    score = NEUTRAL_SCORE
    if agent.agent_id in inputs.preferred:
        score += 0.3

    history = [r for r in inputs.context.execution_history if r.agent_id == agent.agent_id]
    if history:
        rate = sum(1 for r in history if r.success) / len(history)
        score += (rate - 0.5) * 0.4

    last_active = agent.last_active_at
    if last_active is not None and timedelta(0) <= inputs.now - last_active <= RECENCY_WINDOW:
        score += 0.05

    if inputs.context.environment.time_bucket in agent.peak_time_buckets:
        score += 0.05

    return clamp(score)


def score_confidence_calibration(agent: ModelAgentProfile, inputs: ExpertInputs) -> float:
    accuracy = agent.decision_accuracy(inputs.now)
    if accuracy is None:
        return NEUTRAL_SCORE
    if accuracy >= 0.95:
        return 0.75 + 0.25 * (accuracy - 0.95) / 0.05
    if accuracy >= 0.90:
        return 0.5 + 0.25 * (accuracy - 0.90) / 0.05
    return 0.45 + 0.05 * accuracy / 0.90


EXPERTS: dict[EnumExpert, ExpertFn] = {
    EnumExpert.SIMILARITY: score_similarity,
    EnumExpert.METADATA_MATCH: score_metadata_match,
    EnumExpert.SUCCESS_RATE: score_success_rate,
    EnumExpert.RECENCY: score_recency,
    EnumExpert.LOAD_DIVERSITY: score_load_diversity,
    EnumExpert.LATENCY_FIT: score_latency_fit,
    EnumExpert.CONTEXT_RELEVANCE: score_context_relevance,
    EnumExpert.CONFIDENCE_CALIBRATION: score_confidence_calibration,
}


# =============================================================================
# Engine
# =============================================================================


class ExpertScoringEngine:
    """Run the expert registry over agents and reduce with fixed weights.

    Example:
        engine = ExpertScoringEngine()
        scores = engine.score(agent, request, context, candidates)
        print(scores.total)
    """

    def __init__(
        self,
        weights: Mapping[EnumExpert, float] | None = None,
        experts: Mapping[EnumExpert, ExpertFn] | None = None,
        max_parallel: int = 16,
        task_timeout_ms: float = 25.0,
    ) -> None:
        self.weights = dict(weights if weights is not None else EXPERT_WEIGHTS)
        validate_weights(self.weights)
        self.experts = dict(experts if experts is not None else EXPERTS)
        if set(self.experts) != set(self.weights):
            raise ValueError("experts and weights must cover the same expert set")
        self.max_parallel = max_parallel
        self.task_timeout_s = task_timeout_ms / 1000.0

    def score(
        self,
        agent: ModelAgentProfile,
        request: ModelPatternRequest,
        context: ModelExecutionContext,
        candidate_set: CandidateSet,
        profiles: Mapping[str, ModelAgentProfile] | None = None,
        now: datetime | None = None,
    ) -> ModelExpertScores:
        inputs = ExpertInputs.build(request, context, candidate_set, profiles, now)
        return self.score_with_inputs(agent, inputs)

    def score_with_inputs(
        self, agent: ModelAgentProfile, inputs: ExpertInputs
    ) -> ModelExpertScores:
        values = {
            expert: self._run_expert(expert, fn, agent, inputs)
            for expert, fn in self.experts.items()
        }
        total = clamp(sum(values[e] * self.weights[e] for e in values))
        return ModelExpertScores(**{e.value: v for e, v in values.items()}, total=total)

    def _run_expert(
        self,
        expert: EnumExpert,
        fn: ExpertFn,
        agent: ModelAgentProfile,
        inputs: ExpertInputs,
    ) -> float:
        try:
            value = float(fn(agent, inputs))
            if not math.isfinite(value):
                raise ScoringError(
                    f"expert {expert.value} returned a non-finite score",
                    details={"agent_id": agent.agent_id, "value": value},
                )
            return clamp(value)
        except Exception:
            logger.debug(
                f"Expert {expert.value} failed for {agent.agent_id}, using neutral score",
                exc_info=True,
                extra={"expert": expert.value, "agent_id": agent.agent_id},
            )
            return NEUTRAL_SCORE

    def neutral_scores(self) -> ModelExpertScores:
        return ModelExpertScores(
            **{e.value: NEUTRAL_SCORE for e in self.experts}, total=NEUTRAL_SCORE
        )

    async def _score_task(
        self, agent: ModelAgentProfile, inputs: ExpertInputs
    ) -> ModelExpertScores:
        await asyncio.sleep(0)
        return self.score_with_inputs(agent, inputs)

    async def score_all(
        self, agents: Iterable[ModelAgentProfile], inputs: ExpertInputs
    ) -> dict[str, ModelExpertScores]:
        """Score agents concurrently with a per-task timeout.

        A task that does not finish in time yields the neutral score vector;
        one slow agent never fails the batch.
        """
        semaphore = asyncio.Semaphore(self.max_parallel)

        async def _one(agent: ModelAgentProfile) -> tuple[str, ModelExpertScores]:
            async with semaphore:
                try:
                    scores = await asyncio.wait_for(
                        self._score_task(agent, inputs), timeout=self.task_timeout_s
                    )
                except TimeoutError:
                    logger.warning(
                        f"Scoring timed out for {agent.agent_id}, using neutral scores",
                        extra={
                            "agent_id": agent.agent_id,
                            "timeout_ms": self.task_timeout_s * 1000,
                        },
                    )
                    scores = self.neutral_scores()
                return agent.agent_id, scores

        results = await asyncio.gather(*(_one(agent) for agent in agents))
        return dict(results)


__all__ = [
    "EXPERTS",
    "EXPERT_WEIGHTS",
    "ExpertFn",
    "ExpertInputs",
    "ExpertScoringEngine",
    "LATENCY_TIERS",
    "NEUTRAL_SCORE",
    "clamp",
    "jaccard",
    "validate_weights",
]
