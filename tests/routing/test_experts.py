# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT
"""Tests for the expert registry and ExpertScoringEngine."""

from __future__ import annotations

import asyncio
import math
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from omniroute.routing.enums import EnumExpert, EnumTimeBucket
from omniroute.routing.experts import (
    EXPERT_WEIGHTS,
    EXPERTS,
    ExpertInputs,
    ExpertScoringEngine,
    score_confidence_calibration,
    score_context_relevance,
    score_latency_fit,
    score_load_diversity,
    score_metadata_match,
    score_recency,
    score_similarity,
    score_success_rate,
    validate_weights,
)
from omniroute.routing.models import (
    CandidateSet,
    ModelAgentProfile,
    ModelDecisionFeedback,
    ModelEnvironmentSnapshot,
    ModelExecutionContext,
    ModelExecutionRecord,
    ModelLatencyPercentiles,
    ModelOutcome,
    ModelPatternRequest,
    ModelPriorDecision,
    ModelRoutingConstraints,
    ModelUserPreferences,
)

NOW = datetime(2026, 1, 15, 10, 0, tzinfo=UTC)

# ── Helpers ────────────────────────────────────────────────────────────


def _make_agent(
    agent_id: str,
    skills: tuple[str, ...] = (),
    specializations: tuple[str, ...] = (),
    rates: dict[str, float] | None = None,
    p99: float = 50.0,
    max_ms: float | None = None,
    current: int = 0,
    outcomes: tuple[ModelOutcome, ...] = (),
    feedback: tuple[ModelDecisionFeedback, ...] = (),
    peaks: tuple[EnumTimeBucket, ...] = (),
) -> ModelAgentProfile:
    return ModelAgentProfile(
        agent_id=agent_id,
        skills=skills,
        specializations=specializations,
        success_rates=rates or {},
        latency=ModelLatencyPercentiles(
            p50_ms=p99, p95_ms=p99, p99_ms=p99, max_ms=max_ms if max_ms is not None else p99
        ),
        current_assignments=current,
        max_assignments=10,
        recent_outcomes=outcomes,
        decision_feedback=feedback,
        peak_time_buckets=frozenset(peaks),
    )


def _make_request(
    query: str = "rotate auth tokens",
    required: tuple[str, ...] = (),
    metadata: dict[str, str] | None = None,
    max_latency_ms: float | None = None,
    **kwargs: object,
) -> ModelPatternRequest:
    return ModelPatternRequest(
        pattern_id="p-1",
        pattern_query=query,
        pattern_metadata=metadata or {},
        constraints=ModelRoutingConstraints(
            required_skills=required, max_latency_ms=max_latency_ms
        ),
        **kwargs,
    )


def _make_context(**kwargs: object) -> ModelExecutionContext:
    kwargs.setdefault(
        "environment", ModelEnvironmentSnapshot(time_bucket=EnumTimeBucket.MORNING)
    )
    return ModelExecutionContext(**kwargs)


def _inputs(
    request: ModelPatternRequest | None = None,
    context: ModelExecutionContext | None = None,
    candidates: CandidateSet | None = None,
    profiles: dict[str, ModelAgentProfile] | None = None,
) -> ExpertInputs:
    return ExpertInputs.build(
        request or _make_request(),
        context or _make_context(),
        candidates or CandidateSet.from_pairs([]),
        profiles,
        NOW,
    )


def _feedback(correct: int, wrong: int, age: timedelta = timedelta(days=1)) -> tuple:
    return tuple(
        ModelDecisionFeedback(decided_at=NOW - age, correct=i < correct)
        for i in range(correct + wrong)
    )


# ══════════════════════════════════════════════════════════════════════
# Weights
# ══════════════════════════════════════════════════════════════════════


class TestWeights:
    def test_weights_sum_to_one(self) -> None:
        assert abs(sum(EXPERT_WEIGHTS.values()) - 1.0) <= 1e-4

    def test_registry_covers_every_expert(self) -> None:
        assert set(EXPERTS) == set(EnumExpert)
        assert set(EXPERT_WEIGHTS) == set(EnumExpert)

    def test_invalid_sum_rejected(self) -> None:
        weights = dict(EXPERT_WEIGHTS)
        weights[EnumExpert.SIMILARITY] = 0.5
        with pytest.raises(ValueError, match="sum to 1.0"):
            validate_weights(weights)

    def test_missing_expert_rejected(self) -> None:
        weights = dict(EXPERT_WEIGHTS)
        del weights[EnumExpert.RECENCY]
        with pytest.raises(ValueError, match="missing"):
            validate_weights(weights)

    def test_engine_rejects_bad_weights(self) -> None:
        weights = {expert: 0.2 for expert in EnumExpert}
        with pytest.raises(ValueError):
            ExpertScoringEngine(weights=weights)


# ══════════════════════════════════════════════════════════════════════
# Individual experts
# ══════════════════════════════════════════════════════════════════════


class TestSimilarity:
    def test_absent_agent_scores_zero(self) -> None:
        inputs = _inputs(candidates=CandidateSet.from_pairs([("a", 0.9)]))
        assert score_similarity(_make_agent("b"), inputs) == 0.0

    def test_single_candidate_scores_one(self) -> None:
        inputs = _inputs(candidates=CandidateSet.from_pairs([("a", 0.3)]))
        assert score_similarity(_make_agent("a"), inputs) == 1.0

    def test_all_equal_candidates_score_one(self) -> None:
        inputs = _inputs(candidates=CandidateSet.from_pairs([("a", 0.4), ("b", 0.4)]))
        assert score_similarity(_make_agent("a"), inputs) == 1.0
        assert score_similarity(_make_agent("b"), inputs) == 1.0

    def test_normalized_with_rank_discount(self) -> None:
        inputs = _inputs(candidates=CandidateSet.from_pairs([("a", 0.9), ("b", 0.45)]))
        assert score_similarity(_make_agent("a"), inputs) == pytest.approx(1.0)
        assert score_similarity(_make_agent("b"), inputs) == pytest.approx(0.5 * 0.98)

    def test_non_positive_maximum(self) -> None:
        inputs = _inputs(candidates=CandidateSet.from_pairs([("a", 0.0), ("b", -0.2)]))
        assert score_similarity(_make_agent("a"), inputs) == 1.0
        assert score_similarity(_make_agent("b"), inputs) == 0.0


class TestMetadataMatch:
    def test_full_match(self) -> None:
        inputs = _inputs(request=_make_request(required=("auth",)))
        agent = _make_agent("a", skills=("auth",))
        # skill 1.0, no specializations requested (0.5), mandatory 1.0
        assert score_metadata_match(agent, inputs) == pytest.approx(0.85)

    def test_missing_required_skill(self) -> None:
        inputs = _inputs(request=_make_request(required=("auth",)))
        agent = _make_agent("b", skills=("db",))
        assert score_metadata_match(agent, inputs) == pytest.approx(0.15)

    def test_partial_mandatory_credit(self) -> None:
        inputs = _inputs(request=_make_request(required=("auth", "db")))
        agent = _make_agent("a", skills=("auth",))
        assert score_metadata_match(agent, inputs) == pytest.approx(0.2 + 0.15 + 0.15)

    def test_specialization_overlap(self) -> None:
        request = _make_request(metadata={"domain": "security, identity"})
        agent = _make_agent("a", specializations=("security",))
        # no skills requested (0.5), half of specializations, no mandatory skills
        assert score_metadata_match(agent, _inputs(request=request)) == pytest.approx(
            0.2 + 0.15 + 0.3
        )


class TestSuccessRate:
    def test_known_pattern_type(self) -> None:
        inputs = _inputs(request=_make_request(metadata={"pattern_type": "auth"}))
        assert score_success_rate(_make_agent("a", rates={"auth": 0.95}), inputs) == 0.95

    def test_unseen_type_uses_default(self) -> None:
        inputs = _inputs(request=_make_request(metadata={"pattern_type": "billing"}))
        assert score_success_rate(_make_agent("a", rates={"auth": 0.95}), inputs) == 0.5


class TestRecency:
    def test_boost_from_recent_same_type_successes(self) -> None:
        outcomes = (
            ModelOutcome(pattern_type="auth", success=True, completed_at=NOW - timedelta(minutes=10)),
            ModelOutcome(pattern_type="auth", success=False, completed_at=NOW - timedelta(minutes=20)),
            ModelOutcome(pattern_type="auth", success=True, completed_at=NOW - timedelta(hours=2)),
        )
        agent = _make_agent("a", rates={"auth": 0.6}, outcomes=outcomes)
        inputs = _inputs(request=_make_request(metadata={"pattern_type": "auth"}))
        assert score_recency(agent, inputs) == pytest.approx(0.7)

    def test_no_recent_outcomes_returns_baseline(self) -> None:
        agent = _make_agent("a", rates={"auth": 0.6})
        inputs = _inputs(request=_make_request(metadata={"pattern_type": "auth"}))
        assert score_recency(agent, inputs) == pytest.approx(0.6)

    def test_capped_at_one(self) -> None:
        outcomes = (
            ModelOutcome(pattern_type="auth", success=True, completed_at=NOW - timedelta(minutes=5)),
        )
        agent = _make_agent("a", rates={"auth": 0.95}, outcomes=outcomes)
        inputs = _inputs(request=_make_request(metadata={"pattern_type": "auth"}))
        assert score_recency(agent, inputs) == 1.0


class TestLoadDiversity:
    @staticmethod
    def _assigned(*agent_ids: str) -> ModelExecutionContext:
        return _make_context(
            routing_history=tuple(
                ModelPriorDecision(
                    decision_id=uuid4(),
                    agent_id=agent_id,
                    pattern_id="p-0",
                    decided_at=NOW - timedelta(minutes=i + 1),
                )
                for i, agent_id in enumerate(agent_ids)
            )
        )

    def test_idle_agent(self) -> None:
        assert score_load_diversity(_make_agent("a"), _inputs()) == 1.0

    def test_moderate_load(self) -> None:
        assert score_load_diversity(_make_agent("a", current=5), _inputs()) == 1.0

    def test_already_assigned_penalty(self) -> None:
        inputs = _inputs(context=self._assigned("a"))
        assert score_load_diversity(_make_agent("a", current=5), inputs) == pytest.approx(0.8)

    def test_full_capacity_penalty(self) -> None:
        assert score_load_diversity(_make_agent("a", current=10), _inputs()) == pytest.approx(0.5)

    def test_diversity_penalty(self) -> None:
        peers = {f"x{i}": _make_agent(f"x{i}", skills=("auth",)) for i in range(3)}
        inputs = _inputs(context=self._assigned(*peers), profiles=peers)
        agent = _make_agent("a", skills=("auth",), current=5)
        assert score_load_diversity(agent, inputs) == pytest.approx(0.85)

    def test_two_similar_peers_no_penalty(self) -> None:
        peers = {f"x{i}": _make_agent(f"x{i}", skills=("auth",)) for i in range(2)}
        inputs = _inputs(context=self._assigned(*peers), profiles=peers)
        agent = _make_agent("a", skills=("auth",), current=5)
        assert score_load_diversity(agent, inputs) == 1.0


class TestLatencyFit:
    def test_ceiling_hard_fail(self) -> None:
        inputs = _inputs(request=_make_request(max_latency_ms=100))
        assert score_latency_fit(_make_agent("a", p99=80, max_ms=150), inputs) == 0.0

    def test_preference_ceiling_applies(self) -> None:
        context = _make_context(preferences=ModelUserPreferences(max_latency_ms=100))
        inputs = _inputs(context=context)
        assert score_latency_fit(_make_agent("a", p99=80, max_ms=150), inputs) == 0.0

    def test_within_target(self) -> None:
        assert score_latency_fit(_make_agent("a", p99=200), _inputs()) == 1.0

    def test_linear_degradation(self) -> None:
        # normal tier: target 250ms, acceptable 1000ms
        assert score_latency_fit(_make_agent("a", p99=625), _inputs()) == pytest.approx(0.8)

    def test_beyond_acceptable(self) -> None:
        assert score_latency_fit(_make_agent("a", p99=2000), _inputs()) == 0.1

    def test_critical_tier(self) -> None:
        inputs = _inputs(request=_make_request(metadata={"priority": "critical"}))
        assert score_latency_fit(_make_agent("a", p99=75), inputs) == pytest.approx(0.8)


class TestContextRelevance:
    def test_excluded_short_circuits(self) -> None:
        inputs = _inputs(request=_make_request(excluded_agents=("a",), preferred_agents=("a",)))
        assert score_context_relevance(_make_agent("a"), inputs) == 0.0

    def test_preferred_bonus(self) -> None:
        inputs = _inputs(request=_make_request(preferred_agents=("a",)))
        assert score_context_relevance(_make_agent("a"), inputs) == pytest.approx(0.8)

    def test_requester_history(self) -> None:
        history = tuple(
            ModelExecutionRecord(
                pattern_id=f"p-{i}",
                agent_id="a",
                success=i < 3,
                completed_at=NOW - timedelta(days=1, minutes=i),
            )
            for i in range(4)
        )
        inputs = _inputs(context=_make_context(execution_history=history))
        assert score_context_relevance(_make_agent("a"), inputs) == pytest.approx(0.6)

    def test_recent_activity_and_peak_time(self) -> None:
        outcomes = (ModelOutcome(success=True, completed_at=NOW - timedelta(minutes=5)),)
        agent = _make_agent("a", outcomes=outcomes, peaks=(EnumTimeBucket.MORNING,))
        assert score_context_relevance(agent, _inputs()) == pytest.approx(0.6)


class TestConfidenceCalibration:
    def test_unproven_agent_is_neutral(self) -> None:
        agent = _make_agent("a", feedback=_feedback(3, 0))
        assert score_confidence_calibration(agent, _inputs()) == 0.5

    def test_perfect_accuracy(self) -> None:
        agent = _make_agent("a", feedback=_feedback(10, 0))
        assert score_confidence_calibration(agent, _inputs()) == pytest.approx(1.0)

    def test_poor_accuracy_trends_low(self) -> None:
        agent = _make_agent("a", feedback=_feedback(5, 5))
        assert score_confidence_calibration(agent, _inputs()) == pytest.approx(
            0.45 + 0.05 * 0.5 / 0.9
        )

    def test_stale_feedback_ignored(self) -> None:
        agent = _make_agent("a", feedback=_feedback(10, 0, age=timedelta(days=8)))
        assert score_confidence_calibration(agent, _inputs()) == 0.5


# ══════════════════════════════════════════════════════════════════════
# Engine
# ══════════════════════════════════════════════════════════════════════


class TestExpertScoringEngine:
    @pytest.fixture
    def engine(self) -> ExpertScoringEngine:
        return ExpertScoringEngine()

    def test_scores_in_unit_range_and_weighted_total(self, engine: ExpertScoringEngine) -> None:
        agent = _make_agent("a", skills=("auth",), rates={"auth": 0.95}, current=9)
        request = _make_request(required=("auth",), metadata={"pattern_type": "auth"})
        candidates = CandidateSet.from_pairs([("a", 0.8), ("b", 0.6)])

        scores = engine.score(agent, request, _make_context(), candidates, now=NOW)

        by_expert = scores.by_expert()
        assert all(0.0 <= v <= 1.0 for v in by_expert.values())
        expected = sum(by_expert[e] * w for e, w in EXPERT_WEIGHTS.items())
        assert scores.total == pytest.approx(expected)

    def test_failing_expert_is_neutral(self) -> None:
        def _boom(agent: ModelAgentProfile, inputs: ExpertInputs) -> float:
            raise RuntimeError("expert crashed")

        experts = {**EXPERTS, EnumExpert.SIMILARITY: _boom}
        engine = ExpertScoringEngine(experts=experts)
        scores = engine.score_with_inputs(_make_agent("a"), _inputs())
        assert scores.similarity == 0.5

    def test_non_finite_expert_is_neutral(self) -> None:
        experts = {**EXPERTS, EnumExpert.RECENCY: lambda agent, inputs: math.nan}
        engine = ExpertScoringEngine(experts=experts)
        assert engine.score_with_inputs(_make_agent("a"), _inputs()).recency == 0.5

    def test_deterministic(self, engine: ExpertScoringEngine) -> None:
        agent = _make_agent("a", skills=("auth",))
        inputs = _inputs(candidates=CandidateSet.from_pairs([("a", 0.7), ("b", 0.2)]))
        assert engine.score_with_inputs(agent, inputs) == engine.score_with_inputs(agent, inputs)

    @pytest.mark.asyncio
    async def test_score_all(self, engine: ExpertScoringEngine) -> None:
        agents = [_make_agent("a"), _make_agent("b")]
        inputs = _inputs(candidates=CandidateSet.from_pairs([("a", 0.9), ("b", 0.5)]))

        results = await engine.score_all(agents, inputs)

        assert set(results) == {"a", "b"}
        assert results["a"].similarity > results["b"].similarity

    @pytest.mark.asyncio
    async def test_score_all_timeout_yields_neutral(self) -> None:
        class _SlowEngine(ExpertScoringEngine):
            async def _score_task(self, agent, inputs):
                await asyncio.sleep(1)
                return await super()._score_task(agent, inputs)

        engine = _SlowEngine(task_timeout_ms=5)
        results = await engine.score_all([_make_agent("a")], _inputs())

        assert results["a"] == engine.neutral_scores()
        assert results["a"].total == 0.5
