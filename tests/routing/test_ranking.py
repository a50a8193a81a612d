# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT
"""Tests for hard-constraint filtering, ranking and selection."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from omniroute.routing.experts import ExpertInputs
from omniroute.routing.models import (
    CandidateSet,
    ModelAgentProfile,
    ModelExecutionContext,
    ModelExpertScores,
    ModelLatencyPercentiles,
    ModelPatternRequest,
    ModelRoutingConstraints,
    ModelUserPreferences,
)
from omniroute.routing.ranking import filter_eligible, rank, rejection_reason, select

NOW = datetime(2026, 1, 15, 10, 0, tzinfo=UTC)

# ── Helpers ────────────────────────────────────────────────────────────


def _make_agent(
    agent_id: str,
    skills: tuple[str, ...] = ("auth",),
    available: bool = True,
    max_ms: float = 100.0,
    security_level: int = 2,
) -> ModelAgentProfile:
    return ModelAgentProfile(
        agent_id=agent_id,
        name=f"Agent {agent_id.upper()}",
        skills=skills,
        available=available,
        security_level=security_level,
        latency=ModelLatencyPercentiles(p50_ms=10, p95_ms=20, p99_ms=30, max_ms=max_ms),
    )


def _inputs(
    constraints: ModelRoutingConstraints | None = None,
    excluded: tuple[str, ...] = (),
    context: ModelExecutionContext | None = None,
    candidates: CandidateSet | None = None,
) -> ExpertInputs:
    request = ModelPatternRequest(
        pattern_id="p-1",
        pattern_query="rotate auth tokens",
        excluded_agents=excluded,
        constraints=constraints or ModelRoutingConstraints(),
    )
    return ExpertInputs.build(
        request,
        context or ModelExecutionContext(),
        candidates or CandidateSet.from_pairs([]),
        now=NOW,
    )


def _scores(total: float) -> ModelExpertScores:
    return ModelExpertScores(
        similarity=total,
        metadata_match=total,
        success_rate=total,
        recency=total,
        load_diversity=total,
        latency_fit=total,
        context_relevance=total,
        confidence_calibration=total,
        total=total,
    )


# ══════════════════════════════════════════════════════════════════════
# Hard constraints
# ══════════════════════════════════════════════════════════════════════


class TestRejectionReason:
    def test_eligible_agent(self) -> None:
        assert rejection_reason(_make_agent("a"), _inputs()) is None

    def test_excluded(self) -> None:
        assert rejection_reason(_make_agent("a"), _inputs(excluded=("a",))) == "excluded"

    def test_excluded_by_preferences(self) -> None:
        context = ModelExecutionContext(preferences=ModelUserPreferences(excluded_agents=("a",)))
        assert rejection_reason(_make_agent("a"), _inputs(context=context)) == "excluded"

    def test_unavailable(self) -> None:
        assert rejection_reason(_make_agent("a", available=False), _inputs()) == "unavailable"

    def test_latency_ceiling(self) -> None:
        inputs = _inputs(ModelRoutingConstraints(max_latency_ms=50))
        reason = rejection_reason(_make_agent("a", max_ms=100), inputs)
        assert reason is not None and reason.startswith("latency")

    def test_latency_at_ceiling_is_eligible(self) -> None:
        inputs = _inputs(ModelRoutingConstraints(max_latency_ms=100))
        assert rejection_reason(_make_agent("a", max_ms=100), inputs) is None

    def test_security_level(self) -> None:
        inputs = _inputs(ModelRoutingConstraints(min_security_level=3))
        reason = rejection_reason(_make_agent("a", security_level=2), inputs)
        assert reason == "security level 2 below 3"

    def test_missing_required_skills(self) -> None:
        inputs = _inputs(ModelRoutingConstraints(required_skills=("auth", "db")))
        reason = rejection_reason(_make_agent("a", skills=("auth",)), inputs)
        assert reason == "missing required skills: db"


class TestFilterEligible:
    def test_splits_agents(self) -> None:
        agents = [_make_agent("a"), _make_agent("b", available=False), _make_agent("c")]
        eligible, rejected = filter_eligible(agents, _inputs(excluded=("c",)))

        assert [a.agent_id for a in eligible] == ["a"]
        assert rejected == {"b": "unavailable", "c": "excluded"}

    def test_all_rejected(self) -> None:
        eligible, rejected = filter_eligible([_make_agent("a")], _inputs(excluded=("a",)))
        assert eligible == []
        assert set(rejected) == {"a"}


# ══════════════════════════════════════════════════════════════════════
# Ranking and selection
# ══════════════════════════════════════════════════════════════════════


class TestRank:
    def test_descending_with_id_tie_break(self) -> None:
        profiles = {i: _make_agent(i) for i in ("a", "b", "c")}
        scores = {"c": _scores(0.7), "b": _scores(0.9), "a": _scores(0.7)}

        ranked = rank(scores, profiles, _inputs())

        assert [r.agent_id for r in ranked] == ["b", "a", "c"]
        assert [r.rank for r in ranked] == [1, 2, 3]
        assert ranked[0].name == "Agent B"

    def test_carries_candidate_similarity(self) -> None:
        candidates = CandidateSet.from_pairs([("a", 0.8)])
        ranked = rank(
            {"a": _scores(0.5), "b": _scores(0.4)},
            {"a": _make_agent("a")},
            _inputs(candidates=candidates),
        )
        assert ranked[0].similarity == 0.8
        assert ranked[1].similarity == 0.0
        assert ranked[1].name == "b"


class TestSelect:
    def test_primary_and_alternatives(self) -> None:
        scores = {f"a{i}": _scores(0.9 - i * 0.1) for i in range(6)}
        ranked = rank(scores, {}, _inputs())

        primary, alternatives = select(ranked)

        assert primary.agent_id == "a0"
        assert primary.score == pytest.approx(0.9)
        assert [a.agent_id for a in alternatives] == ["a1", "a2", "a3"]
        assert [a.rank for a in alternatives] == [2, 3, 4]

    def test_without_alternatives(self) -> None:
        ranked = rank({"a": _scores(0.5), "b": _scores(0.4)}, {}, _inputs())
        _, alternatives = select(ranked, include_alternatives=False)
        assert alternatives == ()

    def test_empty_ranking(self) -> None:
        with pytest.raises(ValueError):
            select([])
