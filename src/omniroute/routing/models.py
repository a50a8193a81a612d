# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Pydantic v2 data models for the routing pipeline.

Request side:
    * ``ModelPatternRequest`` - the unit of work to route, plus its
      ``ModelRoutingConstraints``.
    * ``ModelExecutionContext`` - who is asking, what happened before, and
      the environment snapshot.

Agent side:
    * ``ModelAgentProfile`` - versioned capability/performance record owned by
      the profile store.
    * ``ModelProfileUpdate`` - post-execution update, the single mutation entry
      point for profiles.

Decision side:
    * ``ModelExpertScores`` - the eight expert scores of one agent.
    * ``ModelRoutingDecision`` - the immutable routing result.

All models are immutable (``frozen=True``) after construction.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Annotated, Any
from uuid import UUID, uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from omniroute.routing.enums import (
    EnumCandidateSource,
    EnumConsensusResult,
    EnumExpert,
    EnumFallbackStrategy,
    EnumPriorityTier,
    EnumTimeBucket,
    EnumValidatorVote,
)

DEFAULT_PATTERN_TYPE = "default"
DEFAULT_SUCCESS_RATE = 0.5
DEFAULT_HISTORY_LIMIT = 50
MAX_RECENT_OUTCOMES = 10
LATENCY_SAMPLE_WINDOW = 100
DECISION_FEEDBACK_WINDOW = timedelta(days=7)
MIN_FEEDBACK_SAMPLES = 5
MAX_ALTERNATIVES = 3
FALLBACK_CONFIDENCE_CEILING = 0.7

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9_+#.-]*")
_TRUTHY = {"true", "1", "yes", "y"}


def _normalize_terms(values: Iterable[str]) -> tuple[str, ...]:
    """Lower-case, strip and de-duplicate terms, preserving first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        term = value.strip().lower()
        if term:
            seen.setdefault(term, None)
    return tuple(seen)


def split_terms(raw: str | None) -> frozenset[str]:
    """Split a comma-separated metadata value into normalized terms."""
    if not raw:
        return frozenset()
    return frozenset(_normalize_terms(raw.split(",")))


def as_utc(value: datetime) -> datetime:
    """Return ``value`` timezone-aware, reading naive datetimes as UTC.

    Registry YAML and hand-built records often carry naive timestamps; all
    routing arithmetic compares against ``datetime.now(UTC)``.
    """
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=UTC)
    return value


# Timestamp fields: naive values are normalized to UTC on validation.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


def tokenize(text: str) -> frozenset[str]:
    """Lower-case word tokens of free text."""
    return frozenset(_TOKEN_RE.findall(text.lower()))


# =============================================================================
# Request Side
# =============================================================================


class ModelRoutingConstraints(BaseModel):
    """Hard constraints declared by the caller.

    Attributes:
        max_latency_ms: Agents whose worst-case latency exceeds this are
            ineligible.
        min_security_level: Agents below this security level are ineligible.
        require_consensus: Force consensus validation of the primary agent.
        required_skills: Mandatory skills; agents missing any are ineligible.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_latency_ms: float | None = Field(default=None, gt=0)
    min_security_level: int | None = Field(default=None, ge=0)
    require_consensus: bool = False
    required_skills: tuple[str, ...] = ()

    @field_validator("required_skills")
    @classmethod
    def normalize_skills(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return _normalize_terms(v)


class ModelPatternRequest(BaseModel):
    """Routing request for a single pattern.

    Well-known ``pattern_metadata`` keys:
        pattern_type: Pattern type used for success-rate lookups.
        priority: One of critical/high/normal/low (latency tier).
        category: Category checked against the critical categories.
        critical: "true" to force consensus regardless of category.
        skills: Comma-separated desired (non-mandatory) skills.
        domain / specializations: Comma-separated desired specializations.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pattern_id: str = Field(..., min_length=1, max_length=256)
    pattern_query: str = Field(..., min_length=1, max_length=10000)
    pattern_metadata: dict[str, str] = Field(default_factory=dict)
    pattern_embedding: tuple[float, ...] | None = None
    preferred_agents: tuple[str, ...] = ()
    excluded_agents: tuple[str, ...] = ()
    constraints: ModelRoutingConstraints = Field(default_factory=ModelRoutingConstraints)
    include_alternatives: bool = True
    explain_reasoning: bool = False

    @field_validator("pattern_query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        """Validate pattern_query is non-empty after stripping whitespace."""
        if not v.strip():
            raise ValueError("pattern_query must not be empty or whitespace-only")
        return v.strip()

    @field_validator("pattern_embedding")
    @classmethod
    def validate_embedding(cls, v: tuple[float, ...] | None) -> tuple[float, ...] | None:
        if v is not None and len(v) == 0:
            raise ValueError("pattern_embedding must not be empty when provided")
        return v

    @field_validator("pattern_metadata")
    @classmethod
    def validate_metadata(cls, v: dict[str, str]) -> dict[str, str]:
        """Keys are case-insensitive and must stay unique once lower-cased."""
        normalized: dict[str, str] = {}
        for key, value in v.items():
            norm = key.strip().lower()
            if not norm:
                raise ValueError("pattern_metadata keys must not be blank")
            if norm in normalized:
                raise ValueError(f"duplicate pattern_metadata key: {key!r}")
            normalized[norm] = value
        priority = normalized.get("priority")
        if priority is not None and priority.strip().lower() not in {
            tier.value for tier in EnumPriorityTier
        }:
            raise ValueError(f"unknown priority tier: {priority!r}")
        return normalized

    @field_validator("preferred_agents", "excluded_agents")
    @classmethod
    def dedupe_agents(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(a.strip() for a in v if a.strip()))

    @property
    def pattern_type(self) -> str:
        value = self.pattern_metadata.get("pattern_type", "").strip().lower()
        return value or DEFAULT_PATTERN_TYPE

    @property
    def priority(self) -> EnumPriorityTier:
        value = self.pattern_metadata.get("priority", "").strip().lower()
        return EnumPriorityTier(value) if value else EnumPriorityTier.NORMAL

    @property
    def category(self) -> str | None:
        value = self.pattern_metadata.get("category", "").strip().lower()
        return value or None

    @property
    def required_skills(self) -> frozenset[str]:
        return frozenset(self.constraints.required_skills)

    @property
    def requested_skills(self) -> frozenset[str]:
        return self.required_skills | split_terms(self.pattern_metadata.get("skills"))

    @property
    def requested_specializations(self) -> frozenset[str]:
        specs = split_terms(self.pattern_metadata.get("domain")) | split_terms(
            self.pattern_metadata.get("specializations")
        )
        if self.pattern_type != DEFAULT_PATTERN_TYPE:
            specs |= {self.pattern_type}
        return specs

    @property
    def query_terms(self) -> frozenset[str]:
        """Tokens of the query plus metadata values, for metadata-only matching."""
        terms = set(tokenize(self.pattern_query))
        for value in self.pattern_metadata.values():
            terms |= tokenize(value)
        return frozenset(terms | self.requested_skills | self.requested_specializations)

    def is_critical(self, critical_categories: Iterable[str]) -> bool:
        if self.pattern_metadata.get("critical", "").strip().lower() in _TRUTHY:
            return True
        category = self.category
        return category is not None and category in set(critical_categories)


class ModelExecutionRecord(BaseModel):
    """A prior execution by the requesting user."""

    model_config = ConfigDict(frozen=True)

    pattern_id: str
    pattern_type: str = DEFAULT_PATTERN_TYPE
    agent_id: str
    success: bool
    latency_ms: float = Field(default=0.0, ge=0.0)
    completed_at: UtcDatetime


class ModelPriorDecision(BaseModel):
    """A prior routing decision in the current session."""

    model_config = ConfigDict(frozen=True)

    decision_id: UUID
    agent_id: str
    pattern_id: str
    decided_at: UtcDatetime
    fallback_applied: EnumFallbackStrategy | None = None


class ModelEnvironmentSnapshot(BaseModel):
    """Environment at request time."""

    model_config = ConfigDict(frozen=True)

    time_bucket: EnumTimeBucket = Field(
        default_factory=lambda: EnumTimeBucket.from_hour(datetime.now(UTC).hour)
    )
    load_fraction: float = Field(default=0.0, ge=0.0, le=1.0)


class ModelUserPreferences(BaseModel):
    """Caller preferences merged with the request's own lists and constraints."""

    model_config = ConfigDict(frozen=True)

    preferred_agents: tuple[str, ...] = ()
    excluded_agents: tuple[str, ...] = ()
    max_latency_ms: float | None = Field(default=None, gt=0)
    min_security_level: int | None = Field(default=None, ge=0)


class ModelExecutionContext(BaseModel):
    """Per-request execution context. Read-only during routing.

    Histories are kept most-recent-first and capped at
    ``DEFAULT_HISTORY_LIMIT`` entries.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = "anonymous"
    session_id: str = ""
    execution_history: tuple[ModelExecutionRecord, ...] = ()
    routing_history: tuple[ModelPriorDecision, ...] = ()
    environment: ModelEnvironmentSnapshot = Field(default_factory=ModelEnvironmentSnapshot)
    preferences: ModelUserPreferences = Field(default_factory=ModelUserPreferences)

    @field_validator("execution_history")
    @classmethod
    def order_executions(
        cls, v: tuple[ModelExecutionRecord, ...]
    ) -> tuple[ModelExecutionRecord, ...]:
        ordered = sorted(v, key=lambda r: r.completed_at, reverse=True)
        return tuple(ordered[:DEFAULT_HISTORY_LIMIT])

    @field_validator("routing_history")
    @classmethod
    def order_decisions(
        cls, v: tuple[ModelPriorDecision, ...]
    ) -> tuple[ModelPriorDecision, ...]:
        ordered = sorted(v, key=lambda d: d.decided_at, reverse=True)
        return tuple(ordered[:DEFAULT_HISTORY_LIMIT])

    @property
    def assigned_agent_ids(self) -> tuple[str, ...]:
        """Agents already assigned in this session, most recent first."""
        return tuple(dict.fromkeys(d.agent_id for d in self.routing_history))


# =============================================================================
# Agent Side
# =============================================================================


class ModelOutcome(BaseModel):
    """One recent execution outcome of an agent."""

    model_config = ConfigDict(frozen=True)

    pattern_type: str = DEFAULT_PATTERN_TYPE
    success: bool
    latency_ms: float = Field(default=0.0, ge=0.0)
    completed_at: UtcDatetime


class ModelLatencyPercentiles(BaseModel):
    """Latency percentiles over the rolling sample window."""

    model_config = ConfigDict(frozen=True)

    p50_ms: float = Field(default=0.0, ge=0.0)
    p95_ms: float = Field(default=0.0, ge=0.0)
    p99_ms: float = Field(default=0.0, ge=0.0)
    max_ms: float = Field(default=0.0, ge=0.0)

    @model_validator(mode="after")
    def check_ordering(self) -> ModelLatencyPercentiles:
        if not (self.p50_ms <= self.p95_ms <= self.p99_ms <= self.max_ms):
            msg = "latency percentiles must satisfy p50 <= p95 <= p99 <= max"
            raise ValueError(msg)
        return self


class ModelDecisionFeedback(BaseModel):
    """Whether a past decision that chose this agent turned out correct."""

    model_config = ConfigDict(frozen=True)

    decided_at: UtcDatetime
    correct: bool


class ModelAgentProfile(BaseModel):
    """Versioned capability and performance record of one agent.

    Owned by the profile store and replaced (never mutated) by
    ``ProfileStore.apply_update``.

    Attributes:
        success_rates: Pattern type -> EMA success rate. Always contains a
            ``"default"`` entry used for unseen pattern types.
        recent_outcomes: Most-recent-first, capped at 10.
        latency_samples: Rolling sample window the percentiles are derived from.
        decision_feedback: Most-recent-first correctness of past decisions,
            used for the 7-day decision accuracy.
    """

    model_config = ConfigDict(frozen=True)

    agent_id: str = Field(..., min_length=1)
    name: str = ""
    available: bool = True
    skills: frozenset[str] = frozenset()
    specializations: frozenset[str] = frozenset()
    security_level: int = Field(default=0, ge=0)
    success_rates: dict[str, float] = Field(default_factory=dict)
    recent_outcomes: tuple[ModelOutcome, ...] = ()
    latency: ModelLatencyPercentiles = Field(default_factory=ModelLatencyPercentiles)
    latency_samples: tuple[float, ...] = ()
    current_assignments: int = Field(default=0, ge=0)
    max_assignments: int = Field(default=10, ge=1)
    peak_time_buckets: frozenset[EnumTimeBucket] = frozenset()
    decision_feedback: tuple[ModelDecisionFeedback, ...] = ()
    version: int = Field(default=0, ge=0)

    @field_validator("skills", "specializations", mode="before")
    @classmethod
    def normalize_sets(cls, v: Any) -> Any:
        if isinstance(v, str):
            return frozenset(split_terms(v))
        if isinstance(v, Iterable):
            return frozenset(_normalize_terms(v))
        return v

    @field_validator("success_rates")
    @classmethod
    def validate_rates(cls, v: dict[str, float]) -> dict[str, float]:
        rates: dict[str, float] = {}
        for key, rate in v.items():
            if not 0.0 <= rate <= 1.0:
                raise ValueError(f"success rate for {key!r} must be within [0, 1]")
            rates[key.strip().lower()] = rate
        rates.setdefault(DEFAULT_PATTERN_TYPE, DEFAULT_SUCCESS_RATE)
        return rates

    @field_validator("recent_outcomes")
    @classmethod
    def cap_outcomes(cls, v: tuple[ModelOutcome, ...]) -> tuple[ModelOutcome, ...]:
        ordered = sorted(v, key=lambda o: o.completed_at, reverse=True)
        return tuple(ordered[:MAX_RECENT_OUTCOMES])

    @field_validator("latency_samples")
    @classmethod
    def cap_samples(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        return tuple(v[-LATENCY_SAMPLE_WINDOW:])

    @field_validator("decision_feedback")
    @classmethod
    def order_feedback(
        cls, v: tuple[ModelDecisionFeedback, ...]
    ) -> tuple[ModelDecisionFeedback, ...]:
        return tuple(sorted(v, key=lambda f: f.decided_at, reverse=True))

    @model_validator(mode="before")
    @classmethod
    def default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            return {**data, "name": data.get("agent_id", "")}
        return data

    @property
    def capability_terms(self) -> frozenset[str]:
        return self.skills | self.specializations

    @property
    def load_fraction(self) -> float:
        return self.current_assignments / self.max_assignments

    @property
    def last_active_at(self) -> datetime | None:
        return self.recent_outcomes[0].completed_at if self.recent_outcomes else None

    def success_rate_for(self, pattern_type: str) -> float:
        """EMA success rate for a pattern type, or the default rate if unseen."""
        rate = self.success_rates.get(pattern_type)
        if rate is None:
            rate = self.success_rates.get(DEFAULT_PATTERN_TYPE, DEFAULT_SUCCESS_RATE)
        return rate

    def decision_accuracy(self, now: datetime) -> float | None:
        """Accuracy of decisions within the last 7 days, None if unproven."""
        cutoff = as_utc(now) - DECISION_FEEDBACK_WINDOW
        window = [f for f in self.decision_feedback if f.decided_at >= cutoff]
        if len(window) < MIN_FEEDBACK_SAMPLES:
            return None
        return sum(1 for f in window if f.correct) / len(window)


class ModelProfileUpdate(BaseModel):
    """Post-execution update for one agent (fire-and-forget from routing)."""

    model_config = ConfigDict(frozen=True)

    agent_id: str = Field(..., min_length=1)
    pattern_id: str = Field(..., min_length=1)
    pattern_type: str = DEFAULT_PATTERN_TYPE
    success: bool
    latency_ms: float = Field(..., ge=0.0)
    available: bool | None = None
    decision_correct: bool | None = None
    completed_at: UtcDatetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("pattern_type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return v.strip().lower() or DEFAULT_PATTERN_TYPE


# =============================================================================
# Candidate Set
# =============================================================================


@dataclass(frozen=True)
class CandidateSet:
    """Ordered candidate agents with their raw similarity.

    Entries are sorted by similarity descending, ties broken by agent id,
    and each agent appears once (highest similarity wins).
    """

    entries: tuple[tuple[str, float], ...]
    source: EnumCandidateSource = EnumCandidateSource.VECTOR_SEARCH
    _index: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_index", {agent_id: i for i, (agent_id, _) in enumerate(self.entries)}
        )

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[tuple[str, float]],
        source: EnumCandidateSource = EnumCandidateSource.VECTOR_SEARCH,
    ) -> CandidateSet:
        best: dict[str, float] = {}
        for agent_id, similarity in pairs:
            if agent_id not in best or similarity > best[agent_id]:
                best[agent_id] = float(similarity)
        ordered = sorted(best.items(), key=lambda item: (-item[1], item[0]))
        return cls(entries=tuple(ordered), source=source)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._index

    @property
    def agent_ids(self) -> tuple[str, ...]:
        return tuple(agent_id for agent_id, _ in self.entries)

    @property
    def max_similarity(self) -> float:
        return self.entries[0][1] if self.entries else 0.0

    @property
    def is_degenerate(self) -> bool:
        """A single candidate or all-equal similarities."""
        if len(self.entries) <= 1:
            return True
        return self.entries[0][1] == self.entries[-1][1]

    def rank_of(self, agent_id: str) -> int | None:
        return self._index.get(agent_id)

    def similarity_of(self, agent_id: str) -> float | None:
        index = self._index.get(agent_id)
        return None if index is None else self.entries[index][1]


# =============================================================================
# Decision Side
# =============================================================================


class ModelExpertScores(BaseModel):
    """Per-agent expert scores. Lives for one routing decision only."""

    model_config = ConfigDict(frozen=True)

    similarity: float = Field(..., ge=0.0, le=1.0)
    metadata_match: float = Field(..., ge=0.0, le=1.0)
    success_rate: float = Field(..., ge=0.0, le=1.0)
    recency: float = Field(..., ge=0.0, le=1.0)
    load_diversity: float = Field(..., ge=0.0, le=1.0)
    latency_fit: float = Field(..., ge=0.0, le=1.0)
    context_relevance: float = Field(..., ge=0.0, le=1.0)
    confidence_calibration: float = Field(..., ge=0.0, le=1.0)
    total: float = Field(..., ge=0.0, le=1.0)

    def by_expert(self) -> dict[EnumExpert, float]:
        return {expert: getattr(self, expert.value) for expert in EnumExpert}


class ModelRankedAgent(BaseModel):
    """A scored, eligible agent in ranking order (rank 1 is best)."""

    model_config = ConfigDict(frozen=True)

    agent_id: str
    name: str
    score: float = Field(..., ge=0.0, le=1.0)
    rank: int = Field(..., ge=1)
    similarity: float = 0.0
    scores: ModelExpertScores


class ModelPrimaryAgent(BaseModel):
    model_config = ConfigDict(frozen=True)

    agent_id: str
    name: str
    score: float = Field(..., ge=0.0, le=1.0)


class ModelAlternative(BaseModel):
    model_config = ConfigDict(frozen=True)

    agent_id: str
    name: str = ""
    score: float = Field(..., ge=0.0, le=1.0)
    rank: int = Field(..., ge=2)


class ModelConsensusRecord(BaseModel):
    """Outcome of consensus validation of the primary agent."""

    model_config = ConfigDict(frozen=True)

    required: bool = True
    validators: dict[str, EnumValidatorVote] = Field(default_factory=dict)
    agreed: int = Field(default=0, ge=0, le=5)
    result: EnumConsensusResult
    elapsed_ms: float = Field(default=0.0, ge=0.0)


class ModelRoutingDecision(BaseModel):
    """Immutable routing decision. Superseded, never revised."""

    model_config = ConfigDict(frozen=True)

    decision_id: UUID = Field(default_factory=uuid4)
    timestamp: UtcDatetime = Field(default_factory=lambda: datetime.now(UTC))
    pattern_id: str
    primary: ModelPrimaryAgent
    alternatives: tuple[ModelAlternative, ...] = ()
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    confidence_rationale: str
    reasoning: str
    scoring_breakdown: dict[str, ModelExpertScores] | None = None
    consensus: ModelConsensusRecord | None = None
    fallback_applied: EnumFallbackStrategy | None = None
    fallback_reason: str | None = None
    candidate_source: EnumCandidateSource = EnumCandidateSource.VECTOR_SEARCH

    @model_validator(mode="after")
    def check_invariants(self) -> ModelRoutingDecision:
        if len(self.alternatives) > MAX_ALTERNATIVES:
            raise ValueError(f"at most {MAX_ALTERNATIVES} alternatives allowed")
        ids = [alt.agent_id for alt in self.alternatives]
        if self.primary.agent_id in ids:
            raise ValueError("alternatives must not include the primary agent")
        if len(set(ids)) != len(ids):
            raise ValueError("alternatives must be distinct")
        if self.fallback_applied is not None:
            if not self.fallback_reason:
                raise ValueError("fallback decisions must carry a fallback_reason")
            if self.confidence_score > FALLBACK_CONFIDENCE_CEILING:
                raise ValueError(
                    f"fallback confidence must not exceed {FALLBACK_CONFIDENCE_CEILING}"
                )
        return self

    def to_response(self) -> dict[str, Any]:
        """Render the routing response payload."""
        response: dict[str, Any] = {
            "decision_id": str(self.decision_id),
            "primary_agent": {
                "id": self.primary.agent_id,
                "name": self.primary.name,
                "score": round(self.primary.score, 4),
            },
            "alternatives": [
                {"id": alt.agent_id, "score": round(alt.score, 4), "rank": alt.rank}
                for alt in self.alternatives
            ],
            "confidence_score": round(self.confidence_score, 4),
            "confidence_rationale": self.confidence_rationale,
            "reasoning": self.reasoning,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.scoring_breakdown is not None:
            response["scoring_breakdown"] = {
                agent_id: scores.model_dump()
                for agent_id, scores in self.scoring_breakdown.items()
            }
        if self.consensus is not None:
            response["consensus"] = {
                "required": self.consensus.required,
                "validators": {k: v.value for k, v in self.consensus.validators.items()},
                "agreed": self.consensus.agreed,
                "result": self.consensus.result.value,
            }
        if self.fallback_applied is not None:
            response["fallback_applied"] = self.fallback_applied.value
        return response


__all__ = [
    "CandidateSet",
    "DEFAULT_PATTERN_TYPE",
    "FALLBACK_CONFIDENCE_CEILING",
    "MAX_ALTERNATIVES",
    "ModelAgentProfile",
    "ModelAlternative",
    "ModelConsensusRecord",
    "ModelDecisionFeedback",
    "ModelEnvironmentSnapshot",
    "ModelExecutionContext",
    "ModelExecutionRecord",
    "ModelExpertScores",
    "ModelLatencyPercentiles",
    "ModelOutcome",
    "ModelPatternRequest",
    "ModelPrimaryAgent",
    "ModelPriorDecision",
    "ModelProfileUpdate",
    "ModelRankedAgent",
    "ModelRoutingConstraints",
    "ModelRoutingDecision",
    "ModelUserPreferences",
    "UtcDatetime",
    "as_utc",
    "split_terms",
    "tokenize",
]
