# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Enums for the routing pipeline."""

from __future__ import annotations

from enum import StrEnum


class EnumExpert(StrEnum):
    """The eight scoring experts, in registry order."""

    SIMILARITY = "similarity"
    METADATA_MATCH = "metadata_match"
    SUCCESS_RATE = "success_rate"
    RECENCY = "recency"
    LOAD_DIVERSITY = "load_diversity"
    LATENCY_FIT = "latency_fit"
    CONTEXT_RELEVANCE = "context_relevance"
    CONFIDENCE_CALIBRATION = "confidence_calibration"


class EnumPriorityTier(StrEnum):
    """Declared request priority, read from ``pattern_metadata['priority']``."""

    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class EnumTimeBucket(StrEnum):
    """Coarse time-of-day bucket of the environment snapshot."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"

    @classmethod
    def from_hour(cls, hour: int) -> EnumTimeBucket:
        if 6 <= hour < 12:
            return cls.MORNING
        if 12 <= hour < 18:
            return cls.AFTERNOON
        if 18 <= hour < 23:
            return cls.EVENING
        return cls.NIGHT


class EnumCandidateSource(StrEnum):
    """How the candidate set was generated."""

    VECTOR_SEARCH = "vector_search"
    METADATA_ONLY = "metadata_only"
    SKILL_BASED = "skill_based"


class EnumValidatorVote(StrEnum):
    """Outcome of a single consensus validator."""

    AGREE = "agree"
    DISAGREE = "disagree"
    ABSTAIN = "abstain"


class EnumConsensusResult(StrEnum):
    """Group outcome of consensus validation.

    APPROVE: at least three validators agreed.
    ESCALATE: every validator reported (or errored) and fewer than three agreed.
    TIMEOUT: the group deadline elapsed with validators still pending and
        fewer than three agreements.
    """

    APPROVE = "APPROVE"
    ESCALATE = "ESCALATE"
    TIMEOUT = "TIMEOUT"


class EnumFallbackStrategy(StrEnum):
    """Fallback strategies, in the order they are tried."""

    ALTERNATIVES = "alternatives"
    SKILL_MATCH = "skill_match"
    SUCCESS_HISTORY = "success_history"
    ROUND_ROBIN = "round_robin"
    DEFAULT_AGENT = "default_agent"


class EnumConfidenceBand(StrEnum):
    """Qualitative band used in the confidence rationale."""

    HIGH = "high"
    GOOD = "good"
    MODERATE = "moderate"
    WEAK = "weak"
    LOW = "low"


__all__ = [
    "EnumCandidateSource",
    "EnumConfidenceBand",
    "EnumConsensusResult",
    "EnumExpert",
    "EnumFallbackStrategy",
    "EnumPriorityTier",
    "EnumTimeBucket",
    "EnumValidatorVote",
]
