# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Error taxonomy for the routing pipeline.

Every routing error carries a code from ``EnumRoutingErrorCode``, a
human-readable message, and a details dictionary for logging.

Terminal errors (surfaced to the caller):
    - RequestValidationError: malformed request, rejected without fallback
    - FallbackExhaustedError: no strategy could select an agent

Recoverable errors (handled inside the pipeline):
    - EmbeddingUnavailableError -> metadata-only candidate generation
    - SearchUnavailableError -> skill-based candidate generation
    - NoEligibleAgentsError, ConsensusEscalatedError,
      ConsensusTimedOutError -> FallbackManager
    - ScoringError -> neutral expert score
    - PersistenceError -> logged, decision still returned
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class EnumRoutingErrorCode(StrEnum):
    """Error codes for routing operations."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    EMBEDDING_UNAVAILABLE = "EMBEDDING_UNAVAILABLE"
    SEARCH_UNAVAILABLE = "SEARCH_UNAVAILABLE"
    NO_ELIGIBLE_AGENTS = "NO_ELIGIBLE_AGENTS"
    CONSENSUS_ESCALATED = "CONSENSUS_ESCALATED"
    CONSENSUS_TIMED_OUT = "CONSENSUS_TIMED_OUT"
    SCORING_ERROR = "SCORING_ERROR"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    FALLBACK_EXHAUSTED = "FALLBACK_EXHAUSTED"
    PROFILE_STORE_ERROR = "PROFILE_STORE_ERROR"


class OmniRouteError(Exception):
    """Base exception class for routing operations.

    Attributes:
        code: Error code from EnumRoutingErrorCode
        message: Human-readable error message
        details: Additional error context and details
    """

    code: EnumRoutingErrorCode = EnumRoutingErrorCode.VALIDATION_ERROR
    terminal: bool = False

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: EnumRoutingErrorCode | None = None,
    ) -> None:
        if code is not None:
            self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code}, message={self.message}, "
            f"details={self.details})"
        )


class RequestValidationError(OmniRouteError):
    """Malformed routing request. Rejected immediately, no fallback."""

    code = EnumRoutingErrorCode.VALIDATION_ERROR
    terminal = True


class EmbeddingUnavailableError(OmniRouteError):
    """Embedding collaborator failed or timed out."""

    code = EnumRoutingErrorCode.EMBEDDING_UNAVAILABLE


class SearchUnavailableError(OmniRouteError):
    """Vector search collaborator failed or timed out."""

    code = EnumRoutingErrorCode.SEARCH_UNAVAILABLE


class ProfileStoreError(OmniRouteError):
    """Profile store could not load or update profiles."""

    code = EnumRoutingErrorCode.PROFILE_STORE_ERROR


class NoEligibleAgentsError(OmniRouteError):
    """Every candidate failed a hard constraint."""

    code = EnumRoutingErrorCode.NO_ELIGIBLE_AGENTS


class ConsensusEscalatedError(OmniRouteError):
    """Fewer than three validators agreed on the primary agent."""

    code = EnumRoutingErrorCode.CONSENSUS_ESCALATED


class ConsensusTimedOutError(OmniRouteError):
    """Consensus group deadline elapsed before all validators reported."""

    code = EnumRoutingErrorCode.CONSENSUS_TIMED_OUT


class ScoringError(OmniRouteError):
    """A single expert failed; recovered with a neutral score."""

    code = EnumRoutingErrorCode.SCORING_ERROR


class PersistenceError(OmniRouteError):
    """Decision caching or publishing failed. Non-fatal."""

    code = EnumRoutingErrorCode.PERSISTENCE_ERROR


class FallbackExhaustedError(OmniRouteError):
    """No agents available: every fallback strategy was exhausted.

    Surfaced to callers as service-unavailable. ``reason`` holds the
    failure that started the fallback chain.
    """

    code = EnumRoutingErrorCode.FALLBACK_EXHAUSTED
    terminal = True

    def __init__(
        self,
        reason: str,
        attempted: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.reason = reason
        self.attempted = attempted or []
        super().__init__(
            f"No agents available (original failure: {reason})",
            details={**(details or {}), "reason": reason, "attempted": self.attempted},
        )


__all__ = [
    "ConsensusEscalatedError",
    "ConsensusTimedOutError",
    "EmbeddingUnavailableError",
    "EnumRoutingErrorCode",
    "FallbackExhaustedError",
    "NoEligibleAgentsError",
    "OmniRouteError",
    "PersistenceError",
    "ProfileStoreError",
    "RequestValidationError",
    "ScoringError",
    "SearchUnavailableError",
]
