# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""OmniRoute settings for the pattern routing engine.

Covers every tunable of the routing pipeline:
- Latency budgets (end-to-end target and per-phase soft budgets)
- Fan-out limits (parallel scoring, consensus deadline)
- Candidate generation (nearest-neighbor k, collaborator timeouts)
- Decision cache TTL
- Fallback catch-all agent
- External collaborators (Gemini embeddings, Qdrant, Kafka)

External collaborators are disabled by default. When a collaborator is
enabled its connection settings must be configured explicitly, see
``validate_required_services()``.

Environment variables use the OMNIROUTE_ prefix, e.g.::

    OMNIROUTE_LATENCY_TARGET_MS=100
    OMNIROUTE_CONSENSUS_TIMEOUT_MS=50
    OMNIROUTE_DEFAULT_AGENT_ID=agent-generalist
    OMNIROUTE_ENABLE_QDRANT=true
    OMNIROUTE_QDRANT_URL=http://localhost:6333
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_and_load_env() -> None:
    """Load .env file from project root."""
    current = Path(__file__).resolve().parent
    for _ in range(10):
        env_file = current / ".env"
        if env_file.exists():
            load_dotenv(env_file, override=False)
            return
        parent = current.parent
        if parent == current:
            break
        current = parent


_find_and_load_env()

logger = logging.getLogger(__name__)


class ConfigRouting(BaseSettings):
    """Settings for the routing pipeline and its collaborators."""

    model_config = SettingsConfigDict(
        env_prefix="OMNIROUTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # LATENCY BUDGETS
    # =========================================================================
    latency_target_ms: float = Field(
        default=100.0,
        gt=0,
        le=60000,
        description="Soft end-to-end routing budget; breaches are logged, not raised",
    )
    phase_budget_embed_ms: float = Field(default=30.0, gt=0)
    phase_budget_search_ms: float = Field(default=20.0, gt=0)
    phase_budget_profiles_ms: float = Field(default=10.0, gt=0)
    phase_budget_scoring_ms: float = Field(default=20.0, gt=0)
    phase_budget_consensus_ms: float = Field(default=50.0, gt=0)

    # =========================================================================
    # FAN-OUT LIMITS
    # =========================================================================
    consensus_timeout_ms: float = Field(
        default=50.0,
        gt=0,
        le=5000,
        description="Hard group deadline for the five consensus validators",
    )
    scoring_task_timeout_ms: float = Field(
        default=25.0,
        gt=0,
        le=5000,
        description="Per-agent scoring task timeout",
    )
    max_parallel_scoring: int = Field(
        default=16,
        ge=1,
        le=256,
        description="Upper bound on concurrently running scoring tasks",
    )

    # =========================================================================
    # CANDIDATE GENERATION
    # =========================================================================
    nearest_neighbor_k: int = Field(default=20, ge=1, le=500)
    embedding_timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    search_timeout_seconds: float = Field(default=2.0, gt=0, le=60)

    # =========================================================================
    # DECISION POLICY
    # =========================================================================
    decision_cache_ttl_seconds: int = Field(
        default=30,
        ge=0,
        le=3600,
        description="TTL for cached decisions; 0 disables the cache",
    )
    decision_cache_max_entries: int = Field(
        default=1024,
        ge=1,
        le=1_000_000,
        description="Upper bound on cached decisions; oldest are evicted first",
    )
    history_limit: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Cap on execution/routing history entries kept per context",
    )
    critical_categories: list[str] = Field(
        default_factory=lambda: ["security", "payments", "compliance"],
        description="Pattern categories that always require consensus",
    )
    default_agent_id: str = Field(
        default="",
        description="Catch-all agent for the default_agent fallback strategy",
    )
    similarity_gap_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    high_similarity_threshold: float = Field(default=0.85, ge=0.0, le=1.0)

    # =========================================================================
    # EMBEDDINGS (GEMINI)
    # =========================================================================
    enable_embeddings: bool = Field(default=False)
    gemini_api_key: str = Field(default="", description="Gemini API key")
    embedding_endpoint: str = Field(
        default=(
            "https://generativelanguage.googleapis.com/v1beta/models/"
            "text-embedding-004:embedContent"
        ),
    )
    embedding_model: str = Field(default="models/text-embedding-004")
    embedding_dimensions: int = Field(default=1536, ge=1, le=8192)

    # =========================================================================
    # QDRANT
    # =========================================================================
    enable_qdrant: bool = Field(default=False)
    qdrant_url: str = Field(default="")
    qdrant_collection: str = Field(default="agent_capabilities")

    # =========================================================================
    # KAFKA (decision publishing)
    # =========================================================================
    enable_decision_publishing: bool = Field(default=False)
    kafka_bootstrap_servers: str = Field(default="")
    decision_topic: str = Field(default="onex.evt.omniroute.routing-decided.v1")
    kafka_publish_timeout_seconds: float = Field(default=10.0, gt=0, le=120)

    @field_validator("critical_categories")
    @classmethod
    def normalize_categories(cls, v: list[str]) -> list[str]:
        """Lower-case and de-duplicate categories, preserving order."""
        seen: list[str] = []
        for item in v:
            key = item.strip().lower()
            if key and key not in seen:
                seen.append(key)
        return seen

    def validate_required_services(self) -> list[str]:
        """Validate that enabled collaborators are configured.

        Returns:
            List of validation error messages. Empty list means valid.
        """
        errors: list[str] = []

        if self.enable_embeddings and not self.gemini_api_key:
            errors.append(
                "OMNIROUTE_GEMINI_API_KEY is required when OMNIROUTE_ENABLE_EMBEDDINGS=true."
            )
        if self.enable_qdrant and not self.qdrant_url:
            errors.append(
                "OMNIROUTE_QDRANT_URL is required when OMNIROUTE_ENABLE_QDRANT=true."
            )
        if self.enable_decision_publishing and not self.kafka_bootstrap_servers:
            errors.append(
                "OMNIROUTE_KAFKA_BOOTSTRAP_SERVERS is required when "
                "OMNIROUTE_ENABLE_DECISION_PUBLISHING=true."
            )

        return errors

    def phase_budgets_ms(self) -> dict[str, float]:
        """Soft budgets keyed by pipeline phase name."""
        return {
            "embed": self.phase_budget_embed_ms,
            "search": self.phase_budget_search_ms,
            "profiles": self.phase_budget_profiles_ms,
            "scoring": self.phase_budget_scoring_ms,
            "consensus": self.phase_budget_consensus_ms,
        }


@lru_cache(maxsize=1)
def get_settings() -> ConfigRouting:
    """Return the process-wide settings singleton.

    Note:
        For test isolation, use `clear_settings_cache()` to reset the
        singleton before each test that needs fresh settings.
    """
    instance = ConfigRouting()
    for error in instance.validate_required_services():
        logger.warning(error)
    return instance


def clear_settings_cache() -> None:
    """Clear the settings singleton cache for test isolation."""
    get_settings.cache_clear()
