# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Agent profile store.

Profiles are versioned, frozen records keyed by agent id. Routing only reads
them; the single mutation entry point is ``apply_update``, which runs under a
per-agent ``asyncio.Lock`` and swaps in a new frozen profile so concurrent
readers always see a consistent snapshot.

Registry format (YAML)::

    agents:
      agent-auth:
        name: Auth Specialist
        skills: [auth, oauth]
        specializations: [security]
        security_level: 3
        success_rates: {auth: 0.95}
        latency: {p50_ms: 40, p95_ms: 70, p99_ms: 90, max_ms: 120}
        max_assignments: 10
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from omniroute.routing.errors import ProfileStoreError
from omniroute.routing.models import (
    DECISION_FEEDBACK_WINDOW,
    LATENCY_SAMPLE_WINDOW,
    MAX_RECENT_OUTCOMES,
    ModelAgentProfile,
    ModelDecisionFeedback,
    ModelLatencyPercentiles,
    ModelOutcome,
    ModelProfileUpdate,
)

logger = logging.getLogger(__name__)

EMA_DECAY = 0.9


def latency_percentiles(samples: Sequence[float]) -> ModelLatencyPercentiles:
    """Nearest-rank percentiles over a sample window."""
    if not samples:
        return ModelLatencyPercentiles()
    ordered = sorted(samples)
    n = len(ordered)

    def _at(q: float) -> float:
        return ordered[max(0, math.ceil(q * n) - 1)]

    return ModelLatencyPercentiles(
        p50_ms=_at(0.50), p95_ms=_at(0.95), p99_ms=_at(0.99), max_ms=ordered[-1]
    )


def apply_profile_update(
    profile: ModelAgentProfile, update: ModelProfileUpdate
) -> ModelAgentProfile:
    """Return the next version of ``profile`` with ``update`` folded in.

    Success rate: ``new = 0.9 * old + 0.1 * sample`` where ``old`` is the
    pattern type's rate, or the default rate for an unseen type.
    """
    sample = 1.0 if update.success else 0.0
    rates = dict(profile.success_rates)
    rates[update.pattern_type] = (
        EMA_DECAY * profile.success_rate_for(update.pattern_type) + (1 - EMA_DECAY) * sample
    )

    outcome = ModelOutcome(
        pattern_type=update.pattern_type,
        success=update.success,
        latency_ms=update.latency_ms,
        completed_at=update.completed_at,
    )
    samples = (*profile.latency_samples, update.latency_ms)[-LATENCY_SAMPLE_WINDOW:]

    feedback = profile.decision_feedback
    if update.decision_correct is not None:
        cutoff = update.completed_at - DECISION_FEEDBACK_WINDOW
        feedback = tuple(
            f
            for f in (
                ModelDecisionFeedback(decided_at=update.completed_at, correct=update.decision_correct),
                *feedback,
            )
            if f.decided_at >= cutoff
        )

    return ModelAgentProfile.model_validate(
        {
            **profile.model_dump(),
            "available": profile.available if update.available is None else update.available,
            "success_rates": rates,
            "recent_outcomes": (outcome, *profile.recent_outcomes)[:MAX_RECENT_OUTCOMES],
            "latency_samples": samples,
            "latency": latency_percentiles(samples),
            "decision_feedback": feedback,
            "version": profile.version + 1,
        }
    )


class InMemoryProfileStore:
    """In-process profile store for development, tests and the CLI.

    Example:
        store = InMemoryProfileStore.from_registry("agents.yaml")
        profiles = await store.load_profiles(["agent-auth"])
        await store.apply_update(ModelProfileUpdate(...))
    """

    def __init__(self, profiles: Iterable[ModelAgentProfile] = ()) -> None:
        self._profiles: dict[str, ModelAgentProfile] = {p.agent_id: p for p in profiles}
        self._locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_registry(cls, path: str | Path) -> InMemoryProfileStore:
        return cls(load_registry(path))

    def _lock_for(self, agent_id: str) -> asyncio.Lock:
        lock = self._locks.get(agent_id)
        if lock is None:
            lock = self._locks[agent_id] = asyncio.Lock()
        return lock

    def __len__(self) -> int:
        return len(self._profiles)

    async def load_profiles(self, agent_ids: Sequence[str]) -> dict[str, ModelAgentProfile]:
        return {i: self._profiles[i] for i in agent_ids if i in self._profiles}

    async def list_profiles(self) -> list[ModelAgentProfile]:
        return [self._profiles[i] for i in sorted(self._profiles)]

    async def get_profile(self, agent_id: str) -> ModelAgentProfile | None:
        return self._profiles.get(agent_id)

    async def update_profile(self, profile: ModelAgentProfile) -> None:
        """Replace a profile wholesale, bumping its version."""
        async with self._lock_for(profile.agent_id):
            current = self._profiles.get(profile.agent_id)
            version = current.version + 1 if current is not None else profile.version
            self._profiles[profile.agent_id] = profile.model_copy(update={"version": version})

    async def apply_update(self, update: ModelProfileUpdate) -> ModelAgentProfile:
        """Fold a post-execution update into the agent's profile.

        Raises:
            ProfileStoreError: The agent is unknown or the update is invalid.
        """
        async with self._lock_for(update.agent_id):
            current = self._profiles.get(update.agent_id)
            if current is None:
                raise ProfileStoreError(
                    f"Unknown agent: {update.agent_id}",
                    details={"agent_id": update.agent_id, "pattern_id": update.pattern_id},
                )
            try:
                updated = apply_profile_update(current, update)
            except ValidationError as e:
                raise ProfileStoreError(
                    f"Invalid update for {update.agent_id}",
                    details={"errors": e.errors(include_url=False)},
                ) from e
            except (TypeError, ValueError, ArithmeticError) as e:
                raise ProfileStoreError(
                    f"Update for {update.agent_id} could not be applied: {type(e).__name__}",
                    details={"agent_id": update.agent_id, "error": str(e)},
                ) from e
            self._profiles[update.agent_id] = updated
            return updated


# =============================================================================
# Registry loading
# =============================================================================


def _registry_entries(data: Any) -> list[dict[str, Any]]:
    agents = data.get("agents") if isinstance(data, dict) else None
    if isinstance(agents, dict):
        return [{"agent_id": agent_id, **(fields or {})} for agent_id, fields in agents.items()]
    if isinstance(agents, list):
        return [dict(fields) for fields in agents]
    raise ProfileStoreError("Registry must contain an 'agents' mapping or list")


def load_registry(path: str | Path) -> list[ModelAgentProfile]:
    """Build agent profiles from a YAML registry file.

    Raises:
        ProfileStoreError: The file is missing, is not valid YAML, or holds an
            invalid agent entry.
    """
    registry_path = Path(path)
    try:
        with registry_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        logger.error(f"Registry not found: {registry_path}")
        raise ProfileStoreError(
            f"Registry not found: {registry_path}", details={"path": str(registry_path)}
        ) from e
    except yaml.YAMLError as e:
        logger.error(
            f"Invalid YAML in registry: {registry_path}",
            exc_info=True,
            extra={"yaml_error": str(e)},
        )
        raise ProfileStoreError(
            f"Invalid YAML in registry: {registry_path}", details={"path": str(registry_path)}
        ) from e

    profiles: list[ModelAgentProfile] = []
    for entry in _registry_entries(data):
        try:
            profiles.append(ModelAgentProfile.model_validate(entry))
        except ValidationError as e:
            raise ProfileStoreError(
                f"Invalid agent entry {entry.get('agent_id')!r} in {registry_path}",
                details={"errors": e.errors(include_url=False)},
            ) from e

    logger.info(
        f"Loaded agent registry from {registry_path}",
        extra={"agent_count": len(profiles)},
    )
    return profiles


__all__ = [
    "EMA_DECAY",
    "InMemoryProfileStore",
    "apply_profile_update",
    "latency_percentiles",
    "load_registry",
]
