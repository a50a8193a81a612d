# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Collaborator protocols consumed by the routing orchestrator.

Embedding, vector search, profile storage and decision publishing are owned
by other services. The orchestrator only depends on these narrow interfaces.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from omniroute.routing.models import (
    ModelAgentProfile,
    ModelProfileUpdate,
    ModelRoutingDecision,
)


@runtime_checkable
class ProtocolEmbeddingClient(Protocol):
    """Embed pattern text into a fixed-dimension vector."""

    async def embed(self, text: str, metadata: Mapping[str, str] | None = None) -> list[float]:
        """Raises:
        EmbeddingUnavailableError: The endpoint failed, timed out or returned
            a malformed vector.
        """
        ...


@runtime_checkable
class ProtocolVectorSearchClient(Protocol):
    """Nearest-neighbor lookup over agent-capability vectors."""

    async def nearest_neighbors(
        self, vector: Sequence[float], k: int
    ) -> list[tuple[str, float]]:
        """Return up to ``k`` ``(agent_id, similarity)`` pairs.

        Raises:
            SearchUnavailableError: The index could not be queried.
        """
        ...


@runtime_checkable
class ProtocolProfileStore(Protocol):
    """Versioned agent profile records with a single mutation entry point."""

    async def load_profiles(self, agent_ids: Sequence[str]) -> dict[str, ModelAgentProfile]:
        """Batch load; unknown ids are omitted from the result."""
        ...

    async def list_profiles(self) -> list[ModelAgentProfile]: ...

    async def update_profile(self, profile: ModelAgentProfile) -> None: ...

    async def apply_update(self, update: ModelProfileUpdate) -> ModelAgentProfile: ...


@runtime_checkable
class ProtocolDecisionSink(Protocol):
    """Destination for finished routing decisions (event bus, audit log)."""

    async def publish(self, decision: ModelRoutingDecision) -> None:
        """Raises:
        PersistenceError: The decision could not be recorded.
        """
        ...


class NullDecisionSink:
    """Discards decisions. Default when publishing is disabled."""

    async def publish(self, decision: ModelRoutingDecision) -> None:
        return None


__all__ = [
    "NullDecisionSink",
    "ProtocolDecisionSink",
    "ProtocolEmbeddingClient",
    "ProtocolProfileStore",
    "ProtocolVectorSearchClient",
]
