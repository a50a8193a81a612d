# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Nearest-neighbor search over agent-capability vectors.

Storage Strategy:
- Qdrant for production similarity search (agent id in the point payload)
- In-memory cosine search for development and tests
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence

from qdrant_client import AsyncQdrantClient

from omniroute.config import ConfigRouting
from omniroute.routing.errors import SearchUnavailableError

logger = logging.getLogger(__name__)


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Cosine similarity clamped to [0.0, 1.0]."""
    dot_product = sum(a * b for a, b in zip(vec1, vec2, strict=True))
    magnitude1 = math.sqrt(sum(a * a for a in vec1))
    magnitude2 = math.sqrt(sum(b * b for b in vec2))
    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0
    return max(0.0, min(1.0, dot_product / (magnitude1 * magnitude2)))


class QdrantVectorSearchClient:
    """Qdrant-backed nearest-neighbor lookup.

    Example:
        search = QdrantVectorSearchClient(url="http://localhost:6333")
        pairs = await search.nearest_neighbors(vector, k=20)
    """

    def __init__(
        self,
        url: str | None = None,
        collection_name: str = "agent_capabilities",
        timeout: float = 2.0,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        if client is None and not url:
            raise ValueError("Qdrant URL is required")
        self.collection_name = collection_name
        self.client = client or AsyncQdrantClient(url=url, timeout=int(math.ceil(timeout)))

    @classmethod
    def from_settings(cls, settings: ConfigRouting) -> QdrantVectorSearchClient:
        return cls(
            url=settings.qdrant_url,
            collection_name=settings.qdrant_collection,
            timeout=settings.search_timeout_seconds,
        )

    async def close(self) -> None:
        await self.client.close()

    async def nearest_neighbors(self, vector: Sequence[float], k: int) -> list[tuple[str, float]]:
        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=list(vector),
                limit=k,
                with_payload=True,
            )
        except Exception as e:
            logger.error(f"Failed to query agent vectors: {e}")
            raise SearchUnavailableError(
                f"Qdrant query failed: {type(e).__name__}",
                details={"collection": self.collection_name},
            ) from e

        pairs: list[tuple[str, float]] = []
        for point in response.points:
            payload = point.payload or {}
            agent_id = payload.get("agent_id") or str(point.id)
            pairs.append((agent_id, float(point.score)))

        logger.debug(f"Found {len(pairs)} nearest agents")
        return pairs


class InMemoryVectorSearchClient:
    """In-memory cosine search over registered agent vectors."""

    def __init__(self, vectors: Mapping[str, Sequence[float]] | None = None) -> None:
        self._vectors: dict[str, list[float]] = {
            agent_id: list(vector) for agent_id, vector in (vectors or {}).items()
        }

    def add(self, agent_id: str, vector: Sequence[float]) -> None:
        self._vectors[agent_id] = list(vector)

    def remove(self, agent_id: str) -> None:
        self._vectors.pop(agent_id, None)

    async def nearest_neighbors(self, vector: Sequence[float], k: int) -> list[tuple[str, float]]:
        matches: list[tuple[str, float]] = []
        for agent_id, stored in self._vectors.items():
            if len(stored) != len(vector):
                raise SearchUnavailableError(
                    f"Vector dimension mismatch for {agent_id}: {len(stored)} != {len(vector)}",
                    details={"agent_id": agent_id},
                )
            matches.append((agent_id, cosine_similarity(vector, stored)))
        matches.sort(key=lambda m: (-m[1], m[0]))
        return matches[:k]


__all__ = [
    "InMemoryVectorSearchClient",
    "QdrantVectorSearchClient",
    "cosine_similarity",
]
