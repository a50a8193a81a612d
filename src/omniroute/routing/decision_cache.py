# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Decision Cache

In-memory cache with TTL for routing decisions.

Features:
- SHA-256 key derived from request, context and constraints
- Time-to-live (TTL) expiration
- Expired entries swept on every write, size bounded by max_entries
- Hit/miss tracking
- Cache statistics
"""

from __future__ import annotations

import hashlib
import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from omniroute.routing.models import (
    ModelExecutionContext,
    ModelPatternRequest,
    ModelRoutingDecision,
)


@dataclass
class _CacheEntry:
    value: ModelRoutingDecision
    created_at: float
    expires_at: float
    last_accessed: float
    hits: int = 0


class DecisionCache:
    """Short-lived cache of immutable routing decisions.

    A TTL of 0 disables caching entirely. Writes sweep expired entries and
    evict the oldest ones once ``max_entries`` is reached.
    """

    def __init__(
        self,
        ttl_seconds: float = 30.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self.misses = 0

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    @staticmethod
    def make_key(request: ModelPatternRequest, context: ModelExecutionContext) -> str:
        """SHA-256 of the canonical JSON form of request and context.

        Constraints are part of the request, so an override changes the key.
        """
        payload = {
            "request": request.model_dump(mode="json"),
            "context": context.model_dump(mode="json"),
        }
        key_data = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(key_data.encode()).hexdigest()

    def get(self, key: str) -> ModelRoutingDecision | None:
        if not self.enabled:
            return None
        entry = self._entries.get(key)
        now = self._clock()
        if entry is None:
            self.misses += 1
            return None
        if now > entry.expires_at:
            del self._entries[key]
            self.misses += 1
            return None
        entry.hits += 1
        entry.last_accessed = now
        return entry.value

    def set(self, key: str, decision: ModelRoutingDecision, ttl_seconds: float | None = None) -> None:
        if not self.enabled:
            return
        now = self._clock()
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds
        self._entries.pop(key, None)
        self.cleanup_expired()
        # Insertion order is creation order
        while len(self._entries) >= self.max_entries:
            del self._entries[next(iter(self._entries))]
        self._entries[key] = _CacheEntry(
            value=decision,
            created_at=now,
            expires_at=now + ttl,
            last_accessed=now,
        )

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self.misses = 0

    def cleanup_expired(self) -> int:
        """Remove all expired entries and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> dict[str, Any]:
        total_hits = sum(entry.hits for entry in self._entries.values())
        lookups = total_hits + self.misses
        if not self._entries:
            oldest_age = 0.0
        else:
            oldest_age = self._clock() - min(e.created_at for e in self._entries.values())
        return {
            "entries": len(self._entries),
            "total_hits": total_hits,
            "misses": self.misses,
            "hit_rate": total_hits / lookups if lookups else 0.0,
            "oldest_entry_age_seconds": oldest_age,
        }


__all__ = ["DecisionCache"]
