# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT
"""Shared fixtures for the omniroute test suite."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from omniroute.config import ConfigRouting, clear_settings_cache


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep OMNIROUTE_* environment and the settings singleton out of tests."""
    for var in (
        "OMNIROUTE_ENABLE_EMBEDDINGS",
        "OMNIROUTE_ENABLE_QDRANT",
        "OMNIROUTE_ENABLE_DECISION_PUBLISHING",
        "OMNIROUTE_DECISION_CACHE_TTL_SECONDS",
        "OMNIROUTE_DEFAULT_AGENT_ID",
    ):
        monkeypatch.delenv(var, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> ConfigRouting:
    """Routing settings with the decision cache disabled."""
    return ConfigRouting(decision_cache_ttl_seconds=0)
