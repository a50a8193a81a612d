# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Agent profile storage."""

from omniroute.storage.profile_store import (
    InMemoryProfileStore,
    apply_profile_update,
    latency_percentiles,
    load_registry,
)

__all__ = [
    "InMemoryProfileStore",
    "apply_profile_update",
    "latency_percentiles",
    "load_registry",
]
