# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT
"""OmniRoute - pattern routing decision engine.

Selects the best-fit agent for an incoming pattern using semantic similarity,
historical performance, load, and contextual signals, with optional consensus
validation and an ordered fallback chain.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("omniroute")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
