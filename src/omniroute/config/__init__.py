# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT
"""OmniRoute configuration - Pydantic Settings for environment configuration."""

from __future__ import annotations

from .settings import ConfigRouting, clear_settings_cache, get_settings

__all__ = [
    "ConfigRouting",
    "clear_settings_cache",
    "get_settings",
]
