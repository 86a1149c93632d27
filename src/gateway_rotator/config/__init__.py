# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Configuration package for the gateway rotator.

- defaults: tunable default values
- settings: GatewayConfig, resolved from environment variables
"""

from .defaults import (
    DEFAULT_UPSTREAM_URL,
    DEFAULT_OPENAI_BASE_PATH,
    DEFAULT_GLOBAL_TIMEOUT,
    DEFAULT_KEYS_FILE,
    DEFAULT_KEY_TIER_FILES,
    DEFAULT_RELOAD_INTERVAL,
    DEFAULT_COOLDOWN_HOURS,
    RATE_LIMIT_MARKERS,
    REASONING_EFFORT_BUDGETS,
    DEFAULT_THINKING_BUDGET,
    THINKING_BUDGET_MAX_TOKENS_RATIO,
    DEFAULT_MODEL_LIST_CACHE_TTL,
    LIB_LOGGER_NAME,
)
from .settings import GatewayConfig

__all__ = [
    "DEFAULT_UPSTREAM_URL",
    "DEFAULT_OPENAI_BASE_PATH",
    "DEFAULT_GLOBAL_TIMEOUT",
    "DEFAULT_KEYS_FILE",
    "DEFAULT_KEY_TIER_FILES",
    "DEFAULT_RELOAD_INTERVAL",
    "DEFAULT_COOLDOWN_HOURS",
    "RATE_LIMIT_MARKERS",
    "REASONING_EFFORT_BUDGETS",
    "DEFAULT_THINKING_BUDGET",
    "THINKING_BUDGET_MAX_TOKENS_RATIO",
    "DEFAULT_MODEL_LIST_CACHE_TTL",
    "LIB_LOGGER_NAME",
    "GatewayConfig",
]
