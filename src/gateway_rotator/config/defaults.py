# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Centralized defaults for the gateway rotator.

This file contains all tunable default values for:
- Upstream gateway endpoints
- Key file discovery and tiered reload
- Credential cooldown timing
- Reasoning budget derivation

Environment variables can override most of these at runtime
(see GatewayConfig.from_env).
"""

from typing import Dict, List

# =============================================================================
# UPSTREAM DEFAULTS
# =============================================================================

# Host of the vendor AI gateway (no trailing slash)
# Override: UPSTREAM_URL=<url>
DEFAULT_UPSTREAM_URL: str = "https://ai-gateway.vercel.sh"

# Path appended to the upstream host for the OpenAI-compatible surface
# Override the full base: UPSTREAM_OPENAI_BASE_URL=<url>
DEFAULT_OPENAI_BASE_PATH: str = "/v1"

# Timeout (seconds) handed to the model invoker for a single upstream call
# Override: GLOBAL_TIMEOUT=<seconds>
DEFAULT_GLOBAL_TIMEOUT: int = 600

# =============================================================================
# KEY FILE DEFAULTS
# =============================================================================

# Default key file; its directory also holds the tier classification files
# Override: KEYS_FILE=<path>
DEFAULT_KEYS_FILE: str = "./data/keys/keys.txt"

# Tier classification files checked before KEYS_FILE, most trusted first.
# The first file that exists and has at least one key wins.
# Override: KEY_TIER_FILES=keys_high.txt,keys_medium_high.txt,active_keys.txt
DEFAULT_KEY_TIER_FILES: List[str] = ["keys_high.txt", "active_keys.txt"]

# Seconds after which the pool is considered stale and reloaded on next use
# Override: KEY_RELOAD_INTERVAL=<seconds>
DEFAULT_RELOAD_INTERVAL: int = 5 * 60

# =============================================================================
# COOLDOWN DEFAULTS
# =============================================================================

# Hours a credential stays out of rotation after a rate/quota failure
# Override: KEY_COOLDOWN_HOURS=<hours> (legacy: COOLDOWN_HOURS)
DEFAULT_COOLDOWN_HOURS: int = 24

# Substrings (lowercase) that classify an upstream error as rate/quota related
RATE_LIMIT_MARKERS = ("rate", "limit", "quota", "429")

# =============================================================================
# REASONING DEFAULTS
# =============================================================================

# Thinking token budget per unified reasoning effort level
REASONING_EFFORT_BUDGETS: Dict[str, int] = {
    "low": 4000,
    "medium": 8000,
    "high": 16000,
}

# Budget used when an explicit thinking request omits its own budget
DEFAULT_THINKING_BUDGET: int = 8000

# Maximum share of max_tokens an effort-derived budget may take
THINKING_BUDGET_MAX_TOKENS_RATIO: float = 0.8

# =============================================================================
# MISC
# =============================================================================

# TTL (seconds) of the cached upstream model list
# Override: MODEL_LIST_CACHE_TTL=<seconds>
DEFAULT_MODEL_LIST_CACHE_TTL: int = 60 * 60

LIB_LOGGER_NAME = "gateway_rotator"
