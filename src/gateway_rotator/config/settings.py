# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Runtime configuration resolved from environment variables.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from .defaults import (
    DEFAULT_UPSTREAM_URL,
    DEFAULT_OPENAI_BASE_PATH,
    DEFAULT_GLOBAL_TIMEOUT,
    DEFAULT_KEYS_FILE,
    DEFAULT_KEY_TIER_FILES,
    DEFAULT_RELOAD_INTERVAL,
    DEFAULT_COOLDOWN_HOURS,
    DEFAULT_MODEL_LIST_CACHE_TTL,
    LIB_LOGGER_NAME,
)

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


def _strip_trailing_slash(url: str) -> str:
    return url.rstrip("/")


def _read_int(env: Mapping[str, str], names: List[str], default: int) -> int:
    """Read the first set variable in `names` as int, falling back to `default`."""
    for name in names:
        raw = env.get(name)
        if raw is None or raw.strip() == "":
            continue
        try:
            return int(raw)
        except ValueError:
            lib_logger.warning(
                f"Invalid integer for {name}: {raw!r}. Using default {default}."
            )
            return default
    return default


def _read_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class GatewayConfig:
    """Resolved settings shared by the rotator library and the proxy app."""

    upstream_url: str = DEFAULT_UPSTREAM_URL
    upstream_openai_base_url: str = DEFAULT_UPSTREAM_URL + DEFAULT_OPENAI_BASE_PATH
    keys_file: Path = Path(DEFAULT_KEYS_FILE)
    key_tier_files: List[str] = field(
        default_factory=lambda: list(DEFAULT_KEY_TIER_FILES)
    )
    reload_interval: int = DEFAULT_RELOAD_INTERVAL
    cooldown_hours: int = DEFAULT_COOLDOWN_HOURS
    auth_key: Optional[str] = None
    expose_reasoning_content: bool = False
    model_list_cache_ttl: int = DEFAULT_MODEL_LIST_CACHE_TTL
    global_timeout: int = DEFAULT_GLOBAL_TIMEOUT

    @property
    def cooldown_seconds(self) -> float:
        return self.cooldown_hours * 60 * 60

    @property
    def key_file_chain(self) -> List[Path]:
        """Candidate key files in priority order: tier files, then KEYS_FILE."""
        keys_dir = self.keys_file.parent
        chain = [keys_dir / name for name in self.key_tier_files]
        chain.append(self.keys_file)
        return chain

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "GatewayConfig":
        upstream_url = _strip_trailing_slash(
            env.get("UPSTREAM_URL") or DEFAULT_UPSTREAM_URL
        )
        openai_base = _strip_trailing_slash(
            env.get("UPSTREAM_OPENAI_BASE_URL")
            or f"{upstream_url}{DEFAULT_OPENAI_BASE_PATH}"
        )

        tier_files_env = env.get("KEY_TIER_FILES")
        if tier_files_env is not None:
            tier_files = [n.strip() for n in tier_files_env.split(",") if n.strip()]
        else:
            tier_files = list(DEFAULT_KEY_TIER_FILES)

        auth_key = env.get("AUTH_KEY") or env.get("PROXY_API_KEY") or None

        return cls(
            upstream_url=upstream_url,
            upstream_openai_base_url=openai_base,
            keys_file=Path(env.get("KEYS_FILE") or DEFAULT_KEYS_FILE),
            key_tier_files=tier_files,
            reload_interval=_read_int(
                env, ["KEY_RELOAD_INTERVAL"], DEFAULT_RELOAD_INTERVAL
            ),
            cooldown_hours=_read_int(
                env, ["KEY_COOLDOWN_HOURS", "COOLDOWN_HOURS"], DEFAULT_COOLDOWN_HOURS
            ),
            auth_key=auth_key,
            expose_reasoning_content=_read_bool(env, "EXPOSE_REASONING_CONTENT"),
            model_list_cache_ttl=_read_int(
                env, ["MODEL_LIST_CACHE_TTL"], DEFAULT_MODEL_LIST_CACHE_TTL
            ),
            global_timeout=_read_int(env, ["GLOBAL_TIMEOUT"], DEFAULT_GLOBAL_TIMEOUT),
        )
