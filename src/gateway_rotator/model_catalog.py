# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Model list caching and the built-in fallback catalog.

The upstream /models listing is cached for a TTL. When the upstream cannot be
reached, the static list below is served instead.
"""

import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config.defaults import DEFAULT_MODEL_LIST_CACHE_TTL

# (gateway model id, owner)
BUILTIN_MODELS: List[Tuple[str, str]] = [
    ("anthropic/claude-sonnet-4-20250514", "anthropic"),
    ("anthropic/claude-opus-4-20250514", "anthropic"),
    ("anthropic/claude-3-5-sonnet-20241022", "anthropic"),
    ("anthropic/claude-3-5-haiku-20241022", "anthropic"),
    ("openai/gpt-4o", "openai"),
    ("openai/gpt-4o-mini", "openai"),
    ("openai/gpt-4-turbo", "openai"),
    ("openai/o1", "openai"),
    ("openai/o1-mini", "openai"),
    ("openai/o1-pro", "openai"),
    ("openai/o3", "openai"),
    ("openai/o3-mini", "openai"),
    ("google/gemini-2.5-pro-preview-06-05", "google"),
    ("google/gemini-2.5-flash-preview-05-20", "google"),
    ("google/gemini-2.0-flash", "google"),
    ("xai/grok-3", "xai"),
    ("xai/grok-3-fast", "xai"),
    ("xai/grok-2", "xai"),
]


def _card(model_id: str, owner: str) -> Dict[str, Any]:
    return {"id": model_id, "object": "model", "owned_by": owner}


def builtin_model_cards() -> List[Dict[str, Any]]:
    return [_card(model_id, owner) for model_id, owner in BUILTIN_MODELS]


def find_builtin_model(model_id: str) -> Optional[Dict[str, Any]]:
    """Match an exact gateway id, or a bare name against the id's suffix."""
    for known_id, owner in BUILTIN_MODELS:
        if known_id == model_id or known_id.endswith(f"/{model_id}"):
            return _card(known_id, owner)
    return None


def filter_by_provider(
    models: List[Dict[str, Any]], provider: Optional[str]
) -> List[Dict[str, Any]]:
    """Keep models whose id starts with `provider` (case-insensitive)."""
    if not provider:
        return models
    prefix = provider.lower()
    return [m for m in models if str(m.get("id", "")).lower().startswith(prefix)]


class ModelListCache:
    """Single-entry TTL cache for the upstream model listing."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_MODEL_LIST_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._models: Optional[List[Dict[str, Any]]] = None
        self._stored_at = 0.0

    def get(self) -> Optional[List[Dict[str, Any]]]:
        """Cached models, or None when empty or expired."""
        if self._models is None:
            return None
        if self._clock() - self._stored_at >= self.ttl_seconds:
            return None
        return self._models

    def set(self, models: List[Dict[str, Any]]) -> None:
        self._models = models
        self._stored_at = self._clock()

    def find(self, model_id: str) -> Optional[Dict[str, Any]]:
        models = self.get()
        if not models:
            return None
        for model in models:
            if model.get("id") == model_id:
                return model
        return None

    def invalidate(self) -> None:
        self._models = None
        self._stored_at = 0.0
