# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Provider identity resolution for gateway model ids.

Gateway model ids look like "anthropic/claude-sonnet-4". Clients may also send
bare names ("gpt-4o", "claude-3-5-haiku"), in which case the provider is
inferred from a static, ordered table of name fragments.
"""

from enum import Enum
from typing import List, Tuple


class ProviderIdentity(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"
    XAI = "xai"
    UNKNOWN = "unknown"


KNOWN_PROVIDER_PREFIXES = frozenset(
    {
        ProviderIdentity.ANTHROPIC.value,
        ProviderIdentity.OPENAI.value,
        ProviderIdentity.GOOGLE.value,
        ProviderIdentity.XAI.value,
    }
)

# Checked in order; first fragment contained in the lowercased name wins.
MODEL_FRAGMENT_TABLE: List[Tuple[str, ProviderIdentity]] = [
    ("claude", ProviderIdentity.ANTHROPIC),
    ("claude-3", ProviderIdentity.ANTHROPIC),
    ("claude-4", ProviderIdentity.ANTHROPIC),
    ("claude-sonnet", ProviderIdentity.ANTHROPIC),
    ("claude-opus", ProviderIdentity.ANTHROPIC),
    ("claude-haiku", ProviderIdentity.ANTHROPIC),
    ("gpt", ProviderIdentity.OPENAI),
    ("gpt-4", ProviderIdentity.OPENAI),
    ("gpt-3.5", ProviderIdentity.OPENAI),
    ("o1", ProviderIdentity.OPENAI),
    ("o3", ProviderIdentity.OPENAI),
    ("chatgpt", ProviderIdentity.OPENAI),
    ("gemini", ProviderIdentity.GOOGLE),
    ("gemini-pro", ProviderIdentity.GOOGLE),
    ("gemini-2", ProviderIdentity.GOOGLE),
    ("grok", ProviderIdentity.XAI),
]


def detect_provider(model: str) -> ProviderIdentity:
    """
    Resolve the provider for a model string.

    An explicit known "provider/" prefix wins; otherwise the fragment table is
    consulted; otherwise the gateway's OpenAI-compatible mode is assumed.
    """
    model_lower = model.lower()

    if "/" in model_lower:
        prefix = model_lower.split("/", 1)[0]
        if prefix in KNOWN_PROVIDER_PREFIXES:
            return ProviderIdentity(prefix)

    for fragment, provider in MODEL_FRAGMENT_TABLE:
        if fragment in model_lower:
            return provider

    return ProviderIdentity.OPENAI


def bare_model_id(model: str) -> str:
    """Drop the leading "provider/" segment, keeping any further slashes."""
    if "/" in model:
        return model.split("/", 1)[1]
    return model


def ensure_gateway_model_id(model: str) -> str:
    """
    Return the model as "provider/name".

    Ids that already contain '/' are returned unchanged, which makes this
    idempotent.
    """
    if "/" in model:
        return model

    provider = detect_provider(model)
    if provider is ProviderIdentity.UNKNOWN:
        provider = ProviderIdentity.OPENAI
    return f"{provider.value}/{model}"
