# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Maps the unified reasoning controls onto provider-specific option sets.

Each provider gets its own options type holding only the fields it accepts;
`to_wire()` renders the camelCase structure the gateway expects, keyed by
provider name (e.g. {"anthropic": {"thinking": {...}}}).
"""

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional, Union

from .config.defaults import (
    DEFAULT_THINKING_BUDGET,
    REASONING_EFFORT_BUDGETS,
    THINKING_BUDGET_MAX_TOKENS_RATIO,
)
from .model_identity import ProviderIdentity
from .types import ChatCompletionRequest, ChatMessage

lib_logger = logging.getLogger("gateway_rotator")


# =============================================================================
# PROVIDER OPTION TYPES
# =============================================================================


@dataclass(frozen=True)
class AnthropicOptions:
    provider: ClassVar[ProviderIdentity] = ProviderIdentity.ANTHROPIC

    thinking_type: str
    budget_tokens: int

    def to_wire(self) -> Dict[str, Any]:
        return {
            "anthropic": {
                "thinking": {
                    "type": self.thinking_type,
                    "budgetTokens": self.budget_tokens,
                }
            }
        }


@dataclass(frozen=True)
class OpenAIOptions:
    provider: ClassVar[ProviderIdentity] = ProviderIdentity.OPENAI

    reasoning_effort: str

    def to_wire(self) -> Dict[str, Any]:
        return {"openai": {"reasoningEffort": self.reasoning_effort}}


@dataclass(frozen=True)
class GoogleOptions:
    provider: ClassVar[ProviderIdentity] = ProviderIdentity.GOOGLE

    thinking_budget: int
    include_thoughts: bool = True

    def to_wire(self) -> Dict[str, Any]:
        return {
            "google": {
                "thinkingConfig": {
                    "thinkingBudget": self.thinking_budget,
                    "includeThoughts": self.include_thoughts,
                }
            }
        }


@dataclass(frozen=True)
class XAIOptions:
    provider: ClassVar[ProviderIdentity] = ProviderIdentity.XAI

    reasoning_effort: str

    def to_wire(self) -> Dict[str, Any]:
        return {"xai": {"reasoningEffort": self.reasoning_effort}}


ProviderOptions = Union[AnthropicOptions, OpenAIOptions, GoogleOptions, XAIOptions]


# =============================================================================
# BUDGET DERIVATION
# =============================================================================


def effort_to_budget(effort: str, max_tokens: Optional[int] = None) -> int:
    """
    Thinking budget for a reasoning effort level.

    Capped at 80% of max_tokens (truncated) when max_tokens is given.
    """
    budget = REASONING_EFFORT_BUDGETS.get(effort, DEFAULT_THINKING_BUDGET)
    if max_tokens:
        cap = int(max_tokens * THINKING_BUDGET_MAX_TOKENS_RATIO)
        if budget > cap:
            return cap
    return budget


def _thinking_enabled(request: ChatCompletionRequest) -> bool:
    return request.thinking is not None and request.thinking.type in (None, "enabled")


def resolve_thinking_budget(request: ChatCompletionRequest) -> Optional[int]:
    """Effective budget from the first reasoning shape present, or None."""
    if request.reasoning_effort:
        return effort_to_budget(request.reasoning_effort, request.max_tokens)
    if _thinking_enabled(request):
        return request.thinking.budget_tokens or DEFAULT_THINKING_BUDGET
    if request.enable_thinking:
        return request.thinking_budget or DEFAULT_THINKING_BUDGET
    return None


def is_reasoning_model(bare_model_id: str) -> bool:
    """OpenAI models that accept reasoningEffort: o1*, o3*, *gpt-5*."""
    model_lower = bare_model_id.lower()
    return (
        model_lower.startswith("o1")
        or model_lower.startswith("o3")
        or "gpt-5" in model_lower
    )


# =============================================================================
# PER-PROVIDER BUILDERS
# =============================================================================


def _build_anthropic(request: ChatCompletionRequest) -> Optional[AnthropicOptions]:
    if request.reasoning_effort:
        return AnthropicOptions(
            thinking_type="enabled",
            budget_tokens=effort_to_budget(request.reasoning_effort, request.max_tokens),
        )
    if request.thinking is not None:
        # Explicit thinking objects pass through as given
        return AnthropicOptions(
            thinking_type=request.thinking.type or "enabled",
            budget_tokens=request.thinking.budget_tokens or DEFAULT_THINKING_BUDGET,
        )
    if request.enable_thinking:
        return AnthropicOptions(
            thinking_type="enabled",
            budget_tokens=request.thinking_budget or DEFAULT_THINKING_BUDGET,
        )
    return None


def _build_openai(
    request: ChatCompletionRequest, bare_model_id: str
) -> Optional[OpenAIOptions]:
    if request.reasoning_effort and is_reasoning_model(bare_model_id):
        return OpenAIOptions(reasoning_effort=request.reasoning_effort)
    return None


def _build_google(request: ChatCompletionRequest) -> Optional[GoogleOptions]:
    budget = resolve_thinking_budget(request)
    if budget is None:
        return None
    return GoogleOptions(thinking_budget=budget)


def _build_xai(request: ChatCompletionRequest) -> Optional[XAIOptions]:
    if not request.reasoning_effort:
        return None
    # xAI only distinguishes low and high
    effort = "low" if request.reasoning_effort == "low" else "high"
    return XAIOptions(reasoning_effort=effort)


def translate(
    request: ChatCompletionRequest,
    provider: ProviderIdentity,
    bare_model_id: str,
) -> Optional[ProviderOptions]:
    """
    Build provider options for a request, or None when nothing should be sent.

    Generation controls (temperature, top_p, max_tokens) are not touched here.
    """
    if not request.has_reasoning_controls:
        return None

    if provider is ProviderIdentity.ANTHROPIC:
        options = _build_anthropic(request)
    elif provider is ProviderIdentity.OPENAI:
        options = _build_openai(request, bare_model_id)
    elif provider is ProviderIdentity.GOOGLE:
        options = _build_google(request)
    elif provider is ProviderIdentity.XAI:
        options = _build_xai(request)
    else:
        options = None

    if options is not None:
        lib_logger.debug(f"Provider options for {provider.value}: {options.to_wire()}")
    return options


# =============================================================================
# MESSAGE NORMALIZATION
# =============================================================================


def convert_messages(messages: List[ChatMessage]) -> List[Dict[str, Any]]:
    """
    Normalize messages to plain OpenAI-style dicts.

    Text and image_url parts are kept; any other part type becomes an empty
    text part.
    """
    converted = []
    for message in messages:
        content = message.content
        extras = dict(message.model_extra or {})
        if content is None or isinstance(content, str):
            converted.append({"role": message.role, "content": content or "", **extras})
            continue

        parts = []
        for part in content:
            if part.type == "text":
                parts.append({"type": "text", "text": part.text or ""})
            elif part.type == "image_url" and part.image_url is not None:
                image: Dict[str, Any] = {"url": part.image_url.url}
                if part.image_url.detail:
                    image["detail"] = part.image_url.detail
                parts.append({"type": "image_url", "image_url": image})
            else:
                parts.append({"type": "text", "text": ""})
        converted.append({"role": message.role, "content": parts, **extras})
    return converted
