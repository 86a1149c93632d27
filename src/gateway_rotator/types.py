# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared request/response types for the gateway rotator.

Inbound requests are validated with pydantic; internal results are plain
dataclasses.
"""

import math
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict

from .model_identity import ProviderIdentity


def finite_number(value: Any) -> Optional[float]:
    """Return `value` if it is a real, finite number, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _finite_int(value: Any) -> Optional[int]:
    value = finite_number(value)
    return int(value) if value is not None else None


# Non-finite or non-numeric generation controls are dropped instead of rejected.
FiniteFloat = Annotated[Optional[float], BeforeValidator(finite_number)]
FiniteInt = Annotated[Optional[int], BeforeValidator(_finite_int)]


# =============================================================================
# INBOUND REQUEST MODELS
# =============================================================================


class ImageURL(BaseModel):
    url: str
    detail: Optional[str] = None


class ContentPart(BaseModel):
    """One part of a multi-part message (text or image reference)."""

    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None
    image_url: Optional[ImageURL] = None


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    content: Union[str, List[ContentPart], None] = None


class ThinkingParams(BaseModel):
    """Raw `thinking` object as sent by Anthropic-style clients."""

    type: Optional[str] = None
    budget_tokens: Optional[int] = None


class ChatCompletionRequest(BaseModel):
    """
    Unified chat completion request.

    Reasoning may be requested in three legacy shapes, checked in this order:
    1. reasoning_effort (low/medium/high)
    2. thinking {type, budget_tokens}
    3. enable_thinking + thinking_budget
    """

    model_config = ConfigDict(extra="allow")

    model: str
    messages: List[ChatMessage]
    stream: bool = False
    temperature: FiniteFloat = None
    top_p: FiniteFloat = None
    max_tokens: FiniteInt = None

    reasoning_effort: Optional[Literal["low", "medium", "high"]] = None
    thinking: Optional[ThinkingParams] = None
    enable_thinking: Optional[bool] = None
    thinking_budget: Optional[int] = None

    @property
    def has_reasoning_controls(self) -> bool:
        return (
            self.reasoning_effort is not None
            or self.thinking is not None
            or bool(self.enable_thinking)
        )

    def generation_controls(self) -> Dict[str, Any]:
        """Finite generation controls only; absent ones are omitted entirely."""
        controls: Dict[str, Any] = {}
        for name in ("temperature", "top_p", "max_tokens"):
            value = finite_number(getattr(self, name))
            if value is not None:
                controls[name] = value
        return controls


class TextCompletionRequest(BaseModel):
    """Legacy /v1/completions request."""

    model_config = ConfigDict(extra="allow")

    model: str
    prompt: str
    stream: bool = False
    temperature: FiniteFloat = None
    top_p: FiniteFloat = None
    max_tokens: FiniteInt = None

    def to_chat_request(self) -> ChatCompletionRequest:
        return ChatCompletionRequest(
            model=self.model,
            messages=[ChatMessage(role="user", content=self.prompt)],
            stream=self.stream,
            temperature=self.temperature,
            top_p=self.top_p,
            max_tokens=self.max_tokens,
        )


# =============================================================================
# INVOCATION TYPES
# =============================================================================


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class ModelCall:
    """Everything the model invoker needs for one upstream call."""

    provider: ProviderIdentity
    model_id: str  # gateway id, "provider/name"
    messages: List[Dict[str, Any]]
    generation_controls: Dict[str, Any]
    provider_options: Optional[Dict[str, Any]]  # wire form, keyed by provider
    credential: str
    stream: bool = False


@dataclass
class TextResult:
    """Non-streaming invoker result."""

    text: str = ""
    reasoning: Optional[str] = None
    usage: Optional[Usage] = None
    extra: Dict[str, Any] = field(default_factory=dict)
