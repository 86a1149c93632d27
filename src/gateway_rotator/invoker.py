# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Model invocation against the gateway's OpenAI-compatible endpoint.

The orchestrator only depends on the ModelInvoker protocol. The default
implementation goes through LiteLLM and adapts its streaming chunks into the
upstream event dicts understood by the stream reassembler:

    {"type": "reasoning-delta", "text": ...}
    {"type": "text-delta", "text": ...}
    {"type": "finish", "usage": {"promptTokens", "completionTokens", "totalTokens"}}
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional, Protocol, Union

import litellm

from .config.defaults import DEFAULT_GLOBAL_TIMEOUT
from .errors import mask_credential
from .types import ModelCall, TextResult, Usage

lib_logger = logging.getLogger("gateway_rotator")

InvokeResult = Union[TextResult, AsyncIterator[Dict[str, Any]]]


class ModelInvoker(Protocol):
    async def invoke(self, call: ModelCall) -> InvokeResult: ...


def _field(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _usage_event_payload(usage: Any) -> Optional[Dict[str, int]]:
    if usage is None:
        return None
    prompt = _field(usage, "prompt_tokens") or 0
    completion = _field(usage, "completion_tokens") or 0
    total = _field(usage, "total_tokens") or 0
    return {
        "promptTokens": prompt,
        "completionTokens": completion,
        "totalTokens": total,
    }


def _reasoning_text(source: Any) -> Optional[str]:
    text = _field(source, "reasoning_content")
    if not text:
        text = _field(source, "reasoning")
    return text if isinstance(text, str) else None


class LiteLLMGatewayInvoker:
    """
    ModelInvoker that talks to the gateway through litellm.acompletion.

    The gateway speaks the OpenAI protocol, so every call is routed through
    LiteLLM's "openai/" provider with `api_base` pointing at the gateway and
    the full gateway model id ("anthropic/claude-...") as the model name.
    """

    def __init__(
        self,
        api_base: str,
        timeout: float = DEFAULT_GLOBAL_TIMEOUT,
        litellm_params: Optional[Dict[str, Any]] = None,
    ):
        self.api_base = api_base
        self.timeout = timeout
        self.litellm_params = litellm_params or {}

        litellm.set_verbose = False
        litellm.drop_params = True

    def _build_kwargs(self, call: ModelCall) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": f"openai/{call.model_id}",
            "api_base": self.api_base,
            "api_key": call.credential,
            "messages": call.messages,
            "stream": call.stream,
            "timeout": self.timeout,
            **call.generation_controls,
            **self.litellm_params,
        }
        if call.provider_options:
            kwargs["extra_body"] = {"providerOptions": call.provider_options}
        if call.stream:
            kwargs["stream_options"] = {"include_usage": True}
        return kwargs

    async def invoke(self, call: ModelCall) -> InvokeResult:
        kwargs = self._build_kwargs(call)
        lib_logger.debug(
            f"Invoking {call.model_id} with key {mask_credential(call.credential)} "
            f"(stream={call.stream}, providerOptions="
            f"{json.dumps(call.provider_options) if call.provider_options else None})"
        )

        response = await litellm.acompletion(**kwargs)
        if call.stream:
            return self._adapt_stream(response)
        return self._to_text_result(response)

    def _to_text_result(self, response: Any) -> TextResult:
        choices = _field(response, "choices") or []
        message = _field(choices[0], "message") if choices else None

        usage = None
        raw_usage = _field(response, "usage")
        if raw_usage is not None:
            usage = Usage(
                prompt_tokens=_field(raw_usage, "prompt_tokens") or 0,
                completion_tokens=_field(raw_usage, "completion_tokens") or 0,
                total_tokens=_field(raw_usage, "total_tokens") or 0,
            )

        return TextResult(
            text=_field(message, "content") or "",
            reasoning=_reasoning_text(message),
            usage=usage,
        )

    async def _adapt_stream(self, stream: Any) -> AsyncIterator[Dict[str, Any]]:
        """
        Translate LiteLLM stream chunks into upstream events.

        With include_usage the usage block arrives on a trailing chunk after
        the one carrying finish_reason, so the finish event is only emitted
        once the stream is exhausted.
        """
        finished = False
        usage = None

        async for chunk in stream:
            chunk_usage = _field(chunk, "usage")
            if chunk_usage is not None:
                usage = chunk_usage

            for choice in _field(chunk, "choices") or []:
                delta = _field(choice, "delta")
                reasoning = _reasoning_text(delta)
                if reasoning:
                    yield {"type": "reasoning-delta", "text": reasoning}
                content = _field(delta, "content")
                if content:
                    yield {"type": "text-delta", "text": content}
                if _field(choice, "finish_reason"):
                    finished = True

        if finished or usage is not None:
            yield {"type": "finish", "usage": _usage_event_payload(usage)}
