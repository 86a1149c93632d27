# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""OpenAI wire-format builders for chat and legacy text completions."""

import json
import random
import string
import time
from typing import Any, Dict, Optional

from .types import TextResult, Usage

SSE_DONE = "data: [DONE]\n\n"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_completion_id(prefix: str = "chatcmpl") -> str:
    """Synthetic id: "<prefix>-<epoch ms>-<7 random chars>"."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=7))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def sse_frame(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


# =============================================================================
# CHAT COMPLETIONS
# =============================================================================


def chat_chunk(
    completion_id: str,
    model: str,
    delta: Dict[str, Any],
    finish_reason: Optional[str] = None,
    usage: Optional[Usage] = None,
) -> Dict[str, Any]:
    chunk: Dict[str, Any] = {
        "id": completion_id,
        "object": "chat.completion.chunk",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {"index": 0, "delta": delta, "finish_reason": finish_reason}
        ],
    }
    if usage is not None:
        chunk["usage"] = usage.to_dict()
    return chunk


def chat_completion_response(model: str, result: TextResult) -> Dict[str, Any]:
    message: Dict[str, Any] = {"role": "assistant", "content": result.text or ""}
    if result.reasoning:
        message["reasoning_content"] = result.reasoning

    response: Dict[str, Any] = {
        "id": new_completion_id("chatcmpl"),
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model,
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
    }
    if result.usage is not None:
        response["usage"] = result.usage.to_dict()
    return response


# =============================================================================
# LEGACY TEXT COMPLETIONS
# =============================================================================


def text_chunk(
    completion_id: str,
    model: str,
    text: str,
    finish_reason: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "id": completion_id,
        "object": "text_completion",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {"text": text, "index": 0, "logprobs": None, "finish_reason": finish_reason}
        ],
    }


def text_completion_response(model: str, result: TextResult) -> Dict[str, Any]:
    response: Dict[str, Any] = {
        "id": new_completion_id("cmpl"),
        "object": "text_completion",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "text": result.text or "",
                "index": 0,
                "logprobs": None,
                "finish_reason": "stop",
            }
        ],
    }
    if result.usage is not None:
        response["usage"] = result.usage.to_dict()
    return response
