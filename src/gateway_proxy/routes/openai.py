# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
OpenAI-compatible API routes.

- Chat completions (/v1/chat/completions)
- Legacy text completions (/v1/completions)
- Models list and lookup (/v1/models, /v1/models/{model_id})
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from gateway_rotator import (
    ChatCompletionRequest,
    GatewayClient,
    TextCompletionRequest,
)

from gateway_proxy.dependencies import get_gateway_client, verify_api_key
from gateway_proxy.error_mapping import (
    format_validation_error,
    gateway_http_error,
    invalid_request,
    map_gateway_error,
)
from gateway_proxy.models import ModelList, to_model_cards
from gateway_proxy.streaming import sse_response

logger = logging.getLogger(__name__)
router = APIRouter()


async def _read_json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise invalid_request("Invalid JSON in request body.")
    if not isinstance(body, dict):
        raise invalid_request("Request body must be a JSON object.")
    return body


@router.post("/v1/chat/completions")
async def chat_completions(
    request: Request,
    client: GatewayClient = Depends(get_gateway_client),
    _=Depends(verify_api_key),
):
    """
    OpenAI-compatible chat completions endpoint.
    Handles both streaming and non-streaming responses.
    """
    request_data = await _read_json_body(request)

    # Validation happens before any credential is selected
    try:
        chat_request = ChatCompletionRequest.model_validate(request_data)
    except ValidationError as e:
        raise invalid_request(format_validation_error(e))

    logger.info(
        f"Chat completion: model={chat_request.model} stream={chat_request.stream} "
        f"messages={len(chat_request.messages)}"
    )

    try:
        result = await client.acompletion(
            chat_request, is_disconnected=request.is_disconnected
        )
    except HTTPException:
        raise
    except Exception as e:
        raise map_gateway_error(e, "chat_completions")

    if chat_request.stream:
        return sse_response(result)
    return result


@router.post("/v1/completions")
async def text_completions(
    request: Request,
    client: GatewayClient = Depends(get_gateway_client),
    _=Depends(verify_api_key),
):
    """Legacy completions endpoint; the prompt is sent as a single user message."""
    request_data = await _read_json_body(request)

    try:
        text_request = TextCompletionRequest.model_validate(request_data)
    except ValidationError as e:
        raise invalid_request(format_validation_error(e))

    try:
        result = await client.atext_completion(
            text_request, is_disconnected=request.is_disconnected
        )
    except HTTPException:
        raise
    except Exception as e:
        raise map_gateway_error(e, "completions")

    if text_request.stream:
        return sse_response(result)
    return result


@router.get("/v1/models")
async def list_models(
    client: GatewayClient = Depends(get_gateway_client),
    _=Depends(verify_api_key),
    refresh: bool = False,
    provider: Optional[str] = None,
):
    """Returns the upstream model list (cached), or the built-in list as fallback."""
    models = await client.list_models(refresh=refresh, provider=provider)
    return ModelList(data=to_model_cards(models)).model_dump(exclude_none=True)


@router.get("/v1/models/{model_id:path}")
async def get_model(
    model_id: str,
    client: GatewayClient = Depends(get_gateway_client),
    _=Depends(verify_api_key),
):
    """Returns a single model by gateway id (e.g. "openai/gpt-4o")."""
    model = await client.get_model(model_id)
    if model is None:
        raise gateway_http_error(404, "Model not found", "not_found")
    return model
