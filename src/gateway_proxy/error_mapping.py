# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Centralized error mapping from gateway and LiteLLM exceptions to FastAPI
HTTPExceptions.

Every mapped HTTPException carries an OpenAI-style detail
({"message", "type", "code"}) which the app-level handler renders as
{"error": {...}}.
"""

import logging
from typing import Any, Dict, Optional

import litellm
from fastapi import HTTPException
from pydantic import ValidationError

from gateway_rotator import NoAvailableKeysError, UpstreamError

logger = logging.getLogger(__name__)


def error_detail(message: str, error_type: str, code: int) -> Dict[str, Any]:
    return {"message": message, "type": error_type, "code": code}


def gateway_http_error(status_code: int, message: str, error_type: str) -> HTTPException:
    return HTTPException(
        status_code=status_code, detail=error_detail(message, error_type, status_code)
    )


def invalid_request(message: str) -> HTTPException:
    return gateway_http_error(400, message, "invalid_request_error")


def format_validation_error(e: ValidationError) -> str:
    """First validation problem as "field: message"."""
    errors = e.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    if first.get("type") == "missing":
        return f"Missing required field: {location}"
    return f"Invalid value for {location}: {first.get('msg')}"


def _status_for_litellm_error(e: Exception) -> int:
    if isinstance(e, litellm.RateLimitError):
        return 429
    if isinstance(e, litellm.AuthenticationError):
        return 401
    if isinstance(e, (litellm.ContextWindowExceededError, litellm.BadRequestError)):
        return 400
    if isinstance(e, litellm.Timeout):
        return 504
    if isinstance(e, (litellm.ServiceUnavailableError, litellm.APIConnectionError)):
        return 503
    if isinstance(e, (litellm.InternalServerError, litellm.OpenAIError)):
        return 502
    return 500


def map_gateway_error(e: Exception, context: Optional[str] = None) -> HTTPException:
    """
    Map an exception raised while serving a request to an HTTPException.

    Args:
        e: The exception from the gateway client, LiteLLM or validation
        context: Optional context string for logging (e.g., endpoint name)
    """
    ctx = f" ({context})" if context else ""

    if isinstance(e, NoAvailableKeysError):
        return gateway_http_error(503, str(e), "service_error")

    if isinstance(e, ValidationError):
        return invalid_request(format_validation_error(e))

    if isinstance(e, UpstreamError):
        if e.rate_limited:
            return gateway_http_error(429, str(e), "rate_limit_error")
        cause = e.__cause__
        status = _status_for_litellm_error(cause) if isinstance(cause, Exception) else 500
        return gateway_http_error(status, str(e), "api_error")

    if isinstance(e, litellm.RateLimitError):
        return gateway_http_error(429, str(e), "rate_limit_error")

    if isinstance(e, litellm.OpenAIError):
        return gateway_http_error(_status_for_litellm_error(e), str(e), "api_error")

    # Log unexpected errors
    logger.error(f"Unhandled exception{ctx}: {e}")
    return gateway_http_error(500, str(e) or "Internal server error", "api_error")
