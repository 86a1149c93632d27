# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
FastAPI dependencies for the proxy application.

- Gateway client retrieval from app state
- Bearer-token verification against AUTH_KEY
"""

import time

from fastapi import Depends, HTTPException, Request
from fastapi.security import APIKeyHeader

from gateway_rotator import GatewayClient

# Security scheme
api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


def get_gateway_client(request: Request) -> GatewayClient:
    """Dependency to get the gateway client instance from the app state."""
    return request.app.state.gateway_client


def get_uptime(request: Request) -> float:
    started_at = getattr(request.app.state, "started_at", None)
    return time.time() - started_at if started_at else 0.0


async def verify_api_key(
    request: Request,
    auth: str = Depends(api_key_header),
):
    """
    Dependency to verify the proxy bearer token.

    If AUTH_KEY is not configured, skips verification (open access mode).
    """
    auth_key = get_gateway_client(request).config.auth_key
    if not auth_key:
        return auth
    if not auth or auth != f"Bearer {auth_key}":
        raise HTTPException(
            status_code=401,
            detail={
                "message": "Invalid or missing API Key",
                "type": "authentication_error",
                "code": 401,
            },
        )
    return auth
