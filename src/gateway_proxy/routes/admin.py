# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Health, status and admin API routes.

- Health check (/health), unauthenticated
- Pool stats (/status, /stats)
- Key pool administration (/admin/status, /admin/reload, /admin/reset)
"""

import logging

from fastapi import APIRouter, Depends, Request

from gateway_rotator import GatewayClient, __version__

from gateway_proxy.dependencies import get_gateway_client, get_uptime, verify_api_key
from gateway_proxy.models import AdminActionResponse, PoolStats

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health(client: GatewayClient = Depends(get_gateway_client)):
    """Liveness probe with upstream and pool summary. No authentication."""
    return {
        "status": "ok",
        "version": __version__,
        "upstream": {"openai": client.config.upstream_openai_base_url},
        "keys": client.get_stats(),
    }


@router.get("/status", response_model=PoolStats)
async def pool_status(
    client: GatewayClient = Depends(get_gateway_client),
    _=Depends(verify_api_key),
):
    return client.get_stats()


@router.get("/stats")
async def stats(
    request: Request,
    client: GatewayClient = Depends(get_gateway_client),
    _=Depends(verify_api_key),
):
    return {"uptime": get_uptime(request), "keys": client.get_stats()}


@router.get("/admin/status")
async def admin_status(
    client: GatewayClient = Depends(get_gateway_client),
    _=Depends(verify_api_key),
):
    """Per-key status with masked identifiers."""
    return {"keys": client.get_detailed_status()}


@router.post("/admin/reload", response_model=AdminActionResponse)
async def admin_reload(
    client: GatewayClient = Depends(get_gateway_client),
    _=Depends(verify_api_key),
):
    """Re-read the key files now instead of waiting for the reload interval."""
    pool_stats = await client.reload_keys()
    logger.info(f"Key pool reloaded via admin endpoint: {pool_stats['total']} key(s).")
    return {
        "success": True,
        "message": f"Reloaded {pool_stats['total']} key(s)",
        "stats": pool_stats,
    }


@router.post("/admin/reset", response_model=AdminActionResponse)
async def admin_reset(
    client: GatewayClient = Depends(get_gateway_client),
    _=Depends(verify_api_key),
):
    """Clear every key's failure count and cooldown."""
    pool_stats = client.reset_keys()
    return {
        "success": True,
        "message": "Reset status of all keys",
        "stats": pool_stats,
    }
