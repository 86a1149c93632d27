# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Application startup and shutdown logic.

This module contains the lifespan context manager that builds the
GatewayClient (and its credential pool) and stores it on the app state.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from gateway_rotator import GatewayClient, GatewayConfig

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI, config: Optional[GatewayConfig] = None):
    """
    Manage the GatewayClient's lifecycle with the app's lifespan.

    Args:
        app: The FastAPI application instance
        config: Optional pre-built configuration; read from the environment
            when omitted
    """
    config = config or GatewayConfig.from_env(os.environ)

    client = GatewayClient(config)
    app.state.gateway_client = client
    app.state.started_at = time.time()

    stats = client.get_stats()
    logger.info(
        f"GatewayClient initialized: {stats['total']} key(s), "
        f"upstream {config.upstream_openai_base_url}"
    )

    # Warn if no credentials
    if stats["total"] == 0:
        logger.warning("=" * 70)
        logger.warning("⚠️  NO GATEWAY KEYS LOADED")
        logger.warning("The proxy is running but cannot serve any LLM requests.")
        logger.warning(
            f"Add keys (one per line) to {config.keys_file} or a tier file in "
            f"{config.keys_file.parent}, then POST /admin/reload."
        )
        logger.warning("=" * 70)

    if not config.auth_key:
        logger.warning(
            "AUTH_KEY is not set; all endpoints are reachable without authentication."
        )

    yield

    # Shutdown
    await client.close()
    logger.info("GatewayClient closed.")
