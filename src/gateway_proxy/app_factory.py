# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
FastAPI application factory.

This module provides the create_app() function for creating and configuring
the FastAPI application instance.
"""

import logging
import os
import time
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway_rotator import GatewayConfig, __version__
from gateway_proxy.startup import lifespan

logger = logging.getLogger(__name__)


def create_app(config: Optional[GatewayConfig] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Optional configuration; read from the environment at startup
            when omitted

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="AI Gateway Key Proxy",
        description="OpenAI-compatible proxy rotating a pool of AI gateway keys",
        version=__version__,
        lifespan=lambda app: lifespan(app, config),
    )

    _configure_cors(app)
    _configure_request_logging(app)
    _register_exception_handlers(app)
    _register_routes(app)

    return app


def _configure_cors(app: FastAPI) -> None:
    """Configure CORS middleware from environment variables."""
    # PROXY_CORS_ORIGINS: comma-separated list or "*" for all
    _cors_origins_env = os.getenv("PROXY_CORS_ORIGINS", "*")
    _cors_origins = [origin.strip() for origin in _cors_origins_env.split(",") if origin.strip()]
    _cors_credentials = os.getenv("PROXY_CORS_CREDENTIALS", "false").lower() == "true"

    if _cors_credentials and _cors_origins == ["*"]:
        logger.warning(
            "CORS allow_credentials is enabled with wildcard origins. "
            "Browsers reject this combination. Set explicit PROXY_CORS_ORIGINS."
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins,
        allow_credentials=_cors_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _configure_request_logging(app: FastAPI) -> None:
    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} - {response.status_code} - "
            f"{duration_ms:.0f}ms",
        )
        return response


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        _: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        detail = exc.detail
        if not isinstance(detail, dict):
            detail = {"message": str(detail), "type": "api_error", "code": exc.status_code}
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "message": str(exc.errors()[0].get("msg")) if exc.errors() else "Invalid request",
                    "type": "invalid_request_error",
                    "code": 400,
                }
            },
        )


def _register_routes(app: FastAPI) -> None:
    """Register all API routes."""
    from gateway_proxy.routes import admin, openai

    # OpenAI-compatible routes
    app.include_router(openai.router)

    # Health, status and admin routes
    app.include_router(admin.router)
