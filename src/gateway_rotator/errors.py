# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Exceptions and error classification for the gateway rotator.

Classification happens once, at the orchestrator boundary, right after the
upstream call returns or raises. Nothing in here retries.
"""

from typing import Any, Optional

from .config.defaults import RATE_LIMIT_MARKERS


class NoAvailableKeysError(Exception):
    """Raised when the credential pool is empty."""

    def __init__(self, message: str = "No available API keys"):
        super().__init__(message)


class UpstreamError(Exception):
    """A failed upstream call, carrying the HTTP-equivalent status if known."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        rate_limited: bool = False,
    ):
        self.status_code = status_code
        self.rate_limited = rate_limited
        super().__init__(message)


class UpstreamStreamError(Exception):
    """Terminal error event observed inside an upstream event stream."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def mask_credential(secret: Optional[str]) -> str:
    """Mask a credential for logs: first 10 and last 4 characters only."""
    if not secret or len(secret) <= 14:
        return "****"
    return f"{secret[:10]}...{secret[-4:]}"


def get_status_code(error: BaseException) -> Optional[int]:
    """Best-effort HTTP status extraction from arbitrary exception types."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status

    response: Any = getattr(error, "response", None)
    if response is not None:
        status = getattr(response, "status_code", None)
        if isinstance(status, int):
            return status

    return None


def is_rate_limit_error(error: BaseException) -> bool:
    """
    Decide whether an upstream failure should cool the credential down.

    True for status 429, or when the message contains any of the rate/quota
    markers (case-insensitive). Everything else is a transient upstream error
    that leaves credential health untouched.
    """
    if getattr(error, "rate_limited", False):
        return True
    if get_status_code(error) == 429:
        return True

    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)
