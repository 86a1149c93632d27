# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/gateway_rotator/__init__.py

from .client import GatewayClient
from .config import GatewayConfig
from .credential_store import CredentialRecord, CredentialStore
from .errors import (
    NoAvailableKeysError,
    UpstreamError,
    UpstreamStreamError,
    is_rate_limit_error,
    mask_credential,
)
from .invoker import LiteLLMGatewayInvoker, ModelInvoker
from .key_sources import KeyFileSource, LoadedKeys, TieredKeySource, parse_key_lines
from .model_identity import (
    ProviderIdentity,
    bare_model_id,
    detect_provider,
    ensure_gateway_model_id,
)
from .stream_reassembler import (
    ReasoningDelta,
    StreamDone,
    StreamReassembler,
    TextDelta,
)
from .translation import translate
from .types import (
    ChatCompletionRequest,
    ModelCall,
    TextCompletionRequest,
    TextResult,
    Usage,
)

__version__ = "1.1.0"

__all__ = [
    "GatewayClient",
    "GatewayConfig",
    "CredentialRecord",
    "CredentialStore",
    "NoAvailableKeysError",
    "UpstreamError",
    "UpstreamStreamError",
    "is_rate_limit_error",
    "mask_credential",
    "LiteLLMGatewayInvoker",
    "ModelInvoker",
    "KeyFileSource",
    "LoadedKeys",
    "TieredKeySource",
    "parse_key_lines",
    "ProviderIdentity",
    "bare_model_id",
    "detect_provider",
    "ensure_gateway_model_id",
    "ReasoningDelta",
    "StreamDone",
    "StreamReassembler",
    "TextDelta",
    "translate",
    "ChatCompletionRequest",
    "ModelCall",
    "TextCompletionRequest",
    "TextResult",
    "Usage",
]
