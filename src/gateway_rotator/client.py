# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
GatewayClient: request orchestration on top of the credential pool.

Per request:
    select credential -> normalize model id -> detect provider ->
    translate reasoning controls -> invoke -> classify outcome

Classification and cooldown decisions are made exactly once, here, right
after the invoker returns or raises. Nothing is retried with another
credential; retrying is left to the caller.
"""

import logging
from typing import (
    Any,
    AsyncGenerator,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Union,
)
from urllib.parse import quote

import httpx

from .config.settings import GatewayConfig
from .credential_store import CredentialStore
from .errors import (
    NoAvailableKeysError,
    UpstreamError,
    get_status_code,
    is_rate_limit_error,
    mask_credential,
)
from .invoker import LiteLLMGatewayInvoker, ModelInvoker
from .model_catalog import (
    ModelListCache,
    builtin_model_cards,
    filter_by_provider,
    find_builtin_model,
)
from .model_identity import bare_model_id, detect_provider, ensure_gateway_model_id
from .response_format import (
    SSE_DONE,
    chat_chunk,
    chat_completion_response,
    new_completion_id,
    sse_frame,
    text_chunk,
    text_completion_response,
)
from .stream_reassembler import ReasoningDelta, StreamDone, StreamReassembler, TextDelta
from .translation import convert_messages, translate
from .types import (
    ChatCompletionRequest,
    ModelCall,
    TextCompletionRequest,
    TextResult,
)

lib_logger = logging.getLogger("gateway_rotator")

DisconnectCheck = Callable[[], Awaitable[bool]]
CompletionResult = Union[Dict[str, Any], AsyncGenerator[str, None]]


async def _result_as_events(result: TextResult) -> AsyncIterator[Dict[str, Any]]:
    """Replay a non-streaming result as upstream events."""
    if result.reasoning:
        yield {"type": "reasoning-delta", "text": result.reasoning}
    if result.text:
        yield {"type": "text-delta", "text": result.text}
    usage = result.usage
    yield {
        "type": "finish",
        "usage": {
            "promptTokens": usage.prompt_tokens if usage else 0,
            "completionTokens": usage.completion_tokens if usage else 0,
            "totalTokens": usage.total_tokens if usage else 0,
        },
    }


async def _collect_events(events: AsyncIterator[Any]) -> TextResult:
    """Drain an event stream into a single TextResult."""
    text_parts: List[str] = []
    reasoning_parts: List[str] = []
    result = TextResult()
    async for event in StreamReassembler().reassemble(events):
        if isinstance(event, TextDelta):
            text_parts.append(event.text)
        elif isinstance(event, ReasoningDelta):
            reasoning_parts.append(event.text)
        elif isinstance(event, StreamDone):
            result.usage = event.usage
    result.text = "".join(text_parts)
    result.reasoning = "".join(reasoning_parts) or None
    return result


async def _close_stream(events: Any) -> None:
    aclose = getattr(events, "aclose", None)
    if aclose is not None:
        await aclose()


class GatewayClient:
    """Orchestrates completion requests against the gateway with key rotation."""

    def __init__(
        self,
        config: GatewayConfig,
        store: Optional[CredentialStore] = None,
        invoker: Optional[ModelInvoker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        model_cache: Optional[ModelListCache] = None,
    ):
        self.config = config
        self.store = store if store is not None else CredentialStore.from_config(config)
        self.invoker = invoker or LiteLLMGatewayInvoker(
            api_base=config.upstream_openai_base_url,
            timeout=config.global_timeout,
        )
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=30.0)
        self.model_cache = model_cache or ModelListCache(config.model_list_cache_ttl)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client and self.http_client:
            await self.http_client.aclose()

    # =========================================================================
    # COMPLETIONS
    # =========================================================================

    async def _acquire_credential(self) -> str:
        secret = await self.store.aselect_credential()
        if secret is None:
            raise NoAvailableKeysError()
        return secret

    def _classify_failure(self, secret: str, error: Exception) -> UpstreamError:
        """Cool the credential down on rate/quota errors and wrap the failure."""
        rate_limited = is_rate_limit_error(error)
        if rate_limited:
            self.store.mark_failure(secret)
        lib_logger.error(
            f"Upstream call with key {mask_credential(secret)} failed"
            f"{' (rate limited)' if rate_limited else ''}: {error}"
        )
        message = str(error) or type(error).__name__
        return UpstreamError(
            message, status_code=get_status_code(error), rate_limited=rate_limited
        )

    async def _invoke(self, request: ChatCompletionRequest, stream: bool):
        # Select before anything else so pool exhaustion has no side effects
        secret = await self._acquire_credential()

        model_id = ensure_gateway_model_id(request.model)
        provider = detect_provider(model_id)
        options = translate(request, provider, bare_model_id(model_id))

        call = ModelCall(
            provider=provider,
            model_id=model_id,
            messages=convert_messages(request.messages),
            generation_controls=request.generation_controls(),
            provider_options=options.to_wire() if options is not None else None,
            credential=secret,
            stream=stream,
        )

        try:
            result = await self.invoker.invoke(call)
        except Exception as e:
            raise self._classify_failure(secret, e) from e

        return secret, model_id, result

    async def acompletion(
        self,
        request: ChatCompletionRequest,
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> CompletionResult:
        """
        Run a chat completion.

        Returns an OpenAI `chat.completion` dict, or for `stream=True` an async
        generator of SSE frames terminated by `data: [DONE]`.

        Raises:
            NoAvailableKeysError: the pool is empty.
            UpstreamError: the upstream call failed before any output.
        """
        secret, model_id, result = await self._invoke(request, request.stream)

        if request.stream:
            events = _result_as_events(result) if isinstance(result, TextResult) else result
            return self._relay_chat_stream(secret, model_id, events, is_disconnected)

        if not isinstance(result, TextResult):
            try:
                result = await _collect_events(result)
            except Exception as e:
                raise self._classify_failure(secret, e) from e

        self.store.mark_success(secret)
        return chat_completion_response(model_id, result)

    async def atext_completion(
        self,
        request: TextCompletionRequest,
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> CompletionResult:
        """Legacy text completion; the prompt is sent as a single user message."""
        secret, model_id, result = await self._invoke(
            request.to_chat_request(), request.stream
        )

        if request.stream:
            events = _result_as_events(result) if isinstance(result, TextResult) else result
            return self._relay_text_stream(secret, model_id, events, is_disconnected)

        if not isinstance(result, TextResult):
            try:
                result = await _collect_events(result)
            except Exception as e:
                raise self._classify_failure(secret, e) from e

        self.store.mark_success(secret)
        return text_completion_response(model_id, result)

    # =========================================================================
    # STREAM RELAY
    # =========================================================================

    async def _relay_chat_stream(
        self,
        secret: str,
        model_id: str,
        events: AsyncIterator[Any],
        is_disconnected: Optional[DisconnectCheck],
    ) -> AsyncGenerator[str, None]:
        """
        Forward reassembled events as chat.completion.chunk frames.

        Frame order: role, content deltas, finish(stop), [DONE]. A mid-stream
        error replaces the finish frame with an error-content frame. A client
        disconnect ends the relay without touching credential health.
        """
        completion_id = new_completion_id("chatcmpl")
        expose_reasoning = self.config.expose_reasoning_content
        reassembler = StreamReassembler()
        usage = None

        try:
            yield sse_frame(chat_chunk(completion_id, model_id, {"role": "assistant"}))

            try:
                async for event in events:
                    for output in reassembler.process_event(event):
                        if isinstance(output, StreamDone):
                            usage = output.usage
                            continue
                        if isinstance(output, ReasoningDelta) and not expose_reasoning:
                            continue
                        if is_disconnected is not None and await is_disconnected():
                            lib_logger.warning(
                                f"Client disconnected; stopping stream for {model_id}."
                            )
                            return
                        if isinstance(output, TextDelta):
                            delta = {"content": output.text}
                        else:
                            delta = {"reasoning_content": output.text}
                        yield sse_frame(chat_chunk(completion_id, model_id, delta))
            except Exception as e:
                error = self._classify_failure(secret, e)
                yield sse_frame(
                    chat_chunk(
                        completion_id,
                        model_id,
                        {"content": f"\n\n[Error: {error}]"},
                        finish_reason="error",
                    )
                )
                yield SSE_DONE
                return

            # Stream closure without a finish event still counts as completion
            self.store.mark_success(secret)
            yield sse_frame(
                chat_chunk(completion_id, model_id, {}, finish_reason="stop", usage=usage)
            )
            yield SSE_DONE
        finally:
            await _close_stream(events)

    async def _relay_text_stream(
        self,
        secret: str,
        model_id: str,
        events: AsyncIterator[Any],
        is_disconnected: Optional[DisconnectCheck],
    ) -> AsyncGenerator[str, None]:
        completion_id = new_completion_id("cmpl")
        reassembler = StreamReassembler()

        try:
            try:
                async for event in events:
                    for output in reassembler.process_event(event):
                        if not isinstance(output, TextDelta):
                            continue
                        if is_disconnected is not None and await is_disconnected():
                            lib_logger.warning(
                                f"Client disconnected; stopping stream for {model_id}."
                            )
                            return
                        yield sse_frame(text_chunk(completion_id, model_id, output.text))
            except Exception as e:
                error = self._classify_failure(secret, e)
                yield sse_frame(
                    text_chunk(
                        completion_id,
                        model_id,
                        f"\n\n[Error: {error}]",
                        finish_reason="error",
                    )
                )
                yield SSE_DONE
                return

            self.store.mark_success(secret)
            yield sse_frame(text_chunk(completion_id, model_id, "", finish_reason="stop"))
            yield SSE_DONE
        finally:
            await _close_stream(events)

    # =========================================================================
    # MODELS
    # =========================================================================

    async def _fetch_upstream(self, path: str) -> Optional[Any]:
        """
        GET `path` under the OpenAI-compatible base with a pooled credential.

        Returns the decoded JSON body, or None on any failure. A 429 cools the
        credential down.
        """
        secret = await self.store.aselect_credential()
        if secret is None:
            return None

        url = f"{self.config.upstream_openai_base_url}{path}"
        try:
            response = await self.http_client.get(
                url, headers={"Authorization": f"Bearer {secret}"}
            )
        except httpx.HTTPError as e:
            lib_logger.warning(f"Failed to fetch {path} from upstream: {e}")
            return None

        if response.status_code == 429:
            self.store.mark_failure(secret)
            return None
        if response.status_code != 200:
            lib_logger.warning(
                f"Upstream returned {response.status_code} for {path}; using built-in list."
            )
            return None

        try:
            return response.json()
        except ValueError as e:
            lib_logger.warning(f"Invalid JSON from upstream for {path}: {e}")
            return None

    async def list_models(
        self, refresh: bool = False, provider: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Model cards from the upstream listing (cached), else the built-in list.
        """
        if refresh:
            self.model_cache.invalidate()
        models = self.model_cache.get()

        if models is None:
            payload = await self._fetch_upstream("/models")
            if isinstance(payload, dict):
                models = payload.get("data") or []
                self.model_cache.set(models)
                lib_logger.info(f"Fetched {len(models)} model(s) from upstream.")
            else:
                models = builtin_model_cards()

        return filter_by_provider(models, provider)

    async def get_model(self, model_id: str) -> Optional[Dict[str, Any]]:
        """Cached entry, then upstream lookup, then built-in list."""
        cached = self.model_cache.find(model_id)
        if cached is not None:
            return cached

        payload = await self._fetch_upstream(f"/models/{quote(model_id, safe='')}")
        if isinstance(payload, dict):
            return payload

        return find_builtin_model(model_id)

    # =========================================================================
    # ADMIN
    # =========================================================================

    async def reload_keys(self) -> Dict[str, int]:
        await self.store.areload()
        return self.store.get_stats()

    def reset_keys(self) -> Dict[str, int]:
        self.store.reset_all()
        return self.store.get_stats()

    def get_stats(self) -> Dict[str, int]:
        return self.store.get_stats()

    def get_detailed_status(self) -> Dict[str, Any]:
        return self.store.get_detailed_status()
