import json
from pathlib import Path
from typing import List, Optional

import httpx
import pytest
import respx

from gateway_rotator import (
    ChatCompletionRequest,
    GatewayClient,
    GatewayConfig,
    NoAvailableKeysError,
    TextCompletionRequest,
    TextResult,
    UpstreamError,
    Usage,
)
from gateway_rotator.model_catalog import BUILTIN_MODELS
from gateway_rotator.types import ModelCall


KEY_A = "vck_aaaaaaaaaaaaaaaaaaaa1111"
KEY_B = "vck_bbbbbbbbbbbbbbbbbbbb2222"
BASE_URL = "https://gateway.test/v1"


class RateLimited(Exception):
    status_code = 429


class FakeInvoker:
    """Records calls and replays a scripted result or error."""

    def __init__(self, result=None, error: Optional[Exception] = None, events=None):
        self.result = result
        self.error = error
        self.events = events
        self.calls: List[ModelCall] = []

    async def invoke(self, call: ModelCall):
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        if self.events is not None:
            return self._stream(self.events)
        return self.result

    async def _stream(self, events):
        for event in events:
            if isinstance(event, Exception):
                raise event
            yield event


@pytest.fixture
def config(tmp_path: Path) -> GatewayConfig:
    keys_dir = tmp_path / "keys"
    keys_dir.mkdir()
    (keys_dir / "keys.txt").write_text(f"{KEY_A}\n{KEY_B}\n", encoding="utf-8")
    return GatewayConfig.from_env(
        {
            "KEYS_FILE": str(keys_dir / "keys.txt"),
            "UPSTREAM_OPENAI_BASE_URL": BASE_URL,
        }
    )


@pytest.fixture
def empty_config(tmp_path: Path) -> GatewayConfig:
    return GatewayConfig.from_env({"KEYS_FILE": str(tmp_path / "none" / "keys.txt")})


def _chat(**fields) -> ChatCompletionRequest:
    body = {"model": "claude-sonnet-4", "messages": [{"role": "user", "content": "hi"}]}
    body.update(fields)
    return ChatCompletionRequest.model_validate(body)


def _parse_frames(frames: List[str]):
    payloads = []
    for frame in frames:
        assert frame.startswith("data: ") and frame.endswith("\n\n")
        content = frame[len("data: "):].strip()
        payloads.append(content if content == "[DONE]" else json.loads(content))
    return payloads


async def _drain(stream) -> List[str]:
    return [frame async for frame in stream]


# --- non-streaming ------------------------------------------------------------


@pytest.mark.asyncio
async def test_non_stream_completion_builds_call_and_response(config):
    invoker = FakeInvoker(
        result=TextResult(text="hello", reasoning="because", usage=Usage(3, 2, 5))
    )
    client = GatewayClient(config, invoker=invoker)

    response = await client.acompletion(
        _chat(reasoning_effort="high", max_tokens=10000, temperature=float("nan"))
    )

    call = invoker.calls[0]
    assert call.model_id == "anthropic/claude-sonnet-4"
    assert call.credential == KEY_A
    assert call.generation_controls == {"max_tokens": 10000}
    assert call.provider_options == {
        "anthropic": {"thinking": {"type": "enabled", "budgetTokens": 8000}}
    }

    assert response["object"] == "chat.completion"
    assert response["id"].startswith("chatcmpl-")
    assert response["model"] == "anthropic/claude-sonnet-4"
    message = response["choices"][0]["message"]
    assert message == {"role": "assistant", "content": "hello", "reasoning_content": "because"}
    assert response["choices"][0]["finish_reason"] == "stop"
    assert response["usage"] == {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5}
    await client.close()


@pytest.mark.asyncio
async def test_rate_limit_error_cools_key_down(config):
    invoker = FakeInvoker(error=RateLimited("Too Many Requests"))
    client = GatewayClient(config, invoker=invoker)

    with pytest.raises(UpstreamError) as excinfo:
        await client.acompletion(_chat())

    assert excinfo.value.rate_limited is True
    assert excinfo.value.status_code == 429
    record = client.store.get_record(KEY_A)
    assert record.fail_count == 1
    assert record.cooldown_until is not None
    await client.close()


@pytest.mark.asyncio
async def test_quota_message_cools_key_down(config):
    client = GatewayClient(config, invoker=FakeInvoker(error=Exception("Quota exhausted")))

    with pytest.raises(UpstreamError):
        await client.acompletion(_chat())

    assert client.store.get_stats()["in_cooldown"] == 1
    await client.close()


@pytest.mark.asyncio
async def test_transient_error_leaves_key_healthy(config):
    client = GatewayClient(config, invoker=FakeInvoker(error=Exception("connection reset")))

    with pytest.raises(UpstreamError) as excinfo:
        await client.acompletion(_chat())

    assert excinfo.value.rate_limited is False
    assert client.store.get_stats()["in_cooldown"] == 0
    await client.close()


@pytest.mark.asyncio
async def test_empty_pool_raises_before_invoking(empty_config):
    invoker = FakeInvoker(result=TextResult(text="unused"))
    client = GatewayClient(empty_config, invoker=invoker)

    with pytest.raises(NoAvailableKeysError):
        await client.acompletion(_chat())

    assert invoker.calls == []
    await client.close()


@pytest.mark.asyncio
async def test_legacy_text_completion(config):
    invoker = FakeInvoker(result=TextResult(text="done", usage=Usage(1, 1, 2)))
    client = GatewayClient(config, invoker=invoker)

    response = await client.atext_completion(
        TextCompletionRequest(model="gpt-4o", prompt="Say done")
    )

    assert invoker.calls[0].messages == [{"role": "user", "content": "Say done"}]
    assert invoker.calls[0].model_id == "openai/gpt-4o"
    assert response["object"] == "text_completion"
    assert response["id"].startswith("cmpl-")
    assert response["choices"][0]["text"] == "done"
    await client.close()


# --- streaming ----------------------------------------------------------------


@pytest.mark.asyncio
async def test_stream_frame_order_and_success(config):
    invoker = FakeInvoker(
        events=[
            {"type": "reasoning-delta", "text": "hidden"},
            {"type": "text-delta", "text": "Hel"},
            {"type": "text-delta", "text": ""},
            {"type": "text-delta", "text": "lo"},
            {"type": "finish", "usage": {"promptTokens": 3, "completionTokens": 2}},
        ]
    )
    client = GatewayClient(config, invoker=invoker)

    stream = await client.acompletion(_chat(stream=True))
    payloads = _parse_frames(await _drain(stream))

    assert payloads[0]["choices"][0]["delta"] == {"role": "assistant"}
    contents = [p["choices"][0]["delta"].get("content") for p in payloads[1:-2]]
    assert contents == ["Hel", "lo"]
    final = payloads[-2]
    assert final["choices"][0]["finish_reason"] == "stop"
    assert final["usage"]["total_tokens"] == 5
    assert payloads[-1] == "[DONE]"
    assert len({p["id"] for p in payloads[:-1]}) == 1
    assert invoker.calls[0].stream is True
    await client.close()


@pytest.mark.asyncio
async def test_stream_exposes_reasoning_when_enabled(config):
    config.expose_reasoning_content = True
    invoker = FakeInvoker(
        events=[
            {"type": "reasoning-delta", "text": "think"},
            {"type": "text-delta", "text": "answer"},
        ]
    )
    client = GatewayClient(config, invoker=invoker)

    payloads = _parse_frames(await _drain(await client.acompletion(_chat(stream=True))))

    assert payloads[1]["choices"][0]["delta"] == {"reasoning_content": "think"}
    assert payloads[2]["choices"][0]["delta"] == {"content": "answer"}
    # No finish event: closure is treated as completion
    assert payloads[3]["choices"][0]["finish_reason"] == "stop"
    assert "usage" not in payloads[3]
    await client.close()


@pytest.mark.asyncio
async def test_stream_error_emits_error_frame_and_cools_rate_limited_key(config):
    invoker = FakeInvoker(
        events=[
            {"type": "text-delta", "text": "partial"},
            {"type": "error", "error": {"message": "rate limit hit"}},
        ]
    )
    client = GatewayClient(config, invoker=invoker)

    payloads = _parse_frames(await _drain(await client.acompletion(_chat(stream=True))))

    assert payloads[1]["choices"][0]["delta"] == {"content": "partial"}
    error_frame = payloads[2]
    assert error_frame["choices"][0]["finish_reason"] == "error"
    assert error_frame["choices"][0]["delta"]["content"] == "\n\n[Error: rate limit hit]"
    assert payloads[3] == "[DONE]"
    assert len(payloads) == 4
    assert client.store.get_record(KEY_A).fail_count == 1
    await client.close()


@pytest.mark.asyncio
async def test_stream_transport_error_does_not_cool_key(config):
    invoker = FakeInvoker(events=[{"type": "text-delta", "text": "x"}, RuntimeError("socket closed")])
    client = GatewayClient(config, invoker=invoker)

    payloads = _parse_frames(await _drain(await client.acompletion(_chat(stream=True))))

    assert payloads[-2]["choices"][0]["finish_reason"] == "error"
    assert payloads[-1] == "[DONE]"
    assert client.store.get_record(KEY_A).fail_count == 0
    await client.close()


@pytest.mark.asyncio
async def test_client_disconnect_stops_without_marking(config):
    invoker = FakeInvoker(
        events=[
            {"type": "text-delta", "text": "one"},
            {"type": "text-delta", "text": "two"},
            {"type": "finish"},
        ]
    )
    client = GatewayClient(config, invoker=invoker)
    record_a = client.store.get_record(KEY_A)
    record_a.fail_count = 3

    checks = iter([False, True])

    async def is_disconnected() -> bool:
        return next(checks, True)

    stream = await client.acompletion(_chat(stream=True), is_disconnected=is_disconnected)
    payloads = _parse_frames(await _drain(stream))

    # role frame + first delta only, no finish and no terminator
    assert len(payloads) == 2
    assert payloads[1]["choices"][0]["delta"] == {"content": "one"}
    # Neither mark_success nor mark_failure touched the key
    assert record_a.fail_count == 3
    assert record_a.cooldown_until is None
    await client.close()


@pytest.mark.asyncio
async def test_legacy_text_stream_frames(config):
    invoker = FakeInvoker(events=[{"type": "text-delta", "text": "abc"}, {"type": "finish"}])
    client = GatewayClient(config, invoker=invoker)

    stream = await client.atext_completion(
        TextCompletionRequest(model="gpt-4o", prompt="x", stream=True)
    )
    payloads = _parse_frames(await _drain(stream))

    assert payloads[0]["object"] == "text_completion"
    assert payloads[0]["choices"][0]["text"] == "abc"
    assert payloads[1]["choices"][0]["finish_reason"] == "stop"
    assert payloads[2] == "[DONE]"
    await client.close()


# --- models -------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_models_fetches_and_caches(config):
    upstream_models = {
        "object": "list",
        "data": [
            {"id": "openai/gpt-4o", "object": "model", "owned_by": "openai"},
            {"id": "anthropic/claude-sonnet-4", "object": "model", "owned_by": "anthropic"},
        ],
    }

    with respx.mock(assert_all_called=True) as mock_router:
        route = mock_router.get(f"{BASE_URL}/models").mock(
            return_value=httpx.Response(200, json=upstream_models)
        )

        async with httpx.AsyncClient() as http_client:
            client = GatewayClient(config, invoker=FakeInvoker(), http_client=http_client)
            first = await client.list_models()
            filtered = await client.list_models(provider="Anthropic")

    assert [m["id"] for m in first] == ["openai/gpt-4o", "anthropic/claude-sonnet-4"]
    assert [m["id"] for m in filtered] == ["anthropic/claude-sonnet-4"]
    assert route.call_count == 1
    assert route.calls[0].request.headers["authorization"] == f"Bearer {KEY_A}"


@pytest.mark.asyncio
async def test_list_models_refresh_drops_cached_listing(config):
    with respx.mock(assert_all_called=True) as mock_router:
        route = mock_router.get(f"{BASE_URL}/models").mock(
            side_effect=[
                httpx.Response(200, json={"data": [{"id": "openai/gpt-4o"}]}),
                httpx.Response(503),
            ]
        )

        async with httpx.AsyncClient() as http_client:
            client = GatewayClient(config, invoker=FakeInvoker(), http_client=http_client)
            await client.list_models()
            refreshed = await client.list_models(refresh=True)

    assert route.call_count == 2
    assert len(refreshed) == len(BUILTIN_MODELS)
    assert client.model_cache.get() is None


@pytest.mark.asyncio
async def test_list_models_429_cools_key_and_falls_back(config):
    with respx.mock(assert_all_called=True) as mock_router:
        mock_router.get(f"{BASE_URL}/models").mock(return_value=httpx.Response(429))

        async with httpx.AsyncClient() as http_client:
            client = GatewayClient(config, invoker=FakeInvoker(), http_client=http_client)
            models = await client.list_models(provider="xai")

    assert [m["id"] for m in models] == ["xai/grok-3", "xai/grok-3-fast", "xai/grok-2"]
    assert client.store.get_record(KEY_A).fail_count == 1


@pytest.mark.asyncio
async def test_get_model_falls_back_to_builtin_suffix_match(config):
    with respx.mock(assert_all_called=True) as mock_router:
        mock_router.get(url__startswith=f"{BASE_URL}/models/").mock(
            side_effect=httpx.ConnectError("offline")
        )

        async with httpx.AsyncClient() as http_client:
            client = GatewayClient(config, invoker=FakeInvoker(), http_client=http_client)
            found = await client.get_model("gpt-4o-mini")
            missing = await client.get_model("no-such-model")

    assert found == {"id": "openai/gpt-4o-mini", "object": "model", "owned_by": "openai"}
    assert missing is None


@pytest.mark.asyncio
async def test_admin_passthroughs(config):
    client = GatewayClient(config, invoker=FakeInvoker())
    client.store.mark_failure(KEY_A)

    assert client.get_stats() == {"total": 2, "available": 1, "in_cooldown": 1}
    assert client.reset_keys() == {"total": 2, "available": 2, "in_cooldown": 0}
    assert (await client.reload_keys())["total"] == 2
    assert len(client.get_detailed_status()["keys"]) == 2
    await client.close()
