import json
from pathlib import Path
from typing import List

import pytest
from fastapi.testclient import TestClient

from gateway_rotator import GatewayClient, GatewayConfig, TextResult, Usage
from gateway_rotator.types import ModelCall

from gateway_proxy.app_factory import create_app


KEY_A = "vck_aaaaaaaaaaaaaaaaaaaa1111"
AUTH = {"Authorization": "Bearer proxy-secret"}


class ScriptedInvoker:
    def __init__(self, result=None, error=None, events=None):
        self.result = result
        self.error = error
        self.events = events
        self.calls: List[ModelCall] = []

    async def invoke(self, call: ModelCall):
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        if self.events is not None:
            return self._stream()
        return self.result

    async def _stream(self):
        for event in self.events:
            yield event


def _make_config(tmp_path: Path, keys: List[str]) -> GatewayConfig:
    keys_file = tmp_path / "keys.txt"
    keys_file.write_text("\n".join(keys) + "\n", encoding="utf-8")
    return GatewayConfig.from_env(
        {
            "KEYS_FILE": str(keys_file),
            "AUTH_KEY": "proxy-secret",
            "UPSTREAM_OPENAI_BASE_URL": "http://127.0.0.1:9/v1",
        }
    )


def _client(config: GatewayConfig, invoker: ScriptedInvoker) -> TestClient:
    app = create_app(config)
    app.state.gateway_client = GatewayClient(config, invoker=invoker)
    return TestClient(app)


@pytest.fixture
def invoker() -> ScriptedInvoker:
    return ScriptedInvoker(result=TextResult(text="pong", usage=Usage(2, 1, 3)))


@pytest.fixture
def client(tmp_path: Path, invoker: ScriptedInvoker) -> TestClient:
    return _client(_make_config(tmp_path, [KEY_A]), invoker)


def test_health_is_public(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["keys"] == {"total": 1, "available": 1, "in_cooldown": 0}


def test_auth_is_required(client: TestClient):
    response = client.get("/status")

    assert response.status_code == 401
    assert response.json()["error"]["type"] == "authentication_error"

    wrong = client.get("/status", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 401


def test_chat_completion_non_stream(client: TestClient, invoker: ScriptedInvoker):
    response = client.post(
        "/v1/chat/completions",
        headers=AUTH,
        json={"model": "gpt-4o", "messages": [{"role": "user", "content": "ping"}]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["model"] == "openai/gpt-4o"
    assert body["choices"][0]["message"]["content"] == "pong"
    assert body["usage"]["total_tokens"] == 3
    assert invoker.calls[0].credential == KEY_A


@pytest.mark.parametrize(
    "payload, fragment",
    [
        ({"messages": [{"role": "user", "content": "x"}]}, "model"),
        ({"model": "gpt-4o"}, "messages"),
        ({"model": "gpt-4o", "messages": "not-a-list"}, "messages"),
    ],
)
def test_malformed_request_is_rejected_before_selection(
    client: TestClient, invoker: ScriptedInvoker, payload, fragment
):
    response = client.post("/v1/chat/completions", headers=AUTH, json=payload)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["type"] == "invalid_request_error"
    assert fragment in error["message"]
    assert invoker.calls == []
    assert client.app.state.gateway_client.store.cursor == 0


def test_invalid_json_body(client: TestClient):
    response = client.post(
        "/v1/chat/completions",
        headers={**AUTH, "Content-Type": "application/json"},
        content=b"{not json",
    )

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "invalid_request_error"


def test_no_keys_returns_503(tmp_path: Path, invoker: ScriptedInvoker):
    client = _client(_make_config(tmp_path, ["# no keys yet"]), invoker)

    response = client.post(
        "/v1/chat/completions",
        headers=AUTH,
        json={"model": "gpt-4o", "messages": [{"role": "user", "content": "x"}]},
    )

    assert response.status_code == 503
    assert response.json()["error"]["message"] == "No available API keys"
    assert response.json()["error"]["type"] == "service_error"


def test_upstream_failure_maps_to_api_error(tmp_path: Path):
    invoker = ScriptedInvoker(error=RuntimeError("upstream exploded"))
    client = _client(_make_config(tmp_path, [KEY_A]), invoker)

    response = client.post(
        "/v1/chat/completions",
        headers=AUTH,
        json={"model": "gpt-4o", "messages": [{"role": "user", "content": "x"}]},
    )

    assert response.status_code == 500
    assert response.json()["error"] == {
        "message": "upstream exploded",
        "type": "api_error",
        "code": 500,
    }


def test_rate_limited_failure_returns_429_and_cools_key(tmp_path: Path):
    invoker = ScriptedInvoker(error=RuntimeError("Rate limit reached"))
    client = _client(_make_config(tmp_path, [KEY_A]), invoker)

    response = client.post(
        "/v1/chat/completions",
        headers=AUTH,
        json={"model": "gpt-4o", "messages": [{"role": "user", "content": "x"}]},
    )

    assert response.status_code == 429
    assert client.get("/status", headers=AUTH).json()["in_cooldown"] == 1


def test_chat_completion_stream(tmp_path: Path):
    invoker = ScriptedInvoker(
        events=[
            {"type": "text-delta", "text": "po"},
            {"type": "text-delta", "text": "ng"},
            {"type": "finish", "usage": {"promptTokens": 1, "completionTokens": 1}},
        ]
    )
    client = _client(_make_config(tmp_path, [KEY_A]), invoker)

    response = client.post(
        "/v1/chat/completions",
        headers=AUTH,
        json={
            "model": "gpt-4o",
            "stream": True,
            "messages": [{"role": "user", "content": "x"}],
        },
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-accel-buffering"] == "no"

    frames = [line[len("data: "):] for line in response.text.split("\n\n") if line]
    assert frames[-1] == "[DONE]"
    chunks = [json.loads(frame) for frame in frames[:-1]]
    assert chunks[0]["choices"][0]["delta"] == {"role": "assistant"}
    assert "".join(c["choices"][0]["delta"].get("content", "") for c in chunks) == "pong"
    assert chunks[-1]["choices"][0]["finish_reason"] == "stop"


def test_legacy_completions(client: TestClient):
    response = client.post(
        "/v1/completions", headers=AUTH, json={"model": "gpt-4o", "prompt": "ping"}
    )

    assert response.status_code == 200
    assert response.json()["choices"][0]["text"] == "pong"

    missing_prompt = client.post("/v1/completions", headers=AUTH, json={"model": "gpt-4o"})
    assert missing_prompt.status_code == 400


def test_models_fall_back_to_builtin_list(client: TestClient):
    response = client.get("/v1/models", params={"provider": "google"}, headers=AUTH)

    assert response.status_code == 200
    ids = [m["id"] for m in response.json()["data"]]
    assert ids == [
        "google/gemini-2.5-pro-preview-06-05",
        "google/gemini-2.5-flash-preview-05-20",
        "google/gemini-2.0-flash",
    ]


def test_single_model_lookup(client: TestClient):
    found = client.get("/v1/models/openai/o3-mini", headers=AUTH)
    missing = client.get("/v1/models/unknown/thing", headers=AUTH)

    assert found.status_code == 200
    assert found.json()["id"] == "openai/o3-mini"
    assert missing.status_code == 404
    assert missing.json()["error"]["type"] == "not_found"


def test_admin_endpoints(client: TestClient, tmp_path: Path):
    store = client.app.state.gateway_client.store
    store.mark_failure(KEY_A)

    status = client.get("/admin/status", headers=AUTH).json()
    assert status["keys"]["keys"][0]["key_short"] == "vck_aaaaaa...1111"
    assert status["keys"]["keys"][0]["in_cooldown"] is True

    reset = client.post("/admin/reset", headers=AUTH).json()
    assert reset["success"] is True
    assert reset["stats"]["available"] == 1

    (tmp_path / "keys.txt").write_text(f"{KEY_A}\nvck_newkey_000000000000\n", encoding="utf-8")
    reload = client.post("/admin/reload", headers=AUTH).json()
    assert reload["stats"]["total"] == 2

    stats = client.get("/stats", headers=AUTH).json()
    assert stats["keys"]["total"] == 2
