# playground/fastapi_gate/test_messages_router_gate.py

"""
[职责] Messages router gate：发送消息（mock LLM）、消息列表、反馈与失败路径 envelope。
[边界] 使用 mock provider；不访问外部 LLM。
[上游关系] backend/api/routers/messages.py、routers/metrics.py。
[下游关系] 前端聊天窗口依赖此合同。
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from llm_chat.backend.schemas.ids import new_uuid

from .conftest import API, register


pytestmark = pytest.mark.fastapi_gate


@pytest.mark.asyncio
async def test_send_and_list_messages(client: AsyncClient) -> None:
    headers = await register(client, "judy")
    conv_id = (await client.post(f"{API}/conversations", json={}, headers=headers)).json()["id"]

    request_id = str(new_uuid())
    resp = await client.post(
        f"{API}/conversations/{conv_id}/messages",
        json={"content": "Summarize our plan", "overrides": {"temperature": 0.5}},
        headers={**headers, "x-request-id": request_id},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["request_id"] == request_id
    assert body["conversation_title"] == "Summarize our plan"
    assert body["user_message"]["role"] == "user"
    assert body["assistant_message"]["content"] == "[mock] Summarize our plan"
    assert body["assistant_message"]["status"] == "success"
    assert body["generation_config"]["temperature"] == 0.5
    assert body["usage"]["total_tokens"] > 0
    assert body["context"] == []
    assert "total_ms" in body["timing_ms"]

    listed = await client.get(f"{API}/conversations/{conv_id}/messages", headers=headers)
    assert listed.status_code == 200
    items = listed.json()["items"]
    assert [m["role"] for m in items] == ["user", "assistant"]

    assistant_id = body["assistant_message"]["id"]
    fb = await client.post(
        f"{API}/conversations/{conv_id}/messages/{assistant_id}/feedback", json={"score": 1}, headers=headers
    )
    assert fb.status_code == 200
    assert fb.json()["feedback_score"] == 1

    bad_fb = await client.post(
        f"{API}/conversations/{conv_id}/messages/{body['user_message']['id']}/feedback",
        json={"score": 1},
        headers=headers,
    )
    assert bad_fb.status_code == 400

    conv = (await client.get(f"{API}/conversations/{conv_id}", headers=headers)).json()
    assert conv["title"] == "Summarize our plan"

    metrics = await client.get(f"{API}/metrics/models", headers=headers)
    assert metrics.status_code == 200
    rows = metrics.json()["items"]
    assert rows[0]["provider"] == "mock"
    assert rows[0]["calls"] == 1
    assert rows[0]["success_rate"] == 1.0


@pytest.mark.asyncio
async def test_send_message_failure_envelope(client: AsyncClient) -> None:
    headers = await register(client, "ken")
    conv_id = (await client.post(f"{API}/conversations", json={}, headers=headers)).json()["id"]

    resp = await client.post(
        f"{API}/conversations/{conv_id}/messages",
        json={"content": "hello", "overrides": {"model_provider": "acme"}},
        headers=headers,
    )
    assert resp.status_code == 400
    err = resp.json()["error"]
    assert err["code"] == "bad_request"
    assert err["request_id"] == resp.headers["x-request-id"]

    items = (await client.get(f"{API}/conversations/{conv_id}/messages", headers=headers)).json()["items"]
    assert [(m["role"], m["status"]) for m in items] == [("user", "success"), ("assistant", "failed")]

    metrics = (await client.get(f"{API}/metrics/models", headers=headers)).json()["items"]
    assert metrics[0]["failures"] == 1


@pytest.mark.asyncio
async def test_messages_require_ownership(client: AsyncClient) -> None:
    owner = await register(client, "leo")
    other = await register(client, "mia")
    conv_id = (await client.post(f"{API}/conversations", json={}, headers=owner)).json()["id"]

    listed = await client.get(f"{API}/conversations/{conv_id}/messages", headers=other)
    assert listed.status_code == 404
    sent = await client.post(f"{API}/conversations/{conv_id}/messages", json={"content": "hi"}, headers=other)
    assert sent.status_code == 404
    empty = await client.post(f"{API}/conversations/{conv_id}/messages", json={"content": ""}, headers=owner)
    assert empty.status_code == 400
