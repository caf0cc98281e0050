# playground/fastapi_gate/test_conversations_router_gate.py

"""
[职责] Conversations router gate：会话 CRUD、归属隔离与请求校验错误 envelope。
[边界] 不调用 LLM。
[上游关系] backend/api/routers/conversations.py。
[下游关系] 前端会话列表依赖此合同。
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from .conftest import API, register


pytestmark = pytest.mark.fastapi_gate


@pytest.mark.asyncio
async def test_conversation_crud(client: AsyncClient) -> None:
    headers = await register(client, "frank")

    created = await client.post(
        f"{API}/conversations",
        json={"title": "Ideas", "model_provider": "mock", "settings": {"temperature": 0.3}},
        headers=headers,
    )
    assert created.status_code == 201
    conv = created.json()
    assert conv["title"] == "Ideas"
    assert conv["settings"] == {"temperature": 0.3}
    conv_id = conv["id"]

    listed = await client.get(f"{API}/conversations", headers=headers)
    assert listed.status_code == 200
    assert [c["id"] for c in listed.json()["items"]] == [conv_id]

    fetched = await client.get(f"{API}/conversations/{conv_id}", headers=headers)
    assert fetched.json()["id"] == conv_id

    patched = await client.patch(
        f"{API}/conversations/{conv_id}",
        json={"title": "Better ideas", "settings": {"max_tokens": 64}},
        headers=headers,
    )
    assert patched.status_code == 200
    assert patched.json()["title"] == "Better ideas"
    assert patched.json()["settings"] == {"temperature": 0.3, "max_tokens": 64}
    assert patched.json()["model_provider"] == "mock"  # docstring: 未给出字段不变

    archived = await client.patch(f"{API}/conversations/{conv_id}", json={"is_archived": True}, headers=headers)
    assert archived.json()["is_archived"] is True
    assert (await client.get(f"{API}/conversations", headers=headers)).json()["items"] == []
    with_archived = await client.get(f"{API}/conversations", params={"include_archived": "true"}, headers=headers)
    assert len(with_archived.json()["items"]) == 1

    deleted = await client.delete(f"{API}/conversations/{conv_id}", headers=headers)
    assert deleted.status_code == 204
    gone = await client.get(f"{API}/conversations/{conv_id}", headers=headers)
    assert gone.status_code == 404
    assert gone.json()["error"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_conversation_isolation(client: AsyncClient) -> None:
    owner = await register(client, "grace")
    intruder = await register(client, "heidi")
    conv_id = (await client.post(f"{API}/conversations", json={}, headers=owner)).json()["id"]

    assert (await client.get(f"{API}/conversations/{conv_id}", headers=intruder)).status_code == 404
    assert (await client.patch(f"{API}/conversations/{conv_id}", json={"title": "x"}, headers=intruder)).status_code == 404
    assert (await client.delete(f"{API}/conversations/{conv_id}", headers=intruder)).status_code == 404
    assert (await client.get(f"{API}/conversations", headers=intruder)).json()["items"] == []


@pytest.mark.asyncio
async def test_conversation_validation_envelope(client: AsyncClient) -> None:
    headers = await register(client, "ivan")
    resp = await client.post(f"{API}/conversations", json={"unexpected": 1}, headers=headers)
    assert resp.status_code == 400
    err = resp.json()["error"]
    assert err["code"] == "bad_request"
    assert err["trace_id"] == resp.headers["x-trace-id"]
    assert isinstance(err["detail"]["errors"], list)

    bad_provider = await client.post(f"{API}/conversations", json={"model_provider": "acme"}, headers=headers)
    assert bad_provider.status_code == 400
    assert bad_provider.json()["error"]["detail"]["provider"] == "acme"

    bad_limit = await client.get(f"{API}/conversations", params={"limit": 0}, headers=headers)
    assert bad_limit.status_code == 400


@pytest.mark.asyncio
async def test_conversation_settings_are_typed(client: AsyncClient) -> None:
    headers = await register(client, "kate")
    bad = await client.post(f"{API}/conversations", json={"settings": {"temperature": "hot"}}, headers=headers)
    assert bad.status_code == 400
    assert bad.json()["error"]["code"] == "bad_request"

    await client.put(f"{API}/users/me/preferences", json={"use_documents": True}, headers=headers)
    text = "parking passes renew every march"
    doc = await client.post(f"{API}/documents", json={"title": "Parking", "content": text}, headers=headers)
    assert doc.status_code == 201

    created = await client.post(
        f"{API}/conversations", json={"settings": {"use_documents": "false"}}, headers=headers
    )
    assert created.status_code == 201
    assert created.json()["settings"] == {"use_documents": False}
    conv_id = created.json()["id"]

    sent = await client.post(f"{API}/conversations/{conv_id}/messages", json={"content": text}, headers=headers)
    assert sent.status_code == 201, sent.text
    assert sent.json()["context"] == []  # docstring: 会话级 false 覆盖偏好 true

    zero_window = await client.patch(
        f"{API}/conversations/{conv_id}", json={"settings": {"history_window": 0}}, headers=headers
    )
    assert zero_window.status_code == 400

    cleared = await client.patch(
        f"{API}/conversations/{conv_id}", json={"settings": {"use_documents": None}}, headers=headers
    )
    assert cleared.status_code == 200
    assert cleared.json()["settings"] == {}


@pytest.mark.asyncio
async def test_patch_rejects_null_archive_flag(client: AsyncClient) -> None:
    headers = await register(client, "liam")
    conv_id = (await client.post(f"{API}/conversations", json={}, headers=headers)).json()["id"]

    resp = await client.patch(f"{API}/conversations/{conv_id}", json={"is_archived": None}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["detail"] == {"field": "is_archived"}

    fetched = await client.get(f"{API}/conversations/{conv_id}", headers=headers)
    assert fetched.json()["is_archived"] is False
