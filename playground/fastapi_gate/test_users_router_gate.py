# playground/fastapi_gate/test_users_router_gate.py

"""
[职责] Users router gate：注册冲突、身份解析（x-user-id）与偏好读写。
[边界] 不实现认证；仅验证 header 身份语义与 ErrorResponse 合同。
[上游关系] backend/api/routers/users.py、api/deps.get_current_user。
[下游关系] 其余受保护路由依赖同一身份解析。
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.repo import UserRepo
from llm_chat.backend.schemas.ids import new_uuid
from llm_chat.config import settings

from .conftest import API, register


pytestmark = pytest.mark.fastapi_gate


@pytest.mark.asyncio
async def test_register_and_conflict(client: AsyncClient) -> None:
    resp = await client.post(f"{API}/users", json={"username": "carol", "email": "c@example.com"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["username"] == "carol"
    assert body["is_active"] is True

    trace_id = str(new_uuid())
    dup = await client.post(f"{API}/users", json={"username": "carol"}, headers={"x-trace-id": trace_id})
    assert dup.status_code == 409
    err = dup.json()["error"]
    assert err["code"] == "conflict"
    assert err["trace_id"] == trace_id
    assert err["request_id"] == dup.headers["x-request-id"]

    dup_mail = await client.post(f"{API}/users", json={"username": "carol2", "email": "c@example.com"})
    assert dup_mail.status_code == 409


@pytest.mark.asyncio
async def test_identity_header(client: AsyncClient, session: AsyncSession) -> None:
    missing = await client.get(f"{API}/users/me")
    assert missing.status_code == 401
    assert missing.json()["error"]["code"] == "unauthorized"

    unknown = await client.get(f"{API}/users/me", headers={"x-user-id": "no-such-user"})
    assert unknown.status_code == 401

    headers = await register(client, "dave")
    me = await client.get(f"{API}/users/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["username"] == "dave"

    await UserRepo(session).set_active(headers["x-user-id"], is_active=False)
    await session.commit()
    inactive = await client.get(f"{API}/users/me", headers=headers)
    assert inactive.status_code == 401


@pytest.mark.asyncio
async def test_preferences_roundtrip(client: AsyncClient) -> None:
    headers = await register(client, "erin")
    resp = await client.get(f"{API}/users/me/preferences", headers=headers)
    assert resp.status_code == 200
    prefs = resp.json()
    assert prefs["is_default"] is True
    assert prefs["model_provider"] == settings.DEFAULT_CHAT_PROVIDER

    put = await client.put(
        f"{API}/users/me/preferences",
        json={"model_provider": "openai", "temperature": 0.8},
        headers=headers,
    )
    assert put.status_code == 200
    assert put.json()["model_provider"] == "openai"
    assert put.json()["temperature"] == 0.8
    assert put.json()["is_default"] is False

    put2 = await client.put(f"{API}/users/me/preferences", json={"use_documents": True}, headers=headers)
    assert put2.json()["model_provider"] == "openai"  # docstring: 部分更新不清空其他字段
    assert put2.json()["use_documents"] is True

    bad = await client.put(f"{API}/users/me/preferences", json={"model_provider": "acme"}, headers=headers)
    assert bad.status_code == 400
    assert bad.json()["error"]["code"] == "bad_request"

    invalid = await client.put(f"{API}/users/me/preferences", json={"history_window": 0}, headers=headers)
    assert invalid.status_code == 400
    assert invalid.json()["error"]["detail"]["errors"]  # docstring: 校验错误映射为 bad_request
