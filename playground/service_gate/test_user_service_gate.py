# playground/service_gate/test_user_service_gate.py

"""
[职责] user service gate：验证注册的唯一性判定，包括预检查未命中时由唯一约束兜底。
[边界] 通过 monkeypatch 让预检查返回空，模拟并发注册的竞态窗口。
[上游关系] services/user_service.py。
[下游关系] POST /users 的 409 语义。
"""

from __future__ import annotations

from typing import Any, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.models.user import UserModel
from llm_chat.backend.db.repo import UserRepo
from llm_chat.backend.services import user_service
from llm_chat.backend.utils.errors import BadRequestError, ConflictError


pytestmark = pytest.mark.service_gate


def _miss_first_lookup(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    original = getattr(UserRepo, name)
    calls = {"n": 0}

    async def _lookup(self: UserRepo, value: str) -> Optional[Any]:
        calls["n"] += 1
        if calls["n"] == 1:
            return None  # docstring: 预检查时对方尚未提交
        return await original(self, value)

    monkeypatch.setattr(UserRepo, name, _lookup)


@pytest.mark.asyncio
async def test_create_user_conflicts(session: AsyncSession, user: UserModel) -> None:
    with pytest.raises(ConflictError):
        await user_service.create_user(session, username="alice")
    with pytest.raises(ConflictError):
        await user_service.create_user(session, username="carol", email="alice@example.com")
    with pytest.raises(BadRequestError):
        await user_service.create_user(session, username="  ")


@pytest.mark.asyncio
async def test_username_race_maps_to_conflict(
    session: AsyncSession, user: UserModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    _miss_first_lookup(monkeypatch, "get_by_username")
    with pytest.raises(ConflictError) as exc_info:
        await user_service.create_user(session, username="alice")
    assert exc_info.value.detail == {"username": "alice"}

    created = await user_service.create_user(session, username="carol")  # docstring: 回滚后 session 仍可用
    assert created.username == "carol"


@pytest.mark.asyncio
async def test_email_race_maps_to_conflict(
    session: AsyncSession, user: UserModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    _miss_first_lookup(monkeypatch, "get_by_email")
    with pytest.raises(ConflictError) as exc_info:
        await user_service.create_user(session, username="carol", email="alice@example.com")
    assert exc_info.value.detail == {"email": "alice@example.com"}
