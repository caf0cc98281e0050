# src/llm_chat/backend/services/user_service.py

"""
[职责] user_service：用户注册（username/email 唯一性校验）与序列化。
[边界] 不实现认证/密码；身份由网关通过 x-user-id 传入。
[上游关系] POST /users；scripts/init_db --seed。
[下游关系] UserRepo 持久化。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.models.user import UserModel
from llm_chat.backend.db.repo import UserRepo
from llm_chat.backend.schemas.audit import TraceContext
from llm_chat.backend.utils.errors import BadRequestError, ConflictError
from llm_chat.backend.utils.logging_ import get_logger, log_event


def serialize_user(user: UserModel) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "display_name": user.display_name,
        "is_active": bool(user.is_active),
        "created_at": user.created_at,
    }


async def create_user(
    session: AsyncSession,
    *,
    username: str,
    email: Optional[str] = None,
    display_name: Optional[str] = None,
    trace_context: Optional[TraceContext] = None,
) -> UserModel:
    """
    [职责] 创建用户；username/email 重复时报 conflict。
    [边界] email 为空串视为未提供。
    """
    name = str(username or "").strip()
    if not name:
        raise BadRequestError(message="username is required")
    mail = str(email or "").strip() or None

    repo = UserRepo(session)
    if await repo.get_by_username(name) is not None:
        raise ConflictError(message="username already exists", detail={"username": name})
    if mail and await repo.get_by_email(mail) is not None:
        raise ConflictError(message="email already exists", detail={"email": mail})

    try:
        user = await repo.create(username=name, email=mail, display_name=display_name)
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()  # docstring: 并发注册：唯一约束兜底，重新判定冲突字段
        if await repo.get_by_username(name) is not None:
            raise ConflictError(message="username already exists", detail={"username": name}, cause=exc) from exc
        if mail and await repo.get_by_email(mail) is not None:
            raise ConflictError(message="email already exists", detail={"email": mail}, cause=exc) from exc
        raise
    log_event(
        get_logger("services.user"),
        logging.INFO,
        "user.created",
        context=trace_context,
        fields={"user_id": user.id, "username": name},
    )
    return user
