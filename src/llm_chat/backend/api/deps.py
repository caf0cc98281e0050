# src/llm_chat/backend/api/deps.py

"""
[职责] API 依赖装配：提供 session、trace_context 与当前用户注入。
[边界] 不做业务逻辑；不提交事务。
[上游关系] FastAPI 路由层调用依赖注入。
[下游关系] services/routers 通过本模块获取依赖实例。
"""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.engine import get_session
from llm_chat.backend.db.models.user import UserModel
from llm_chat.backend.db.repo import UserRepo
from llm_chat.backend.schemas.audit import TraceContext
from llm_chat.backend.schemas.ids import new_uuid
from llm_chat.backend.utils.constants import USER_HEADER
from llm_chat.backend.utils.errors import UnauthorizedError

__all__ = ["get_session", "get_trace_context", "get_current_user"]


def get_trace_context(request: Request) -> TraceContext:
    """
    [职责] 获取或创建 TraceContext（优先使用 middleware 注入）。
    [边界] 未挂载 middleware 时兜底生成并写回 request.state。
    """
    existing = getattr(request.state, "trace_context", None)
    if isinstance(existing, TraceContext):
        return existing

    ctx = TraceContext(trace_id=new_uuid(), request_id=new_uuid(), tags={})
    request.state.trace_context = ctx
    request.state.trace_id = str(ctx.trace_id)
    request.state.request_id = str(ctx.request_id)
    return ctx


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> UserModel:
    """
    [职责] 从 x-user-id header 解析调用方身份。
    [边界] 缺失、未知或已禁用的用户统一报 unauthorized；不实现认证（由网关负责）。
    [下游关系] user_id 写入 trace_context.tags 供日志使用。
    """
    user_id = str(request.headers.get(USER_HEADER, "") or "").strip()
    if not user_id:
        raise UnauthorizedError(message=f"missing {USER_HEADER} header")
    user = await UserRepo(session).get_by_id(user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError(message="unknown or inactive user", detail={"user_id": user_id})
    trace_context.tags["user_id"] = user.id
    return user
