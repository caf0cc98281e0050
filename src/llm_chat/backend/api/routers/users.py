# src/llm_chat/backend/api/routers/users.py

"""
[职责] Users Router：用户注册、当前用户查询与偏好读写（/users）。
[边界] 不实现认证；当前用户由 deps.get_current_user 基于 x-user-id 解析。
[上游关系] 前端/外部调用方。
[下游关系] user_service / preference_service。
"""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.api.deps import get_current_user, get_session, get_trace_context
from llm_chat.backend.api.errors import to_json_response
from llm_chat.backend.api.schemas_http.users import (
    PreferencesUpdateRequest,
    PreferencesView,
    UserCreateRequest,
    UserView,
)
from llm_chat.backend.db.models.user import UserModel
from llm_chat.backend.schemas.audit import TraceContext
from llm_chat.backend.services import preference_service, user_service
from llm_chat.backend.utils.errors import DomainError


router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserView, status_code=201)
async def create_user(
    payload: UserCreateRequest,
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[UserView, JSONResponse]:
    """注册用户（username/email 唯一；冲突返回 409）。"""
    try:
        user = await user_service.create_user(
            session,
            username=payload.username,
            email=payload.email,
            display_name=payload.display_name,
            trace_context=trace_context,
        )
    except DomainError as exc:
        return to_json_response(exc, trace_id=str(trace_context.trace_id), request_id=str(trace_context.request_id))
    return UserView.model_validate(user_service.serialize_user(user))


@router.get("/me", response_model=UserView)
async def get_me(user: UserModel = Depends(get_current_user)) -> UserView:
    return UserView.model_validate(user_service.serialize_user(user))


@router.get("/me/preferences", response_model=PreferencesView)
async def get_my_preferences(
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> PreferencesView:
    """有效偏好（未保存过时返回 settings 默认值，is_default=true）。"""
    prefs = await preference_service.get_preferences(session, user_id=user.id)
    return PreferencesView.model_validate(prefs)


@router.put("/me/preferences", response_model=PreferencesView)
async def update_my_preferences(
    payload: PreferencesUpdateRequest,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[PreferencesView, JSONResponse]:
    """
    [职责] 部分更新偏好：只写入请求体中显式出现的字段。
    [边界] 显式 null 表示清空该字段（回退 settings 默认值）。
    """
    fields = payload.model_dump(include=payload.model_fields_set)
    try:
        prefs = await preference_service.update_preferences(
            session,
            user_id=user.id,
            fields=fields,
            trace_context=trace_context,
        )
    except DomainError as exc:
        return to_json_response(exc, trace_id=str(trace_context.trace_id), request_id=str(trace_context.request_id))
    return PreferencesView.model_validate(prefs)
