# src/llm_chat/backend/api/routers/conversations.py

"""
[职责] Conversations Router：会话 CRUD（/conversations）。
[边界] 归属判定在 conversation_service；他人会话统一 404。
[上游关系] 前端会话列表/设置面板。
[下游关系] conversation_service。
"""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.api.deps import get_current_user, get_session, get_trace_context
from llm_chat.backend.api.errors import to_json_response
from llm_chat.backend.api.schemas_http.conversations import (
    ConversationCreateRequest,
    ConversationListResponse,
    ConversationUpdateRequest,
    ConversationView,
)
from llm_chat.backend.db.models.user import UserModel
from llm_chat.backend.schemas.audit import TraceContext
from llm_chat.backend.services import conversation_service
from llm_chat.backend.utils.errors import DomainError


router = APIRouter(prefix="/conversations", tags=["conversations"])


def _error(exc: DomainError, trace_context: TraceContext) -> JSONResponse:
    return to_json_response(exc, trace_id=str(trace_context.trace_id), request_id=str(trace_context.request_id))


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    include_archived: bool = Query(default=False),
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ConversationListResponse:
    """当前用户会话列表（最近活动在前）。"""
    rows = await conversation_service.list_conversations(
        session, user_id=user.id, limit=limit, offset=offset, include_archived=include_archived
    )
    return ConversationListResponse(
        items=[ConversationView.model_validate(conversation_service.serialize_conversation(c)) for c in rows],
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=ConversationView, status_code=201)
async def create_conversation(
    payload: ConversationCreateRequest,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[ConversationView, JSONResponse]:
    try:
        conv = await conversation_service.create_conversation(
            session,
            user_id=user.id,
            title=payload.title,
            model_provider=payload.model_provider,
            model_name=payload.model_name,
            system_prompt=payload.system_prompt,
            settings=payload.settings.model_dump(exclude_none=True),
            trace_context=trace_context,
        )
    except DomainError as exc:
        return _error(exc, trace_context)
    return ConversationView.model_validate(conversation_service.serialize_conversation(conv))


@router.get("/{conversation_id}", response_model=ConversationView)
async def get_conversation(
    conversation_id: str,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[ConversationView, JSONResponse]:
    try:
        conv = await conversation_service.get_owned_conversation(
            session, conversation_id=str(conversation_id), user_id=user.id
        )
    except DomainError as exc:
        return _error(exc, trace_context)
    return ConversationView.model_validate(conversation_service.serialize_conversation(conv))


@router.patch("/{conversation_id}", response_model=ConversationView)
async def update_conversation(
    conversation_id: str,
    payload: ConversationUpdateRequest,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[ConversationView, JSONResponse]:
    """PATCH 语义：仅请求体中出现的字段被更新。"""
    fields = payload.model_dump(include=payload.model_fields_set)
    if payload.settings is not None:
        fields["settings"] = payload.settings.model_dump(exclude_unset=True)  # docstring: 显式 null 保留为移除标记
    try:
        conv = await conversation_service.update_conversation(
            session,
            conversation_id=str(conversation_id),
            user_id=user.id,
            fields=fields,
            trace_context=trace_context,
        )
    except DomainError as exc:
        return _error(exc, trace_context)
    return ConversationView.model_validate(conversation_service.serialize_conversation(conv))


@router.delete("/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Response:
    """删除会话（消息级联删除，指标 conversation_id 置空）。"""
    try:
        await conversation_service.delete_conversation(
            session, conversation_id=str(conversation_id), user_id=user.id, trace_context=trace_context
        )
    except DomainError as exc:
        return _error(exc, trace_context)
    return Response(status_code=204)
