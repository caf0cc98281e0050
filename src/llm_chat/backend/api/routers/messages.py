# src/llm_chat/backend/api/routers/messages.py

"""
[职责] Messages Router：会话消息列表、发送消息（同步生成回复）与反馈（/conversations/{id}/messages）。
[边界] 不直接调用 pipeline；编排与事务由 chat_service 负责；仅做 HTTP 映射。
[上游关系] 前端聊天窗口。
[下游关系] chat_service.send_message / conversation_service。
"""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.api.deps import get_current_user, get_session, get_trace_context
from llm_chat.backend.api.errors import to_json_response
from llm_chat.backend.api.schemas_http.messages import (
    FeedbackRequest,
    MessageListResponse,
    MessageView,
    SendMessageRequest,
    SendMessageResponse,
)
from llm_chat.backend.db.models.user import UserModel
from llm_chat.backend.schemas.audit import TraceContext
from llm_chat.backend.services import conversation_service
from llm_chat.backend.services.chat_service import send_message
from llm_chat.backend.utils.errors import DomainError


router = APIRouter(prefix="/conversations/{conversation_id}/messages", tags=["messages"])


def _error(exc: DomainError, trace_context: TraceContext) -> JSONResponse:
    return to_json_response(exc, trace_id=str(trace_context.trace_id), request_id=str(trace_context.request_id))


@router.get("", response_model=MessageListResponse)
async def list_messages(
    conversation_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[MessageListResponse, JSONResponse]:
    """最近 limit 条消息，按时间正序返回。"""
    try:
        rows = await conversation_service.list_messages(
            session, conversation_id=str(conversation_id), user_id=user.id, limit=limit
        )
    except DomainError as exc:
        return _error(exc, trace_context)
    return MessageListResponse(
        items=[MessageView.model_validate(conversation_service.serialize_message(m)) for m in rows]
    )


@router.post("", response_model=SendMessageResponse, status_code=201)
async def post_message(
    conversation_id: str,
    payload: SendMessageRequest,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[SendMessageResponse, JSONResponse]:
    """
    [职责] 发送 user 消息并返回 user + assistant 消息、usage、context 与 timing。
    [边界] 生成失败时 assistant 消息已置 failed 落库，本接口返回错误 envelope。
    """
    overrides = payload.overrides.model_dump(exclude_none=True) if payload.overrides else {}
    try:
        result = await send_message(
            session,
            conversation_id=str(conversation_id),
            user_id=user.id,
            content=payload.content,
            overrides=overrides,
            trace_context=trace_context,
        )
    except DomainError as exc:
        return _error(exc, trace_context)
    return SendMessageResponse.model_validate(result)


@router.post("/{message_id}/feedback", response_model=MessageView)
async def post_feedback(
    conversation_id: str,
    message_id: str,
    payload: FeedbackRequest,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[MessageView, JSONResponse]:
    try:
        msg = await conversation_service.set_message_feedback(
            session,
            conversation_id=str(conversation_id),
            message_id=str(message_id),
            user_id=user.id,
            score=int(payload.score),
            trace_context=trace_context,
        )
    except DomainError as exc:
        return _error(exc, trace_context)
    return MessageView.model_validate(conversation_service.serialize_message(msg))
