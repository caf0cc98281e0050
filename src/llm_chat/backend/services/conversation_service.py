# src/llm_chat/backend/services/conversation_service.py

"""
[职责] conversation_service：会话与消息的归属校验、CRUD 与序列化。
[边界] 不处理 HTTP 语义；不调用 LLM；行级归属（RLS 等价物）在此统一判定。
[上游关系] api/routers/conversations.py、messages.py 调用；chat_service 复用 get_owned_conversation。
[下游关系] ConversationRepo / MessageRepo 持久化；返回 ORM 对象或 JSON-safe dict。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.models.conversation import ConversationModel
from llm_chat.backend.db.models.message import MessageModel
from llm_chat.backend.db.repo import ConversationRepo, MessageRepo
from llm_chat.backend.pipelines.generation.generator import SUPPORTED_PROVIDERS, normalize_provider
from llm_chat.backend.schemas.audit import TraceContext
from llm_chat.backend.schemas.conversation import ConversationSettings
from llm_chat.backend.utils.constants import ROLE_ASSISTANT
from llm_chat.backend.utils.errors import BadRequestError, NotFoundError
from llm_chat.backend.utils.logging_ import get_logger, log_event


NON_NULLABLE_FIELDS = ("is_archived",)
FEEDBACK_SCORES = (-1, 1)


def validate_provider(provider: Optional[str]) -> Optional[str]:
    """Normalize a stored provider value; unknown providers are rejected with bad_request."""
    if provider is None:
        return None
    key = normalize_provider(provider)
    if not key:
        return None
    if key not in SUPPORTED_PROVIDERS:
        raise BadRequestError(
            message=f"unsupported model provider: {provider}",
            detail={"provider": str(provider), "supported": list(SUPPORTED_PROVIDERS)},
        )
    return key


def _parse_settings(raw: Optional[Mapping[str, Any]]) -> ConversationSettings:
    """Validate a settings mapping; unknown keys and out-of-range values are bad_request."""
    try:
        return ConversationSettings.model_validate(dict(raw or {}))
    except ValidationError as exc:
        errors = [
            {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        raise BadRequestError(
            message="invalid conversation settings",
            detail={"errors": errors, "keys": sorted(str(k) for k in dict(raw or {}))},
            cause=exc,
        ) from exc


def _clean_settings(raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return _parse_settings(raw).model_dump(exclude_none=True)


def _merge_settings(current: Optional[Mapping[str, Any]], patch: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    [职责] PATCH 合并：patch 中值为 None 的 key 被移除，其余覆盖。
    [边界] patch 与合并结果都经 ConversationSettings 校验（旧数据中的非法值同样被拒绝）。
    """
    values = _parse_settings(patch).model_dump(exclude_unset=True)
    merged = dict(current or {})
    for key, value in values.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return _clean_settings(merged)


def serialize_conversation(conv: ConversationModel) -> Dict[str, Any]:
    return {
        "id": conv.id,
        "user_id": conv.user_id,
        "title": conv.title,
        "model_provider": conv.model_provider,
        "model_name": conv.model_name,
        "system_prompt": conv.system_prompt,
        "settings": dict(conv.settings or {}),
        "is_archived": bool(conv.is_archived),
        "created_at": conv.created_at,
        "updated_at": conv.updated_at,
    }


def serialize_message(msg: MessageModel) -> Dict[str, Any]:
    return {
        "id": msg.id,
        "conversation_id": msg.conversation_id,
        "role": msg.role,
        "content": msg.content,
        "status": msg.status,
        "model_provider": msg.model_provider,
        "model_name": msg.model_name,
        "prompt_tokens": msg.prompt_tokens,
        "completion_tokens": msg.completion_tokens,
        "error_message": msg.error_message,
        "request_id": msg.request_id,
        "feedback_score": msg.feedback_score,
        "meta_data": dict(msg.meta_data or {}),
        "created_at": msg.created_at,
    }


async def get_owned_conversation(
    session: AsyncSession,
    *,
    conversation_id: str,
    user_id: str,
) -> ConversationModel:
    """
    [职责] 加载会话并校验归属。
    [边界] 他人会话与不存在的会话同样报 not_found（不泄露存在性）。
    """
    conv = await ConversationRepo(session).get_by_id(str(conversation_id))
    if conv is None or conv.user_id != str(user_id):
        raise NotFoundError(message="conversation not found", detail={"conversation_id": str(conversation_id)})
    return conv


async def create_conversation(
    session: AsyncSession,
    *,
    user_id: str,
    title: Optional[str] = None,
    model_provider: Optional[str] = None,
    model_name: Optional[str] = None,
    system_prompt: Optional[str] = None,
    settings: Optional[Mapping[str, Any]] = None,
    trace_context: Optional[TraceContext] = None,
) -> ConversationModel:
    logger = get_logger("services.conversation")
    conv = await ConversationRepo(session).create(
        user_id=str(user_id),
        title=(title or "").strip() or None,
        model_provider=validate_provider(model_provider),
        model_name=(model_name or "").strip() or None,
        system_prompt=system_prompt,
        settings=_clean_settings(settings),
    )
    await session.commit()
    log_event(
        logger,
        logging.INFO,
        "conversation.created",
        context=trace_context,
        fields={"user_id": str(user_id), "conversation_id": conv.id},
    )
    return conv


async def update_conversation(
    session: AsyncSession,
    *,
    conversation_id: str,
    user_id: str,
    fields: Mapping[str, Any],
    trace_context: Optional[TraceContext] = None,
) -> ConversationModel:
    """
    [职责] 部分更新会话（PATCH 语义：仅更新显式给出的字段）。
    [边界] settings 合并而非覆盖；值为 None 的 settings key 被移除。
    """
    conv = await get_owned_conversation(session, conversation_id=conversation_id, user_id=user_id)
    updates: Dict[str, Any] = {}
    for key, value in fields.items():
        if key in NON_NULLABLE_FIELDS and value is None:
            raise BadRequestError(message=f"{key} must not be null", detail={"field": key})
        if key == "model_provider":
            updates[key] = validate_provider(value)
        elif key == "settings":
            updates[key] = _merge_settings(conv.settings, value)
        elif key == "title":
            updates[key] = (value or "").strip() or None
        else:
            updates[key] = value
    try:
        await ConversationRepo(session).update(conv, **updates)  # docstring: updated_at 由 onupdate 刷新
    except ValueError as exc:
        raise BadRequestError(message=str(exc), cause=exc) from exc
    await session.commit()

    log_event(
        get_logger("services.conversation"),
        logging.INFO,
        "conversation.updated",
        context=trace_context,
        fields={"conversation_id": conv.id, "fields": sorted(fields.keys())},
    )
    return conv


async def delete_conversation(
    session: AsyncSession,
    *,
    conversation_id: str,
    user_id: str,
    trace_context: Optional[TraceContext] = None,
) -> None:
    conv = await get_owned_conversation(session, conversation_id=conversation_id, user_id=user_id)
    await ConversationRepo(session).delete(conv)
    await session.commit()
    log_event(
        get_logger("services.conversation"),
        logging.INFO,
        "conversation.deleted",
        context=trace_context,
        fields={"conversation_id": str(conversation_id)},
    )


async def list_conversations(
    session: AsyncSession,
    *,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
    include_archived: bool = False,
) -> List[ConversationModel]:
    return await ConversationRepo(session).list_by_user(
        str(user_id), limit=limit, offset=offset, include_archived=include_archived
    )


async def list_messages(
    session: AsyncSession,
    *,
    conversation_id: str,
    user_id: str,
    limit: int = 100,
) -> List[MessageModel]:
    """Latest `limit` messages of an owned conversation, oldest first."""
    await get_owned_conversation(session, conversation_id=conversation_id, user_id=user_id)
    return await MessageRepo(session).list_by_conversation(str(conversation_id), limit=limit)


async def set_message_feedback(
    session: AsyncSession,
    *,
    conversation_id: str,
    message_id: str,
    user_id: str,
    score: int,
    trace_context: Optional[TraceContext] = None,
) -> MessageModel:
    """
    [职责] 记录用户对 assistant 消息的反馈（1 / -1）。
    [边界] 只允许对本会话内的 assistant 消息评分。
    """
    if score not in FEEDBACK_SCORES:
        raise BadRequestError(message="feedback score must be 1 or -1", detail={"score": score})
    await get_owned_conversation(session, conversation_id=conversation_id, user_id=user_id)

    repo = MessageRepo(session)
    msg = await repo.get_by_id(str(message_id))
    if msg is None or msg.conversation_id != str(conversation_id):
        raise NotFoundError(message="message not found", detail={"message_id": str(message_id)})
    if msg.role != ROLE_ASSISTANT:
        raise BadRequestError(message="feedback is only accepted for assistant messages")

    await repo.set_feedback(msg.id, score=score)
    await session.commit()
    log_event(
        get_logger("services.conversation"),
        logging.INFO,
        "message.feedback",
        context=trace_context,
        fields={"conversation_id": str(conversation_id), "message_id": msg.id, "score": score},
    )
    return msg
