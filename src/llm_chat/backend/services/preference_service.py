# src/llm_chat/backend/services/preference_service.py

"""
[职责] preference_service：读取/部分更新用户偏好，并给出合并 settings 默认值后的有效视图。
[边界] 不处理 HTTP 语义；偏好行不存在时不落库，直接返回默认值。
[上游关系] api/routers/users.py、chat_service 调用。
[下游关系] PreferenceRepo 持久化。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.config import settings
from llm_chat.backend.db.models.preference import UserPreferenceModel
from llm_chat.backend.db.repo import PreferenceRepo
from llm_chat.backend.schemas.audit import TraceContext
from llm_chat.backend.utils.errors import BadRequestError
from llm_chat.backend.utils.logging_ import get_logger, log_event
from llm_chat.backend.services.conversation_service import validate_provider


PREFERENCE_FIELDS = (
    "model_provider",
    "model_name",
    "temperature",
    "max_tokens",
    "system_prompt",
    "history_window",
    "use_documents",
    "extra",
)


def default_preferences() -> Dict[str, Any]:
    """Preferences implied by settings when the user has stored none."""
    return {
        "model_provider": settings.DEFAULT_CHAT_PROVIDER,
        "model_name": settings.DEFAULT_CHAT_MODEL,
        "temperature": settings.DEFAULT_TEMPERATURE,
        "max_tokens": settings.DEFAULT_MAX_TOKENS,
        "system_prompt": settings.DEFAULT_SYSTEM_PROMPT,
        "history_window": settings.HISTORY_WINDOW,
        "use_documents": False,
        "extra": {},
    }


def _effective(user_id: str, row: Optional[UserPreferenceModel]) -> Dict[str, Any]:
    out = default_preferences()
    if row is not None:
        for key in PREFERENCE_FIELDS:
            value = getattr(row, key)
            if value is not None:
                out[key] = value
    out["user_id"] = str(user_id)
    out["is_default"] = row is None
    return out


async def get_preferences(session: AsyncSession, *, user_id: str) -> Dict[str, Any]:
    """
    [职责] 返回有效偏好（存储值优先，缺失字段回退 settings 默认值）。
    [边界] 只读；不创建偏好行。
    """
    row = await PreferenceRepo(session).get(str(user_id))
    return _effective(str(user_id), row)


async def get_stored_preferences(session: AsyncSession, *, user_id: str) -> Optional[UserPreferenceModel]:
    """Raw preferences row (None when the user never saved any)."""
    return await PreferenceRepo(session).get(str(user_id))


async def update_preferences(
    session: AsyncSession,
    *,
    user_id: str,
    fields: Mapping[str, Any],
    trace_context: Optional[TraceContext] = None,
) -> Dict[str, Any]:
    """
    [职责] 部分 upsert 偏好：只写入显式给出的字段；显式 None 表示清空（回退默认）。
    [边界] provider 需为已接入 provider；history_window/max_tokens 需为正数。
    """
    updates: Dict[str, Any] = {}
    for key, value in fields.items():
        if key not in PREFERENCE_FIELDS:
            raise BadRequestError(message=f"unknown preference field: {key}", detail={"key": key})
        if key == "model_provider":
            value = validate_provider(value)
        elif key in {"history_window", "max_tokens"} and value is not None and int(value) <= 0:
            raise BadRequestError(message=f"{key} must be positive", detail={key: value})
        elif key == "use_documents" and value is None:
            value = False
        elif key == "extra" and value is None:
            value = {}
        updates[key] = value

    row = await PreferenceRepo(session).upsert(str(user_id), **updates)
    await session.commit()
    log_event(
        get_logger("services.preference"),
        logging.INFO,
        "preferences.updated",
        context=trace_context,
        fields={"user_id": str(user_id), "fields": sorted(updates.keys())},
    )
    return _effective(str(user_id), row)
