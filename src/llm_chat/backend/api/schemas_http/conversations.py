# src/llm_chat/backend/api/schemas_http/conversations.py

"""
[职责] HTTP Conversations Schema：会话创建/更新请求与会话视图。
[边界] settings 由 ConversationSettings 约束类型与范围（conversation_service 写入前复核）。
[上游关系] routers/conversations.py。
[下游关系] conversation_service。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from llm_chat.backend.schemas.conversation import ConversationSettings

from ._common import ConversationId, OrmSchema, UserId


__all__ = [
    "ConversationSettings",
    "ConversationCreateRequest",
    "ConversationUpdateRequest",
    "ConversationView",
    "ConversationListResponse",
]


class ConversationCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, max_length=255)
    model_provider: Optional[str] = Field(default=None, max_length=64)
    model_name: Optional[str] = Field(default=None, max_length=128)
    system_prompt: Optional[str] = Field(default=None)
    settings: ConversationSettings = Field(default_factory=ConversationSettings)


class ConversationUpdateRequest(BaseModel):
    """PATCH 请求：未出现的字段保持不变（model_fields_set 判定）。"""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, max_length=255)
    model_provider: Optional[str] = Field(default=None, max_length=64)
    model_name: Optional[str] = Field(default=None, max_length=128)
    system_prompt: Optional[str] = Field(default=None)
    settings: Optional[ConversationSettings] = Field(default=None)  # docstring: 合并更新；值为 null 的 key 被移除
    is_archived: Optional[bool] = Field(default=None)  # docstring: 不可为 null（service 返回 bad_request）


class ConversationView(OrmSchema):
    id: ConversationId
    user_id: UserId
    title: Optional[str] = None
    model_provider: Optional[str] = None
    model_name: Optional[str] = None
    system_prompt: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    is_archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConversationListResponse(BaseModel):
    items: List[ConversationView] = Field(default_factory=list)
    limit: int
    offset: int
