# src/llm_chat/backend/api/schemas_http/messages.py

"""
[职责] HTTP Messages Schema：发送消息请求（含生成参数覆盖）、消息视图与发送结果。
[边界] 不暴露 prompt 全文；context 仅输出命中切块摘要。
[上游关系] routers/messages.py。
[下游关系] chat_service.send_message / conversation_service。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ._common import ConversationId, DocumentId, MessageId, OrmSchema, RequestId, TraceId


MessageRole = Literal["user", "assistant", "system"]
MessageStatus = Literal["pending", "success", "failed"]


class GenerationOverrides(BaseModel):
    """请求级生成参数覆盖（优先级最高）。"""

    model_config = ConfigDict(extra="forbid")

    model_provider: Optional[str] = Field(default=None, max_length=64)
    model_name: Optional[str] = Field(default=None, max_length=128)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    system_prompt: Optional[str] = Field(default=None)
    history_window: Optional[int] = Field(default=None, gt=0)
    use_documents: Optional[bool] = Field(default=None)


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(..., min_length=1, max_length=32000)
    overrides: Optional[GenerationOverrides] = Field(default=None)


class FeedbackRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    score: Literal[-1, 1] = Field(...)


class MessageView(OrmSchema):
    id: MessageId
    conversation_id: ConversationId
    role: MessageRole
    content: str = ""
    status: MessageStatus = "success"
    model_provider: Optional[str] = None
    model_name: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    error_message: Optional[str] = None
    request_id: Optional[str] = None
    feedback_score: Optional[int] = None
    meta_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class MessageListResponse(BaseModel):
    items: List[MessageView] = Field(default_factory=list)


class UsageView(BaseModel):
    model_config = ConfigDict(extra="allow")  # docstring: 允许 estimated 等标记

    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class ContextHitView(BaseModel):
    rank: int
    document_id: DocumentId
    title: Optional[str] = None
    chunk_index: int
    score: float
    content: str = ""


class SendMessageResponse(BaseModel):
    conversation_id: ConversationId
    conversation_title: Optional[str] = None
    user_message: MessageView
    assistant_message: MessageView
    usage: UsageView
    context: List[ContextHitView] = Field(default_factory=list)
    provider: str
    model: str
    generation_config: Dict[str, Any] = Field(default_factory=dict)
    timing_ms: Dict[str, float] = Field(default_factory=dict)
    trace_id: TraceId
    request_id: RequestId
