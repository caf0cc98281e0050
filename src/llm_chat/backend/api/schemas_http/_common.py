# src/llm_chat/backend/api/schemas_http/_common.py

"""
[职责] HTTP Schema 公共组件：ErrorResponse 与通用 ID 类型，作为 API 契约基础。
[边界] 仅描述 HTTP 输入/输出结构；不负责 trace 注入、异常映射或业务逻辑。
[上游关系] api/errors 将 DomainError 映射到 ErrorResponse。
[下游关系] api/schemas_http/{users,conversations,messages,documents,metrics} 复用本模块结构。
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from llm_chat.backend.schemas.ids import ConversationId, DocumentId, MessageId, RequestId, TraceId, UserId, UUIDStr

__all__ = [
    "UUIDStr",
    "UserId",
    "ConversationId",
    "MessageId",
    "DocumentId",
    "TraceId",
    "RequestId",
    "ErrorCode",
    "ErrorInfo",
    "ErrorResponse",
    "OrmSchema",
]

ErrorCode = Literal[
    "bad_request",
    "unauthorized",
    "not_found",
    "conflict",
    "pipeline_error",
    "external_dependency",
    "internal_error",
]  # docstring: HTTP 层标准错误码

ErrorDetail = Dict[str, Any]  # docstring: ErrorResponse.error.detail 结构（必须 JSON-safe）


class ErrorInfo(BaseModel):
    """
    [职责] ErrorInfo：统一错误载体（code/message/trace_id/request_id/detail）。
    [边界] 不包含 HTTP status/retryable；这些由 api/errors.py 决定。
    """

    model_config = ConfigDict(extra="forbid")  # docstring: 锁死错误字段，避免 drift

    code: ErrorCode = Field(...)
    message: str = Field(..., min_length=1)
    trace_id: TraceId = Field(...)  # docstring: 全链路追踪ID（由 middleware 注入）
    request_id: Optional[RequestId] = Field(default=None)  # docstring: 单次请求ID
    detail: ErrorDetail = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """ErrorResponse：HTTP 错误响应的顶层包裹结构。"""

    model_config = ConfigDict(extra="forbid")

    error: ErrorInfo = Field(...)


class OrmSchema(BaseModel):
    """响应模型基类：允许从 ORM 对象或 dict 构造。"""

    model_config = ConfigDict(from_attributes=True)
