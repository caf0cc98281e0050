# src/llm_chat/backend/schemas/audit.py

"""
[职责] Audit 契约层：TraceContext（trace/request 标识）与 ProviderSnapshot（模型调用快照）。
[边界] 不负责日志落盘；仅提供结构化字段定义。
[上游关系] middleware 创建 TraceContext；chat_service 生成 ProviderSnapshot。
[下游关系] 日志字段、message.meta_data 与 HTTP 响应复用这些结构。
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .ids import UUIDStr, new_uuid


class TraceContext(BaseModel):
    """
    [职责] TraceContext：一次 HTTP 请求的追踪上下文（trace_id/request_id）。
    [边界] 仅标识与轻量 tags；不包含 span 级别细节。
    [上游关系] TraceContextMiddleware / deps.get_trace_context 创建。
    [下游关系] services 日志与错误响应引用。
    """

    model_config = ConfigDict(extra="allow")

    trace_id: UUIDStr = Field(default_factory=new_uuid)  # docstring: 全链路追踪ID
    request_id: UUIDStr = Field(default_factory=new_uuid)  # docstring: 单次 HTTP 请求ID
    parent_request_id: Optional[UUIDStr] = Field(default=None)  # docstring: 上游请求ID（可选）
    tags: Dict[str, Any] = Field(default_factory=dict)  # docstring: 扩展 tags（user_id 等）


class ProviderSnapshot(BaseModel):
    """
    [职责] ProviderSnapshot：一次 LLM/embedding 调用的非敏感配置快照（可回放）。
    [边界] 不存储密钥；仅存模型名与参数。
    """

    model_config = ConfigDict(extra="allow")

    kind: str = Field(..., min_length=1, max_length=50)  # docstring: llm/embedder
    provider: str = Field(..., min_length=1, max_length=50)  # docstring: mock/openai/anthropic/ollama
    name: str = Field(..., min_length=1, max_length=200)  # docstring: 模型名
    params: Dict[str, Any] = Field(default_factory=dict)  # docstring: temperature/max_tokens 等
