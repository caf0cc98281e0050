# src/llm_chat/backend/utils/constants.py

"""
[职责] 集中定义协议字段名与领域枚举值（trace/timing/message role/status），降低跨模块硬编码。
[边界] 不包含运行时可变配置；不读取环境变量。
[上游关系] services/api/pipelines 在构建记录与响应时引用。
[下游关系] schemas/db/logging 使用一致字段名以便审计与回放。
"""

from __future__ import annotations


TRACE_ID_KEY = "trace_id"  # docstring: trace_id 字段
REQUEST_ID_KEY = "request_id"  # docstring: request_id 字段
PARENT_REQUEST_ID_KEY = "parent_request_id"  # docstring: parent_request_id 字段
USER_ID_KEY = "user_id"  # docstring: user_id 字段
CONVERSATION_ID_KEY = "conversation_id"  # docstring: conversation_id 字段
MESSAGE_ID_KEY = "message_id"  # docstring: message_id 字段
DOCUMENT_ID_KEY = "document_id"  # docstring: document_id 字段

TRACE_FIELD_KEYS = (  # docstring: 结构化日志推荐字段集合
    TRACE_ID_KEY,
    REQUEST_ID_KEY,
    PARENT_REQUEST_ID_KEY,
    USER_ID_KEY,
    CONVERSATION_ID_KEY,
    MESSAGE_ID_KEY,
    DOCUMENT_ID_KEY,
)

TRACE_HEADER = "x-trace-id"  # docstring: trace header 约定
REQUEST_HEADER = "x-request-id"  # docstring: request header 约定
PARENT_REQUEST_HEADER = "x-parent-request-id"  # docstring: parent request header（可选）
USER_HEADER = "x-user-id"  # docstring: 调用方身份 header

TIMING_MS_KEY = "timing_ms"  # docstring: timing_ms 字段
TIMING_TOTAL_MS_KEY = "total_ms"  # docstring: timing_ms 的总耗时 key

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"
MESSAGE_ROLES = (ROLE_USER, ROLE_ASSISTANT, ROLE_SYSTEM)

MESSAGE_STATUS_PENDING = "pending"
MESSAGE_STATUS_SUCCESS = "success"
MESSAGE_STATUS_FAILED = "failed"

CONVERSATION_TITLE_MAX_CHARS = 60  # docstring: 自动标题截断长度
