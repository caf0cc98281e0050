# src/llm_chat/backend/schemas/ids.py

"""
[职责] ID 契约层：统一系统内各类实体 ID 的类型别名与生成策略（UUID v4 string）。
[边界] 不依赖数据库 ORM；仅提供类型与工具函数。
[上游关系] 无（纯工具/契约层）。
[下游关系] db models 默认主键、middleware 生成 trace/request id、HTTP schema 的 ID 类型。
"""

from __future__ import annotations

from typing import NewType
from uuid import UUID, uuid4


UUIDStr = NewType("UUIDStr", str)  # docstring: 统一 UUID 字符串类型（运行时仍为 str）

UserId = UUIDStr  # docstring: user.id
ConversationId = UUIDStr  # docstring: conversation.id
MessageId = UUIDStr  # docstring: message.id
DocumentId = UUIDStr  # docstring: document.id
TraceId = UUIDStr  # docstring: trace_id（跨请求链路）
RequestId = UUIDStr  # docstring: request_id（单次请求）


def new_uuid() -> UUIDStr:
    """Generate UUID v4 as string."""  # docstring: 系统内唯一 ID 的默认生成策略
    return UUIDStr(str(uuid4()))


def is_uuid_str(value: str) -> bool:
    """Return True if value parses as UUID string."""  # docstring: 轻量校验工具（不抛异常）
    try:
        UUID(str(value))
        return True
    except (TypeError, ValueError):
        return False
