# src/llm_chat/backend/schemas/conversation.py

"""
[职责] Conversation 契约层：会话级生成参数 ConversationSettings（类型与取值范围）。
[边界] 只约束 settings JSON 的 key/value；provider/model 由 conversation 列单独保存。
[上游关系] HTTP 会话创建/更新请求；conversation_service 写入前复核。
[下游关系] chat_service 解析生成配置时读取 conversation.settings。
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ConversationSettings(BaseModel):
    """
    [职责] 会话级生成参数白名单；None 表示未设置（PATCH 中表示移除该 key）。
    [边界] 取值范围与请求级 GenerationOverrides 保持一致。
    """

    model_config = ConfigDict(extra="forbid")

    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    history_window: Optional[int] = Field(default=None, gt=0)
    use_documents: Optional[bool] = Field(default=None)
