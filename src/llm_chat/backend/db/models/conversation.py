# src/llm_chat/backend/db/models/conversation.py

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from llm_chat.backend.db.base import Base, TimestampMixin


class ConversationModel(Base, TimestampMixin):
    """
    [职责] 会话实体：一组消息的容器，携带会话级模型选择与 system prompt。
    [边界] 不直接加载消息（由 MessageRepo 负责）；归属校验在 service 层完成。
    [上游关系] conversation_service 创建/更新。
    [下游关系] message 通过 conversation_id 级联删除；model_metrics 置空引用。
    """

    __tablename__ = "conversation"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="会话ID（UUID字符串）",
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="用户ID（外键）",
    )

    title: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        comment="会话标题（为空时由首条消息自动生成）",
    )

    model_provider: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="会话级默认 LLM provider（可空，回退到用户偏好）",
    )

    model_name: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        comment="会话级默认模型名（可空）",
    )

    system_prompt: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="会话级 system prompt（可空）",
    )

    settings: Mapped[dict] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
        comment="会话级生成参数（temperature/max_tokens/history_window/use_documents）",
    )

    is_archived: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="归档标记（默认列表中隐藏）",
    )
