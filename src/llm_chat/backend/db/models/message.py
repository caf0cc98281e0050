# src/llm_chat/backend/db/models/message.py

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from llm_chat.backend.db.base import Base, TimestampMixin


class MessageModel(Base, TimestampMixin):
    """
    [职责] 消息实体：一条 user/assistant/system 消息及其生成状态与 token 用量。
    [边界] 不存储完整 prompt；prompt 快照摘要放在 meta_data。
    [上游关系] chat_service 写入 user 消息与 assistant 消息（pending -> success/failed）。
    [下游关系] history 窗口加载；model_metrics 通过 message_id 关联。
    """

    __tablename__ = "message"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="消息ID（UUID字符串）",
    )

    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="会话ID（外键）",
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="角色：user/assistant/system",
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="消息正文（assistant pending 时为空串）",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="success",
        comment="状态：pending/success/failed",
    )

    model_provider: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="生成该消息的 provider（assistant 消息）",
    )

    model_name: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        comment="生成该消息的模型名（assistant 消息）",
    )

    prompt_tokens: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="prompt token 数（provider 返回时记录）",
    )

    completion_tokens: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="completion token 数",
    )

    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="失败原因（status=failed 时）",
    )

    request_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="产生该消息的 HTTP request_id",
    )

    meta_data: Mapped[dict] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
        comment="扩展字段（context 引用、timing、generation_config）",
    )

    feedback_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="用户反馈：1 赞 / -1 踩",
    )
