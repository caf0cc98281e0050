# src/llm_chat/backend/db/models/metrics.py

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from llm_chat.backend.db.base import Base, TimestampMixin


class ModelMetricModel(Base, TimestampMixin):
    """
    [职责] 模型调用指标：每次 LLM 调用一行（延迟、token、成功与否）。
    [边界] 只追加；引用的用户/会话/消息删除后置空，指标保留。
    [上游关系] chat_service 在生成成功和失败时都写入。
    [下游关系] metrics_service.summarize_models 聚合。
    """

    __tablename__ = "model_metrics"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="指标ID（UUID字符串）",
    )

    user_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="用户ID（删除后置空）",
    )

    conversation_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("conversation.id", ondelete="SET NULL"),
        nullable=True,
        comment="会话ID（删除后置空）",
    )

    message_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("message.id", ondelete="SET NULL"),
        nullable=True,
        comment="assistant 消息ID（删除后置空）",
    )

    provider: Mapped[str] = mapped_column(String(50), nullable=False, comment="LLM provider")
    model: Mapped[str] = mapped_column(String(200), nullable=False, comment="模型名")

    latency_ms: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, comment="生成耗时（毫秒）")

    prompt_tokens: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    completion_tokens: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_tokens: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, comment="调用是否成功")

    error_type: Mapped[Optional[str]] = mapped_column(
        String(120),
        nullable=True,
        comment="失败异常类型名（success=False 时）",
    )
