# src/llm_chat/backend/db/models/preference.py

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from llm_chat.backend.db.base import Base, TimestampMixin


class UserPreferenceModel(Base, TimestampMixin):
    """
    [职责] 用户偏好：每个用户一行，保存默认模型选择与生成参数。
    [边界] 所有字段可空；空值回退到 settings 默认值（由 service 合并）。
    [上游关系] PUT /users/me/preferences 写入。
    [下游关系] chat_service 解析生成配置时读取。
    """

    __tablename__ = "user_preferences"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        primary_key=True,
        comment="用户ID（主键 + 外键）",
    )

    model_provider: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="默认 provider")
    model_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, comment="默认模型名")
    temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True, comment="默认 temperature")
    max_tokens: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="默认 max_tokens")
    system_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="默认 system prompt")
    history_window: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="历史消息窗口")

    use_documents: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="是否默认检索用户文档作为上下文",
    )

    extra: Mapped[dict] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
        comment="UI 等其他偏好（不参与生成）",
    )
