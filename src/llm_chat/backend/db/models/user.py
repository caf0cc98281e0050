# src/llm_chat/backend/db/models/user.py

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from llm_chat.backend.db.base import Base, TimestampMixin


class UserModel(Base, TimestampMixin):
    """
    [职责] 用户实体：会话、文档、偏好与模型指标的归属主体。
    [边界] 不实现密码/鉴权；调用方身份由 x-user-id header 解析。
    [上游关系] POST /users 或 scripts/init_db --seed 创建。
    [下游关系] conversation/document/user_preferences 通过 user_id 外键级联删除。
    """

    __tablename__ = "user"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="用户ID（UUID字符串）",
    )

    username: Mapped[str] = mapped_column(
        String(80),
        unique=True,
        nullable=False,
        index=True,
        comment="用户名（全局唯一）",
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        comment="邮箱（可空，唯一）",
    )

    display_name: Mapped[Optional[str]] = mapped_column(
        String(120),
        nullable=True,
        comment="展示名称",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="启用状态（禁用用户不可调用 API）",
    )
