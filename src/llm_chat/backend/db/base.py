# src/llm_chat/backend/db/base.py

"""
[职责] ORM 基座：DeclarativeBase 与通用时间戳 mixin。
[边界] 不定义业务表；不创建引擎。
[上游关系] 无。
[下游关系] db.models 下所有模型继承 Base/TimestampMixin；engine.init_db 使用 Base.metadata。
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Timezone-aware UTC now."""  # docstring: 统一时间来源（Python 侧默认值）
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class TimestampMixin:
    """
    [职责] created_at/updated_at 通用字段。
    [边界] 使用 Python 侧默认值，避免 flush 后 server default 过期引发异步懒加载。
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="创建时间（UTC）",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="更新时间（UTC）",
    )
