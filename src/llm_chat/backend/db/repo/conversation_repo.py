# src/llm_chat/backend/db/repo/conversation_repo.py

"""
[职责] ConversationRepo：会话表的最小数据访问层（创建/查询/列举/更新/删除）。
[边界] 不加载消息（由 MessageRepo 负责）；不做归属判定（由 conversation_service 负责）。
[上游关系] conversation_service / chat_service 调用。
[下游关系] 删除会话由外键级联删除消息，model_metrics 引用置空。
"""

from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.models.conversation import ConversationModel


_UPDATABLE_FIELDS = {"title", "model_provider", "model_name", "system_prompt", "settings", "is_archived"}


class ConversationRepo:
    """Conversation repository (async SQLAlchemy)."""

    def __init__(self, session: AsyncSession):
        self._session = session  # docstring: DB 会话（由 deps 注入）

    async def get_by_id(self, conversation_id: str) -> Optional[ConversationModel]:
        """Fetch conversation by id."""
        return await self._session.get(ConversationModel, conversation_id)

    async def list_by_user(
        self,
        user_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
        include_archived: bool = False,
    ) -> List[ConversationModel]:
        """List conversations for a user (most recently updated first)."""  # docstring: UI 会话列表
        stmt = select(ConversationModel).where(ConversationModel.user_id == user_id)
        if not include_archived:
            stmt = stmt.where(ConversationModel.is_archived.is_(False))
        stmt = stmt.order_by(ConversationModel.updated_at.desc()).limit(limit).offset(offset)
        res = await self._session.scalars(stmt)
        return list(res.all())

    async def create(
        self,
        *,
        user_id: str,
        title: str | None = None,
        model_provider: str | None = None,
        model_name: str | None = None,
        system_prompt: str | None = None,
        settings: dict | None = None,
    ) -> ConversationModel:
        """Create a conversation."""
        conv = ConversationModel(
            user_id=user_id,  # docstring: 归属用户
            title=title,  # docstring: 展示标题（可空）
            model_provider=model_provider,  # docstring: 会话级 provider（可空）
            model_name=model_name,  # docstring: 会话级模型（可空）
            system_prompt=system_prompt,  # docstring: 会话级 system prompt（可空）
            settings=settings or {},  # docstring: 会话级默认参数快照
        )
        self._session.add(conv)
        await self._session.flush()  # docstring: 获取 conv.id（UUID default）
        return conv

    async def update(self, conv: ConversationModel, **fields: Any) -> ConversationModel:
        """Apply a partial update (unknown keys raise)."""  # docstring: PATCH 语义
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"unknown conversation fields: {sorted(unknown)}")
        for key, value in fields.items():
            setattr(conv, key, value)
        await self._session.flush()
        return conv

    async def rename(self, conversation_id: str, *, title: str) -> bool:
        """Rename a conversation."""  # docstring: 自动标题 / UI 改名
        conv = await self.get_by_id(conversation_id)
        if not conv:
            return False
        conv.title = title
        await self._session.flush()
        return True

    async def delete(self, conv: ConversationModel) -> None:
        """Delete a conversation (messages cascade at DB level)."""
        await self._session.delete(conv)
        await self._session.flush()
