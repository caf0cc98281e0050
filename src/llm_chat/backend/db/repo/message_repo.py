# src/llm_chat/backend/db/repo/message_repo.py

"""
[职责] MessageRepo：消息表的最小数据访问层（创建消息、加载历史、回写 response/status/feedback）。
[边界] 不执行生成（由 pipelines/services 负责）；仅维护消息持久化与历史窗口。
[上游关系] chat_service 创建 user/assistant 消息；生成结束后回写 content/status。
[下游关系] model_metrics 通过 message_id 归属；UI 展示消息历史与反馈。
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.utils.constants import MESSAGE_STATUS_PENDING, MESSAGE_STATUS_SUCCESS
from llm_chat.backend.db.models.message import MessageModel


class MessageRepo:
    """Message repository (async SQLAlchemy)."""

    def __init__(self, session: AsyncSession):
        self._session = session  # docstring: DB 会话（由 deps 注入）

    async def get_by_id(self, message_id: str) -> Optional[MessageModel]:
        """Fetch message by id."""
        return await self._session.get(MessageModel, message_id)

    async def create(
        self,
        *,
        conversation_id: str,
        role: str,
        content: str,
        status: str = MESSAGE_STATUS_SUCCESS,
        model_provider: str | None = None,
        model_name: str | None = None,
        request_id: str | None = None,
        meta_data: dict | None = None,
    ) -> MessageModel:
        """Create a message."""  # docstring: user 消息直接 success；assistant 消息先 pending
        msg = MessageModel(
            conversation_id=conversation_id,
            role=role,
            content=content,
            status=status,
            model_provider=model_provider,
            model_name=model_name,
            request_id=request_id,
            meta_data=meta_data or {},
        )
        self._session.add(msg)
        await self._session.flush()  # docstring: 获取 msg.id
        return msg

    async def list_by_conversation(self, conversation_id: str, *, limit: int = 100) -> List[MessageModel]:
        """Latest `limit` messages in chronological order."""  # docstring: UI 消息列表
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.desc())
            .limit(limit)
        )
        res = await self._session.scalars(stmt)
        return list(reversed(res.all()))

    async def list_history(
        self,
        *,
        conversation_id: str,
        limit: int,
    ) -> List[MessageModel]:
        """
        Load successful message history for a conversation (chronological order).
        """  # docstring: 用于 history_window 窗口加载；failed/pending 消息不进入上下文
        if limit <= 0:
            return []
        stmt = select(MessageModel).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.status == MESSAGE_STATUS_SUCCESS,
        )
        stmt = stmt.order_by(MessageModel.created_at.desc()).limit(limit)
        res = await self._session.scalars(stmt)
        return list(reversed(res.all()))

    async def count_by_conversation(self, conversation_id: str) -> int:
        """Count messages in a conversation."""
        stmt = select(func.count(MessageModel.id)).where(MessageModel.conversation_id == conversation_id)
        return int(await self._session.scalar(stmt) or 0)

    async def set_response(
        self,
        message_id: str,
        *,
        content: str,
        status: str = MESSAGE_STATUS_SUCCESS,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        error_message: str | None = None,
        meta_data: dict | None = None,
    ) -> bool:
        """Write back LLM response and status."""  # docstring: generation 完成后的回写入口
        msg = await self.get_by_id(message_id)
        if not msg:
            return False
        if msg.status != MESSAGE_STATUS_PENDING:
            raise ValueError(f"message {message_id} is not pending (status={msg.status})")
        msg.content = content
        msg.status = status
        msg.prompt_tokens = prompt_tokens
        msg.completion_tokens = completion_tokens
        msg.error_message = error_message
        if meta_data:
            msg.meta_data = {**(msg.meta_data or {}), **meta_data}  # docstring: 新 dict 触发 JSON 变更检测
        await self._session.flush()
        return True

    async def set_feedback(self, message_id: str, *, score: int) -> bool:
        """Set user feedback for a message."""  # docstring: UI 赞/踩回写
        msg = await self.get_by_id(message_id)
        if not msg:
            return False
        msg.feedback_score = score
        await self._session.flush()
        return True
