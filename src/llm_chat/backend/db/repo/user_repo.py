# src/llm_chat/backend/db/repo/user_repo.py

"""
[职责] UserRepo：用户表的最小数据访问层（创建 + 查询 + 启停）。
[边界] 不实现鉴权/密码校验；不实现业务流程（由 service/api 层负责）。
[上游关系] POST /users、scripts/init_db --seed 创建用户；deps.get_current_user 校验用户存在性。
[下游关系] conversation/document/preferences 的归属依赖 user；删除用户由外键级联清理。
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.models.user import UserModel


class UserRepo:
    """User repository (async SQLAlchemy)."""

    def __init__(self, session: AsyncSession):
        self._session = session  # docstring: DB 会话（由 deps 注入）

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        """Fetch user by id."""  # docstring: 用于请求身份解析与归属检查
        return await self._session.get(UserModel, user_id)

    async def get_by_username(self, username: str) -> Optional[UserModel]:
        """Fetch user by username."""  # docstring: 注册查重 / seed 幂等
        stmt = select(UserModel).where(UserModel.username == username)
        return await self._session.scalar(stmt)

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        """Fetch user by email."""
        stmt = select(UserModel).where(UserModel.email == email)
        return await self._session.scalar(stmt)

    async def create(
        self,
        *,
        username: str,
        email: str | None = None,
        display_name: str | None = None,
        is_active: bool = True,
    ) -> UserModel:
        """Create a user."""
        user = UserModel(
            username=username,  # docstring: 用户名（唯一）
            email=email,  # docstring: 邮箱（可空）
            display_name=display_name,  # docstring: 展示名（可空）
            is_active=is_active,  # docstring: 启用状态
        )
        self._session.add(user)
        await self._session.flush()  # docstring: 获取 user.id（UUID default）
        return user

    async def set_active(self, user_id: str, *, is_active: bool) -> bool:
        """Enable/disable user."""  # docstring: 软禁用用户，不删除历史
        user = await self.get_by_id(user_id)
        if not user:
            return False
        user.is_active = is_active
        await self._session.flush()
        return True
