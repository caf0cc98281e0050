# src/llm_chat/backend/db/repo/preference_repo.py

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.models.preference import UserPreferenceModel


_UPDATABLE_FIELDS = {
    "model_provider",
    "model_name",
    "temperature",
    "max_tokens",
    "system_prompt",
    "history_window",
    "use_documents",
    "extra",
}


class PreferenceRepo:
    """User preferences repository (one row per user)."""

    def __init__(self, session: AsyncSession):
        self._session = session  # docstring: DB 会话（由 deps 注入）

    async def get(self, user_id: str) -> Optional[UserPreferenceModel]:
        """Fetch preferences row."""
        return await self._session.get(UserPreferenceModel, user_id)

    async def upsert(self, user_id: str, **fields: Any) -> UserPreferenceModel:
        """Create or partially update the preferences row."""  # docstring: PUT /users/me/preferences
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"unknown preference fields: {sorted(unknown)}")
        row = await self.get(user_id)
        if row is None:
            row = UserPreferenceModel(user_id=user_id, extra={})
            self._session.add(row)
        for key, value in fields.items():
            setattr(row, key, value)
        await self._session.flush()
        return row
