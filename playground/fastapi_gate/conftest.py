# playground/fastapi_gate/conftest.py

"""
[职责] fastapi gate fixtures：基于 create_app 的 ASGI client（session 依赖替换为临时库）。
[边界] 不启动 lifespan（表由上层 engine fixture 创建）；不访问外部 provider。
[上游关系] backend/main.py、backend/api/deps.py。
[下游关系] routers gate tests。
"""

from __future__ import annotations

from typing import AsyncIterator, Dict

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.api.deps import get_session
from llm_chat.backend.main import create_app
from llm_chat.config import settings


API = settings.API_PREFIX.rstrip("/")


@pytest_asyncio.fixture
async def client(session: AsyncSession) -> AsyncIterator[AsyncClient]:
    async def _override_session() -> AsyncIterator[AsyncSession]:
        yield session  # docstring: reuse test session

    app = create_app()
    app.dependency_overrides[get_session] = _override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def register(client: AsyncClient, username: str) -> Dict[str, str]:
    """Create a user through the API and return auth headers for it."""
    resp = await client.post(f"{API}/users", json={"username": username})
    assert resp.status_code == 201, resp.text
    return {"x-user-id": resp.json()["id"]}
