# playground/conftest.py

"""
[职责] gate tests 共享 fixtures：隔离的临时 sqlite 引擎/会话与基础用户数据。
[边界] 不连接外部 provider；chat 使用 mock LLM，embedding 使用 hash provider。
[上游关系] pytest 自动加载。
[下游关系] sql_gate / service_gate / fastapi_gate 复用 session/user fixtures。
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

_REPO_ROOT = Path(__file__).resolve().parents[1]
_SRC_ROOT = _REPO_ROOT / "src"
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))  # docstring: ensure local src import

from llm_chat.backend.db.engine import create_engine, create_sessionmaker, init_db  # noqa: E402
from llm_chat.backend.db.models.user import UserModel  # noqa: E402
from llm_chat.backend.db.repo import UserRepo  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Per-test sqlite file with all tables created."""  # docstring: 防污染默认本地库
    db_file = tmp_path / "gate.db"
    eng = create_engine(url=f"sqlite+aiosqlite:///{db_file}", echo=False)
    await init_db(engine=eng)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest_asyncio.fixture
async def session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    Session = create_sessionmaker(engine)
    async with Session() as s:
        yield s


@pytest_asyncio.fixture
async def user(session: AsyncSession) -> UserModel:
    u = await UserRepo(session).create(username="alice", email="alice@example.com", display_name="Alice")
    await session.commit()
    return u


@pytest_asyncio.fixture
async def other_user(session: AsyncSession) -> UserModel:
    u = await UserRepo(session).create(username="bob")
    await session.commit()
    return u


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
