# playground/sql_gate/test_engine_gate.py

"""
[职责] engine gate：验证 db/engine.py 的最小可用性（可创建 engine、init_db、drop_db、外键级联）。
[边界] 不跑 FastAPI；不引入 pipeline；只验证 DB 基础设施且不污染默认路径。
[上游关系] 依赖 backend/db/engine.py 与 backend/db/models 注册。
[下游关系] services/api/deps 依赖 get_session 与外键行为。
"""

from __future__ import annotations

import pytest
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from llm_chat.backend.db.engine import create_engine, drop_db, init_db, resolve_db_url
from llm_chat.backend.db.models import MessageModel, ModelMetricModel
from llm_chat.backend.db.models.user import UserModel
from llm_chat.backend.db.repo import ConversationRepo, MessageRepo, MetricsRepo


pytestmark = pytest.mark.sql_gate

EXPECTED_TABLES = {
    "user",
    "conversation",
    "message",
    "user_preferences",
    "model_metrics",
    "document",
    "document_embedding",
}


@pytest.mark.asyncio
async def test_engine_init_and_drop(tmp_path) -> None:
    """Init DB creates tables; drop DB removes them (on isolated sqlite file)."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'engine_gate.db'}"
    engine: AsyncEngine = create_engine(url=url, echo=False)
    try:
        await drop_db(engine=engine)  # docstring: 幂等（即使不存在也应安全）
        await init_db(engine=engine)

        async with engine.connect() as conn:
            rows = (await conn.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))).fetchall()
        assert EXPECTED_TABLES <= {r[0] for r in rows}

        await drop_db(engine=engine)
        async with engine.connect() as conn:
            rows2 = (await conn.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))).fetchall()
        assert not (EXPECTED_TABLES & {r[0] for r in rows2})
    finally:
        await engine.dispose()


def test_resolve_db_url_prefers_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///env.db")
    assert resolve_db_url("sqlite+aiosqlite:///override.db") == "sqlite+aiosqlite:///override.db"


@pytest.mark.asyncio
async def test_sqlite_foreign_keys_enabled(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        value = (await conn.execute(text("PRAGMA foreign_keys"))).scalar()
    assert value == 1


@pytest.mark.asyncio
async def test_delete_conversation_cascades_messages_and_nulls_metrics(
    session: AsyncSession, user: UserModel
) -> None:
    conv = await ConversationRepo(session).create(user_id=user.id, title="t")
    msg = await MessageRepo(session).create(conversation_id=conv.id, role="user", content="hi")
    metric = await MetricsRepo(session).record(
        user_id=user.id,
        conversation_id=conv.id,
        message_id=msg.id,
        provider="mock",
        model="mock",
        latency_ms=1.0,
        success=True,
    )
    await session.commit()
    metric_id = metric.id

    await ConversationRepo(session).delete(conv)
    await session.commit()
    session.expunge_all()

    remaining = (await session.scalars(select(MessageModel))).all()
    assert remaining == []
    row = await session.get(ModelMetricModel, metric_id)
    assert row is not None
    assert row.conversation_id is None  # docstring: ON DELETE SET NULL
    assert row.message_id is None
