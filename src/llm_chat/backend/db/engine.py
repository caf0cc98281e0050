# src/llm_chat/backend/db/engine.py

"""
[职责] 数据库引擎与会话工厂：创建 AsyncEngine / AsyncSession，并提供 FastAPI 可注入的 get_session。
[边界] 不包含 ORM Model 定义；不包含业务事务编排（由 service 负责）；不负责迁移。
[上游关系] config.py / 环境变量提供数据库连接配置；应用启动时调用 init_db。
[下游关系] api/deps.py、repo 层依赖 AsyncSession；tests 可复用 create_engine/create_sessionmaker。
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from llm_chat.config import REPO_ROOT, settings
from llm_chat.backend.db.base import Base


def _settings_db_url() -> str | None:
    v = str(getattr(settings, "LLM_CHAT_DATABASE_URL", "") or "").strip()
    return v or None


def _default_db_url() -> str:
    """
    Fallback: local sqlite file (repo-root/.Local/llm_chat.db).
    """  # docstring: 最小可用配置，本地开发零依赖启动
    db_path = REPO_ROOT / ".Local" / "llm_chat.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{db_path.as_posix()}"


def resolve_db_url(override: str | None = None) -> str:
    """
    Resolve database URL.

    Priority:
        1) explicit override
        2) settings: LLM_CHAT_DATABASE_URL (loads .env)
        3) env: LLM_CHAT_DATABASE_URL
        4) env: DATABASE_URL
        5) fallback: local sqlite file
    """
    if override:
        return override
    s_url = _settings_db_url()
    if s_url:
        return s_url
    env_url = os.getenv("LLM_CHAT_DATABASE_URL", "").strip()
    if env_url:
        return env_url
    env_url2 = os.getenv("DATABASE_URL", "").strip()
    if env_url2:
        return env_url2
    return _default_db_url()


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")  # docstring: SQLite 默认不执行外键约束
    cursor.close()


def create_engine(*, url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """
    Create AsyncEngine.

    NOTE:
      - For SQLite we rely on aiosqlite driver.
      - Foreign keys are enabled on every new SQLite connection so ON DELETE CASCADE works.
    """  # docstring: 生产/测试都可复用；测试可传入临时 sqlite 文件路径
    db_url = resolve_db_url(url)  # docstring: 数据库连接串
    db_echo = echo if echo is not None else (os.getenv("SQL_ECHO", "0") == "1")  # docstring: SQL 打印开关

    engine = create_async_engine(
        db_url,
        echo=db_echo,
        pool_pre_ping=True,
    )
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async sessionmaker."""  # docstring: 统一 expire_on_commit 行为，避免 service 层踩坑
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


# --- global singletons (app runtime) ---
ENGINE: AsyncEngine = create_engine()  # docstring: 默认全局引擎（生产运行时使用）
SessionLocal: async_sessionmaker[AsyncSession] = create_sessionmaker(ENGINE)  # docstring: 默认会话工厂


@asynccontextmanager
async def session_scope(*, engine: AsyncEngine | None = None) -> AsyncIterator[AsyncSession]:
    """
    Context manager for DB session.

    Usage:
      async with session_scope() as s:
          ...
    """  # docstring: 脚本/后台任务使用；事务由调用方控制 commit/rollback
    factory = SessionLocal if engine is None else create_sessionmaker(engine)
    async with factory() as session:
        yield session


async def init_db(*, engine: AsyncEngine | None = None) -> None:
    """
    Initialize database schema (create_all).

    IMPORTANT:
      - This is for MVP/local use. Production should use migrations.
      - Must import models to register tables in Base.metadata.
    """  # docstring: 供 main.py lifespan / scripts 使用
    from llm_chat.backend.db import models  # noqa: F401  # docstring: 强制注册 ORM 表

    eng = engine or ENGINE  # docstring: 允许传入测试 engine
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(*, engine: AsyncEngine | None = None) -> None:
    """
    Drop all tables (dangerous).

    Only for local/dev/tests.
    """
    from llm_chat.backend.db import models  # noqa: F401  # docstring: 确保 metadata 完整

    eng = engine or ENGINE
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def get_session() -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency.

    Example:
      async def endpoint(session: AsyncSession = Depends(get_session)): ...
    """  # docstring: 标准 async generator 依赖注入
    async with SessionLocal() as session:
        yield session
