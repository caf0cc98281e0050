# src/llm_chat/backend/main.py

"""
[职责] FastAPI 应用装配：CORS、TraceContextMiddleware、异常处理器、路由挂载与 lifespan 建表。
[边界] 不包含业务逻辑；路由前缀由 settings.API_PREFIX 决定（/health 不加前缀）。
[上游关系] uvicorn / llm-chat-api 入口启动。
[下游关系] api/routers/* 处理请求。
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from llm_chat.backend.api.errors import register_exception_handlers
from llm_chat.backend.api.middleware import TraceContextMiddleware
from llm_chat.backend.api.routers import conversations, documents, health, messages, metrics, users
from llm_chat.backend.db.engine import ENGINE, init_db
from llm_chat.backend.utils.logging_ import configure_logging, get_logger, log_event
from llm_chat.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """启动时按 AUTO_CREATE_TABLES 建表；关闭时释放连接池。"""
    logger = get_logger("app")
    if settings.AUTO_CREATE_TABLES:
        await init_db()
    log_event(
        logger,
        logging.INFO,
        "app.startup",
        fields={"api_prefix": settings.API_PREFIX, "auto_create_tables": settings.AUTO_CREATE_TABLES},
    )
    yield
    await ENGINE.dispose()
    log_event(logger, logging.INFO, "app.shutdown")


def create_app() -> FastAPI:
    configure_logging(level=settings.LOG_LEVEL)

    app = FastAPI(title="llm-chat", version="0.1.0", debug=settings.DEBUG, lifespan=lifespan)

    origins = list(settings.CORS_ALLOW_ORIGINS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,  # docstring: 通配 origin 不可携带凭证
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-trace-id", "x-request-id"],
    )
    app.add_middleware(TraceContextMiddleware)
    register_exception_handlers(app)

    app.include_router(health.router)
    prefix = settings.API_PREFIX.rstrip("/")
    for module in (users, conversations, messages, documents, metrics):
        app.include_router(module.router, prefix=prefix)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "llm_chat.backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
