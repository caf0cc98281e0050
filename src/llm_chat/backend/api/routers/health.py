# src/llm_chat/backend/api/routers/health.py

"""
[职责] Health Router：提供服务健康检查（DB ping）与版本摘要。
[边界] 不执行业务逻辑；不调用 LLM provider；仅探测 DB 可用性。
[上游关系] 运维/监控系统调用健康检查接口。
[下游关系] DB 会话执行轻量查询。
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.api.deps import get_session


router = APIRouter(prefix="/health", tags=["health"])  # docstring: health 路由前缀（不挂 API_PREFIX）


@router.get("")
async def health_check(session: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    """
    [职责] 检测 DB 可用性并返回健康摘要。
    [边界] DB 不可用时返回 degraded 而非 5xx，便于探针读取原因。
    """
    status = "ok"
    db_status: Dict[str, Any] = {"ok": True}

    try:
        await session.execute(text("SELECT 1"))  # docstring: DB ping（最小读）
    except Exception as exc:
        db_status["ok"] = False
        db_status["error"] = f"{exc.__class__.__name__}: {exc}"
        status = "degraded"

    return {
        "status": status,
        "db": db_status,
        "version": {"api": "v1"},
    }
