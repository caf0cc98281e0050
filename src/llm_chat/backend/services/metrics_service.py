# src/llm_chat/backend/services/metrics_service.py

"""
[职责] metrics_service：按 provider/model 汇总模型调用指标（调用数、失败数、平均延迟、token 合计）。
[边界] 只读聚合；不做时间分桶与告警。
[上游关系] GET /metrics/models。
[下游关系] MetricsRepo.aggregate_by_model。
"""

from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.repo import MetricsRepo


async def summarize_models(session: AsyncSession, *, user_id: str) -> List[Dict[str, Any]]:
    rows = await MetricsRepo(session).aggregate_by_model(user_id=str(user_id))
    out: List[Dict[str, Any]] = []
    for row in rows:
        calls = int(row.get("calls") or 0)
        failures = int(row.get("failures") or 0)
        out.append(
            {
                "provider": row["provider"],
                "model": row["model"],
                "calls": calls,
                "failures": failures,
                "success_rate": round((calls - failures) / calls, 4) if calls else 0.0,
                "avg_latency_ms": round(float(row.get("avg_latency_ms") or 0.0), 3),
                "prompt_tokens": int(row.get("prompt_tokens") or 0),
                "completion_tokens": int(row.get("completion_tokens") or 0),
                "total_tokens": int(row.get("total_tokens") or 0),
            }
        )
    return out
