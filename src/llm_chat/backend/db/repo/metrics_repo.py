# src/llm_chat/backend/db/repo/metrics_repo.py

"""
[职责] MetricsRepo：模型调用指标的追加写入与按 provider/model 聚合。
[边界] 不做时间窗口分桶；不写日志。
[上游关系] chat_service 每次生成后写入；metrics_service 读取聚合。
"""

from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.models.metrics import ModelMetricModel


class MetricsRepo:
    """Model metrics repository (append-only)."""

    def __init__(self, session: AsyncSession):
        self._session = session  # docstring: DB 会话（由 deps 注入）

    async def record(
        self,
        *,
        provider: str,
        model: str,
        latency_ms: float,
        success: bool,
        user_id: str | None = None,
        conversation_id: str | None = None,
        message_id: str | None = None,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        total_tokens: int | None = None,
        error_type: str | None = None,
    ) -> ModelMetricModel:
        """Append one metrics row."""
        row = ModelMetricModel(
            user_id=user_id,
            conversation_id=conversation_id,
            message_id=message_id,
            provider=provider,
            model=model,
            latency_ms=float(latency_ms),
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            success=success,
            error_type=error_type,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def aggregate_by_model(self, *, user_id: str | None = None) -> List[Dict[str, Any]]:
        """Aggregate calls/failures/latency/tokens per (provider, model)."""
        stmt = select(
            ModelMetricModel.provider,
            ModelMetricModel.model,
            func.count(ModelMetricModel.id).label("calls"),
            func.sum(case((ModelMetricModel.success.is_(False), 1), else_=0)).label("failures"),
            func.avg(ModelMetricModel.latency_ms).label("avg_latency_ms"),
            func.coalesce(func.sum(ModelMetricModel.prompt_tokens), 0).label("prompt_tokens"),
            func.coalesce(func.sum(ModelMetricModel.completion_tokens), 0).label("completion_tokens"),
            func.coalesce(func.sum(ModelMetricModel.total_tokens), 0).label("total_tokens"),
        )
        if user_id is not None:
            stmt = stmt.where(ModelMetricModel.user_id == user_id)
        stmt = stmt.group_by(ModelMetricModel.provider, ModelMetricModel.model).order_by(
            ModelMetricModel.provider, ModelMetricModel.model
        )
        rows = (await self._session.execute(stmt)).all()
        return [dict(r._mapping) for r in rows]
