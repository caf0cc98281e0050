# src/llm_chat/backend/api/routers/metrics.py

"""Metrics Router：当前用户的模型调用汇总（/metrics/models）。"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.api.deps import get_current_user, get_session
from llm_chat.backend.api.schemas_http.metrics import ModelMetricsResponse, ModelMetricsView
from llm_chat.backend.db.models.user import UserModel
from llm_chat.backend.services.metrics_service import summarize_models


router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/models", response_model=ModelMetricsResponse)
async def model_metrics(
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ModelMetricsResponse:
    rows = await summarize_models(session, user_id=user.id)
    return ModelMetricsResponse(items=[ModelMetricsView.model_validate(r) for r in rows])
