# src/llm_chat/backend/api/schemas_http/metrics.py

"""HTTP Metrics Schema：按 provider/model 的调用汇总。"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class ModelMetricsView(BaseModel):
    provider: str
    model: str
    calls: int = 0
    failures: int = 0
    success_rate: float = 0.0
    avg_latency_ms: float = 0.0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ModelMetricsResponse(BaseModel):
    items: List[ModelMetricsView] = Field(default_factory=list)
