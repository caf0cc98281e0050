# src/llm_chat/backend/pipelines/base/timing.py

"""
[职责] 阶段计时：为 chat/ingest 流程收集各阶段耗时（ms），导出可 JSON 序列化的 timing_ms。
[边界] 不做分布式 tracing；不写日志。
[上游关系] chat_service / document_service 用 stage(...) 包裹 history/retrieve/generate/embed 等阶段。
[下游关系] message.meta_data["timing_ms"]、HTTP 响应 timing_ms、model_metrics.latency_ms。
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

from llm_chat.backend.utils.constants import TIMING_TOTAL_MS_KEY


def _now_ms() -> float:
    return time.perf_counter() * 1000.0


@dataclass
class TimingCollector:
    """
    [职责] 单请求内的阶段计时容器。
    [边界] 非线程安全；假设单协程内使用。同名 stage 默认覆盖，accumulate=True 时累加。
    """

    _stages_ms: Dict[str, float] = field(default_factory=dict)
    _start_ms: float = field(default_factory=_now_ms)

    def add_ms(self, key: str, ms: float, *, accumulate: bool = True) -> None:
        """Record a stage duration; negative values clamp to 0."""
        name = str(key).strip()
        if not name:
            return
        value = max(float(ms), 0.0)
        if accumulate:
            self._stages_ms[name] = self._stages_ms.get(name, 0.0) + value
        else:
            self._stages_ms[name] = value

    @contextmanager
    def stage(self, key: str, *, accumulate: bool = False) -> Iterator[None]:
        """with timing.stage("generate"): ..."""
        start = _now_ms()
        try:
            yield
        finally:
            self.add_ms(key, _now_ms() - start, accumulate=accumulate)

    def get(self, key: str, default: Optional[float] = None) -> Optional[float]:
        return self._stages_ms.get(key, default)

    def total_ms(self) -> float:
        return _now_ms() - self._start_ms

    def to_dict(self, *, include_total: bool = True, total_key: str = TIMING_TOTAL_MS_KEY) -> Dict[str, float]:
        out = {k: round(v, 3) for k, v in self._stages_ms.items()}
        if include_total:
            out[total_key] = round(self.total_ms(), 3)
        return out
