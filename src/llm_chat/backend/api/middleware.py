# src/llm_chat/backend/api/middleware.py

"""
[职责] API Middleware：注入 trace_id/request_id 与请求耗时统计，并输出 access 日志。
[边界] 不做业务逻辑与异常映射（由 api/errors.py 负责）。
[上游关系] FastAPI 应用注册本 middleware。
[下游关系] deps/routers 读取 request.state.trace_context 与 timing_ms。
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from llm_chat.backend.schemas.audit import TraceContext
from llm_chat.backend.schemas.ids import UUIDStr, new_uuid
from llm_chat.backend.utils.constants import PARENT_REQUEST_HEADER, REQUEST_HEADER, TIMING_TOTAL_MS_KEY, TRACE_HEADER
from llm_chat.backend.utils.logging_ import get_logger, log_event


def _resolve_header_id(value: Optional[str]) -> Optional[str]:
    raw = str(value or "").strip()
    return raw or None


class TraceContextMiddleware(BaseHTTPMiddleware):
    """
    [职责] 读取或生成 trace/request id，写入 request.state 并回写响应 header。
    [边界] 不捕获异常；未知异常由 app 级 handler 转换为 ErrorResponse。
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_ts = time.perf_counter()

        trace_id = _resolve_header_id(request.headers.get(TRACE_HEADER)) or str(new_uuid())
        request_id = _resolve_header_id(request.headers.get(REQUEST_HEADER)) or str(new_uuid())
        parent_request_id = _resolve_header_id(request.headers.get(PARENT_REQUEST_HEADER))

        trace_context = TraceContext(
            trace_id=UUIDStr(trace_id),
            request_id=UUIDStr(request_id),
            parent_request_id=UUIDStr(parent_request_id) if parent_request_id else None,
            tags={},
        )
        request.state.trace_context = trace_context
        request.state.trace_id = trace_id
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        finally:
            total_ms = (time.perf_counter() - start_ts) * 1000.0
            request.state.timing_ms = {TIMING_TOTAL_MS_KEY: total_ms}

        response.headers[TRACE_HEADER] = trace_id
        response.headers[REQUEST_HEADER] = request_id
        log_event(
            get_logger("api.access"),
            logging.INFO,
            "http.request",
            context=trace_context,
            fields={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                TIMING_TOTAL_MS_KEY: round(total_ms, 3),
            },
        )
        return response
