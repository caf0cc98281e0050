# src/llm_chat/backend/api/errors.py

"""
[职责] API 错误映射：将异常统一转换为 ErrorResponse 与 HTTP status，并注册应用级 exception handlers。
[边界] 仅对未知异常记录日志（领域错误由 service 记录）；trace/request 由 middleware 注入。
[上游关系] routers 捕获 DomainError 后调用 to_json_response；main.create_app 调用 register_exception_handlers。
[下游关系] 返回 ErrorResponse 供前端/审计系统消费。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from llm_chat.backend.schemas.ids import new_uuid
from llm_chat.backend.utils.constants import REQUEST_HEADER, TRACE_HEADER
from llm_chat.backend.utils.errors import BadRequestError, DomainError, to_http_error
from llm_chat.backend.utils.logging_ import get_logger, log_event
from llm_chat.backend.api.schemas_http._common import ErrorResponse


def _ensure_trace_id(trace_id: Optional[str]) -> str:
    raw = str(trace_id or "").strip()
    if raw:
        return raw
    return str(new_uuid())  # docstring: 无 trace_id 时生成兜底


def to_error_response(
    error: Exception,
    *,
    trace_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Tuple[int, ErrorResponse]:
    """
    [职责] 将异常转换为 (status_code, ErrorResponse)。
    [边界] 不写 header；不记录日志。
    """
    resolved_trace_id = _ensure_trace_id(trace_id)
    status_code, payload = to_http_error(error, trace_id=resolved_trace_id, request_id=request_id)
    return status_code, ErrorResponse.model_validate(payload)


def to_json_response(
    error: Exception,
    *,
    trace_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> JSONResponse:
    """
    [职责] 将异常转换为 JSONResponse（含 x-trace-id / x-request-id header 回写）。
    [边界] 不修改 error 语义。
    """
    status_code, response = to_error_response(error, trace_id=trace_id, request_id=request_id)
    content: Dict[str, Any] = response.model_dump(mode="json")

    headers: Dict[str, str] = {TRACE_HEADER: str(response.error.trace_id)}
    if request_id:
        headers[REQUEST_HEADER] = str(request_id)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _trace_ids(request: Request) -> Tuple[Optional[str], Optional[str]]:
    ctx = getattr(request.state, "trace_context", None)
    if ctx is None:
        return None, None
    return str(ctx.trace_id), str(ctx.request_id)


async def _domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    trace_id, request_id = _trace_ids(request)
    return to_json_response(exc, trace_id=trace_id, request_id=request_id)


async def _validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    trace_id, request_id = _trace_ids(request)
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    error = BadRequestError(
        message="request validation failed",
        detail={"errors": jsonable_encoder(errors, custom_encoder={Exception: str})},
    )
    return to_json_response(error, trace_id=trace_id, request_id=request_id)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    trace_id, request_id = _trace_ids(request)
    log_event(
        get_logger("api"),
        logging.ERROR,
        "api.unhandled_error",
        context=getattr(request.state, "trace_context", None),
        fields={"path": request.url.path, "method": request.method, "error_type": exc.__class__.__name__},
        exc_info=exc,
    )
    return to_json_response(exc, trace_id=trace_id, request_id=request_id)  # docstring: 降级为 internal_error


def register_exception_handlers(app: FastAPI) -> None:
    """
    [职责] 注册 DomainError / RequestValidationError / Exception 三类处理器。
    [边界] 校验错误统一映射为 bad_request(400)，与领域错误共用同一 envelope。
    """
    app.add_exception_handler(DomainError, _domain_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
