# src/llm_chat/backend/utils/errors.py

"""
[职责] 统一领域错误合同（error_code/message/detail/cause）与最小 HTTP 映射策略（http_status/retryable）。
[边界] 不依赖 FastAPI/HTTPException；不引入业务语义；仅提供通用错误壳与校验。
[上游关系] services/pipelines 抛出 DomainError 或其子类；调用方负责补充 trace_id/request_id。
[下游关系] api/errors.py 使用本模块将异常映射为 ErrorResponse 与 HTTP status。
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional, Tuple


ErrorDetail = Dict[str, Any]  # docstring: 错误细节类型（必须 JSON-safe）

ERROR_CODE_PATTERN_DOT = re.compile(r"^[a-z][a-z0-9]*(?:\.[a-z0-9_]+)+$")  # docstring: area.reason 规范

STANDARD_ERROR_CODES = {  # docstring: HTTP 层通用错误码集合
    "bad_request",
    "unauthorized",
    "not_found",
    "conflict",
    "pipeline_error",
    "external_dependency",
    "internal_error",
}

ERROR_HTTP_STATUS_BY_CODE = {  # docstring: 通用错误码 -> HTTP status
    "bad_request": 400,
    "unauthorized": 401,
    "not_found": 404,
    "conflict": 409,
    "pipeline_error": 500,
    "external_dependency": 503,
    "internal_error": 500,
}

ERROR_RETRYABLE_BY_CODE = {  # docstring: 通用错误码 -> retryable 默认值
    "bad_request": False,
    "unauthorized": False,
    "not_found": False,
    "conflict": False,
    "pipeline_error": False,
    "external_dependency": True,
    "internal_error": False,
}

INTERNAL_ERROR_CODE = "internal_error"  # docstring: 未知异常统一错误码
INTERNAL_ERROR_MESSAGE = "internal error"  # docstring: 未知异常统一消息


def is_valid_error_code(error_code: str) -> bool:
    """
    [职责] 校验错误码是否属于通用错误码或满足 area.reason 命名规范。
    [边界] 仅做格式校验，不保证全局唯一。
    [上游关系] DomainError 初始化时调用。
    [下游关系] 防止不规范错误码出现在 ErrorResponse 中。
    """

    if not error_code:
        return False
    if error_code in STANDARD_ERROR_CODES:
        return True
    return bool(ERROR_CODE_PATTERN_DOT.match(error_code))


def ensure_json_safe_detail(detail: ErrorDetail) -> ErrorDetail:
    """
    [职责] 校验 detail 是否可 JSON 序列化。
    [边界] detail 必须是 dict；不做降级或裁剪。
    [上游关系] DomainError 初始化时调用。
    [下游关系] api/errors.py 可直接将 detail 写入 ErrorResponse.detail。
    """

    if not isinstance(detail, dict):
        raise ValueError("detail must be a dict")
    try:
        json.dumps(detail)
    except TypeError as exc:
        raise ValueError("detail must be JSON-serializable") from exc
    return detail


class DomainError(Exception):
    """
    [职责] 领域错误最小合同：统一 error_code/message/detail/cause，并提供 http_status/retryable 提示。
    [边界] 仅表达语义，不承担日志、告警、HTTP 输出。
    [上游关系] services/pipelines 抛出本错误；必要时携带 cause。
    [下游关系] api/errors.py 根据本错误映射 HTTP status 与 ErrorResponse。
    """

    default_code = INTERNAL_ERROR_CODE  # docstring: 子类覆盖的默认错误码
    default_message = INTERNAL_ERROR_MESSAGE  # docstring: 子类覆盖的默认消息

    def __init__(
        self,
        *,
        error_code: Optional[str] = None,
        message: Optional[str] = None,
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
        http_status: Optional[int] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        code = error_code or self.default_code
        if not is_valid_error_code(code):
            raise ValueError(f"invalid error_code: {code}")  # docstring: 防止不规范错误码泄露
        normalized_detail = detail or {}
        ensure_json_safe_detail(normalized_detail)

        resolved_message = message or self.default_message
        super().__init__(resolved_message)
        self.error_code = code  # docstring: 稳定错误码
        self.message = resolved_message  # docstring: 用户可读错误信息
        self.detail = normalized_detail  # docstring: JSON-safe 细节
        self.cause = cause  # docstring: 上游异常引用
        self.http_status = (
            http_status if http_status is not None else ERROR_HTTP_STATUS_BY_CODE.get(code, 500)
        )  # docstring: HTTP 映射提示（显式值优先）
        self.retryable = (
            retryable if retryable is not None else ERROR_RETRYABLE_BY_CODE.get(code, False)
        )  # docstring: 可重试提示（显式值优先）

        if cause is not None:
            self.__cause__ = cause  # docstring: 保留异常链路

    def to_dict(self) -> Dict[str, Any]:
        """
        [职责] 输出 ErrorResponse.error 结构（不包含 trace_id/request_id）。
        [边界] 不做字段脱敏；不包含 cause。
        """

        return {
            "code": self.error_code,
            "message": self.message,
            "detail": self.detail,
        }


class BadRequestError(DomainError):
    """400：参数不合法或请求语义无效。"""

    default_code = "bad_request"
    default_message = "bad request"


class UnauthorizedError(DomainError):
    """401：缺失或无法识别调用方身份。"""

    default_code = "unauthorized"
    default_message = "unauthorized"


class NotFoundError(DomainError):
    """404：资源不存在，或不属于当前用户（按行级归属隐藏）。"""

    default_code = "not_found"
    default_message = "not found"


class ConflictError(DomainError):
    """409：唯一约束冲突或幂等写入冲突。"""

    default_code = "conflict"
    default_message = "conflict"


class PipelineError(DomainError):
    """500：pipeline 内部失败。"""

    default_code = "pipeline_error"
    default_message = "pipeline error"


class ExternalDependencyError(DomainError):
    """
    [职责] 表达外部依赖故障（503）语义的标准错误。
    [边界] 不绑定具体 provider；不泄露 provider 密钥或 endpoint。
    [上游关系] LLM/embedding provider 调用失败时由 services 封装抛出。
    [下游关系] api/errors.py 映射为 503 + ErrorResponse（retryable=True）。
    """

    default_code = "external_dependency"
    default_message = "external dependency error"


class InternalError(DomainError):
    """500：未知异常的统一包装；不暴露原始堆栈。"""

    default_code = INTERNAL_ERROR_CODE
    default_message = INTERNAL_ERROR_MESSAGE


def to_http_error(
    error: Exception,
    *,
    trace_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Tuple[int, Dict[str, Any]]:
    """
    [职责] 将异常转换为 HTTP status + ErrorResponse payload（不耦合 FastAPI）。
    [边界] 不做日志记录；未知异常统一降级为 internal_error。
    [上游关系] api/errors.py 捕获异常后调用。
    [下游关系] routers/exception handlers 返回统一 ErrorResponse。
    """

    if isinstance(error, DomainError):
        status_code = error.http_status
        payload = {"error": error.to_dict()}
    else:
        status_code = ERROR_HTTP_STATUS_BY_CODE[INTERNAL_ERROR_CODE]
        payload = {
            "error": {
                "code": INTERNAL_ERROR_CODE,
                "message": INTERNAL_ERROR_MESSAGE,
                "detail": {},
            }
        }  # docstring: 未知异常降级为 internal_error

    if trace_id:
        payload["error"]["trace_id"] = trace_id  # docstring: API 层注入 trace_id
    if request_id:
        payload["error"]["request_id"] = request_id  # docstring: API 层注入 request_id

    return status_code, payload
