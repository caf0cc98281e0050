# src/llm_chat/backend/utils/logging_.py

"""
[职责] 结构化日志：统一 logger 获取方式、JSON 格式化与安全输出 helper（截断/摘要）。
[边界] 不绑定具体日志后端；不强制 trace_id 注入，仅提供工具。
[上游关系] services/api 通过 get_logger/log_event 组织日志上下文。
[下游关系] stdout 日志收集系统按 trace_id/request_id 检索与排障。
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .constants import TRACE_FIELD_KEYS


DEFAULT_LOGGER_NAME = "llm_chat"  # docstring: 统一 logger 根名称
DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_MAX_TEXT_LEN = 160  # docstring: 安全文本预览长度

_HANDLER_NAME = "structured_json"

_LOG_RECORD_RESERVED = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
    "asctime",
}  # docstring: LogRecord 内置字段（不作为结构化额外字段）


class StructuredLogFormatter(logging.Formatter):
    """
    [职责] 将 LogRecord 转换为 JSON 字符串（基础字段 + extra）。
    [边界] 不做敏感字段识别；由调用方避免记录原文。
    [上游关系] configure_logging 挂载到 handler。
    [下游关系] 日志收集系统解析 JSON。
    """

    def __init__(self, *, ensure_ascii: bool = True) -> None:
        super().__init__()
        self._ensure_ascii = ensure_ascii

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _LOG_RECORD_RESERVED or value is None:
                continue
            payload[key] = value  # docstring: 合并 extra 结构化字段

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info

        return json.dumps(payload, ensure_ascii=self._ensure_ascii, default=str)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else DEFAULT_LOG_LEVEL  # docstring: 未知级别回退 INFO


def configure_logging(
    *,
    logger_name: str = DEFAULT_LOGGER_NAME,
    level: int | str = DEFAULT_LOG_LEVEL,
    ensure_ascii: bool = True,
) -> logging.Logger:
    """
    [职责] 配置项目 base logger（JSON formatter），重复调用幂等。
    [边界] 不触碰 root logger。
    [上游关系] main.create_app / 脚本入口 / get_logger 调用。
    [下游关系] 子 logger 继承 handler 输出。
    """

    resolved = _resolve_level(level)
    logger = logging.getLogger(logger_name)
    logger.setLevel(resolved)

    handler = next((h for h in logger.handlers if getattr(h, "name", "") == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler()
        handler.name = _HANDLER_NAME  # docstring: 标记 handler，避免重复挂载
        handler.setFormatter(StructuredLogFormatter(ensure_ascii=ensure_ascii))
        logger.addHandler(handler)
    handler.setLevel(resolved)

    logger.propagate = False  # docstring: 避免重复向 root 传播
    return logger


def get_logger(name: Optional[str] = None, *, level: Optional[int] = None) -> logging.Logger:
    """
    [职责] 获取项目统一 logger（挂载在 llm_chat 根 logger 下）。
    [边界] 仅在 base logger 尚未配置时做默认配置。
    [上游关系] services/api 调用。
    [下游关系] logger 输出 JSON 格式结构化日志。
    """

    base = logging.getLogger(DEFAULT_LOGGER_NAME)
    if not any(getattr(h, "name", "") == _HANDLER_NAME for h in base.handlers):
        configure_logging()
    full_name = name or DEFAULT_LOGGER_NAME
    if name and not name.startswith(DEFAULT_LOGGER_NAME):
        full_name = f"{DEFAULT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(full_name)
    if level is not None:
        logger.setLevel(level)
    return logger


def build_log_fields(
    *,
    context: Optional[Any] = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    [职责] 统一构建结构化日志字段（trace/request/实体 ids + 扩展字段）。
    [边界] 不生成缺失 trace_id；不校验字段合法性。
    [上游关系] log_event 调用。
    [下游关系] logger.extra 供 StructuredLogFormatter 输出。
    """

    fields: Dict[str, Any] = {}
    if context is not None:
        for key in TRACE_FIELD_KEYS:
            value = _read_context_value(context, key)
            if value is not None:
                fields[key] = str(value)
    if extra:
        for key, value in extra.items():
            if value is not None:
                fields[key] = value
    return fields


def log_event(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    context: Optional[Any] = None,
    fields: Optional[Mapping[str, Any]] = None,
    exc_info: Optional[Any] = None,
) -> None:
    """
    [职责] 统一记录结构化日志（自动附加 trace 字段）。
    [边界] 不处理业务语义。
    [上游关系] services/api 在关键节点调用。
    [下游关系] StructuredLogFormatter 输出 JSON。
    """

    extra = build_log_fields(context=context, extra=fields)
    logger.log(level, message, extra=extra, exc_info=exc_info)


def truncate_text(text: Optional[str], *, max_len: int = DEFAULT_MAX_TEXT_LEN) -> Optional[str]:
    """截断长文本，避免在日志中记录用户输入全文。"""

    if text is None:
        return None
    s = str(text)
    if len(s) <= max_len:
        return s
    return f"{s[:max_len]}...(truncated)"


def hash_text(text: Optional[str]) -> Optional[str]:
    """生成文本 sha256 摘要（日志去重/定位用，不作为安全认证）。"""

    if text is None:
        return None
    s = str(text)
    if not s:
        return ""
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _read_context_value(context: Any, key: str) -> Optional[Any]:
    if isinstance(context, Mapping):
        return context.get(key)
    return getattr(context, key, None)
