# src/llm_chat/backend/services/chat_service.py

"""
[职责] chat_service：一轮对话的服务入口（归属校验 + 配置解析 + 消息落库 + 上下文组装 + 生成 + 指标）。
[边界] 不处理 HTTP 语义；不直接调用 provider SDK（经 pipelines.generation）；负责事务边界。
[上游关系] api/routers/messages.py 调用 send_message(...)；依赖 TraceContext 与 session 注入。
[下游关系] message / model_metrics / conversation.title 写回；返回 JSON-safe 结果。
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.config import settings
from llm_chat.backend.db.models.conversation import ConversationModel
from llm_chat.backend.db.models.preference import UserPreferenceModel
from llm_chat.backend.db.repo import ConversationRepo, MessageRepo, MetricsRepo
from llm_chat.backend.pipelines.base.timing import TimingCollector
from llm_chat.backend.pipelines.generation.generator import UnsupportedProviderError, normalize_provider, run_generation
from llm_chat.backend.pipelines.generation.prompt import build_messages_snapshot
from llm_chat.backend.schemas.audit import ProviderSnapshot, TraceContext
from llm_chat.backend.utils.constants import (
    CONVERSATION_TITLE_MAX_CHARS,
    MESSAGE_STATUS_FAILED,
    MESSAGE_STATUS_PENDING,
    MESSAGE_STATUS_SUCCESS,
    REQUEST_ID_KEY,
    ROLE_ASSISTANT,
    ROLE_USER,
    TIMING_MS_KEY,
    TRACE_ID_KEY,
)
from llm_chat.backend.utils.errors import BadRequestError, DomainError, ExternalDependencyError, PipelineError
from llm_chat.backend.utils.logging_ import get_logger, log_event, truncate_text
from llm_chat.backend.services import document_service
from llm_chat.backend.services.conversation_service import get_owned_conversation, serialize_message
from llm_chat.backend.services.preference_service import get_stored_preferences


OVERRIDE_KEYS = (
    "model_provider",
    "model_name",
    "temperature",
    "max_tokens",
    "system_prompt",
    "history_window",
    "use_documents",
)  # docstring: 请求级可覆盖的生成参数

DEFAULT_MODEL_BY_PROVIDER = {
    "mock": "mock",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-latest",
    "ollama": "llama3.1",
}  # docstring: provider 被覆盖但未指定模型时的默认模型

_WS_RE = re.compile(r"\s+")

_SETTING_TYPES = {
    "temperature": TypeAdapter(float),
    "max_tokens": TypeAdapter(int),
    "history_window": TypeAdapter(int),
    "use_documents": TypeAdapter(bool),
}  # docstring: 解析后的类型约束（"false" -> False，"hot" 拒绝）


def _conversation_layer(conv: ConversationModel) -> Dict[str, Any]:
    layer = dict(conv.settings or {})
    layer["model_provider"] = conv.model_provider
    layer["model_name"] = conv.model_name
    layer["system_prompt"] = conv.system_prompt
    return layer


def _preference_layer(prefs: Optional[UserPreferenceModel]) -> Dict[str, Any]:
    if prefs is None:
        return {}
    return {
        "model_provider": prefs.model_provider,
        "model_name": prefs.model_name,
        "temperature": prefs.temperature,
        "max_tokens": prefs.max_tokens,
        "system_prompt": prefs.system_prompt,
        "history_window": prefs.history_window,
        "use_documents": prefs.use_documents,
    }


def _settings_layer() -> Dict[str, Any]:
    return {
        "model_provider": settings.DEFAULT_CHAT_PROVIDER,
        "model_name": settings.DEFAULT_CHAT_MODEL,
        "temperature": settings.DEFAULT_TEMPERATURE,
        "max_tokens": settings.DEFAULT_MAX_TOKENS,
        "system_prompt": settings.DEFAULT_SYSTEM_PROMPT,
        "history_window": settings.HISTORY_WINDOW,
        "use_documents": False,
    }


def resolve_generation_settings(
    *,
    overrides: Optional[Mapping[str, Any]],
    conversation: ConversationModel,
    preferences: Optional[UserPreferenceModel],
) -> Dict[str, Any]:
    """
    [职责] 按优先级解析生成配置：request > conversation > user preferences > settings。
    [边界] None 视为未设置；model_name 只从不低于 provider 来源的层读取，避免 provider/模型错配。
    [上游关系] send_message 调用。
    [下游关系] 返回值含 "sources"（每个 key 的来源层）供审计。
    """
    layers: List[Tuple[str, Mapping[str, Any]]] = [
        ("request", dict(overrides or {})),
        ("conversation", _conversation_layer(conversation)),
        ("preferences", _preference_layer(preferences)),
        ("settings", _settings_layer()),
    ]

    resolved: Dict[str, Any] = {}
    sources: Dict[str, str] = {}
    for key in OVERRIDE_KEYS:
        if key == "model_name":
            continue
        for name, layer in layers:
            value = layer.get(key)
            if value is not None and value != "":
                resolved[key] = value
                sources[key] = name
                break

    provider = normalize_provider(resolved.get("model_provider") or "")
    resolved["model_provider"] = provider
    provider_rank = [name for name, _ in layers].index(sources.get("model_provider", "settings"))

    model_name = None
    for name, layer in layers[: provider_rank + 1]:
        value = layer.get("model_name")
        if value:
            model_name, sources["model_name"] = str(value), name
            break
    if model_name is None:
        model_name = DEFAULT_MODEL_BY_PROVIDER.get(provider) or settings.DEFAULT_CHAT_MODEL
        sources["model_name"] = "default"
    resolved["model_name"] = model_name

    for key, adapter in _SETTING_TYPES.items():
        try:
            resolved[key] = adapter.validate_python(resolved[key])
        except ValueError as exc:
            raise BadRequestError(
                message=f"invalid generation setting: {key}",
                detail={"key": key, "source": sources.get(key), "value": str(resolved[key])},
                cause=exc,
            ) from exc
    resolved["history_window"] = max(resolved["history_window"], 1)  # docstring: 至少包含本轮 user 消息
    resolved["sources"] = sources
    return resolved


def make_title(content: str, *, max_chars: int = CONVERSATION_TITLE_MAX_CHARS) -> str:
    """First user message collapsed to one line and clipped to max_chars."""
    line = _WS_RE.sub(" ", str(content or "")).strip()
    if len(line) <= max_chars:
        return line
    return line[: max_chars - 3].rstrip() + "..."


def _classify_error(exc: Exception, *, stage: Optional[str]) -> DomainError:
    """
    [职责] 将异常映射为 DomainError。
    [边界] 未知 provider -> bad_request；生成/检索阶段其他异常 -> external_dependency；其余 -> pipeline_error。
    """
    if isinstance(exc, DomainError):
        return exc
    detail = {"stage": stage or "", "error_type": exc.__class__.__name__, "error": str(exc)}
    if isinstance(exc, UnsupportedProviderError):
        return BadRequestError(message=str(exc), detail={**detail, "provider": exc.provider}, cause=exc)
    if stage in {"generate", "retrieve"}:
        return ExternalDependencyError(message="model provider failed", detail=detail, cause=exc)
    return PipelineError(message="chat pipeline failed", detail=detail, cause=exc)


def _context_refs(context: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "rank": item.get("rank"),
            "document_id": item.get("document_id"),
            "title": item.get("title"),
            "chunk_index": item.get("chunk_index"),
            "score": item.get("score"),
        }
        for item in context
    ]


async def send_message(
    session: AsyncSession,
    *,
    conversation_id: str,
    user_id: str,
    content: str,
    overrides: Optional[Mapping[str, Any]] = None,
    trace_context: Optional[TraceContext] = None,
) -> Dict[str, Any]:
    """
    [职责] 发送一条 user 消息并同步生成 assistant 回复。
    [边界] 不做重试；失败时 assistant 消息置 failed、记录失败指标并提交后再抛出领域错误。
    [上游关系] POST /conversations/{id}/messages。
    [下游关系] 返回 user_message/assistant_message/usage/context/timing_ms/trace_id/request_id。
    """
    logger = get_logger("services.chat")
    ctx = trace_context or TraceContext()
    timing = TimingCollector()

    text = str(content or "").strip()
    if not text:
        raise BadRequestError(message="message content is required")
    unknown = set(overrides or {}) - set(OVERRIDE_KEYS)
    if unknown:
        raise BadRequestError(message="unknown generation overrides", detail={"keys": sorted(unknown)})

    conv = await get_owned_conversation(session, conversation_id=conversation_id, user_id=user_id)
    conv_id = conv.id
    prefs = await get_stored_preferences(session, user_id=user_id)
    gen = resolve_generation_settings(overrides=overrides, conversation=conv, preferences=prefs)

    log_fields = {"user_id": str(user_id), "conversation_id": conv_id}
    log_event(
        logger,
        logging.INFO,
        "chat.start",
        context=ctx,
        fields={
            **log_fields,
            "content": truncate_text(text),
            "provider": gen["model_provider"],
            "model": gen["model_name"],
            "use_documents": gen["use_documents"],
        },
    )

    msg_repo = MessageRepo(session)
    user_msg = await msg_repo.create(
        conversation_id=conv_id,
        role=ROLE_USER,
        content=text,
        status=MESSAGE_STATUS_SUCCESS,
        request_id=str(ctx.request_id),
    )
    if not (conv.title or "").strip():
        await ConversationRepo(session).rename(conv_id, title=make_title(text))  # docstring: 首条 user 消息自动标题（生成失败也保留）
    await session.commit()  # docstring: phase-1 提交 user 消息（生成失败也保留）

    stage = "history"
    assistant_id: Optional[str] = None
    try:
        with timing.stage("history"):
            history_rows = await msg_repo.list_history(conversation_id=conv_id, limit=gen["history_window"])
        history = [{"role": m.role, "content": m.content} for m in history_rows]

        context_hits: List[Dict[str, Any]] = []
        if gen["use_documents"]:
            stage = "retrieve"
            with timing.stage("retrieve"):
                context_hits = await document_service.search_documents(
                    session, user_id=str(user_id), query=text, trace_context=ctx
                )

        stage = "prompt"
        snapshot = build_messages_snapshot(
            system_prompt=gen["system_prompt"],
            history=history,
            context_hits=context_hits,
        )

        assistant_msg = await msg_repo.create(
            conversation_id=conv_id,
            role=ROLE_ASSISTANT,
            content="",
            status=MESSAGE_STATUS_PENDING,
            model_provider=gen["model_provider"],
            model_name=gen["model_name"],
            request_id=str(ctx.request_id),
        )
        assistant_id = assistant_msg.id
        await session.commit()  # docstring: phase-2 提交 pending 占位

        stage = "generate"
        with timing.stage("generate"):
            result = await run_generation(
                messages_snapshot=snapshot,
                model_provider=gen["model_provider"],
                model_name=gen["model_name"],
                generation_config={"temperature": gen["temperature"], "max_tokens": gen["max_tokens"]},
            )

        stage = "persist"
        usage = dict(result.get("usage") or {})
        timing_ms = timing.to_dict()
        provider_snapshot = ProviderSnapshot(
            kind="llm",
            provider=result["provider"] or gen["model_provider"],
            name=result["model"] or gen["model_name"],
            params=dict(result.get("generation_config") or {}),
        )

        await msg_repo.set_response(
            assistant_msg.id,
            content=str(result.get("raw_text") or ""),
            status=MESSAGE_STATUS_SUCCESS,
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
            meta_data={
                "prompt_version": snapshot.get("prompt_version"),
                "context": _context_refs(snapshot.get("context") or []),
                "provider_snapshot": provider_snapshot.model_dump(),
                "usage": usage,
                "settings_sources": gen["sources"],
                TIMING_MS_KEY: timing_ms,
            },
        )
        assistant_msg.model_name = provider_snapshot.name

        await MetricsRepo(session).record(
            user_id=str(user_id),
            conversation_id=conv_id,
            message_id=assistant_msg.id,
            provider=provider_snapshot.provider,
            model=provider_snapshot.name,
            latency_ms=timing.get("generate", 0.0) or 0.0,
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
            total_tokens=usage.get("total_tokens"),
            success=True,
        )

        conv.updated_at = assistant_msg.created_at  # docstring: 会话列表按最近活动排序
        await session.commit()
    except Exception as exc:
        await session.rollback()
        error = _classify_error(exc, stage=stage)
        await _record_failure(
            session,
            assistant_id=assistant_id,
            conv_id=conv_id,
            user_id=str(user_id),
            gen=gen,
            latency_ms=timing.get("generate", 0.0) or 0.0,
            exc=exc,
            error=error,
        )
        log_event(
            logger,
            logging.ERROR,
            "chat.failed",
            context=ctx,
            fields={**log_fields, "message_id": assistant_id, "stage": stage, "error_code": error.error_code},
            exc_info=exc,
        )
        raise error from exc

    log_event(
        logger,
        logging.INFO,
        "chat.done",
        context=ctx,
        fields={
            **log_fields,
            "message_id": assistant_msg.id,
            "provider": provider_snapshot.provider,
            "model": provider_snapshot.name,
            "total_tokens": usage.get("total_tokens"),
            TIMING_MS_KEY: timing_ms,
        },
    )

    return {
        "conversation_id": conv_id,
        "conversation_title": conv.title,
        "user_message": serialize_message(user_msg),
        "assistant_message": serialize_message(assistant_msg),
        "usage": usage,
        "context": snapshot.get("context") or [],
        "provider": provider_snapshot.provider,
        "model": provider_snapshot.name,
        "generation_config": provider_snapshot.params,
        TIMING_MS_KEY: timing_ms,
        TRACE_ID_KEY: str(ctx.trace_id),
        REQUEST_ID_KEY: str(ctx.request_id),
    }


async def _record_failure(
    session: AsyncSession,
    *,
    assistant_id: Optional[str],
    conv_id: str,
    user_id: str,
    gen: Mapping[str, Any],
    latency_ms: float,
    exc: Exception,
    error: DomainError,
) -> None:
    """
    [职责] 失败路径：assistant 消息置 failed，记录失败指标，并提交。
    [边界] assistant 消息尚未创建（prompt 前失败）时只记录指标。
    """
    if assistant_id is not None:
        msg_repo = MessageRepo(session)
        msg = await msg_repo.get_by_id(assistant_id)
        if msg is not None and msg.status == MESSAGE_STATUS_PENDING:
            await msg_repo.set_response(
                assistant_id,
                content="",
                status=MESSAGE_STATUS_FAILED,
                error_message=error.message,
                meta_data={"error_code": error.error_code, "error_type": exc.__class__.__name__},
            )
    await MetricsRepo(session).record(
        user_id=user_id,
        conversation_id=conv_id,
        message_id=assistant_id,
        provider=str(gen.get("model_provider") or "unknown"),
        model=str(gen.get("model_name") or "unknown"),
        latency_ms=latency_ms,
        success=False,
        error_type=exc.__class__.__name__,
    )
    await session.commit()
