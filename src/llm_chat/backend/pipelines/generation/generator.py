# src/llm_chat/backend/pipelines/generation/generator.py

"""
[职责] generation generator：基于 LlamaIndex LLM 抽象执行模型调用，产出 raw 文本与归一化 usage。
[边界] 不做重试/退避；不做流式输出；不负责落库与编排。
[上游关系] chat_service 传入 messages_snapshot + provider/model + generation_config。
[下游关系] chat_service 写回 assistant message 与 model_metrics。
"""

from __future__ import annotations

import inspect
from inspect import Parameter
from typing import Any, Dict, List, Mapping, Optional, Sequence

from llm_chat.config import settings
from llm_chat.backend.utils.constants import ROLE_USER


__all__ = ["run_generation", "normalize_provider", "SUPPORTED_PROVIDERS", "UnsupportedProviderError"]

SUPPORTED_PROVIDERS = ("mock", "openai", "anthropic", "ollama", "openai_like")

_PROVIDER_ALIASES = {
    "local": "mock",
    "openai-like": "openai_like",
    "claude": "anthropic",
}


class UnsupportedProviderError(ValueError):
    """Raised when no LLM adapter exists for the requested provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"unsupported model provider: {provider}")
        self.provider = str(provider or "")


def _filter_kwargs(fn: Any, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """
    [职责] 过滤参数，仅保留目标函数支持的关键字。
    [边界] 不做值校验；函数支持 **kwargs 时透传全部。
    """
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return {}
    for p in sig.parameters.values():
        if p.kind == Parameter.VAR_KEYWORD:
            return dict(kwargs)
    return {k: v for k, v in kwargs.items() if k in sig.parameters}


def normalize_provider(provider: str) -> str:
    """Lowercase, strip and resolve aliases (local -> mock, claude -> anthropic)."""
    key = str(provider or "").strip().lower()
    return _PROVIDER_ALIASES.get(key, key)


def _normalize_model_name(model_name: str) -> str:
    return str(model_name or "").strip()


def _drop_none(cfg: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in cfg.items() if v is not None}


def _last_user_text(messages: Sequence[Any]) -> str:
    for msg in reversed(list(messages)):
        role = getattr(msg, "role", None)
        role_value = str(getattr(role, "value", role) or "").lower()
        if role_value == ROLE_USER:
            return str(getattr(msg, "content", "") or "")
    return ""


def _build_mock_llm(*, model_name: str) -> Any:
    """
    [职责] 构造离线 MockLLM：回显最后一条 user 消息（确定性，供本地与测试使用）。
    [边界] 不模拟 token 用量；usage 由 _estimate_usage 兜底。
    """
    from llama_index.core.llms import MockLLM

    def _messages_to_prompt(messages: Sequence[Any]) -> str:
        return f"[{model_name or 'mock'}] {_last_user_text(messages)}"

    return MockLLM(max_tokens=None, messages_to_prompt=_messages_to_prompt)  # docstring: max_tokens=None 时回显 prompt


def _resolve_llm(*, provider: str, model_name: str, generation_config: Mapping[str, Any]) -> Any:
    """
    [职责] 根据 provider/model 构造 LlamaIndex LLM 实例。
    [边界] provider SDK 在分支内延迟导入；未知 provider 抛 ValueError。
    [上游关系] run_generation 调用。
    [下游关系] _call_llm 使用返回的 LLM。
    """
    provider_key = normalize_provider(provider)
    model = _normalize_model_name(model_name)
    cfg = _drop_none(generation_config)

    if provider_key == "mock":
        return _build_mock_llm(model_name=model or "mock")
    if provider_key == "openai":
        from llama_index.llms.openai import OpenAI

        kwargs = {
            "model": model,
            "temperature": cfg.get("temperature"),
            "max_tokens": cfg.get("max_tokens"),
            "api_key": settings.OPENAI_API_KEY,
            "api_base": settings.OPENAI_API_BASE,
        }
        return OpenAI(**_filter_kwargs(OpenAI.__init__, _drop_none(kwargs)))
    if provider_key == "anthropic":
        from llama_index.llms.anthropic import Anthropic

        kwargs = {
            "model": model,
            "temperature": cfg.get("temperature"),
            "max_tokens": cfg.get("max_tokens"),
            "api_key": settings.ANTHROPIC_API_KEY,
        }
        return Anthropic(**_filter_kwargs(Anthropic.__init__, _drop_none(kwargs)))
    if provider_key == "ollama":
        from llama_index.llms.ollama import Ollama

        kwargs = {
            "model": model,
            "base_url": settings.OLLAMA_BASE_URL,
            "temperature": cfg.get("temperature"),
            "request_timeout": float(settings.OLLAMA_REQUEST_TIMEOUT_S),
        }
        if cfg.get("max_tokens"):
            kwargs["additional_kwargs"] = {"num_predict": int(cfg["max_tokens"])}  # docstring: Ollama 的输出上限参数名
        return Ollama(**_filter_kwargs(Ollama.__init__, _drop_none(kwargs)))
    if provider_key == "openai_like":
        from llama_index.llms.openai_like import OpenAILike

        kwargs = {
            "model": model,
            "temperature": cfg.get("temperature"),
            "max_tokens": cfg.get("max_tokens"),
            "api_key": cfg.get("api_key") or settings.OPENAI_API_KEY or "not-needed",
            "api_base": cfg.get("api_base") or settings.OPENAI_API_BASE,
            "is_chat_model": True,
        }
        return OpenAILike(**_drop_none(kwargs))

    raise UnsupportedProviderError(provider)


def _build_chat_messages(messages: Sequence[Mapping[str, Any]]) -> List[Any]:
    """将消息 dict 列表转换为 LlamaIndex ChatMessage 列表。"""
    from llama_index.core.llms import ChatMessage, MessageRole

    out: List[Any] = []
    for msg in messages:
        raw_role = str(msg.get("role") or ROLE_USER).strip().lower()
        try:
            role = MessageRole(raw_role)
        except ValueError:
            role = MessageRole.USER  # docstring: 未知角色回退 user
        out.append(ChatMessage(role=role, content=str(msg.get("content") or "")))
    return out


async def _call_llm(*, llm: Any, messages: Sequence[Any]) -> Any:
    """
    [职责] 调用 LLM（优先 achat，其次 chat）。
    [边界] 生成参数在构造时注入，调用时不重复传递。
    """
    if hasattr(llm, "achat"):
        return await llm.achat(messages)
    if hasattr(llm, "chat"):
        return llm.chat(messages)
    raise AttributeError("LLM instance missing chat interfaces")


def _extract_text(response: Any) -> str:
    if response is None:
        return ""
    msg = getattr(response, "message", None)
    if msg is not None and hasattr(msg, "content"):
        return str(getattr(msg, "content") or "")
    if hasattr(response, "text"):
        return str(getattr(response, "text") or "")
    return str(response)


def _read(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _extract_usage(response: Any) -> Optional[Dict[str, Optional[int]]]:
    """
    [职责] 从不同 provider 的响应中提取 token 用量并归一化为 prompt/completion/total。
    [边界] 仅探测常见字段（OpenAI usage、Anthropic input/output_tokens、Ollama eval_count）；找不到返回 None。
    """
    if response is None:
        return None
    raw = getattr(response, "raw", None)
    extra = getattr(response, "additional_kwargs", None)
    candidates = [_read(raw, "usage"), extra, raw]

    for cand in candidates:
        if cand is None:
            continue
        prompt = _as_int(_read(cand, "prompt_tokens"))
        if prompt is None:
            prompt = _as_int(_read(cand, "input_tokens"))
        if prompt is None:
            prompt = _as_int(_read(cand, "prompt_eval_count"))
        completion = _as_int(_read(cand, "completion_tokens"))
        if completion is None:
            completion = _as_int(_read(cand, "output_tokens"))
        if completion is None:
            completion = _as_int(_read(cand, "eval_count"))
        if prompt is None and completion is None:
            continue
        total = _as_int(_read(cand, "total_tokens"))
        if total is None:
            total = (prompt or 0) + (completion or 0)
        return {"prompt_tokens": prompt, "completion_tokens": completion, "total_tokens": total}
    return None


def _estimate_usage(messages: Sequence[Mapping[str, Any]], raw_text: str) -> Dict[str, Any]:
    """Whitespace token estimate for providers that do not report usage."""
    prompt = sum(len(str(m.get("content") or "").split()) for m in messages)
    completion = len(raw_text.split())
    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": prompt + completion,
        "estimated": True,
    }


def _resolve_output_model(llm: Any, fallback: str) -> str:
    meta = getattr(llm, "metadata", None)
    name = getattr(meta, "model_name", None) if meta is not None else None
    if not name or name == "unknown":
        return fallback
    return str(name)


async def run_generation(
    *,
    messages_snapshot: Mapping[str, Any],
    model_provider: str,
    model_name: str,
    generation_config: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    [职责] 执行 LLM 生成并返回 raw_text/provider/model/usage/generation_config。
    [边界] 不捕获 provider 异常（由 chat_service 分类）；未知 provider 抛 ValueError。
    [上游关系] chat_service.send_message 调用。
    [下游关系] assistant message 写回、model_metrics 记录。
    """
    if not isinstance(messages_snapshot, Mapping):
        raise TypeError("messages_snapshot must be a mapping")

    messages_payload = messages_snapshot.get("messages")
    if not isinstance(messages_payload, list) or not messages_payload:
        raise ValueError("messages_snapshot missing messages")

    provider_key = normalize_provider(model_provider)
    model = _normalize_model_name(model_name) or provider_key
    cfg = _drop_none(dict(generation_config or {}))

    llm = _resolve_llm(provider=provider_key, model_name=model, generation_config=cfg)
    chat_messages = _build_chat_messages(messages_payload)
    response = await _call_llm(llm=llm, messages=chat_messages)

    raw_text = _extract_text(response)
    usage = _extract_usage(response) or _estimate_usage(messages_payload, raw_text)

    return {
        "raw_text": raw_text,
        "provider": provider_key,
        "model": _resolve_output_model(llm, model),
        "usage": usage,
        "generation_config": cfg,
    }
