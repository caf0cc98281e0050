# src/llm_chat/backend/pipelines/generation/prompt.py

"""
[职责] generation prompt：将 system prompt、历史消息与可选文档上下文组织为 messages_snapshot。
[边界] 不做 LLM 调用；不访问 DB；不做 token 级截断（由 history_window 控制长度）。
[上游关系] chat_service 传入 system_prompt / history / context_hits。
[下游关系] generator.run_generation 消费 messages_snapshot；message.meta_data 记录 context 引用。
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from llm_chat.backend.utils.constants import MESSAGE_ROLES, ROLE_SYSTEM, ROLE_USER


__all__ = ["build_messages_snapshot", "PROMPT_VERSION"]

PROMPT_VERSION = "chat_v1"  # docstring: prompt 模板版本（写入快照便于回放）
DEFAULT_MAX_CONTEXT_CHARS = 1200  # docstring: 单条上下文最大长度
DEFAULT_MAX_CONTEXT_ITEMS = 8

CONTEXT_HEADER = (
    "Use the following excerpts from the user's documents when they are relevant. "
    "Cite them as [n]. If they do not contain the answer, say so."
)


def _clip(text: str, max_chars: int) -> str:
    s = " ".join(str(text or "").split())  # docstring: 压缩空白
    if len(s) <= max_chars:
        return s
    return s[: max_chars - 3].rstrip() + "..."


def _normalize_context(
    context_hits: Optional[Sequence[Mapping[str, Any]]],
    *,
    max_items: int,
    max_chars: int,
) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for hit in list(context_hits or [])[:max_items]:
        content = _clip(str(hit.get("content") or ""), max_chars)
        if not content:
            continue
        out.append(
            {
                "rank": len(out) + 1,
                "document_id": hit.get("document_id"),
                "title": hit.get("title"),
                "chunk_index": hit.get("chunk_index"),
                "score": hit.get("score"),
                "content": content,
            }
        )
    return out


def _render_context(context: Sequence[Mapping[str, Any]]) -> str:
    lines = [CONTEXT_HEADER, ""]
    for item in context:
        title = str(item.get("title") or "untitled")
        lines.append(f"[{item['rank']}] ({title}) {item['content']}")
    return "\n".join(lines)


def build_messages_snapshot(
    *,
    system_prompt: Optional[str],
    history: Sequence[Mapping[str, Any]],
    context_hits: Optional[Sequence[Mapping[str, Any]]] = None,
    max_context_items: int = DEFAULT_MAX_CONTEXT_ITEMS,
    max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
) -> Dict[str, Any]:
    """
    [职责] 构造 {"messages": [...], "context": [...], "prompt_version": ...}。
    [边界] history 需按时间正序且最后一条为本轮 user 消息；未知 role 的消息被丢弃。
    [上游关系] chat_service.send_message 调用。
    [下游关系] run_generation 读取 messages；context 写入 assistant message.meta_data。
    """
    context = _normalize_context(context_hits, max_items=max_context_items, max_chars=max_context_chars)

    system_parts: List[str] = []
    if system_prompt and str(system_prompt).strip():
        system_parts.append(str(system_prompt).strip())
    if context:
        system_parts.append(_render_context(context))  # docstring: 上下文并入 system 消息

    messages: List[Dict[str, str]] = []
    if system_parts:
        messages.append({"role": ROLE_SYSTEM, "content": "\n\n".join(system_parts)})

    for item in history:
        role = str(item.get("role") or "").strip().lower()
        if role not in MESSAGE_ROLES or role == ROLE_SYSTEM:
            continue  # docstring: 历史中的 system 消息不重复注入
        content = str(item.get("content") or "")
        if not content.strip():
            continue
        messages.append({"role": role, "content": content})

    if not any(m["role"] == ROLE_USER for m in messages):
        raise ValueError("history must contain at least one user message")

    return {
        "prompt_version": PROMPT_VERSION,
        "messages": messages,
        "context": context,
    }
