# src/llm_chat/backend/pipelines/embedding/chunk.py

"""
[职责] chunk：使用 LlamaIndex SentenceSplitter 将文档原文切分为检索块。
[边界] 不做 embedding；不写 DB。长度按空白分词计数（不依赖 tiktoken 下载）。
[上游关系] document_service.ingest_document 传入原文与 chunk_size/chunk_overlap。
[下游关系] embed.embed_texts 消费切块文本；document_embedding.chunk_index 对应返回顺序。
"""

from __future__ import annotations

import re
from typing import List

from llama_index.core.node_parser import SentenceSplitter


_TOKEN_RE = re.compile(r"\S+")


def whitespace_tokenize(text: str) -> List[str]:
    """Whitespace tokenizer used for chunk length accounting."""
    return _TOKEN_RE.findall(text or "")


def split_text(text: str, *, chunk_size: int, chunk_overlap: int) -> List[str]:
    """
    [职责] 将文本切分为有序 chunk 列表（去除空白块）。
    [边界] chunk_overlap 必须小于 chunk_size，否则抛 ValueError。
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be in [0, chunk_size)")

    cleaned = str(text or "").strip()
    if not cleaned:
        return []

    splitter = SentenceSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        tokenizer=whitespace_tokenize,
    )
    return [c.strip() for c in splitter.split_text(cleaned) if c.strip()]
