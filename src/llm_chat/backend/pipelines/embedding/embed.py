# src/llm_chat/backend/pipelines/embedding/embed.py

"""
[职责] embed：使用 LlamaIndex Embedding 抽象生成文本/查询向量。
[边界] 不负责切分与落库；不实现自定义 pooling/truncation。
[上游关系] document_service 在 ingest/search 阶段调用 embed_texts/embed_query。
[下游关系] document_embedding.embedding 持久化向量；similarity 使用查询向量排序。
"""

from __future__ import annotations

import hashlib
import inspect
from typing import Any, Dict, List, Optional, Sequence

from llama_index.core.base.embeddings.base import BaseEmbedding
from pydantic import Field

from llm_chat.config import settings


class HashEmbedding(BaseEmbedding):
    """
    [职责] 本地确定性 embedding（sha256 链式展开到目标维度）。
    [边界] 非语义向量：相同文本得到相同向量，仅用于离线/测试。
    """

    dim: int = Field(default=128, gt=0, description="向量维度")

    @classmethod
    def class_name(cls) -> str:
        return "HashEmbedding"

    def _hash_to_vec(self, text: str) -> List[float]:
        seed = hashlib.sha256(text.encode("utf-8")).digest()
        vals: List[float] = []
        while len(vals) < self.dim:
            for b in seed:
                vals.append((b / 255.0) * 2.0 - 1.0)  # docstring: 映射到 [-1, 1]
                if len(vals) >= self.dim:
                    break
            seed = hashlib.sha256(seed).digest()
        return vals

    def _get_text_embedding(self, text: str) -> List[float]:
        return self._hash_to_vec(text)

    def _get_query_embedding(self, query: str) -> List[float]:
        return self._hash_to_vec(query)

    async def _aget_text_embedding(self, text: str) -> List[float]:
        return self._hash_to_vec(text)

    async def _aget_query_embedding(self, query: str) -> List[float]:
        return self._hash_to_vec(query)


def _filter_kwargs(fn: Any, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return {}
    return {k: v for k, v in kwargs.items() if k in sig.parameters and v is not None}


def resolve_embedder(
    *,
    provider: str,
    model: str,
    dim: Optional[int],
    embed_config: Optional[Dict[str, Any]] = None,
) -> BaseEmbedding:
    """
    [职责] 根据 provider/model 构造 LlamaIndex BaseEmbedding 实例。
    [边界] 支持 hash/openai/ollama；未知 provider 抛 ValueError。
    [上游关系] embed_texts/embed_query 调用。
    """
    provider_key = str(provider or "").strip().lower()
    model_name = str(model or "").strip()
    cfg = dict(embed_config or {})

    if provider_key in {"hash", "mock", "local"}:
        embedder: Any = HashEmbedding(model_name=model_name or "hash", dim=int(dim or settings.EMBED_DIM))
    elif provider_key == "openai":
        from llama_index.embeddings.openai import OpenAIEmbedding

        kwargs = {
            "model": model_name,
            "dimensions": dim,
            "api_key": settings.OPENAI_API_KEY,
            "api_base": settings.OPENAI_API_BASE,
            **cfg,
        }
        embedder = OpenAIEmbedding(**_filter_kwargs(OpenAIEmbedding.__init__, kwargs))
    elif provider_key == "ollama":
        from llama_index.embeddings.ollama import OllamaEmbedding

        kwargs = {
            "model_name": model_name,
            "base_url": settings.OLLAMA_BASE_URL,
            **cfg,
        }
        embedder = OllamaEmbedding(**_filter_kwargs(OllamaEmbedding.__init__, kwargs))
    else:
        raise ValueError(f"unsupported embed provider: {provider}")

    if not isinstance(embedder, BaseEmbedding):
        raise TypeError("embedding must be BaseEmbedding")
    return embedder


def _check_dim(vectors: Sequence[Sequence[float]], dim: Optional[int]) -> None:
    if dim is None:
        return
    for vec in vectors:
        if len(vec) != int(dim):
            raise ValueError(f"embedding dim mismatch: {len(vec)} != {dim}")


async def embed_texts(
    *,
    texts: Sequence[str],
    provider: str,
    model: str,
    dim: Optional[int] = None,
    embed_config: Optional[Dict[str, Any]] = None,
) -> List[List[float]]:
    """
    [职责] 批量生成文本向量（与输入顺序一致）。
    [边界] 空输入返回空列表；dim 给定时强制维度一致。
    """
    if not texts:
        return []
    embedder = resolve_embedder(provider=provider, model=model, dim=dim, embed_config=embed_config)
    vectors = await embedder.aget_text_embedding_batch([str(t) for t in texts])
    out = [[float(x) for x in v] for v in vectors]
    _check_dim(out, dim)
    return out


async def embed_query(
    *,
    query: str,
    provider: str,
    model: str,
    dim: Optional[int] = None,
    embed_config: Optional[Dict[str, Any]] = None,
) -> List[float]:
    """生成查询向量（dim 给定时校验）。"""
    embedder = resolve_embedder(provider=provider, model=model, dim=dim, embed_config=embed_config)
    vector = [float(x) for x in await embedder.aget_query_embedding(str(query))]
    _check_dim([vector], dim)
    return vector
