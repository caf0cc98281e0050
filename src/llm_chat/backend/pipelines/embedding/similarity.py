# src/llm_chat/backend/pipelines/embedding/similarity.py

"""
[职责] similarity：基于 LlamaIndex embedding_utils 的余弦相似度与精确 top-k 排序。
[边界] 不做 ANN 索引；候选集由调用方从 DB 加载。
[上游关系] document_service.search_documents 调用。
[下游关系] 检索命中列表（score 降序）。
"""

from __future__ import annotations

from typing import Callable, List, Sequence, Tuple, TypeVar

from llama_index.core.base.embeddings.base import SimilarityMode, similarity
from llama_index.core.indices.query.embedding_utils import get_top_k_embeddings


T = TypeVar("T")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; zero vectors score 0."""
    if len(a) != len(b):
        raise ValueError(f"vector dim mismatch: {len(a)} != {len(b)}")
    if not any(a) or not any(b):
        return 0.0  # docstring: 零向量无方向，避免 0/0
    return float(similarity(list(a), list(b), mode=SimilarityMode.DEFAULT))


def rank_by_similarity(
    query_vector: Sequence[float],
    candidates: Sequence[T],
    *,
    vector_of: Callable[[T], Sequence[float]],
    top_k: int,
    min_score: float = 0.0,
) -> List[Tuple[T, float]]:
    """
    [职责] 对候选计算余弦相似度，返回 score >= min_score 的前 top_k 项。
    [边界] 维度不一致的候选被跳过（不同 embedding 配置入库的文档）；同分保持候选原顺序。
    """
    if top_k <= 0:
        return []
    dim = len(query_vector)
    ids: List[int] = []
    vectors: List[List[float]] = []
    for idx, cand in enumerate(candidates):
        vec = vector_of(cand)
        if len(vec) != dim:
            continue
        ids.append(idx)
        vectors.append([float(x) for x in vec])
    if not vectors:
        return []

    # docstring: 全量打分；阈值（含等号）与同分次序在本地处理
    scores, result_ids = get_top_k_embeddings(
        [float(x) for x in query_vector],
        vectors,
        similarity_fn=cosine_similarity,
        similarity_top_k=None,
        embedding_ids=ids,
        similarity_cutoff=None,
    )
    scored = sorted(
        ((int(idx), float(score)) for score, idx in zip(scores, result_ids) if float(score) >= min_score),
        key=lambda t: (-t[1], t[0]),
    )
    return [(candidates[idx], score) for idx, score in scored[:top_k]]
