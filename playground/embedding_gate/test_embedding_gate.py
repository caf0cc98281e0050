# playground/embedding_gate/test_embedding_gate.py

"""
[职责] embedding gate：验证切分、hash embedding、余弦相似度与 top-k 排序。
[边界] 仅使用本地 hash provider；不访问网络与 DB。
[上游关系] pipelines/embedding/{chunk,embed,similarity}.py。
[下游关系] document_service 入库与检索依赖这些行为。
"""

from __future__ import annotations

import math

import pytest
from llama_index.core.base.embeddings.base import similarity
from llama_index.core.indices.query.embedding_utils import get_top_k_embeddings

from llm_chat.backend.pipelines.embedding.chunk import split_text, whitespace_tokenize
from llm_chat.backend.pipelines.embedding.embed import HashEmbedding, embed_query, embed_texts, resolve_embedder
from llm_chat.backend.pipelines.embedding.similarity import cosine_similarity, rank_by_similarity


pytestmark = pytest.mark.embedding_gate


def test_split_text_bounds() -> None:
    assert split_text("   ", chunk_size=10, chunk_overlap=2) == []
    with pytest.raises(ValueError):
        split_text("a b c", chunk_size=10, chunk_overlap=10)
    with pytest.raises(ValueError):
        split_text("a b c", chunk_size=0, chunk_overlap=0)


def test_split_text_long_document() -> None:
    words = [f"w{i}" for i in range(200)]
    text = ". ".join(" ".join(words[i : i + 10]) for i in range(0, 200, 10)) + "."
    chunks = split_text(text, chunk_size=40, chunk_overlap=5)
    assert len(chunks) > 1
    assert all(c.strip() for c in chunks)
    assert "w0" in chunks[0]
    assert "w199" in chunks[-1]


def test_split_text_short_document_single_chunk() -> None:
    assert whitespace_tokenize(" a\tb\n c ") == ["a", "b", "c"]
    assert split_text("alpha beta gamma", chunk_size=64, chunk_overlap=8) == ["alpha beta gamma"]


def test_hash_embedding_deterministic() -> None:
    emb = HashEmbedding(dim=16)
    a = emb.get_text_embedding("hello")
    b = emb.get_text_embedding("hello")
    c = emb.get_text_embedding("world")
    assert a == b
    assert a != c
    assert len(a) == 16
    assert all(-1.0 <= x <= 1.0 for x in a)
    assert len(HashEmbedding(dim=100).get_text_embedding("long")) == 100  # docstring: 超过 32 字节时链式展开


@pytest.mark.asyncio
async def test_embed_texts_and_query() -> None:
    vecs = await embed_texts(texts=["one", "two"], provider="hash", model="hash", dim=8)
    assert len(vecs) == 2
    assert all(len(v) == 8 for v in vecs)
    q = await embed_query(query="one", provider="hash", model="hash", dim=8)
    assert q == vecs[0]  # docstring: hash provider 的 query/text 向量一致
    assert await embed_texts(texts=[], provider="hash", model="hash", dim=8) == []


def test_resolve_embedder_unknown_provider() -> None:
    with pytest.raises(ValueError):
        resolve_embedder(provider="nope", model="x", dim=8)
    assert isinstance(resolve_embedder(provider="local", model="", dim=4), HashEmbedding)


def test_cosine_similarity() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine_similarity([1.0, 1.0], [2.0, 2.0]) == pytest.approx(1.0)
    with pytest.raises(ValueError):
        cosine_similarity([1.0], [1.0, 2.0])


def test_rank_by_similarity() -> None:
    query = [1.0, 0.0]
    candidates = [
        ("orthogonal", [0.0, 1.0]),
        ("exact", [2.0, 0.0]),
        ("diag", [1.0, 1.0]),
        ("tie", [3.0, 0.0]),
        ("wrong_dim", [1.0, 0.0, 0.0]),
        ("opposite", [-1.0, 0.0]),
    ]
    ranked = rank_by_similarity(query, candidates, vector_of=lambda c: c[1], top_k=3, min_score=0.0)
    assert [c[0] for c, _ in ranked] == ["exact", "tie", "diag"]  # docstring: 同分保持输入顺序
    assert ranked[2][1] == pytest.approx(1 / math.sqrt(2))

    filtered = rank_by_similarity(query, candidates, vector_of=lambda c: c[1], top_k=10, min_score=0.9)
    assert [c[0] for c, _ in filtered] == ["exact", "tie"]
    assert rank_by_similarity(query, candidates, vector_of=lambda c: c[1], top_k=0) == []


def test_rank_by_similarity_matches_llama_index() -> None:
    query = [0.2, 0.9, -0.1]
    vectors = [[0.1, 0.8, 0.0], [0.9, -0.2, 0.3], [0.3, 0.7, -0.4], [0.0, 1.0, 0.0]]
    ranked = rank_by_similarity(query, list(range(len(vectors))), vector_of=lambda i: vectors[i], top_k=2)

    scores, ids = get_top_k_embeddings(query, vectors, similarity_top_k=2, embedding_ids=list(range(len(vectors))))
    assert [i for i, _ in ranked] == list(ids)
    assert [s for _, s in ranked] == pytest.approx(list(scores))
    assert cosine_similarity(query, vectors[1]) == pytest.approx(similarity(query, vectors[1]))
