# playground/fastapi_gate/test_documents_router_gate.py

"""
[职责] Documents router gate：入库、去重冲突、列表/详情、检索与删除。
[边界] embedding 使用 hash provider。
[上游关系] backend/api/routers/documents.py。
[下游关系] 前端知识库面板与 chat 文档上下文。
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from .conftest import API, register


pytestmark = pytest.mark.fastapi_gate


@pytest.mark.asyncio
async def test_document_lifecycle(client: AsyncClient) -> None:
    headers = await register(client, "nina")
    payload = {"title": "FAQ", "content": "refunds are processed within five days", "source": "support"}

    created = await client.post(f"{API}/documents", json=payload, headers=headers)
    assert created.status_code == 201, created.text
    doc = created.json()
    assert doc["chunk_count"] == 1
    assert doc["content"] is None  # docstring: 创建响应不回传全文
    doc_id = doc["id"]

    dup = await client.post(f"{API}/documents", json=payload, headers=headers)
    assert dup.status_code == 409
    assert dup.json()["error"]["detail"]["document_id"] == doc_id

    listed = await client.get(f"{API}/documents", headers=headers)
    assert [d["id"] for d in listed.json()["items"]] == [doc_id]

    detail = await client.get(f"{API}/documents/{doc_id}", headers=headers)
    assert detail.json()["content"] == payload["content"]

    search = await client.post(
        f"{API}/documents/search",
        json={"query": "refunds are processed within five days", "top_k": 3},
        headers=headers,
    )
    assert search.status_code == 200
    hits = search.json()["hits"]
    assert hits[0]["document_id"] == doc_id
    assert hits[0]["score"] == pytest.approx(1.0)

    other = await register(client, "oscar")
    assert (await client.get(f"{API}/documents/{doc_id}", headers=other)).status_code == 404
    other_search = await client.post(f"{API}/documents/search", json={"query": "refunds"}, headers=other)
    assert other_search.json()["hits"] == []

    deleted = await client.delete(f"{API}/documents/{doc_id}", headers=headers)
    assert deleted.status_code == 204
    assert (await client.get(f"{API}/documents/{doc_id}", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_document_validation(client: AsyncClient) -> None:
    headers = await register(client, "pat")
    resp = await client.post(f"{API}/documents", json={"title": "x"}, headers=headers)
    assert resp.status_code == 400
    resp2 = await client.post(f"{API}/documents/search", json={"query": "q", "top_k": 0}, headers=headers)
    assert resp2.status_code == 400
