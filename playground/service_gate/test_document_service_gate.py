# playground/service_gate/test_document_service_gate.py

"""
[职责] document service gate：验证入库去重、按用户隔离的精确向量检索与删除。
[边界] embedding 使用默认 hash provider；不访问网络。
[上游关系] services/document_service.py。
[下游关系] routers/documents.py 与 chat_service 文档上下文依赖这些语义。
"""

from __future__ import annotations

from typing import Any, Optional

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.models import DocumentModel
from llm_chat.backend.db.models.user import UserModel
from llm_chat.backend.db.repo import DocumentRepo
from llm_chat.backend.services import document_service
from llm_chat.backend.utils.errors import BadRequestError, ConflictError, NotFoundError
from llm_chat.config import settings


pytestmark = pytest.mark.service_gate


@pytest.mark.asyncio
async def test_ingest_and_dedupe(session: AsyncSession, user: UserModel, other_user: UserModel) -> None:
    doc = await document_service.ingest_document(
        session, user_id=user.id, title="Policy", content="Remote work is allowed on Fridays.", source="hr"
    )
    assert doc.chunk_count == 1
    assert doc.embed_provider == settings.EMBED_PROVIDER
    assert doc.embed_dim == settings.EMBED_DIM
    assert doc.sha256 == document_service.content_sha256("Remote work is allowed on Fridays.")
    assert doc.meta_data["chunk_size"] == settings.CHUNK_SIZE

    with pytest.raises(ConflictError) as exc_info:
        await document_service.ingest_document(
            session, user_id=user.id, title="Copy", content="Remote work is allowed on Fridays."
        )
    assert exc_info.value.detail["document_id"] == doc.id

    other = await document_service.ingest_document(
        session, user_id=other_user.id, title="Policy", content="Remote work is allowed on Fridays."
    )
    assert other.id != doc.id

    view = document_service.serialize_document(doc)
    assert "content" not in view
    assert document_service.serialize_document(doc, include_content=True)["content"].startswith("Remote")


@pytest.mark.asyncio
async def test_ingest_rejects_empty(session: AsyncSession, user: UserModel) -> None:
    with pytest.raises(BadRequestError):
        await document_service.ingest_document(session, user_id=user.id, title="x", content="   ")
    with pytest.raises(BadRequestError):
        await document_service.ingest_document(session, user_id=user.id, title=" ", content="body")


@pytest.mark.asyncio
async def test_search_is_exact_and_scoped(session: AsyncSession, user: UserModel, other_user: UserModel) -> None:
    assert await document_service.search_documents(session, user_id=user.id, query="anything") == []

    target = await document_service.ingest_document(
        session, user_id=user.id, title="Target", content="the quarterly sales review"
    )
    await document_service.ingest_document(session, user_id=user.id, title="Noise", content="unrelated gardening tips")
    await document_service.ingest_document(
        session, user_id=other_user.id, title="Foreign", content="the quarterly sales review plus more"
    )

    hits = await document_service.search_documents(
        session, user_id=user.id, query="the quarterly sales review", top_k=5, min_score=-1.0
    )
    assert hits[0]["document_id"] == target.id
    assert hits[0]["title"] == "Target"
    assert hits[0]["score"] == pytest.approx(1.0)
    assert len(hits) == 2  # docstring: 只返回本人文档
    assert hits[0]["score"] >= hits[1]["score"]

    top1 = await document_service.search_documents(
        session, user_id=user.id, query="the quarterly sales review", top_k=1, min_score=-1.0
    )
    assert [h["document_id"] for h in top1] == [target.id]

    with pytest.raises(BadRequestError):
        await document_service.search_documents(session, user_id=user.id, query="  ")


@pytest.mark.asyncio
async def test_delete_document(session: AsyncSession, user: UserModel, other_user: UserModel) -> None:
    doc = await document_service.ingest_document(session, user_id=user.id, title="Temp", content="short lived")
    doc_id = doc.id
    with pytest.raises(NotFoundError):
        await document_service.get_document(session, document_id=doc_id, user_id=other_user.id)
    with pytest.raises(NotFoundError):
        await document_service.delete_document(session, document_id=doc_id, user_id=other_user.id)

    await document_service.delete_document(session, document_id=doc_id, user_id=user.id)
    with pytest.raises(NotFoundError):
        await document_service.get_document(session, document_id=doc_id, user_id=user.id)
    assert await document_service.list_documents(session, user_id=user.id) == []
    assert await document_service.search_documents(session, user_id=user.id, query="short lived") == []


@pytest.mark.asyncio
async def test_concurrent_duplicate_ingest_is_conflict(
    session: AsyncSession, user: UserModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    user_id = user.id
    first = await document_service.ingest_document(
        session, user_id=user_id, title="Policy", content="Badges are required on site."
    )
    first_id = first.id

    original = DocumentRepo.get_by_sha256
    calls = {"n": 0}

    async def _lookup(self: DocumentRepo, *, user_id: str, sha256: str) -> Optional[Any]:
        calls["n"] += 1
        if calls["n"] == 1:
            return None  # docstring: 去重检查时另一请求尚未提交
        return await original(self, user_id=user_id, sha256=sha256)

    monkeypatch.setattr(DocumentRepo, "get_by_sha256", _lookup)
    with pytest.raises(ConflictError) as exc_info:
        await document_service.ingest_document(
            session, user_id=user_id, title="Copy", content="Badges are required on site."
        )
    assert exc_info.value.detail["document_id"] == first_id

    count = await session.scalar(select(func.count()).select_from(DocumentModel).where(DocumentModel.user_id == user_id))
    assert count == 1
