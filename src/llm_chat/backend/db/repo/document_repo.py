# src/llm_chat/backend/db/repo/document_repo.py

"""
[职责] DocumentRepo：用户文档与切块向量的持久化与读取。
[边界] 不做切分/embedding（由 pipelines.embedding 负责）；不做相似度计算。
[上游关系] document_service ingest/search/delete 调用。
[下游关系] chat_service 通过 document_service 检索上下文。
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.db.models.document import DocumentEmbeddingModel, DocumentModel


class DocumentRepo:
    """Document repository (async SQLAlchemy)."""

    def __init__(self, session: AsyncSession):
        self._session = session  # docstring: DB 会话（由 deps 注入）

    async def get_document(self, document_id: str) -> Optional[DocumentModel]:
        did = str(document_id or "").strip()
        if not did:
            return None
        return await self._session.get(DocumentModel, did)

    async def get_by_sha256(self, *, user_id: str, sha256: str) -> Optional[DocumentModel]:
        """Fetch a user's document by content hash."""  # docstring: ingest 去重
        stmt = select(DocumentModel).where(DocumentModel.user_id == user_id, DocumentModel.sha256 == sha256)
        return await self._session.scalar(stmt)

    async def list_by_user(self, user_id: str, *, limit: int = 50, offset: int = 0) -> List[DocumentModel]:
        stmt = (
            select(DocumentModel)
            .where(DocumentModel.user_id == user_id)
            .order_by(DocumentModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        res = await self._session.scalars(stmt)
        return list(res.all())

    async def create_document(
        self,
        *,
        user_id: str,
        title: str,
        content: str,
        sha256: str,
        embed_provider: str,
        embed_model: str,
        embed_dim: int,
        source: str | None = None,
        meta_data: dict | None = None,
    ) -> DocumentModel:
        doc = DocumentModel(
            user_id=user_id,
            title=title,
            source=source,
            content=content,
            sha256=sha256,
            chunk_count=0,
            embed_provider=embed_provider,
            embed_model=embed_model,
            embed_dim=embed_dim,
            meta_data=meta_data or {},
        )
        self._session.add(doc)
        await self._session.flush()  # docstring: 获取 doc.id
        return doc

    async def add_chunks(
        self,
        doc: DocumentModel,
        *,
        chunks: Sequence[str],
        embeddings: Sequence[Sequence[float]],
    ) -> List[DocumentEmbeddingModel]:
        """Persist chunk texts and vectors; updates doc.chunk_count."""
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings length mismatch")
        rows = [
            DocumentEmbeddingModel(
                document_id=doc.id,
                chunk_index=i,
                content=text,
                embedding=[float(x) for x in vec],
                dim=len(vec),
            )
            for i, (text, vec) in enumerate(zip(chunks, embeddings))
        ]
        self._session.add_all(rows)
        doc.chunk_count = len(rows)
        await self._session.flush()
        return rows

    async def list_chunks_for_user(self, user_id: str) -> List[Tuple[DocumentEmbeddingModel, str]]:
        """All chunks owned by a user, paired with their document title."""  # docstring: 精确检索候选集
        stmt = (
            select(DocumentEmbeddingModel, DocumentModel.title)
            .join(DocumentModel, DocumentModel.id == DocumentEmbeddingModel.document_id)
            .where(DocumentModel.user_id == user_id)
            .order_by(DocumentModel.created_at.asc(), DocumentEmbeddingModel.chunk_index.asc())
        )
        rows = (await self._session.execute(stmt)).all()
        return [(row[0], row[1]) for row in rows]

    async def delete_document(self, doc: DocumentModel) -> None:
        """Delete a document (chunks cascade at DB level)."""
        await self._session.delete(doc)
        await self._session.flush()
