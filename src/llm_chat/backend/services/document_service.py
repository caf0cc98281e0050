# src/llm_chat/backend/services/document_service.py

"""
[职责] document_service：用户文档的入库（去重 + 切分 + embedding）、查询、删除与向量检索。
[边界] 不处理 HTTP 语义；不做 ANN 索引，检索在 Python 侧对用户全部切块精确打分。
[上游关系] api/routers/documents.py 调用；chat_service 在 use_documents 时调用 search_documents。
[下游关系] DocumentRepo 持久化；pipelines.embedding 负责 chunk/embed/similarity。
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.config import settings
from llm_chat.backend.db.models.document import DocumentModel
from llm_chat.backend.db.repo import DocumentRepo
from llm_chat.backend.pipelines.base.timing import TimingCollector
from llm_chat.backend.pipelines.embedding import chunk as chunk_mod
from llm_chat.backend.pipelines.embedding import embed as embed_mod
from llm_chat.backend.pipelines.embedding.similarity import rank_by_similarity
from llm_chat.backend.schemas.audit import TraceContext
from llm_chat.backend.utils.errors import BadRequestError, ConflictError, DomainError, ExternalDependencyError, NotFoundError
from llm_chat.backend.utils.logging_ import get_logger, log_event, truncate_text


def content_sha256(content: str) -> str:
    return hashlib.sha256(str(content).encode("utf-8")).hexdigest()


def serialize_document(doc: DocumentModel, *, include_content: bool = False) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": doc.id,
        "user_id": doc.user_id,
        "title": doc.title,
        "source": doc.source,
        "sha256": doc.sha256,
        "chunk_count": doc.chunk_count,
        "embed_provider": doc.embed_provider,
        "embed_model": doc.embed_model,
        "embed_dim": doc.embed_dim,
        "meta_data": dict(doc.meta_data or {}),
        "created_at": doc.created_at,
    }
    if include_content:
        out["content"] = doc.content
    return out


def _embed_error(exc: Exception, *, stage: str) -> DomainError:
    if isinstance(exc, DomainError):
        return exc
    detail = {"stage": stage, "error_type": exc.__class__.__name__, "error": str(exc)}
    if isinstance(exc, ValueError):
        return BadRequestError(message="embedding configuration is invalid", detail=detail, cause=exc)
    return ExternalDependencyError(message="embedding provider failed", detail=detail, cause=exc)


async def ingest_document(
    session: AsyncSession,
    *,
    user_id: str,
    title: str,
    content: str,
    source: Optional[str] = None,
    meta_data: Optional[Mapping[str, Any]] = None,
    trace_context: Optional[TraceContext] = None,
) -> DocumentModel:
    """
    [职责] 文档入库：sha256 去重 -> 切分 -> embedding -> 落库（单事务提交）。
    [边界] 同一用户重复内容报 conflict（detail 带已有 document_id）；embedding 失败不落库。
    [上游关系] POST /documents。
    [下游关系] document / document_embedding 行。
    """
    logger = get_logger("services.document")
    text = str(content or "")
    if not text.strip():
        raise BadRequestError(message="document content is required")
    doc_title = str(title or "").strip()
    if not doc_title:
        raise BadRequestError(message="document title is required")

    repo = DocumentRepo(session)
    sha = content_sha256(text)
    existing = await repo.get_by_sha256(user_id=str(user_id), sha256=sha)
    if existing is not None:
        raise ConflictError(
            message="document already exists",
            detail={"document_id": existing.id, "sha256": sha},
        )

    timing = TimingCollector()
    with timing.stage("chunk"):
        chunks = chunk_mod.split_text(text, chunk_size=settings.CHUNK_SIZE, chunk_overlap=settings.CHUNK_OVERLAP)
    if not chunks:
        raise BadRequestError(message="document produced no chunks")

    try:
        with timing.stage("embed"):
            vectors = await embed_mod.embed_texts(
                texts=chunks,
                provider=settings.EMBED_PROVIDER,
                model=settings.EMBED_MODEL,
                dim=settings.EMBED_DIM,
            )
    except Exception as exc:
        log_event(
            logger,
            logging.ERROR,
            "document.embed_failed",
            context=trace_context,
            fields={"user_id": str(user_id), "provider": settings.EMBED_PROVIDER},
            exc_info=exc,
        )
        raise _embed_error(exc, stage="embed") from exc

    try:
        doc = await repo.create_document(
            user_id=str(user_id),
            title=doc_title,
            content=text,
            sha256=sha,
            source=source,
            embed_provider=settings.EMBED_PROVIDER,
            embed_model=settings.EMBED_MODEL,
            embed_dim=settings.EMBED_DIM,
            meta_data={
                **dict(meta_data or {}),
                "chunk_size": settings.CHUNK_SIZE,
                "chunk_overlap": settings.CHUNK_OVERLAP,
            },
        )
        await repo.add_chunks(doc, chunks=chunks, embeddings=vectors)
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()  # docstring: 并发入库同一内容：唯一约束兜底
        winner = await repo.get_by_sha256(user_id=str(user_id), sha256=sha)
        if winner is None:
            raise
        raise ConflictError(
            message="document already exists",
            detail={"document_id": winner.id, "sha256": sha},
            cause=exc,
        ) from exc

    log_event(
        logger,
        logging.INFO,
        "document.ingested",
        context=trace_context,
        fields={
            "user_id": str(user_id),
            "document_id": doc.id,
            "title": truncate_text(doc_title),
            "chunk_count": doc.chunk_count,
            "timing_ms": timing.to_dict(),
        },
    )
    return doc


async def get_document(session: AsyncSession, *, document_id: str, user_id: str) -> DocumentModel:
    doc = await DocumentRepo(session).get_document(str(document_id))
    if doc is None or doc.user_id != str(user_id):
        raise NotFoundError(message="document not found", detail={"document_id": str(document_id)})
    return doc


async def list_documents(
    session: AsyncSession,
    *,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
) -> List[DocumentModel]:
    return await DocumentRepo(session).list_by_user(str(user_id), limit=limit, offset=offset)


async def delete_document(
    session: AsyncSession,
    *,
    document_id: str,
    user_id: str,
    trace_context: Optional[TraceContext] = None,
) -> None:
    doc = await get_document(session, document_id=document_id, user_id=user_id)
    await DocumentRepo(session).delete_document(doc)
    await session.commit()
    log_event(
        get_logger("services.document"),
        logging.INFO,
        "document.deleted",
        context=trace_context,
        fields={"user_id": str(user_id), "document_id": str(document_id)},
    )


async def search_documents(
    session: AsyncSession,
    *,
    user_id: str,
    query: str,
    top_k: Optional[int] = None,
    min_score: Optional[float] = None,
    trace_context: Optional[TraceContext] = None,
) -> List[Dict[str, Any]]:
    """
    [职责] 对用户全部文档切块做精确余弦检索，返回 score 降序的命中列表。
    [边界] 仅检索调用方自己的文档；embedding 维度不同的切块被跳过。
    [上游关系] POST /documents/search；chat_service 文档上下文。
    [下游关系] 命中 dict：document_id/title/chunk_index/content/score。
    """
    q = str(query or "").strip()
    if not q:
        raise BadRequestError(message="query is required")
    k = int(top_k if top_k is not None else settings.SEARCH_TOP_K)
    threshold = float(min_score if min_score is not None else settings.SEARCH_MIN_SCORE)

    candidates = await DocumentRepo(session).list_chunks_for_user(str(user_id))
    if not candidates:
        return []

    try:
        query_vec = await embed_mod.embed_query(
            query=q,
            provider=settings.EMBED_PROVIDER,
            model=settings.EMBED_MODEL,
            dim=settings.EMBED_DIM,
        )
    except Exception as exc:
        raise _embed_error(exc, stage="embed_query") from exc

    ranked = rank_by_similarity(
        query_vec,
        candidates,
        vector_of=lambda pair: pair[0].embedding,
        top_k=k,
        min_score=threshold,
    )
    hits = [
        {
            "document_id": row.document_id,
            "title": title,
            "chunk_index": row.chunk_index,
            "content": row.content,
            "score": round(float(score), 6),
        }
        for (row, title), score in ranked
    ]
    log_event(
        get_logger("services.document"),
        logging.INFO,
        "document.searched",
        context=trace_context,
        fields={"user_id": str(user_id), "query": truncate_text(q), "hits": len(hits), "candidates": len(candidates)},
    )
    return hits
