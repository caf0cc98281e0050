# src/llm_chat/backend/api/routers/documents.py

"""
[职责] Documents Router：文档入库、列表、详情、删除与向量检索（/documents）。
[边界] 仅做 HTTP 映射；切分/embedding/检索由 document_service 完成。
[上游关系] 前端知识库面板。
[下游关系] document_service。
"""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from llm_chat.backend.api.deps import get_current_user, get_session, get_trace_context
from llm_chat.backend.api.errors import to_json_response
from llm_chat.backend.api.schemas_http.documents import (
    DocumentCreateRequest,
    DocumentListResponse,
    DocumentSearchRequest,
    DocumentSearchResponse,
    DocumentView,
    SearchHitView,
)
from llm_chat.backend.db.models.user import UserModel
from llm_chat.backend.schemas.audit import TraceContext
from llm_chat.backend.services import document_service
from llm_chat.backend.utils.errors import DomainError


router = APIRouter(prefix="/documents", tags=["documents"])


def _error(exc: DomainError, trace_context: TraceContext) -> JSONResponse:
    return to_json_response(exc, trace_id=str(trace_context.trace_id), request_id=str(trace_context.request_id))


@router.post("", response_model=DocumentView, status_code=201)
async def create_document(
    payload: DocumentCreateRequest,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[DocumentView, JSONResponse]:
    """入库文档；同一用户重复内容返回 409（detail.document_id 指向已有文档）。"""
    try:
        doc = await document_service.ingest_document(
            session,
            user_id=user.id,
            title=payload.title,
            content=payload.content,
            source=payload.source,
            meta_data=payload.meta_data,
            trace_context=trace_context,
        )
    except DomainError as exc:
        return _error(exc, trace_context)
    return DocumentView.model_validate(document_service.serialize_document(doc))


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> DocumentListResponse:
    rows = await document_service.list_documents(session, user_id=user.id, limit=limit, offset=offset)
    return DocumentListResponse(
        items=[DocumentView.model_validate(document_service.serialize_document(d)) for d in rows],
        limit=limit,
        offset=offset,
    )


@router.post("/search", response_model=DocumentSearchResponse)
async def search_documents(
    payload: DocumentSearchRequest,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[DocumentSearchResponse, JSONResponse]:
    try:
        hits = await document_service.search_documents(
            session,
            user_id=user.id,
            query=payload.query,
            top_k=payload.top_k,
            min_score=payload.min_score,
            trace_context=trace_context,
        )
    except DomainError as exc:
        return _error(exc, trace_context)
    return DocumentSearchResponse(query=payload.query, hits=[SearchHitView.model_validate(h) for h in hits])


@router.get("/{document_id}", response_model=DocumentView)
async def get_document(
    document_id: str,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Union[DocumentView, JSONResponse]:
    try:
        doc = await document_service.get_document(session, document_id=str(document_id), user_id=user.id)
    except DomainError as exc:
        return _error(exc, trace_context)
    return DocumentView.model_validate(document_service.serialize_document(doc, include_content=True))


@router.delete("/{document_id}", status_code=204)
async def delete_document(
    document_id: str,
    user: UserModel = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    trace_context: TraceContext = Depends(get_trace_context),
) -> Response:
    try:
        await document_service.delete_document(
            session, document_id=str(document_id), user_id=user.id, trace_context=trace_context
        )
    except DomainError as exc:
        return _error(exc, trace_context)
    return Response(status_code=204)
