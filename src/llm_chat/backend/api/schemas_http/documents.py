# src/llm_chat/backend/api/schemas_http/documents.py

"""
[职责] HTTP Documents Schema：文档入库请求、文档视图与向量检索请求/响应。
[边界] 文档以纯文本上传；不处理文件解析。
[上游关系] routers/documents.py。
[下游关系] document_service。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ._common import DocumentId, OrmSchema, UserId


class DocumentCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    source: Optional[str] = Field(default=None, max_length=512)
    meta_data: Dict[str, Any] = Field(default_factory=dict)


class DocumentView(OrmSchema):
    id: DocumentId
    user_id: UserId
    title: str
    source: Optional[str] = None
    sha256: str
    chunk_count: int = 0
    embed_provider: Optional[str] = None
    embed_model: Optional[str] = None
    embed_dim: Optional[int] = None
    meta_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    content: Optional[str] = None  # docstring: 仅 GET /documents/{id} 返回全文


class DocumentListResponse(BaseModel):
    items: List[DocumentView] = Field(default_factory=list)
    limit: int
    offset: int


class DocumentSearchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., min_length=1, max_length=4096)
    top_k: Optional[int] = Field(default=None, gt=0, le=100)
    min_score: Optional[float] = Field(default=None, ge=-1.0, le=1.0)


class SearchHitView(BaseModel):
    document_id: DocumentId
    title: Optional[str] = None
    chunk_index: int
    content: str
    score: float


class DocumentSearchResponse(BaseModel):
    query: str
    hits: List[SearchHitView] = Field(default_factory=list)
