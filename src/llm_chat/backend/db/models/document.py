# src/llm_chat/backend/db/models/document.py

from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from llm_chat.backend.db.base import Base, TimestampMixin


class DocumentModel(Base, TimestampMixin):
    """
    [职责] 用户文档：原文与切分/embedding 配置快照（可回放）。
    [边界] 向量存 document_embedding 表；不做 ANN 索引。
    [上游关系] document_service.ingest_document 写入。
    [下游关系] document_embedding 通过 document_id 级联删除；chat 检索上下文引用 document_id。
    """

    __tablename__ = "document"
    __table_args__ = (UniqueConstraint("user_id", "sha256", name="uq_document_user_sha256"),)

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="文档ID（UUID字符串）",
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="用户ID（外键）",
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False, comment="文档标题")

    source: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="来源（URL/文件名，可空）",
    )

    content: Mapped[str] = mapped_column(Text, nullable=False, comment="文档原文")

    sha256: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="原文 sha256（同用户内去重）",
    )

    chunk_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="切分块数量")

    embed_provider: Mapped[str] = mapped_column(String(64), nullable=False, comment="Embedding provider")
    embed_model: Mapped[str] = mapped_column(String(128), nullable=False, comment="Embedding 模型名称")
    embed_dim: Mapped[int] = mapped_column(Integer, nullable=False, comment="Embedding 向量维度")

    meta_data: Mapped[dict] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
        comment="扩展字段（chunk_size/chunk_overlap 等）",
    )


class DocumentEmbeddingModel(Base, TimestampMixin):
    """
    [职责] 文档切块与其向量（JSON float 列表）。
    [边界] 相似度在 Python 侧精确计算；不依赖数据库向量扩展。
    """

    __tablename__ = "document_embedding"
    __table_args__ = (UniqueConstraint("document_id", "chunk_index", name="uq_embedding_document_chunk"),)

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="切块ID（UUID字符串）",
    )

    document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("document.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="文档ID（外键）",
    )

    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False, comment="文档内切块序号（从 0 开始）")
    content: Mapped[str] = mapped_column(Text, nullable=False, comment="切块文本")

    embedding: Mapped[List[float]] = mapped_column(
        JSON,
        nullable=False,
        comment="向量（float 列表）",
    )

    dim: Mapped[int] = mapped_column(Integer, nullable=False, comment="向量维度")
