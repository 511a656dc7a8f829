from typing import TYPE_CHECKING

from pgvector.sqlalchemy import Vector
from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rexai.config import settings
from rexai.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from rexai.models.document import Document

# all-MiniLM-L6-v2 produces 384-dimensional sentence embeddings
EMBEDDING_DIMENSION = settings.embedding_dimension


class DocumentChunk(Base, TimestampMixin):
    """A token-bounded slice of a document with its vector embedding.

    Chunks are immutable once stored. ``chunk_index`` runs 0..N-1 without gaps
    for each document, in reading order.
    """

    __tablename__ = "document_chunks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    chunk_index: Mapped[int] = mapped_column(
        nullable=False, comment="Zero-based position of the chunk within the document"
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, comment="SHA-256 of content"
    )
    token_count: Mapped[int] = mapped_column(nullable=False)

    embedding: Mapped[list[float]] = mapped_column(
        Vector(EMBEDDING_DIMENSION), nullable=False
    )

    document: Mapped["Document"] = relationship(back_populates="chunks")

    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_document_chunks_position"),
        CheckConstraint("chunk_index >= 0", name="ck_document_chunks_index_non_negative"),
        Index(
            "idx_document_chunks_embedding",
            embedding,
            postgresql_using="hnsw",
            postgresql_with={"m": 16, "ef_construction": 128},
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )

    def __repr__(self) -> str:
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"<DocumentChunk(document={self.document_id}, index={self.chunk_index}, content='{preview}')>"
