from typing import TYPE_CHECKING, Optional

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rexai.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from rexai.models.document_chunk import DocumentChunk


class Document(Base, TimestampMixin):
    """An ingested patient document (scan, PDF or text file)."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(
        String(128), nullable=False, index=True,
        comment="Id of the user who ingested the document"
    )

    source_uri: Mapped[str] = mapped_column(String(1000), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    extracted_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="processing",
        comment="processing, completed, failed"
    )
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    chunks: Mapped[list["DocumentChunk"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DocumentChunk.chunk_index",
    )

    __table_args__ = (
        Index("ix_documents_owner_created", "owner_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, owner='{self.owner_id}', file_name='{self.file_name}')>"
