"""Document and chunk storage.

Two implementations share the ``DocumentStore`` protocol: one backed by
PostgreSQL/pgvector through SQLAlchemy, and an in-memory one for tests and
local demos. Both guarantee that a document's chunks become visible all at
once, so readers never see a gapped index sequence.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

import numpy as np
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rexai.config import settings
from rexai.models import Document, DocumentChunk

logger = logging.getLogger("rexai.store")

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class StorageFailure(Exception):
    """Raised when documents or chunks cannot be persisted."""


@dataclass
class EmbeddedChunk:
    """A chunk ready for storage: position, text and embedding."""

    index: int
    content: str
    token_count: int
    embedding: Sequence[float]


@dataclass
class SimilarChunk:
    """A stored chunk matched by similarity search."""

    chunk_id: int
    document_id: int
    chunk_index: int
    content: str
    similarity: float

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "document_id": self.document_id,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "similarity": round(self.similarity, 4),
        }


class DocumentStore(Protocol):
    async def create_document(
        self,
        owner_id: str,
        source_uri: str,
        file_name: str,
        file_type: Optional[str],
    ):
        ...

    async def get_document(self, document_id: int):
        ...

    async def update_extracted_text(self, document_id: int, text: str) -> None:
        ...

    async def update_status(
        self, document_id: int, status: str, error: Optional[str] = None
    ) -> None:
        ...

    async def store_chunks(
        self,
        document_id: int,
        owner_id: str,
        chunks: Sequence[EmbeddedChunk],
    ) -> None:
        ...

    async def get_chunk_count(self, document_id: int) -> int:
        ...

    async def get_document_chunks(
        self, document_id: int, limit: Optional[int] = None
    ) -> list:
        ...

    async def update_document_summary(self, document_id: int, summary: str) -> None:
        ...

    async def get_user_documents(self, owner_id: str) -> list:
        ...

    async def search_similar_chunks(
        self,
        owner_id: str,
        query_embedding: Sequence[float],
        top_k: int,
        similarity_threshold: float,
        document_id: Optional[int] = None,
    ) -> list[SimilarChunk]:
        ...

    async def delete_document(self, document_id: int, owner_id: str) -> bool:
        ...


def check_chunk_sequence(chunks: Sequence[EmbeddedChunk], dimension: int) -> None:
    """Reject chunk batches that would break the stored-chunk invariants.

    Raises:
        StorageFailure: If indices are not exactly 0..N-1 in order, or an
            embedding does not have ``dimension`` components
    """
    for position, chunk in enumerate(chunks):
        if chunk.index != position:
            raise StorageFailure(
                f"Chunk indices must run 0..{len(chunks) - 1} in order; "
                f"got {chunk.index} at position {position}"
            )
        if len(chunk.embedding) != dimension:
            raise StorageFailure(
                f"Chunk {chunk.index} embedding has {len(chunk.embedding)} "
                f"components, expected {dimension}"
            )


def _check_summary(summary: str) -> None:
    if not summary or not summary.strip():
        raise ValueError("Summary must be a non-empty string")


class SQLDocumentStore:
    """Document store backed by SQLAlchemy and pgvector.

    Every write commits its own transaction, so a document's chunks are
    either all committed or none are.
    """

    def __init__(self, db: AsyncSession, dimension: int | None = None):
        self.db = db
        self.dimension = dimension or settings.embedding_dimension

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StorageFailure(f"Failed to {action}: {exc}") from exc

    async def create_document(
        self,
        owner_id: str,
        source_uri: str,
        file_name: str,
        file_type: Optional[str],
    ) -> Document:
        document = Document(
            owner_id=owner_id,
            source_uri=source_uri,
            file_name=file_name,
            file_type=file_type,
            status=STATUS_PROCESSING,
        )
        self.db.add(document)
        await self._commit("create document")
        await self.db.refresh(document)
        return document

    async def get_document(self, document_id: int) -> Optional[Document]:
        result = await self.db.execute(
            select(Document).where(Document.id == document_id)
        )
        return result.scalar_one_or_none()

    async def _update_document(self, document_id: int, action: str, **values) -> None:
        try:
            result = await self.db.execute(
                update(Document).where(Document.id == document_id).values(**values)
            )
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StorageFailure(f"Failed to {action}: {exc}") from exc
        if result.rowcount == 0:
            await self.db.rollback()
            raise StorageFailure(f"Failed to {action}: document {document_id} not found")
        await self._commit(action)

    async def update_extracted_text(self, document_id: int, text: str) -> None:
        await self._update_document(document_id, "store extracted text", extracted_text=text)

    async def update_status(
        self, document_id: int, status: str, error: Optional[str] = None
    ) -> None:
        await self._update_document(
            document_id, "update status", status=status, error=error
        )

    async def store_chunks(
        self,
        document_id: int,
        owner_id: str,
        chunks: Sequence[EmbeddedChunk],
    ) -> None:
        check_chunk_sequence(chunks, self.dimension)

        document = await self.get_document(document_id)
        if document is None:
            raise StorageFailure(f"Document {document_id} not found")
        if document.owner_id != owner_id:
            raise StorageFailure(f"Document {document_id} is not owned by {owner_id}")
        if await self.get_chunk_count(document_id) > 0:
            raise StorageFailure(f"Document {document_id} already has chunks")

        self.db.add_all(
            [
                DocumentChunk(
                    document_id=document_id,
                    owner_id=owner_id,
                    chunk_index=chunk.index,
                    content=chunk.content,
                    content_hash=hashlib.sha256(chunk.content.encode()).hexdigest(),
                    token_count=chunk.token_count,
                    embedding=list(chunk.embedding),
                )
                for chunk in chunks
            ]
        )
        await self._commit("store chunks")

    async def get_chunk_count(self, document_id: int) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(DocumentChunk)
            .where(DocumentChunk.document_id == document_id)
        )
        return int(result.scalar_one())

    async def get_document_chunks(
        self, document_id: int, limit: Optional[int] = None
    ) -> list[DocumentChunk]:
        query = (
            select(DocumentChunk)
            .where(DocumentChunk.document_id == document_id)
            .order_by(DocumentChunk.chunk_index.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update_document_summary(self, document_id: int, summary: str) -> None:
        _check_summary(summary)
        await self._update_document(document_id, "update summary", summary=summary)

    async def get_user_documents(self, owner_id: str) -> list[Document]:
        result = await self.db.execute(
            select(Document)
            .where(Document.owner_id == owner_id)
            .order_by(Document.created_at.desc(), Document.id.desc())
        )
        return list(result.scalars().all())

    async def search_similar_chunks(
        self,
        owner_id: str,
        query_embedding: Sequence[float],
        top_k: int,
        similarity_threshold: float,
        document_id: Optional[int] = None,
    ) -> list[SimilarChunk]:
        distance = DocumentChunk.embedding.cosine_distance(list(query_embedding))
        query = (
            select(
                DocumentChunk.id,
                DocumentChunk.document_id,
                DocumentChunk.chunk_index,
                DocumentChunk.content,
                distance.label("distance"),
            )
            .where(DocumentChunk.owner_id == owner_id)
            .where(distance <= 1 - similarity_threshold)
        )
        if document_id is not None:
            query = query.where(DocumentChunk.document_id == document_id)
        query = query.order_by(distance).limit(top_k)

        result = await self.db.execute(query)
        return [
            SimilarChunk(
                chunk_id=row.id,
                document_id=row.document_id,
                chunk_index=row.chunk_index,
                content=row.content,
                similarity=1 - float(row.distance),
            )
            for row in result.all()
        ]

    async def delete_document(self, document_id: int, owner_id: str) -> bool:
        document = await self.get_document(document_id)
        if document is None or document.owner_id != owner_id:
            return False
        await self.db.execute(
            delete(DocumentChunk).where(DocumentChunk.document_id == document_id)
        )
        await self.db.delete(document)
        await self._commit("delete document")
        return True


@dataclass
class InMemoryDocument:
    id: int
    owner_id: str
    source_uri: str
    file_name: str
    file_type: Optional[str]
    created_at: datetime
    status: str = STATUS_PROCESSING
    error: Optional[str] = None
    extracted_text: Optional[str] = None
    summary: Optional[str] = None


@dataclass
class InMemoryChunk:
    id: int
    document_id: int
    owner_id: str
    chunk_index: int
    content: str
    token_count: int
    embedding: tuple[float, ...] = field(repr=False)


class InMemoryDocumentStore:
    """In-memory document store for tests and local demos."""

    def __init__(self, dimension: int | None = None):
        self.dimension = dimension or settings.embedding_dimension
        self._documents: dict[int, InMemoryDocument] = {}
        self._chunks: dict[int, list[InMemoryChunk]] = {}
        self._next_document_id = 1
        self._next_chunk_id = 1

    @asynccontextmanager
    async def scope(self) -> AsyncIterator["InMemoryDocumentStore"]:
        """Store scope for background work; the same instance is shared."""
        yield self

    def _require(self, document_id: int) -> InMemoryDocument:
        document = self._documents.get(document_id)
        if document is None:
            raise StorageFailure(f"Document {document_id} not found")
        return document

    async def create_document(
        self,
        owner_id: str,
        source_uri: str,
        file_name: str,
        file_type: Optional[str],
    ) -> InMemoryDocument:
        document = InMemoryDocument(
            id=self._next_document_id,
            owner_id=owner_id,
            source_uri=source_uri,
            file_name=file_name,
            file_type=file_type,
            created_at=datetime.now(timezone.utc),
        )
        self._documents[document.id] = document
        self._next_document_id += 1
        return document

    async def get_document(self, document_id: int) -> Optional[InMemoryDocument]:
        return self._documents.get(document_id)

    async def update_extracted_text(self, document_id: int, text: str) -> None:
        self._require(document_id).extracted_text = text

    async def update_status(
        self, document_id: int, status: str, error: Optional[str] = None
    ) -> None:
        document = self._require(document_id)
        document.status = status
        document.error = error

    async def store_chunks(
        self,
        document_id: int,
        owner_id: str,
        chunks: Sequence[EmbeddedChunk],
    ) -> None:
        check_chunk_sequence(chunks, self.dimension)
        document = self._require(document_id)
        if document.owner_id != owner_id:
            raise StorageFailure(f"Document {document_id} is not owned by {owner_id}")
        if self._chunks.get(document_id):
            raise StorageFailure(f"Document {document_id} already has chunks")

        stored = []
        for chunk in chunks:
            stored.append(
                InMemoryChunk(
                    id=self._next_chunk_id + len(stored),
                    document_id=document_id,
                    owner_id=owner_id,
                    chunk_index=chunk.index,
                    content=chunk.content,
                    token_count=chunk.token_count,
                    embedding=tuple(float(v) for v in chunk.embedding),
                )
            )
        # Publish the whole batch at once.
        self._chunks[document_id] = stored
        self._next_chunk_id += len(stored)

    async def get_chunk_count(self, document_id: int) -> int:
        return len(self._chunks.get(document_id, []))

    async def get_document_chunks(
        self, document_id: int, limit: Optional[int] = None
    ) -> list[InMemoryChunk]:
        chunks = self._chunks.get(document_id, [])
        return list(chunks if limit is None else chunks[:limit])

    async def update_document_summary(self, document_id: int, summary: str) -> None:
        _check_summary(summary)
        self._require(document_id).summary = summary

    async def get_user_documents(self, owner_id: str) -> list[InMemoryDocument]:
        documents = [d for d in self._documents.values() if d.owner_id == owner_id]
        return sorted(documents, key=lambda d: (d.created_at, d.id), reverse=True)

    async def search_similar_chunks(
        self,
        owner_id: str,
        query_embedding: Sequence[float],
        top_k: int,
        similarity_threshold: float,
        document_id: Optional[int] = None,
    ) -> list[SimilarChunk]:
        query = np.asarray(query_embedding, dtype=np.float64)
        query_norm = np.linalg.norm(query)
        matches = []
        for doc_id, chunks in self._chunks.items():
            if document_id is not None and doc_id != document_id:
                continue
            for chunk in chunks:
                if chunk.owner_id != owner_id:
                    continue
                vector = np.asarray(chunk.embedding, dtype=np.float64)
                denominator = query_norm * np.linalg.norm(vector)
                similarity = float(np.dot(query, vector) / denominator) if denominator else 0.0
                if similarity >= similarity_threshold:
                    matches.append(
                        SimilarChunk(
                            chunk_id=chunk.id,
                            document_id=doc_id,
                            chunk_index=chunk.chunk_index,
                            content=chunk.content,
                            similarity=similarity,
                        )
                    )
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:top_k]

    async def delete_document(self, document_id: int, owner_id: str) -> bool:
        document = self._documents.get(document_id)
        if document is None or document.owner_id != owner_id:
            return False
        self._chunks.pop(document_id, None)
        del self._documents[document_id]
        return True
