"""Document ingestion API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from rexai.api.deps import OwnerId, Store, get_pipeline
from rexai.schemas.document import (
    ChunkResponse,
    DocumentListResponse,
    DocumentResponse,
    IngestRequest,
    IngestResponse,
    IngestStatusResponse,
)
from rexai.services.documents.extraction import DownloadFailure
from rexai.services.documents.pipeline import IngestionFailure, IngestionPipeline
from rexai.services.documents.store import StorageFailure
from rexai.services.embeddings.embedding import EmbeddingUnavailable

router = APIRouter(prefix="/ingest", tags=["Document Ingestion"])
logger = logging.getLogger("rexai.api.ingestion")


def _failure_to_http(exc: IngestionFailure) -> HTTPException:
    cause = exc.cause
    if isinstance(cause, EmbeddingUnavailable):
        return HTTPException(status_code=503, detail="Embedding service unavailable")
    if isinstance(cause, DownloadFailure):
        return HTTPException(status_code=502, detail=f"Could not download file: {cause}")
    if isinstance(cause, StorageFailure):
        return HTTPException(status_code=500, detail="Failed to store document")
    return HTTPException(status_code=500, detail="Ingestion failed")


@router.post("", response_model=IngestResponse)
async def ingest_document(
    payload: IngestRequest,
    owner_id: OwnerId,
    pipeline: Annotated[IngestionPipeline, Depends(get_pipeline)],
):
    """Ingest a file: extract text, chunk, embed and store.

    The summary is generated in the background after the response is sent.
    """
    if not payload.file_url or not payload.file_name:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: file_url, file_name",
        )

    try:
        result = await pipeline.ingest(
            owner_id=owner_id,
            source_uri=payload.file_url,
            file_name=payload.file_name,
            file_type=payload.file_type,
        )
    except IngestionFailure as exc:
        raise _failure_to_http(exc) from exc

    return IngestResponse(
        document_id=result.document_id,
        chunk_count=result.chunk_count,
        message=(
            "File ingested, but no text could be extracted"
            if result.empty
            else "File ingested successfully"
        ),
    )


@router.get("", response_model=DocumentListResponse)
async def list_documents(owner_id: OwnerId, store: Store):
    """List the caller's documents, newest first."""
    documents = await store.get_user_documents(owner_id)
    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(d) for d in documents]
    )


async def _get_owned_document(store, document_id: int, owner_id: str):
    document = await store.get_document(document_id)
    if document is None or document.owner_id != owner_id:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@router.get("/status/{document_id}", response_model=IngestStatusResponse)
async def get_ingestion_status(document_id: int, owner_id: OwnerId, store: Store):
    document = await _get_owned_document(store, document_id, owner_id)
    chunk_count = await store.get_chunk_count(document_id)
    return IngestStatusResponse(
        document_id=document_id,
        status="complete" if chunk_count > 0 else document.status,
        chunk_count=chunk_count,
        error=document.error,
    )


@router.get("/{document_id}/chunks", response_model=list[ChunkResponse])
async def get_document_chunks(
    document_id: int,
    owner_id: OwnerId,
    store: Store,
    limit: int | None = Query(None, ge=1, le=1000),
):
    await _get_owned_document(store, document_id, owner_id)
    chunks = await store.get_document_chunks(document_id, limit=limit)
    return [ChunkResponse.model_validate(c) for c in chunks]


@router.delete("/{document_id}")
async def delete_document(document_id: int, owner_id: OwnerId, store: Store):
    """Delete one of the caller's documents and its chunks."""
    logger.info("Deleting document %s for %s", document_id, owner_id)
    try:
        deleted = await store.delete_document(document_id, owner_id)
    except StorageFailure as exc:
        logger.error("Delete failed: %s", exc)
        raise HTTPException(status_code=500, detail="Delete failed") from exc
    if not deleted:
        raise HTTPException(status_code=404, detail="Document not found")
    return {"success": True, "message": "Document deleted"}
