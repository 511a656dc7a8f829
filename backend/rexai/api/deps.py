"""Shared API dependencies."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rexai.database import get_db, get_db_context
from rexai.services.documents.pipeline import IngestionPipeline
from rexai.services.documents.store import DocumentStore, SQLDocumentStore
from rexai.services.embeddings.embedding import EmbeddingService, get_embedding_service
from rexai.services.llm.medical_validator import MedicalValidator, get_medical_validator
from rexai.services.llm.summarization import SummarizationChain, default_summarizers


async def get_owner_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> str:
    """Caller identity, as forwarded by the authenticating gateway."""
    owner_id = (x_user_id or "").strip()
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return owner_id


async def get_document_store(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DocumentStore:
    return SQLDocumentStore(db)


@asynccontextmanager
async def sql_store_scope() -> AsyncIterator[DocumentStore]:
    """A document store on its own session, for work outside a request."""
    async with get_db_context() as session:
        yield SQLDocumentStore(session)


@lru_cache(maxsize=1)
def get_summarization_chain() -> SummarizationChain:
    return SummarizationChain(default_summarizers(), sql_store_scope)


def get_embeddings() -> EmbeddingService:
    return get_embedding_service()


def get_validator() -> MedicalValidator:
    return get_medical_validator()


async def get_pipeline(
    store: Annotated[DocumentStore, Depends(get_document_store)],
    embedding_service: Annotated[EmbeddingService, Depends(get_embeddings)],
) -> IngestionPipeline:
    return IngestionPipeline(
        store=store,
        embedding_service=embedding_service,
        summarization_chain=get_summarization_chain(),
    )


OwnerId = Annotated[str, Depends(get_owner_id)]
Store = Annotated[DocumentStore, Depends(get_document_store)]
