"""Pydantic schemas for the ingestion and search API."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from rexai.config import settings


class IngestRequest(BaseModel):
    """A document to ingest, referenced by URL.

    Accepts the camelCase field names sent by the mobile client as well.
    """

    model_config = ConfigDict(populate_by_name=True)

    file_url: str | None = Field(
        None, validation_alias=AliasChoices("file_url", "fileUrl"), max_length=1000
    )
    file_name: str | None = Field(
        None, validation_alias=AliasChoices("file_name", "fileName"), max_length=255
    )
    file_type: str | None = Field(
        None, validation_alias=AliasChoices("file_type", "fileType"), max_length=100
    )


class IngestResponse(BaseModel):
    success: bool = True
    document_id: int
    chunk_count: int
    message: str = "File ingested successfully"


class IngestStatusResponse(BaseModel):
    document_id: int
    status: str = Field(..., description="complete, processing or failed")
    chunk_count: int
    error: str | None = None


class DocumentResponse(BaseModel):
    """Response schema for an ingested document."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    source_uri: str
    file_name: str
    file_type: str | None = None
    summary: str | None = None
    status: str
    error: str | None = None
    created_at: datetime


class DocumentListResponse(BaseModel):
    success: bool = True
    documents: list[DocumentResponse]


class ChunkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    document_id: int
    chunk_index: int
    content: str
    token_count: int


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=2000)
    top_k: int = Field(settings.search_top_k, ge=1, le=50)
    similarity_threshold: float = Field(settings.similarity_threshold, ge=0.0, le=1.0)
    document_id: int | None = None


class SearchResult(BaseModel):
    chunk_id: int
    document_id: int
    chunk_index: int
    content: str
    similarity: float


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResult]
    total: int
