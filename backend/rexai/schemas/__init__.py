"""Pydantic schemas for API request/response validation."""

from rexai.schemas.document import (
    ChunkResponse,
    DocumentListResponse,
    DocumentResponse,
    IngestRequest,
    IngestResponse,
    IngestStatusResponse,
    SearchRequest,
    SearchResponse,
    SearchResult,
)
from rexai.schemas.validation import (
    StructuredData,
    ValidationResultResponse,
    VoiceResponse,
)

__all__ = [
    # Documents
    "IngestRequest",
    "IngestResponse",
    "IngestStatusResponse",
    "DocumentResponse",
    "DocumentListResponse",
    "ChunkResponse",
    "SearchRequest",
    "SearchResult",
    "SearchResponse",
    # Validation
    "StructuredData",
    "VoiceResponse",
    "ValidationResultResponse",
]
