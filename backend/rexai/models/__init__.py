from rexai.models.base import Base, TimestampMixin
from rexai.models.document import Document
from rexai.models.document_chunk import EMBEDDING_DIMENSION, DocumentChunk

__all__ = [
    "Base",
    "TimestampMixin",
    "Document",
    "DocumentChunk",
    # Constants
    "EMBEDDING_DIMENSION",
]
