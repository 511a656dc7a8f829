"""Document ingestion services: extraction, chunking, storage and the pipeline."""

from importlib import import_module

__all__ = [
    "DocumentFetcher",
    "DocumentExtractor",
    "PDFExtractor",
    "ImageExtractor",
    "get_extractor",
    "normalize_text",
    "ChunkOptions",
    "TextChunker",
    "DocumentStore",
    "SQLDocumentStore",
    "InMemoryDocumentStore",
    "StorageFailure",
    "IngestionPipeline",
    "IngestionFailure",
]

_LAZY_IMPORTS = {
    "DocumentFetcher": ("rexai.services.documents.extraction", "DocumentFetcher"),
    "DocumentExtractor": ("rexai.services.documents.extraction", "DocumentExtractor"),
    "PDFExtractor": ("rexai.services.documents.extraction", "PDFExtractor"),
    "ImageExtractor": ("rexai.services.documents.extraction", "ImageExtractor"),
    "get_extractor": ("rexai.services.documents.extraction", "get_extractor"),
    "normalize_text": ("rexai.services.documents.extraction", "normalize_text"),
    "ChunkOptions": ("rexai.services.documents.chunking", "ChunkOptions"),
    "TextChunker": ("rexai.services.documents.chunking", "TextChunker"),
    "DocumentStore": ("rexai.services.documents.store", "DocumentStore"),
    "SQLDocumentStore": ("rexai.services.documents.store", "SQLDocumentStore"),
    "InMemoryDocumentStore": ("rexai.services.documents.store", "InMemoryDocumentStore"),
    "StorageFailure": ("rexai.services.documents.store", "StorageFailure"),
    "IngestionPipeline": ("rexai.services.documents.pipeline", "IngestionPipeline"),
    "IngestionFailure": ("rexai.services.documents.pipeline", "IngestionFailure"),
}


def __getattr__(name: str):
    target = _LAZY_IMPORTS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    return getattr(import_module(module_name), attr_name)
