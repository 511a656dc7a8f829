"""Business logic services for RexAI.

This package intentionally avoids eager imports to prevent circular import
chains during application startup.
"""

from importlib import import_module

__all__ = [
    # Documents
    "IngestionPipeline",
    "TextChunker",
    "SQLDocumentStore",
    "InMemoryDocumentStore",
    # Embeddings
    "EmbeddingService",
    # LLM
    "SummarizationChain",
    "MedicalValidator",
]

_LAZY_IMPORTS = {
    "IngestionPipeline": ("rexai.services.documents", "IngestionPipeline"),
    "TextChunker": ("rexai.services.documents", "TextChunker"),
    "SQLDocumentStore": ("rexai.services.documents", "SQLDocumentStore"),
    "InMemoryDocumentStore": ("rexai.services.documents", "InMemoryDocumentStore"),
    "EmbeddingService": ("rexai.services.embeddings", "EmbeddingService"),
    "SummarizationChain": ("rexai.services.llm", "SummarizationChain"),
    "MedicalValidator": ("rexai.services.llm", "MedicalValidator"),
}


def __getattr__(name: str):
    target = _LAZY_IMPORTS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    return getattr(import_module(module_name), attr_name)
