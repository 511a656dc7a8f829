"""Embedding services for RexAI."""

from importlib import import_module

__all__ = [
    "EmbeddingService",
    "EmbeddingUnavailable",
    "get_embedding_service",
]

_LAZY_IMPORTS = {
    "EmbeddingService": ("rexai.services.embeddings.embedding", "EmbeddingService"),
    "EmbeddingUnavailable": (
        "rexai.services.embeddings.embedding",
        "EmbeddingUnavailable",
    ),
    "get_embedding_service": (
        "rexai.services.embeddings.embedding",
        "get_embedding_service",
    ),
}


def __getattr__(name: str):
    target = _LAZY_IMPORTS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    return getattr(import_module(module_name), attr_name)
