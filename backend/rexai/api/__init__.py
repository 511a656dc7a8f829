"""API Routes for RexAI."""

from rexai.api import health, ingestion, search, validation

__all__ = [
    "health",
    "ingestion",
    "search",
    "validation",
]
