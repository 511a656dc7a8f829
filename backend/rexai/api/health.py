from fastapi import APIRouter

from rexai.config import settings
from rexai.services.embeddings.embedding import get_embedding_service
from rexai.services.documents.pipeline import background_tasks

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "service": "rexai-api",
        "embedding_model_loaded": get_embedding_service().is_loaded,
        "pending_summaries": len(background_tasks),
    }


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "docs": "/docs",
        "health": "/health",
    }
