"""Similarity search over the caller's document chunks."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from rexai.api.deps import OwnerId, Store, get_embeddings
from rexai.schemas.document import SearchRequest, SearchResponse, SearchResult
from rexai.services.embeddings.embedding import EmbeddingService, EmbeddingUnavailable

router = APIRouter(prefix="/search", tags=["Search"])


@router.post("", response_model=SearchResponse)
async def search_chunks(
    request: SearchRequest,
    owner_id: OwnerId,
    store: Store,
    embedding_service: Annotated[EmbeddingService, Depends(get_embeddings)],
):
    """Return the chunks most similar to the query, best match first."""
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Query must not be blank")
    try:
        query_embedding = await embedding_service.embed_text(request.query)
    except EmbeddingUnavailable as exc:
        raise HTTPException(status_code=503, detail="Embedding service unavailable") from exc

    matches = await store.search_similar_chunks(
        owner_id,
        query_embedding,
        top_k=request.top_k,
        similarity_threshold=request.similarity_threshold,
        document_id=request.document_id,
    )
    results = [SearchResult(**m.to_dict()) for m in matches]
    return SearchResponse(query=request.query, results=results, total=len(results))
