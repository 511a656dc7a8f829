"""Embedding service using sentence-transformers.

Generates mean-pooled, L2-normalized vector embeddings for chunk text so
it can be searched by cosine similarity.
"""

import asyncio
import logging
from functools import lru_cache

import numpy as np

from rexai.config import settings

logger = logging.getLogger("rexai.embeddings")


class EmbeddingUnavailable(RuntimeError):
    """Raised when the embedding model cannot be loaded."""


class EmbeddingService:
    """Owns the embedding model and embeds text in bounded batches.

    The model is loaded on first use. Concurrent first callers share a single
    load attempt and all await its outcome. A failed attempt is reported to
    every caller that waited on it; the next call after that tries again.

    Supported models (dimension must match ``settings.embedding_dimension``):
    - all-MiniLM-L6-v2 (384 dims, fast, good quality)
    - multi-qa-MiniLM-L6-cos-v1 (384 dims, optimized for Q&A)
    """

    def __init__(
        self,
        model_name: str | None = None,
        device: str | None = None,
        dimension: int | None = None,
        batch_size: int | None = None,
    ):
        """Initialize the embedding service.

        Args:
            model_name: Name of the sentence-transformers model
            device: Device to run on ('cpu', 'cuda', 'mps'); detected when omitted
            dimension: Expected embedding dimension
            batch_size: Number of texts embedded concurrently per batch
        """
        self.model_name = model_name or settings.embedding_model
        self.device = device
        self.dimension = dimension or settings.embedding_dimension
        self.batch_size = batch_size or settings.embedding_batch_size
        self._model = None
        self._load_lock = asyncio.Lock()
        self._load_task: asyncio.Task | None = None

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    async def ensure_loaded(self):
        """Load the model once; concurrent callers await the same attempt.

        Raises:
            EmbeddingUnavailable: If the model fails to load
        """
        if self._model is not None:
            return self._model

        async with self._load_lock:
            if self._model is not None:
                return self._model
            if self._load_task is None:
                self._load_task = asyncio.create_task(
                    asyncio.to_thread(self._load_model)
                )
            task = self._load_task

        try:
            model = await asyncio.shield(task)
        except Exception as exc:
            async with self._load_lock:
                if self._load_task is task:
                    self._load_task = None
            logger.error("Embedding model failed to load: %s", exc)
            if isinstance(exc, EmbeddingUnavailable):
                raise
            raise EmbeddingUnavailable(
                f"Failed to load embedding model '{self.model_name}': {exc}"
            ) from exc

        self._model = model
        return model

    def _detect_device(self) -> str:
        """Detect best available device."""
        import torch

        if torch.cuda.is_available():
            return "cuda"
        elif torch.backends.mps.is_available():
            return "mps"
        return "cpu"

    def _load_model(self):
        """Load the sentence-transformers model (blocking)."""
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as exc:
            raise EmbeddingUnavailable(
                "sentence-transformers is not installed; "
                "install the project dependencies with: pip install -e ."
            ) from exc

        device = self.device or self._detect_device()
        logger.info("Loading embedding model: %s", self.model_name)

        cache_kwargs = {}
        if settings.hf_cache_dir:
            cache_kwargs["cache_folder"] = str(settings.hf_cache_dir)

        model = SentenceTransformer(self.model_name, device=device, **cache_kwargs)

        model_dimension = model.get_sentence_embedding_dimension()
        if model_dimension != self.dimension:
            raise EmbeddingUnavailable(
                f"Embedding model '{self.model_name}' produces {model_dimension}-dim "
                f"vectors, expected {self.dimension}"
            )
        logger.info("Embedding model loaded on %s (dim=%d)", device, model_dimension)
        return model

    def _encode(self, model, text: str) -> list[float]:
        embedding = model.encode(
            text,
            convert_to_numpy=True,
            normalize_embeddings=True,  # L2 normalize for cosine similarity
        )
        vector = np.asarray(embedding, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self.dimension:
            raise EmbeddingUnavailable(
                f"Embedding has {vector.shape[0]} components, expected {self.dimension}"
            )
        return vector.tolist()

    async def embed_text(self, text: str) -> list[float]:
        """Generate the embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            Unit-length vector with ``dimension`` components
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        model = await self.ensure_loaded()
        return await asyncio.to_thread(self._encode, model, text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for many texts, preserving input order.

        Texts are embedded ``batch_size`` at a time with the batch members
        running concurrently; batches run one after another to bound memory.

        Args:
            texts: Texts to embed

        Returns:
            One embedding per input text, at the same position
        """
        if not texts:
            return []

        await self.ensure_loaded()

        embeddings: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            embeddings.extend(
                await asyncio.gather(*(self.embed_text(text) for text in batch))
            )
        return embeddings


@lru_cache(maxsize=1)
def get_embedding_service() -> EmbeddingService:
    """Get the process-wide embedding service."""
    return EmbeddingService()
