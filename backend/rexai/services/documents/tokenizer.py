"""Token counting used to bound chunk sizes.

Chunk lengths are measured in model tokens rather than characters so that a
chunk never exceeds what the embedding model actually reads.
"""

import logging
import threading
from functools import lru_cache
from typing import Protocol

from rexai.config import settings

logger = logging.getLogger("rexai.tokenizer")


class TokenizerAdapter(Protocol):
    def count_tokens(self, text: str) -> int:
        ...


class HuggingFaceTokenizer:
    """Counts tokens with the Hugging Face tokenizer of the embedding model.

    The tokenizer is loaded on first use; counting is deterministic and
    thread-safe once loaded.
    """

    def __init__(self, model_name: str | None = None):
        self.model_name = model_name or settings.tokenizer_model
        self._tokenizer = None
        self._load_lock = threading.Lock()

    @property
    def tokenizer(self):
        """Lazy-load the tokenizer."""
        if self._tokenizer is None:
            with self._load_lock:
                if self._tokenizer is None:
                    self._tokenizer = self._load_tokenizer()
        return self._tokenizer

    def _load_tokenizer(self):
        from transformers import AutoTokenizer

        logger.info("Loading tokenizer: %s", self.model_name)
        cache_kwargs = {}
        if settings.hf_cache_dir:
            cache_kwargs["cache_dir"] = str(settings.hf_cache_dir)
        return AutoTokenizer.from_pretrained(self.model_name, **cache_kwargs)

    def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        # Long documents exceed the model window; we only need the count.
        encoded = self.tokenizer(
            text,
            add_special_tokens=False,
            truncation=False,
            return_attention_mask=False,
            verbose=False,
        )
        return len(encoded["input_ids"])


@lru_cache(maxsize=1)
def get_tokenizer() -> HuggingFaceTokenizer:
    """Get the process-wide tokenizer adapter."""
    return HuggingFaceTokenizer()
