"""Token-aware text chunking for document ingestion.

Breaks normalized document text into overlapping, token-bounded chunks
for embedding and retrieval.
"""

import re
from dataclasses import dataclass

from rexai.config import settings
from rexai.services.documents.tokenizer import TokenizerAdapter, get_tokenizer

# A boundary follows terminal punctuation + whitespace + an uppercase letter
# (the whitespace is dropped), or follows any newline.
SEGMENT_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z])|(?<=\n)")


@dataclass(frozen=True)
class ChunkOptions:
    """Token limits for one chunking run."""

    max_tokens: int = 256
    overlap_tokens: int = 50
    min_tokens: int = 20

    def __post_init__(self):
        if self.max_tokens <= 0 or self.overlap_tokens <= 0 or self.min_tokens <= 0:
            raise ValueError("Chunk options must be positive integers")
        if self.overlap_tokens >= self.max_tokens:
            raise ValueError("overlap_tokens must be smaller than max_tokens")
        if self.min_tokens > self.max_tokens:
            raise ValueError("min_tokens must not exceed max_tokens")

    @classmethod
    def from_settings(cls) -> "ChunkOptions":
        return cls(
            max_tokens=settings.chunk_max_tokens,
            overlap_tokens=settings.chunk_overlap_tokens,
            min_tokens=settings.chunk_min_tokens,
        )


@dataclass
class TextChunk:
    """A chunk of text from a document."""

    index: int
    content: str
    token_count: int


def split_into_segments(text: str) -> list[str]:
    """Split text into sentence-like segments, preserving reading order."""
    return [s.strip() for s in SEGMENT_BOUNDARY.split(text) if s.strip()]


# A buffered piece of text (sentence or word) with its token count.
_Piece = tuple[str, int]


class TextChunker:
    """Splits text into overlapping chunks measured in model tokens.

    Sentences are packed into a running buffer until the next one would push
    it over ``max_tokens``. The buffer is then emitted (if it reaches
    ``min_tokens``) and its trailing sentences, up to ``overlap_tokens``,
    seed the next chunk. A sentence that alone exceeds ``max_tokens`` is
    packed word by word with the same rules.

    Chunking is a pure function of the text, the options and the tokenizer,
    so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        options: ChunkOptions | None = None,
        tokenizer: TokenizerAdapter | None = None,
    ):
        """Initialize the chunker.

        Args:
            options: Default token limits (from settings when omitted)
            tokenizer: Token counter (the embedding model tokenizer when omitted)
        """
        self.options = options or ChunkOptions.from_settings()
        self.tokenizer = tokenizer or get_tokenizer()

    def chunk_text(
        self,
        text: str,
        options: ChunkOptions | None = None,
    ) -> list[TextChunk]:
        """Chunk already-normalized text.

        Args:
            text: Normalized document text
            options: Token limits overriding the chunker defaults

        Returns:
            Chunks indexed 0..N-1 in reading order
        """
        opts = options or self.options
        if not text or not text.strip():
            return []

        chunks: list[TextChunk] = []
        buffer: list[_Piece] = []
        buffer_tokens = 0

        for segment in split_into_segments(text):
            segment_tokens = self._count(segment)

            if segment_tokens > opts.max_tokens:
                self._emit(buffer, chunks, opts)
                buffer, buffer_tokens = self._pack_words(segment, chunks, opts)
                continue

            if buffer and buffer_tokens + segment_tokens > opts.max_tokens:
                self._emit(buffer, chunks, opts)
                buffer, buffer_tokens = self._overlap_tail(buffer, segment_tokens, opts)

            buffer.append((segment, segment_tokens))
            buffer_tokens += segment_tokens

        self._emit(buffer, chunks, opts)
        return chunks

    def _count(self, text: str) -> int:
        return self.tokenizer.count_tokens(text)

    def _pack_words(
        self,
        segment: str,
        chunks: list[TextChunk],
        opts: ChunkOptions,
    ) -> tuple[list[_Piece], int]:
        """Pack an oversized segment word by word.

        Returns the words left in the buffer, which carry on into the
        following segments.
        """
        buffer: list[_Piece] = []
        buffer_tokens = 0

        for word in segment.split():
            word_tokens = self._count(word)
            if buffer and buffer_tokens + word_tokens > opts.max_tokens:
                self._emit(buffer, chunks, opts)
                buffer, buffer_tokens = self._overlap_tail(buffer, word_tokens, opts)
            buffer.append((word, word_tokens))
            buffer_tokens += word_tokens

        return buffer, buffer_tokens

    def _overlap_tail(
        self,
        pieces: list[_Piece],
        incoming_tokens: int,
        opts: ChunkOptions,
    ) -> tuple[list[_Piece], int]:
        """Take the longest suffix of whole pieces that fits the overlap budget.

        The suffix also has to leave room for the incoming piece, so the next
        chunk stays within max_tokens.
        """
        tail_tokens = 0
        start = len(pieces)
        for i in range(len(pieces) - 1, -1, -1):
            piece_tokens = pieces[i][1]
            if tail_tokens + piece_tokens > opts.overlap_tokens:
                break
            if tail_tokens + piece_tokens + incoming_tokens > opts.max_tokens:
                break
            tail_tokens += piece_tokens
            start = i
        return list(pieces[start:]), tail_tokens

    def _emit(
        self,
        pieces: list[_Piece],
        chunks: list[TextChunk],
        opts: ChunkOptions,
    ) -> None:
        """Append the buffer as a chunk unless it is below min_tokens."""
        if not pieces:
            return
        content = " ".join(piece for piece, _ in pieces).strip()
        if not content:
            return
        token_count = self._count(content)
        if token_count < opts.min_tokens:
            return
        chunks.append(
            TextChunk(index=len(chunks), content=content, token_count=token_count)
        )
