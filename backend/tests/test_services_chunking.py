import pytest

from rexai.services.documents.chunking import (
    ChunkOptions,
    TextChunker,
    split_into_segments,
)


class WordTokenizer:
    def __init__(self):
        self.calls = 0

    def count_tokens(self, text: str) -> int:
        self.calls += 1
        return len(text.split())


def _notes(count: int) -> list[str]:
    return [f"Patient note {i} records a stable reading today." for i in range(count)]


def _sentences(chunk_content: str) -> list[str]:
    return split_into_segments(chunk_content)


def _overlap(previous: list[str], current: list[str]) -> list[str]:
    for size in range(min(len(previous), len(current)), 0, -1):
        if previous[-size:] == current[:size]:
            return current[:size]
    return []


def test_split_into_segments_boundaries():
    text = "Hello there. world is lower. Next one!\nNew line\n\n   \nLast"

    assert split_into_segments(text) == [
        "Hello there. world is lower.",
        "Next one!",
        "New line",
        "Last",
    ]


def test_chunk_text_empty_input_returns_nothing():
    chunker = TextChunker(ChunkOptions(), tokenizer=WordTokenizer())

    assert chunker.chunk_text("") == []
    assert chunker.chunk_text("   \n\t ") == []


def test_forty_sentences_produce_overlapping_chunks_in_order():
    sentences = _notes(40)
    chunker = TextChunker(
        ChunkOptions(max_tokens=256, overlap_tokens=50, min_tokens=20),
        tokenizer=WordTokenizer(),
    )

    chunks = chunker.chunk_text(" ".join(sentences))

    assert len(chunks) >= 2
    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert all(20 <= c.token_count <= 256 for c in chunks)

    # De-overlapped content reproduces the source order.
    rebuilt: list[str] = []
    previous: list[str] = []
    for chunk in chunks:
        current = _sentences(chunk.content)
        shared = _overlap(previous, current)
        assert sum(len(s.split()) for s in shared) <= 50
        rebuilt.extend(current[len(shared):])
        previous = current
    assert rebuilt == sentences


def test_overlap_shrinks_with_overlap_budget():
    text = " ".join(_notes(40))
    shared_tokens = []
    for overlap in (50, 20, 8):
        chunker = TextChunker(
            ChunkOptions(max_tokens=64, overlap_tokens=overlap, min_tokens=8),
            tokenizer=WordTokenizer(),
        )
        chunks = chunker.chunk_text(text)
        first, second = _sentences(chunks[0].content), _sentences(chunks[1].content)
        shared_tokens.append(sum(len(s.split()) for s in _overlap(first, second)))

    assert shared_tokens == sorted(shared_tokens, reverse=True)
    assert shared_tokens[0] <= 50
    assert shared_tokens[-1] <= 8


def test_short_trailing_buffer_is_dropped():
    chunker = TextChunker(
        ChunkOptions(max_tokens=10, overlap_tokens=3, min_tokens=5),
        tokenizer=WordTokenizer(),
    )

    chunks = chunker.chunk_text(
        "Alpha beta gamma delta epsilon zeta eta theta iota. Two words."
    )

    assert len(chunks) == 1
    assert chunks[0].content == "Alpha beta gamma delta epsilon zeta eta theta iota."


def test_text_below_min_tokens_yields_no_chunks():
    chunker = TextChunker(ChunkOptions(min_tokens=20), tokenizer=WordTokenizer())

    assert chunker.chunk_text("Short note. Tiny follow up.") == []


def test_oversized_sentence_is_packed_word_by_word():
    words = [f"w{i}" for i in range(1, 26)]
    chunker = TextChunker(
        ChunkOptions(max_tokens=10, overlap_tokens=3, min_tokens=2),
        tokenizer=WordTokenizer(),
    )

    chunks = chunker.chunk_text(" ".join(words))

    assert [c.index for c in chunks] == [0, 1, 2, 3]
    assert chunks[0].content == " ".join(words[:10])
    assert chunks[1].content.split()[:3] == ["w8", "w9", "w10"]
    assert chunks[-1].content == "w22 w23 w24 w25"
    assert all(c.token_count <= 10 for c in chunks)


def test_leftover_words_carry_into_following_segments():
    long_sentence = " ".join(f"w{i}" for i in range(1, 13))
    chunker = TextChunker(
        ChunkOptions(max_tokens=10, overlap_tokens=2, min_tokens=2),
        tokenizer=WordTokenizer(),
    )

    chunks = chunker.chunk_text(f"{long_sentence}\nTail.")

    assert chunks[-1].content.endswith("w12 Tail.")


def test_per_call_options_override_defaults():
    chunker = TextChunker(ChunkOptions(), tokenizer=WordTokenizer())
    text = " ".join(_notes(10))

    default_chunks = chunker.chunk_text(text)
    small_chunks = chunker.chunk_text(
        text, ChunkOptions(max_tokens=16, overlap_tokens=8, min_tokens=4)
    )

    assert len(default_chunks) == 1
    assert len(small_chunks) > 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_tokens": 0},
        {"overlap_tokens": 0},
        {"min_tokens": -1},
        {"max_tokens": 50, "overlap_tokens": 50},
        {"max_tokens": 50, "overlap_tokens": 10, "min_tokens": 51},
    ],
)
def test_invalid_chunk_options_raise(kwargs):
    with pytest.raises(ValueError):
        ChunkOptions(**kwargs)

