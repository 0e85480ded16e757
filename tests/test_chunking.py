"""Tests for content chunking."""

from page_summarizer.constants import MAX_CHUNKS
from page_summarizer.summarize.chunking import (
    count_tokens,
    estimate_max_content_chars,
    overlap_for,
    plan_chunks,
    should_chunk,
    split_content,
)


class TestBudget:
    """Tests for the character budget estimate."""

    def test_small_model_uses_minimum_budget(self) -> None:
        assert estimate_max_content_chars(2048) == 4000

    def test_large_model_budget(self) -> None:
        # (8192 - 1024 - 500) * 4
        assert estimate_max_content_chars(8192) == 26672

    def test_should_chunk_boundary(self) -> None:
        """Content exactly at the budget fits; one more character does not."""
        max_chars = estimate_max_content_chars(2000)
        assert not should_chunk("x" * max_chars, 2000)
        assert should_chunk("x" * (max_chars + 10), 2000)

    def test_should_chunk_empty(self) -> None:
        assert not should_chunk("", 2048)
        assert not should_chunk(None, 2048)

    def test_overlap_is_capped(self) -> None:
        assert overlap_for(4000) == 400
        assert overlap_for(26672) == 500


class TestSplitContent:
    """Tests for split_content."""

    def test_short_content_single_chunk(self) -> None:
        assert split_content("  Short text.  ", 400, 40) == ["Short text."]

    def test_empty_content(self) -> None:
        assert split_content("", 400, 40) == [""]

    def test_sentences_split_within_limit(self) -> None:
        sentence = "This is a sentence about summarization."
        content = " ".join([sentence] * 200)

        chunks = split_content(content, 400, 40)

        assert len(chunks) > 1
        assert all(len(chunk) <= 400 for chunk in chunks[:-1])
        assert all(chunk == chunk.strip() and chunk for chunk in chunks)

    def test_cuts_at_sentence_boundary(self) -> None:
        sentence = "This is a sentence about summarization."
        content = " ".join([sentence] * 50)

        chunks = split_content(content, 400, 0)

        assert all(chunk.endswith(".") for chunk in chunks)

    def test_hard_cut_without_boundaries(self) -> None:
        chunks = split_content("a" * 1000, 400, 0)
        assert chunks == ["a" * 400, "a" * 400, "a" * 200]

    def test_overlap_repeats_text(self) -> None:
        content = "".join(chr(ord("a") + i % 26) for i in range(1000))

        chunks = split_content(content, 400, 50)

        assert chunks[0][-50:] == chunks[1][:50]

    def test_early_boundary_is_ignored(self) -> None:
        """A boundary in the first half of the window does not shorten the chunk."""
        content = "Intro. " + "b" * 800

        chunks = split_content(content, 400, 0)

        assert len(chunks[0]) == 400

    def test_respects_max_chunks(self) -> None:
        content = "a" * 10_000

        chunks = split_content(content, 100, 0, max_chunks=5)

        assert len(chunks) == 5
        assert "".join(chunks) == content

    def test_default_max_chunks(self) -> None:
        chunks = split_content("word " * 20_000, 400, 40)
        assert len(chunks) == MAX_CHUNKS

    def test_no_duplicate_tail(self) -> None:
        content = "a" * 800

        chunks = split_content(content, 400, 0)

        assert chunks == ["a" * 400, "a" * 400]


class TestPlanChunks:
    """Tests for plan_chunks."""

    def test_plan_for_small_model(self) -> None:
        content = "a" * 24_000

        chunks = plan_chunks(content, 2048)

        assert 1 < len(chunks) <= MAX_CHUNKS
        assert all(len(chunk) <= 4000 for chunk in chunks[:-1])


class TestCountTokens:
    """Tests for token counting."""

    def test_counts_tokens(self) -> None:
        count = count_tokens("Hello, world!")
        assert 0 < count < 10

    def test_unknown_model_falls_back(self) -> None:
        assert count_tokens("Hello, world!", model="not-a-real-model") > 0
