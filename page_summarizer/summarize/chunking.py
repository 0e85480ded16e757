"""Splitting oversized content into overlapping, boundary-aware chunks.

Budgets are estimated with a fixed characters-per-token ratio rather than a
real tokenizer. ``count_tokens`` (tiktoken) is only used for diagnostics.
"""

import tiktoken

from ..constants import (
    MAX_CHUNKS,
    MIN_CONTENT_TOKENS,
    OUTPUT_TOKEN_RESERVE,
    OVERLAP_MAX_CHARS,
    OVERLAP_RATIO,
    PROMPT_TOKEN_OVERHEAD,
    TOKEN_CHAR_RATIO,
)

# Natural break points, tried together; the right-most one wins
BOUNDARY_MARKERS = ("\n\n", ". ", "? ", "! ", "\n")


def estimate_max_content_chars(max_tokens: int) -> int:
    """Return how many characters of content fit a model's token budget."""
    available_tokens = max(
        MIN_CONTENT_TOKENS,
        max_tokens - OUTPUT_TOKEN_RESERVE - PROMPT_TOKEN_OVERHEAD,
    )
    return available_tokens * TOKEN_CHAR_RATIO


def should_chunk(content: str | None, max_tokens: int) -> bool:
    """True when content is longer than the estimated single-request budget."""
    if not content:
        return False
    return len(content) > estimate_max_content_chars(max_tokens)


def overlap_for(max_chunk_chars: int) -> int:
    return min(OVERLAP_MAX_CHARS, int(max_chunk_chars * OVERLAP_RATIO))


def _find_boundary(window: str) -> int:
    return max(window.rfind(marker) for marker in BOUNDARY_MARKERS)


def split_content(
    content: str,
    max_chunk_chars: int,
    overlap_chars: int,
    max_chunks: int = MAX_CHUNKS,
) -> list[str]:
    """
    Split content into chunks of at most ``max_chunk_chars`` characters.

    Each window is cut at its right-most natural boundary unless that
    boundary sits in the first half of the window, in which case the window
    is hard-cut at its edge. Consecutive chunks share ``overlap_chars``
    characters. Once ``max_chunks - 1`` chunks exist, the rest of the
    content becomes the final chunk regardless of its size.

    Args:
        content: Text to split
        max_chunk_chars: Upper bound for every chunk but the last
        overlap_chars: Characters repeated at the start of the next chunk
        max_chunks: Hard cap on the number of chunks

    Returns:
        Ordered list of trimmed, non-empty chunks
    """
    if not content or len(content) <= max_chunk_chars:
        return [(content or "").strip()]

    chunks: list[str] = []
    start = 0
    half_window = max_chunk_chars // 2

    while start < len(content):
        if len(chunks) >= max_chunks - 1:
            tail = content[start:].strip()
            if tail:
                chunks.append(tail)
            break

        end = min(start + max_chunk_chars, len(content))
        window = content[start:end]
        boundary = _find_boundary(window)
        offset = boundary + 1 if boundary > half_window else len(window)
        actual_end = start + offset

        chunk = content[start:actual_end].strip()
        if chunk:
            chunks.append(chunk)

        if actual_end >= len(content):
            break

        next_start = actual_end - overlap_chars
        start = next_start if next_start > start else actual_end

    return chunks


def plan_chunks(content: str, max_tokens: int) -> list[str]:
    """Split content using the budget and overlap derived from ``max_tokens``."""
    max_chunk_chars = estimate_max_content_chars(max_tokens)
    return split_content(content, max_chunk_chars, overlap_for(max_chunk_chars))


def count_tokens(text: str, model: str = "gpt-4o-mini") -> int:
    """Count tokens in text using tiktoken."""
    try:
        enc = tiktoken.encoding_for_model(model)
    except KeyError:
        enc = tiktoken.get_encoding("cl100k_base")
    return len(enc.encode(text))
