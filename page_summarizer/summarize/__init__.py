"""Summarization modules."""

from .chunking import (
    count_tokens,
    estimate_max_content_chars,
    overlap_for,
    plan_chunks,
    should_chunk,
    split_content,
)
from .client import ApiClient, KeyTestResult
from .prompts import PromptContext, build_chunk_prompt, build_synthesis_prompt, get_summary_prompt

__all__ = [
    "ApiClient",
    "KeyTestResult",
    "PromptContext",
    "build_chunk_prompt",
    "build_synthesis_prompt",
    "count_tokens",
    "estimate_max_content_chars",
    "get_summary_prompt",
    "overlap_for",
    "plan_chunks",
    "should_chunk",
    "split_content",
]
