"""Content sources: YouTube transcripts and web articles."""

from .article import ExtractionResult, extract_content, is_content_too_short, text_length
from .youtube import (
    StrategyOutcome,
    TranscriptResult,
    TranscriptSource,
    YouTubeTranscriptResolver,
    extract_video_id,
    is_youtube_url,
)

__all__ = [
    "ExtractionResult",
    "StrategyOutcome",
    "TranscriptResult",
    "TranscriptSource",
    "YouTubeTranscriptResolver",
    "extract_content",
    "extract_video_id",
    "is_content_too_short",
    "is_youtube_url",
    "text_length",
]
