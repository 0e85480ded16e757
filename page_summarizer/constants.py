"""Tunable constants for requests, chunking, caching and user-facing errors."""

# Timing (seconds)
TIMEOUT = 25.0
TEST_KEY_TIMEOUT = 5.0
YOUTUBE_TIMEOUT = 15.0
CACHE_TTL_HOURS = 24
RETRY_ATTEMPTS = 3
RETRY_DELAY_BASE = 1.0  # doubled on every retry

# Content extraction
MIN_CONTENT_LENGTH = 500
MAX_CONTENT_LENGTH = 50_000

# Chunking budget (character heuristic, see summarize.chunking)
TOKEN_CHAR_RATIO = 4
MIN_CONTENT_TOKENS = 1000
OUTPUT_TOKEN_RESERVE = 1024
PROMPT_TOKEN_OVERHEAD = 500
MAX_CHUNKS = 10
OVERLAP_RATIO = 0.1
OVERLAP_MAX_CHARS = 500
CHUNK_MAX_OUTPUT_TOKENS = 1024
CHUNK_MIN_TARGET_WORDS = 80
CHUNK_TARGET_DIVISOR_CAP = 6

SUMMARY_LENGTHS = {
    "BRIEF": {"words": 100, "label": "Brief"},
    "STANDARD": {"words": 200, "label": "Standard"},
    "DETAILED": {"words": 400, "label": "Detailed"},
}
DEFAULT_SUMMARY_WORDS = 200

SUMMARY_FORMATS = ("paragraph", "bullets")
YOUTUBE_TRANSCRIPT_MODES = ("auto", "no-auto")

DEFAULTS = {
    "provider": "openai",
    "model": "gpt-5-mini",
    "summary_length": "STANDARD",
    "summary_format": "paragraph",
    "youtube_transcript_mode": "auto",
}

# Pre-migration installs stored only an OpenAI key
LEGACY_API_URL = "https://api.openai.com/v1/chat/completions"
LEGACY_MODEL = "gpt-5-mini"
LEGACY_MAX_TOKENS = 8192

ERRORS = {
    "NO_API_KEY": "API key not found. Please configure your API key in settings.",
    "INVALID_API_KEY": "Invalid API key format. Please check your API key.",
    "CONTENT_TOO_SHORT": "Page content is too short to summarize (minimum 500 characters).",
    "CONTENT_EXTRACTION_FAILED": "Could not extract readable content from this page.",
    "API_CALL_FAILED": "Failed to generate summary. Please try again.",
    "INVALID_RESPONSE_FORMAT": "Invalid response format from API",
    "TIMEOUT": "Summary generation timed out. Please try again.",
    "CANCELLED": "Summary request was cancelled.",
    "UNSUPPORTED_PAGE": "Cannot summarize this page. Try a different website.",
    "NETWORK_ERROR": "Network error. Please check your connection and try again.",
    "YOUTUBE_TRANSCRIPT_UNAVAILABLE": (
        "Could not load a transcript or description for this YouTube video."
    ),
}


def summary_word_count(length: str) -> int:
    """Return the target word count for a summary length, 200 when unknown."""
    entry = SUMMARY_LENGTHS.get(length)
    return entry["words"] if entry else DEFAULT_SUMMARY_WORDS
