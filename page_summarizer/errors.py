"""Exception hierarchy shared across the summarizer."""

from .constants import ERRORS


class SummarizerError(Exception):
    """Base error; ``str(error)`` is the user-facing message."""

    default_message = ERRORS["API_CALL_FAILED"]

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class NoApiKey(SummarizerError):
    """Raised when no API key is configured."""

    default_message = ERRORS["NO_API_KEY"]


class UnsupportedProvider(SummarizerError):
    """Raised for a provider id without a registered adapter."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Unsupported provider: {provider}")


class InvalidResponseFormat(SummarizerError):
    """Raised when a provider response lacks generated text."""

    default_message = ERRORS["INVALID_RESPONSE_FORMAT"]


class RequestTimeout(SummarizerError):
    """Raised when a provider call exceeds its wall-clock timeout."""

    default_message = ERRORS["TIMEOUT"]


class RequestCancelled(SummarizerError):
    """Raised when ``cancel_request`` aborts an in-flight call."""

    default_message = ERRORS["CANCELLED"]


class ApiCallFailed(SummarizerError):
    """Raised when a provider call fails after all retries."""

    default_message = ERRORS["API_CALL_FAILED"]


class ContentExtractionFailed(SummarizerError):
    default_message = ERRORS["CONTENT_EXTRACTION_FAILED"]


class ContentTooShort(SummarizerError):
    default_message = ERRORS["CONTENT_TOO_SHORT"]


class YoutubeTranscriptUnavailable(SummarizerError):
    default_message = ERRORS["YOUTUBE_TRANSCRIPT_UNAVAILABLE"]


class UnsupportedPage(SummarizerError):
    default_message = ERRORS["UNSUPPORTED_PAGE"]


class NetworkError(SummarizerError):
    default_message = ERRORS["NETWORK_ERROR"]
