"""End-to-end summarization of one page: cache, content, API, cache."""

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from .cache import SummaryCache
from .constants import TIMEOUT
from .errors import ContentExtractionFailed, ContentTooShort, NetworkError, UnsupportedPage
from .settings import SettingsStore
from .sources.article import extract_content
from .sources.youtube import YouTubeTranscriptResolver, extract_video_id, is_youtube_url
from .summarize.client import ApiClient
from .summarize.prompts import PromptContext

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("http", "https")
BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "en-US,en;q=0.9",
}


@dataclass
class SummaryOutcome:
    """Result of summarizing one page."""

    summary: str
    title: str | None
    from_cache: bool
    source: str = "article"


class Summarizer:
    """
    Runs the summarize flow for a page.

    Cache lookup happens before any extraction; a hit returns immediately.
    YouTube pages are summarized from their transcript (or description),
    everything else from the readable article text.
    """

    def __init__(
        self,
        api_client: ApiClient,
        cache: SummaryCache,
        settings_store: SettingsStore,
        resolver: YouTubeTranscriptResolver | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_client = api_client
        self.cache = cache
        self.settings_store = settings_store
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(follow_redirects=True, timeout=TIMEOUT, headers=BROWSER_HEADERS)
        self.resolver = resolver or YouTubeTranscriptResolver(self.http)

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    def startup(self) -> int:
        """Evict expired cache entries. Returns the number removed."""
        removed = self.cache.cleanup()
        if removed:
            logger.info("Removed %d expired cache entries", removed)
        return removed

    async def fetch_html(self, url: str) -> str:
        try:
            response = await self.http.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"Failed to fetch page: HTTP {e.response.status_code}") from e
        except httpx.InvalidURL as e:
            raise UnsupportedPage() from e
        except httpx.HTTPError as e:
            raise NetworkError() from e
        return response.text

    async def summarize_page(self, url: str, html: str | None = None, title: str | None = None) -> SummaryOutcome:
        """
        Summarize the page at ``url``.

        Args:
            url: Page URL; also the cache key
            html: Page HTML if already available, otherwise it is fetched
            title: Fallback title when none can be extracted

        Raises:
            SummarizerError: On any failure, with a user-facing message
        """
        settings = self.settings_store.load()

        cached = self.cache.get(url, settings)
        if cached is not None:
            logger.debug("Cache hit for %s", url)
            return SummaryOutcome(summary=cached.summary, title=title, from_cache=True, source="cache")

        try:
            scheme = urlsplit(url).scheme.lower()
        except ValueError as e:
            raise UnsupportedPage() from e
        if scheme not in SUPPORTED_SCHEMES:
            raise UnsupportedPage()

        if is_youtube_url(url) and extract_video_id(url):
            transcript = await self.resolver.resolve_or_raise(url, html, settings.youtube_transcript_mode)
            content = transcript.text
            page_title = transcript.title or title
            context = PromptContext(source_type="video", title=page_title)
            source = transcript.source
        else:
            if html is None:
                html = await self.fetch_html(url)
            extraction = extract_content(html, url)
            if not extraction.success:
                if extraction.error == ContentTooShort.default_message:
                    raise ContentTooShort()
                raise ContentExtractionFailed(extraction.error)
            content = extraction.content
            page_title = extraction.title or title
            context = PromptContext(source_type="article", title=page_title)
            source = "article"

        summary = await self.api_client.call_api(content, context)
        self.cache.set(url, settings, summary)
        return SummaryOutcome(summary=summary, title=page_title, from_cache=False, source=source)
