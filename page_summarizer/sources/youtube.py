"""YouTube transcript resolution.

YouTube has no public transcript API, so this module drives the internal
``youtubei`` endpoints the web player itself uses and scrapes the
bootstrap data embedded in the watch page. Any of it may break without
notice when YouTube changes its site. Every strategy is isolated behind
``TranscriptSource`` so one can be retired without touching the rest.
"""

import html as html_lib
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol
from urllib.parse import parse_qs, urlsplit

import httpx

from ..constants import YOUTUBE_TIMEOUT
from ..errors import YoutubeTranscriptUnavailable
from .captions import (
    ParsedTranscript,
    TranscriptSegment,
    json3_url,
    parse_caption_payload,
    parse_transcript_endpoint,
    rank_caption_tracks,
    track_url,
    xml_url,
)

logger = logging.getLogger(__name__)

YOUTUBE_ORIGIN = "https://www.youtube.com"
VIDEO_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}$")
BOOTSTRAP_MARKER_PATTERN = re.compile(r"ytcfg\.set|ytInitialPlayerResponse")
TRANSCRIPT_PARAMS_PATTERN = re.compile(r'"getTranscriptEndpoint":\{"params":"([^"]+)"\}')
INNERTUBE_API_KEY_PATTERN = re.compile(
    r'"INNERTUBE_API_KEY":"([^"]+)"|INNERTUBE_API_KEY\\":\\"([^\\"]+)\\"'
)
XSSI_PREFIX = ")]}'"

REQUEST_HEADERS = {"Accept-Language": "en-US,en;q=0.9"}
JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json", **REQUEST_HEADERS}

# Identity for the fallback player request; mobile clients are blocked less often
ANDROID_CLIENT = {"clientName": "ANDROID", "clientVersion": "20.10.38"}


# ------------------------------
# URL helpers
# ------------------------------
def is_youtube_url(url: str) -> bool:
    """Check if a URL points at YouTube."""
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        host = ""
    if host:
        return "youtube.com" in host or "youtu.be" in host
    lower = url.lower()
    return "youtube.com" in lower or "youtu.be" in lower


def extract_video_id(url: str) -> str | None:
    """Extract the video ID from watch, youtu.be, shorts, embed and /v/ URLs."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    host = (parts.hostname or "").lower()
    segments = parts.path.split("/")
    candidate: str | None = None

    if host == "youtu.be":
        candidate = segments[1] if len(segments) > 1 else None
    elif "youtube.com" in host:
        if parts.path.startswith("/watch"):
            candidate = parse_qs(parts.query).get("v", [None])[0]
        elif parts.path.startswith(("/shorts/", "/embed/", "/v/")):
            candidate = segments[2] if len(segments) > 2 else None

    candidate = (candidate or "").strip()
    if candidate and VIDEO_ID_PATTERN.match(candidate):
        return candidate
    return None


# ------------------------------
# Page parsing
# ------------------------------
def strip_xssi_prefix(text: str) -> str:
    trimmed = text.lstrip()
    return trimmed[len(XSSI_PREFIX):] if trimmed.startswith(XSSI_PREFIX) else trimmed


def extract_balanced_json(source: str, start_at: int = 0) -> str | None:
    """
    Return the first balanced ``{...}`` block at or after ``start_at``.

    Braces inside single- or double-quoted strings (including escaped
    quotes) are ignored.
    """
    start = source.find("{", start_at)
    if start < 0:
        return None

    depth = 0
    quote: str | None = None
    escaping = False
    for index in range(start, len(source)):
        char = source[index]
        if quote:
            if escaping:
                escaping = False
            elif char == "\\":
                escaping = True
            elif char == quote:
                quote = None
            continue

        if char in ('"', "'"):
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return source[start : index + 1]
    return None


def _parse_object(text: str | None) -> dict | None:
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_initial_player_response(html: str) -> dict | None:
    """Parse the ``ytInitialPlayerResponse`` object embedded in a watch page."""
    token = html.find("ytInitialPlayerResponse")
    if token < 0:
        return None
    assignment = html.find("=", token)
    if assignment < 0:
        return None
    return _parse_object(extract_balanced_json(html, assignment))


def extract_bootstrap_config(html: str) -> dict | None:
    """Merge every ``ytcfg.set({...})`` object, falling back to ``var ytcfg``."""
    source = strip_xssi_prefix(html)
    config: dict = {}
    index = source.find("ytcfg.set")
    while index >= 0:
        parsed = _parse_object(extract_balanced_json(source, index))
        if parsed:
            config.update(parsed)
        index = source.find("ytcfg.set", index + len("ytcfg.set"))
    if config:
        return config

    var_index = source.find("var ytcfg")
    if var_index >= 0:
        return _parse_object(extract_balanced_json(source, var_index))
    return None


def extract_innertube_api_key(html: str) -> str | None:
    match = INNERTUBE_API_KEY_PATTERN.search(html)
    if not match:
        return None
    key = (match.group(1) or match.group(2) or "").strip()
    return key or None


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _client_name(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    return _str_or_none(value)


@dataclass
class InnertubeConfig:
    """Request identity scraped from the page bootstrap config."""

    api_key: str | None
    context: dict
    client_name: str | None = None
    client_version: str | None = None
    visitor_data: str | None = None
    page_cl: int | None = None
    page_label: str | None = None
    xsrf_token: str | None = None
    params: str | None = None

    def headers(self) -> dict[str, str]:
        headers = dict(JSON_HEADERS)
        if self.client_name:
            headers["X-Youtube-Client-Name"] = self.client_name
        if self.client_version:
            headers["X-Youtube-Client-Version"] = self.client_version
        if self.visitor_data:
            headers["X-Goog-Visitor-Id"] = self.visitor_data
        if self.page_cl is not None:
            headers["X-Youtube-Page-CL"] = str(self.page_cl)
        if self.page_label:
            headers["X-Youtube-Page-Label"] = self.page_label
        if self.xsrf_token:
            headers["X-Youtube-Identity-Token"] = self.xsrf_token
        return headers

    def context_for(self, original_url: str) -> dict:
        client = self.context.get("client")
        client = dict(client) if isinstance(client, dict) else {}
        client["originalUrl"] = original_url
        return {**self.context, "client": client}


def extract_youtubei_bootstrap(html: str) -> InnertubeConfig | None:
    """Read the innertube key, context and client identity from ``ytcfg``."""
    config = extract_bootstrap_config(html)
    if not config:
        return None
    context = config.get("INNERTUBE_CONTEXT")
    if not isinstance(context, dict):
        return None

    client = context.get("client") if isinstance(context.get("client"), dict) else {}
    page_cl = config.get("PAGE_CL")
    return InnertubeConfig(
        api_key=_str_or_none(config.get("INNERTUBE_API_KEY")),
        context=context,
        client_name=_client_name(config.get("INNERTUBE_CONTEXT_CLIENT_NAME")),
        client_version=_str_or_none(
            config.get("INNERTUBE_CONTEXT_CLIENT_VERSION") or config.get("INNERTUBE_CLIENT_VERSION")
        ),
        visitor_data=_str_or_none(config.get("VISITOR_DATA")) or _str_or_none(client.get("visitorData")),
        page_cl=page_cl if isinstance(page_cl, int) and not isinstance(page_cl, bool) else None,
        page_label=_str_or_none(config.get("PAGE_BUILD_LABEL")),
        xsrf_token=_str_or_none(config.get("XSRF_TOKEN")),
    )


def extract_transcript_config(html: str) -> InnertubeConfig | None:
    """Bootstrap config plus the opaque ``getTranscriptEndpoint`` params token."""
    bootstrap = extract_youtubei_bootstrap(html)
    if bootstrap is None or not bootstrap.api_key:
        return None
    match = TRANSCRIPT_PARAMS_PATTERN.search(html)
    if not match:
        return None
    bootstrap.params = match.group(1)
    bootstrap.xsrf_token = None
    return bootstrap


def extract_meta_content(html: str, name: str) -> str | None:
    """Read ``content`` from a ``<meta name|property=...>`` tag."""
    tag = re.search(
        rf"""<meta[^>]+(?:name|property)=["']{re.escape(name)}["'][^>]*>""", html, re.IGNORECASE
    )
    if not tag:
        return None
    content = re.search(r"""content\s*=\s*(?:"([^"]*)"|'([^']*)')""", tag.group(0), re.IGNORECASE)
    if not content:
        return None
    value = content.group(1) if content.group(1) is not None else content.group(2)
    if not value:
        return None
    return html_lib.unescape(value)


@dataclass
class VideoMetadata:
    title: str | None = None
    description: str | None = None


def extract_metadata(html: str) -> VideoMetadata:
    """Title and description from player JSON, falling back to meta tags."""
    player = extract_initial_player_response(html) or {}
    details = player.get("videoDetails") if isinstance(player.get("videoDetails"), dict) else {}
    title = _str_or_none(details.get("title")) or extract_meta_content(html, "og:title")
    description = (
        _str_or_none(details.get("shortDescription"))
        or extract_meta_content(html, "description")
        or extract_meta_content(html, "og:description")
    )
    return VideoMetadata(title=title or None, description=description or None)


def normalize_transcript_text(text: str) -> str:
    """Collapse spaces and tabs, keep at most one blank line, trim."""
    text = text.replace("\r\n", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


# ------------------------------
# Results
# ------------------------------
@dataclass
class StrategyOutcome:
    """What one strategy produced, or why it produced nothing."""

    name: str
    transcript: ParsedTranscript | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.transcript is not None and bool(self.transcript.text)


@dataclass
class TranscriptResult:
    """Result of transcript resolution."""

    text: str | None
    source: str  # "youtubei" | "captionTracks" | "description" | "unavailable"
    segments: list[TranscriptSegment] | None = None
    title: str | None = None
    attempts: list[StrategyOutcome] = field(default_factory=list)


@dataclass
class PageContext:
    """Inputs shared by every strategy for one video."""

    url: str
    video_id: str
    html: str
    mode: str = "auto"


class StrategySkipped(Exception):
    """Raised inside a strategy to stop it with a reason."""


class TranscriptSource(Protocol):
    """One way of obtaining a transcript."""

    name: str

    async def fetch(self, page: PageContext) -> StrategyOutcome: ...


class YouTubeHttp:
    """Thin httpx wrapper applying YouTube headers and a bounded timeout."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = YOUTUBE_TIMEOUT) -> None:
        self.client = client
        self.timeout = timeout

    async def get_text(self, url: str, headers: Mapping[str, str] | None = None) -> str | None:
        response = await self.client.get(
            url, headers={**REQUEST_HEADERS, **(headers or {})}, timeout=self.timeout
        )
        if not response.is_success:
            logger.debug("GET %s returned %d", urlsplit(url).path, response.status_code)
            return None
        return response.text

    async def post_json(self, url: str, payload: Mapping[str, Any], headers: Mapping[str, str]) -> dict:
        response = await self.client.post(url, json=payload, headers=dict(headers), timeout=self.timeout)
        if not response.is_success:
            raise StrategySkipped(f"POST {urlsplit(url).path} returned {response.status_code}")
        parsed = _parse_object(strip_xssi_prefix(response.text))
        if parsed is None:
            raise StrategySkipped(f"POST {urlsplit(url).path} returned non-JSON body")
        return parsed


async def _run(name: str, page: PageContext, step) -> StrategyOutcome:
    """Run one strategy body, converting any failure into a reason."""
    try:
        transcript = await step(page)
    except StrategySkipped as e:
        return StrategyOutcome(name, reason=str(e))
    except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
        logger.debug("%s strategy failed: %s", name, e)
        return StrategyOutcome(name, reason=f"{type(e).__name__}: {e}")
    if transcript is None or not transcript.text:
        return StrategyOutcome(name, reason="no transcript text")
    return StrategyOutcome(name, transcript=transcript)


class YoutubeiTranscriptSource:
    """POST the page's transcript params token to ``/youtubei/v1/get_transcript``."""

    name = "youtubei"

    def __init__(self, http: YouTubeHttp) -> None:
        self.http = http

    async def fetch(self, page: PageContext) -> StrategyOutcome:
        return await _run(self.name, page, self._fetch)

    async def _fetch(self, page: PageContext) -> ParsedTranscript | None:
        if page.mode == "no-auto":
            raise StrategySkipped("disabled in no-auto mode")
        config = extract_transcript_config(page.html)
        if config is None:
            raise StrategySkipped("no transcript endpoint config in page")

        data = await self.http.post_json(
            f"{YOUTUBE_ORIGIN}/youtubei/v1/get_transcript?key={config.api_key}",
            {"context": config.context_for(page.url), "params": config.params},
            config.headers(),
        )
        return parse_transcript_endpoint(data)


class CaptionTrackSource:
    """
    Download a caption track listed in a player payload.

    The payload comes from the page itself when embedded, otherwise from a
    web-client ``/youtubei/v1/player`` request, and finally from the same
    request made with an Android client identity.
    """

    name = "captionTracks"

    def __init__(self, http: YouTubeHttp) -> None:
        self.http = http

    async def fetch(self, page: PageContext) -> StrategyOutcome:
        return await _run(self.name, page, self._fetch)

    async def _fetch(self, page: PageContext) -> ParsedTranscript | None:
        skip_auto = page.mode == "no-auto"

        player = extract_initial_player_response(page.html)
        if player:
            transcript = await self._from_player_payload(player, skip_auto)
            if transcript:
                return transcript

        bootstrap = extract_youtubei_bootstrap(page.html)
        if bootstrap is not None and bootstrap.api_key:
            try:
                transcript = await self._via_web_player(page, bootstrap, skip_auto)
            except (StrategySkipped, httpx.HTTPError) as e:
                logger.debug("Web player request failed: %s", e)
                transcript = None
            if transcript:
                return transcript

        return await self._via_android_player(page, skip_auto)

    async def _via_web_player(
        self, page: PageContext, bootstrap: InnertubeConfig, skip_auto: bool
    ) -> ParsedTranscript | None:
        payload = {
            "context": bootstrap.context_for(page.url),
            "videoId": page.video_id,
            "playbackContext": {"contentPlaybackContext": {"html5Preference": "HTML5_PREF_WANTS"}},
            "contentCheckOk": True,
            "racyCheckOk": True,
        }
        data = await self.http.post_json(
            f"{YOUTUBE_ORIGIN}/youtubei/v1/player?key={bootstrap.api_key}", payload, bootstrap.headers()
        )
        return await self._from_player_payload(data, skip_auto)

    async def _via_android_player(self, page: PageContext, skip_auto: bool) -> ParsedTranscript | None:
        api_key = extract_innertube_api_key(page.html)
        if not api_key:
            raise StrategySkipped("no caption tracks and no innertube API key")
        data = await self.http.post_json(
            f"{YOUTUBE_ORIGIN}/youtubei/v1/player?key={api_key}",
            {"context": {"client": dict(ANDROID_CLIENT)}, "videoId": page.video_id},
            JSON_HEADERS,
        )
        return await self._from_player_payload(data, skip_auto)

    async def _from_player_payload(self, payload: Mapping[str, Any], skip_auto: bool) -> ParsedTranscript | None:
        for track in rank_caption_tracks(payload, skip_auto):
            transcript = await self._download_track(track)
            if transcript:
                return transcript
        return None

    async def _download_track(self, track: Mapping[str, Any]) -> ParsedTranscript | None:
        base_url = track_url(track)
        if not base_url:
            return None
        try:
            raw = await self.http.get_text(json3_url(base_url))
        except httpx.HTTPError as e:
            logger.debug("JSON3 caption download failed: %s", e)
            raw = None
        transcript = parse_caption_payload(raw) if raw else None
        return transcript or await self._download_xml(base_url)

    async def _download_xml(self, base_url: str) -> ParsedTranscript | None:
        try:
            raw = await self.http.get_text(xml_url(base_url))
        except httpx.HTTPError as e:
            logger.debug("XML caption download failed: %s", e)
            return None
        return parse_caption_payload(raw) if raw else None


class YouTubeTranscriptResolver:
    """Tries each transcript source in order, then the video description."""

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        timeout: float = YOUTUBE_TIMEOUT,
        sources: list[TranscriptSource] | None = None,
    ) -> None:
        self._owns_http = http is None
        self._client = http or httpx.AsyncClient(follow_redirects=True)
        self.http = YouTubeHttp(self._client, timeout)
        self.sources: list[TranscriptSource] = (
            sources if sources is not None else [YoutubeiTranscriptSource(self.http), CaptionTrackSource(self.http)]
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self._client.aclose()

    async def _watch_html(self, url: str) -> str | None:
        try:
            return await self.http.get_text(url, {"Accept": "text/html,application/xhtml+xml"})
        except httpx.HTTPError as e:
            logger.debug("Watch page fetch failed: %s", e)
            return None

    async def resolve(self, url: str, html: str | None = None, mode: str = "auto") -> TranscriptResult:
        """
        Resolve transcript text for a YouTube URL.

        Args:
            url: Video page URL
            html: Already-fetched page HTML, if any
            mode: "auto" or "no-auto" (skip auto-generated captions)

        Returns:
            TranscriptResult; ``source`` is "unavailable" when nothing worked
        """
        video_id = extract_video_id(url)
        if not video_id:
            return TranscriptResult(
                text=None, source="unavailable", attempts=[StrategyOutcome("videoId", reason="not a video URL")]
            )

        page_html = html
        if not (isinstance(page_html, str) and BOOTSTRAP_MARKER_PATTERN.search(page_html)):
            page_html = await self._watch_html(url)

        attempts: list[StrategyOutcome] = []
        if page_html:
            page = PageContext(url=url, video_id=video_id, html=page_html, mode=mode)
            for source in self.sources:
                outcome = await source.fetch(page)
                attempts.append(outcome)
                if outcome.ok:
                    metadata = extract_metadata(page_html)
                    return TranscriptResult(
                        text=normalize_transcript_text(outcome.transcript.text),
                        source=outcome.name,
                        segments=outcome.transcript.segments,
                        title=metadata.title,
                        attempts=attempts,
                    )
                logger.debug("Transcript source %s skipped: %s", outcome.name, outcome.reason)
        else:
            attempts.append(StrategyOutcome("watchPage", reason="watch page unavailable"))

        metadata_html = page_html or html
        metadata = extract_metadata(metadata_html) if metadata_html else VideoMetadata()
        if metadata.description:
            return TranscriptResult(
                text=normalize_transcript_text(metadata.description),
                source="description",
                title=metadata.title,
                attempts=attempts,
            )
        return TranscriptResult(text=None, source="unavailable", title=metadata.title, attempts=attempts)

    async def resolve_or_raise(self, url: str, html: str | None = None, mode: str = "auto") -> TranscriptResult:
        result = await self.resolve(url, html, mode)
        if not result.text:
            reasons = "; ".join(f"{a.name}: {a.reason}" for a in result.attempts)
            logger.info("No transcript for %s (%s)", url, reasons)
            raise YoutubeTranscriptUnavailable()
        return result
