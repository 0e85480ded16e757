"""Parsers for YouTube caption and transcript payloads."""

import html
import json
import re
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_XML_TEXT_PATTERN = re.compile(r"<text[^>]*>([\s\S]*?)</text>", re.IGNORECASE)
_XML_START_PATTERN = re.compile(r"""\bstart\s*=\s*(['"])([^'"]+)\1""", re.IGNORECASE)
_XML_DUR_PATTERN = re.compile(r"""\bdur\s*=\s*(['"])([^'"]+)\1""", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


@dataclass
class TranscriptSegment:
    """One timed line of a transcript."""

    start_ms: int
    end_ms: int | None
    text: str


@dataclass
class ParsedTranscript:
    """Transcript text plus any timed segments found alongside it."""

    text: str
    segments: list[TranscriptSegment] | None = None


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def parse_timestamp_ms(value: Any, assume_seconds: bool = False) -> int | None:
    """Convert a numeric or numeric-string timestamp to whole milliseconds."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return round(number * 1000) if assume_seconds else round(number)


def _segment(text: str, start: Any, duration: Any, assume_seconds: bool) -> TranscriptSegment | None:
    start_ms = parse_timestamp_ms(start, assume_seconds)
    if start_ms is None:
        return None
    duration_ms = parse_timestamp_ms(duration, assume_seconds)
    end_ms = start_ms + duration_ms if duration_ms is not None else None
    return TranscriptSegment(start_ms=start_ms, end_ms=end_ms, text=_collapse(text))


def _build(lines: list[str], segments: list[TranscriptSegment]) -> ParsedTranscript | None:
    text = "\n".join(lines).strip()
    if not text:
        return None
    return ParsedTranscript(text=text, segments=segments or None)


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def parse_transcript_endpoint(data: Any) -> ParsedTranscript | None:
    """Flatten a ``get_transcript`` response into lines and timed segments."""
    actions = data.get("actions") if isinstance(data, Mapping) else None
    if not isinstance(actions, list) or not actions:
        return None

    initial_segments = _dig(
        actions[0],
        "updateEngagementPanelAction",
        "content",
        "transcriptRenderer",
        "content",
        "transcriptSearchPanelRenderer",
        "body",
        "transcriptSegmentListRenderer",
        "initialSegments",
    )
    if not isinstance(initial_segments, list) or not initial_segments:
        return None

    lines: list[str] = []
    segments: list[TranscriptSegment] = []
    for item in initial_segments:
        renderer = _dig(item, "transcriptSegmentRenderer")
        runs = _dig(renderer, "snippet", "runs")
        if not isinstance(runs, list):
            continue
        text = "".join(
            run["text"] for run in runs if isinstance(run, Mapping) and isinstance(run.get("text"), str)
        ).strip()
        if not text:
            continue
        lines.append(text)
        segment = _segment(text, renderer.get("startMs"), renderer.get("durationMs"), False)
        if segment:
            segments.append(segment)

    return _build(lines, segments)


def parse_json3_transcript(raw: str) -> ParsedTranscript | None:
    """Parse a caption track downloaded with ``fmt=json3``."""
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return None
    events = parsed.get("events") if isinstance(parsed, Mapping) else None
    if not isinstance(events, list):
        return None

    lines: list[str] = []
    segments: list[TranscriptSegment] = []
    for event in events:
        segs = event.get("segs") if isinstance(event, Mapping) else None
        if not isinstance(segs, list):
            continue
        text = "".join(
            seg["utf8"] for seg in segs if isinstance(seg, Mapping) and isinstance(seg.get("utf8"), str)
        ).strip()
        if not text:
            continue
        lines.append(text)
        segment = _segment(text, event.get("tStartMs"), event.get("dDurationMs"), False)
        if segment:
            segments.append(segment)

    return _build(lines, segments)


def parse_xml_transcript(xml: str) -> ParsedTranscript | None:
    """Parse the timed-text XML caption format (times in seconds)."""
    lines: list[str] = []
    segments: list[TranscriptSegment] = []
    for match in _XML_TEXT_PATTERN.finditer(xml or ""):
        decoded = _collapse(html.unescape(match.group(1) or ""))
        if not decoded:
            continue
        lines.append(decoded)
        tag = match.group(0)
        start = _XML_START_PATTERN.search(tag)
        duration = _XML_DUR_PATTERN.search(tag)
        segment = _segment(
            decoded,
            start.group(2) if start else None,
            duration.group(2) if duration else None,
            True,
        )
        if segment:
            segments.append(segment)

    return _build(lines, segments)


def parse_caption_payload(raw: str) -> ParsedTranscript | None:
    """Try the JSON3 format first, then XML."""
    if not raw:
        return None
    return parse_json3_transcript(raw) or parse_xml_transcript(raw)


def json3_url(base_url: str) -> str:
    """Ask for the JSON3 caption format via query parameters."""
    try:
        parts = urlsplit(base_url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(base_url)
    except ValueError:
        separator = "&" if "?" in base_url else "?"
        return f"{base_url}{separator}fmt=json3&alt=json"
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update({"fmt": "json3", "alt": "json"})
    return urlunsplit(parts._replace(query=urlencode(query)))


def xml_url(base_url: str) -> str:
    """Strip any ``fmt`` parameter so the server returns timed-text XML."""
    return re.sub(r"&fmt=[^&]+", "", base_url)


def rank_caption_tracks(payload: Mapping[str, Any], skip_auto_generated: bool) -> list[dict]:
    """
    Order caption track descriptors from a player payload.

    Manual tracks come before auto-generated (``kind == "asr"``) ones and
    English before other languages; only the first track per language is
    kept. Auto-generated tracks are dropped when ``skip_auto_generated``.
    """
    captions = payload.get("captions")
    renderer = captions.get("playerCaptionsTracklistRenderer") if isinstance(captions, Mapping) else None
    if renderer is None:
        renderer = payload.get("playerCaptionsTracklistRenderer")
    if not isinstance(renderer, Mapping):
        return []

    tracks: list[dict] = []
    caption_tracks = renderer.get("captionTracks")
    if isinstance(caption_tracks, list):
        tracks.extend(track for track in caption_tracks if isinstance(track, dict))
    automatic = renderer.get("automaticCaptions")
    if not skip_auto_generated and isinstance(automatic, list):
        tracks.extend(track for track in automatic if isinstance(track, dict))

    def sort_key(track: dict) -> tuple[int, int]:
        kind = track.get("kind") if isinstance(track.get("kind"), str) else ""
        lang = track.get("languageCode") if isinstance(track.get("languageCode"), str) else ""
        return (1 if kind == "asr" else 0, 0 if lang == "en" else 1)

    seen: set[str] = set()
    ranked: list[dict] = []
    for track in sorted(tracks, key=sort_key):
        lang = track.get("languageCode")
        lang = lang.lower() if isinstance(lang, str) else ""
        if lang and lang in seen:
            continue
        if lang:
            seen.add(lang)
        ranked.append(track)

    if skip_auto_generated:
        ranked = [track for track in ranked if track.get("kind") != "asr"]
    return ranked


def track_url(track: Mapping[str, Any]) -> str | None:
    for key in ("baseUrl", "url"):
        if isinstance(track.get(key), str):
            return track[key]
    return None
