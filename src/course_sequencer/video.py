"""Classification of video material URLs into playable sources.

Recognizers are tried in order, first match wins:

1. YouTube watch / short / embed links -> ``Embeddable``
2. Vimeo links -> ``Embeddable``
3. URLs whose path ends in a direct media extension -> ``DirectFile``
4. anything else -> ``External`` (rendered as an outbound link)

A platform match whose extracted id has the wrong shape is rejected,
so malformed links fall through to ``External`` instead of producing a
broken player.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import SplitResult, parse_qs, urlsplit

from course_sequencer.config import settings


class VideoPlatform(StrEnum):
    YOUTUBE = "youtube"
    VIMEO = "vimeo"


@dataclass(frozen=True, slots=True)
class Embeddable:
    """Hosted-platform video playable through the platform's player."""

    platform: VideoPlatform
    video_id: str

    @property
    def embed_url(self) -> str:
        if self.platform == VideoPlatform.YOUTUBE:
            return f"https://www.youtube.com/embed/{self.video_id}"
        return f"https://player.vimeo.com/video/{self.video_id}"


@dataclass(frozen=True, slots=True)
class DirectFile:
    """Media file the player can stream natively."""

    url: str


@dataclass(frozen=True, slots=True)
class External:
    """Unrecognised source; shown as a link, never embedded."""

    url: str


VideoSource = Embeddable | DirectFile | External
Recognizer = Callable[[str], VideoSource | None]

_YOUTUBE_HOSTS = frozenset(
    {"youtube.com", "m.youtube.com", "music.youtube.com", "youtube-nocookie.com"}
)
_YOUTUBE_ID = re.compile(r"[A-Za-z0-9_-]{11}")
_YOUTUBE_PATH = re.compile(r"^/(?:embed|v|shorts|live)/([^/?#]+)")

_VIMEO_PATH = re.compile(
    r"^/(?:channels/(?:\w+/)?|groups/[^/]*/videos/|album/\d+/video/|video/)?"
    r"([^/?#]+)/?$"
)
_VIMEO_ID = re.compile(r"\d{6,12}")

_HAS_SCHEME = re.compile(r"^(?:[A-Za-z][A-Za-z0-9+.-]*:)?//")


def _split(url: str) -> SplitResult:
    """Split ``url``, reading a scheme-less link as https."""
    url = url.strip()
    if not _HAS_SCHEME.match(url):
        url = f"https://{url}"
    return urlsplit(url)


def _host(netloc: str) -> str:
    host = netloc.lower().rsplit("@", 1)[-1].split(":", 1)[0]
    return host.removeprefix("www.")


def recognize_youtube(url: str) -> Embeddable | None:
    """Extract an 11-character YouTube id from watch, short or embed links."""
    parts = _split(url)
    host = _host(parts.netloc)

    candidate: str | None = None
    if host == "youtu.be":
        candidate = parts.path.lstrip("/").split("/", 1)[0]
    elif host in _YOUTUBE_HOSTS:
        if parts.path.rstrip("/") == "/watch":
            candidate = parse_qs(parts.query).get("v", [None])[0]
        elif match := _YOUTUBE_PATH.match(parts.path):
            candidate = match.group(1)

    if candidate and _YOUTUBE_ID.fullmatch(candidate):
        return Embeddable(platform=VideoPlatform.YOUTUBE, video_id=candidate)
    return None


def recognize_vimeo(url: str) -> Embeddable | None:
    """Extract a numeric Vimeo id from plain, channel, group or album links."""
    parts = _split(url)
    host = _host(parts.netloc)
    if host not in {"vimeo.com", "player.vimeo.com"}:
        return None

    match = _VIMEO_PATH.match(parts.path)
    if match and _VIMEO_ID.fullmatch(match.group(1)):
        return Embeddable(platform=VideoPlatform.VIMEO, video_id=match.group(1))
    return None


def direct_file_recognizer(extensions: Iterable[str]) -> Recognizer:
    """Build a recognizer for URLs whose path ends in one of ``extensions``."""
    suffixes = tuple(f".{ext.lower().lstrip('.')}" for ext in extensions)

    def recognize_direct_file(url: str) -> DirectFile | None:
        path = urlsplit(url.strip()).path.lower()
        if suffixes and path.endswith(suffixes):
            return DirectFile(url=url)
        return None

    return recognize_direct_file


class VideoSourceResolver:
    """Runs the recognizer chain; falls back to ``External``."""

    def __init__(self, recognizers: Iterable[Recognizer] | None = None) -> None:
        if recognizers is None:
            recognizers = (
                recognize_youtube,
                recognize_vimeo,
                direct_file_recognizer(settings.direct_video_extensions),
            )
        self._recognizers = tuple(recognizers)

    def resolve(self, url: str) -> VideoSource:
        for recognize in self._recognizers:
            source = recognize(url)
            if source is not None:
                return source
        return External(url=url)
