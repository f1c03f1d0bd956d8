"""Source URL resolution.

Maps a lesson's video URL to the backend serving it and to the adapter
kind that can track it. The mapping is a table: supporting another embed
backend means adding one ``SourcePattern`` row.
"""

import re
from dataclasses import dataclass
from enum import Enum


class AdapterKind(str, Enum):
    """How a backend exposes playback progress."""

    POLLING_CONTROL = "polling_control"  # Pull API (getCurrentTime/getDuration)
    CALLBACK_CONTROL = "callback_control"  # Push API (timeupdate/ended callbacks)
    CROSS_ORIGIN_MESSAGE = "cross_origin_message"  # Untrusted postMessage traffic


class VideoBackend(str, Enum):
    """Known embed backends."""

    YOUTUBE = "youtube"
    VIMEO = "vimeo"
    CURSEDUCA = "curseduca"
    HTML5 = "html5"


@dataclass(frozen=True)
class SourcePattern:
    """One row of the source table.

    ``pattern`` must expose an ``id`` group when the backend has an
    extractable external video id.
    """

    backend: VideoBackend
    kind: AdapterKind
    pattern: re.Pattern[str]


@dataclass(frozen=True)
class SourceMatch:
    """Resolved source URL."""

    backend: VideoBackend
    kind: AdapterKind
    url: str
    external_id: str | None = None


# Order matters: first match wins
SOURCE_PATTERNS: tuple[SourcePattern, ...] = (
    SourcePattern(
        VideoBackend.YOUTUBE,
        AdapterKind.POLLING_CONTROL,
        re.compile(
            r"^https?://(?:www\.|m\.)?(?:youtube\.com/(?:watch\?(?:.*&)?v=|embed/|shorts/)"
            r"|youtu\.be/)(?P<id>[\w-]{6,})",
            re.IGNORECASE,
        ),
    ),
    SourcePattern(
        VideoBackend.VIMEO,
        AdapterKind.CALLBACK_CONTROL,
        re.compile(
            r"^https?://(?:www\.|player\.)?vimeo\.com/(?:video/)?(?P<id>\d+)",
            re.IGNORECASE,
        ),
    ),
    SourcePattern(
        VideoBackend.CURSEDUCA,
        AdapterKind.CROSS_ORIGIN_MESSAGE,
        re.compile(r"^https://(?:[\w-]+\.)*curseduca\.com(?:[/?#]|$)", re.IGNORECASE),
    ),
    SourcePattern(
        VideoBackend.HTML5,
        AdapterKind.CALLBACK_CONTROL,
        re.compile(r"^https?://[^?#]+\.(?:mp4|webm|ogg|mov)(?:[?#].*)?$", re.IGNORECASE),
    ),
)


def resolve_source(
    url: str | None,
    patterns: tuple[SourcePattern, ...] = SOURCE_PATTERNS,
) -> SourceMatch | None:
    """Resolve a source URL against the pattern table.

    Args:
        url: Video source URL (may be None or blank).
        patterns: Pattern table, defaults to SOURCE_PATTERNS.

    Returns:
        SourceMatch for the first matching row, or None if unsupported.
    """
    if not url or not isinstance(url, str):
        return None

    url = url.strip()
    for row in patterns:
        match = row.pattern.search(url)
        if match:
            external_id = match.groupdict().get("id")
            return SourceMatch(
                backend=row.backend,
                kind=row.kind,
                url=url,
                external_id=external_id,
            )
    return None


def build_embed_url(source: SourceMatch) -> str:
    """Return the iframe URL for a resolved source.

    YouTube needs ``enablejsapi=1`` for its control API to answer
    ``getCurrentTime`` calls. CursEduca URLs are already embed URLs.
    """
    if source.backend is VideoBackend.YOUTUBE and source.external_id:
        return (
            f"https://www.youtube.com/embed/{source.external_id}"
            "?autoplay=1&enablejsapi=1"
        )
    if source.backend is VideoBackend.VIMEO and source.external_id:
        return f"https://player.vimeo.com/video/{source.external_id}?autoplay=1"
    return source.url
