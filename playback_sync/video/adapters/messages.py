"""Adapter for players that only talk through cross-document messages.

The message channel is treated as an inbound-only, adversarial input:
anything on the page may post to it. Each message goes through four
stages and is silently dropped at the first one that fails:

1. origin is on the allow-list
2. body decodes to a JSON object
3. ``source`` tag is not known tooling chatter
4. event classifies as progress (with an extractable sample) or ended

There is no control API behind this channel, so no seek and no duration.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import structlog

from playback_sync.config import get_settings
from playback_sync.video.adapters.base import PlayerAdapter
from playback_sync.video.extractor import (
    EventKind,
    classify_event,
    extract_progress,
    parse_message_data,
)
from playback_sync.video.sources import AdapterKind, SourceMatch


if TYPE_CHECKING:
    from playback_sync.config.settings import Settings


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class InboundMessage:
    """A cross-document message as delivered by the host page."""

    origin: str
    data: Any


MessageListener = Callable[[InboundMessage], None]


class MessageChannel:
    """Global inbound message bus (the page's ``message`` event).

    The host calls ``dispatch`` for every message it receives; adapters
    subscribe and unsubscribe. Nothing is ever sent back.
    """

    def __init__(self) -> None:
        self._listeners: list[MessageListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: MessageListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: MessageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def dispatch(self, message: InboundMessage) -> None:
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception:
                logger.exception("message_listener_failed")


def normalize_origin(origin: Any) -> str | None:
    """Return ``scheme://host[:port]`` in lowercase, or None if malformed."""
    if not isinstance(origin, str) or not origin:
        return None
    try:
        parts = urlsplit(origin.strip())
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    normalized = f"{parts.scheme.lower()}://{parts.hostname.lower()}"
    if port is not None:
        normalized = f"{normalized}:{port}"
    return normalized


class CrossOriginMessageAdapter(PlayerAdapter):
    """Listens to an untrusted message channel for progress reports."""

    kind = AdapterKind.CROSS_ORIGIN_MESSAGE
    supports_seek = False

    def __init__(
        self,
        channel: MessageChannel,
        allowed_origins: Iterable[str],
        ignored_sources: Iterable[str] = (),
    ):
        super().__init__()
        self._channel = channel
        self._allowed_origins = frozenset(
            origin
            for origin in (normalize_origin(o) for o in allowed_origins)
            if origin is not None
        )
        self._ignored_sources = frozenset(ignored_sources)
        channel.subscribe(self.handle_message)

    def is_allowed_origin(self, origin: Any) -> bool:
        """Exact match against the allow-list (no substring matching)."""
        normalized = normalize_origin(origin)
        return normalized is not None and normalized in self._allowed_origins

    def handle_message(self, message: InboundMessage) -> None:
        if self._torn_down:
            return
        if not self.is_allowed_origin(message.origin):
            return

        payload = parse_message_data(message.data)
        if payload is None:
            return

        source = payload.get("source")
        if isinstance(source, str) and source in self._ignored_sources:
            return

        kind = classify_event(payload)
        if kind is EventKind.ENDED:
            self._emit_ended()
        elif kind is EventKind.PROGRESS:
            sample = extract_progress(payload)
            if sample is not None:
                self._emit_progress(sample)
        elif kind is EventKind.READY:
            logger.debug("message_player_ready")

    def _release(self) -> None:
        self._channel.unsubscribe(self.handle_message)


def message_adapter_factory(
    channel: MessageChannel,
    settings: "Settings | None" = None,
) -> Callable[[SourceMatch], CrossOriginMessageAdapter]:
    """Build an adapter factory bound to a channel and the configured lists."""
    settings = settings or get_settings()

    def factory(source: SourceMatch) -> CrossOriginMessageAdapter:
        return CrossOriginMessageAdapter(
            channel,
            allowed_origins=settings.message_allowed_origins,
            ignored_sources=settings.message_ignored_sources,
        )

    return factory
