"""Adapter for push-based control APIs (Vimeo Player SDK, HTML5 media).

The handle pushes ``timeupdate`` and ``ended`` natively; the adapter only
normalizes payloads through the extractor and owns the subscriptions.
"""

import math
from collections.abc import Callable
from typing import Any, Protocol

import structlog

from playback_sync.video.adapters.base import PlayerAdapter
from playback_sync.video.extractor import extract_progress
from playback_sync.video.sources import AdapterKind


logger = structlog.get_logger(__name__)

TIMEUPDATE_EVENT = "timeupdate"
ENDED_EVENT = "ended"


class CallbackControlHandle(Protocol):
    """Control handle of a push-based embed."""

    def on(self, event: str, callback: Callable[..., Any]) -> None: ...

    def off(self, event: str, callback: Callable[..., Any]) -> None: ...

    async def get_duration(self) -> float: ...

    async def set_current_time(self, seconds: float) -> float: ...


class CallbackControlAdapter(PlayerAdapter):
    """Forwards native time-update and end callbacks."""

    kind = AdapterKind.CALLBACK_CONTROL
    supports_seek = True

    def __init__(self, handle: CallbackControlHandle):
        super().__init__()
        self._handle = handle
        handle.on(TIMEUPDATE_EVENT, self._handle_timeupdate)
        handle.on(ENDED_EVENT, self._handle_ended)

    def _handle_timeupdate(self, payload: Any = None) -> None:
        sample = extract_progress(payload)
        if sample is None:
            return
        self._emit_progress(sample)

    def _handle_ended(self, payload: Any = None) -> None:
        self._emit_ended()

    async def seek_to(self, seconds: float) -> bool:
        if self._torn_down:
            return False
        try:
            await self._handle.set_current_time(seconds)
        except Exception:
            logger.warning("seek_failed", seconds=seconds, exc_info=True)
            return False
        return True

    async def get_duration(self) -> float | None:
        if self._torn_down:
            return None
        try:
            duration = float(await self._handle.get_duration())
        except Exception:
            logger.debug("duration_read_failed", exc_info=True)
            return None
        return duration if math.isfinite(duration) and duration > 0 else None

    def _release(self) -> None:
        self._handle.off(TIMEUPDATE_EVENT, self._handle_timeupdate)
        self._handle.off(ENDED_EVENT, self._handle_ended)
