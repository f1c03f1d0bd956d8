"""Adapter for pull-based control APIs (YouTube IFrame API style).

The control handle answers ``get_current_time``/``get_duration`` but
never pushes time updates, so the adapter polls while the player is
playing. The polling task belongs to the adapter instance: it is created
on the first PLAYING state and cancelled synchronously on pause, end and
teardown, before the handle is destroyed.
"""

import asyncio
import math
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Protocol

import structlog

from playback_sync.config import get_settings
from playback_sync.video.adapters.base import PlayerAdapter
from playback_sync.video.extractor import ProgressSample, sample_from_position
from playback_sync.video.sources import AdapterKind, SourceMatch


if TYPE_CHECKING:
    from playback_sync.config.settings import Settings


logger = structlog.get_logger(__name__)


class PlayerState(int, Enum):
    """Player state codes reported by the control API."""

    UNSTARTED = -1
    ENDED = 0
    PLAYING = 1
    PAUSED = 2
    BUFFERING = 3
    CUED = 5


class PollingControlHandle(Protocol):
    """Control handle of a pull-based embed."""

    def get_current_time(self) -> float: ...

    def get_duration(self) -> float: ...

    def seek_to(self, seconds: float, allow_seek_ahead: bool) -> None: ...

    def destroy(self) -> None: ...


class PollingControlAdapter(PlayerAdapter):
    """Synthesizes progress events by polling a control handle."""

    kind = AdapterKind.POLLING_CONTROL
    supports_seek = True

    def __init__(self, handle: PollingControlHandle, poll_interval: float = 1.0):
        super().__init__()
        self._handle = handle
        self._poll_interval = poll_interval
        self._poll_task: asyncio.Task | None = None

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def is_polling(self) -> bool:
        """Check if the polling task is alive."""
        return self._poll_task is not None and not self._poll_task.done()

    def handle_state_change(self, state: int) -> None:
        """Forward a player state change from the host.

        Args:
            state: PlayerState code (unknown codes are ignored).
        """
        if self._torn_down:
            return
        try:
            player_state = PlayerState(state)
        except ValueError:
            logger.debug("unknown_player_state", state=state)
            return

        if player_state is PlayerState.PLAYING:
            self.start_polling()
        elif player_state is PlayerState.PAUSED:
            self.stop_polling()
        elif player_state is PlayerState.ENDED:
            self.stop_polling()
            self._emit_ended()

    def start_polling(self) -> bool:
        """Start the polling task (no-op if already running).

        Returns:
            True if polling is active afterwards.
        """
        if self._torn_down:
            return False
        if self.is_polling:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("polling_without_event_loop")
            return False
        self._poll_task = loop.create_task(self._poll_loop(), name="progress_poll")
        return True

    def stop_polling(self) -> None:
        """Cancel the polling task."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    def poll_once(self) -> ProgressSample | None:
        """Read the handle once and emit a sample if it is usable."""
        if self._torn_down:
            return None
        try:
            position = self._handle.get_current_time()
            duration = self._handle.get_duration()
        except Exception:
            logger.debug("poll_read_failed", exc_info=True)
            return None

        sample = sample_from_position(position, duration)
        if sample is not None:
            self._emit_progress(sample)
        return sample

    async def _poll_loop(self) -> None:
        while not self._torn_down:
            await asyncio.sleep(self._poll_interval)
            self.poll_once()

    async def seek_to(self, seconds: float) -> bool:
        if self._torn_down:
            return False
        try:
            self._handle.seek_to(seconds, True)
        except Exception:
            logger.warning("seek_failed", seconds=seconds, exc_info=True)
            return False
        return True

    async def get_duration(self) -> float | None:
        if self._torn_down:
            return None
        try:
            duration = float(self._handle.get_duration())
        except Exception:
            logger.debug("duration_read_failed", exc_info=True)
            return None
        return duration if math.isfinite(duration) and duration > 0 else None

    def _release(self) -> None:
        self.stop_polling()
        self._handle.destroy()


def polling_adapter_factory(
    handle_provider: Callable[[SourceMatch], PollingControlHandle],
    settings: "Settings | None" = None,
) -> Callable[[SourceMatch], PollingControlAdapter]:
    """Build an adapter factory that polls at the configured interval.

    Args:
        handle_provider: Creates the embed's control handle for a source.
        settings: Settings to read ``poll_interval_seconds`` from.
    """
    settings = settings or get_settings()

    def factory(source: SourceMatch) -> PollingControlAdapter:
        return PollingControlAdapter(
            handle_provider(source),
            poll_interval=settings.poll_interval_seconds,
        )

    return factory
