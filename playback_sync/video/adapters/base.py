"""Shared player adapter contract.

An adapter wraps one third-party embed and turns its native events into
two canonical streams: progress samples and end-of-playback. Subscribers
never see vendor payloads.
"""

from collections.abc import Callable

import structlog

from playback_sync.video.extractor import ProgressSample
from playback_sync.video.sources import AdapterKind


logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[ProgressSample], None]
EndedCallback = Callable[[], None]


class PlayerAdapter:
    """Base class for player adapters.

    Subclasses call ``_emit_progress`` / ``_emit_ended`` and implement
    ``_release``. Seeking is opt-in: adapters that can seek set
    ``supports_seek`` and override ``seek_to`` and ``get_duration``.
    """

    kind: AdapterKind
    supports_seek: bool = False

    def __init__(self) -> None:
        self._progress_callbacks: list[ProgressCallback] = []
        self._ended_callbacks: list[EndedCallback] = []
        self._torn_down = False

    @property
    def is_torn_down(self) -> bool:
        """Check if the adapter was released."""
        return self._torn_down

    def on_progress(self, callback: ProgressCallback) -> None:
        """Register a progress subscriber."""
        self._progress_callbacks.append(callback)

    def on_ended(self, callback: EndedCallback) -> None:
        """Register an end-of-playback subscriber."""
        self._ended_callbacks.append(callback)

    async def seek_to(self, seconds: float) -> bool:
        """Seek playback. Returns False when unsupported or failed."""
        return False

    async def get_duration(self) -> float | None:
        """Get media duration in seconds, if the backend exposes it."""
        return None

    def teardown(self) -> None:
        """Release the embed. Safe to call more than once."""
        if self._torn_down:
            return
        self._torn_down = True
        try:
            self._release()
        except Exception:
            logger.exception("adapter_release_failed", adapter_kind=self.kind.value)
        self._progress_callbacks.clear()
        self._ended_callbacks.clear()
        logger.debug("adapter_torn_down", adapter_kind=self.kind.value)

    def _release(self) -> None:
        """Free backend resources (timers, listeners, handles)."""

    def _emit_progress(self, sample: ProgressSample) -> None:
        if self._torn_down:
            return
        for callback in list(self._progress_callbacks):
            try:
                callback(sample)
            except Exception:
                logger.exception("progress_subscriber_failed")

    def _emit_ended(self) -> None:
        if self._torn_down:
            return
        for callback in list(self._ended_callbacks):
            try:
                callback()
            except Exception:
                logger.exception("ended_subscriber_failed")
