"""Fire-and-forget progress writer.

Key features:
- ``submit`` schedules the gateway write and returns immediately
- Writes land in submission order: each one waits for the previous one
- Write failures are logged and dropped (no retry: the next threshold
  crossing supersedes a lost write)
- ``drain`` waits for in-flight writes (session close, tests)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from .gateway import ProgressError


if TYPE_CHECKING:
    from .gateway import ProgressGateway


logger = structlog.get_logger(__name__)


class ProgressWriter:
    """Issues progress writes for one (user, video) pair without blocking."""

    def __init__(self, gateway: ProgressGateway, user_id: str, video_id: str) -> None:
        self.gateway = gateway
        self.user_id = user_id
        self.video_id = video_id

        self._pending: set[asyncio.Task] = set()
        self._last_task: asyncio.Task | None = None

        # Counters for monitoring
        self._writes_submitted = 0
        self._writes_failed = 0

    def submit(self, progress: int) -> bool:
        """Schedule a write (fire-and-forget).

        Returns:
            True if scheduled, False if no event loop is running.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._writes_failed += 1
            logger.warning(
                "progress_write_dropped",
                reason="no_event_loop",
                progress=progress,
            )
            return False

        task = loop.create_task(
            self._write(progress, self._last_task), name="progress_write"
        )
        self._last_task = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self._writes_submitted += 1
        return True

    async def _write(self, progress: int, previous: asyncio.Task | None) -> None:
        if previous is not None and not previous.done():
            # A slower earlier write must not land after this one
            await asyncio.wait([previous])
        try:
            await self.gateway.upsert_progress(self.user_id, self.video_id, progress)
        except ProgressError as e:
            self._writes_failed += 1
            logger.warning(
                "persistence_write_failed",
                code=e.code,
                error=e.message,
                progress=progress,
            )
        except Exception:
            self._writes_failed += 1
            logger.exception("persistence_write_failed", progress=progress)

    async def drain(self) -> None:
        """Wait for all in-flight writes to settle."""
        while pending := [task for task in self._pending if not task.done()]:
            await asyncio.gather(*pending, return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._pending if not task.done())

    def get_stats(self) -> dict:
        """Get writer statistics for monitoring."""
        return {
            "writes_submitted": self._writes_submitted,
            "writes_failed": self._writes_failed,
            "writes_pending": self.pending_count,
        }
