"""Progress tracking policy shared by every adapter kind.

Turns raw samples into a monotonic 0-100 percentage and decides when to
persist and when to declare completion:

- Persist only when the progress, rounded down to the persist step,
  passes the last persisted threshold. The threshold moves as soon as
  the write is issued, so bursts of samples cannot duplicate a write.
- Complete once, when progress reaches the auto-complete threshold, the
  player reports the end, or the member marks the video as watched.
  Completion writes 100 and is terminal for the session.
"""

import math
from collections.abc import Callable
from enum import Enum

import structlog

from playback_sync.video.extractor import ProgressSample

from .models import (
    MAX_PROGRESS,
    PersistedProgressRecord,
    ProgressSession,
    round_down_to_step,
)
from .writer import ProgressWriter


logger = structlog.get_logger(__name__)

DEFAULT_PERSIST_STEP = 10
DEFAULT_AUTO_COMPLETE_THRESHOLD = 90


class CompletionReason(str, Enum):
    """What triggered the completion transition."""

    THRESHOLD = "threshold"
    ENDED = "ended"
    MANUAL = "manual"


class ProgressTracker:
    """Stateful per-session progress policy."""

    def __init__(
        self,
        session: ProgressSession,
        writer: ProgressWriter,
        persist_step: int = DEFAULT_PERSIST_STEP,
        auto_complete_threshold: int = DEFAULT_AUTO_COMPLETE_THRESHOLD,
        on_complete: Callable[[CompletionReason], None] | None = None,
    ):
        self.session = session
        self.writer = writer
        self.persist_step = persist_step
        self.auto_complete_threshold = auto_complete_threshold
        self._on_complete = on_complete

    @property
    def canonical_progress(self) -> int:
        return self.session.canonical_progress

    @property
    def last_persisted_threshold(self) -> int:
        return self.session.last_persisted_threshold

    @property
    def is_completed(self) -> bool:
        return self.session.is_completed

    def seed(self, record: PersistedProgressRecord | None) -> None:
        """Start from stored progress so this session never writes it backwards.

        A stored completion marks the session completed without a write
        and without firing the completion callback.
        """
        if record is None or self.session.is_completed:
            return

        if record.is_completed:
            self.session.canonical_progress = MAX_PROGRESS
            self.session.last_persisted_threshold = MAX_PROGRESS
            self.session.is_completed = True
            logger.debug("tracker_seeded_completed")
            return

        stored = max(0, min(MAX_PROGRESS, record.progress))
        self.session.canonical_progress = max(self.session.canonical_progress, stored)
        self.session.last_persisted_threshold = max(
            self.session.last_persisted_threshold,
            round_down_to_step(stored, self.persist_step),
        )
        logger.debug(
            "tracker_seeded",
            progress=self.session.canonical_progress,
            threshold=self.session.last_persisted_threshold,
        )

    def ingest(self, sample: ProgressSample) -> bool:
        """Feed a progress sample.

        Returns:
            True if canonical progress advanced.
        """
        if self.session.is_completed:
            return False

        percentage = sample.percentage
        if not math.isfinite(percentage):
            return False
        progress = max(0, min(MAX_PROGRESS, math.floor(percentage)))
        if progress <= self.session.canonical_progress:
            # Late, duplicated or rewound sample
            return False

        self.session.canonical_progress = progress

        if progress >= self.auto_complete_threshold:
            self.complete(CompletionReason.THRESHOLD)
            return True

        rounded = round_down_to_step(progress, self.persist_step)
        if rounded > self.session.last_persisted_threshold:
            self.writer.submit(rounded)
            self.session.last_persisted_threshold = rounded
            logger.debug("progress_threshold_crossed", threshold=rounded)
        return True

    def handle_ended(self) -> bool:
        """End-of-playback event from the adapter."""
        return self.complete(CompletionReason.ENDED)

    def request_manual_completion(self) -> bool:
        """Mark as watched from the UI; same guard as automatic completion."""
        return self.complete(CompletionReason.MANUAL)

    def complete(self, reason: CompletionReason) -> bool:
        """One-shot transition to completed.

        Returns:
            True if this call performed the transition.
        """
        if self.session.is_completed:
            return False

        self.session.is_completed = True
        self.session.canonical_progress = MAX_PROGRESS
        self.writer.submit(MAX_PROGRESS)
        self.session.last_persisted_threshold = MAX_PROGRESS

        logger.info("video_completed", reason=reason.value)

        if self._on_complete is not None:
            try:
                self._on_complete(reason)
            except Exception:
                logger.exception("completion_callback_failed")
        return True

    def flush_final(self) -> bool:
        """Best-effort final save of unsaved progress (one-shot).

        Returns:
            True if a write was issued.
        """
        if self.session.final_flush_done:
            return False
        self.session.final_flush_done = True

        if self.session.is_completed:
            return False
        if self.session.canonical_progress <= self.session.last_persisted_threshold:
            return False

        self.writer.submit(self.session.canonical_progress)
        logger.debug("progress_final_flush", progress=self.session.canonical_progress)
        return True
