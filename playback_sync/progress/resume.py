"""Resume playback from the last saved position."""

from dataclasses import dataclass
from enum import Enum

import structlog

from playback_sync.video.adapters.base import PlayerAdapter

from .gateway import ProgressError, ProgressGateway
from .models import MAX_PROGRESS, PersistedProgressRecord


logger = structlog.get_logger(__name__)


class ResumeOutcome(str, Enum):
    """How a resume attempt ended. None of these are fatal."""

    RESUMED = "resumed"
    SKIPPED_NO_RECORD = "skipped_no_record"
    SKIPPED_BOUNDARY = "skipped_boundary"  # Stored 0% or 100%
    SKIPPED_UNSUPPORTED = "skipped_unsupported"  # Adapter cannot seek
    SKIPPED_NO_DURATION = "skipped_no_duration"
    FAILED = "failed"


@dataclass(frozen=True)
class ResumeResult:
    """Resume outcome plus the record it was based on."""

    outcome: ResumeOutcome
    record: PersistedProgressRecord | None = None
    position_seconds: float | None = None


class ResumeCoordinator:
    """Seeks a freshly constructed adapter to the stored position, once."""

    def __init__(self, gateway: ProgressGateway):
        self.gateway = gateway

    async def resume(
        self, adapter: PlayerAdapter, user_id: str, video_id: str
    ) -> ResumeResult:
        """Look up stored progress and seek to it if possible.

        Never raises: lookup and seek failures end as ResumeOutcome.FAILED.
        """
        try:
            record = await self.gateway.get_progress(user_id, video_id)
        except ProgressError as e:
            logger.warning("resume_lookup_failed", code=e.code, error=e.message)
            return ResumeResult(ResumeOutcome.FAILED)
        except Exception:
            logger.exception("resume_lookup_failed")
            return ResumeResult(ResumeOutcome.FAILED)

        if record is None:
            return ResumeResult(ResumeOutcome.SKIPPED_NO_RECORD)

        if not 0 < record.progress < MAX_PROGRESS:
            return ResumeResult(ResumeOutcome.SKIPPED_BOUNDARY, record)

        if not adapter.supports_seek:
            # Degraded mode: playback starts from the beginning
            logger.debug("resume_unsupported", adapter_kind=adapter.kind.value)
            return ResumeResult(ResumeOutcome.SKIPPED_UNSUPPORTED, record)

        duration = await adapter.get_duration()
        if duration is None:
            return ResumeResult(ResumeOutcome.SKIPPED_NO_DURATION, record)

        position = (record.progress / MAX_PROGRESS) * duration
        if not await adapter.seek_to(position):
            return ResumeResult(ResumeOutcome.FAILED, record)

        logger.info(
            "playback_resumed",
            progress=record.progress,
            position_seconds=round(position, 2),
        )
        return ResumeResult(ResumeOutcome.RESUMED, record, position)
