"""Persistence gateway for video progress.

The engine only depends on the ``ProgressGateway`` protocol. The
Cassandra implementation stores one row per (user, video) and upserts
on every write; monotonicity is the caller's job, not the store's.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

import structlog

from .models import MAX_PROGRESS, PersistedProgressRecord


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

# Non-completed progress is capped below 100 so that 100 always means
# "completed" in the store.
MAX_INCOMPLETE_PROGRESS = MAX_PROGRESS - 1

CONTINUE_WATCHING_LIMIT = 10


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class UnsupportedSourceError(ProgressError):
    """Video source URL matches no known backend."""

    def __init__(self, message: str = "Cannot play this video"):
        super().__init__(message, "unsupported_source")


class InvalidIdentifierError(ProgressError):
    """User or video identifier is malformed."""

    def __init__(self, message: str = "Invalid user or video identifier"):
        super().__init__(message, "invalid_identifier")


class PersistenceWriteFailedError(ProgressError):
    """Progress write was rejected or did not reach the store."""

    def __init__(self, message: str = "Failed to save video progress"):
        super().__init__(message, "persistence_write_failed")


class PersistenceReadFailedError(ProgressError):
    """Progress lookup failed."""

    def __init__(self, message: str = "Failed to load video progress"):
        super().__init__(message, "persistence_read_failed")


# ==============================================================================
# Gateway Protocol
# ==============================================================================


class ProgressGateway(Protocol):
    """Capability interface consumed by the engine."""

    async def get_progress(
        self, user_id: str, video_id: str
    ) -> PersistedProgressRecord | None:
        """Get last saved progress, or None if never watched."""
        ...

    async def upsert_progress(self, user_id: str, video_id: str, progress: int) -> None:
        """Save progress (idempotent on (user_id, video_id))."""
        ...


def normalize_stored_progress(progress: int) -> int:
    """Clamp a write to 0-100, reserving 100 for completion."""
    if progress >= MAX_PROGRESS:
        return MAX_PROGRESS
    return max(0, min(int(progress), MAX_INCOMPLETE_PROGRESS))


# ==============================================================================
# Cassandra Gateway
# ==============================================================================


class CassandraProgressGateway:
    """Progress gateway backed by the ``video_progress`` table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.video_progress
            WHERE user_id = ? AND video_id = ?
        """)

        self._get_user_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.video_progress
            WHERE user_id = ?
        """)

        self._upsert_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.video_progress
            (user_id, video_id, progress, last_watched_at)
            VALUES (?, ?, ?, ?)
        """)

    async def get_progress(
        self, user_id: str, video_id: str
    ) -> PersistedProgressRecord | None:
        """Get stored progress for a user and video.

        Raises:
            PersistenceReadFailedError: If the query fails
        """
        try:
            result = await self.session.aexecute(self._get_progress, [user_id, video_id])
        except Exception as e:
            raise PersistenceReadFailedError(str(e)) from e
        row = result.one()
        return PersistedProgressRecord.from_row(row) if row else None

    async def list_user_progress(self, user_id: str) -> dict[str, PersistedProgressRecord]:
        """Get all stored progress of a user, keyed by video id.

        Raises:
            PersistenceReadFailedError: If the query fails
        """
        try:
            rows = await self.session.aexecute(self._get_user_progress, [user_id])
        except Exception as e:
            raise PersistenceReadFailedError(str(e)) from e
        records = (PersistedProgressRecord.from_row(row) for row in rows)
        return {record.video_id: record for record in records}

    async def list_continue_watching(
        self, user_id: str, limit: int = CONTINUE_WATCHING_LIMIT
    ) -> list[PersistedProgressRecord]:
        """Get started but unfinished videos, most recently watched first."""
        # progress is not a key column: filter the user partition here
        records = await self.list_user_progress(user_id)
        started = [r for r in records.values() if 0 < r.progress < MAX_PROGRESS]
        started.sort(key=lambda r: r.last_watched_at, reverse=True)
        return started[:limit]

    async def list_completed(self, user_id: str) -> list[PersistedProgressRecord]:
        """Get completed videos, most recently watched first."""
        records = await self.list_user_progress(user_id)
        completed = [r for r in records.values() if r.is_completed]
        completed.sort(key=lambda r: r.last_watched_at, reverse=True)
        return completed

    async def upsert_progress(self, user_id: str, video_id: str, progress: int) -> None:
        """Upsert progress for a user and video.

        Raises:
            PersistenceWriteFailedError: If the write fails
        """
        value = normalize_stored_progress(progress)
        try:
            await self.session.aexecute(
                self._upsert_progress,
                [user_id, video_id, value, datetime.now(UTC)],
            )
        except Exception as e:
            raise PersistenceWriteFailedError(str(e)) from e

        logger.info(
            "video_progress_saved",
            user_id=user_id,
            video_id=video_id,
            progress=value,
            completed=value >= MAX_PROGRESS,
        )
