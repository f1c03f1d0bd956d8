"""Models for video progress tracking.

- ProgressSession: in-memory state of one "user watches one video" interaction
- PersistedProgressRecord: durable progress owned by the store
- Cassandra table definition for the store
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from playback_sync.video.sources import AdapterKind


MAX_PROGRESS = 100


class SessionState(str, Enum):
    """Session controller states."""

    IDLE = "idle"
    RESOLVING = "resolving"  # Validating ids, selecting adapter
    RESUMING = "resuming"  # Looking up stored progress, seeking
    PLAYING = "playing"
    COMPLETING = "completing"  # One-shot guard, crossed synchronously
    COMPLETED = "completed"
    FAILED = "failed"  # Terminal


class SessionFailure(str, Enum):
    """Terminal failure reasons."""

    UNSUPPORTED_SOURCE = "unsupported_source"
    INVALID_IDENTIFIER = "invalid_identifier"


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def round_down_to_step(progress: int, step: int) -> int:
    """Round progress down to the persistence granularity."""
    return (progress // step) * step


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Progresso de video por usuario
# Partition key: user_id para listar todo o progresso do membro
# Clustering: video_id (upsert idempotente por (user_id, video_id))
VIDEO_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.video_progress (
    user_id TEXT,
    video_id TEXT,
    progress INT,
    last_watched_at TIMESTAMP,
    PRIMARY KEY ((user_id), video_id)
) WITH CLUSTERING ORDER BY (video_id ASC)
"""

PROGRESS_TABLES_CQL = [
    VIDEO_PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class PersistedProgressRecord:
    """Stored progress for a (user, video) pair.

    Attributes:
        user_id: User identifier
        video_id: Video identifier
        progress: Percentage watched (0-100, 100 means completed)
        last_watched_at: Last write timestamp
    """

    def __init__(
        self,
        user_id: str,
        video_id: str,
        progress: int = 0,
        last_watched_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.video_id = video_id
        self.progress = max(0, min(MAX_PROGRESS, int(progress)))
        self.last_watched_at = ensure_utc_aware(last_watched_at) or datetime.now(UTC)

    @property
    def is_completed(self) -> bool:
        """Check if the video was watched to completion."""
        return self.progress >= MAX_PROGRESS

    @classmethod
    def from_row(cls, row: Any) -> "PersistedProgressRecord":
        """Create record from Cassandra row."""
        return cls(
            user_id=row.user_id,
            video_id=row.video_id,
            progress=row.progress or 0,
            last_watched_at=row.last_watched_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "video_id": self.video_id,
            "progress": self.progress,
            "is_completed": self.is_completed,
            "last_watched_at": self.last_watched_at,
        }

    def __repr__(self) -> str:
        return (
            f"<PersistedProgressRecord user={self.user_id} video={self.video_id} "
            f"{self.progress}%>"
        )


@dataclass
class ProgressSession:
    """In-memory progress state for one playback instance.

    Invariants kept by the tracker:
    - canonical_progress never decreases
    - last_persisted_threshold is a multiple of the persist step and
      never exceeds canonical_progress
    - is_completed implies canonical_progress == 100, and is never reset
    """

    video_id: str
    user_id: str
    adapter_kind: AdapterKind
    canonical_progress: int = 0
    last_persisted_threshold: int = 0
    is_completed: bool = False
    final_flush_done: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __repr__(self) -> str:
        return (
            f"<ProgressSession user={self.user_id} video={self.video_id} "
            f"{self.adapter_kind.value} {self.canonical_progress}%"
            f"{' completed' if self.is_completed else ''}>"
        )
