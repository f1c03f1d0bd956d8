"""Video progress tracking module.

Provides:
- Monotonic progress tracking with threshold-gated persistence
- One-shot completion (automatic and manual)
- Resume from the last saved position
- Playback session state machine
"""

from .gateway import (
    CassandraProgressGateway,
    InvalidIdentifierError,
    PersistenceReadFailedError,
    PersistenceWriteFailedError,
    ProgressError,
    ProgressGateway,
    UnsupportedSourceError,
)
from .models import (
    PROGRESS_TABLES_CQL,
    PersistedProgressRecord,
    ProgressSession,
    SessionFailure,
    SessionState,
)
from .resume import ResumeCoordinator, ResumeOutcome, ResumeResult
from .session import AdapterFactory, PlaybackSession
from .tracker import CompletionReason, ProgressTracker
from .writer import ProgressWriter


__all__ = [
    "PROGRESS_TABLES_CQL",
    "AdapterFactory",
    "CassandraProgressGateway",
    "CompletionReason",
    "InvalidIdentifierError",
    "PersistedProgressRecord",
    "PersistenceReadFailedError",
    "PersistenceWriteFailedError",
    "PlaybackSession",
    "ProgressError",
    "ProgressGateway",
    "ProgressSession",
    "ProgressTracker",
    "ProgressWriter",
    "ResumeCoordinator",
    "ResumeOutcome",
    "ResumeResult",
    "SessionFailure",
    "SessionState",
    "UnsupportedSourceError",
]
