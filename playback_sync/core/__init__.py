# Core infrastructure
from playback_sync.core.context import (
    PlaybackContext,
    clear_context,
    get_context,
    get_session_id,
    get_user_id,
    get_video_id,
)
from playback_sync.core.logging import configure_structlog, get_logger


__all__ = [
    "PlaybackContext",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_session_id",
    "get_user_id",
    "get_video_id",
]
