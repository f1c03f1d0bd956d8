"""Playback context management using contextvars.

Each playback session binds its identifiers so that log events emitted
anywhere in the call stack (including tasks spawned while the context is
active, which copy it) carry them without passing parameters explicitly.
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4


# Context variables for session tracking
session_id_var: ContextVar[str] = ContextVar("session_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
video_id_var: ContextVar[str | None] = ContextVar("video_id", default=None)


def generate_session_id() -> str:
    """Generate a new unique playback session ID."""
    return str(uuid4())


def get_session_id() -> str:
    """Get the current session ID."""
    return session_id_var.get()


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def get_video_id() -> str | None:
    """Get the current video ID."""
    return video_id_var.get()


def get_context() -> dict[str, Any]:
    """Get all context variables as a dictionary.

    Returns:
        Dictionary with session_id, user_id and video_id (unset ones omitted).
    """
    context: dict[str, Any] = {}

    session_id = get_session_id()
    if session_id:
        context["session_id"] = session_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    video_id = get_video_id()
    if video_id:
        context["video_id"] = video_id

    return context


def clear_context() -> None:
    """Clear all context variables."""
    session_id_var.set("")
    user_id_var.set(None)
    video_id_var.set(None)


class PlaybackContext:
    """Context manager for playback session scope.

    Usage:
        with PlaybackContext(session_id="...", user_id="...", video_id="..."):
            log.info("doing something")  # Will include the three ids
    """

    def __init__(
        self,
        session_id: str | None = None,
        user_id: str | None = None,
        video_id: str | None = None,
    ) -> None:
        self.session_id = session_id
        self.user_id = user_id
        self.video_id = video_id
        self._tokens: dict[ContextVar, Any] = {}

    def __enter__(self) -> "PlaybackContext":
        """Enter context and set variables."""
        self._tokens[session_id_var] = session_id_var.set(
            self.session_id or generate_session_id()
        )
        if self.user_id is not None:
            self._tokens[user_id_var] = user_id_var.set(self.user_id)
        if self.video_id is not None:
            self._tokens[video_id_var] = video_id_var.set(self.video_id)
        return self

    def __exit__(self, *_: object) -> None:
        """Exit context and restore previous values."""
        for var, token in self._tokens.items():
            var.reset(token)
        self._tokens.clear()
