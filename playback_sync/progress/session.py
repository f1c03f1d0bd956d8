"""Session controller for one "member watches one video" interaction.

State machine::

    idle -> resolving -> resuming -> playing -> completing -> completed
                             \\
                              -> completed  (stored completion)
                 \\
                  -> failed (unsupported_source | invalid_identifier)

    playing / completed -> idle   (close: final flush, release adapter)

Nothing here raises into the host: failures become the ``failed`` state
with an error object, persistence problems are logged by the writer.
There are no retries at this layer.
"""

from collections.abc import Callable, Mapping
from typing import Any

import structlog

from playback_sync.config import Settings, get_settings
from playback_sync.core.context import PlaybackContext, generate_session_id
from playback_sync.video.adapters.base import PlayerAdapter
from playback_sync.video.extractor import ProgressSample
from playback_sync.video.sources import (
    SOURCE_PATTERNS,
    AdapterKind,
    SourceMatch,
    SourcePattern,
    resolve_source,
)

from .gateway import (
    InvalidIdentifierError,
    ProgressError,
    ProgressGateway,
    UnsupportedSourceError,
)
from .models import ProgressSession, SessionFailure, SessionState
from .resume import ResumeCoordinator, ResumeOutcome, ResumeResult
from .tracker import CompletionReason, ProgressTracker
from .validators import is_valid_identifier, normalize_identifier
from .writer import ProgressWriter


logger = structlog.get_logger(__name__)

AdapterFactory = Callable[[SourceMatch], PlayerAdapter]


class PlaybackSession:
    """Orchestrates adapter, resume, tracker and persistence for one video."""

    def __init__(
        self,
        user_id: str,
        video_id: str,
        source_url: str | None,
        gateway: ProgressGateway,
        adapter_factories: Mapping[AdapterKind, AdapterFactory],
        on_complete: Callable[[], None] | None = None,
        settings: Settings | None = None,
        source_patterns: tuple[SourcePattern, ...] = SOURCE_PATTERNS,
    ):
        self.user_id = user_id
        self.video_id = video_id
        self.source_url = source_url
        self.gateway = gateway
        self.adapter_factories = adapter_factories
        self.settings = settings or get_settings()
        self.source_patterns = source_patterns
        self.session_id = generate_session_id()

        self._on_complete = on_complete
        self._state = SessionState.IDLE
        self._error: ProgressError | None = None
        self._closed = False

        self.source: SourceMatch | None = None
        self.progress: ProgressSession | None = None
        self.writer: ProgressWriter | None = None
        self.tracker: ProgressTracker | None = None
        self.resume_result: ResumeResult | None = None
        self._adapter: PlayerAdapter | None = None

        self._log = logger.bind(
            session_id=self.session_id,
            user_id=user_id,
            video_id=video_id,
        )

    # ==========================================================================
    # State
    # ==========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> ProgressError | None:
        """Error behind the failed state, if any."""
        return self._error

    @property
    def failure(self) -> SessionFailure | None:
        if self._error is None:
            return None
        return SessionFailure(self._error.code)

    @property
    def adapter(self) -> PlayerAdapter | None:
        return self._adapter

    @property
    def canonical_progress(self) -> int:
        return self.progress.canonical_progress if self.progress else 0

    @property
    def is_completed(self) -> bool:
        return bool(self.progress and self.progress.is_completed)

    def _context(self) -> PlaybackContext:
        return PlaybackContext(
            session_id=self.session_id,
            user_id=self.user_id,
            video_id=self.video_id,
        )

    def _transition(self, state: SessionState) -> None:
        self._log.debug(
            "session_state_changed", from_state=self._state.value, to_state=state.value
        )
        self._state = state

    def _fail(self, error: ProgressError) -> SessionState:
        self._error = error
        self._transition(SessionState.FAILED)
        self._log.warning("session_failed", code=error.code, error=error.message)
        return self._state

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def open(self) -> SessionState:
        """Open the session: resolve the source, attach an adapter, resume.

        Returns:
            The state reached (playing, completed or failed).
        """
        if self._state is not SessionState.IDLE or self._closed:
            return self._state

        with self._context():
            self._transition(SessionState.RESOLVING)

            if not (
                is_valid_identifier(self.user_id) and is_valid_identifier(self.video_id)
            ):
                return self._fail(InvalidIdentifierError())
            self.user_id = normalize_identifier(self.user_id)
            self.video_id = normalize_identifier(self.video_id)

            source = resolve_source(self.source_url, self.source_patterns)
            if source is None:
                return self._fail(UnsupportedSourceError())

            adapter = self._build_adapter(source)
            if adapter is None:
                return self._fail(UnsupportedSourceError())

            self.source = source
            self.progress = ProgressSession(
                video_id=self.video_id,
                user_id=self.user_id,
                adapter_kind=source.kind,
            )
            self.writer = ProgressWriter(self.gateway, self.user_id, self.video_id)
            self.tracker = ProgressTracker(
                session=self.progress,
                writer=self.writer,
                persist_step=self.settings.progress_persist_step,
                auto_complete_threshold=self.settings.progress_auto_complete_threshold,
                on_complete=self._handle_completed,
            )
            self._attach(adapter)
            self._log.info(
                "session_opened",
                backend=source.backend.value,
                adapter_kind=source.kind.value,
            )

            await self._resume(adapter)
            return self._state

    async def _resume(self, adapter: PlayerAdapter) -> None:
        self._transition(SessionState.RESUMING)
        coordinator = ResumeCoordinator(self.gateway)
        result = await coordinator.resume(adapter, self.user_id, self.video_id)
        self.resume_result = result

        if self._closed or self._state is not SessionState.RESUMING:
            # Closed or completed while the lookup was in flight
            return

        self.tracker.seed(result.record)
        if self.progress.is_completed:
            # Watched in an earlier session: no callback, no write
            self._transition(SessionState.COMPLETED)
            return
        self._transition(SessionState.PLAYING)
        if result.outcome is ResumeOutcome.FAILED:
            self._log.info("resume_failed_starting_from_beginning")

    def _build_adapter(self, source: SourceMatch) -> PlayerAdapter | None:
        factory = self.adapter_factories.get(source.kind)
        if factory is None:
            self._log.warning("no_adapter_factory", adapter_kind=source.kind.value)
            return None
        try:
            return factory(source)
        except Exception:
            self._log.exception("adapter_construction_failed", backend=source.backend.value)
            return None

    def _attach(self, adapter: PlayerAdapter) -> None:
        adapter.on_progress(self._handle_progress)
        adapter.on_ended(self._handle_ended)
        self._adapter = adapter

    def _release_adapter(self) -> None:
        adapter, self._adapter = self._adapter, None
        if adapter is not None:
            adapter.teardown()

    async def change_source(self, source_url: str) -> SessionState:
        """Switch the source URL mid-session.

        The current adapter is torn down before the next one is built, so
        two adapters are never live at once. Tracking state carries over;
        a URL served by a different adapter kind fails the session.
        """
        if self._closed or self._state not in (
            SessionState.PLAYING,
            SessionState.COMPLETED,
        ):
            return self._state

        with self._context():
            self._release_adapter()
            self.source_url = source_url
            self._transition(SessionState.RESOLVING)

            source = resolve_source(source_url, self.source_patterns)
            if source is None or source.kind is not self.progress.adapter_kind:
                self.tracker.flush_final()
                await self.writer.drain()
                return self._fail(UnsupportedSourceError())

            adapter = self._build_adapter(source)
            if adapter is None:
                self.tracker.flush_final()
                await self.writer.drain()
                return self._fail(UnsupportedSourceError())

            self.source = source
            self._attach(adapter)
            self._log.info("session_source_changed", backend=source.backend.value)

            if self.progress.is_completed:
                self._transition(SessionState.COMPLETED)
                return self._state

            await self._resume(adapter)
            return self._state

    async def close(self) -> None:
        """End the session: final flush, release the adapter, settle writes.

        Idempotent; a second call does nothing.
        """
        if self._closed:
            return
        self._closed = True

        with self._context():
            if self.tracker is not None and self._state in (
                SessionState.RESUMING,
                SessionState.PLAYING,
                SessionState.COMPLETED,
            ):
                self.tracker.flush_final()

            self._release_adapter()

            if self.writer is not None:
                await self.writer.drain()

            if self._state is not SessionState.FAILED:
                self._transition(SessionState.IDLE)

            self._log.info(
                "session_closed",
                progress=self.canonical_progress,
                completed=self.is_completed,
            )

    # ==========================================================================
    # Events
    # ==========================================================================

    def _handle_progress(self, sample: ProgressSample) -> None:
        # Samples read before the resume seek lands would write below the
        # stored progress
        if self._closed or self.tracker is None or self._state is not SessionState.PLAYING:
            return
        self.tracker.ingest(sample)

    def _handle_ended(self) -> None:
        if self._closed or self.tracker is None:
            return
        self.tracker.handle_ended()

    def request_manual_completion(self) -> bool:
        """Mark the video as watched.

        Goes through the same one-shot guard as automatic completion.

        Returns:
            True if this call completed the video.
        """
        if self._closed or self.tracker is None:
            return False
        if self._state not in (SessionState.RESUMING, SessionState.PLAYING):
            return False
        return self.tracker.request_manual_completion()

    def _handle_completed(self, reason: CompletionReason) -> None:
        if self._state is SessionState.RESUMING:
            self._transition(SessionState.PLAYING)
        self._transition(SessionState.COMPLETING)
        self._log.info("session_completed", reason=reason.value)
        if self._on_complete is not None:
            try:
                self._on_complete()
            except Exception:
                self._log.exception("completion_callback_failed")
        self._transition(SessionState.COMPLETED)

    def snapshot(self) -> dict[str, Any]:
        """Current session view for the UI layer."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "video_id": self.video_id,
            "state": self._state.value,
            "failure": self.failure.value if self.failure else None,
            "adapter_kind": self.progress.adapter_kind.value if self.progress else None,
            "progress": self.canonical_progress,
            "is_completed": self.is_completed,
        }
