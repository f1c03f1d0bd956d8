"""Shared fixtures: in-memory gateway and fake player handles."""

from collections.abc import Callable
from typing import Any
from uuid import uuid4

import pytest

from playback_sync.config import Settings
from playback_sync.progress.gateway import PersistenceWriteFailedError
from playback_sync.progress.models import PersistedProgressRecord


class FakeProgressGateway:
    """In-memory progress store recording every write."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], PersistedProgressRecord] = {}
        self.writes: list[int] = []
        self.reads = 0
        self.fail_writes = False
        self.fail_reads = False

    def store(self, user_id: str, video_id: str, progress: int) -> None:
        self.records[(user_id, video_id)] = PersistedProgressRecord(
            user_id=user_id, video_id=video_id, progress=progress
        )

    async def get_progress(self, user_id: str, video_id: str):
        self.reads += 1
        if self.fail_reads:
            raise RuntimeError("store unavailable")
        return self.records.get((user_id, video_id))

    async def upsert_progress(self, user_id: str, video_id: str, progress: int) -> None:
        self.writes.append(progress)
        if self.fail_writes:
            raise PersistenceWriteFailedError("write rejected")
        self.store(user_id, video_id, progress)


class FakePollingHandle:
    """Pull-based control handle (YouTube style)."""

    def __init__(self, duration: float = 200.0) -> None:
        self.current_time = 0.0
        self.duration = duration
        self.seeks: list[float] = []
        self.reads = 0
        self.destroyed = False

    def get_current_time(self) -> float:
        if self.destroyed:
            raise RuntimeError("handle destroyed")
        self.reads += 1
        return self.current_time

    def get_duration(self) -> float:
        if self.destroyed:
            raise RuntimeError("handle destroyed")
        return self.duration

    def seek_to(self, seconds: float, allow_seek_ahead: bool) -> None:
        self.seeks.append(seconds)
        self.current_time = seconds

    def destroy(self) -> None:
        self.destroyed = True


class FakeCallbackHandle:
    """Push-based control handle (Vimeo SDK style)."""

    def __init__(self, duration: float = 200.0) -> None:
        self.duration = duration
        self.listeners: dict[str, list[Callable[..., Any]]] = {}
        self.seeks: list[float] = []

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self.listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        if callback in self.listeners.get(event, []):
            self.listeners[event].remove(callback)

    def fire(self, event: str, payload: Any = None) -> None:
        for callback in list(self.listeners.get(event, [])):
            callback(payload)

    async def get_duration(self) -> float:
        return self.duration

    async def set_current_time(self, seconds: float) -> float:
        self.seeks.append(seconds)
        return seconds


@pytest.fixture
def settings() -> Settings:
    """Settings with the default policy constants."""
    return Settings(
        environment="testing",
        progress_persist_step=10,
        progress_auto_complete_threshold=90,
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def gateway() -> FakeProgressGateway:
    return FakeProgressGateway()


@pytest.fixture
def polling_handle() -> FakePollingHandle:
    return FakePollingHandle()


@pytest.fixture
def callback_handle() -> FakeCallbackHandle:
    return FakeCallbackHandle()


@pytest.fixture
def user_id() -> str:
    """Test user ID."""
    return str(uuid4())


@pytest.fixture
def video_id() -> str:
    """Test video ID."""
    return str(uuid4())
