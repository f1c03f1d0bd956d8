"""Tests for player adapters."""

import asyncio
import json
from unittest.mock import Mock

import pytest

from conftest import FakePollingHandle
from playback_sync.config import Settings
from playback_sync.video.adapters import (
    CallbackControlAdapter,
    CrossOriginMessageAdapter,
    InboundMessage,
    MessageChannel,
    PlayerState,
    PollingControlAdapter,
    message_adapter_factory,
    normalize_origin,
    polling_adapter_factory,
)
from playback_sync.video.extractor import ProgressSample
from playback_sync.video.sources import AdapterKind, resolve_source


ALLOWED_ORIGIN = "https://player.curseduca.com"


class TestPlayerAdapterBase:
    """Tests for the shared subscriber and teardown behavior."""

    def test_teardown_is_idempotent(self, callback_handle) -> None:
        """Second teardown should do nothing."""
        adapter = CallbackControlAdapter(callback_handle)
        adapter.teardown()
        adapter.teardown()
        assert adapter.is_torn_down is True

    def test_no_emission_after_teardown(self, callback_handle) -> None:
        """Subscribers are never called after teardown."""
        adapter = CallbackControlAdapter(callback_handle)
        on_progress = Mock()
        adapter.on_progress(on_progress)
        adapter.teardown()

        adapter._emit_progress(ProgressSample(10.0))
        adapter._emit_ended()

        on_progress.assert_not_called()

    def test_failing_subscriber_does_not_block_others(self, callback_handle) -> None:
        """One subscriber raising should not stop the next one."""
        adapter = CallbackControlAdapter(callback_handle)
        adapter.on_progress(Mock(side_effect=RuntimeError("boom")))
        second = Mock()
        adapter.on_progress(second)

        callback_handle.fire("timeupdate", {"percentage": 5})

        second.assert_called_once_with(ProgressSample(5.0))


class TestPollingControlAdapter:
    """Tests for PollingControlAdapter."""

    def test_poll_once_emits_sample(self, polling_handle) -> None:
        """A single poll should convert position into a percentage."""
        adapter = PollingControlAdapter(polling_handle)
        samples: list[ProgressSample] = []
        adapter.on_progress(samples.append)
        polling_handle.current_time = 50.0

        assert adapter.poll_once() == ProgressSample(25.0)
        assert samples == [ProgressSample(25.0)]

    def test_poll_once_zero_duration(self, polling_handle) -> None:
        """Unknown duration should not produce a sample."""
        polling_handle.duration = 0
        adapter = PollingControlAdapter(polling_handle)
        on_progress = Mock()
        adapter.on_progress(on_progress)

        assert adapter.poll_once() is None
        on_progress.assert_not_called()

    def test_poll_once_handle_error(self, polling_handle) -> None:
        """Handle errors are absorbed."""
        polling_handle.destroyed = True
        adapter = PollingControlAdapter(polling_handle)
        assert adapter.poll_once() is None

    def test_start_polling_without_loop(self, polling_handle) -> None:
        """Polling needs a running event loop."""
        adapter = PollingControlAdapter(polling_handle)
        assert adapter.start_polling() is False
        assert adapter.is_polling is False

    @pytest.mark.asyncio
    async def test_playing_starts_polling(self, polling_handle) -> None:
        """PLAYING should start periodic samples."""
        adapter = PollingControlAdapter(polling_handle, poll_interval=0.01)
        samples: list[ProgressSample] = []
        adapter.on_progress(samples.append)
        polling_handle.current_time = 20.0

        adapter.handle_state_change(PlayerState.PLAYING)
        await asyncio.sleep(0.05)

        assert adapter.is_polling is True
        assert len(samples) >= 1
        assert samples[0] == ProgressSample(10.0)
        adapter.teardown()

    @pytest.mark.asyncio
    async def test_playing_twice_keeps_one_task(self, polling_handle) -> None:
        """Repeated PLAYING should not start a second poller."""
        adapter = PollingControlAdapter(polling_handle, poll_interval=0.01)
        adapter.handle_state_change(PlayerState.PLAYING)
        first_task = adapter._poll_task
        adapter.handle_state_change(PlayerState.PLAYING)

        assert adapter._poll_task is first_task
        adapter.teardown()

    @pytest.mark.asyncio
    async def test_paused_stops_polling(self, polling_handle) -> None:
        """PAUSED should cancel the poller."""
        adapter = PollingControlAdapter(polling_handle, poll_interval=0.01)
        adapter.handle_state_change(PlayerState.PLAYING)
        adapter.handle_state_change(PlayerState.PAUSED)

        assert adapter.is_polling is False
        reads = polling_handle.reads
        await asyncio.sleep(0.05)
        assert polling_handle.reads == reads

    @pytest.mark.asyncio
    async def test_ended_stops_polling_and_emits(self, polling_handle) -> None:
        """ENDED should stop polling and fire the ended stream."""
        adapter = PollingControlAdapter(polling_handle, poll_interval=0.01)
        on_ended = Mock()
        adapter.on_ended(on_ended)
        adapter.handle_state_change(PlayerState.PLAYING)

        adapter.handle_state_change(PlayerState.ENDED)

        assert adapter.is_polling is False
        on_ended.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_teardown_cancels_before_destroy(self, polling_handle) -> None:
        """No poll should touch the handle after teardown."""
        adapter = PollingControlAdapter(polling_handle, poll_interval=0.01)
        adapter.handle_state_change(PlayerState.PLAYING)
        task = adapter._poll_task

        adapter.teardown()
        await asyncio.sleep(0.05)

        assert task is not None and task.cancelled()
        assert polling_handle.destroyed is True
        assert adapter.is_polling is False

    def test_unknown_state_ignored(self, polling_handle) -> None:
        """Unknown state codes are ignored."""
        adapter = PollingControlAdapter(polling_handle)
        adapter.handle_state_change(42)
        assert adapter.is_polling is False

    @pytest.mark.asyncio
    async def test_seek_and_duration(self, polling_handle) -> None:
        """Seek goes to the handle with seek-ahead allowed."""
        adapter = PollingControlAdapter(polling_handle)
        assert adapter.supports_seek is True
        assert await adapter.get_duration() == 200.0
        assert await adapter.seek_to(80.0) is True
        assert polling_handle.seeks == [80.0]

    @pytest.mark.asyncio
    async def test_duration_not_ready(self, polling_handle) -> None:
        """Zero duration reads as unknown."""
        polling_handle.duration = 0
        adapter = PollingControlAdapter(polling_handle)
        assert await adapter.get_duration() is None


class TestPollingAdapterFactory:
    """Tests for polling_adapter_factory."""

    def test_interval_from_settings(self, settings) -> None:
        """Adapters poll at the configured interval."""
        handles: list[FakePollingHandle] = []

        def provider(source):
            handles.append(FakePollingHandle())
            return handles[-1]

        factory = polling_adapter_factory(provider, settings)
        adapter = factory(resolve_source("https://youtu.be/dQw4w9WgXcQ"))

        assert isinstance(adapter, PollingControlAdapter)
        assert adapter.poll_interval == settings.poll_interval_seconds == 0.01
        assert len(handles) == 1

    @pytest.mark.asyncio
    async def test_configured_interval_drives_ticks(self) -> None:
        """A short interval polls, a long one has not ticked yet."""
        fast_handle = FakePollingHandle()
        slow_handle = FakePollingHandle()
        fast = polling_adapter_factory(
            lambda source: fast_handle,
            Settings(environment="testing", poll_interval_seconds=0.01),
        )(None)
        slow = polling_adapter_factory(
            lambda source: slow_handle,
            Settings(environment="testing", poll_interval_seconds=5.0),
        )(None)

        fast.handle_state_change(PlayerState.PLAYING)
        slow.handle_state_change(PlayerState.PLAYING)
        await asyncio.sleep(0.1)

        assert fast_handle.reads >= 2
        assert slow_handle.reads == 0
        fast.teardown()
        slow.teardown()


class TestCallbackControlAdapter:
    """Tests for CallbackControlAdapter."""

    def test_subscribes_on_creation(self, callback_handle) -> None:
        """Adapter registers both native events."""
        CallbackControlAdapter(callback_handle)
        assert len(callback_handle.listeners["timeupdate"]) == 1
        assert len(callback_handle.listeners["ended"]) == 1

    def test_timeupdate_payload_normalized(self, callback_handle) -> None:
        """Vimeo timeupdate payloads become percentages."""
        adapter = CallbackControlAdapter(callback_handle)
        samples: list[ProgressSample] = []
        adapter.on_progress(samples.append)

        callback_handle.fire("timeupdate", {"seconds": 30, "duration": 120, "percent": 0.25})
        callback_handle.fire("timeupdate", {"nothing": "useful"})

        assert samples == [ProgressSample(25.0)]

    def test_ended_forwarded(self, callback_handle) -> None:
        """Native ended becomes the ended stream."""
        adapter = CallbackControlAdapter(callback_handle)
        on_ended = Mock()
        adapter.on_ended(on_ended)

        callback_handle.fire("ended")

        on_ended.assert_called_once_with()

    def test_teardown_unsubscribes(self, callback_handle) -> None:
        """Teardown removes the native listeners."""
        adapter = CallbackControlAdapter(callback_handle)
        adapter.teardown()
        assert callback_handle.listeners["timeupdate"] == []
        assert callback_handle.listeners["ended"] == []

    @pytest.mark.asyncio
    async def test_seek(self, callback_handle) -> None:
        """Seek goes through set_current_time."""
        adapter = CallbackControlAdapter(callback_handle)
        assert await adapter.seek_to(12.5) is True
        assert callback_handle.seeks == [12.5]

    @pytest.mark.asyncio
    async def test_seek_after_teardown(self, callback_handle) -> None:
        """A released adapter refuses to seek."""
        adapter = CallbackControlAdapter(callback_handle)
        adapter.teardown()
        assert await adapter.seek_to(12.5) is False
        assert callback_handle.seeks == []


class TestNormalizeOrigin:
    """Tests for normalize_origin."""

    @pytest.mark.parametrize(
        "origin,expected",
        [
            ("https://Player.CursEduca.com", "https://player.curseduca.com"),
            ("https://player.curseduca.com/", "https://player.curseduca.com"),
            ("http://localhost:3000", "http://localhost:3000"),
        ],
    )
    def test_valid(self, origin: str, expected: str) -> None:
        """Origins are lowercased down to scheme, host and port."""
        assert normalize_origin(origin) == expected

    @pytest.mark.parametrize("origin", [None, "", "null", "curseduca.com", 42])
    def test_invalid(self, origin: object) -> None:
        """Opaque or malformed origins are rejected."""
        assert normalize_origin(origin) is None


class TestCrossOriginMessageAdapter:
    """Tests for CrossOriginMessageAdapter."""

    @pytest.fixture
    def channel(self) -> MessageChannel:
        return MessageChannel()

    @pytest.fixture
    def adapter(self, channel: MessageChannel) -> CrossOriginMessageAdapter:
        return CrossOriginMessageAdapter(
            channel,
            allowed_origins=[ALLOWED_ORIGIN],
            ignored_sources=["react-devtools-bridge"],
        )

    def test_cannot_seek(self, adapter: CrossOriginMessageAdapter) -> None:
        """The message channel has no control API."""
        assert adapter.supports_seek is False
        assert adapter.kind is AdapterKind.CROSS_ORIGIN_MESSAGE

    def test_progress_from_allowed_origin(self, channel, adapter) -> None:
        """Allowed origin with a progress payload emits a sample."""
        samples: list[ProgressSample] = []
        adapter.on_progress(samples.append)

        channel.dispatch(
            InboundMessage(ALLOWED_ORIGIN, json.dumps({"currentTime": 30, "duration": 60}))
        )

        assert samples == [ProgressSample(50.0)]

    def test_nested_progress(self, channel, adapter) -> None:
        """Progress nested under data is extracted."""
        samples: list[ProgressSample] = []
        adapter.on_progress(samples.append)

        channel.dispatch(
            InboundMessage(ALLOWED_ORIGIN, {"event": "timeupdate", "data": {"progress": 33}})
        )

        assert samples == [ProgressSample(33.0)]

    @pytest.mark.parametrize(
        "origin",
        [
            "https://evil.example",
            "https://curseduca.com.evil.example",
            "https://evil.example/?https://player.curseduca.com",
            "http://player.curseduca.com",
            None,
        ],
    )
    def test_foreign_origin_dropped(self, channel, adapter, origin) -> None:
        """Only exact allow-listed origins are trusted."""
        on_progress = Mock()
        on_ended = Mock()
        adapter.on_progress(on_progress)
        adapter.on_ended(on_ended)

        channel.dispatch(InboundMessage(origin, {"percentage": 95}))
        channel.dispatch(InboundMessage(origin, {"type": "ended"}))

        on_progress.assert_not_called()
        on_ended.assert_not_called()

    def test_ignored_source_dropped(self, channel, adapter) -> None:
        """Devtools chatter is filtered by its source tag."""
        on_progress = Mock()
        adapter.on_progress(on_progress)

        channel.dispatch(
            InboundMessage(ALLOWED_ORIGIN, {"source": "react-devtools-bridge", "progress": 40})
        )

        on_progress.assert_not_called()

    def test_garbage_dropped(self, channel, adapter) -> None:
        """Non-JSON and non-object bodies are dropped silently."""
        on_progress = Mock()
        adapter.on_progress(on_progress)

        channel.dispatch(InboundMessage(ALLOWED_ORIGIN, "not json"))
        channel.dispatch(InboundMessage(ALLOWED_ORIGIN, "[1, 2]"))
        channel.dispatch(InboundMessage(ALLOWED_ORIGIN, 42))

        on_progress.assert_not_called()

    def test_ended(self, channel, adapter) -> None:
        """Ended synonyms fire the ended stream."""
        on_ended = Mock()
        adapter.on_ended(on_ended)

        channel.dispatch(InboundMessage(ALLOWED_ORIGIN, '{"type": "finished"}'))

        on_ended.assert_called_once_with()

    def test_ready_and_unknown_do_not_emit(self, channel, adapter) -> None:
        """Ready and unrecognized events are not progress."""
        on_progress = Mock()
        adapter.on_progress(on_progress)

        channel.dispatch(InboundMessage(ALLOWED_ORIGIN, {"type": "ready", "progress": 10}))
        channel.dispatch(InboundMessage(ALLOWED_ORIGIN, {"type": "volume", "progress": 10}))

        on_progress.assert_not_called()

    def test_teardown_unsubscribes(self, channel, adapter) -> None:
        """Teardown leaves the channel."""
        assert channel.listener_count == 1
        adapter.teardown()
        assert channel.listener_count == 0

    def test_factory_uses_settings(self, channel, settings) -> None:
        """Factory builds adapters from the configured lists."""
        factory = message_adapter_factory(channel, settings)
        source = resolve_source("https://player.curseduca.com/embed/abc")

        adapter = factory(source)

        assert isinstance(adapter, CrossOriginMessageAdapter)
        assert adapter.is_allowed_origin("https://embed.curseduca.com") is True
        assert adapter.is_allowed_origin("https://evil.example") is False
