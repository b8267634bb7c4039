"""Tests for the event channel, progress reporter and WebSocket forwarding."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocket, status

from clipcomposer.api.schemas.events import RenderEventType, StatusEvent
from clipcomposer.pipeline.progress_reporter import (
    ConnectionManager,
    ProgressReporter,
    RenderEventChannel,
)


async def _collect(channel: RenderEventChannel) -> list:
    return [event async for event in channel.subscribe()]


class TestRenderEventChannel:
    """Tests for RenderEventChannel."""

    @pytest.mark.asyncio
    async def test_late_subscriber_gets_history(self):
        channel = RenderEventChannel("job")
        channel.emit(StatusEvent(job_id="job", message="one"))
        channel.emit(StatusEvent(job_id="job", message="two"))
        channel.close()

        events = await _collect(channel)

        assert [e.message for e in events] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_live_subscribers_see_events_in_order(self):
        channel = RenderEventChannel("job")
        first = asyncio.create_task(_collect(channel))
        second = asyncio.create_task(_collect(channel))
        await asyncio.sleep(0)

        reporter = ProgressReporter("job", channel)
        reporter.status("starting")
        reporter.progress(5, 1, 10)
        reporter.complete("http://x/out.mp4", "out.mp4")
        channel.close()

        for events in await asyncio.gather(first, second):
            assert [e.type for e in events] == [
                RenderEventType.STATUS,
                RenderEventType.PROGRESS,
                RenderEventType.COMPLETE,
            ]

    def test_nothing_after_terminal_event(self):
        channel = RenderEventChannel("job")
        reporter = ProgressReporter("job", channel)

        reporter.error("boom", "RenderEngineError")
        reporter.status("late")
        reporter.complete("ref", "file")

        assert [e.type for e in channel.history] == [RenderEventType.ERROR]

    def test_close_twice(self):
        channel = RenderEventChannel("job")
        channel.close()
        channel.close()

        assert channel.closed


class TestProgressReporter:
    """Tests for progress filtering."""

    def test_progress_is_monotonic_and_deduplicated(self):
        channel = RenderEventChannel("job")
        reporter = ProgressReporter("job", channel)

        for rendered, encoded in [(0, 0), (10, 0), (10, 0), (8, 2), (20, 15), (999, 999)]:
            reporter.progress(rendered, encoded, 100)

        counts = [(e.rendered_frames, e.encoded_frames) for e in channel.history]
        assert counts == [(0, 0), (10, 0), (10, 2), (20, 15), (100, 100)]
        assert channel.history[-1].rendered_percent == 100
        assert channel.history[-1].encoded_percent == 100

    def test_percent_rounding(self):
        channel = RenderEventChannel("job")
        reporter = ProgressReporter("job", channel)

        reporter.progress(1, 0, 3)

        event = channel.history[0]
        assert event.rendered_percent == 33
        assert event.encoded_percent == 0

    def test_half_percent_rounds_up(self):
        channel = RenderEventChannel("job")
        reporter = ProgressReporter("job", channel)

        reporter.progress(1, 1, 8)
        reporter.progress(5, 1, 8)

        assert channel.history[0].rendered_percent == 13
        assert channel.history[0].encoded_percent == 13
        assert channel.history[1].rendered_percent == 63

    def test_wire_format_uses_camel_case(self):
        channel = RenderEventChannel("job")
        ProgressReporter("job", channel).progress(5, 5, 10)

        payload = channel.history[0].to_json_dict()

        assert payload["jobId"] == "job"
        assert payload["type"] == "progress"
        assert payload["renderedFrames"] == 5
        assert payload["totalFrames"] == 10
        assert channel.history[0].to_sse().startswith("data: {")
        assert channel.history[0].to_sse().endswith("\n\n")


class TestConnectionManager:
    """Tests for WebSocket forwarding."""

    @pytest.mark.asyncio
    async def test_forward_sends_events_then_closes(self):
        manager = ConnectionManager()
        websocket = AsyncMock(spec=WebSocket)
        channel = RenderEventChannel("job")
        reporter = ProgressReporter("job", channel)
        reporter.status("hello")
        reporter.complete("ref", "file.mp4")
        channel.close()

        await manager.connect(websocket, "job")
        assert websocket in manager.active_connections["job"]

        await manager.forward(websocket, "job", channel)

        sent = [call.args[0] for call in websocket.send_json.await_args_list]
        assert [message["type"] for message in sent] == ["status", "complete"]
        websocket.close.assert_awaited_once()
        assert "job" not in manager.active_connections

    @pytest.mark.asyncio
    async def test_close_all_closes_registered_sockets(self):
        manager = ConnectionManager()
        first = AsyncMock(spec=WebSocket)
        second = AsyncMock(spec=WebSocket)
        second.close.side_effect = RuntimeError("already closed")
        await manager.connect(first, "job-a")
        await manager.connect(second, "job-b")

        await manager.close_all()

        first.close.assert_awaited_once_with(code=status.WS_1001_GOING_AWAY)
        second.close.assert_awaited_once()
        assert manager.active_connections == {}
