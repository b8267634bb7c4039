"""Render event fan-out and the progress reporter used by the job runner."""

import asyncio
import logging
import math
from collections.abc import AsyncIterator

from fastapi import WebSocket, status
from starlette.websockets import WebSocketDisconnect

from clipcomposer.api.schemas.events import (
    CompleteEvent,
    ErrorEvent,
    ProgressEvent,
    RenderEvent,
    StatusEvent,
)

logger = logging.getLogger(__name__)


class RenderEventChannel:
    """Ordered event stream for one job with any number of subscribers.

    Subscribers that join late first receive every event emitted so far.
    Nothing is accepted after the terminal event, and the channel closes
    exactly once.
    """

    def __init__(self, job_id: str) -> None:
        """Initialize the channel.

        Args:
            job_id: The job ID.
        """
        self.job_id = job_id
        self._history: list[RenderEvent] = []
        self._subscribers: list[asyncio.Queue[RenderEvent | None]] = []
        self._terminated = False
        self._closed = False

    @property
    def closed(self) -> bool:
        """Return True once the channel has been closed."""
        return self._closed

    @property
    def history(self) -> list[RenderEvent]:
        """Return a copy of the events emitted so far."""
        return list(self._history)

    def emit(self, event: RenderEvent) -> bool:
        """Publish an event to every subscriber.

        Returns:
            False if the event was dropped because the job already ended.
        """
        if self._terminated or self._closed:
            logger.debug("[job=%s] Dropping %s event after terminal event", self.job_id, event.type)
            return False

        self._history.append(event)
        if event.is_terminal:
            self._terminated = True
        for queue in self._subscribers:
            queue.put_nowait(event)
        return True

    def close(self) -> None:
        """End every subscription. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(None)

    async def subscribe(self) -> AsyncIterator[RenderEvent]:
        """Yield past and future events until the channel closes."""
        queue: asyncio.Queue[RenderEvent | None] = asyncio.Queue()
        for event in self._history:
            queue.put_nowait(event)
        if self._closed:
            queue.put_nowait(None)
        self._subscribers.append(queue)

        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            self._subscribers.remove(queue)


class ConnectionManager:
    """Manages WebSocket connections per job."""

    def __init__(self) -> None:
        """Initialize the connection manager."""
        self.active_connections: dict[str, list[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, job_id: str) -> None:
        """Accept a WebSocket connection and register it for a job."""
        await websocket.accept()
        self.active_connections.setdefault(job_id, []).append(websocket)
        logger.info(
            "[ws] Client connected for job=%s (total: %d)",
            job_id,
            len(self.active_connections[job_id]),
        )

    def disconnect(self, websocket: WebSocket, job_id: str) -> None:
        """Remove a WebSocket connection."""
        if job_id in self.active_connections:
            if websocket in self.active_connections[job_id]:
                self.active_connections[job_id].remove(websocket)
            if not self.active_connections[job_id]:
                del self.active_connections[job_id]

    async def forward(self, websocket: WebSocket, job_id: str, channel: RenderEventChannel) -> None:
        """Send a job's events to one socket, then close it after the terminal event."""
        try:
            async for event in channel.subscribe():
                await websocket.send_json(event.to_json_dict())
            await websocket.close()
        except WebSocketDisconnect:
            logger.info("[ws] Client disconnected for job=%s", job_id)
        finally:
            self.disconnect(websocket, job_id)

    async def close_all(self) -> None:
        """Close every registered socket (used at shutdown)."""
        sockets = [
            (job_id, websocket)
            for job_id, websockets in self.active_connections.items()
            for websocket in websockets
        ]
        for job_id, websocket in sockets:
            try:
                await websocket.close(code=status.WS_1001_GOING_AWAY)
            except RuntimeError as e:
                logger.debug("[ws] Socket for job=%s already closed: %s", job_id, e)
            self.disconnect(websocket, job_id)
        if sockets:
            logger.info("[ws] Closed %d sockets at shutdown", len(sockets))


# Global instance
connection_manager = ConnectionManager()


def _percent(frames: int, total: int) -> int:
    if total <= 0:
        return 0
    return min(100, math.floor(frames / total * 100 + 0.5))


class ProgressReporter:
    """Turns job activity into events on the job's channel."""

    def __init__(self, job_id: str, channel: RenderEventChannel) -> None:
        """Initialize the progress reporter.

        Args:
            job_id: The job ID.
            channel: Channel the events are published to.
        """
        self.job_id = job_id
        self.channel = channel
        self.rendered_frames = 0
        self.encoded_frames = 0
        self._reported_any = False

    def status(self, message: str, stage: str | None = None, **details: object) -> None:
        """Send a status update."""
        logger.info("[job=%s] STATUS: %s", self.job_id, message)
        self.channel.emit(
            StatusEvent(job_id=self.job_id, message=message, stage=stage, details=details)
        )

    def progress(self, rendered_frames: int, encoded_frames: int, total_frames: int) -> None:
        """Send frame progress.

        Counters never move backwards, and an update that changes neither
        counter is not sent, so successive progress events strictly increase.
        """
        rendered = min(max(rendered_frames, self.rendered_frames), total_frames)
        encoded = min(max(encoded_frames, self.encoded_frames), total_frames)
        if self._reported_any and (rendered, encoded) == (self.rendered_frames, self.encoded_frames):
            return

        self.rendered_frames = rendered
        self.encoded_frames = encoded
        self._reported_any = True
        logger.debug(
            "[job=%s] PROGRESS: rendered=%d encoded=%d total=%d",
            self.job_id,
            rendered,
            encoded,
            total_frames,
        )
        self.channel.emit(
            ProgressEvent(
                job_id=self.job_id,
                rendered_frames=rendered,
                encoded_frames=encoded,
                total_frames=total_frames,
                rendered_percent=_percent(rendered, total_frames),
                encoded_percent=_percent(encoded, total_frames),
            )
        )

    def complete(self, download_reference: str, filename: str, size_bytes: int = 0) -> None:
        """Send the completion event."""
        logger.info("[job=%s] COMPLETE: %s", self.job_id, download_reference)
        self.channel.emit(
            CompleteEvent(
                job_id=self.job_id,
                download_reference=download_reference,
                filename=filename,
                size_bytes=size_bytes,
            )
        )

    def error(self, message: str, error_type: str) -> None:
        """Send the error event."""
        logger.error("[job=%s] ERROR (%s): %s", self.job_id, error_type, message)
        self.channel.emit(ErrorEvent(job_id=self.job_id, message=message, error_type=error_type))
