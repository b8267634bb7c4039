"""API schemas for requests, responses and render events."""

from clipcomposer.api.schemas.events import (
    CompleteEvent,
    ErrorEvent,
    ProgressEvent,
    RenderEvent,
    RenderEventType,
    StatusEvent,
)
from clipcomposer.api.schemas.requests import RenderRequest, TimelineRequest
from clipcomposer.api.schemas.responses import (
    CleanupResponse,
    RenderJobResponse,
    SegmentEnvelope,
    TimelineResponse,
    UploadResponse,
)

__all__ = [
    "CleanupResponse",
    "CompleteEvent",
    "ErrorEvent",
    "ProgressEvent",
    "RenderEvent",
    "RenderEventType",
    "RenderJobResponse",
    "RenderRequest",
    "SegmentEnvelope",
    "StatusEvent",
    "TimelineRequest",
    "TimelineResponse",
    "UploadResponse",
]
