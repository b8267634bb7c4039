"""API response schemas."""

from datetime import datetime
from typing import Any

from clipcomposer.common.base_composer_model import BaseComposerModel
from clipcomposer.timeline.schemas import IntroPlacement


class UploadResponse(BaseComposerModel):
    """Response after staging an upload."""

    asset_id: str
    filename: str
    url: str
    size_bytes: int
    expires_at: datetime


class RenderJobResponse(BaseComposerModel):
    """Response containing render job information."""

    job_id: str
    stage: str
    live: bool = False
    clip_names: list[str] = []
    segment_count: int = 0
    total_frames: int = 0
    rendered_frames: int = 0
    encoded_frames: int = 0
    output_filename: str | None = None
    download_reference: str | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


class SegmentEnvelope(BaseComposerModel):
    """Per-frame fade curves of one segment, from its start frame to its end frame."""

    clip_name: str
    opacity: list[float]
    volume: list[float]


class TimelineResponse(BaseComposerModel):
    """A composed timeline."""

    fps: int
    total_frames: int
    intro_frames: int
    duration_seconds: float
    intro: list[IntroPlacement]
    segments: list[dict[str, Any]]
    envelopes: list[SegmentEnvelope] | None = None


class CleanupResponse(BaseComposerModel):
    """Result of a manual cleanup run."""

    removed: int
    expired: int
    orphans: int
