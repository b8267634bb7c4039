"""Render job event schemas, sent over SSE and WebSocket."""

from datetime import UTC, datetime
from enum import StrEnum, auto
from typing import Any, Literal

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from clipcomposer.common.base_composer_model import BaseComposerModel


class RenderEventType(StrEnum):
    """Kinds of events a render job emits."""

    STATUS = auto()
    PROGRESS = auto()
    COMPLETE = auto()
    ERROR = auto()


class RenderEvent(BaseComposerModel):
    """Fields shared by every event. Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel)

    job_id: str
    type: RenderEventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_terminal(self) -> bool:
        """Return True for events that end a job's stream."""
        return self.type in (RenderEventType.COMPLETE, RenderEventType.ERROR)

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize for the wire."""
        return self.model_dump(mode="json", by_alias=True)

    def to_sse(self) -> str:
        """Format as a server-sent event frame."""
        return f"data: {self.model_dump_json(by_alias=True)}\n\n"


class StatusEvent(RenderEvent):
    """A human-readable stage update."""

    type: Literal[RenderEventType.STATUS] = RenderEventType.STATUS
    message: str
    stage: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ProgressEvent(RenderEvent):
    """Frame-level render progress."""

    type: Literal[RenderEventType.PROGRESS] = RenderEventType.PROGRESS
    rendered_frames: int = Field(ge=0)
    encoded_frames: int = Field(ge=0)
    total_frames: int = Field(ge=0)
    rendered_percent: int = Field(ge=0, le=100)
    encoded_percent: int = Field(ge=0, le=100)


class CompleteEvent(RenderEvent):
    """Terminal event for a successful job."""

    type: Literal[RenderEventType.COMPLETE] = RenderEventType.COMPLETE
    download_reference: str
    filename: str
    size_bytes: int = Field(default=0, ge=0)


class ErrorEvent(RenderEvent):
    """Terminal event for a failed or aborted job."""

    type: Literal[RenderEventType.ERROR] = RenderEventType.ERROR
    message: str
    error_type: str = "ComposerError"
