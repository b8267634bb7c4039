"""Timeline schemas."""

from clipcomposer.timeline.schemas.clip import ClipRecord, Platform
from clipcomposer.timeline.schemas.segment import (
    IntroPlacement,
    TimelineLayout,
    TimelineSegment,
)

__all__ = [
    "ClipRecord",
    "IntroPlacement",
    "Platform",
    "TimelineLayout",
    "TimelineSegment",
]
