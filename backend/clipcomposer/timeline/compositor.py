"""Frame layout for a composition: intro blocks followed by clips."""

import logging
from collections.abc import Sequence

from clipcomposer.common.errors import InvalidDurationError
from clipcomposer.config import IntroBlockConfig
from clipcomposer.timeline.schemas import (
    ClipRecord,
    IntroPlacement,
    TimelineLayout,
    TimelineSegment,
)
from clipcomposer.timeline.timecode import is_whole_frame_count

logger = logging.getLogger(__name__)


def compose_timeline(
    clips: Sequence[ClipRecord],
    intro_blocks: Sequence[IntroBlockConfig],
    fps: int = 25,
) -> TimelineLayout:
    """Lay out intro blocks and clips on a single frame-indexed timeline.

    Intro blocks come first in the given order, then the clips in input order.
    Each start frame is the running sum of everything placed before it.

    Args:
        clips: Clip records with precomputed durations in frames.
        intro_blocks: Fixed-length blocks placed before the first clip.
        fps: Composition frame rate.

    Returns:
        The layout with segments and total frame count.

    Raises:
        InvalidDurationError: If a clip's duration is negative, non-integral
            or not finite.
    """
    cursor = 0
    intro: list[IntroPlacement] = []
    for block in intro_blocks:
        intro.append(
            IntroPlacement(
                name=block.name,
                start_frame=cursor,
                duration_in_frames=block.duration_in_frames,
            )
        )
        cursor += block.duration_in_frames

    segments: list[TimelineSegment] = []
    for clip in clips:
        if not is_whole_frame_count(clip.duration_in_frames):
            raise InvalidDurationError(clip.clip_name, clip.duration_in_frames)
        length = int(clip.duration_in_frames)
        segments.append(
            TimelineSegment(clip=clip, start_frame=cursor, duration_in_frames=length)
        )
        cursor += length

    logger.debug(
        "Composed timeline: %d intro blocks, %d segments, %d frames",
        len(intro),
        len(segments),
        cursor,
    )
    return TimelineLayout(fps=fps, intro=intro, segments=segments, total_frames=cursor)


def with_trim_durations(clips: Sequence[ClipRecord], fps: int) -> list[ClipRecord]:
    """Fill in missing durations from each clip's BeginTime/EndTime window.

    Clips that already carry a non-zero duration are returned unchanged.
    """
    resolved: list[ClipRecord] = []
    for clip in clips:
        trim = clip.trim_frames(fps)
        if not clip.duration_in_frames and trim is not None:
            clip = clip.model_copy(update={"duration_in_frames": trim})
        resolved.append(clip)
    return resolved
