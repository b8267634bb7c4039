"""Conversions between HH:MM:SS timestamps, seconds and frames."""

import math
import re

_TIMESTAMP_RE = re.compile(r"^(\d{1,2}):([0-5]\d):([0-5]\d(?:\.\d+)?)$")


def parse_timestamp(value: str) -> float:
    """Parse an ``HH:MM:SS`` (optionally ``HH:MM:SS.fff``) timestamp into seconds."""
    match = _TIMESTAMP_RE.match(value.strip())
    if match is None:
        msg = f"Invalid timestamp {value!r}, expected HH:MM:SS"
        raise ValueError(msg)
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def seconds_to_frames(seconds: float, fps: int) -> int:
    """Convert seconds to a whole number of frames, rounding up partial frames."""
    return math.ceil(round(seconds * fps, 6))


def is_whole_frame_count(value: object) -> bool:
    """Return True if value is a finite, non-negative integral number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and (not math.isfinite(value) or not value.is_integer()):
        return False
    return value >= 0
