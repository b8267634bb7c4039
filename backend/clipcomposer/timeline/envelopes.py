"""Fade-in/fade-out envelopes for segment opacity and audio volume.

Both envelopes ramp with a smoothstep curve, t^2 (3 - 2t), over the first and
last ``fade_frames`` of a segment and hold full value in between. Outside the
segment, and exactly on its first and end frames, the value is 0. When a
segment is shorter than two fades the ramps overlap and the lower one wins,
so the value never leaves its bounds.
"""

from pydantic import Field

from clipcomposer.common.base_composer_model import BaseComposerModel
from clipcomposer.config import ComposerConfig
from clipcomposer.timeline.schemas import TimelineSegment


class FadeSettings(BaseComposerModel):
    """Fade lengths and audio peak used for a composition."""

    visual_fade_frames: int = Field(default=30, ge=0)
    audio_fade_frames: int = Field(default=15, ge=0)
    audio_peak_volume: float = Field(default=0.2, ge=0, le=1)

    @classmethod
    def from_config(cls, config: ComposerConfig) -> "FadeSettings":
        """Build fade settings from service configuration."""
        return cls(
            visual_fade_frames=config.visual_fade_frames,
            audio_fade_frames=config.audio_fade_frames,
            audio_peak_volume=config.audio_peak_volume,
        )


def smoothstep(t: float) -> float:
    """Smoothstep easing on [0, 1]; inputs outside are clamped."""
    t = min(max(t, 0.0), 1.0)
    return t * t * (3 - 2 * t)


def fade_envelope(
    current_frame: float,
    segment_start: int,
    segment_length: int,
    fade_frames: int,
) -> float:
    """Return opacity in [0, 1] for a frame of a segment."""
    local_frame = current_frame - segment_start
    if segment_length <= 0 or local_frame <= 0 or local_frame >= segment_length:
        return 0.0
    if fade_frames <= 0:
        return 1.0

    fade_in = smoothstep(local_frame / fade_frames)
    fade_out = smoothstep((segment_length - local_frame) / fade_frames)
    return min(fade_in, fade_out)


def audio_fade_envelope(
    current_frame: float,
    segment_start: int,
    segment_length: int,
    fade_frames: int,
    peak_volume: float,
) -> float:
    """Return volume in [0, peak_volume] for a frame of a segment."""
    return peak_volume * fade_envelope(current_frame, segment_start, segment_length, fade_frames)


def envelope_samples(
    segment: TimelineSegment,
    settings: FadeSettings,
) -> tuple[list[float], list[float]]:
    """Sample opacity and volume for every frame of a segment.

    Returns:
        Tuple of (opacity per frame, volume per frame). Volume is all zeros
        for clips without an audio track.
    """
    frames = range(segment.start_frame, segment.end_frame + 1)
    opacity = [
        fade_envelope(frame, segment.start_frame, segment.duration_in_frames, settings.visual_fade_frames)
        for frame in frames
    ]
    if not segment.clip.has_audio:
        return opacity, [0.0] * len(opacity)

    volume = [
        audio_fade_envelope(
            frame,
            segment.start_frame,
            segment.duration_in_frames,
            settings.audio_fade_frames,
            settings.audio_peak_volume,
        )
        for frame in frames
    ]
    return opacity, volume
