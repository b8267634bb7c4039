"""Tests for fade envelopes."""

import pytest

from clipcomposer.timeline.envelopes import (
    FadeSettings,
    audio_fade_envelope,
    envelope_samples,
    fade_envelope,
    smoothstep,
)
from clipcomposer.timeline.schemas import TimelineSegment

from conftest import make_clip


class TestFadeEnvelope:
    """Tests for fade_envelope."""

    @pytest.mark.parametrize(("start", "length", "fade"), [(0, 60, 30), (240, 90, 30), (10, 200, 15)])
    def test_boundaries_and_plateau(self, start, length, fade):
        assert fade_envelope(start, start, length, fade) == 0.0
        assert fade_envelope(start + length, start, length, fade) == 0.0
        for frame in range(start + fade, start + length - fade + 1):
            assert fade_envelope(frame, start, length, fade) == 1.0

    def test_outside_segment_is_zero(self):
        assert fade_envelope(-5, 0, 60, 30) == 0.0
        assert fade_envelope(100, 0, 60, 30) == 0.0

    def test_ramp_is_monotone(self):
        values = [fade_envelope(frame, 0, 100, 30) for frame in range(0, 31)]

        assert values == sorted(values)
        assert fade_envelope(15, 0, 100, 30) == pytest.approx(0.5)

    def test_short_segment_stays_in_bounds(self):
        length, fade = 20, 30
        values = [fade_envelope(frame, 0, length, fade) for frame in range(0, length + 1)]

        assert all(0.0 <= v < 1.0 for v in values)
        midpoint = length // 2
        assert values[: midpoint + 1] == sorted(values[: midpoint + 1])
        assert values[midpoint:] == sorted(values[midpoint:], reverse=True)

    def test_zero_fade_is_flat(self):
        assert fade_envelope(1, 0, 10, 0) == 1.0
        assert fade_envelope(0, 0, 10, 0) == 0.0

    def test_zero_length_segment(self):
        assert fade_envelope(0, 0, 0, 30) == 0.0


class TestAudioEnvelope:
    """Tests for audio_fade_envelope."""

    def test_peak_volume_caps_plateau(self):
        assert audio_fade_envelope(50, 0, 100, 15, 0.2) == pytest.approx(0.2)

    def test_never_exceeds_peak(self):
        values = [audio_fade_envelope(frame, 0, 40, 15, 0.2) for frame in range(-5, 50)]

        assert max(values) <= 0.2
        assert min(values) >= 0.0


class TestEnvelopeSamples:
    """Tests for per-frame envelope sampling."""

    def test_samples_cover_segment(self):
        segment = TimelineSegment(clip=make_clip("a", 60), start_frame=240, duration_in_frames=60)

        opacity, volume = envelope_samples(segment, FadeSettings())

        assert len(opacity) == len(volume) == 61
        assert opacity[0] == opacity[-1] == 0.0
        assert opacity[30] == 1.0
        assert max(volume) == pytest.approx(0.2)

    def test_clip_without_audio_is_silent(self):
        segment = TimelineSegment(
            clip=make_clip("a", 60, has_audio=False), start_frame=0, duration_in_frames=60
        )

        _, volume = envelope_samples(segment, FadeSettings())

        assert set(volume) == {0.0}


def test_smoothstep_clamps():
    assert smoothstep(-1) == 0.0
    assert smoothstep(0.5) == 0.5
    assert smoothstep(2) == 1.0
