"""Tests for timeline composition and timecode helpers."""

import math

import pytest
from pydantic import ValidationError

from clipcomposer.common.errors import InvalidDurationError
from clipcomposer.config import DEFAULT_INTRO_BLOCKS, IntroBlockConfig
from clipcomposer.timeline.compositor import compose_timeline, with_trim_durations
from clipcomposer.timeline.schemas import ClipRecord
from clipcomposer.timeline.timecode import is_whole_frame_count, parse_timestamp, seconds_to_frames

from conftest import make_clip

SINGLE_INTRO = [IntroBlockConfig(name="intro", duration_in_frames=240)]


class TestComposeTimeline:
    """Tests for compose_timeline."""

    def test_three_clips_after_fixed_intro(self):
        """Clips of 90, 120 and 60 frames after a 240-frame intro."""
        clips = [make_clip("a", 90), make_clip("b", 120), make_clip("c", 60)]

        layout = compose_timeline(clips, SINGLE_INTRO, fps=25)

        assert [s.start_frame for s in layout.segments] == [240, 330, 450]
        assert layout.total_frames == 510
        assert layout.intro_frames == 240

    def test_default_intro_is_three_blocks_of_80(self):
        layout = compose_timeline([make_clip("a", 50)], DEFAULT_INTRO_BLOCKS)

        assert [(b.name, b.start_frame) for b in layout.intro] == [
            ("title", 0),
            ("platform", 80),
            ("location", 160),
        ]
        assert layout.segments[0].start_frame == 240
        assert layout.total_frames == 290

    def test_segments_are_contiguous(self):
        clips = [make_clip(f"clip{i}", d) for i, d in enumerate([5, 0, 17, 1, 300])]

        layout = compose_timeline(clips, SINGLE_INTRO)

        for previous, current in zip(layout.segments, layout.segments[1:]):
            assert current.start_frame == previous.end_frame
        assert layout.total_frames == 240 + sum([5, 0, 17, 1, 300])

    def test_empty_clip_list(self):
        layout = compose_timeline([], SINGLE_INTRO)

        assert layout.segments == []
        assert layout.total_frames == 240

    def test_integral_float_duration_is_accepted(self):
        layout = compose_timeline([make_clip("a", 90.0)], [])

        assert layout.segments[0].duration_in_frames == 90

    @pytest.mark.parametrize("duration", [-1, 12.5, math.nan, math.inf])
    def test_invalid_duration_raises(self, duration):
        clips = [make_clip("good", 10), make_clip("bad", duration)]

        with pytest.raises(InvalidDurationError) as exc_info:
            compose_timeline(clips, SINGLE_INTRO)

        assert exc_info.value.clip_name == "bad"

    def test_segment_lookup_and_props(self):
        layout = compose_timeline([make_clip("a", 10, title="Hello")], SINGLE_INTRO)

        segment = layout.segment_for("a")
        assert segment is not None
        props = segment.to_props()
        assert props["ClipName"] == "a"
        assert props["Title"] == "Hello"
        assert props["startFrame"] == 240
        assert props["durationInFrames"] == 10

        input_props = layout.to_input_props()
        assert input_props["introFrames"] == 240
        assert input_props["totalFrames"] == 250
        assert layout.segment_for("missing") is None


class TestTrimDurations:
    """Tests for durations derived from BeginTime/EndTime."""

    def test_missing_duration_filled_from_trim_window(self):
        clip = make_clip("a", 0, begin_time="00:00:10", end_time="00:00:14")

        [resolved] = with_trim_durations([clip], fps=25)

        assert resolved.duration_in_frames == 100

    def test_explicit_duration_is_kept(self):
        clip = make_clip("a", 42, begin_time="00:00:10", end_time="00:00:14")

        [resolved] = with_trim_durations([clip], fps=25)

        assert resolved.duration_in_frames == 42

    def test_end_before_begin_is_rejected(self):
        with pytest.raises(ValidationError):
            make_clip("a", 0, begin_time="00:00:14", end_time="00:00:10")


class TestTimecode:
    """Tests for timestamp parsing and frame conversion."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("00:00:00", 0.0), ("00:01:05", 65.0), ("01:00:00", 3600.0), ("00:00:02.5", 2.5)],
    )
    def test_parse_timestamp(self, value, expected):
        assert parse_timestamp(value) == expected

    @pytest.mark.parametrize("value", ["", "1:2", "00:61:00", "abc"])
    def test_parse_timestamp_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)

    def test_seconds_to_frames_rounds_partial_frames_up(self):
        assert seconds_to_frames(4.0, 25) == 100
        assert seconds_to_frames(4.01, 25) == 101
        assert seconds_to_frames(0.1 * 3, 10) == 3

    def test_whole_frame_count(self):
        assert is_whole_frame_count(0)
        assert is_whole_frame_count(12.0)
        assert not is_whole_frame_count(True)
        assert not is_whole_frame_count(-3)
        assert not is_whole_frame_count("12")


class TestClipRecordAliases:
    """Clip rows use the ingestion column names."""

    def test_validate_from_ingestion_row(self):
        clip = ClipRecord.model_validate(
            {
                "ClipName": "clip_01",
                "Platform": "TIKTOK",
                "Post_author": "someone",
                "durationInFrames": 75,
                "hasAudio": False,
            }
        )

        assert clip.clip_name == "clip_01"
        assert clip.platform == "TIKTOK"
        assert clip.duration_in_frames == 75
        assert clip.has_audio is False
        assert "renderSrc" not in clip.to_props()
