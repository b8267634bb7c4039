"""Tests for OpenTimelineIO export."""

import opentimelineio as otio

from clipcomposer.config import DEFAULT_INTRO_BLOCKS
from clipcomposer.timeline.compositor import compose_timeline
from clipcomposer.timeline.envelopes import FadeSettings
from clipcomposer.timeline.otio_export import TimelineExportService

from conftest import make_clip


def _layout():
    clips = [
        make_clip("a", 50, render_src="https://cdn.test/a.mp4", begin_time="00:00:02"),
        make_clip("b", 25, has_audio=False),
    ]
    return compose_timeline(clips, DEFAULT_INTRO_BLOCKS, fps=25)


class TestTimelineExportService:
    """Tests for TimelineExportService."""

    def test_tracks_match_layout(self):
        timeline = TimelineExportService().create_timeline(_layout())

        video, audio = timeline.tracks
        assert [clip.name for clip in video] == ["intro_title", "intro_platform", "intro_location", "a", "b"]
        assert video.duration().to_frames() == 315
        assert audio.duration().to_frames() == 315
        assert timeline.metadata["clipcomposer"]["total_frames"] == 315

    def test_source_range_and_references(self):
        timeline = TimelineExportService().create_timeline(_layout())
        video = timeline.tracks[0]

        clip_a, clip_b = video[3], video[4]
        assert clip_a.media_reference.target_url == "https://cdn.test/a.mp4"
        assert clip_a.source_range.start_time.to_frames() == 50
        assert clip_a.metadata["clipcomposer"]["start_frame"] == 240
        assert isinstance(clip_b.media_reference, otio.schema.MissingReference)

    def test_silent_clip_is_a_gap_on_the_audio_track(self):
        timeline = TimelineExportService(FadeSettings(audio_fade_frames=10)).create_timeline(_layout())
        audio = timeline.tracks[1]

        kinds = [type(item).__name__ for item in audio]
        assert kinds == ["Gap", "Clip", "Gap"]
        assert audio[1].metadata["clipcomposer"]["fade_frames"] == 10

    def test_round_trip_through_json_and_file(self, tmp_path):
        service = TimelineExportService()
        layout = _layout()

        restored = otio.adapters.read_from_string(service.to_json(layout), "otio_json")
        path = service.export(layout, tmp_path / "timeline.otio")

        assert restored.tracks[0].duration().to_frames() == 315
        assert otio.adapters.read_from_file(str(path)).name == "Clip Composer Master"
