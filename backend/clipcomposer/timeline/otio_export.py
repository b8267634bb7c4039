"""Export a TimelineLayout as an OpenTimelineIO timeline."""

from pathlib import Path

import opentimelineio as otio

from clipcomposer.timeline.envelopes import FadeSettings
from clipcomposer.timeline.schemas import IntroPlacement, TimelineLayout, TimelineSegment
from clipcomposer.timeline.timecode import parse_timestamp


class TimelineExportService:
    """Service for converting composition layouts to OTIO documents."""

    def __init__(self, fade_settings: FadeSettings | None = None) -> None:
        """Initialize the export service.

        Args:
            fade_settings: Fade lengths recorded in clip metadata.
        """
        self.fade_settings = fade_settings or FadeSettings()

    def export(self, layout: TimelineLayout, output_path: Path) -> Path:
        """Write the layout to an .otio file.

        Args:
            layout: The composed timeline layout.
            output_path: Where to save the .otio file.

        Returns:
            The path to the saved OTIO file.
        """
        timeline = self.create_timeline(layout)
        otio.adapters.write_to_file(timeline, str(output_path))
        return output_path

    def to_json(self, layout: TimelineLayout) -> str:
        """Serialize the layout as an OTIO JSON string."""
        return otio.adapters.write_to_string(self.create_timeline(layout), "otio_json")

    def create_timeline(self, layout: TimelineLayout) -> otio.schema.Timeline:
        """Create an OTIO timeline from a layout."""
        timeline = otio.schema.Timeline(name="Clip Composer Master")
        timeline.global_start_time = otio.opentime.RationalTime(0, layout.fps)
        timeline.metadata["clipcomposer"] = {
            "total_frames": layout.total_frames,
            "intro_frames": layout.intro_frames,
        }

        timeline.tracks.append(self._create_video_track(layout))
        timeline.tracks.append(self._create_audio_track(layout))
        return timeline

    def _create_video_track(self, layout: TimelineLayout) -> otio.schema.Track:
        """Create the video track: intro blocks, then one clip per segment."""
        video_track = otio.schema.Track(
            name="Video",
            kind=otio.schema.TrackKind.Video,
        )

        for block in layout.intro:
            video_track.append(self._create_intro_clip(block, layout.fps))

        for segment in layout.segments:
            clip = self._create_segment_clip(segment, layout.fps)
            clip.metadata["clipcomposer"]["fade_frames"] = self.fade_settings.visual_fade_frames
            video_track.append(clip)

        return video_track

    def _create_audio_track(self, layout: TimelineLayout) -> otio.schema.Track:
        """Create the audio track; clips without audio become gaps."""
        audio_track = otio.schema.Track(
            name="Audio",
            kind=otio.schema.TrackKind.Audio,
        )

        if layout.intro_frames > 0:
            audio_track.append(self._create_gap(layout.intro_frames, layout.fps))

        for segment in layout.segments:
            if not segment.clip.has_audio:
                audio_track.append(self._create_gap(segment.duration_in_frames, layout.fps))
                continue

            clip = self._create_segment_clip(segment, layout.fps)
            clip.metadata["clipcomposer"]["fade_frames"] = self.fade_settings.audio_fade_frames
            clip.metadata["clipcomposer"]["peak_volume"] = self.fade_settings.audio_peak_volume
            audio_track.append(clip)

        return audio_track

    def _create_segment_clip(
        self,
        segment: TimelineSegment,
        fps: int,
    ) -> otio.schema.Clip:
        """Create an OTIO clip for a segment, honoring the source trim."""
        source = segment.clip.render_src or segment.clip.video_src
        media_ref: otio.core.MediaReference
        if source:
            media_ref = otio.schema.ExternalReference(target_url=source)
        else:
            media_ref = otio.schema.MissingReference()

        source_start = 0.0
        if segment.clip.begin_time is not None:
            source_start = parse_timestamp(segment.clip.begin_time)

        source_range = otio.opentime.TimeRange(
            start_time=otio.opentime.RationalTime(source_start * fps, fps),
            duration=otio.opentime.RationalTime(segment.duration_in_frames, fps),
        )

        clip = otio.schema.Clip(
            name=segment.clip_name,
            media_reference=media_ref,
            source_range=source_range,
        )
        clip.metadata["clipcomposer"] = {
            "start_frame": segment.start_frame,
            "title": segment.clip.title,
            "platform": str(segment.clip.platform),
            "location": segment.clip.location,
            "date": segment.clip.date,
        }
        return clip

    def _create_intro_clip(self, block: IntroPlacement, fps: int) -> otio.schema.Clip:
        """Create a generated clip standing in for an intro block."""
        clip = otio.schema.Clip(
            name=f"intro_{block.name}",
            media_reference=otio.schema.GeneratorReference(
                name=block.name,
                generator_kind="intro",
            ),
            source_range=otio.opentime.TimeRange(
                start_time=otio.opentime.RationalTime(0, fps),
                duration=otio.opentime.RationalTime(block.duration_in_frames, fps),
            ),
        )
        clip.metadata["clipcomposer"] = {"start_frame": block.start_frame}
        return clip

    def _create_gap(self, duration_frames: int, fps: int) -> otio.schema.Gap:
        """Create a gap of the given length in frames."""
        return otio.schema.Gap(
            source_range=otio.opentime.TimeRange(
                start_time=otio.opentime.RationalTime(0, fps),
                duration=otio.opentime.RationalTime(duration_frames, fps),
            ),
        )
