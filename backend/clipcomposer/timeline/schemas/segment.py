"""Timeline layout schemas."""

from pydantic import Field

from clipcomposer.common.base_composer_model import BaseComposerModel
from clipcomposer.timeline.schemas.clip import ClipRecord


class IntroPlacement(BaseComposerModel):
    """A fixed intro block placed on the timeline."""

    name: str
    start_frame: int = Field(ge=0)
    duration_in_frames: int = Field(gt=0)

    @property
    def end_frame(self) -> int:
        """Return the first frame after this block."""
        return self.start_frame + self.duration_in_frames


class TimelineSegment(BaseComposerModel):
    """A clip placed at an absolute frame offset in the composition."""

    clip: ClipRecord
    start_frame: int = Field(ge=0)
    duration_in_frames: int = Field(ge=0)

    @property
    def end_frame(self) -> int:
        """Return the first frame after this segment."""
        return self.start_frame + self.duration_in_frames

    @property
    def clip_name(self) -> str:
        """Return the clip name this segment was built from."""
        return self.clip.clip_name

    def to_props(self) -> dict[str, object]:
        """Serialize for the composition program: clip fields plus placement."""
        props = self.clip.to_props()
        props["startFrame"] = self.start_frame
        props["durationInFrames"] = self.duration_in_frames
        return props


class TimelineLayout(BaseComposerModel):
    """Complete frame layout of a composition."""

    fps: int = Field(gt=0)
    intro: list[IntroPlacement]
    segments: list[TimelineSegment]
    total_frames: int = Field(ge=0)

    @property
    def intro_frames(self) -> int:
        """Return the combined length of the intro blocks."""
        return sum(block.duration_in_frames for block in self.intro)

    @property
    def duration_seconds(self) -> float:
        """Return the composition length in seconds."""
        return self.total_frames / self.fps

    def segment_for(self, clip_name: str) -> TimelineSegment | None:
        """Return the segment built from the named clip, if any."""
        for segment in self.segments:
            if segment.clip_name == clip_name:
                return segment
        return None

    def to_input_props(self) -> dict[str, object]:
        """Build the input props handed to the render engine."""
        return {
            "segments": [segment.to_props() for segment in self.segments],
            "introFrames": self.intro_frames,
            "fps": self.fps,
            "totalFrames": self.total_frames,
        }
