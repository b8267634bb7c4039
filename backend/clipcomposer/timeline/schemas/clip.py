"""Clip record schema."""

from enum import StrEnum

from pydantic import Field, model_validator

from clipcomposer.common.base_composer_model import BaseComposerModel
from clipcomposer.timeline.timecode import parse_timestamp, seconds_to_frames


class Platform(StrEnum):
    """Platform a clip was posted on."""

    YOUTUBE = "YOUTUBE"
    TIKTOK = "TIKTOK"
    INSTAGRAM = "INSTAGRAM"
    FACEBOOK = "FACEBOOK"
    LINKEDIN = "LINKEDIN"
    OTHER = "OTHER"


class ClipRecord(BaseComposerModel):
    """One uploaded video segment, as described by an ingestion row.

    Field aliases match the spreadsheet column names used by the ingestion
    side, so rows can be validated directly.
    """

    clip_name: str = Field(alias="ClipName", min_length=1)
    title: str = Field(default="", alias="Title")
    date: str = Field(default="", alias="Date")
    location: str = Field(default="", alias="Location")
    post_author: str = Field(default="", alias="Post_author")
    comment_authors: str | None = Field(default=None, alias="Comment_authors")
    comments: str | None = Field(default=None, alias="Comments")
    platform: Platform = Field(default=Platform.OTHER, alias="Platform")
    original_video_title: str = Field(default="", alias="originalVideoTitle")

    # Trim window in the source video
    begin_time: str | None = Field(default=None, alias="BeginTime")
    end_time: str | None = Field(default=None, alias="EndTime")

    # Checked by compose_timeline so bad rows fail with InvalidDurationError
    duration_in_frames: int | float = Field(default=0, alias="durationInFrames")
    has_audio: bool = Field(default=True, alias="hasAudio")
    loudness: float | None = None

    # Preview reference (blob URL or relative path) and renderer reference
    video_src: str | None = Field(default=None, alias="videoSrc")
    render_src: str | None = Field(default=None, alias="renderSrc")
    staged_asset_id: str | None = Field(default=None, alias="stagedAssetId")

    @model_validator(mode="after")
    def _check_trim_window(self) -> "ClipRecord":
        if self.begin_time is not None and self.end_time is not None:
            if parse_timestamp(self.end_time) < parse_timestamp(self.begin_time):
                msg = f"EndTime {self.end_time} is before BeginTime {self.begin_time}"
                raise ValueError(msg)
        return self

    def trim_frames(self, fps: int) -> int | None:
        """Return the frame count implied by the trim window, if both ends are set."""
        if self.begin_time is None or self.end_time is None:
            return None
        seconds = parse_timestamp(self.end_time) - parse_timestamp(self.begin_time)
        return seconds_to_frames(seconds, fps)

    def to_props(self) -> dict[str, object]:
        """Serialize with the aliases the composition program reads."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
