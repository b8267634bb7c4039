"""API request schemas."""

from pydantic import Field, model_validator

from clipcomposer.common.base_composer_model import BaseComposerModel
from clipcomposer.timeline.schemas import ClipRecord


class ClipListRequest(BaseComposerModel):
    """A list of clip records in timeline order."""

    clips: list[ClipRecord] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_unique_names(self) -> "ClipListRequest":
        seen: set[str] = set()
        for clip in self.clips:
            if clip.clip_name in seen:
                msg = f"Duplicate clip name: {clip.clip_name}"
                raise ValueError(msg)
            seen.add(clip.clip_name)
        return self


class RenderRequest(ClipListRequest):
    """Request to render clips whose references are already staged or fetchable."""

    pass


class TimelineRequest(ClipListRequest):
    """Request to compose a timeline without rendering it."""

    include_envelopes: bool = False
