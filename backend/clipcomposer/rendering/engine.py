"""Contract between the job runner and an external render engine."""

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Protocol

from pydantic import Field, model_validator

from clipcomposer.common.base_composer_model import BaseComposerModel

ProgressCallback = Callable[[int, int], None]
"""Called with (rendered_frames, encoded_frames)."""


class BundleHandle(BaseComposerModel):
    """A prepared, engine-consumable bundle."""

    location: str
    # Directory created for the bundle; removed by the job runner on cleanup
    scratch_dir: Path | None = None


class CompositionInfo(BaseComposerModel):
    """A composition exposed by a bundle."""

    id: str
    duration_in_frames: int = Field(ge=0)
    fps: float = 25.0
    width: int = 1920
    height: int = 1080


class CodecOptions(BaseComposerModel):
    """Encoding options passed through to the engine."""

    codec: str = "h264"
    crf: int | None = None
    audio_codec: str | None = None

    @property
    def extension(self) -> str:
        """Return the container extension for the codec."""
        return {"vp8": "webm", "vp9": "webm", "prores": "mov", "gif": "gif"}.get(self.codec, "mp4")


class RenderOutput(BaseComposerModel):
    """What the engine produced: an in-memory buffer or a file on disk."""

    output_bytes: bytes | None = None
    output_path: Path | None = None

    @model_validator(mode="after")
    def _check_one_output(self) -> "RenderOutput":
        if self.output_bytes is not None and self.output_path is not None:
            msg = "RenderOutput carries either bytes or a path, not both"
            raise ValueError(msg)
        return self


class RenderEngine(Protocol):
    """A render engine driven by the job runner."""

    async def prepare_bundle(
        self,
        entry_point: Path,
        public_dir: Path,
        path_aliases: Mapping[str, str],
    ) -> BundleHandle:
        """Package the composition program and its public assets."""
        ...

    async def list_compositions(
        self,
        bundle: BundleHandle,
        input_props: Mapping[str, Any],
    ) -> list[CompositionInfo]:
        """List the compositions the bundle exposes for the given props."""
        ...

    async def render(
        self,
        composition: CompositionInfo,
        bundle: BundleHandle,
        codec_options: CodecOptions,
        input_props: Mapping[str, Any],
        on_progress: ProgressCallback,
    ) -> RenderOutput:
        """Render a composition, reporting frame progress as it goes."""
        ...
