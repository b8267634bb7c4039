"""Pytest fixtures for Clip Composer backend tests.

Staging happens in a per-test temporary directory, staged references are
plain file paths (so verification needs no network), and rendering uses
FakeRenderEngine instead of the Remotion bridge.
"""

import asyncio
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import httpx
import pytest

from clipcomposer.config import ComposerConfig
from clipcomposer.pipeline.output_store import LocalOutputStore
from clipcomposer.pipeline.verifier import AssetVerifier
from clipcomposer.rendering.engine import (
    BundleHandle,
    CodecOptions,
    CompositionInfo,
    ProgressCallback,
    RenderOutput,
)
from clipcomposer.staging.asset_stager import AssetStager
from clipcomposer.staging.temp_store import TempResourceStore
from clipcomposer.timeline.schemas import ClipRecord

ORIGIN = "http://testserver"


def make_clip(name: str, duration: int | float = 90, **fields: Any) -> ClipRecord:
    """Build a ClipRecord from snake_case fields."""
    return ClipRecord(clip_name=name, duration_in_frames=duration, **fields)


class FakeRenderEngine:
    """In-process render engine that records its calls.

    Args:
        root: Directory bundles and renders are written under.
        compositions: Composition ids the bundle exposes.
        progress: (rendered, encoded) pairs reported during render.
        fail_with: Exception raised at the end of render.
        gate: Event render waits on before finishing, if given.
        output_bytes: Bytes written as the rendered video.
    """

    def __init__(
        self,
        root: Path,
        compositions: Sequence[str] = ("MasterComposition",),
        progress: Sequence[tuple[int, int]] = ((0, 0), (60, 30), (60, 30), (40, 20), (510, 510)),
        fail_with: Exception | None = None,
        gate: asyncio.Event | None = None,
        output_bytes: bytes = b"fake-video",
    ) -> None:
        self.root = root
        self.compositions = list(compositions)
        self.progress = list(progress)
        self.fail_with = fail_with
        self.gate = gate
        self.output_bytes = output_bytes
        self.bundles: list[Path] = []
        self.input_props: Mapping[str, Any] | None = None
        self.rendered: CompositionInfo | None = None
        self.render_started = asyncio.Event()

    async def prepare_bundle(
        self,
        entry_point: Path,
        public_dir: Path,
        path_aliases: Mapping[str, str],
    ) -> BundleHandle:
        scratch_dir = self.root / f"bundle-{len(self.bundles)}"
        (scratch_dir / "bundle").mkdir(parents=True)
        self.bundles.append(scratch_dir)
        return BundleHandle(location=str(scratch_dir / "bundle"), scratch_dir=scratch_dir)

    async def list_compositions(
        self,
        bundle: BundleHandle,
        input_props: Mapping[str, Any],
    ) -> list[CompositionInfo]:
        self.input_props = input_props
        return [CompositionInfo(id=composition_id, duration_in_frames=1) for composition_id in self.compositions]

    async def render(
        self,
        composition: CompositionInfo,
        bundle: BundleHandle,
        codec_options: CodecOptions,
        input_props: Mapping[str, Any],
        on_progress: ProgressCallback,
    ) -> RenderOutput:
        self.rendered = composition
        self.render_started.set()
        for rendered, encoded in self.progress:
            on_progress(rendered, encoded)
            await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

        assert bundle.scratch_dir is not None
        output_path = bundle.scratch_dir / f"render.{codec_options.extension}"
        output_path.write_bytes(self.output_bytes)
        return RenderOutput(output_path=output_path)


@pytest.fixture
def composer_config(tmp_path: Path) -> ComposerConfig:
    """Configuration rooted in the test's temporary directory."""
    return ComposerConfig(
        staging_dir=tmp_path / "staging",
        outputs_dir=tmp_path / "outputs",
        asset_origin=ORIGIN,
        reference_mode="path",
        stage_retry_backoff_seconds=0,
    )


@pytest.fixture
def store(composer_config: ComposerConfig) -> TempResourceStore:
    """Temp store over the test staging directory."""
    return TempResourceStore(
        composer_config.staging_dir,
        write_retries=composer_config.stage_write_retries,
        retry_backoff_seconds=0,
    )


@pytest.fixture
def stager(store: TempResourceStore) -> AssetStager:
    """Stager producing file-path references."""
    return AssetStager(store, origin=ORIGIN, reference_mode="path")


@pytest.fixture
def engine(tmp_path: Path) -> FakeRenderEngine:
    """Fake render engine writing under the test directory."""
    return FakeRenderEngine(tmp_path / "engine")


@pytest.fixture
def verifier() -> AssetVerifier:
    """Verifier whose HTTP probes always succeed."""
    return AssetVerifier(transport=httpx.MockTransport(lambda request: httpx.Response(200)))


@pytest.fixture
def output_store(composer_config: ComposerConfig) -> LocalOutputStore:
    """Local output store in the test directory."""
    return LocalOutputStore(composer_config.outputs_dir, origin=ORIGIN)
