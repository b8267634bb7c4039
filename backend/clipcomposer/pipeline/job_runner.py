"""Render job runner: a linear stage machine from staged clips to a stored video."""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Awaitable, Sequence
from pathlib import Path

from pymongo.errors import PyMongoError

from clipcomposer.common.errors import AbortedError, BundleError, ComposerError, RenderEngineError
from clipcomposer.config import ComposerConfig
from clipcomposer.mongodb.repositories import RenderJobRepository
from clipcomposer.mongodb.schemas import STAGE_ORDER, RenderStage
from clipcomposer.pipeline.output_store import OutputStore, StoredOutput
from clipcomposer.pipeline.progress_reporter import ProgressReporter, RenderEventChannel
from clipcomposer.pipeline.sanitize import describe_exception, sanitize_error_message
from clipcomposer.pipeline.verifier import AssetVerifier
from clipcomposer.rendering.engine import (
    BundleHandle,
    CodecOptions,
    CompositionInfo,
    RenderEngine,
    RenderOutput,
)
from clipcomposer.staging.asset_stager import AssetStager, OwnedAssets, RawClipFile, normalize_render_src
from clipcomposer.timeline.compositor import compose_timeline, with_trim_durations
from clipcomposer.timeline.schemas import ClipRecord, TimelineLayout

logger = logging.getLogger(__name__)


class RenderJobRunner:
    """Runs one render job.

    Stages advance strictly in order (created, verifying, bundling,
    rendering, persisting, completed); any stage may fail instead. Exactly
    one terminal event is emitted, owned resources are released once on
    every terminal path, and the event channel is closed last.
    """

    def __init__(
        self,
        job_id: str,
        clips: Sequence[ClipRecord],
        uploads: Sequence[RawClipFile] = (),
        *,
        stager: AssetStager,
        engine: RenderEngine,
        verifier: AssetVerifier,
        output_store: OutputStore,
        config: ComposerConfig,
        repository: RenderJobRepository | None = None,
        channel: RenderEventChannel | None = None,
    ) -> None:
        """Initialize the job runner.

        Args:
            job_id: The job ID for tracking.
            clips: Clip records in timeline order.
            uploads: Raw files to stage, matched to clips by name.
            stager: Stager used for uploads; its store owns the staged files.
            engine: Render engine.
            verifier: Liveness checker for render references.
            output_store: Destination for the finished render.
            config: Timeline and render settings.
            repository: Optional job record repository (None disables persistence).
            channel: Event channel; a new one is created if not given.
        """
        self.job_id = job_id
        self.clips = list(clips)
        self.uploads = list(uploads)
        self.stager = stager
        self.store = stager.store
        self.engine = engine
        self.verifier = verifier
        self.output_store = output_store
        self.config = config
        self.repository = repository
        self.channel = channel or RenderEventChannel(job_id)
        self.reporter = ProgressReporter(job_id, self.channel)

        self.owned = OwnedAssets()
        self.stage = RenderStage.CREATED
        self.layout: TimelineLayout | None = None
        self.result: StoredOutput | None = None
        self.error: ComposerError | None = None

        self._bundle: BundleHandle | None = None
        self._render_output: RenderOutput | None = None
        self._task: asyncio.Task[StoredOutput | None] | None = None
        self._abort_requested = False
        self._cleaned_up = False

    @property
    def total_frames(self) -> int:
        """Return the composition length, or 0 before the timeline is composed."""
        return self.layout.total_frames if self.layout else 0

    def abort(self) -> bool:
        """Request cancellation of the running job.

        Returns:
            False if the job already reached a terminal stage.
        """
        if self.stage.is_terminal:
            return False
        logger.info("[job=%s] Abort requested", self.job_id)
        self._abort_requested = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    async def run(self) -> StoredOutput | None:
        """Execute the job.

        Returns:
            The stored output, or None if the job failed.

        Raises:
            asyncio.CancelledError: If the job was aborted; the error event
                and cleanup have already happened.
        """
        self._task = asyncio.current_task()  # type: ignore[assignment]
        logger.info("[job=%s] Starting render job with %d clips", self.job_id, len(self.clips))

        try:
            if self._abort_requested:
                raise asyncio.CancelledError

            await self._record(self.repository and self.repository.create_job(
                self.job_id, [clip.clip_name for clip in self.clips]
            ))

            # Created: stage uploads and lay out the timeline
            self.reporter.status("Preparing clips...", stage=self.stage)
            layout = await self._prepare()
            self.layout = layout
            await self._record(self.repository and self.repository.set_layout(
                self.job_id, layout.total_frames, len(layout.segments), list(self.owned)
            ))
            self.reporter.status(
                "Timeline composed",
                stage=self.stage,
                totalFrames=layout.total_frames,
                segments=len(layout.segments),
            )

            await self._advance(RenderStage.VERIFYING)
            self.reporter.status("Checking media availability...", stage=self.stage)
            await self.verifier.verify(layout.segments)

            await self._advance(RenderStage.BUNDLING)
            self.reporter.status("Bundling Remotion project...", stage=self.stage)
            input_props = layout.to_input_props()
            composition = await self._bundle_composition(input_props)

            await self._advance(RenderStage.RENDERING)
            self.reporter.status("Starting render...", stage=self.stage, totalFrames=layout.total_frames)
            codec_options = CodecOptions(codec=self.config.codec)
            output = await self._render(composition, codec_options, input_props)

            await self._advance(RenderStage.PERSISTING)
            self.reporter.status("Render complete!", stage=self.stage)
            stored = await self.output_store.persist(output, self.job_id, codec_options.extension)
            self.result = stored

            await self._advance(RenderStage.COMPLETED)
            await self._record(self.repository and self.repository.set_completed(
                self.job_id, stored.filename, stored.download_reference
            ))
            self.reporter.complete(stored.download_reference, stored.filename, stored.size_bytes)
            logger.info("[job=%s] Render job completed", self.job_id)
            return stored

        except asyncio.CancelledError:
            await self._fail(AbortedError(self.job_id))
            raise

        except ComposerError as e:
            logger.error("[job=%s] Render job failed in %s: %s", self.job_id, self.stage, e)
            await self._fail(e)
            return None

        except Exception as e:
            logger.exception("[job=%s] Render job failed with unexpected error", self.job_id)
            await self._fail(e)
            return None

        finally:
            await self._cleanup()
            self.channel.close()

    async def _prepare(self) -> TimelineLayout:
        """Stage uploads, resolve render references and compose the timeline."""
        upload_names = {upload.clip_name for upload in self.uploads}
        clips = [
            clip
            if clip.clip_name.strip() in upload_names or clip.staged_asset_id
            else normalize_render_src(clip, self.stager.origin)
            for clip in self.clips
        ]
        clips = await self.stager.stage_clip_files(clips, self.uploads, self.owned)
        clips = with_trim_durations(clips, self.config.fps)
        return compose_timeline(clips, self.config.intro_blocks, fps=self.config.fps)

    async def _bundle_composition(self, input_props: dict[str, object]) -> CompositionInfo:
        """Bundle the composition program and select the configured composition."""
        self._bundle = await self.engine.prepare_bundle(
            self.config.remotion_entry_point,
            self.config.remotion_public_dir,
            self.config.remotion_path_aliases,
        )
        compositions = await self.engine.list_compositions(self._bundle, input_props)
        self.reporter.status(
            "Found compositions:",
            stage=self.stage,
            compositions=[composition.id for composition in compositions],
        )

        for composition in compositions:
            if composition.id == self.config.composition_id:
                return composition.model_copy(update={"duration_in_frames": self.total_frames})

        available = ", ".join(composition.id for composition in compositions) or "none"
        msg = f'Composition "{self.config.composition_id}" not found. Available: {available}'
        raise BundleError(msg)

    async def _render(
        self,
        composition: CompositionInfo,
        codec_options: CodecOptions,
        input_props: dict[str, object],
    ) -> RenderOutput:
        assert self._bundle is not None
        total = composition.duration_in_frames

        def on_progress(rendered_frames: int, encoded_frames: int) -> None:
            self.reporter.progress(rendered_frames, encoded_frames, total)

        try:
            output = await self.engine.render(
                composition, self._bundle, codec_options, input_props, on_progress
            )
        except ComposerError:
            raise
        except Exception as e:
            raise RenderEngineError(sanitize_error_message(str(e))) from e

        self._render_output = output
        await self._record(self.repository and self.repository.update_progress(
            self.job_id, self.reporter.rendered_frames, self.reporter.encoded_frames
        ))
        return output

    async def _advance(self, stage: RenderStage) -> None:
        """Move to the next stage.

        Raises:
            RuntimeError: If ``stage`` does not directly follow the current one.
        """
        self._check_transition(stage)
        logger.info("[job=%s] Stage %s -> %s", self.job_id, self.stage, stage)
        self.stage = stage
        await self._record(self.repository and self.repository.update_stage(self.job_id, stage))

    def _check_transition(self, stage: RenderStage) -> None:
        if self.stage.is_terminal:
            msg = f"Job {self.job_id} already {self.stage}; cannot move to {stage}"
            raise RuntimeError(msg)
        if stage == RenderStage.FAILED:
            return
        current = STAGE_ORDER.index(self.stage)
        if STAGE_ORDER.index(stage) != current + 1:
            msg = f"Invalid stage transition for job {self.job_id}: {self.stage} -> {stage}"
            raise RuntimeError(msg)

    async def _fail(self, error: BaseException) -> None:
        """Emit the single error event and record the failure."""
        message = describe_exception(error)
        error_type = type(error).__name__
        self.error = error if isinstance(error, ComposerError) else ComposerError(message)

        if not self.stage.is_terminal:
            self._check_transition(RenderStage.FAILED)
            self.stage = RenderStage.FAILED
        self.reporter.error(message, error_type)
        await self._record(self.repository and self.repository.set_error(
            self.job_id, message, error_type
        ))

    async def _cleanup(self) -> None:
        """Release owned assets and scratch files. Failures are only logged."""
        if self._cleaned_up:
            return
        self._cleaned_up = True

        for asset_id in self.owned:
            try:
                await self.store.release(asset_id)
            except Exception:
                logger.exception("[job=%s] Failed to release staged asset %s", self.job_id, asset_id)

        loop = asyncio.get_event_loop()
        scratch_dir = self._bundle.scratch_dir if self._bundle else None
        if scratch_dir is not None:
            try:
                await loop.run_in_executor(None, shutil.rmtree, scratch_dir)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("[job=%s] Could not remove bundle dir %s: %s", self.job_id, scratch_dir, e)

        leftover = self._render_output.output_path if self._render_output else None
        if leftover is not None and not _is_within(leftover, scratch_dir):
            try:
                await loop.run_in_executor(None, leftover.unlink, True)
            except OSError as e:
                logger.warning("[job=%s] Could not remove render output %s: %s", self.job_id, leftover, e)

        logger.info("[job=%s] Cleaned up %d staged assets", self.job_id, len(self.owned))

    async def _record(self, operation: Awaitable[object] | None) -> None:
        """Await a job record update. Database errors never fail the job."""
        if operation is None:
            return
        try:
            await operation
        except PyMongoError as e:
            logger.warning("[job=%s] Failed to update job record: %s", self.job_id, e)


def _is_within(path: Path, directory: Path | None) -> bool:
    if directory is None:
        return False
    return path.resolve().is_relative_to(directory.resolve())
