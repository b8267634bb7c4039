"""Render job routes."""

import json
import logging
import uuid
from collections.abc import AsyncIterator, Sequence

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from clipcomposer.api.schemas.requests import RenderRequest, TimelineRequest
from clipcomposer.api.schemas.responses import RenderJobResponse, SegmentEnvelope, TimelineResponse
from clipcomposer.config import ComposerConfig, get_composer_config
from clipcomposer.mongodb.repositories import RenderJobRepository
from clipcomposer.mongodb.schemas import RenderJobDocument
from clipcomposer.pipeline.job_runner import RenderJobRunner
from clipcomposer.pipeline.output_store import OutputStore
from clipcomposer.pipeline.progress_reporter import RenderEventChannel
from clipcomposer.pipeline.providers import (
    asset_verifier,
    job_registry,
    output_store,
    render_job_repository,
)
from clipcomposer.pipeline.registry import JobRegistry
from clipcomposer.pipeline.verifier import AssetVerifier
from clipcomposer.rendering.engine import RenderEngine
from clipcomposer.rendering.providers import render_engine
from clipcomposer.staging.asset_stager import AssetStager, RawClipFile
from clipcomposer.staging.providers import asset_stager
from clipcomposer.timeline.compositor import compose_timeline, with_trim_durations
from clipcomposer.timeline.envelopes import FadeSettings, envelope_samples
from clipcomposer.timeline.otio_export import TimelineExportService
from clipcomposer.timeline.providers import timeline_export_service
from clipcomposer.timeline.schemas import ClipRecord, TimelineLayout

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class RenderServices:
    """Everything a render job needs, resolved once per request."""

    def __init__(
        self,
        stager: AssetStager = Depends(asset_stager),
        engine: RenderEngine = Depends(render_engine),
        verifier: AssetVerifier = Depends(asset_verifier),
        outputs: OutputStore = Depends(output_store),
        config: ComposerConfig = Depends(get_composer_config),
        repository: RenderJobRepository | None = Depends(render_job_repository),
        registry: JobRegistry = Depends(job_registry),
    ) -> None:
        self.stager = stager
        self.engine = engine
        self.verifier = verifier
        self.outputs = outputs
        self.config = config
        self.repository = repository
        self.registry = registry

    def start(self, clips: Sequence[ClipRecord], uploads: Sequence[RawClipFile]) -> RenderJobRunner:
        """Create a runner and start it in the registry."""
        job_id = uuid.uuid4().hex
        runner = RenderJobRunner(
            job_id,
            clips,
            uploads,
            stager=self.stager,
            engine=self.engine,
            verifier=self.verifier,
            output_store=self.outputs,
            config=self.config,
            repository=self.repository,
        )
        self.registry.start(runner)
        return runner


async def _sse(channel: RenderEventChannel) -> AsyncIterator[str]:
    # The job keeps running if the client goes away; abort is explicit.
    async for event in channel.subscribe():
        yield event.to_sse()


def _event_stream(runner: RenderJobRunner) -> StreamingResponse:
    headers = {**SSE_HEADERS, "X-Render-Job-Id": runner.job_id}
    return StreamingResponse(_sse(runner.channel), media_type="text/event-stream", headers=headers)


def _parse_clips(raw: str) -> list[ClipRecord]:
    """Parse the multipart ``clips`` field into validated records."""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail="clips must be a JSON array") from e
    if not isinstance(payload, list):
        raise HTTPException(status_code=400, detail="clips must be a JSON array")

    try:
        return RenderRequest(clips=payload).clips
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid clips: {e.error_count()} validation errors",
        ) from e


def _to_response(doc: RenderJobDocument) -> RenderJobResponse:
    """Convert RenderJobDocument to RenderJobResponse."""
    return RenderJobResponse(
        job_id=doc.job_id,
        stage=str(doc.stage),
        clip_names=doc.clip_names,
        segment_count=doc.segment_count,
        total_frames=doc.total_frames,
        rendered_frames=doc.rendered_frames,
        encoded_frames=doc.encoded_frames,
        output_filename=doc.output_filename,
        download_reference=doc.download_reference,
        error_message=doc.error_message,
        created_at=doc.created_at,
        completed_at=doc.completed_at,
    )


def _runner_response(runner: RenderJobRunner) -> RenderJobResponse:
    """Describe a job that is still running."""
    return RenderJobResponse(
        job_id=runner.job_id,
        stage=str(runner.stage),
        live=True,
        clip_names=[clip.clip_name for clip in runner.clips],
        segment_count=len(runner.layout.segments) if runner.layout else 0,
        total_frames=runner.total_frames,
        rendered_frames=runner.reporter.rendered_frames,
        encoded_frames=runner.reporter.encoded_frames,
    )


def _layout_for(request: TimelineRequest, config: ComposerConfig) -> TimelineLayout:
    clips = with_trim_durations(request.clips, config.fps)
    return compose_timeline(clips, config.intro_blocks, fps=config.fps)


@router.post("")
async def start_render(
    clips: str = Form(...),
    files: list[UploadFile] = File(default=[]),
    services: RenderServices = Depends(),
) -> StreamingResponse:
    """Stage uploaded clips, start a render job and stream its events."""
    records = _parse_clips(clips)
    uploads = [
        RawClipFile(filename=upload.filename, data=await upload.read())
        for upload in files
        if upload.filename
    ]
    logger.info("Render requested: %d clips, %d files", len(records), len(uploads))

    runner = services.start(records, uploads)
    return _event_stream(runner)


@router.post("/json")
async def start_render_json(
    request: RenderRequest,
    services: RenderServices = Depends(),
) -> StreamingResponse:
    """Start a render job for clips that are already staged or fetchable."""
    runner = services.start(request.clips, [])
    return _event_stream(runner)


@router.post("/timeline", response_model=TimelineResponse)
async def compose(
    request: TimelineRequest,
    config: ComposerConfig = Depends(get_composer_config),
) -> TimelineResponse:
    """Compose the timeline layout without rendering."""
    layout = _layout_for(request, config)

    envelopes = None
    if request.include_envelopes:
        settings = FadeSettings.from_config(config)
        envelopes = []
        for segment in layout.segments:
            opacity, volume = envelope_samples(segment, settings)
            envelopes.append(SegmentEnvelope(clip_name=segment.clip_name, opacity=opacity, volume=volume))

    return TimelineResponse(
        fps=layout.fps,
        total_frames=layout.total_frames,
        intro_frames=layout.intro_frames,
        duration_seconds=layout.duration_seconds,
        intro=layout.intro,
        segments=[segment.to_props() for segment in layout.segments],
        envelopes=envelopes,
    )


@router.post("/timeline/otio")
async def export_otio(
    request: TimelineRequest,
    config: ComposerConfig = Depends(get_composer_config),
    exporter: TimelineExportService = Depends(timeline_export_service),
) -> Response:
    """Compose the timeline and return it as an OpenTimelineIO document."""
    layout = _layout_for(request, config)
    return Response(
        content=exporter.to_json(layout),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="timeline.otio"'},
    )


@router.get("", response_model=list[RenderJobResponse])
async def list_renders(
    repository: RenderJobRepository | None = Depends(render_job_repository),
    registry: JobRegistry = Depends(job_registry),
) -> list[RenderJobResponse]:
    """List render jobs: live ones first, then persisted records."""
    live = [_runner_response(runner) for runner in registry.runners()]
    if repository is None:
        return live

    live_ids = {response.job_id for response in live}
    docs = await repository.list_jobs()
    return live + [_to_response(doc) for doc in docs if doc.job_id not in live_ids]


@router.get("/{job_id}", response_model=RenderJobResponse)
async def get_render(
    job_id: str,
    repository: RenderJobRepository | None = Depends(render_job_repository),
    registry: JobRegistry = Depends(job_registry),
) -> RenderJobResponse:
    """Get a render job by ID."""
    runner = registry.get(job_id)
    if runner is not None:
        return _runner_response(runner)

    doc = await repository.get_job(job_id) if repository is not None else None
    if doc is None:
        raise HTTPException(status_code=404, detail="Render job not found")
    return _to_response(doc)


@router.post("/{job_id}/abort")
async def abort_render(
    job_id: str,
    registry: JobRegistry = Depends(job_registry),
) -> dict[str, str]:
    """Abort a running render job."""
    if not registry.abort(job_id):
        raise HTTPException(status_code=404, detail="Render job is not running")
    return {"status": "aborting", "job_id": job_id}
