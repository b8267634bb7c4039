"""File retrieval routes: staged uploads, rendered outputs and manual cleanup."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import FileResponse, StreamingResponse

from clipcomposer.api.schemas.responses import CleanupResponse
from clipcomposer.config import ComposerConfig, get_composer_config
from clipcomposer.mongodb.gridfs_service import (
    GridFSService,
    StoredFileInfo,
    get_gridfs_service,
    iter_chunks,
)
from clipcomposer.pipeline.output_store import OUTPUT_CONTENT_TYPES, LocalOutputStore
from clipcomposer.pipeline.providers import local_output_store
from clipcomposer.staging.providers import temp_resource_store
from clipcomposer.staging.temp_store import TempResourceStore, content_type_for

logger = logging.getLogger(__name__)

router = APIRouter()


@router.api_route("/staged/{asset_id}", methods=["GET", "HEAD"])
async def get_staged_file(
    asset_id: str,
    store: TempResourceStore = Depends(temp_resource_store),
) -> FileResponse:
    """Serve a staged upload to the render engine."""
    asset = store.get(asset_id)
    content_type = content_type_for(asset.path)
    if not store.is_managed_path(asset.path) or content_type is None:
        logger.warning("Refusing to serve %s for asset %s", asset.path, asset_id)
        raise HTTPException(status_code=400, detail="Invalid file")
    if not asset.path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(
        asset.path,
        media_type=content_type,
        headers={"Cache-Control": "public, max-age=300"},
    )


@router.get("/outputs/{filename}")
async def get_output(
    filename: str,
    outputs: LocalOutputStore = Depends(local_output_store),
) -> FileResponse:
    """Download a rendered output kept on local disk."""
    path = outputs.path_for(filename)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")

    extension = path.suffix.lstrip(".").lower()
    return FileResponse(
        path,
        media_type=OUTPUT_CONTENT_TYPES.get(extension, "application/octet-stream"),
        filename=filename,
    )


@router.get("/results/{file_id}")
async def download_result(
    file_id: str,
    gridfs: GridFSService = Depends(get_gridfs_service),
) -> StreamingResponse:
    """Stream a rendered output stored in GridFS."""
    grid_out = await gridfs.find(file_id)
    if grid_out is None:
        raise HTTPException(status_code=404, detail="File not found")

    info = StoredFileInfo.from_grid_out(grid_out)
    return StreamingResponse(
        iter_chunks(grid_out),
        media_type=info.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{info.filename}"',
            "Content-Length": str(info.size_bytes),
        },
    )


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup(
    x_cleanup_token: str | None = Header(default=None),
    store: TempResourceStore = Depends(temp_resource_store),
    config: ComposerConfig = Depends(get_composer_config),
) -> CleanupResponse:
    """Run the staging sweep on demand."""
    if x_cleanup_token != config.cleanup_token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    expired = await store.sweep()
    orphans = await store.sweep_orphans()
    logger.info("Manual cleanup removed %d expired and %d orphaned files", expired, orphans)
    return CleanupResponse(removed=expired + orphans, expired=expired, orphans=orphans)
