"""Staging routes for clip uploads."""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from clipcomposer.api.schemas.responses import UploadResponse
from clipcomposer.staging.asset_stager import AssetStager, RawClipFile, staged_asset_url
from clipcomposer.staging.providers import asset_stager, temp_resource_store
from clipcomposer.staging.temp_store import TempResourceStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=UploadResponse)
async def upload_clip(
    video: UploadFile = File(...),
    stager: AssetStager = Depends(asset_stager),
) -> UploadResponse:
    """Stage one video file ahead of a render."""
    data = await video.read()
    if not data:
        raise HTTPException(status_code=400, detail="No video file provided")

    filename = video.filename or "upload.mp4"
    asset = await stager.stage_upload(RawClipFile(filename=filename, data=data))
    return UploadResponse(
        asset_id=asset.asset_id,
        filename=filename,
        url=staged_asset_url(stager.origin, asset.asset_id),
        size_bytes=asset.size_bytes,
        expires_at=asset.expires_at,
    )


@router.delete("/{asset_id}")
async def release_upload(
    asset_id: str,
    store: TempResourceStore = Depends(temp_resource_store),
) -> dict[str, str]:
    """Release a staged upload. Unknown ids are accepted."""
    await store.release(asset_id)
    return {"status": "released", "asset_id": asset_id}
