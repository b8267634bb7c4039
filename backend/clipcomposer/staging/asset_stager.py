"""Stages uploaded clip files and rewrites clip records to point at them."""

import logging
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Literal

from clipcomposer.common.errors import MissingClipMatchError
from clipcomposer.staging.temp_store import TempAsset, TempResourceStore
from clipcomposer.timeline.schemas import ClipRecord

logger = logging.getLogger(__name__)

CLIP_EXTENSION_RE = re.compile(r"\.(mp4|mov|mkv|avi|webm)$", re.IGNORECASE)


@dataclass(frozen=True)
class RawClipFile:
    """An uploaded file as received from the client."""

    filename: str
    data: bytes

    @property
    def clip_name(self) -> str:
        """Return the filename with its video extension removed."""
        return CLIP_EXTENSION_RE.sub("", self.filename.strip())


class OwnedAssets:
    """Ordered, duplicate-free set of TempAsset ids a render job must release."""

    def __init__(self, asset_ids: Sequence[str] = ()) -> None:
        self._ids: dict[str, None] = dict.fromkeys(asset_ids)

    def add(self, asset_id: str) -> None:
        """Register an asset id."""
        self._ids[asset_id] = None

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._ids


def staged_asset_url(origin: str, asset_id: str) -> str:
    """Return the absolute URL the renderer uses to fetch a staged asset."""
    return f"{origin.rstrip('/')}/api/files/staged/{asset_id}"


def normalize_render_src(clip: ClipRecord, origin: str) -> ClipRecord:
    """Ensure a clip has an absolute render reference.

    ``render_src`` wins when present; otherwise a relative ``video_src``
    (``/videos/a.mp4`` or ``videos/a.mp4``) is made absolute on ``origin``.
    Blob URLs only exist in the browser and cannot be rendered.

    Raises:
        MissingClipMatchError: If the clip has no usable source.
    """
    if clip.render_src:
        return clip

    source = clip.video_src
    if not source or source.startswith("blob:"):
        raise MissingClipMatchError(clip.clip_name)

    if source.startswith(("http://", "https://")):
        render_src = source
    elif source.startswith("/"):
        render_src = f"{origin.rstrip('/')}{source}"
    else:
        render_src = f"{origin.rstrip('/')}/{source}"
    return clip.model_copy(update={"render_src": render_src})


class AssetStager:
    """Stages raw clip bytes through the TempResourceStore."""

    def __init__(
        self,
        store: TempResourceStore,
        origin: str,
        reference_mode: Literal["url", "path"] = "url",
    ) -> None:
        """Initialize the stager.

        Args:
            store: Store that owns the staged files.
            origin: Origin the renderer fetches staged files from.
            reference_mode: "url" for HTTP references, "path" when the renderer
                shares this machine's filesystem.
        """
        self.store = store
        self.origin = origin
        self.reference_mode = reference_mode

    def reference_for(self, asset: TempAsset) -> str:
        """Return the render reference for a staged asset."""
        if self.reference_mode == "path":
            return str(asset.path)
        return staged_asset_url(self.origin, asset.asset_id)

    async def stage_upload(self, upload: RawClipFile) -> TempAsset:
        """Stage a single upload that is not yet tied to a clip."""
        return await self.store.stage(upload.data, upload.filename)

    async def stage_clip_file(
        self,
        clip: ClipRecord,
        upload: RawClipFile,
        owner: OwnedAssets,
    ) -> ClipRecord:
        """Stage one clip's file and point the clip at it.

        The new TempAsset is registered with ``owner`` so the render job
        releases it when it finishes.
        """
        asset = await self.store.stage(upload.data, upload.filename)
        owner.add(asset.asset_id)
        reference = self.reference_for(asset)
        logger.info("Staged clip %s as asset %s", clip.clip_name, asset.asset_id)
        return clip.model_copy(
            update={
                "render_src": reference,
                "video_src": staged_asset_url(self.origin, asset.asset_id),
                "staged_asset_id": asset.asset_id,
            }
        )

    async def stage_clip_files(
        self,
        clips: Sequence[ClipRecord],
        uploads: Sequence[RawClipFile],
        owner: OwnedAssets,
    ) -> list[ClipRecord]:
        """Match uploads to clips by name and stage them.

        Clips that already carry a staged asset or a render reference are kept
        as they are (a staged asset id is still handed to ``owner``).

        Raises:
            MissingClipMatchError: If a clip has neither a matching upload nor
                an existing reference. Files staged before the failure remain
                registered with ``owner``.
        """
        by_name: dict[str, RawClipFile] = {}
        for upload in uploads:
            by_name[upload.clip_name] = upload

        staged: list[ClipRecord] = []
        for clip in clips:
            upload = by_name.get(clip.clip_name.strip())
            if upload is not None:
                staged.append(await self.stage_clip_file(clip, upload, owner))
                continue

            if clip.staged_asset_id:
                owner.add(clip.staged_asset_id)
            if clip.render_src or clip.staged_asset_id:
                staged.append(self._with_staged_reference(clip))
                continue

            logger.warning("No matching file found for clip %s", clip.clip_name)
            raise MissingClipMatchError(clip.clip_name)

        return staged

    def _with_staged_reference(self, clip: ClipRecord) -> ClipRecord:
        """Fill render_src for a clip staged earlier through the upload endpoint."""
        if clip.render_src or clip.staged_asset_id is None:
            return clip
        asset = self.store.get(clip.staged_asset_id)
        return clip.model_copy(update={"render_src": self.reference_for(asset)})

