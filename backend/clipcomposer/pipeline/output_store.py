"""Persistence of rendered outputs."""

import asyncio
import logging
import shutil
import uuid
from pathlib import Path
from typing import Protocol

from pymongo.errors import PyMongoError

from clipcomposer.common.base_composer_model import BaseComposerModel
from clipcomposer.common.errors import PersistError
from clipcomposer.mongodb.gridfs_service import GridFSService
from clipcomposer.rendering.engine import RenderOutput

logger = logging.getLogger(__name__)

OUTPUT_CONTENT_TYPES = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "gif": "image/gif",
}


class StoredOutput(BaseComposerModel):
    """Where a persisted render can be downloaded from."""

    filename: str
    download_reference: str
    size_bytes: int


class OutputStore(Protocol):
    """Destination for finished renders."""

    async def persist(self, output: RenderOutput, job_id: str, extension: str) -> StoredOutput:
        """Persist a render and return its download reference."""
        ...


def output_filename(prefix: str, job_id: str, extension: str) -> str:
    """Return a collision-free output name for a job."""
    return f"{prefix}-{job_id}-{uuid.uuid4().hex[:8]}.{extension}"


def _output_size(output: RenderOutput) -> int:
    """Return the size of the engine output.

    Raises:
        PersistError: If the output is missing or empty.
    """
    if output.output_bytes is not None:
        size = len(output.output_bytes)
    elif output.output_path is not None:
        if not output.output_path.is_file():
            msg = f"Rendered output not found at {output.output_path}"
            raise PersistError(msg)
        size = output.output_path.stat().st_size
    else:
        msg = "Render engine returned no output"
        raise PersistError(msg)

    if size == 0:
        msg = "Rendered output is empty"
        raise PersistError(msg)
    return size


class LocalOutputStore:
    """Keeps rendered outputs in a local directory served by the API."""

    def __init__(self, outputs_dir: Path, origin: str, prefix: str = "master-video") -> None:
        """Initialize the store.

        Args:
            outputs_dir: Directory the outputs are written to.
            origin: Origin used to build download URLs.
            prefix: Filename prefix for outputs.
        """
        self.outputs_dir = outputs_dir.expanduser().resolve()
        self.origin = origin.rstrip("/")
        self.prefix = prefix

    def path_for(self, filename: str) -> Path | None:
        """Return the path of a stored output, or None if the name is unsafe or unknown."""
        path = (self.outputs_dir / filename).resolve()
        if path.parent != self.outputs_dir or not path.is_file():
            return None
        return path

    async def persist(self, output: RenderOutput, job_id: str, extension: str) -> StoredOutput:
        """Move or write the engine output into the outputs directory."""
        size = _output_size(output)
        filename = output_filename(self.prefix, job_id, extension)
        destination = self.outputs_dir / filename

        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, self._store, output, destination)
        except OSError as e:
            msg = f"Could not write rendered output: {e}"
            raise PersistError(msg) from e

        logger.info("[job=%s] Saved output %s (%d bytes)", job_id, destination, size)
        return StoredOutput(
            filename=filename,
            download_reference=f"{self.origin}/api/files/outputs/{filename}",
            size_bytes=size,
        )

    def _store(self, output: RenderOutput, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        if output.output_path is not None:
            shutil.move(output.output_path, destination)
        else:
            destination.write_bytes(output.output_bytes or b"")


class GridFSOutputStore:
    """Uploads rendered outputs to a GridFS bucket."""

    def __init__(self, gridfs: GridFSService, origin: str, prefix: str = "master-video") -> None:
        """Initialize the store.

        Args:
            gridfs: GridFS service for the output bucket.
            origin: Origin used to build download URLs.
            prefix: Filename prefix for outputs.
        """
        self.gridfs = gridfs
        self.origin = origin.rstrip("/")
        self.prefix = prefix

    async def persist(self, output: RenderOutput, job_id: str, extension: str) -> StoredOutput:
        """Upload the engine output and return a URL to the stored file."""
        size = _output_size(output)
        filename = output_filename(self.prefix, job_id, extension)
        content_type = OUTPUT_CONTENT_TYPES.get(extension, "application/octet-stream")

        source = output.output_path if output.output_path is not None else output.output_bytes or b""
        try:
            info = await self.gridfs.store(source, filename, content_type=content_type, job_id=job_id)
        except (OSError, PyMongoError) as e:
            msg = f"Could not upload rendered output: {e}"
            raise PersistError(msg) from e

        logger.info("[job=%s] Uploaded output %s to GridFS as %s", job_id, filename, info.file_id)
        return StoredOutput(
            filename=filename,
            download_reference=f"{self.origin}/api/files/results/{info.file_id}",
            size_bytes=size,
        )
