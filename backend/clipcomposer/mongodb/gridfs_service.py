"""GridFS bucket holding rendered videos."""

import logging
from collections.abc import AsyncIterator
from functools import cache
from pathlib import Path

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorGridFSBucket, AsyncIOMotorGridOut

from clipcomposer.common.base_composer_model import BaseComposerModel
from clipcomposer.mongodb.client import get_mongodb_client

logger = logging.getLogger(__name__)


class StoredFileInfo(BaseComposerModel):
    """A rendered video kept in GridFS."""

    file_id: str
    filename: str
    content_type: str
    size_bytes: int
    job_id: str | None = None

    @classmethod
    def from_grid_out(cls, grid_out: AsyncIOMotorGridOut) -> "StoredFileInfo":
        metadata = grid_out.metadata or {}
        return cls(
            file_id=str(grid_out._id),
            filename=grid_out.filename,
            content_type=metadata.get("content_type", "application/octet-stream"),
            size_bytes=grid_out.length,
            job_id=metadata.get("job_id"),
        )


class GridFSService:
    """Stores rendered videos and streams them back."""

    def __init__(self, bucket_name: str | None = None) -> None:
        """Initialize the service.

        Args:
            bucket_name: Bucket to use instead of the configured output bucket.
        """
        self._bucket_name = bucket_name
        self._bucket: AsyncIOMotorGridFSBucket | None = None

    @property
    def bucket(self) -> AsyncIOMotorGridFSBucket:
        """Return the bucket, created on first use."""
        if self._bucket is None:
            mongo = get_mongodb_client()
            self._bucket = AsyncIOMotorGridFSBucket(
                mongo.database,
                bucket_name=self._bucket_name or mongo.config.output_bucket_name,
                chunk_size_bytes=mongo.config.output_chunk_size_bytes,
            )
        return self._bucket

    async def store(
        self,
        source: Path | bytes,
        filename: str,
        content_type: str,
        job_id: str | None = None,
    ) -> StoredFileInfo:
        """Upload a rendered video from a file on disk or an in-memory buffer."""
        metadata = {"content_type": content_type, "job_id": job_id}
        if isinstance(source, Path):
            size = source.stat().st_size
            with source.open("rb") as stream:
                file_id = await self.bucket.upload_from_stream(filename, stream, metadata=metadata)
        else:
            size = len(source)
            file_id = await self.bucket.upload_from_stream(filename, source, metadata=metadata)

        logger.info("[job=%s] Stored %s in GridFS as %s (%d bytes)", job_id, filename, file_id, size)
        return StoredFileInfo(
            file_id=str(file_id),
            filename=filename,
            content_type=content_type,
            size_bytes=size,
            job_id=job_id,
        )

    async def find(self, file_id: str) -> AsyncIOMotorGridOut | None:
        """Return the stored file, or None if the id is malformed or unknown."""
        try:
            object_id = ObjectId(file_id)
        except InvalidId:
            return None

        async for grid_out in self.bucket.find({"_id": object_id}, limit=1):
            return grid_out
        return None


async def iter_chunks(grid_out: AsyncIOMotorGridOut) -> AsyncIterator[bytes]:
    """Yield a stored file one GridFS chunk at a time."""
    while chunk := await grid_out.readchunk():
        yield chunk


@cache
def get_gridfs_service() -> GridFSService:
    """Get the service for the configured output bucket."""
    return GridFSService()
