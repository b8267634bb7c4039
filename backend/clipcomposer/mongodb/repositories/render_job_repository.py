"""Repository for render job documents."""

from datetime import UTC, datetime

from pydantic_mongo import AsyncAbstractRepository
from pymongo import ReturnDocument

from clipcomposer.mongodb.client import get_mongodb_client
from clipcomposer.mongodb.schemas import RenderJobDocument, RenderStage


class RenderJobRepository(AsyncAbstractRepository[RenderJobDocument]):
    """Repository for storing and retrieving render jobs."""

    class Meta:  # pyright: ignore[reportIncompatibleVariableOverride]
        collection_name = "render_jobs"

    @classmethod
    def create(cls) -> "RenderJobRepository":
        """Create a repository instance with the default database."""
        client = get_mongodb_client()
        return cls(client.database)  # pyright: ignore[reportArgumentType]

    async def create_job(
        self,
        job_id: str,
        clip_names: list[str],
        total_frames: int = 0,
        owned_asset_ids: list[str] | None = None,
    ) -> RenderJobDocument:
        """Create a job record in the CREATED stage.

        Args:
            job_id: The job ID.
            clip_names: Clip names in timeline order.
            total_frames: Composition length in frames.
            owned_asset_ids: TempAsset ids the job releases on cleanup.

        Returns:
            The created RenderJobDocument.
        """
        doc = RenderJobDocument(
            job_id=job_id,
            clip_names=clip_names,
            segment_count=len(clip_names),
            total_frames=total_frames,
            owned_asset_ids=owned_asset_ids or [],
        )
        await self.save(doc)
        return doc

    async def get_job(self, job_id: str) -> RenderJobDocument | None:
        """Get a job by its job ID."""
        return await self.find_one_by({"job_id": job_id})

    async def list_jobs(self) -> list[RenderJobDocument]:
        """List all jobs, newest first."""
        jobs = await self.find_by({})
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    async def delete_job(self, job_id: str) -> bool:
        """Delete a job record.

        Returns:
            True if deleted, False if not found.
        """
        result = await self.get_collection().delete_one({"job_id": job_id})
        return result.deleted_count > 0

    async def update_stage(self, job_id: str, stage: RenderStage) -> RenderJobDocument | None:
        """Update a job's stage and its start/end timestamps."""
        now = datetime.now(UTC)
        changes: dict[str, object] = {"stage": str(stage)}
        if stage == RenderStage.VERIFYING:
            changes["started_at"] = now
        elif stage.is_terminal:
            changes["completed_at"] = now
        return await self._update(job_id, changes, now)

    async def update_progress(
        self,
        job_id: str,
        rendered_frames: int,
        encoded_frames: int,
    ) -> RenderJobDocument | None:
        """Record the latest frame counters."""
        return await self._update(
            job_id,
            {"rendered_frames": rendered_frames, "encoded_frames": encoded_frames},
        )

    async def set_layout(
        self,
        job_id: str,
        total_frames: int,
        segment_count: int,
        owned_asset_ids: list[str],
    ) -> RenderJobDocument | None:
        """Record the composed timeline and the assets the job owns."""
        return await self._update(
            job_id,
            {
                "total_frames": total_frames,
                "segment_count": segment_count,
                "owned_asset_ids": owned_asset_ids,
            },
        )

    async def set_completed(
        self,
        job_id: str,
        output_filename: str,
        download_reference: str,
    ) -> RenderJobDocument | None:
        """Mark a job completed with its output reference."""
        now = datetime.now(UTC)
        return await self._update(
            job_id,
            {
                "stage": str(RenderStage.COMPLETED),
                "output_filename": output_filename,
                "download_reference": download_reference,
                "completed_at": now,
            },
            now,
        )

    async def set_error(self, job_id: str, error_message: str, error_type: str) -> RenderJobDocument | None:
        """Record the failure and mark the job failed."""
        now = datetime.now(UTC)
        return await self._update(
            job_id,
            {
                "stage": str(RenderStage.FAILED),
                "error_message": error_message,
                "error_type": error_type,
                "completed_at": now,
            },
            now,
        )

    async def _update(
        self,
        job_id: str,
        changes: dict[str, object],
        now: datetime | None = None,
    ) -> RenderJobDocument | None:
        """Apply ``changes`` atomically and return the updated job, or None if unknown."""
        raw = await self.get_collection().find_one_and_update(
            {"job_id": job_id},
            {"$set": {**changes, "updated_at": now or datetime.now(UTC)}},
            return_document=ReturnDocument.AFTER,
        )
        return RenderJobDocument(**raw) if raw else None
