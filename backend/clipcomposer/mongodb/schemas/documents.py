"""MongoDB document schemas for render jobs."""

from datetime import UTC, datetime
from enum import StrEnum, auto

from pydantic import BaseModel, ConfigDict, Field
from pydantic_mongo import PydanticObjectId

CURRENT_SCHEMA_VERSION = 2


class RenderStage(StrEnum):
    """Stage of a render job. Stages only move forward; FAILED is absorbing."""

    CREATED = auto()
    VERIFYING = auto()
    BUNDLING = auto()
    RENDERING = auto()
    PERSISTING = auto()
    COMPLETED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        """Return True for COMPLETED and FAILED."""
        return self in (RenderStage.COMPLETED, RenderStage.FAILED)


STAGE_ORDER = (
    RenderStage.CREATED,
    RenderStage.VERIFYING,
    RenderStage.BUNDLING,
    RenderStage.RENDERING,
    RenderStage.PERSISTING,
    RenderStage.COMPLETED,
)


class RenderJobDocument(BaseModel):
    """Persisted summary of one render job."""

    model_config = ConfigDict(populate_by_name=True)

    id: PydanticObjectId | None = Field(default=None, alias="_id")
    job_id: str

    # Inputs
    clip_names: list[str] = Field(default_factory=list)
    segment_count: int = 0
    owned_asset_ids: list[str] = Field(default_factory=list)

    # Processing state
    stage: RenderStage = RenderStage.CREATED
    total_frames: int = 0
    rendered_frames: int = 0
    encoded_frames: int = 0

    # Output references
    output_filename: str | None = None
    download_reference: str | None = None

    # Error handling
    error_message: str | None = None
    error_type: str | None = None

    schema_version: int = CURRENT_SCHEMA_VERSION

    # Timestamps
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
