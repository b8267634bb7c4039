"""MongoDB document schemas."""

from clipcomposer.mongodb.schemas.documents import (
    CURRENT_SCHEMA_VERSION,
    STAGE_ORDER,
    RenderJobDocument,
    RenderStage,
)

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "STAGE_ORDER",
    "RenderJobDocument",
    "RenderStage",
]
