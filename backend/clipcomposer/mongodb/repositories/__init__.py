"""MongoDB repositories for Clip Composer entities."""

from clipcomposer.mongodb.repositories.render_job_repository import RenderJobRepository

__all__ = [
    "RenderJobRepository",
]
