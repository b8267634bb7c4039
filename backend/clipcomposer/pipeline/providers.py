"""Providers for the render pipeline."""

from functools import cache

from clipcomposer.config import get_composer_config
from clipcomposer.mongodb.config import mongodb_enabled
from clipcomposer.mongodb.gridfs_service import get_gridfs_service
from clipcomposer.mongodb.repositories import RenderJobRepository
from clipcomposer.pipeline.output_store import GridFSOutputStore, LocalOutputStore, OutputStore
from clipcomposer.pipeline.registry import JobRegistry
from clipcomposer.pipeline.verifier import AssetVerifier


@cache
def job_registry() -> JobRegistry:
    """Provide the process-wide JobRegistry."""
    return JobRegistry()


@cache
def asset_verifier() -> AssetVerifier:
    """Provide an AssetVerifier with the configured probe timeout."""
    return AssetVerifier(timeout_seconds=get_composer_config().probe_timeout_seconds)


@cache
def local_output_store() -> LocalOutputStore:
    """Provide the local output store (also used to serve outputs)."""
    config = get_composer_config()
    return LocalOutputStore(
        config.outputs_dir,
        origin=config.asset_origin,
        prefix=config.output_filename_prefix,
    )


@cache
def output_store() -> OutputStore:
    """Provide the output store selected by configuration."""
    config = get_composer_config()
    if config.output_backend == "gridfs":
        return GridFSOutputStore(
            get_gridfs_service(),
            origin=config.asset_origin,
            prefix=config.output_filename_prefix,
        )
    return local_output_store()


def render_job_repository() -> RenderJobRepository | None:
    """Provide the job repository, or None when MongoDB is not configured."""
    if not mongodb_enabled():
        return None
    return RenderJobRepository.create()
