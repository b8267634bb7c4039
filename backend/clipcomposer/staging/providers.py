"""Providers for staging services."""

from datetime import timedelta
from functools import cache

from clipcomposer.config import get_composer_config
from clipcomposer.staging.asset_stager import AssetStager
from clipcomposer.staging.sweeper import SweepLoop
from clipcomposer.staging.temp_store import TempResourceStore


@cache
def temp_resource_store() -> TempResourceStore:
    """Provide the process-wide TempResourceStore."""
    config = get_composer_config()
    return TempResourceStore(
        root_dir=config.staging_dir,
        ttl=timedelta(seconds=config.staging_ttl_seconds),
        write_retries=config.stage_write_retries,
        retry_backoff_seconds=config.stage_retry_backoff_seconds,
    )


@cache
def asset_stager() -> AssetStager:
    """Provide an AssetStager bound to the shared store."""
    config = get_composer_config()
    return AssetStager(
        store=temp_resource_store(),
        origin=config.asset_origin,
        reference_mode=config.reference_mode,
    )


@cache
def sweep_loop() -> SweepLoop:
    """Provide the sweep loop for the shared store."""
    config = get_composer_config()
    return SweepLoop(temp_resource_store(), interval_seconds=config.sweep_interval_seconds)
