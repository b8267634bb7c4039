"""Versioned schema migrations for the render job collection.

``ensure_schema`` runs at startup. Applied versions are recorded in the
``schema_migrations`` collection, so running it again is a no-op, and an
in-process lock makes concurrent callers wait for the first run.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from clipcomposer.mongodb.schemas import CURRENT_SCHEMA_VERSION

logger = logging.getLogger(__name__)

MIGRATIONS_COLLECTION = "schema_migrations"
RENDER_JOBS_COLLECTION = "render_jobs"
_SCHEMA_KEY = "render_jobs"

_lock = asyncio.Lock()

Migration = Callable[[AsyncIOMotorDatabase], Awaitable[None]]


async def _create_indexes(database: AsyncIOMotorDatabase) -> None:
    jobs = database[RENDER_JOBS_COLLECTION]
    await jobs.create_index([("job_id", ASCENDING)], unique=True)
    await jobs.create_index([("created_at", DESCENDING)])


async def _backfill_asset_ownership(database: AsyncIOMotorDatabase) -> None:
    jobs = database[RENDER_JOBS_COLLECTION]
    result = await jobs.update_many(
        {"owned_asset_ids": {"$exists": False}},
        {"$set": {"owned_asset_ids": [], "schema_version": 2}},
    )
    if result.modified_count:
        logger.info("Backfilled owned_asset_ids for %d render jobs", result.modified_count)


MIGRATIONS: tuple[tuple[int, Migration], ...] = (
    (1, _create_indexes),
    (2, _backfill_asset_ownership),
)


async def current_schema_version(database: AsyncIOMotorDatabase) -> int:
    """Return the last applied migration version (0 if none)."""
    record = await database[MIGRATIONS_COLLECTION].find_one({"_id": _SCHEMA_KEY})
    return int(record["version"]) if record else 0


async def ensure_schema(database: AsyncIOMotorDatabase) -> int:
    """Apply pending migrations in order.

    Returns:
        The schema version after migrating.
    """
    async with _lock:
        version = await current_schema_version(database)
        for target, migrate in MIGRATIONS:
            if target <= version:
                continue
            logger.info("Applying render job schema migration %d", target)
            await migrate(database)
            await database[MIGRATIONS_COLLECTION].update_one(
                {"_id": _SCHEMA_KEY},
                {"$set": {"version": target, "applied_at": datetime.now(UTC)}},
                upsert=True,
            )
            version = target

        if version != CURRENT_SCHEMA_VERSION:
            logger.warning(
                "Render job schema at version %d, expected %d", version, CURRENT_SCHEMA_VERSION
            )
        return version
