"""Tests for render job schema migrations."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from clipcomposer.mongodb.migrations import current_schema_version, ensure_schema
from clipcomposer.mongodb.schemas import CURRENT_SCHEMA_VERSION


def _database(version_record):
    jobs = AsyncMock()
    jobs.update_many.return_value = MagicMock(modified_count=3)
    migrations = AsyncMock()
    migrations.find_one.return_value = version_record
    collections = {"render_jobs": jobs, "schema_migrations": migrations}

    database = MagicMock()
    database.__getitem__.side_effect = collections.__getitem__
    return database, jobs, migrations


class TestEnsureSchema:
    """Tests for ensure_schema."""

    @pytest.mark.asyncio
    async def test_fresh_database_runs_every_migration(self):
        database, jobs, migrations = _database(None)

        version = await ensure_schema(database)

        assert version == CURRENT_SCHEMA_VERSION
        assert jobs.create_index.await_count == 2
        jobs.update_many.assert_awaited_once()
        recorded = [call.args[1]["$set"]["version"] for call in migrations.update_one.await_args_list]
        assert recorded == [1, 2]
        assert all(call.kwargs["upsert"] for call in migrations.update_one.await_args_list)

    @pytest.mark.asyncio
    async def test_only_pending_migrations_run(self):
        database, jobs, migrations = _database({"_id": "render_jobs", "version": 1})

        assert await ensure_schema(database) == 2

        jobs.create_index.assert_not_awaited()
        jobs.update_many.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_up_to_date_schema_is_a_no_op(self):
        database, jobs, migrations = _database({"_id": "render_jobs", "version": CURRENT_SCHEMA_VERSION})

        assert await ensure_schema(database) == CURRENT_SCHEMA_VERSION

        jobs.create_index.assert_not_awaited()
        migrations.update_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_current_schema_version(self):
        database, _, _ = _database(None)
        assert await current_schema_version(database) == 0
