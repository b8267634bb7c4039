"""Shared Motor client for job records, migrations and the output bucket."""

import logging
from functools import cache

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from clipcomposer.mongodb.config import MongoDBConfig, get_mongodb_config

logger = logging.getLogger(__name__)


class MongoDBClient:
    """Owns one pooled Motor client bound to the configured database."""

    def __init__(self, config: MongoDBConfig) -> None:
        self.config = config
        self.client: AsyncIOMotorClient = AsyncIOMotorClient(
            config.connection_string,
            maxPoolSize=config.max_pool_size,
            minPoolSize=config.min_pool_size,
            serverSelectionTimeoutMS=config.server_selection_timeout_ms,
        )
        logger.info("MongoDB client created for database %s", config.database_name)

    @property
    def database(self) -> AsyncIOMotorDatabase:
        return self.client[self.config.database_name]

    async def ping(self) -> bool:
        """Return True if the server answers a ping."""
        try:
            await self.client.admin.command("ping")
        except PyMongoError as e:
            logger.warning("MongoDB ping failed: %s", e)
            return False
        return True

    def close(self) -> None:
        self.client.close()


@cache
def get_mongodb_client() -> MongoDBClient:
    """Get the process-wide MongoDB client."""
    return MongoDBClient(get_mongodb_config())


def close_mongodb_client() -> None:
    """Close the shared client; the next call to get_mongodb_client reconnects."""
    if get_mongodb_client.cache_info().currsize:
        get_mongodb_client().close()
        get_mongodb_client.cache_clear()
