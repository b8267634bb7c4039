"""MongoDB settings for job records and the render output bucket."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field

from clipcomposer.common.base_composer_model import BaseComposerModel

_backend_dir = Path(__file__).parent.parent.parent
load_dotenv(_backend_dir / ".env")


class MongoDBConfig(BaseComposerModel):
    """Where job records and GridFS outputs live."""

    connection_string: str = Field(min_length=1)
    database_name: str = "clipcomposer_dev"

    # Rendered videos are large; 4MB chunks keep the chunk count low
    output_bucket_name: str = "render_outputs"
    output_chunk_size_bytes: int = 4 * 1024 * 1024

    max_pool_size: int = 10
    min_pool_size: int = 1
    # Job record writes are best effort, so fail fast when the server is gone
    server_selection_timeout_ms: int = 5000


def mongodb_enabled() -> bool:
    """Return True when a MongoDB connection string is configured."""
    return bool(os.environ.get("MONGODB_CONNECTION_STRING"))


def get_mongodb_config() -> MongoDBConfig:
    """Read MongoDB settings from the environment.

    Environment variables:
        MONGODB_CONNECTION_STRING: Connection string (required)
        MONGODB_DATABASE_NAME: Database name (default: clipcomposer_dev)
        MONGODB_OUTPUT_BUCKET: GridFS bucket for rendered videos
        MONGODB_SERVER_SELECTION_TIMEOUT_MS: Server selection timeout

    Raises:
        ValueError: If no connection string is configured.
    """
    if not mongodb_enabled():
        msg = "MONGODB_CONNECTION_STRING environment variable is required"
        raise ValueError(msg)

    defaults = MongoDBConfig(connection_string="unset")
    timeout_raw = os.environ.get("MONGODB_SERVER_SELECTION_TIMEOUT_MS")
    return MongoDBConfig(
        connection_string=os.environ["MONGODB_CONNECTION_STRING"],
        database_name=os.environ.get("MONGODB_DATABASE_NAME", defaults.database_name),
        output_bucket_name=os.environ.get("MONGODB_OUTPUT_BUCKET", defaults.output_bucket_name),
        server_selection_timeout_ms=int(timeout_raw) if timeout_raw else defaults.server_selection_timeout_ms,
    )
