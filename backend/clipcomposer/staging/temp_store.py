"""Registry of staged uploads backed by a directory on disk."""

import asyncio
import hashlib
import logging
import os
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path

from clipcomposer.common.base_composer_model import BaseComposerModel
from clipcomposer.common.errors import NotFoundError, StageWriteError, UnsupportedMediaError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".mkv": "video/x-matroska",
    ".avi": "video/x-msvideo",
    ".webm": "video/webm",
}

DEFAULT_EXTENSION = ".mp4"


def content_type_for(path: Path) -> str | None:
    """Return the content type for a staged video, or None if not a known container."""
    return CONTENT_TYPES.get(path.suffix.lower())


class TempAsset(BaseComposerModel):
    """A staged upload owned by the TempResourceStore."""

    asset_id: str
    path: Path
    original_filename: str
    size_bytes: int
    sha256: str
    created_at: datetime
    expires_at: datetime

    @property
    def content_type(self) -> str:
        """Return the content type derived from the file extension."""
        return content_type_for(self.path) or "application/octet-stream"


class TempResourceStore:
    """Stages uploads to disk and tracks their expiry.

    Only id allocation and registry updates happen under the lock. File
    writes, reads and deletes run in the default executor without it, so
    operations on different assets never wait on each other's I/O.
    """

    def __init__(
        self,
        root_dir: Path,
        ttl: timedelta = timedelta(minutes=30),
        write_retries: int = 3,
        retry_backoff_seconds: float = 0.05,
    ) -> None:
        """Initialize the store.

        Args:
            root_dir: Directory holding staged files.
            ttl: Lifetime of a staged asset before the sweep removes it.
            write_retries: Attempts made to write and verify a file.
            retry_backoff_seconds: Delay before the second attempt, doubled after each failure.
        """
        self.root_dir = root_dir.expanduser().resolve()
        self.ttl = ttl
        self.write_retries = write_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self._entries: dict[str, TempAsset] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._entries

    async def stage(
        self,
        data: bytes,
        suggested_name: str,
        now: datetime | None = None,
    ) -> TempAsset:
        """Write bytes to a fresh path and register them.

        The on-disk name comes from a random id; only the extension of
        ``suggested_name`` is kept.

        If the calling task is cancelled mid-write, the write is allowed to
        finish and the file is deleted before the cancellation propagates.

        Raises:
            UnsupportedMediaError: If ``suggested_name`` has an extension
                that is not a known video container.
            StageWriteError: If the file cannot be written and read back
                intact within the configured number of attempts.
        """
        extension = Path(suggested_name).suffix.lower() or DEFAULT_EXTENSION
        if extension not in CONTENT_TYPES:
            raise UnsupportedMediaError(suggested_name)
        digest = hashlib.sha256(data).hexdigest()

        async with self._lock:
            asset_id = uuid.uuid4().hex
            while asset_id in self._entries:
                asset_id = uuid.uuid4().hex
            path = self.root_dir / f"{asset_id}{extension}"

        await self._write_verified(path, data, digest, suggested_name)

        created_at = now or datetime.now(UTC)
        asset = TempAsset(
            asset_id=asset_id,
            path=path,
            original_filename=suggested_name,
            size_bytes=len(data),
            sha256=digest,
            created_at=created_at,
            expires_at=created_at + self.ttl,
        )
        async with self._lock:
            self._entries[asset_id] = asset

        logger.info(
            "Staged %s as %s (%d bytes, expires %s)",
            suggested_name,
            asset_id,
            len(data),
            asset.expires_at.isoformat(),
        )
        return asset

    async def release(self, asset_id: str) -> None:
        """Delete a staged asset. Releasing an unknown id is a no-op."""
        async with self._lock:
            asset = self._entries.pop(asset_id, None)
        if asset is None:
            return

        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, _unlink_if_present, asset.path)
        except OSError as e:
            logger.warning("Failed to delete staged file %s: %s", asset.path, e)
        else:
            logger.info("Released staged asset %s", asset_id)

    def get(self, asset_id: str) -> TempAsset:
        """Return the registered asset.

        Raises:
            NotFoundError: If the id is not registered.
        """
        asset = self._entries.get(asset_id)
        if asset is None:
            raise NotFoundError(asset_id)
        return asset

    def resolve(self, asset_id: str) -> Path:
        """Return the path of a staged asset.

        Raises:
            NotFoundError: If the id is not registered.
        """
        return self.get(asset_id).path

    def is_managed_path(self, path: Path) -> bool:
        """Return True if path lies inside the staging directory."""
        return path.resolve().is_relative_to(self.root_dir)

    async def sweep(self, now: datetime | None = None) -> int:
        """Remove every entry whose expiry has passed.

        An entry expiring exactly at ``now`` is kept. A failed deletion is
        logged and does not stop the sweep.

        Returns:
            Number of entries removed.
        """
        now = now or datetime.now(UTC)
        async with self._lock:
            expired = [asset for asset in self._entries.values() if now > asset.expires_at]
            for asset in expired:
                del self._entries[asset.asset_id]

        loop = asyncio.get_event_loop()
        for asset in expired:
            try:
                await loop.run_in_executor(None, _unlink_if_present, asset.path)
            except OSError as e:
                logger.warning("Sweep could not delete %s: %s", asset.path, e)

        if expired:
            logger.info("Swept %d expired staged assets", len(expired))
        return len(expired)

    async def sweep_orphans(self, now: datetime | None = None) -> int:
        """Delete files in the staging directory that no entry owns.

        Only files older than the TTL are removed, so a file whose stage()
        call is still in flight is never touched.

        Returns:
            Number of files removed.
        """
        now = now or datetime.now(UTC)
        cutoff = (now - self.ttl).timestamp()
        async with self._lock:
            owned = {asset.path for asset in self._entries.values()}

        loop = asyncio.get_event_loop()
        candidates = await loop.run_in_executor(None, self._list_files)

        removed = 0
        for path in candidates:
            if path in owned or content_type_for(path) is None:
                continue
            try:
                if path.stat().st_mtime >= cutoff:
                    continue
                await loop.run_in_executor(None, _unlink_if_present, path)
                removed += 1
            except OSError as e:
                logger.warning("Orphan sweep could not delete %s: %s", path, e)

        if removed:
            logger.info("Removed %d orphaned staged files", removed)
        return removed

    async def release_all(self) -> None:
        """Release every registered asset (used at shutdown)."""
        async with self._lock:
            asset_ids = list(self._entries)
        for asset_id in asset_ids:
            await self.release(asset_id)

    async def _write_verified(
        self,
        path: Path,
        data: bytes,
        digest: str,
        suggested_name: str,
    ) -> None:
        """Write, flush and read back a file, retrying with backoff.

        The executor write is shielded. On cancellation the in-flight write is
        awaited and the file removed, so nothing lands on disk afterwards.
        """
        loop = asyncio.get_event_loop()
        delay = self.retry_backoff_seconds
        last_error = "unknown error"
        pending: asyncio.Future[None] | None = None

        try:
            for attempt in range(1, self.write_retries + 1):
                try:
                    pending = loop.run_in_executor(None, _write_and_sync, path, data)
                    await asyncio.shield(pending)
                    written = await loop.run_in_executor(None, _sha256_of, path)
                    if written == digest:
                        return
                    last_error = "read-back checksum mismatch"
                except OSError as e:
                    last_error = str(e)

                logger.warning(
                    "Stage attempt %d/%d for %s failed: %s",
                    attempt,
                    self.write_retries,
                    suggested_name,
                    last_error,
                )
                if attempt < self.write_retries:
                    await asyncio.sleep(delay)
                    delay *= 2
        except asyncio.CancelledError:
            if pending is not None:
                await asyncio.wait({pending})
                # A failed write is already being discarded.
                if not pending.cancelled():
                    pending.exception()
            try:
                await loop.run_in_executor(None, _unlink_if_present, path)
            except OSError as e:
                logger.warning("Could not remove cancelled staged file %s: %s", path, e)
            else:
                logger.info("Stage of %s cancelled, removed %s", suggested_name, path)
            raise

        try:
            await loop.run_in_executor(None, _unlink_if_present, path)
        except OSError:
            logger.warning("Could not remove partial staged file %s", path)
        raise StageWriteError(suggested_name, self.write_retries, last_error)

    def _list_files(self) -> list[Path]:
        if not self.root_dir.exists():
            return []
        return [path for path in self.root_dir.iterdir() if path.is_file()]


def _write_and_sync(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())


def _sha256_of(path: Path) -> str:
    sha = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            sha.update(chunk)
    return sha.hexdigest()


def _unlink_if_present(path: Path) -> None:
    path.unlink(missing_ok=True)
