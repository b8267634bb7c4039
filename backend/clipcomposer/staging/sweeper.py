"""Background loop that expires stale staged uploads."""

import asyncio
import contextlib
import logging

from clipcomposer.staging.temp_store import TempResourceStore

logger = logging.getLogger(__name__)


class SweepLoop:
    """Runs TempResourceStore.sweep on a fixed interval."""

    def __init__(
        self,
        store: TempResourceStore,
        interval_seconds: float = 300.0,
        include_orphans: bool = True,
    ) -> None:
        """Initialize the sweep loop.

        Args:
            store: Store to sweep.
            interval_seconds: Delay between sweeps.
            include_orphans: Also remove unregistered files older than the TTL.
        """
        self.store = store
        self.interval_seconds = interval_seconds
        self.include_orphans = include_orphans
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Return True while the loop task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="staging-sweep")
        logger.info("Sweep loop started (every %.0fs)", self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Sweep loop stopped")

    async def run_once(self) -> int:
        """Run a single sweep and return the number of removed files."""
        removed = await self.store.sweep()
        if self.include_orphans:
            removed += await self.store.sweep_orphans()
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Sweep cycle failed")
