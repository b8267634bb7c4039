"""Tracks running render jobs so they can be aborted or watched."""

import asyncio
import logging

from clipcomposer.pipeline.job_runner import RenderJobRunner
from clipcomposer.pipeline.output_store import StoredOutput

logger = logging.getLogger(__name__)


class JobRegistry:
    """Live render jobs by id. Finished jobs are dropped automatically."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._runners: dict[str, RenderJobRunner] = {}
        self._tasks: dict[str, asyncio.Task[StoredOutput | None]] = {}

    def __len__(self) -> int:
        return len(self._runners)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._runners

    def start(self, runner: RenderJobRunner) -> asyncio.Task[StoredOutput | None]:
        """Run a job in its own task.

        Raises:
            ValueError: If a job with the same id is already running.
        """
        if runner.job_id in self._runners:
            msg = f"Render job {runner.job_id} is already running"
            raise ValueError(msg)

        task = asyncio.create_task(runner.run(), name=f"render-job-{runner.job_id}")
        self._runners[runner.job_id] = runner
        self._tasks[runner.job_id] = task
        task.add_done_callback(lambda t, job_id=runner.job_id: self._finished(job_id, t))
        return task

    def runners(self) -> list[RenderJobRunner]:
        """Return the live runners in start order."""
        return list(self._runners.values())

    def get(self, job_id: str) -> RenderJobRunner | None:
        """Return the runner for a live job."""
        return self._runners.get(job_id)

    def abort(self, job_id: str) -> bool:
        """Abort a live job.

        Returns:
            False if no live job has this id or it already finished.
        """
        runner = self._runners.get(job_id)
        if runner is None:
            return False
        return runner.abort()

    async def abort_all(self) -> None:
        """Abort every live job and wait for them to finish (used at shutdown)."""
        tasks = list(self._tasks.values())
        for runner in list(self._runners.values()):
            runner.abort()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _finished(self, job_id: str, task: asyncio.Task[StoredOutput | None]) -> None:
        self._runners.pop(job_id, None)
        self._tasks.pop(job_id, None)
        if task.cancelled():
            logger.info("[job=%s] Render job aborted", job_id)
        elif task.exception() is not None:
            logger.error("[job=%s] Render job crashed: %s", job_id, task.exception())
