"""Fire-and-forget jobs joined by a bounded poll loop.

dispatch() schedules a coroutine and hands back a JobHandle immediately;
join() polls the handles until every job finished or the retry budget runs
out.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any

from ..errors import JobFailedError, RetryExhaustedError
from ..shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class JobHandle:
    """Handle to a dispatched job."""

    key: str
    task: asyncio.Task

    @property
    def finished(self) -> bool:
        return self.task.done()

    @property
    def succeeded(self) -> bool:
        return self.finished and not self.task.cancelled() and self.task.exception() is None

    @property
    def error(self) -> str | None:
        if not self.finished:
            return None
        if self.task.cancelled():
            return "cancelled"
        exc = self.task.exception()
        if exc is None:
            return None
        if isinstance(exc, asyncio.TimeoutError):
            return "timed out"
        return str(exc) or type(exc).__name__

    def result(self) -> Any:
        return self.task.result()


class JobSet:
    """A group of jobs dispatched by one fan-out step."""

    def __init__(self, name: str, timeout: float | None = None):
        """Initialize job set.

        Args:
            name: Name used in logs and errors.
            timeout: Per-job timeout in seconds.
        """
        self.name = name
        self.timeout = timeout
        self.jobs: list[JobHandle] = []

    def dispatch(self, key: str, work: Awaitable[Any]) -> JobHandle:
        """Schedule work without waiting for it. Must run inside an event loop."""
        if self.timeout is not None:
            work = asyncio.wait_for(work, self.timeout)
        handle = JobHandle(key=key, task=asyncio.ensure_future(work))
        self.jobs.append(handle)
        return handle

    @property
    def pending(self) -> list[JobHandle]:
        return [job for job in self.jobs if not job.finished]

    @property
    def failed(self) -> list[JobHandle]:
        return [job for job in self.jobs if job.finished and not job.succeeded]

    @property
    def all_succeeded(self) -> bool:
        return all(job.succeeded for job in self.jobs)

    async def join(self, retries: int, delay: float) -> list[JobHandle]:
        """Poll until all jobs finished.

        Args:
            retries: Polls after the first one.
            delay: Seconds between polls.

        Returns:
            The job handles, all finished and successful.

        Raises:
            RetryExhaustedError: if jobs are still running after the budget.
                                 Those jobs are cancelled.
            JobFailedError: if any job finished with an error.
        """
        for attempt in range(retries + 1):
            # Let freshly dispatched tasks run before counting them as pending
            await asyncio.sleep(0)
            pending = self.pending
            if not pending:
                break
            logger.debug("waiting for jobs", jobs=self.name, pending=len(pending), attempt=attempt)
            if attempt == retries:
                for job in pending:
                    job.task.cancel()
                await asyncio.gather(*(job.task for job in pending), return_exceptions=True)
                raise RetryExhaustedError(
                    f"{len(pending)} {self.name} job(s) still running: "
                    + ", ".join(job.key for job in pending),
                    attempts=retries + 1,
                )
            await asyncio.sleep(delay)

        failed = self.failed
        if failed:
            first = failed[0]
            raise JobFailedError(
                f"{self.name} job '{first.key}' failed: {first.error}",
                output="\n".join(f"{job.key}: {job.error}" for job in failed),
                job=first.key,
            )
        return self.jobs
