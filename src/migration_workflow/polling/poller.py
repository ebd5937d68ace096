"""Repeated status fetch with terminal-state detection and cancellation."""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from migration_workflow.core.logging import get_logger
from migration_workflow.polling.sources import JobStatusSource

logger = get_logger(__name__)

StatusT = TypeVar("StatusT")

StatusCallback = Callable[[StatusT], Awaitable[Any] | Any]
ErrorCallback = Callable[[Exception], Awaitable[Any] | Any]


class JobStatusPoller(Generic[StatusT]):
    """Polls a job until its status is terminal or the poller is stopped.

    One activation at a time: ``start()`` fetches immediately, then waits
    ``interval`` seconds between fetches (poll-then-wait). Every successful
    fetch replaces ``status``. When the source reports a terminal status the
    activation ends and ``on_complete`` fires exactly once.

    ``stop()`` bumps the activation generation before cancelling the task, so
    a fetch that resolves after cancellation is discarded and no callback
    fires for it.
    """

    def __init__(
        self,
        source: JobStatusSource[StatusT],
        interval: float,
        *,
        on_update: StatusCallback | None = None,
        on_complete: StatusCallback | None = None,
        on_error: ErrorCallback | None = None,
        error_backoff_factor: float = 1.0,
        max_interval: float | None = None,
        name: str = "job",
    ):
        """Initialize the poller.

        Args:
            source: Where statuses come from and which of them are terminal.
            interval: Seconds between the end of one fetch and the next.
            on_update: Called with every newly fetched status.
            on_complete: Called once with the terminal status.
            on_error: Called with each transient fetch error.
            error_backoff_factor: Interval multiplier per consecutive error.
            max_interval: Ceiling for the backed-off interval.
            name: Label used in log messages.
        """
        if interval < 0:
            raise ValueError("Polling interval must not be negative")
        if error_backoff_factor < 1.0:
            raise ValueError("Backoff factor must be at least 1.0")

        self.source = source
        self.interval = interval
        self.on_update = on_update
        self.on_complete = on_complete
        self.on_error = on_error
        self.error_backoff_factor = error_backoff_factor
        self.max_interval = max_interval if max_interval is not None else interval
        self.name = name

        self.status: StatusT | None = None
        self.fetch_attempts = 0
        self.consecutive_errors = 0
        self.completed = False

        self._job_id: str | None = None
        self._generation = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def job_id(self) -> str | None:
        return self._job_id

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, job_id: str, initial_status: StatusT | None = None) -> None:
        """Activate polling for a job.

        Starting the job that is already being polled is a no-op; starting a
        different job supersedes the current activation.

        Args:
            job_id: Job identifier.
            initial_status: Optional status to show before the first fetch.
        """
        if self.is_active:
            if job_id == self._job_id:
                logger.debug(f"Already polling {self.name} {job_id}")
                return
            logger.info(f"Superseding {self.name} poll {self._job_id} with {job_id}")
            self.stop()

        self._generation += 1
        self._job_id = job_id
        self.status = initial_status
        self.fetch_attempts = 0
        self.consecutive_errors = 0
        self.completed = False

        logger.info(f"Polling {self.name} {job_id} every {self.interval}s")
        self._task = asyncio.create_task(
            self._run(job_id, self._generation),
            name=f"poll-{self.name}-{job_id}",
        )

    def stop(self) -> None:
        """Deactivate polling; no fetch result is applied after this returns."""
        self._generation += 1
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            logger.info(f"Stopping {self.name} poll {self._job_id}")
            task.cancel()

    async def aclose(self) -> None:
        """Stop polling and wait for the polling task to unwind."""
        self.stop()
        if self._task is not None and self._task is not asyncio.current_task():
            await asyncio.wait({self._task})

    async def wait(self) -> StatusT | None:
        """Wait for the current activation to end.

        Returns:
            StatusT | None: Last status applied, None if nothing was fetched.
        """
        if self._task is not None and self._task is not asyncio.current_task():
            await asyncio.wait({self._task})
        return self.status

    def _next_delay(self) -> float:
        if not self.consecutive_errors:
            return self.interval
        backed_off = self.interval * self.error_backoff_factor**self.consecutive_errors
        return min(backed_off, max(self.max_interval, self.interval))

    async def _notify(self, callback: Callable[..., Any] | None, payload: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"{self.name} poll callback failed: {e}", exc_info=True)

    async def _run(self, job_id: str, generation: int) -> None:
        while True:
            self.fetch_attempts += 1
            try:
                status = await self.source.fetch_status(job_id)
            except Exception as e:
                if generation != self._generation:
                    return
                self.consecutive_errors += 1
                logger.warning(
                    f"Failed to fetch {self.name} {job_id} status "
                    f"({self.consecutive_errors} in a row): {e}"
                )
                await self._notify(self.on_error, e)
            else:
                if generation != self._generation:
                    logger.debug(f"Discarding stale {self.name} {job_id} status")
                    return

                self.status = status
                self.consecutive_errors = 0
                await self._notify(self.on_update, status)

                if generation != self._generation:
                    return

                if self.source.is_terminal(status):
                    self.completed = True
                    logger.info(f"{self.name.capitalize()} {job_id} reached a terminal status")
                    await self._notify(self.on_complete, status)
                    return

            if generation != self._generation:
                return
            await asyncio.sleep(self._next_delay())
