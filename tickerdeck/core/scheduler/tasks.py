"""Interval task registry with cooperative cancellation."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from tickerdeck.core.exceptions import SchedulerError
from tickerdeck.core.logging import get_logger, log_context

logger = get_logger(__name__)


class CancellationToken:
    """One-shot cancellation flag that jobs can poll or wait on."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait up to ``timeout`` seconds; return ``True`` if cancelled meanwhile."""

        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except TimeoutError:
            return False
        return True


Job = Callable[[CancellationToken], Awaitable[Any]]


class TaskState(str, Enum):
    PENDING = "pending"
    WAITING = "waiting"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(slots=True, frozen=True)
class TaskStatus:
    """Point-in-time view of a scheduled task."""

    name: str
    state: TaskState
    interval: float
    run_count: int
    failure_count: int
    last_started_at: datetime | None
    last_finished_at: datetime | None
    last_error: str | None
    next_run_at: datetime | None

    def as_mapping(self) -> dict[str, Any]:
        def _iso(value: datetime | None) -> str | None:
            return value.isoformat() if value else None

        return {
            "name": self.name,
            "state": self.state.value,
            "interval": self.interval,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
            "last_started_at": _iso(self.last_started_at),
            "last_finished_at": _iso(self.last_finished_at),
            "last_error": self.last_error,
            "next_run_at": _iso(self.next_run_at),
        }


@dataclass
class ScheduledTask:
    """A job run every ``interval`` seconds until cancelled."""

    name: str
    job: Job
    interval: float
    run_immediately: bool = False
    token: CancellationToken = field(default_factory=CancellationToken)
    handle: asyncio.Task[None] | None = None
    executing: bool = False
    run_count: int = 0
    failure_count: int = 0
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_error: str | None = None
    next_run_at: datetime | None = None

    @property
    def state(self) -> TaskState:
        if self.handle is None:
            return TaskState.PENDING
        if self.handle.done():
            return TaskState.STOPPED
        return TaskState.RUNNING if self.executing else TaskState.WAITING


class TaskRegistry:
    """Owns the scheduled tasks of one process.

    A failing job is logged and counted; its loop carries on with the next
    interval. ``stop`` signals the task's token and waits for the current
    run to finish.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._tasks: dict[str, ScheduledTask] = {}
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def names(self) -> list[str]:
        return list(self._tasks)

    def register(self, name: str, job: Job, interval: float, run_immediately: bool = False) -> ScheduledTask:
        if name in self._tasks:
            raise SchedulerError(f"task {name!r} is already registered", name)
        if interval <= 0:
            raise SchedulerError(f"interval for {name!r} must be positive", name)
        task = ScheduledTask(name=name, job=job, interval=float(interval), run_immediately=run_immediately)
        self._tasks[name] = task
        logger.debug(f"registered task {name} every {interval}s")
        return task

    def _get(self, name: str) -> ScheduledTask:
        try:
            return self._tasks[name]
        except KeyError:
            raise SchedulerError(f"unknown task {name!r}", name) from None

    def _selected(self, name: str | None) -> list[ScheduledTask]:
        return list(self._tasks.values()) if name is None else [self._get(name)]

    def start(self, name: str | None = None) -> None:
        """Start one task, or every task, on the running event loop."""

        loop = asyncio.get_running_loop()
        for task in self._selected(name):
            if task.handle is not None and not task.handle.done():
                continue
            task.token = CancellationToken()
            task.handle = loop.create_task(self._run_loop(task), name=f"tickerdeck:{task.name}")
            logger.info(f"started task {task.name}")

    async def stop(self, name: str | None = None, timeout: float | None = None) -> None:
        """Cancel one task, or every task, and wait for it to wind down.

        When ``timeout`` elapses first the asyncio task is cancelled outright.
        """

        tasks = self._selected(name)
        for task in tasks:
            task.token.cancel()
        for task in tasks:
            if task.handle is None or task.handle.done():
                continue
            try:
                await asyncio.wait_for(asyncio.shield(task.handle), timeout)
            except TimeoutError:
                logger.warning(f"task {task.name} did not stop within {timeout}s; cancelling")
                task.handle.cancel()
                await asyncio.gather(task.handle, return_exceptions=True)
            task.next_run_at = None
            logger.info(f"stopped task {task.name}")

    def status(self, name: str | None = None) -> TaskStatus | list[TaskStatus]:
        if name is not None:
            return self._snapshot(self._get(name))
        return [self._snapshot(task) for task in self._tasks.values()]

    async def run_once(self, name: str) -> None:
        """Execute a task's job immediately, outside its schedule."""

        await self._execute(self._get(name))

    def _snapshot(self, task: ScheduledTask) -> TaskStatus:
        return TaskStatus(
            name=task.name,
            state=task.state,
            interval=task.interval,
            run_count=task.run_count,
            failure_count=task.failure_count,
            last_started_at=task.last_started_at,
            last_finished_at=task.last_finished_at,
            last_error=task.last_error,
            next_run_at=task.next_run_at,
        )

    async def _run_loop(self, task: ScheduledTask) -> None:
        if not task.run_immediately:
            task.next_run_at = self._clock() + timedelta(seconds=task.interval)
            if await task.token.wait(task.interval):
                return
        while not task.token.cancelled:
            await self._execute(task)
            task.next_run_at = self._clock() + timedelta(seconds=task.interval)
            if await task.token.wait(task.interval):
                return

    async def _execute(self, task: ScheduledTask) -> None:
        task.executing = True
        task.last_started_at = self._clock()
        try:
            with log_context(task=task.name):
                await task.job(task.token)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            task.failure_count += 1
            task.last_error = f"{type(exc).__name__}: {exc}"
            logger.exception(f"task {task.name} failed")
        else:
            task.last_error = None
        finally:
            task.run_count += 1
            task.executing = False
            task.last_finished_at = self._clock()


__all__ = [
    "CancellationToken",
    "Job",
    "ScheduledTask",
    "TaskRegistry",
    "TaskState",
    "TaskStatus",
]
