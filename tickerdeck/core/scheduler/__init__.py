"""Background task scheduling."""

from tickerdeck.core.scheduler.tasks import (
    CancellationToken,
    Job,
    ScheduledTask,
    TaskRegistry,
    TaskState,
    TaskStatus,
)

__all__ = [
    "CancellationToken",
    "Job",
    "ScheduledTask",
    "TaskRegistry",
    "TaskState",
    "TaskStatus",
]
