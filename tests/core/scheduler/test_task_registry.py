from __future__ import annotations

import asyncio

import pytest

from tickerdeck.core.exceptions import SchedulerError
from tickerdeck.core.scheduler import CancellationToken, TaskRegistry, TaskState


async def _noop(token: CancellationToken) -> None:
    return None


def test_register_rejects_duplicates_and_bad_intervals() -> None:
    registry = TaskRegistry()
    registry.register("prices", _noop, 60)

    with pytest.raises(SchedulerError):
        registry.register("prices", _noop, 60)
    with pytest.raises(SchedulerError):
        registry.register("daily", _noop, 0)
    with pytest.raises(SchedulerError):
        registry.status("missing")
    assert registry.names == ["prices"]


@pytest.mark.asyncio
async def test_cancellation_token() -> None:
    token = CancellationToken()

    assert await token.wait(0.01) is False
    token.cancel()
    assert token.cancelled
    assert await token.wait(1) is True


@pytest.mark.asyncio
async def test_start_runs_job_repeatedly_until_stopped() -> None:
    registry = TaskRegistry()
    calls: list[int] = []

    async def job(token: CancellationToken) -> None:
        calls.append(1)

    registry.register("prices", job, 0.01, run_immediately=True)
    assert registry.status("prices").state is TaskState.PENDING

    registry.start()
    await asyncio.sleep(0.08)
    assert registry.status("prices").state in {TaskState.WAITING, TaskState.RUNNING}
    await registry.stop()

    status = registry.status("prices")
    assert status.state is TaskState.STOPPED
    assert status.run_count == len(calls) >= 2
    assert status.next_run_at is None


@pytest.mark.asyncio
async def test_failing_job_does_not_stop_other_tasks() -> None:
    registry = TaskRegistry()
    healthy: list[int] = []

    async def broken(token: CancellationToken) -> None:
        raise RuntimeError("provider exploded")

    async def fine(token: CancellationToken) -> None:
        healthy.append(1)

    registry.register("broken", broken, 0.01, run_immediately=True)
    registry.register("fine", fine, 0.01, run_immediately=True)
    registry.start()
    await asyncio.sleep(0.08)
    await registry.stop()

    broken_status, fine_status = registry.status()
    assert broken_status.failure_count == broken_status.run_count >= 2
    assert broken_status.last_error == "RuntimeError: provider exploded"
    assert fine_status.failure_count == 0
    assert len(healthy) >= 2


@pytest.mark.asyncio
async def test_delayed_start_waits_one_interval() -> None:
    registry = TaskRegistry()
    registry.register("daily", _noop, 60)

    registry.start()
    await asyncio.sleep(0.02)
    status = registry.status("daily")
    await registry.stop()

    assert status.run_count == 0
    assert status.next_run_at is not None


@pytest.mark.asyncio
async def test_stop_waits_for_cooperative_job() -> None:
    registry = TaskRegistry()
    finished: list[bool] = []

    async def long_job(token: CancellationToken) -> None:
        await token.wait(5)
        finished.append(token.cancelled)

    registry.register("long", long_job, 60, run_immediately=True)
    registry.start()
    await asyncio.sleep(0.02)
    await registry.stop(timeout=1)

    assert finished == [True]
    assert registry.status("long").state is TaskState.STOPPED


@pytest.mark.asyncio
async def test_stop_cancels_job_that_ignores_token() -> None:
    registry = TaskRegistry()

    async def stubborn(token: CancellationToken) -> None:
        await asyncio.sleep(5)

    registry.register("stubborn", stubborn, 60, run_immediately=True)
    registry.start()
    await asyncio.sleep(0.02)
    await registry.stop(timeout=0.05)

    assert registry.status("stubborn").state is TaskState.STOPPED


@pytest.mark.asyncio
async def test_run_once_records_status() -> None:
    registry = TaskRegistry()
    registry.register("cleanup", _noop, 3600)

    await registry.run_once("cleanup")

    status = registry.status("cleanup")
    assert status.run_count == 1
    assert status.last_finished_at is not None
    assert status.as_mapping()["state"] == "pending"
