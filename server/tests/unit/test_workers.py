"""Unit tests for the background workers."""

import asyncio

import pytest

from ticketing_api.core.observability import REGISTRY
from ticketing_api.workers.base import BaseWorker
from ticketing_api.workers.hold_sweeper import HoldSweeper
from ticketing_api.workers.manager import WorkerManager


class CountingWorker(BaseWorker):
    def __init__(self, name="counter", fail_first=False):
        super().__init__(name=name, interval_seconds=0.01)
        self.calls = 0
        self.fail_first = fail_first

    async def process(self) -> None:
        self.calls += 1
        if self.fail_first and self.calls == 1:
            raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_sweeper_removes_expired_holds(hold_table, connect, clock):
    watcher = connect("conn-watcher")
    hold_table.notifier.join("conn-watcher", "event-e1")
    await hold_table.acquire("s1", "alice", "conn-alice", "e1")
    clock.advance(200)
    await hold_table.acquire("s2", "bob", "conn-bob", "e1")
    clock.advance(101)

    await HoldSweeper(hold_table).process()

    assert (await hold_table.query(["s1", "s2"]))["s2"].is_held is True
    assert watcher.payloads("seat-released") == [{"seat_id": "s1"}]
    assert REGISTRY.get_sample_value("seat_holds_active") == 1


@pytest.mark.asyncio
async def test_sweeper_interval_defaults_to_hold_timeout(hold_table):
    assert HoldSweeper(hold_table).interval_seconds == hold_table.timeout_seconds
    assert HoldSweeper(hold_table, interval_seconds=5).interval_seconds == 5


@pytest.mark.asyncio
async def test_worker_survives_failing_iteration():
    worker = CountingWorker(fail_first=True)

    await worker.start()
    await asyncio.sleep(0.05)
    await worker.stop()

    assert worker.calls >= 2
    assert worker.is_running is False


@pytest.mark.asyncio
async def test_manager_starts_and_stops_workers():
    first, second = CountingWorker("first"), CountingWorker("second")
    manager = WorkerManager([first, second])

    await manager.start_all()
    assert manager.get_worker_status() == {"first": True, "second": True}

    await second.stop()
    await manager.stop_all()
    assert manager.get_worker_status() == {"first": False, "second": False}


def test_manager_rejects_duplicate_names():
    manager = WorkerManager([CountingWorker("dup")])

    with pytest.raises(ValueError):
        manager.register(CountingWorker("dup"))
    assert manager.get_worker("dup").name == "dup"
    with pytest.raises(KeyError):
        manager.get_worker("missing")
