"""Tests for background workers."""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest
from conftest import add_booking, add_slot
from sqlalchemy import func, select

from excursion_booking.models import Notification, Profile, UserRole
from excursion_booking.services.email_client import EmailClient
from excursion_booking.workers import BaseWorker, ReminderWorker, WorkerManager


class CountingWorker(BaseWorker):
    def __init__(self, fail: bool = False):
        super().__init__(name="Counting", interval_seconds=3600)
        self.calls = 0
        self.fail = fail
        self.ran = asyncio.Event()

    async def process(self) -> None:
        self.calls += 1
        self.ran.set()
        if self.fail:
            raise RuntimeError("iteration failed")


async def count_notifications(session) -> int:
    return (await session.execute(select(func.count(Notification.id)))).scalar_one()


@pytest.mark.asyncio
async def test_run_once_records_outcome():
    worker = CountingWorker()

    await worker.run_once()

    assert worker.calls == 1
    assert worker.last_run_at is not None
    assert worker.last_error is None


@pytest.mark.asyncio
async def test_run_once_records_failure():
    worker = CountingWorker(fail=True)

    with pytest.raises(RuntimeError):
        await worker.run_once()

    assert worker.last_error == "iteration failed"


@pytest.mark.asyncio
async def test_failing_iteration_keeps_the_loop_alive():
    worker = CountingWorker(fail=True)

    await worker.start()
    await asyncio.wait_for(worker.ran.wait(), timeout=5)

    assert worker.running is True
    await worker.stop()
    assert worker.running is False


@pytest.mark.asyncio
async def test_manager_starts_and_stops_workers():
    worker = CountingWorker()
    manager = WorkerManager({"counting": worker})

    await manager.start_all()
    await asyncio.wait_for(worker.ran.wait(), timeout=5)
    assert manager.get_worker_status() == {"counting": True}

    await manager.stop_all()
    assert manager.get_worker_status() == {"counting": False}


def test_manager_registration(session_factory):
    manager = WorkerManager.default(session_factory, EmailClient())

    assert isinstance(manager.get_worker("reminder"), ReminderWorker)
    with pytest.raises(ValueError):
        manager.register("reminder", CountingWorker())
    with pytest.raises(KeyError):
        manager.get_worker("missing")


@pytest.mark.asyncio
async def test_reminder_worker_runs_once_per_day(test_session, session_factory, excursion, guide_profile, today):
    client = Profile(id=uuid4(), email="hugo@example.com", role=UserRole.CLIENT)
    test_session.add(client)
    await test_session.commit()
    tomorrow_slot = await add_slot(test_session, excursion, today + timedelta(days=1))
    await add_booking(test_session, tomorrow_slot, 2, client_id=client.id)

    day = {"value": today}
    worker = ReminderWorker(session_factory, EmailClient(), interval_seconds=60, clock=lambda: day["value"])

    await worker.run_once()
    assert worker.last_completed_day == today
    # One client reminder and one guide summary
    assert await count_notifications(test_session) == 2

    await worker.run_once()
    assert await count_notifications(test_session) == 2

    day["value"] = today + timedelta(days=1)
    await worker.run_once()
    assert worker.last_completed_day == today + timedelta(days=1)
    assert await count_notifications(test_session) == 2
