import asyncio
from datetime import date, datetime, timezone

import pytest

from config.base import AppSettings
from api.notifications.constants import CycleType
from api.notifications.workflow import SweepResult
from scheduler.reminder_scheduler import (
    END_MONTH_JOB_ID,
    FIRST_REMINDER_JOB_ID,
    MID_MONTH_JOB_ID,
    NEXT_DAY_JOB_ID,
    ReminderScheduler,
    is_last_day_of_month,
    local_today,
)


class RecordingEngine:
    """Stands in for WorkflowEngine; records calls and can misbehave on demand."""

    def __init__(self, delay: float = 0.0, error: Exception | None = None):
        self.calls = []
        self.delay = delay
        self.error = error

    async def _act(self, *call):
        self.calls.append(call)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SweepResult()

    async def initiate(self, cycle_type, cycle_date):
        return await self._act("initiate", cycle_type, cycle_date)

    async def sweep_first_reminder(self):
        return await self._act("sweep_first_reminder")

    async def sweep_next_day(self):
        return await self._act("sweep_next_day")


def _settings(**overrides) -> AppSettings:
    return AppSettings(SCHEDULER_TIMEZONE="Asia/Tashkent", **overrides)


def _scheduler(engine, now: datetime, **overrides) -> ReminderScheduler:
    return ReminderScheduler(engine, _settings(**overrides), clock=lambda: now)


@pytest.mark.parametrize(
    "day, expected",
    [
        (date(2024, 5, 31), True),
        (date(2024, 5, 30), False),
        (date(2024, 2, 29), True),
        (date(2023, 2, 28), True),
        (date(2024, 2, 28), False),
        (date(2024, 12, 31), True),
        (date(2024, 4, 30), True),
    ],
)
def test_is_last_day_of_month(day, expected):
    assert is_last_day_of_month(day) is expected


def test_local_today_crosses_midnight():
    late_utc = datetime(2024, 5, 31, 20, 0, tzinfo=timezone.utc)
    assert local_today("UTC", late_utc) == date(2024, 5, 31)
    assert local_today("Asia/Tashkent", late_utc) == date(2024, 6, 1)


def test_all_jobs_registered():
    scheduler = _scheduler(RecordingEngine(), datetime(2024, 5, 15, 5, 0, tzinfo=timezone.utc))
    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {MID_MONTH_JOB_ID, END_MONTH_JOB_ID, FIRST_REMINDER_JOB_ID, NEXT_DAY_JOB_ID}
    assert all(job.max_instances == 1 for job in jobs.values())
    assert all(job.coalesce for job in jobs.values())
    assert not scheduler.running


@pytest.mark.anyio
async def test_mid_month_job_uses_local_date():
    engine = RecordingEngine()
    # 20:00 UTC on the 14th is already the 15th in Tashkent
    scheduler = _scheduler(engine, datetime(2024, 5, 14, 20, 0, tzinfo=timezone.utc))
    await scheduler.run_mid_month_initiation()
    assert engine.calls == [("initiate", CycleType.MID_MONTH, date(2024, 5, 15))]


@pytest.mark.anyio
async def test_end_month_check_only_fires_on_last_day():
    engine = RecordingEngine()
    assert await _scheduler(engine, datetime(2024, 5, 30, 5, 0, tzinfo=timezone.utc)).run_end_month_check() is None
    assert engine.calls == []

    await _scheduler(engine, datetime(2024, 5, 31, 5, 0, tzinfo=timezone.utc)).run_end_month_check()
    assert engine.calls == [("initiate", CycleType.END_MONTH, date(2024, 5, 31))]


@pytest.mark.anyio
async def test_sweep_jobs_delegate_to_engine():
    engine = RecordingEngine()
    scheduler = _scheduler(engine, datetime(2024, 5, 15, 5, 0, tzinfo=timezone.utc))
    assert isinstance(await scheduler.run_first_reminder_sweep(), SweepResult)
    assert isinstance(await scheduler.run_next_day_sweep(), SweepResult)
    assert engine.calls == [("sweep_first_reminder",), ("sweep_next_day",)]


@pytest.mark.anyio
async def test_job_timeout_is_contained(caplog):
    engine = RecordingEngine(delay=1.0)
    scheduler = _scheduler(engine, datetime(2024, 5, 15, 5, 0, tzinfo=timezone.utc), SWEEP_TIMEOUT_SECONDS=0.01)
    assert await scheduler.run_first_reminder_sweep() is None
    assert any("timed out" in r.getMessage() for r in caplog.records)


@pytest.mark.anyio
async def test_job_failure_is_contained(caplog):
    engine = RecordingEngine(error=RuntimeError("database unreachable"))
    scheduler = _scheduler(engine, datetime(2024, 5, 15, 5, 0, tzinfo=timezone.utc))
    assert await scheduler.run_next_day_sweep() is None
    assert any(r.exc_info and "next_day_sweep" in r.getMessage() for r in caplog.records)
