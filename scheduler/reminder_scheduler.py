# scheduler/reminder_scheduler.py
"""
Timer jobs that drive the notification workflow.

Four independent cron jobs, all evaluated in the configured time zone:

- mid_month_initiation: start the MID_MONTH cycle
- end_month_initiation: daily check, starts the END_MONTH cycle on the last day of the month
- first_reminder_sweep: re-ask questions answered "No" an hour ago
- next_day_sweep: final reminder for questions left open yesterday

The scheduler holds no workflow state. Each job runs under its own deadline
and logs its own failures, so one job never affects another.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timedelta, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config.base import AppSettings
from api.notifications.constants import CycleType
from api.notifications.db_manager import utc_now
from api.notifications.workflow import WorkflowEngine

logger = logging.getLogger(__name__)

MID_MONTH_JOB_ID = "mid_month_initiation"
END_MONTH_JOB_ID = "end_month_initiation"
FIRST_REMINDER_JOB_ID = "first_reminder_sweep"
NEXT_DAY_JOB_ID = "next_day_sweep"


def local_today(tz: tzinfo | str, now: datetime | None = None) -> date:
    """The calendar date of now (default: the current instant) in tz."""
    if isinstance(tz, str):
        tz = ZoneInfo(tz)
    return (now or utc_now()).astimezone(tz).date()


def is_last_day_of_month(day: date) -> bool:
    first_of_next_month = (day.replace(day=1) + timedelta(days=32)).replace(day=1)
    return first_of_next_month - timedelta(days=1) == day


class ReminderScheduler:
    def __init__(
        self,
        engine: WorkflowEngine,
        app_settings: AppSettings,
        *,
        clock: Callable[[], datetime] = utc_now,
        log: logging.Logger | None = None,
    ):
        self._engine = engine
        self._settings = app_settings
        self._tz: tzinfo = ZoneInfo(app_settings.SCHEDULER_TIMEZONE)
        self._clock = clock
        self._log = log or logger
        self._scheduler = AsyncIOScheduler(timezone=self._tz)
        self._register_jobs()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def get_jobs(self):
        return self._scheduler.get_jobs()

    def _register_jobs(self) -> None:
        jobs = (
            (MID_MONTH_JOB_ID, self.run_mid_month_initiation, self._settings.CRON_SPEC_MID_MONTH),
            (END_MONTH_JOB_ID, self.run_end_month_check, self._settings.CRON_SPEC_END_MONTH_CHECK),
            (FIRST_REMINDER_JOB_ID, self.run_first_reminder_sweep, self._settings.CRON_SPEC_REMINDER_CHECK),
            (NEXT_DAY_JOB_ID, self.run_next_day_sweep, self._settings.CRON_SPEC_NEXT_DAY_CHECK),
        )
        for job_id, func, spec in jobs:
            self._scheduler.add_job(
                func,
                CronTrigger.from_crontab(spec, timezone=self._tz),
                id=job_id,
                name=job_id,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            self._log.info("Scheduled %s with cron '%s' (%s)", job_id, spec, self._settings.SCHEDULER_TIMEZONE)

    def start(self) -> None:
        """Must be called from inside the running event loop."""
        if not self._scheduler.running:
            self._scheduler.start()
            self._log.info("Reminder scheduler started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            self._log.info("Reminder scheduler stopped")

    def today(self) -> date:
        return local_today(self._tz, self._clock())

    # ---------- Job bodies ----------

    async def run_mid_month_initiation(self) -> Any:
        today = self.today()
        return await self._run(
            MID_MONTH_JOB_ID,
            lambda: self._engine.initiate(CycleType.MID_MONTH, today),
            self._settings.INITIATION_TIMEOUT_SECONDS,
        )

    async def run_end_month_check(self) -> Any:
        today = self.today()
        if not is_last_day_of_month(today):
            self._log.debug("%s: %s is not the last day of the month", END_MONTH_JOB_ID, today)
            return None
        return await self._run(
            END_MONTH_JOB_ID,
            lambda: self._engine.initiate(CycleType.END_MONTH, today),
            self._settings.INITIATION_TIMEOUT_SECONDS,
        )

    async def run_first_reminder_sweep(self) -> Any:
        return await self._run(
            FIRST_REMINDER_JOB_ID,
            self._engine.sweep_first_reminder,
            self._settings.SWEEP_TIMEOUT_SECONDS,
        )

    async def run_next_day_sweep(self) -> Any:
        return await self._run(
            NEXT_DAY_JOB_ID,
            self._engine.sweep_next_day,
            self._settings.NEXT_DAY_SWEEP_TIMEOUT_SECONDS,
        )

    async def _run(self, job_id: str, operation: Callable[[], Awaitable[Any]], timeout: float) -> Any:
        """
        Run one job body under a deadline. Unprocessed rows stay due in the
        store, so a timed-out or failed run is simply picked up next firing.
        """
        try:
            result = await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError:
            self._log.error("Job %s timed out after %.0fs", job_id, timeout)
            return None
        except Exception:
            self._log.exception("Job %s failed", job_id)
            return None
        self._log.debug("Job %s finished: %s", job_id, result)
        return result
