# core/container.py
"""
Builds the object graph the app runs on. Everything the workflow needs is
passed in explicitly here; nothing reads a global at call time.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.base import AppSettings
from api.cycles.db_manager import CycleManager, SqlCycleRepository
from api.notifications.db_manager import SqlStatusStore
from api.notifications.workflow import WorkflowEngine
from api.teachers.db_manager import SqlRosterDirectory
from api.telegram.client import TelegramClient
from scheduler.reminder_scheduler import ReminderScheduler

logger = logging.getLogger(__name__)


@dataclass
class Services:
    session_factory: async_sessionmaker[AsyncSession]
    cycles: CycleManager
    store: SqlStatusStore
    roster: SqlRosterDirectory
    telegram: TelegramClient
    engine: WorkflowEngine
    scheduler: ReminderScheduler


def build_services(
    app_settings: AppSettings,
    session_factory: async_sessionmaker[AsyncSession],
    telegram: TelegramClient | None = None,
) -> Services:
    telegram = telegram or TelegramClient(
        app_settings.TELEGRAM_TOKEN,
        api_base=app_settings.TELEGRAM_API_BASE,
        timeout=app_settings.TELEGRAM_TIMEOUT_SECONDS,
    )
    cycles = CycleManager(SqlCycleRepository(session_factory), log=logging.getLogger("api.cycles"))
    store = SqlStatusStore(session_factory, log=logging.getLogger("api.notifications.store"))
    roster = SqlRosterDirectory(session_factory)
    engine = WorkflowEngine(
        cycles,
        store,
        roster,
        telegram,
        manager_chat_id=app_settings.MANAGER_TELEGRAM_ID,
        reminder_delay=timedelta(minutes=app_settings.REMINDER_DELAY_MINUTES),
        tz=ZoneInfo(app_settings.SCHEDULER_TIMEZONE),
        log=logging.getLogger("api.notifications.workflow"),
    )
    scheduler = ReminderScheduler(engine, app_settings, log=logging.getLogger("scheduler"))
    logger.info(
        "Services built (manager chat %s, reminder delay %d min, tz %s)",
        app_settings.MANAGER_TELEGRAM_ID, app_settings.REMINDER_DELAY_MINUTES, app_settings.SCHEDULER_TIMEZONE,
    )
    return Services(
        session_factory=session_factory,
        cycles=cycles,
        store=store,
        roster=roster,
        telegram=telegram,
        engine=engine,
        scheduler=scheduler,
    )


async def close_services(services: Services) -> None:
    services.scheduler.shutdown()
    await services.telegram.aclose()
