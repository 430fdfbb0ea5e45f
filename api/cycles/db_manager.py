# api/cycles/db_manager.py
"""
Business logic for notification cycle management.

Cycles are created once per (cycle_date, cycle_type) and never updated or
deleted. CycleManager is the only entry point the workflow uses.
"""
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.errors import ConflictError, NotFoundError
from db_models.notification_cycle import NotificationCycle
from api.notifications.constants import CycleType, InteractionStatus, expected_report_keys, parse_cycle_type
from api.notifications.db_manager import translate_db_errors
from . import queries

logger = logging.getLogger(__name__)


class CycleNotFoundError(NotFoundError):
    """Raised when cycle doesn't exist."""
    pass


class DuplicateCycleError(ConflictError):
    """Raised when a cycle for (cycle_date, cycle_type) already exists."""
    pass


def _as_date(value: date | datetime) -> date:
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    return value


async def get_cycle_by_id(db: AsyncSession, cycle_id: int) -> NotificationCycle:
    """Get a cycle by ID. Raises CycleNotFoundError if not found."""
    result = await db.execute(queries.select_cycle_by_id(cycle_id))
    cycle = result.scalar_one_or_none()
    if cycle is None:
        raise CycleNotFoundError(f"Cycle {cycle_id} not found")
    return cycle


async def get_cycle_by_date_and_type(
    db: AsyncSession,
    cycle_date: date,
    cycle_type: str,
) -> NotificationCycle | None:
    result = await db.execute(queries.select_cycle_by_date_and_type(cycle_date, cycle_type))
    return result.scalar_one_or_none()


async def create_cycle(db: AsyncSession, cycle_date: date, cycle_type: str) -> NotificationCycle:
    """
    Insert a new cycle.

    Raises:
        DuplicateCycleError: If the (cycle_date, cycle_type) pair already exists
    """
    cycle = NotificationCycle(cycle_date=cycle_date, cycle_type=cycle_type)
    db.add(cycle)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateCycleError(
            f"Cycle {cycle_type} for {cycle_date.isoformat()} already exists"
        ) from exc
    await db.refresh(cycle)
    return cycle


async def list_cycles(db: AsyncSession, limit: int | None = None) -> list[NotificationCycle]:
    """Return cycles ordered by cycle_date desc."""
    result = await db.execute(queries.select_all_cycles(limit))
    return list(result.scalars().all())


async def get_completed_teacher_ids(db: AsyncSession, cycle: NotificationCycle) -> list[int]:
    keys = [k.value for k in expected_report_keys(cycle.cycle_type)]
    result = await db.execute(queries.select_completed_teacher_ids(cycle.id, keys))
    return list(result.scalars().all())


async def get_cycle_stats(db: AsyncSession, cycle_id: int) -> dict:
    """
    Get answer statistics for a cycle.

    Returns dict with per-status row counts, the number of teachers asked and
    how many of them confirmed every table.
    """
    cycle = await get_cycle_by_id(db, cycle_id)

    result = await db.execute(queries.count_statuses_by_status(cycle_id))
    status_counts = {s.value: 0 for s in InteractionStatus}
    for status_value, count in result.all():
        status_counts[status_value] = count

    result = await db.execute(queries.count_teachers_in_cycle(cycle_id))
    total_teachers = result.scalar() or 0

    completed = len(await get_completed_teacher_ids(db, cycle))
    completion = (completed / total_teachers * 100) if total_teachers > 0 else 0.0

    return {
        "cycle_id": cycle.id,
        "cycle_date": cycle.cycle_date,
        "cycle_type": cycle.cycle_type,
        "total_teachers": total_teachers,
        "total_statuses": sum(status_counts.values()),
        "status_counts": status_counts,
        "completed_teachers": completed,
        "completion_percentage": round(completion, 2),
    }


class SqlCycleRepository:
    """CycleRepository over short-lived sessions from a session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_by_id(self, cycle_id: int) -> NotificationCycle:
        with translate_db_errors("get cycle"):
            async with self._session_factory() as db:
                return await get_cycle_by_id(db, cycle_id)

    async def get_by_date_and_type(self, cycle_date: date, cycle_type: str) -> NotificationCycle | None:
        with translate_db_errors("get cycle by date and type"):
            async with self._session_factory() as db:
                return await get_cycle_by_date_and_type(db, cycle_date, cycle_type)

    async def create(self, cycle_date: date, cycle_type: str) -> NotificationCycle:
        with translate_db_errors("create cycle"):
            async with self._session_factory() as db:
                return await create_cycle(db, cycle_date, cycle_type)


class CycleManager:
    """Resolves the cycle for a trigger event, creating it exactly once."""

    def __init__(self, repository, log: logging.Logger | None = None):
        self._repository = repository
        self._log = log or logger

    async def resolve(self, cycle_date: date | datetime, cycle_type: CycleType | str) -> NotificationCycle:
        """
        Return the cycle for (cycle_date, cycle_type), creating it if needed.

        Overlapping triggers for the same event may race on creation; the
        loser re-reads and returns the winner's row.
        """
        cycle_date = _as_date(cycle_date)
        type_value = parse_cycle_type(cycle_type).value

        cycle = await self._repository.get_by_date_and_type(cycle_date, type_value)
        if cycle is not None:
            return cycle

        try:
            cycle = await self._repository.create(cycle_date, type_value)
        except DuplicateCycleError:
            cycle = await self._repository.get_by_date_and_type(cycle_date, type_value)
            if cycle is None:
                raise
            self._log.info("Cycle %s %s created concurrently, using id %s", type_value, cycle_date, cycle.id)
            return cycle

        self._log.info("Created cycle %s (%s %s)", cycle.id, type_value, cycle_date)
        return cycle

    async def get(self, cycle_id: int) -> NotificationCycle:
        """Raises CycleNotFoundError if the cycle doesn't exist."""
        return await self._repository.get_by_id(cycle_id)
