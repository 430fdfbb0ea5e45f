# api/notifications/db_manager.py
"""
SQL-backed StatusStore: data access for teacher report statuses.

Pure data access, no workflow rules. Every call opens its own short-lived
session, so concurrent scheduler jobs and webhook callbacks never share one.
"""
import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.errors import ConflictError, NotFoundError, TransientIOError
from db_models.report_status import ReportStatus
from .constants import InteractionStatus
from . import queries

logger = logging.getLogger(__name__)

_COMPOSITE_KEY = ("teacher_id", "cycle_id", "report_key")


class ReportStatusNotFoundError(NotFoundError):
    """Raised when a report status row doesn't exist."""
    pass


class DuplicateReportStatusError(ConflictError):
    """Raised when (teacher, cycle, report_key) already has a row."""
    pass


class StaleStatusError(ConflictError):
    """Raised when a guarded update finds the row in another status."""
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def translate_db_errors(operation: str) -> Iterator[None]:
    """Map driver failures onto the service error taxonomy."""
    try:
        yield
    except IntegrityError:
        raise
    except (SQLAlchemyError, OSError) as exc:
        raise TransientIOError(f"Database error during {operation}: {exc}") from exc


def _insert_ignoring_duplicates(dialect_name: str):
    """INSERT ... ON CONFLICT DO NOTHING for the dialects we deploy on."""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"bulk_create does not support dialect {dialect_name!r}")
    return insert(ReportStatus).on_conflict_do_nothing(index_elements=list(_COMPOSITE_KEY))


class SqlStatusStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
        log: logging.Logger | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._log = log or logger

    async def create(self, row: ReportStatus) -> ReportStatus:
        with translate_db_errors("create report status"):
            async with self._session_factory() as db:
                db.add(row)
                try:
                    await db.commit()
                except IntegrityError as exc:
                    await db.rollback()
                    raise DuplicateReportStatusError(
                        f"Report status for teacher {row.teacher_id}, cycle {row.cycle_id}, "
                        f"key {row.report_key} already exists"
                    ) from exc
                await db.refresh(row)
                return row

    async def bulk_create(self, rows: Sequence[ReportStatus]) -> int:
        """
        Insert all rows in one transaction. Rows whose composite key already
        exists are skipped rather than failing the batch.
        """
        if not rows:
            return 0
        values = [
            {
                "teacher_id": r.teacher_id,
                "cycle_id": r.cycle_id,
                "report_key": r.report_key,
                "status": r.status,
                "last_notified_at": r.last_notified_at,
                "remind_at": r.remind_at,
                "response_attempts": r.response_attempts or 0,
            }
            for r in rows
        ]
        with translate_db_errors("bulk create report statuses"):
            async with self._session_factory() as db:
                async with db.begin():
                    stmt = (
                        _insert_ignoring_duplicates(db.bind.dialect.name)
                        .values(values)
                        .returning(ReportStatus.id)
                    )
                    result = await db.execute(stmt)
                    inserted = len(result.all())
        if inserted < len(values):
            self._log.info(
                "bulk_create: %d of %d report statuses already existed",
                len(values) - inserted, len(values),
            )
        return inserted

    async def get_by_id(self, status_id: int) -> ReportStatus:
        """Get a row by ID. Raises ReportStatusNotFoundError if not found."""
        with translate_db_errors("get report status"):
            async with self._session_factory() as db:
                result = await db.execute(queries.select_status_by_id(status_id))
                row = result.scalar_one_or_none()
        if row is None:
            raise ReportStatusNotFoundError(f"Report status {status_id} not found")
        return row

    async def get_by_composite_key(self, teacher_id: int, cycle_id: int, report_key: str) -> ReportStatus | None:
        with translate_db_errors("get report status by key"):
            async with self._session_factory() as db:
                stmt = queries.select_status_by_composite_key(teacher_id, cycle_id, report_key)
                result = await db.execute(stmt)
                return result.scalar_one_or_none()

    async def update(self, row: ReportStatus, expected_status: str | None = None) -> ReportStatus:
        """
        Persist the mutable fields of row.

        Raises:
            ReportStatusNotFoundError: If the row no longer exists
            StaleStatusError: If expected_status is given and the stored status differs
        """
        now = self._clock()
        with translate_db_errors("update report status"):
            async with self._session_factory() as db:
                result = await db.execute(queries.update_status_row(row, now, expected_status))
                if result.rowcount == 0:
                    current = (await db.execute(queries.select_status_by_id(row.id))).scalar_one_or_none()
                    await db.rollback()
                    if current is None:
                        raise ReportStatusNotFoundError(f"Report status {row.id} not found")
                    raise StaleStatusError(
                        f"Report status {row.id} is {current.status}, expected {expected_status}"
                    )
                await db.commit()
        row.updated_at = now
        return row

    async def claim_first_question(self, status_id: int, claimed_at: datetime) -> bool:
        """
        Reserve the first question of a row for sending. True only for the
        caller whose write stamped last_notified_at; overlapping initiations
        get False and must not send.
        """
        with translate_db_errors("claim report status"):
            async with self._session_factory() as db:
                result = await db.execute(queries.claim_unnotified_row(status_id, claimed_at))
                await db.commit()
        return result.rowcount == 1

    async def release_claim(self, status_id: int, claimed_at: datetime) -> bool:
        """Clear a claim whose send failed, so a re-trigger asks again."""
        with translate_db_errors("release report status claim"):
            async with self._session_factory() as db:
                result = await db.execute(queries.release_claimed_row(status_id, claimed_at, self._clock()))
                await db.commit()
        return result.rowcount == 1

    async def list_by_cycle(self, cycle_id: int) -> list[ReportStatus]:
        with translate_db_errors("list report statuses"):
            async with self._session_factory() as db:
                result = await db.execute(queries.select_statuses_for_cycle(cycle_id))
                return list(result.scalars().all())

    async def list_by_status(self, cycle_id: int, status: str) -> list[ReportStatus]:
        with translate_db_errors("list report statuses by status"):
            async with self._session_factory() as db:
                result = await db.execute(queries.select_statuses_by_status(cycle_id, status))
                return list(result.scalars().all())

    async def list_by_teacher_and_cycle(self, teacher_id: int, cycle_id: int) -> list[ReportStatus]:
        with translate_db_errors("list teacher report statuses"):
            async with self._session_factory() as db:
                result = await db.execute(queries.select_statuses_for_teacher_cycle(teacher_id, cycle_id))
                return list(result.scalars().all())

    async def list_due_first_reminders(self, now: datetime) -> list[ReportStatus]:
        with translate_db_errors("list due reminders"):
            async with self._session_factory() as db:
                result = await db.execute(queries.select_due_first_reminders(now))
                return list(result.scalars().all())

    async def list_stalled_from_previous_day(self, day_start: datetime, day_end: datetime) -> list[ReportStatus]:
        with translate_db_errors("list stalled report statuses"):
            async with self._session_factory() as db:
                result = await db.execute(queries.select_stalled_from_previous_day(day_start, day_end))
                return list(result.scalars().all())

    async def all_confirmed(self, teacher_id: int, cycle_id: int, expected_keys: Sequence[str]) -> bool:
        """
        True when every expected key has a row and every such row is
        ANSWERED_YES. A missing row counts as unconfirmed.
        """
        keys = [str(getattr(k, "value", k)) for k in expected_keys]
        with translate_db_errors("check confirmations"):
            async with self._session_factory() as db:
                stmt = queries.select_statuses_for_teacher_cycle(teacher_id, cycle_id, keys)
                rows = list((await db.execute(stmt)).scalars().all())
        by_key = {r.report_key: r.status for r in rows}
        return all(by_key.get(k) == InteractionStatus.ANSWERED_YES.value for k in keys)
