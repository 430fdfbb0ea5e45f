# api/notifications/queries.py
"""
SQLAlchemy query builders for report status operations.
"""
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select, update, and_

from db_models.report_status import ReportStatus
from .constants import InteractionStatus, NEXT_DAY_TARGET_STATUSES


def select_status_by_id(status_id: int):
    """Select a report status row by its ID."""
    return select(ReportStatus).where(ReportStatus.id == status_id)


def select_status_by_composite_key(teacher_id: int, cycle_id: int, report_key: str):
    """Select the single row for (teacher, cycle, report_key)."""
    return select(ReportStatus).where(
        ReportStatus.teacher_id == teacher_id,
        ReportStatus.cycle_id == cycle_id,
        ReportStatus.report_key == report_key,
    )


def select_statuses_for_cycle(cycle_id: int):
    """All rows of a cycle, grouped by teacher then id."""
    return (
        select(ReportStatus)
        .where(ReportStatus.cycle_id == cycle_id)
        .order_by(ReportStatus.teacher_id.asc(), ReportStatus.id.asc())
    )


def select_statuses_by_status(cycle_id: int, status: str):
    """Rows of a cycle currently in the given status."""
    return (
        select(ReportStatus)
        .where(ReportStatus.cycle_id == cycle_id, ReportStatus.status == status)
        .order_by(ReportStatus.id.asc())
    )


def select_statuses_for_teacher_cycle(teacher_id: int, cycle_id: int, report_keys: Sequence[str] | None = None):
    """Rows of one teacher in one cycle, optionally limited to some keys."""
    stmt = select(ReportStatus).where(
        ReportStatus.teacher_id == teacher_id,
        ReportStatus.cycle_id == cycle_id,
    )
    if report_keys is not None:
        stmt = stmt.where(ReportStatus.report_key.in_(list(report_keys)))
    return stmt.order_by(ReportStatus.id.asc())


def select_due_first_reminders(now: datetime):
    """
    The 1-hour escalation queue: rows answered "No" whose reminder time has
    come. Read as a poll on every sweep.
    """
    return (
        select(ReportStatus)
        .where(
            ReportStatus.status == InteractionStatus.ANSWERED_NO.value,
            ReportStatus.remind_at.is_not(None),
            ReportStatus.remind_at <= now,
        )
        .order_by(ReportStatus.remind_at.asc(), ReportStatus.id.asc())
    )


def select_stalled_from_previous_day(day_start: datetime, day_end: datetime):
    """
    Non-terminal rows last notified within [day_start, day_end).
    """
    return (
        select(ReportStatus)
        .where(
            ReportStatus.status.in_([s.value for s in NEXT_DAY_TARGET_STATUSES]),
            ReportStatus.last_notified_at.is_not(None),
            ReportStatus.last_notified_at >= day_start,
            ReportStatus.last_notified_at < day_end,
        )
        .order_by(ReportStatus.last_notified_at.asc(), ReportStatus.id.asc())
    )


def claim_unnotified_row(status_id: int, claimed_at: datetime):
    """
    Stamp last_notified_at on a pending row nobody has asked yet. Matches no
    row once another initiation got there first.
    """
    return (
        update(ReportStatus)
        .where(
            ReportStatus.id == status_id,
            ReportStatus.status == InteractionStatus.PENDING_QUESTION.value,
            ReportStatus.last_notified_at.is_(None),
        )
        .values(last_notified_at=claimed_at, updated_at=claimed_at)
        .execution_options(synchronize_session=False)
    )


def release_claimed_row(status_id: int, claimed_at: datetime, updated_at: datetime):
    """Undo claim_unnotified_row while the row still carries that claim."""
    return (
        update(ReportStatus)
        .where(
            ReportStatus.id == status_id,
            ReportStatus.status == InteractionStatus.PENDING_QUESTION.value,
            ReportStatus.last_notified_at == claimed_at,
        )
        .values(last_notified_at=None, updated_at=updated_at)
        .execution_options(synchronize_session=False)
    )


def update_status_row(row: ReportStatus, updated_at: datetime, expected_status: str | None = None):
    """
    Full replace of the mutable fields. With expected_status the write only
    applies while the stored status still matches.
    """
    conditions = [ReportStatus.id == row.id]
    if expected_status is not None:
        conditions.append(ReportStatus.status == expected_status)
    return (
        update(ReportStatus)
        .where(and_(*conditions))
        .values(
            status=row.status,
            last_notified_at=row.last_notified_at,
            remind_at=row.remind_at,
            response_attempts=row.response_attempts,
            updated_at=updated_at,
        )
        .execution_options(synchronize_session=False)
    )
