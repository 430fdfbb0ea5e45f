# api/cycles/queries.py
"""
SQLAlchemy query builders for notification cycle operations.
"""
from collections.abc import Sequence
from datetime import date

from sqlalchemy import select, func, distinct

from db_models.notification_cycle import NotificationCycle
from db_models.report_status import ReportStatus
from api.notifications.constants import InteractionStatus


def select_cycle_by_id(cycle_id: int):
    """Select a cycle by its ID."""
    return select(NotificationCycle).where(NotificationCycle.id == cycle_id)


def select_cycle_by_date_and_type(cycle_date: date, cycle_type: str):
    """Select a cycle by its business key."""
    return select(NotificationCycle).where(
        NotificationCycle.cycle_date == cycle_date,
        NotificationCycle.cycle_type == cycle_type,
    )


def select_all_cycles(limit: int | None = None):
    """Select cycles, most recent cycle date first."""
    stmt = select(NotificationCycle).order_by(
        NotificationCycle.cycle_date.desc(),
        NotificationCycle.id.desc(),
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return stmt


def count_statuses_by_status(cycle_id: int):
    """Row count per interaction status within a cycle."""
    return (
        select(ReportStatus.status, func.count(ReportStatus.id))
        .where(ReportStatus.cycle_id == cycle_id)
        .group_by(ReportStatus.status)
    )


def count_teachers_in_cycle(cycle_id: int):
    """Number of distinct teachers asked in a cycle."""
    return (
        select(func.count(distinct(ReportStatus.teacher_id)))
        .where(ReportStatus.cycle_id == cycle_id)
    )


def select_completed_teacher_ids(cycle_id: int, expected_keys: Sequence[str]):
    """Teachers that answered "Yes" to every expected key of the cycle."""
    return (
        select(ReportStatus.teacher_id)
        .where(
            ReportStatus.cycle_id == cycle_id,
            ReportStatus.status == InteractionStatus.ANSWERED_YES.value,
            ReportStatus.report_key.in_(list(expected_keys)),
        )
        .group_by(ReportStatus.teacher_id)
        .having(func.count(distinct(ReportStatus.report_key)) == len(expected_keys))
        .order_by(ReportStatus.teacher_id.asc())
    )
