# api/dashboard/queries.py
"""
SQLAlchemy query builders for dashboard statistics.
"""
from sqlalchemy import select, func

from db_models.notification_cycle import NotificationCycle
from db_models.report_status import ReportStatus
from db_models.teacher import Teacher


def count_teachers(active_only: bool = False):
    """Count teachers on the roster."""
    stmt = select(func.count(Teacher.id))
    if active_only:
        stmt = stmt.where(Teacher.is_active.is_(True))
    return stmt


def count_total_cycles():
    """Count notification cycles."""
    return select(func.count(NotificationCycle.id))


def select_cycle_rows_with_teachers(cycle_id: int):
    """Every status row of a cycle with its teacher, grouped by teacher."""
    return (
        select(ReportStatus, Teacher)
        .join(Teacher, Teacher.id == ReportStatus.teacher_id)
        .where(ReportStatus.cycle_id == cycle_id)
        .order_by(Teacher.id.asc(), ReportStatus.id.asc())
    )
