# api/dashboard/db_manager.py
"""
Business logic for dashboard statistics.
"""
from sqlalchemy.ext.asyncio import AsyncSession

from api.cycles import db_manager as cycle_db_manager
from api.cycles.db_manager import CycleNotFoundError  # noqa: F401
from api.notifications.constants import InteractionStatus, expected_report_keys
from . import queries


async def get_overview_stats(db: AsyncSession, recent_limit: int = 5) -> dict:
    """
    Roster size, cycle count and the stats of the most recent cycles.
    """
    result = await db.execute(queries.count_teachers())
    total_teachers = result.scalar() or 0

    result = await db.execute(queries.count_teachers(active_only=True))
    active_teachers = result.scalar() or 0

    result = await db.execute(queries.count_total_cycles())
    total_cycles = result.scalar() or 0

    recent = await cycle_db_manager.list_cycles(db, limit=recent_limit)
    recent_cycles = [await cycle_db_manager.get_cycle_stats(db, c.id) for c in recent]

    return {
        "total_teachers": total_teachers,
        "active_teachers": active_teachers,
        "total_cycles": total_cycles,
        "recent_cycles": recent_cycles,
    }


async def get_cycle_dashboard(db: AsyncSession, cycle_id: int) -> dict:
    """
    Per-teacher progress for one cycle.

    For each teacher asked in the cycle: the status of every expected table,
    the first table still waiting for a "Yes", and whether they are done.
    """
    cycle = await cycle_db_manager.get_cycle_by_id(db, cycle_id)
    keys = [k.value for k in expected_report_keys(cycle.cycle_type)]

    result = await db.execute(queries.select_cycle_rows_with_teachers(cycle_id))
    progress: dict[int, dict] = {}
    status_counts = {s.value: 0 for s in InteractionStatus}
    for row, teacher in result.all():
        status_counts[row.status] = status_counts.get(row.status, 0) + 1
        entry = progress.setdefault(teacher.id, {
            "teacher_id": teacher.id,
            "telegram_id": teacher.telegram_id,
            "name": teacher.display_name,
            "is_active": teacher.is_active,
            "statuses": {},
            "response_attempts": 0,
        })
        entry["statuses"][row.report_key] = row.status
        entry["response_attempts"] += row.response_attempts or 0

    teachers = []
    for entry in progress.values():
        pending = [k for k in keys if entry["statuses"].get(k) != InteractionStatus.ANSWERED_YES.value]
        entry["completed"] = not pending
        entry["waiting_on"] = pending[0] if pending else None
        teachers.append(entry)

    completed = [t["name"] for t in teachers if t["completed"]]
    completion = (len(completed) / len(teachers) * 100) if teachers else 0.0

    return {
        "cycle_id": cycle.id,
        "cycle_date": cycle.cycle_date,
        "cycle_type": cycle.cycle_type,
        "expected_report_keys": keys,
        "status_counts": status_counts,
        "total_teachers": len(teachers),
        "completed_teachers": completed,
        "completion_percentage": round(completion, 2),
        "teachers": teachers,
    }
