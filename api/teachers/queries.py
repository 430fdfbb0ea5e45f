# api/teachers/queries.py
"""
SQLAlchemy query builders for the teacher roster.
"""
from sqlalchemy import select

from db_models.teacher import Teacher


def select_teacher_by_id(teacher_id: int):
    """Select a teacher by its ID."""
    return select(Teacher).where(Teacher.id == teacher_id)


def select_teacher_by_telegram_id(telegram_id: int):
    """Select a teacher by Telegram user id."""
    return select(Teacher).where(Teacher.telegram_id == telegram_id)


def select_teachers(active_only: bool = False):
    """Select teachers in roster order (oldest entry first)."""
    stmt = select(Teacher)
    if active_only:
        stmt = stmt.where(Teacher.is_active.is_(True))
    return stmt.order_by(Teacher.id.asc())
