# api/teachers/db_manager.py
"""
Business logic for the teacher roster: add, deactivate, list.

Removing a teacher is a soft delete; their past report statuses stay.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.errors import ConflictError, NotFoundError
from db_models.teacher import Teacher
from api.notifications.db_manager import translate_db_errors
from . import queries

logger = logging.getLogger(__name__)


class TeacherNotFoundError(NotFoundError):
    """Raised when teacher doesn't exist."""
    pass


class DuplicateTeacherError(ConflictError):
    """Raised when a teacher with the Telegram id is already on the roster."""
    pass


class TeacherAlreadyInactiveError(ConflictError):
    """Raised when deactivating a teacher that is already inactive."""
    pass


async def get_teacher_by_id(db: AsyncSession, teacher_id: int) -> Teacher:
    """Get a teacher by ID. Raises TeacherNotFoundError if not found."""
    result = await db.execute(queries.select_teacher_by_id(teacher_id))
    teacher = result.scalar_one_or_none()
    if teacher is None:
        raise TeacherNotFoundError(f"Teacher {teacher_id} not found")
    return teacher


async def get_teacher_by_telegram_id(db: AsyncSession, telegram_id: int) -> Teacher | None:
    result = await db.execute(queries.select_teacher_by_telegram_id(telegram_id))
    return result.scalar_one_or_none()


async def list_teachers(db: AsyncSession, active_only: bool = False) -> list[Teacher]:
    result = await db.execute(queries.select_teachers(active_only=active_only))
    return list(result.scalars().all())


async def add_teacher(
    db: AsyncSession,
    telegram_id: int,
    first_name: str,
    last_name: str | None = None,
) -> Teacher:
    """
    Add a new active teacher to the roster.

    Args:
        db: Database session
        telegram_id: Telegram user id of the teacher
        first_name: Used in the greeting of every question
        last_name: Optional, shown to the manager

    Raises:
        DuplicateTeacherError: If the Telegram id is already registered
    """
    existing = await get_teacher_by_telegram_id(db, telegram_id)
    if existing is not None:
        raise DuplicateTeacherError(f"Teacher with Telegram id {telegram_id} already exists")

    teacher = Teacher(
        telegram_id=telegram_id,
        first_name=first_name.strip(),
        last_name=(last_name or "").strip() or None,
        is_active=True,
    )
    db.add(teacher)
    try:
        await db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent add
        await db.rollback()
        raise DuplicateTeacherError(f"Teacher with Telegram id {telegram_id} already exists") from exc
    await db.refresh(teacher)
    logger.info("Teacher %s added (telegram_id=%s)", teacher.id, telegram_id)
    return teacher


async def deactivate_teacher(db: AsyncSession, telegram_id: int) -> Teacher:
    """
    Deactivate a teacher. Inactive teachers are left out of new cycles.

    Raises:
        TeacherNotFoundError: If no teacher has this Telegram id
        TeacherAlreadyInactiveError: If the teacher is already inactive
    """
    teacher = await get_teacher_by_telegram_id(db, telegram_id)
    if teacher is None:
        raise TeacherNotFoundError(f"Teacher with Telegram id {telegram_id} not found")
    if not teacher.is_active:
        raise TeacherAlreadyInactiveError(f"Teacher with Telegram id {telegram_id} is already inactive")

    teacher.is_active = False
    await db.commit()
    await db.refresh(teacher)
    logger.info("Teacher %s deactivated (telegram_id=%s)", teacher.id, telegram_id)
    return teacher


class SqlRosterDirectory:
    """RosterDirectory over short-lived sessions from a session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_active(self) -> list[Teacher]:
        with translate_db_errors("list active teachers"):
            async with self._session_factory() as db:
                return await list_teachers(db, active_only=True)

    async def get(self, teacher_id: int) -> Teacher:
        with translate_db_errors("get teacher"):
            async with self._session_factory() as db:
                return await get_teacher_by_id(db, teacher_id)

    async def get_by_telegram_id(self, telegram_id: int) -> Teacher | None:
        with translate_db_errors("get teacher by telegram id"):
            async with self._session_factory() as db:
                return await get_teacher_by_telegram_id(db, telegram_id)
