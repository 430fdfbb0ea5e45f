# api/telegram/admin_commands.py
"""
Roster management from the manager's chat: /add_teacher, /remove_teacher
and /list_teachers. Same operations as the /teachers admin endpoints, run
through the teachers db_manager on a session of their own.
"""
import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.errors import TransientIOError
from api.notifications.db_manager import translate_db_errors
from api.teachers.db_manager import (
    DuplicateTeacherError,
    TeacherAlreadyInactiveError,
    TeacherNotFoundError,
    add_teacher,
    deactivate_teacher,
    list_teachers,
)

logger = logging.getLogger(__name__)

ADD_TEACHER = "/add_teacher"
REMOVE_TEACHER = "/remove_teacher"
LIST_TEACHERS = "/list_teachers"
ADMIN_COMMANDS = (ADD_TEACHER, REMOVE_TEACHER, LIST_TEACHERS)

NOT_AUTHORIZED_TEXT = "Error: you are not allowed to run this command."
ADD_USAGE_TEXT = "Invalid format. Use: /add_teacher <telegram_id> <first_name> [last_name]"
REMOVE_USAGE_TEXT = "Invalid format. Use: /remove_teacher <telegram_id>"
LIST_USAGE_TEXT = "Invalid argument. Use 'active' or 'all', or leave it empty to list active teachers."
INVALID_ID_TEXT = "Error: the Telegram id must be a number."
TEACHER_ADDED_TEXT = "Teacher {name} (Telegram id {telegram_id}) added."
TEACHER_EXISTS_TEXT = "Error: a teacher with Telegram id {telegram_id} already exists."
TEACHER_DEACTIVATED_TEXT = "Teacher {name} (Telegram id {telegram_id}) deactivated."
TEACHER_NOT_FOUND_TEXT = "No teacher with Telegram id {telegram_id}."
TEACHER_ALREADY_INACTIVE_TEXT = "Teacher with Telegram id {telegram_id} is already inactive."
NO_ACTIVE_TEACHERS_TEXT = "No active teachers."
NO_TEACHERS_TEXT = "The roster is empty."
ADMIN_FAILED_TEXT = "Something went wrong while updating the roster. Please try again later."

_LIST_TITLES = {"active": "Active teachers", "all": "All teachers"}


def _parse_telegram_id(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


async def _add(db: AsyncSession, args: Sequence[str]) -> str:
    if len(args) not in (2, 3):
        return ADD_USAGE_TEXT
    telegram_id = _parse_telegram_id(args[0])
    if telegram_id is None:
        return INVALID_ID_TEXT
    last_name = args[2] if len(args) == 3 else None
    try:
        teacher = await add_teacher(db, telegram_id, args[1], last_name)
    except DuplicateTeacherError:
        return TEACHER_EXISTS_TEXT.format(telegram_id=telegram_id)
    return TEACHER_ADDED_TEXT.format(name=teacher.display_name, telegram_id=teacher.telegram_id)


async def _remove(db: AsyncSession, args: Sequence[str]) -> str:
    if len(args) != 1:
        return REMOVE_USAGE_TEXT
    telegram_id = _parse_telegram_id(args[0])
    if telegram_id is None:
        return INVALID_ID_TEXT
    try:
        teacher = await deactivate_teacher(db, telegram_id)
    except TeacherNotFoundError:
        return TEACHER_NOT_FOUND_TEXT.format(telegram_id=telegram_id)
    except TeacherAlreadyInactiveError:
        return TEACHER_ALREADY_INACTIVE_TEXT.format(telegram_id=telegram_id)
    return TEACHER_DEACTIVATED_TEXT.format(name=teacher.display_name, telegram_id=teacher.telegram_id)


async def _list(db: AsyncSession, args: Sequence[str]) -> str:
    scope = args[0].lower() if args else "active"
    if len(args) > 1 or scope not in _LIST_TITLES:
        return LIST_USAGE_TEXT
    teachers = await list_teachers(db, active_only=scope == "active")
    if not teachers:
        return NO_ACTIVE_TEACHERS_TEXT if scope == "active" else NO_TEACHERS_TEXT
    lines = [f"{_LIST_TITLES[scope]}:"]
    for t in teachers:
        state = "active" if t.is_active else "inactive"
        lines.append(f"{t.telegram_id} - {t.display_name} ({state})")
    return "\n".join(lines)


_HANDLERS = {ADD_TEACHER: _add, REMOVE_TEACHER: _remove, LIST_TEACHERS: _list}


async def run_admin_command(
    command: str,
    args: Sequence[str],
    session_factory: async_sessionmaker[AsyncSession],
) -> str:
    """Run one roster command for the manager and return the reply text."""
    handler = _HANDLERS[command]
    try:
        with translate_db_errors(command):
            async with session_factory() as db:
                reply = await handler(db, args)
    except TransientIOError:
        logger.exception("Admin command %s failed", command)
        return ADMIN_FAILED_TEXT
    logger.info("Admin command %s %s: %s", command, " ".join(args), reply.splitlines()[0])
    return reply
