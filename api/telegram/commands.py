# api/telegram/commands.py
"""
Replies to the chat commands the bot understands. The reply depends on who
asks: the manager, an active teacher, an inactive teacher, or a stranger.
Roster commands are answered for the manager only.
"""
import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from telegram import User

from core.errors import TransientIOError
from api.notifications.repository import RosterDirectory
from .admin_commands import ADMIN_COMMANDS, NOT_AUTHORIZED_TEXT, run_admin_command

logger = logging.getLogger(__name__)

MANAGER_START_TEXT = "Hello, {first_name}! I'm up and running. Use /help to see what I can do."
TEACHER_START_TEXT = (
    "Hello, {first_name}! I'm the report reminder bot. "
    "I will message you when it's time to fill in your tables."
)
INACTIVE_TEACHER_TEXT = "Your teacher account is inactive. Please contact the administrator."
STRANGER_START_TEXT = (
    "Hello! I'm the report reminder bot for teachers. "
    "If you are a teacher, please ask the administrator to add you."
)
LOOKUP_FAILED_TEXT = "Something went wrong while checking your status. Please try again later."

MANAGER_HELP_TEXT = (
    "You receive a message every time a teacher confirms all tables for a cycle.\n\n"
    "Roster commands:\n"
    "/add_teacher <telegram_id> <first_name> [last_name] - add a teacher\n"
    "/remove_teacher <telegram_id> - stop notifying a teacher\n"
    "/list_teachers [active|all] - list teachers (active by default)\n\n"
    "The same is available through the admin API under /api/v1/teachers, "
    "and GET /api/v1/dashboard/cycles/<cycle_id> shows the progress of a cycle.\n\n"
    "/help - show this message."
)
TEACHER_HELP_TEXT = (
    "Twice a month (on the 15th and on the last day of the month) I will ask whether "
    "your tables are filled in. Please answer with the 'Yes' or 'No' buttons under each message.\n\n"
    "If you answer 'No', I will remind you in an hour. If you don't answer, "
    "I will remind you the next day.\n\n"
    "/help - show this message."
)
STRANGER_HELP_TEXT = (
    "There are no commands available to you. If you are a teacher waiting for "
    "notifications, please ask the administrator to add you."
)

KNOWN_COMMANDS = ("/start", "/help") + ADMIN_COMMANDS


def parse_command(text: str | None) -> tuple[str, list[str]] | None:
    """'/help@SomeBot extra' -> ('/help', ['extra']); None when the text is not a command."""
    if not text or not text.startswith("/"):
        return None
    head, *args = text.split()
    command = head.split("@", 1)[0].lower()
    return (command, args) if command in KNOWN_COMMANDS else None


async def reply_for_command(
    command: str,
    args: Sequence[str],
    sender: User,
    roster: RosterDirectory,
    manager_chat_id: int | None,
    session_factory: async_sessionmaker[AsyncSession],
) -> str:
    is_manager = manager_chat_id is not None and sender.id == manager_chat_id

    if command in ADMIN_COMMANDS:
        if not is_manager:
            logger.warning("Telegram user %s tried %s without manager rights", sender.id, command)
            return NOT_AUTHORIZED_TEXT
        return await run_admin_command(command, args, session_factory)

    if is_manager:
        return MANAGER_START_TEXT.format(first_name=sender.first_name) if command == "/start" else MANAGER_HELP_TEXT

    try:
        teacher = await roster.get_by_telegram_id(sender.id)
    except TransientIOError:
        logger.exception("Roster lookup for telegram user %s failed", sender.id)
        return LOOKUP_FAILED_TEXT

    if teacher is None:
        return STRANGER_START_TEXT if command == "/start" else STRANGER_HELP_TEXT
    if not teacher.is_active:
        return INACTIVE_TEACHER_TEXT
    if command == "/start":
        return TEACHER_START_TEXT.format(first_name=teacher.first_name)
    return TEACHER_HELP_TEXT
