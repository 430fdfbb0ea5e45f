# api/telegram/views.py
"""
Telegram webhook: the ResponseIngress of the workflow.

Updates are parsed with python-telegram-bot. Button clicks are decoded into
(intent, report_status_id) and handed to the workflow engine. Chat commands
get role-aware replies. The endpoint answers 200 for every well-formed
update, otherwise Telegram keeps redelivering it.
"""
import logging

from fastapi import APIRouter, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from telegram import CallbackQuery, Message, Update

from core.deps import Engine, Roster, SessionFactory, Settings, Telegram
from core.errors import ServiceError, TransientIOError
from core.security import WEBHOOK_SECRET_HEADER, verify_webhook_secret
from api.notifications.repository import RosterDirectory
from api.notifications.responses import ResponseIntent, decode_response_token
from api.notifications.workflow import ResponseOutcome, WorkflowEngine
from .client import TelegramClient
from .commands import parse_command, reply_for_command
from .models import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])

UNKNOWN_ACTION_TEXT = "Unknown action."
PROCESSING_FAILED_TEXT = "Something went wrong. Please try again later."

CALLBACK_REPLIES: dict[tuple[ResponseIntent, ResponseOutcome], str] = {
    (ResponseIntent.YES, ResponseOutcome.RECORDED): "Answer 'Yes' accepted!",
    (ResponseIntent.YES, ResponseOutcome.COMPLETED): "Answer 'Yes' accepted!",
    (ResponseIntent.YES, ResponseOutcome.ALREADY_RECORDED): "Your answer is already recorded.",
    (ResponseIntent.YES, ResponseOutcome.STALE): "This question is no longer active.",
    (ResponseIntent.NO, ResponseOutcome.RECORDED): "Answer 'No' accepted.",
    (ResponseIntent.NO, ResponseOutcome.ALREADY_RECORDED): "Your answer is already recorded.",
    (ResponseIntent.NO, ResponseOutcome.STALE): "This question is no longer active.",
}


def parse_update(payload, telegram: TelegramClient) -> Update:
    """
    Build a telegram.Update from the webhook body.

    Raises:
        HTTPException 400: If the body is not a Telegram update
    """
    update = None
    if isinstance(payload, dict):
        try:
            update = Update.de_json(payload, telegram.bot)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Malformed Telegram update rejected: %s", exc)
    if update is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed Telegram update",
        )
    return update


async def _answer_callback(telegram: TelegramClient, callback_query_id: str, text: str) -> None:
    try:
        await telegram.answer_callback_query(callback_query_id, text)
    except TransientIOError as exc:
        logger.warning("answerCallbackQuery %s failed: %s", callback_query_id, exc)


async def handle_callback(query: CallbackQuery, engine: WorkflowEngine, telegram: TelegramClient) -> None:
    token = decode_response_token(query.data)
    if token is None:
        logger.info("Unrecognised callback data %r from user %s", query.data, query.from_user.id)
        await _answer_callback(telegram, query.id, UNKNOWN_ACTION_TEXT)
        return

    try:
        if token.intent is ResponseIntent.YES:
            outcome = await engine.process_yes(token.report_status_id)
        else:
            outcome = await engine.process_no(token.report_status_id)
    except ServiceError as exc:
        logger.exception(
            "Processing %s for report status %s failed (%s)",
            token.intent.value, token.report_status_id, exc.kind.value,
        )
        await _answer_callback(telegram, query.id, PROCESSING_FAILED_TEXT)
        return

    logger.info(
        "Callback %s on report status %s from user %s: %s",
        token.intent.value, token.report_status_id, query.from_user.id, outcome.value,
    )
    await _answer_callback(telegram, query.id, CALLBACK_REPLIES.get((token.intent, outcome), UNKNOWN_ACTION_TEXT))


async def handle_message(
    message: Message,
    roster: RosterDirectory,
    telegram: TelegramClient,
    manager_chat_id: int | None,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    parsed = parse_command(message.text)
    if parsed is None or message.from_user is None:
        return
    command, args = parsed
    text = await reply_for_command(command, args, message.from_user, roster, manager_chat_id, session_factory)
    try:
        await telegram.send(message.chat.id, text)
    except TransientIOError as exc:
        logger.warning("Reply to %s in chat %s failed: %s", command, message.chat.id, exc)


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Receive Telegram updates",
)
async def telegram_webhook_endpoint(
    request: Request,
    engine: Engine,
    roster: Roster,
    telegram: Telegram,
    session_factory: SessionFactory,
    app_settings: Settings,
    secret_token: str | None = Header(None, alias=WEBHOOK_SECRET_HEADER),
) -> WebhookAck:
    if not verify_webhook_secret(app_settings.TELEGRAM_WEBHOOK_SECRET, secret_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook secret",
        )

    try:
        payload = await request.json()
    except ValueError:
        payload = None
    update = parse_update(payload, telegram)

    if update.callback_query is not None:
        await handle_callback(update.callback_query, engine, telegram)
    elif update.message is not None:
        await handle_message(update.message, roster, telegram, app_settings.MANAGER_TELEGRAM_ID, session_factory)
    else:
        logger.debug("Update %s ignored", update.update_id)

    return WebhookAck()
