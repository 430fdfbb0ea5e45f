# api/telegram/client.py
"""
Telegram Bot API client: the NotifierGateway used in production.

A thin wrapper over python-telegram-bot's async Bot. Only the handful of
methods the service needs are exposed, and every TelegramError (network
failure, blocked chat, bad request) surfaces as TransientIOError so callers
can log and move on.
"""
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.error import TelegramError
from telegram.request import HTTPXRequest

from core.errors import TransientIOError
from api.notifications.responses import ResponseButton

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"

ALLOWED_UPDATES = ["message", "callback_query"]


def inline_keyboard(buttons: Sequence[ResponseButton]) -> InlineKeyboardMarkup:
    """One row of inline buttons, each carrying its token as callback data."""
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(b.label, callback_data=b.token) for b in buttons]]
    )


class TelegramClient:
    def __init__(
        self,
        token: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 10.0,
        bot: Bot | None = None,
    ) -> None:
        self._owns_bot = bot is None
        if bot is None and token:
            bot = Bot(
                token,
                base_url=f"{api_base.rstrip('/')}/bot",
                request=HTTPXRequest(connect_timeout=timeout, read_timeout=timeout, write_timeout=timeout),
            )
        # Without a token there is no bot; every call fails as transient
        self._bot = bot

    @property
    def bot(self) -> Bot | None:
        return self._bot

    async def start(self) -> None:
        """Open the HTTP pool and check the token with getMe."""
        if self._bot is None:
            logger.warning("Telegram token not configured; messages will not be delivered")
            return
        await self._call("getMe", lambda bot: bot.initialize())
        logger.info("Telegram bot initialised")

    async def aclose(self) -> None:
        if self._owns_bot and self._bot is not None:
            try:
                await self._bot.shutdown()
            except TelegramError as exc:
                logger.warning("Telegram bot shutdown failed: %s", exc)

    async def _call(self, method: str, request: Callable[[Bot], Awaitable[Any]]) -> Any:
        if self._bot is None:
            raise TransientIOError(f"Telegram token not configured; cannot call {method}")
        try:
            return await request(self._bot)
        except TelegramError as exc:
            raise TransientIOError(f"Telegram {method} failed: {exc}") from exc

    async def send(
        self,
        chat_id: int,
        text: str,
        buttons: Sequence[ResponseButton] | None = None,
    ) -> None:
        """Send a text message, optionally with inline response buttons."""
        markup = inline_keyboard(buttons) if buttons else None
        await self._call(
            "sendMessage",
            lambda bot: bot.send_message(chat_id=chat_id, text=text, reply_markup=markup),
        )
        logger.debug("Message sent to chat %s", chat_id)

    async def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> None:
        """Stop the button spinner on the user's side."""
        await self._call(
            "answerCallbackQuery",
            lambda bot: bot.answer_callback_query(callback_query_id=callback_query_id, text=text),
        )

    async def set_webhook(self, url: str, secret_token: str | None = None) -> None:
        await self._call(
            "setWebhook",
            lambda bot: bot.set_webhook(url=url, secret_token=secret_token or None, allowed_updates=ALLOWED_UPDATES),
        )
        logger.info("Telegram webhook registered at %s", url)
