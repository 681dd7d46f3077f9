from __future__ import annotations

import logging
from typing import Protocol

from telegram import Bot
from telegram.error import TelegramError

from assistant_bot.bot.keyboards import ReplyMarkup


logger = logging.getLogger(__name__)


class Gateway(Protocol):
    async def send_text(
        self,
        chat_id: int,
        text: str,
        *,
        reply_markup: ReplyMarkup | None = None,
    ) -> int: ...

    async def delete_message(self, chat_id: int, message_id: int) -> None: ...


class TelegramGateway:
    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_text(
        self,
        chat_id: int,
        text: str,
        *,
        reply_markup: ReplyMarkup | None = None,
    ) -> int:
        msg = await self._bot.send_message(
            chat_id=chat_id, text=text, reply_markup=reply_markup
        )
        return msg.message_id

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        try:
            await self._bot.delete_message(chat_id=chat_id, message_id=message_id)
        except TelegramError as e:
            # Message may be too old or already gone; nothing else depends on it.
            logger.warning("Could not delete message %s in chat %s: %s", message_id, chat_id, e)
