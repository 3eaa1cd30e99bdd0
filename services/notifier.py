#!/usr/bin/env python3
import logging
from typing import Optional

from telegram import Bot
from telegram.error import TelegramError, TimedOut

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Operator alerts over Telegram. A notifier without a bot or chat id is a no-op."""

    def __init__(self, bot: Optional[Bot], chat_id: Optional[str]) -> None:
        self.bot = bot
        self.chat_id = chat_id

    @property
    def enabled(self) -> bool:
        return self.bot is not None and bool(self.chat_id)

    async def send(self, text: str) -> bool:
        if not self.enabled:
            logger.debug("Telegram disabled, dropping: %s", text.splitlines()[0] if text else '')
            return False
        try:
            await self.bot.send_message(
                chat_id=self.chat_id,
                text=text,
                parse_mode='HTML',
            )
            return True
        except (TimedOut, TelegramError) as exc:
            logger.warning("Telegram send failed: %s", exc)
        except Exception as exc:
            logger.error("Unexpected Telegram error: %s", exc)
        return False

    async def send_urgent(self, text: str) -> bool:
        logger.error("URGENT: %s", text.replace('\n', ' | '))
        return await self.send(f"🚨 {text}")
