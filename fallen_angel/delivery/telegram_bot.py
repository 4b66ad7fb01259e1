import logging

import telegram

from fallen_angel.config import settings
from fallen_angel.delivery.base import AlertChannel
from fallen_angel.scanner.alerts import format_alert_html
from fallen_angel.scanner.models import Alert

logger = logging.getLogger(__name__)


def is_telegram_configured() -> bool:
    return bool(settings.telegram_bot_token and settings.telegram_chat_id)


class TelegramDelivery(AlertChannel):
    """Pushes alerts to a single Telegram chat."""

    def __init__(self, bot: telegram.Bot | None = None, chat_id: str | None = None) -> None:
        self._bot = bot or telegram.Bot(token=settings.telegram_bot_token)
        self._chat_id = chat_id or settings.telegram_chat_id

    async def send_alert(self, alert: Alert) -> None:
        await self.send_text(format_alert_html(alert))
        logger.info("Telegram alert sent for %s", alert.token.symbol or alert.token.id[:8])

    async def send_text(self, text: str, parse_mode: str = "HTML") -> None:
        try:
            # Telegram caps messages at 4096 chars
            for i in range(0, len(text), 4000):
                await self._bot.send_message(
                    chat_id=self._chat_id,
                    text=text[i : i + 4000],
                    parse_mode=parse_mode,
                )
        except telegram.error.TelegramError as exc:
            logger.error("Telegram send failed: %s", exc)
