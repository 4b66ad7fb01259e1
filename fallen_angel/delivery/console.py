import logging

from fallen_angel.delivery.base import AlertChannel
from fallen_angel.scanner.alerts import format_alert_lines
from fallen_angel.scanner.models import Alert

logger = logging.getLogger(__name__)


class ConsoleDelivery(AlertChannel):
    """Writes the full alert block to the log, with a terminal bell."""

    def __init__(self, bell: bool = True) -> None:
        self._bell = bell

    async def send_alert(self, alert: Alert) -> None:
        if self._bell:
            # One bell for a spike, two for a breakout
            print("\a" * (2 if alert.is_breakout else 1), end="", flush=True)
        for line in format_alert_lines(alert):
            logger.info(line)
        logger.info("─" * 60)
