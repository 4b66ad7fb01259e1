from abc import ABC, abstractmethod

from fallen_angel.scanner.models import Alert


class AlertChannel(ABC):
    @abstractmethod
    async def send_alert(self, alert: Alert) -> None:
        """Deliver one spike/breakout alert. Best effort."""
        ...
