from abc import ABC, abstractmethod
from datetime import datetime

from fallen_angel.market.models import PriceRange, TokenQuote


class QuoteProvider(ABC):
    @abstractmethod
    async def quote(self, token_id: str) -> TokenQuote | None:
        """Full quote with windowed stats, or None if the token is unknown."""
        ...

    async def quick_price(self, token_id: str) -> float | None:
        """Current USD price only. Defaults to a full quote."""
        quote = await self.quote(token_id)
        return quote.price if quote else None


class RangeProvider(ABC):
    @abstractmethod
    async def price_range(
        self, token_id: str, time_from: datetime, time_to: datetime
    ) -> PriceRange:
        """Highest/lowest price over [time_from, time_to]. Raises on failure."""
        ...
