"""Market data models: quotes and the context handed to the agent."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from models.portfolio import PortfolioSnapshot, Trade


class Quote(BaseModel):
    """Latest price of one symbol and its percent change on the day."""

    symbol: str
    price: Decimal = Field(gt=0)
    change_percent: Decimal = Decimal("0")


class MarketContext(BaseModel):
    """Bounded snapshot the agent decides from.

    Symbols whose quote could not be fetched are absent from ``quotes`` and
    cannot be traded this cycle.
    """

    owner: str
    as_of: datetime
    initial_cash: Decimal
    snapshot: PortfolioSnapshot
    quotes: dict[str, Quote] = {}
    recent_trades: list[Trade] = []

    def quote_for(self, symbol: str) -> Quote | None:
        return self.quotes.get(symbol.strip().upper())
