"""Ledger records: Portfolio, Position and Trade.

All monetary amounts are ``Decimal``. A ``Position`` exists only while its
quantity is positive; ``Trade`` rows are immutable once written.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TradeAction = Literal["BUY", "SELL"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Portfolio(BaseModel):
    """Cash balance of one owner.

    ``version`` is bumped on every accepted trade and serves as the
    optimistic concurrency token for conditional writes.
    """

    owner: str
    cash: Decimal = Field(ge=0)
    version: int = 0
    updated_at: datetime = Field(default_factory=utc_now)


class Position(BaseModel):
    """Holding of one symbol by one owner, tracked at average cost."""

    owner: str
    symbol: str
    quantity: int = Field(gt=0)
    avg_price: Decimal = Field(gt=0)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def cost_basis(self) -> Decimal:
        return self.avg_price * self.quantity


class Trade(BaseModel):
    """Immutable record of one executed action."""

    model_config = ConfigDict(frozen=True)

    trade_id: str
    owner: str
    symbol: str
    action: TradeAction
    quantity: int = Field(gt=0)
    price: Decimal = Field(gt=0)
    reasoning: str = "No reasoning"
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def notional(self) -> Decimal:
        return self.price * self.quantity


class PortfolioSnapshot(BaseModel):
    """One owner's portfolio row plus all of its open positions."""

    portfolio: Portfolio
    positions: list[Position] = []

    def position_for(self, symbol: str) -> Position | None:
        for position in self.positions:
            if position.symbol == symbol:
                return position
        return None
