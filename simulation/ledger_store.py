"""Ledger store interface and the in-memory back end.

The store holds three record kinds: one ``Portfolio`` per owner, one
``Position`` per (owner, symbol) with a positive quantity, and the
append-only ``Trade`` log. It has no business rules; the execution engine
is the only caller that mutates portfolios and positions, and it does so
exclusively through ``commit_trade``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Protocol

from pydantic import BaseModel

from models.errors import WriteConflict
from models.portfolio import Portfolio, Position, Trade, utc_now

logger = logging.getLogger(__name__)


class LedgerChange(BaseModel):
    """Everything one accepted trade writes, applied as a single unit.

    ``expected_version`` is the portfolio version the change was computed
    from; the store refuses the change if the stored version differs.
    Exactly one of ``position`` (upsert) or ``closed_symbol`` (delete) is set.
    """

    expected_version: int
    portfolio: Portfolio
    position: Position | None = None
    closed_symbol: str | None = None
    trade: Trade


class LedgerStore(Protocol):
    """Read and conditional-write operations over the three collections."""

    async def get_portfolio(self, owner: str) -> Portfolio:
        """Return the owner's portfolio, creating it with the initial cash if absent."""
        ...

    async def list_portfolios(self) -> list[Portfolio]:
        ...

    async def get_positions(self, owner: str) -> list[Position]:
        ...

    async def list_positions(self) -> list[Position]:
        ...

    async def recent_trades(self, limit: int, owner: str | None = None) -> list[Trade]:
        """Most recent trades first, optionally for a single owner."""
        ...

    async def commit_trade(self, change: LedgerChange) -> Trade:
        """Atomically apply *change* and return the stored trade.

        Raises ``WriteConflict`` if the portfolio version moved and
        ``StoreUnavailable`` on back-end failure; nothing is written in
        either case.
        """
        ...

    async def change_token(self) -> int:
        """Counter that increases on every commit or reset."""
        ...

    async def reset(self, owners: Iterable[str], initial_cash: Decimal) -> None:
        """Re-seed the competition: fresh portfolios, no positions, no trades."""
        ...


def next_timestamp(last: datetime | None) -> datetime:
    """Server-side trade timestamp, strictly after *last*."""
    now = utc_now()
    if last is not None and now <= last:
        return last + timedelta(microseconds=1)
    return now


class InMemoryLedgerStore:
    """Process-local ``LedgerStore``.

    Records are copied on the way in and out so callers can never mutate
    stored state directly.
    """

    def __init__(self, initial_cash: Decimal) -> None:
        self._initial_cash = Decimal(initial_cash)
        self._portfolios: dict[str, Portfolio] = {}
        self._positions: dict[tuple[str, str], Position] = {}
        self._trades: list[Trade] = []
        self._token = 0

    async def get_portfolio(self, owner: str) -> Portfolio:
        portfolio = self._portfolios.get(owner)
        if portfolio is None:
            portfolio = Portfolio(owner=owner, cash=self._initial_cash)
            self._portfolios[owner] = portfolio
            logger.info("Created portfolio for '%s' with $%s.", owner, self._initial_cash)
        return portfolio.model_copy()

    async def list_portfolios(self) -> list[Portfolio]:
        return [p.model_copy() for p in self._portfolios.values()]

    async def get_positions(self, owner: str) -> list[Position]:
        return [p.model_copy() for (o, _), p in sorted(self._positions.items()) if o == owner]

    async def list_positions(self) -> list[Position]:
        return [p.model_copy() for _, p in sorted(self._positions.items())]

    async def recent_trades(self, limit: int, owner: str | None = None) -> list[Trade]:
        trades = [t for t in reversed(self._trades) if owner is None or t.owner == owner]
        return trades[:limit]

    async def commit_trade(self, change: LedgerChange) -> Trade:
        owner = change.portfolio.owner
        current = self._portfolios.get(owner)
        actual = current.version if current is not None else None
        if actual != change.expected_version:
            raise WriteConflict(owner, change.expected_version, actual)

        last = self._trades[-1].created_at if self._trades else None
        trade = change.trade.model_copy(update={"created_at": next_timestamp(last)})

        self._portfolios[owner] = change.portfolio.model_copy()
        if change.position is not None:
            self._positions[(owner, change.position.symbol)] = change.position.model_copy()
        if change.closed_symbol is not None:
            self._positions.pop((owner, change.closed_symbol), None)
        self._trades.append(trade)
        self._token += 1
        return trade

    async def change_token(self) -> int:
        return self._token

    async def reset(self, owners: Iterable[str], initial_cash: Decimal) -> None:
        self._initial_cash = Decimal(initial_cash)
        previous = self._portfolios
        self._portfolios = {
            owner: Portfolio(
                owner=owner,
                cash=self._initial_cash,
                version=previous[owner].version + 1 if owner in previous else 0,
            )
            for owner in owners
        }
        self._positions.clear()
        self._trades.clear()
        self._token += 1
