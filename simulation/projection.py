"""Standings projection over the ledger.

Everything here is derived from the stored rows: value is cash plus cost
basis (not mark-to-market), P&L is measured against the starting capital,
and the leader is the owner with the strictly highest value.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel

from models.portfolio import Portfolio, Position, Trade
from simulation.ledger_store import LedgerStore

logger = logging.getLogger(__name__)

TIE = "tie"


class OwnerStanding(BaseModel):
    owner: str
    cash: Decimal
    positions: list[Position] = []
    value: Decimal
    pnl: Decimal
    pnl_pct: Decimal


class Standings(BaseModel):
    initial_cash: Decimal
    owners: dict[str, OwnerStanding]
    leader: str
    spread: Decimal
    trades: list[Trade] = []


def portfolio_value(cash: Decimal, positions: Iterable[Position]) -> Decimal:
    """``cash + Σ quantity × avg_price``."""
    return cash + sum((p.quantity * p.avg_price for p in positions), Decimal("0"))


def project_standings(
    owners: list[str],
    portfolios: Iterable[Portfolio],
    positions: Iterable[Position],
    trades: Iterable[Trade],
    initial_cash: Decimal,
) -> Standings:
    """Pure projection of the three collections into standings.

    Owners without a portfolio row are shown at the starting capital.
    """
    cash_by_owner = {p.owner: p.cash for p in portfolios}
    positions_by_owner: dict[str, list[Position]] = {owner: [] for owner in owners}
    for position in positions:
        positions_by_owner.setdefault(position.owner, []).append(position)

    standings: dict[str, OwnerStanding] = {}
    for owner in owners:
        cash = cash_by_owner.get(owner, initial_cash)
        held = positions_by_owner.get(owner, [])
        value = portfolio_value(cash, held)
        pnl = value - initial_cash
        standings[owner] = OwnerStanding(
            owner=owner,
            cash=cash,
            positions=held,
            value=value,
            pnl=pnl,
            pnl_pct=pnl / initial_cash * 100,
        )

    values = sorted((s.value for s in standings.values()), reverse=True)
    leader = TIE
    if values and (len(values) == 1 or values[0] > values[1]):
        leader = next(o for o, s in standings.items() if s.value == values[0])
    spread = values[0] - values[-1] if values else Decimal("0")

    return Standings(
        initial_cash=initial_cash,
        owners=standings,
        leader=leader,
        spread=spread,
        trades=list(trades),
    )


class StandingsView:
    """Polling view that re-projects whenever the ledger changes.

    Holds only the last snapshot it rendered from and the store's change
    token at that time.
    """

    def __init__(
        self,
        store: LedgerStore,
        owners: list[str],
        initial_cash: Decimal,
        history_limit: int = 50,
    ) -> None:
        self._store = store
        self._owners = owners
        self._initial_cash = initial_cash
        self._history_limit = history_limit
        self._token: int | None = None
        self._snapshot: Standings | None = None

    @property
    def snapshot(self) -> Standings | None:
        return self._snapshot

    async def refresh(self) -> tuple[Standings, bool]:
        """Return current standings and whether they were re-read."""
        token = await self._store.change_token()
        if self._snapshot is not None and token == self._token:
            return self._snapshot, False

        portfolios = await self._store.list_portfolios()
        positions = await self._store.list_positions()
        trades = await self._store.recent_trades(self._history_limit)
        self._snapshot = project_standings(
            self._owners, portfolios, positions, trades, self._initial_cash
        )
        self._token = token
        logger.debug("Standings re-projected at change token %d.", token)
        return self._snapshot, True


# ------------------------------------------------------------------
# Text rendering
# ------------------------------------------------------------------

def _money(value: Decimal) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def render_standings(standings: Standings) -> str:
    """Plain-text dashboard: leader line, one card per owner, trade history."""
    lines: list[str] = []
    if standings.leader == TIE:
        lines.append(f"Tied! ({_money(standings.spread)} spread)")
    else:
        lines.append(f"{standings.leader} leads by {_money(standings.spread)}")
    lines.append("")

    for owner, s in standings.owners.items():
        sign = "+" if s.pnl >= 0 else ""
        lines.append(
            f"{owner}: value {_money(s.value)}  cash {_money(s.cash)}  "
            f"P&L {sign}{_money(s.pnl)} ({sign}{s.pnl_pct:.2f}%)"
        )
        if not s.positions:
            lines.append("    No positions")
        for p in s.positions:
            lines.append(
                f"    {p.symbol:<6} x{p.quantity:<5} @ {_money(p.avg_price)}  "
                f"= {_money(p.quantity * p.avg_price)}"
            )
    lines.append("")

    lines.append(f"Trade history ({len(standings.trades)} trades)")
    if not standings.trades:
        lines.append("    No trades yet.")
    for t in standings.trades:
        lines.append(
            f"    {t.created_at:%b %d %H:%M}  {t.owner:<8} {t.action:<4} {t.quantity} "
            f"{t.symbol} @ {_money(t.price)}  {t.reasoning}"
        )
    return "\n".join(lines)
