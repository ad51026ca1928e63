"""Trade execution: validation, settlement and the concurrency guard.

``plan_trade`` is a pure function: given an owner's current portfolio and
positions it either raises ``TradeRejected`` or returns the ``LedgerChange``
that settles the trade. ``TradeExecutionEngine`` wraps it in the
read-validate-write cycle against a ``LedgerStore``:

    1. Take the owner's lock (trades for other owners proceed in parallel).
    2. Read portfolio and positions.
    3. Plan the trade.
    4. Commit conditionally on the portfolio version that was read.
    5. On a version conflict, re-read and re-plan, a bounded number of times.

Both the human submission path and the agent cycle go through the engine,
so the rules below are the only trading rules in the system.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from models.decision import ExecutionResult, TradeIntent
from models.errors import ErrorKind, StoreUnavailable, TradeRejected, WriteConflict
from models.portfolio import Portfolio, Position, Trade, utc_now
from simulation.ledger_store import LedgerChange, LedgerStore

logger = logging.getLogger(__name__)

DEFAULT_REASONING = "No reasoning"


# ------------------------------------------------------------------
# Pure validation and settlement
# ------------------------------------------------------------------

def normalize_symbol(symbol: str) -> str:
    return (symbol or "").strip().upper()


def coerce_price(value: Any) -> Decimal | None:
    """Return *value* as a positive finite ``Decimal``, or ``None``."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


def plan_trade(
    owner: str,
    intent: TradeIntent,
    portfolio: Portfolio,
    positions: Iterable[Position],
    execution_price: Any,
    reasoning: str | None = None,
) -> LedgerChange:
    """Validate *intent* against the owner's holdings and settle it.

    Checks run in a fixed order and the first failure wins: quantity,
    symbol, price, then cash (BUY) or shares (SELL). Raises
    ``TradeRejected``; never touches a store.
    """
    quantity = intent.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise TradeRejected(
            ErrorKind.INVALID_QUANTITY,
            f"Quantity must be a positive whole number of shares, got {quantity!r}.",
        )

    symbol = normalize_symbol(intent.symbol)
    if not symbol:
        raise TradeRejected(ErrorKind.INVALID_SYMBOL, "Symbol must not be empty.")

    price = coerce_price(execution_price)
    if price is None:
        raise TradeRejected(
            ErrorKind.PRICE_UNAVAILABLE,
            f"No usable price for {symbol} (got {execution_price!r}).",
        )

    existing = next((p for p in positions if p.symbol == symbol), None)
    notional = price * quantity
    now = utc_now()

    if intent.action == "BUY":
        if notional > portfolio.cash:
            raise TradeRejected(
                ErrorKind.INSUFFICIENT_CASH,
                f"Not enough cash! Need ${notional:,.2f} to buy {quantity} {symbol} "
                f"(available ${portfolio.cash:,.2f}).",
            )
        new_cash = portfolio.cash - notional
        if existing is None:
            position = Position(
                owner=owner, symbol=symbol, quantity=quantity, avg_price=price, updated_at=now
            )
        else:
            new_qty = existing.quantity + quantity
            new_avg = (existing.avg_price * existing.quantity + notional) / new_qty
            position = existing.model_copy(
                update={"quantity": new_qty, "avg_price": new_avg, "updated_at": now}
            )
        closed_symbol = None
    else:
        held = existing.quantity if existing is not None else 0
        if existing is None or held < quantity:
            raise TradeRejected(
                ErrorKind.INSUFFICIENT_SHARES,
                f"Don't have enough {symbol} (held {held}, requested {quantity}).",
            )
        new_cash = portfolio.cash + notional
        if held == quantity:
            position, closed_symbol = None, symbol
        else:
            position = existing.model_copy(
                update={"quantity": held - quantity, "updated_at": now}
            )
            closed_symbol = None

    trade = Trade(
        trade_id=uuid.uuid4().hex[:12],
        owner=owner,
        symbol=symbol,
        action=intent.action,
        quantity=quantity,
        price=price,
        reasoning=(reasoning or "").strip() or DEFAULT_REASONING,
        created_at=now,
    )
    return LedgerChange(
        expected_version=portfolio.version,
        portfolio=portfolio.model_copy(
            update={"cash": new_cash, "version": portfolio.version + 1, "updated_at": now}
        ),
        position=position,
        closed_symbol=closed_symbol,
        trade=trade,
    )


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------

class TradeExecutionEngine:
    """Serialises trades per owner and commits them atomically.

    Instantiate one engine per store and share it between every entry point
    that trades; the per-owner locks only protect callers that go through
    the same engine, while the version check also covers other processes.
    """

    def __init__(self, store: LedgerStore, max_attempts: int = 3) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self._store = store
        self._max_attempts = max_attempts
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def store(self) -> LedgerStore:
        return self._store

    async def execute_trade(
        self,
        owner: str,
        intent: TradeIntent,
        execution_price: Any,
        reasoning: str | None = None,
    ) -> ExecutionResult:
        """Validate and apply one trade for *owner*.

        Returns an accepted ``ExecutionResult`` carrying the new portfolio,
        position and trade, or a rejected one naming the error kind. A
        rejected result guarantees that nothing was written.
        """
        async with self._locks[owner]:
            for attempt in range(1, self._max_attempts + 1):
                try:
                    portfolio = await self._store.get_portfolio(owner)
                    positions = await self._store.get_positions(owner)
                except StoreUnavailable as exc:
                    logger.error("Ledger read failed for '%s': %s", owner, exc)
                    return ExecutionResult.rejected(ErrorKind.STORE_UNAVAILABLE, str(exc))

                try:
                    change = plan_trade(
                        owner, intent, portfolio, positions, execution_price, reasoning
                    )
                except TradeRejected as exc:
                    logger.info(
                        "Rejected %s %s %s for '%s': %s",
                        intent.action,
                        intent.quantity,
                        intent.symbol,
                        owner,
                        exc.message,
                    )
                    return ExecutionResult.rejected(exc.kind, exc.message)

                try:
                    trade = await self._store.commit_trade(change)
                except WriteConflict as exc:
                    logger.warning(
                        "Write conflict for '%s' (attempt %d/%d): %s",
                        owner,
                        attempt,
                        self._max_attempts,
                        exc,
                    )
                    continue
                except StoreUnavailable as exc:
                    logger.error("Ledger commit failed for '%s': %s", owner, exc)
                    return ExecutionResult.rejected(ErrorKind.STORE_UNAVAILABLE, str(exc))

                logger.info(
                    "%s %s %d %s @ $%s (cash now $%s)",
                    owner,
                    trade.action,
                    trade.quantity,
                    trade.symbol,
                    trade.price,
                    change.portfolio.cash,
                )
                return ExecutionResult(
                    status="accepted",
                    message=f"{trade.action} {trade.quantity} {trade.symbol} @ ${trade.price:,.2f}",
                    portfolio=change.portfolio,
                    position=change.position,
                    position_closed=change.closed_symbol is not None,
                    trade=trade,
                )

        return ExecutionResult.rejected(
            ErrorKind.CONFLICT_RETRY_EXHAUSTED,
            f"Portfolio '{owner}' kept changing; gave up after {self._max_attempts} attempts.",
        )
