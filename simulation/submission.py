"""Human trade submission.

The human types symbol, side, quantity and price; the price is taken as
given rather than quoted. Raw inputs are parsed here and then handed to the
same engine the agent uses.
"""

from __future__ import annotations

import logging
from typing import Any

from models.decision import ExecutionResult, TradeIntent
from models.errors import ErrorKind
from simulation.engine import TradeExecutionEngine

logger = logging.getLogger(__name__)


def parse_quantity(value: Any) -> int | None:
    """Whole-number share count from user input, or ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


async def submit_human_trade(
    engine: TradeExecutionEngine,
    owner: str,
    symbol: str,
    action: str,
    quantity: Any,
    price: Any,
    reasoning: str | None = None,
) -> ExecutionResult:
    """Submit a manually entered trade for *owner* at the declared *price*."""
    side = str(action).strip().upper()
    if side not in ("BUY", "SELL"):
        raise ValueError(f"Action must be BUY or SELL, got {action!r}.")

    qty = parse_quantity(quantity)
    if qty is None:
        return ExecutionResult.rejected(
            ErrorKind.INVALID_QUANTITY,
            f"Quantity must be a positive whole number of shares, got {quantity!r}.",
        )

    intent = TradeIntent(action=side, symbol=str(symbol), quantity=qty)
    result = await engine.execute_trade(owner, intent, price, reasoning)
    if not result.accepted:
        logger.info("Manual trade by '%s' rejected: %s", owner, result.message)
    return result
