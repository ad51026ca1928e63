"""Error kinds shared by the ledger, the execution engine and the agent cycle.

Validation failures travel back to callers as data (``ExecutionResult`` /
``CycleResult`` carrying an ``ErrorKind``); only back-end failures inside the
store are raised as exceptions.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Every way a trade attempt or an agent cycle can end without a trade."""

    INVALID_QUANTITY = "InvalidQuantity"
    INVALID_SYMBOL = "InvalidSymbol"
    PRICE_UNAVAILABLE = "PriceUnavailable"
    INSUFFICIENT_CASH = "InsufficientCash"
    INSUFFICIENT_SHARES = "InsufficientShares"
    MARKET_CLOSED = "MarketClosed"
    NO_DECISION = "NoDecision"
    UNKNOWN_SYMBOL = "UnknownSymbol"
    STORE_UNAVAILABLE = "StoreUnavailable"
    CONFLICT_RETRY_EXHAUSTED = "ConflictRetryExhausted"

    @property
    def transient(self) -> bool:
        """True for kinds the next scheduled cycle may succeed on."""
        return self in (ErrorKind.PRICE_UNAVAILABLE, ErrorKind.STORE_UNAVAILABLE)


class StoreUnavailable(Exception):
    """The ledger back end could not be read or written."""

    kind = ErrorKind.STORE_UNAVAILABLE


class WriteConflict(Exception):
    """A conditional write found a different portfolio version than expected."""

    def __init__(self, owner: str, expected: int, actual: int | None) -> None:
        super().__init__(
            f"Portfolio '{owner}' changed concurrently "
            f"(expected version {expected}, found {actual})."
        )
        self.owner = owner
        self.expected = expected
        self.actual = actual


class TradeRejected(Exception):
    """A trade intent failed validation; nothing was written."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
