"""Quote provider interface and helpers.

A provider maps a symbol to its latest ``Quote`` or ``None`` when the quote
cannot be fetched; callers treat ``None`` as "not tradable this cycle".
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Iterable, Mapping, Protocol

from models.market import Quote

logger = logging.getLogger(__name__)


class QuoteProvider(Protocol):
    async def get_quote(self, symbol: str) -> Quote | None:
        ...


class StaticQuoteProvider:
    """Serves fixed prices; used for dry runs and tests."""

    def __init__(self, prices: Mapping[str, Decimal | float | str], changes: Mapping[str, float] | None = None) -> None:
        self._prices = {s.upper(): Decimal(str(p)) for s, p in prices.items()}
        self._changes = {s.upper(): Decimal(str(c)) for s, c in (changes or {}).items()}

    async def get_quote(self, symbol: str) -> Quote | None:
        price = self._prices.get(symbol.upper())
        if price is None:
            return None
        return Quote(
            symbol=symbol.upper(),
            price=price,
            change_percent=self._changes.get(symbol.upper(), Decimal("0")),
        )


async def fetch_quotes(provider: QuoteProvider, symbols: Iterable[str]) -> dict[str, Quote]:
    """Fetch quotes concurrently, dropping every symbol that came back empty."""
    symbols = list(dict.fromkeys(s.strip().upper() for s in symbols if s.strip()))
    results = await asyncio.gather(
        *(provider.get_quote(s) for s in symbols), return_exceptions=True
    )
    quotes: dict[str, Quote] = {}
    for symbol, result in zip(symbols, results):
        if isinstance(result, BaseException):
            logger.warning("Quote for %s failed: %s", symbol, result)
        elif result is None:
            logger.debug("No quote for %s; excluded this cycle.", symbol)
        else:
            quotes[symbol] = result
    return quotes
