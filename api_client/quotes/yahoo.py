"""Yahoo Finance quotes via yfinance."""

from __future__ import annotations

import asyncio
import logging
import math
from decimal import Decimal
from typing import Any, Callable

import yfinance as yf

from models.market import Quote

logger = logging.getLogger(__name__)


class YahooQuoteProvider:
    """Last daily close and day-over-day change for a symbol.

    Every lookup is bounded by ``timeout`` seconds; a timeout or any
    download/parse problem yields ``None``.
    """

    def __init__(self, timeout: float = 10.0, ticker_factory: Callable[[str], Any] = yf.Ticker) -> None:
        self._timeout = timeout
        self._ticker_factory = ticker_factory

    async def get_quote(self, symbol: str) -> Quote | None:
        symbol = symbol.strip().upper()
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._fetch, symbol), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Quote for %s timed out after %.1fs.", symbol, self._timeout)
        except Exception as exc:
            logger.warning("Quote for %s unavailable: %s", symbol, exc)
        return None

    def _fetch(self, symbol: str) -> Quote | None:
        history = self._ticker_factory(symbol).history(
            period="5d", interval="1d", auto_adjust=False, timeout=self._timeout
        )
        if history.empty or "Close" not in history.columns:
            return None

        closes = [float(c) for c in history["Close"].dropna().tolist()]
        if not closes or not math.isfinite(closes[-1]) or closes[-1] <= 0:
            return None

        price = closes[-1]
        change = 0.0
        if len(closes) > 1 and closes[-2] > 0:
            change = (price - closes[-2]) / closes[-2] * 100

        return Quote(
            symbol=symbol,
            price=Decimal(str(round(price, 4))),
            change_percent=Decimal(str(round(change, 2))),
        )
