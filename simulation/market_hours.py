"""Trading-window gate for the autonomous agent."""

from __future__ import annotations

from datetime import datetime

import pytz

from models.config import MarketHoursConfig


def local_time(now: datetime, config: MarketHoursConfig) -> datetime:
    """*now* in the exchange timezone; naive datetimes are taken as UTC."""
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(pytz.timezone(config.timezone))


def is_market_open(now: datetime, config: MarketHoursConfig) -> bool:
    """True on trading days between ``open_hour`` (inclusive) and ``close_hour`` (exclusive)."""
    local = local_time(now, config)
    if local.weekday() not in config.trading_days:
        return False
    return config.open_hour <= local.hour < config.close_hour
