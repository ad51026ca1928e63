"""Prompt template for the autonomous trader.

The system prompt frames the competition; the user prompt renders the
bounded market context and the exact JSON shape the reply must take.
"""

from __future__ import annotations

from decimal import Decimal

from models.market import MarketContext

SYSTEM_PROMPT = """\
You are an AI paper trader competing against a human. Both of you started \
with the same capital and trade the same live quotes. Trade wisely and be \
strategic: every decision is recorded with your reasoning.
"""

REPLY_FORMAT = (
    '{"action":"BUY"|"SELL"|"HOLD","symbol":"TICKER","quantity":number,"reasoning":"why"}'
)


def _money(value: Decimal) -> str:
    return f"${value:,.2f}"


def format_positions(context: MarketContext) -> str:
    positions = context.snapshot.positions
    if not positions:
        return "None"
    return ", ".join(f"{p.quantity} {p.symbol} @ {_money(p.avg_price)}" for p in positions)


def format_quotes(context: MarketContext) -> str:
    if not context.quotes:
        return "No quotes available."
    return "\n".join(
        f"{symbol}: {_money(q.price)} ({q.change_percent:+.2f}%)"
        for symbol, q in context.quotes.items()
    )


def format_recent_trades(context: MarketContext) -> str:
    if not context.recent_trades:
        return "None"
    return "\n".join(
        f"{t.owner}: {t.action} {t.quantity} {t.symbol} @ {_money(t.price)}"
        for t in context.recent_trades
    )


def build_user_prompt(context: MarketContext, max_positions: int) -> str:
    """Render the per-cycle prompt from *context*."""
    capital = _money(context.initial_cash)
    return f"""\
YOUR PORTFOLIO ({context.owner}):
- Cash: {_money(context.snapshot.portfolio.cash)}
- Positions: {format_positions(context)}

MARKET DATA:
{format_quotes(context)}

RECENT TRADES:
{format_recent_trades(context)}

RULES: Starting capital {capital} each. Max {max_positions} positions. \
No penny stocks. Only trade symbols listed under MARKET DATA. Be strategic.

Respond in JSON only:
{REPLY_FORMAT}"""
