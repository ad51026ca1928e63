"""One cycle of the autonomous trader.

Lifecycle:
    1. Gate on the trading window (closed: stop before any read or call).
    2. Read the agent's portfolio, positions and the most recent trades.
    3. Quote the watchlist plus every held symbol (failed quotes dropped).
    4. Ask the agent for a decision.
    5. HOLD ends the cycle; BUY/SELL is priced from the fetched quotes and
       handed to the execution engine.

Any failure ends the cycle without a trade. Nothing is retried here; the
next scheduled cycle is the retry.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime
from typing import Callable

from agents.base import AgentSystem
from api_client.quotes.provider import QuoteProvider, fetch_quotes
from models.agents import AgentInvocation, AgentInvocationResult
from models.config import CompetitionConfig
from models.decision import CycleResult
from models.errors import ErrorKind, StoreUnavailable
from models.log import CycleLog
from models.market import MarketContext
from models.portfolio import PortfolioSnapshot, utc_now
from simulation.engine import TradeExecutionEngine
from simulation.market_hours import is_market_open

logger = logging.getLogger(__name__)


def new_cycle_id(now: datetime) -> str:
    return f"cycle_{now.strftime('%Y%m%dT%H%M%S')}_{uuid.uuid4().hex[:6]}"


class AgentCycle:
    """Runs decision cycles for the agent-owned portfolio."""

    def __init__(
        self,
        config: CompetitionConfig,
        engine: TradeExecutionEngine,
        quotes: QuoteProvider,
        agent: AgentSystem,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._config = config
        self._engine = engine
        self._store = engine.store
        self._quotes = quotes
        self._agent = agent
        self._clock = clock

    @property
    def owner(self) -> str:
        return self._config.agent_owner

    async def run(self, force_open: bool = False) -> CycleLog:
        """Execute one cycle and return its audit record."""
        started_at = self._clock()
        cycle_id = new_cycle_id(started_at)
        t0 = time.monotonic()
        log = CycleLog(
            cycle_id=cycle_id,
            owner=self.owner,
            started_at=started_at,
            result=CycleResult(status="failed"),
        )

        if not force_open and not is_market_open(started_at, self._config.market_hours):
            logger.info("Cycle %s: market closed, skipping.", cycle_id)
            log.result = CycleResult(
                status="closed", error=ErrorKind.MARKET_CLOSED, message="Market closed"
            )
            return log

        try:
            log.result = await self._run_open(cycle_id, started_at, log)
        except StoreUnavailable as exc:
            logger.error("Cycle %s: ledger unavailable: %s", cycle_id, exc)
            log.result = CycleResult(
                status="failed", error=ErrorKind.STORE_UNAVAILABLE, message=str(exc)
            )

        log.elapsed_seconds = time.monotonic() - t0
        logger.info(
            "Cycle %s finished: %s%s (%.1fs)",
            cycle_id,
            log.result.status,
            f" [{log.result.error.value}]" if log.result.error else "",
            log.elapsed_seconds,
        )
        return log

    async def _run_open(self, cycle_id: str, now: datetime, log: CycleLog) -> CycleResult:
        context = await self.build_context(now)
        log.quoted_symbols = sorted(context.quotes)

        invocation = AgentInvocation(context=context, cycle_id=cycle_id)
        try:
            reply = await self._agent.decide(invocation)
        except Exception as exc:
            logger.warning("Cycle %s: agent error: %s", cycle_id, exc)
            reply = AgentInvocationResult(error=f"Agent error: {exc}")

        log.prompt = reply.prompt
        log.trace = reply.trace
        decision = reply.decision
        if decision is None:
            return CycleResult(
                status="failed",
                error=ErrorKind.NO_DECISION,
                message=reply.error or "No valid response",
            )

        if decision.is_hold:
            logger.info("Cycle %s: holding (%s)", cycle_id, decision.reasoning)
            return CycleResult(status="held", message="Holding", decision=decision)

        intent = decision.to_intent()
        quote = context.quote_for(intent.symbol)
        if quote is None:
            logger.info("Cycle %s: %s has no quote this cycle.", cycle_id, intent.symbol)
            return CycleResult(
                status="failed",
                error=ErrorKind.UNKNOWN_SYMBOL,
                message=f"Invalid symbol: no quote for {intent.symbol or '(blank)'}",
                decision=decision,
            )

        execution = await self._engine.execute_trade(
            self.owner, intent, quote.price, decision.reasoning
        )
        if not execution.accepted:
            return CycleResult(
                status="failed",
                error=execution.error,
                message=execution.message,
                decision=decision,
                execution=execution,
            )
        return CycleResult(
            status="traded", message=execution.message, decision=decision, execution=execution
        )

    async def build_context(self, now: datetime) -> MarketContext:
        """Read ledger state and quotes for the agent's prompt."""
        portfolio = await self._store.get_portfolio(self.owner)
        positions = await self._store.get_positions(self.owner)
        recent = await self._store.recent_trades(self._config.recent_trades_in_prompt)

        held = [p.symbol for p in positions]
        quotes = await fetch_quotes(self._quotes, [*self._config.quotes.watchlist, *held])

        return MarketContext(
            owner=self.owner,
            as_of=now,
            initial_cash=self._config.initial_cash,
            snapshot=PortfolioSnapshot(portfolio=portfolio, positions=positions),
            quotes=quotes,
            recent_trades=recent,
        )
