"""Competition runner: the composition root.

Wires one ledger store, one execution engine, the quote provider and the
agent system together, and exposes the operations the CLI needs:

    * seed or reset the competition,
    * submit a human trade,
    * run one agent cycle, or run cycles on a fixed cadence,
    * project the standings.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable

from agents.base import AgentSystem
from agents.registry import create_agent_system
from api_client.quotes.provider import QuoteProvider
from api_client.quotes.yahoo import YahooQuoteProvider
from models.config import CompetitionConfig
from models.decision import CycleResult, ExecutionResult
from models.portfolio import utc_now
from simulation.agent_cycle import AgentCycle
from simulation.engine import TradeExecutionEngine
from simulation.ledger_store import InMemoryLedgerStore, LedgerStore
from simulation.projection import Standings, StandingsView
from simulation.sim_logging import CycleLogger
from simulation.sqlite_store import SQLiteLedgerStore
from simulation.submission import submit_human_trade

logger = logging.getLogger(__name__)


def build_store(config: CompetitionConfig, kind: str = "sqlite") -> LedgerStore:
    """Create the ledger back end named by *kind* ('sqlite' or 'memory')."""
    if kind == "memory":
        return InMemoryLedgerStore(config.initial_cash)
    if kind == "sqlite":
        return SQLiteLedgerStore(config.ledger.db_path, config.initial_cash)
    raise ValueError(f"Unknown store kind '{kind}'. Supported: 'sqlite', 'memory'.")


class CompetitionRunner:
    """Owns the lifecycle of every collaborator; nothing here is global."""

    def __init__(
        self,
        config: CompetitionConfig,
        store: LedgerStore,
        quotes: QuoteProvider,
        agent: AgentSystem,
        cycle_logger: CycleLogger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._config = config
        self._store = store
        self._engine = TradeExecutionEngine(store, max_attempts=config.ledger.conflict_retries)
        self._cycle = AgentCycle(config, self._engine, quotes, agent, clock=clock)
        self._cycle_logger = cycle_logger or CycleLogger(config.output_dir)
        self._view = StandingsView(
            store, config.owners, config.initial_cash, history_limit=config.history_limit
        )

    @classmethod
    def from_config(cls, config: CompetitionConfig, store_kind: str = "sqlite", **agent_kwargs: Any) -> CompetitionRunner:
        """Build the production wiring: yfinance quotes, configured agent and store."""
        store = build_store(config, store_kind)
        quotes = YahooQuoteProvider(timeout=config.quotes.timeout_seconds)
        agent_kwargs.setdefault("max_positions", config.max_positions)
        agent = create_agent_system(config.agent, **agent_kwargs)
        return cls(config, store, quotes, agent)

    @property
    def engine(self) -> TradeExecutionEngine:
        return self._engine

    @property
    def view(self) -> StandingsView:
        return self._view

    async def initialise(self, reset: bool = False) -> None:
        """Make sure both owners have a portfolio; with *reset*, start over."""
        if reset:
            await self._store.reset(self._config.owners, self._config.initial_cash)
            return
        for owner in self._config.owners:
            await self._store.get_portfolio(owner)

    async def submit_trade(
        self,
        owner: str,
        symbol: str,
        action: str,
        quantity: Any,
        price: Any,
        reasoning: str | None = None,
    ) -> ExecutionResult:
        """Submit a manual trade for one of the competition's owners.

        Raises ``ValueError`` for an owner outside the competition.
        """
        if owner not in self._config.owners:
            raise ValueError(
                f"Unknown owner '{owner}'. Expected one of: {', '.join(self._config.owners)}."
            )
        return await submit_human_trade(
            self._engine, owner, symbol, action, quantity, price, reasoning
        )

    async def run_agent_cycle(self, force_open: bool = False) -> CycleResult:
        """Run one agent cycle and record it."""
        cycle_log = await self._cycle.run(force_open=force_open)
        if cycle_log.result.status != "closed":
            self._cycle_logger.write_cycle(cycle_log)
        return cycle_log.result

    async def run_schedule(
        self,
        interval_minutes: float | None = None,
        max_cycles: int | None = None,
    ) -> list[CycleResult]:
        """Run agent cycles at a fixed cadence.

        Each cycle is independent; a failed cycle is simply followed by the
        next one.
        """
        interval = (interval_minutes or self._config.schedule_interval_minutes) * 60
        results: list[CycleResult] = []
        logger.info("Scheduling agent cycles every %.0fs.", interval)
        while max_cycles is None or len(results) < max_cycles:
            results.append(await self.run_agent_cycle())
            if max_cycles is not None and len(results) >= max_cycles:
                break
            await asyncio.sleep(interval)
        return results

    async def standings(self) -> Standings:
        standings, _ = await self._view.refresh()
        return standings
