"""Data models for the paper-trading competition.

The ledger, the agent cycle, the projection and the CLI all import from
models.
"""

from models.agents import AgentInvocation, AgentInvocationResult
from models.config import (
    AgentConfig,
    CompetitionConfig,
    LedgerConfig,
    MarketHoursConfig,
    QuoteConfig,
)
from models.decision import AgentDecision, CycleResult, ExecutionResult, TradeIntent
from models.errors import ErrorKind, StoreUnavailable, TradeRejected, WriteConflict
from models.log import CycleLog
from models.market import MarketContext, Quote
from models.portfolio import Portfolio, PortfolioSnapshot, Position, Trade, TradeAction

__all__ = [
    # agents
    "AgentInvocation",
    "AgentInvocationResult",
    # config
    "AgentConfig",
    "CompetitionConfig",
    "LedgerConfig",
    "MarketHoursConfig",
    "QuoteConfig",
    # decision
    "AgentDecision",
    "CycleResult",
    "ExecutionResult",
    "TradeIntent",
    # errors
    "ErrorKind",
    "StoreUnavailable",
    "TradeRejected",
    "WriteConflict",
    # log
    "CycleLog",
    # market
    "MarketContext",
    "Quote",
    # portfolio
    "Portfolio",
    "PortfolioSnapshot",
    "Position",
    "Trade",
    "TradeAction",
]
