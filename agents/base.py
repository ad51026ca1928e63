"""Abstract base class for agent systems.

Every agent system (LLM-backed, mock, ...) implements this protocol so the
agent cycle can invoke them interchangeably.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from models.agents import AgentInvocation, AgentInvocationResult
from models.config import AgentConfig


class AgentSystem(ABC):
    """Common interface for pluggable decision sources.

    Lifecycle:
        1. ``__init__``: receive agent config (and any injected clients).
        2. ``decide``: called once per cycle with the market context.

    Agents know nothing about ledger mechanics: they only propose a
    decision, which the cycle validates and routes to the execution engine.
    """

    def __init__(self, config: AgentConfig) -> None:
        self.config = config

    @abstractmethod
    async def decide(self, invocation: AgentInvocation) -> AgentInvocationResult:
        """Return the agent's decision for one cycle.

        Implementations report failures through
        ``AgentInvocationResult.error`` with ``decision=None`` rather than
        raising.
        """
