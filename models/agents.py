"""Agent interface models."""

from typing import Any

from pydantic import BaseModel

from models.decision import AgentDecision
from models.market import MarketContext


class AgentInvocation(BaseModel):
    """Input passed when the cycle asks the agent for a decision."""

    context: MarketContext
    cycle_id: str


class AgentInvocationResult(BaseModel):
    """Parsed output from the agent.

    ``decision`` is ``None`` when no usable decision came back; ``error``
    then says why (timeout, provider failure, malformed reply).
    """

    decision: AgentDecision | None = None
    prompt: str | None = None
    raw_output: str | None = None
    trace: dict[str, Any] | None = None
    error: str = ""
