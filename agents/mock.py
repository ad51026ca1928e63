"""Deterministic agent for dry runs without an API key."""

from __future__ import annotations

from agents.base import AgentSystem
from agents.registry import register
from models.agents import AgentInvocation, AgentInvocationResult
from models.config import AgentConfig
from models.decision import AgentDecision


@register("mock")
class MockAgent(AgentSystem):
    """Always holds."""

    def __init__(self, config: AgentConfig, **_: object) -> None:
        super().__init__(config)

    async def decide(self, invocation: AgentInvocation) -> AgentInvocationResult:
        decision = AgentDecision(action="HOLD", reasoning="Mock agent holds every cycle.")
        return AgentInvocationResult(decision=decision, raw_output=decision.model_dump_json())
