"""Single-LLM agent: one prompt, one reply, one decision.

The agent renders the market context into the fixed prompt template, makes
a single bounded call to the chat model and strictly decodes the reply.
Timeouts, provider errors and malformed replies all come back as "no
decision"; there is no retry within a cycle.
"""

from __future__ import annotations

import asyncio
import logging

from agents.base import AgentSystem
from agents.parsing import DecisionParseError, parse_decision
from agents.prompts import SYSTEM_PROMPT, build_user_prompt
from agents.registry import register
from api_client.llm.client import ChatModelClient, LLMClient
from models.agents import AgentInvocation, AgentInvocationResult
from models.config import AgentConfig

logger = logging.getLogger(__name__)


@register("single_llm")
class SingleLLMAgent(AgentSystem):
    """Asks one chat model for a BUY/SELL/HOLD decision."""

    def __init__(
        self,
        config: AgentConfig,
        llm: LLMClient | None = None,
        max_positions: int = 5,
    ) -> None:
        super().__init__(config)
        self._llm = llm if llm is not None else ChatModelClient(config)
        self._system_prompt = config.system_prompt_override or SYSTEM_PROMPT
        self._max_positions = max_positions

    async def decide(self, invocation: AgentInvocation) -> AgentInvocationResult:
        """Run the model once for this cycle and decode its reply."""
        prompt = build_user_prompt(invocation.context, self._max_positions)

        try:
            raw = await self._llm.complete(self._system_prompt, prompt)
        except asyncio.TimeoutError:
            msg = f"Model call timed out after {self.config.timeout_seconds:.0f}s."
            logger.warning("Cycle %s: %s", invocation.cycle_id, msg)
            return AgentInvocationResult(prompt=prompt, error=msg)
        except Exception as exc:
            msg = f"Model call failed: {type(exc).__name__}: {exc}"
            logger.warning("Cycle %s: %s", invocation.cycle_id, msg)
            return AgentInvocationResult(prompt=prompt, error=msg)

        trace = {
            "model_name": self.config.llm_model,
            "cycle_id": invocation.cycle_id,
            "raw_response": raw,
        }

        try:
            decision = parse_decision(raw)
        except DecisionParseError as exc:
            logger.warning("Cycle %s: %s", invocation.cycle_id, exc)
            return AgentInvocationResult(prompt=prompt, raw_output=raw, trace=trace, error=str(exc))

        logger.info(
            "Cycle %s decision: %s %s %s",
            invocation.cycle_id,
            decision.action,
            decision.quantity if decision.quantity is not None else "",
            decision.symbol,
        )
        return AgentInvocationResult(
            decision=decision, prompt=prompt, raw_output=raw, trace=trace
        )
