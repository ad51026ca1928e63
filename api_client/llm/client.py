"""Text-generation client used by the autonomous agent.

``LLMClient`` is the seam the agent depends on; ``ChatModelClient`` backs it
with a LangChain chat model and bounds every call with a timeout.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from langchain_core.messages import HumanMessage, SystemMessage

from models.config import AgentConfig

logger = logging.getLogger(__name__)


class LLMClient(Protocol):
    async def complete(self, system: str, user: str) -> str:
        ...


def create_chat_model(config: AgentConfig):
    """Instantiate the appropriate LangChain chat model from config."""
    provider = config.llm_provider.lower()

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=config.llm_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout_seconds,
            max_retries=0,
        )
    elif provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(
            model=config.llm_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout_seconds,
            max_retries=0,
        )
    else:
        raise ValueError(
            f"Unsupported LLM provider '{provider}'. "
            f"Supported: 'openai', 'anthropic'."
        )


class ChatModelClient:
    """Single-turn completion against a LangChain chat model."""

    def __init__(self, config: AgentConfig, chat_model: Any | None = None) -> None:
        self._config = config
        # Built on first use so that commands which never call the model
        # do not need provider credentials.
        self._llm = chat_model

    @property
    def model_name(self) -> str:
        return self._config.llm_model

    async def complete(self, system: str, user: str) -> str:
        """Return the reply text; raises ``asyncio.TimeoutError`` past the limit."""
        if self._llm is None:
            self._llm = create_chat_model(self._config)
        messages = [SystemMessage(content=system), HumanMessage(content=user)]
        response = await asyncio.wait_for(
            self._llm.ainvoke(messages), timeout=self._config.timeout_seconds
        )
        return _content_text(response.content)


def _content_text(content: Any) -> str:
    """Flatten a chat message's content (plain string or content blocks)."""
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)
