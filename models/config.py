"""Competition configuration models, loaded from YAML.

These live in ``models/`` because they are shared data contracts used by the
runner, the agent systems and the CLI.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_WATCHLIST = ["NVDA", "AMD", "AAPL", "MSFT", "GOOGL", "META", "TSLA", "AMZN", "JPM", "SPY"]


class AgentConfig(BaseModel):
    """Configuration for the autonomous trader."""

    agent_system: str = Field(
        default="single_llm",
        description="Registered agent system name, e.g. 'single_llm', 'mock'.",
    )
    llm_provider: str = Field(
        default="anthropic",
        description="LLM provider identifier, e.g. 'openai', 'anthropic'.",
    )
    llm_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model name, e.g. 'gpt-4o', 'claude-sonnet-4-20250514'.",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the LLM.",
    )
    max_tokens: int = Field(
        default=256,
        ge=16,
        description="Upper bound on the length of the model's reply.",
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Wall-clock limit for one model call; a timeout ends the cycle.",
    )
    system_prompt_override: str | None = Field(
        default=None,
        description="Optional override for the agent's system prompt.",
    )


class MarketHoursConfig(BaseModel):
    """Trading window the agent is allowed to act in."""

    timezone: str = Field(default="America/New_York", description="IANA timezone of the exchange.")
    open_hour: int = Field(default=9, ge=0, le=23, description="First hour (inclusive) of the window.")
    close_hour: int = Field(default=16, ge=1, le=24, description="Hour (exclusive) the window closes.")
    trading_days: list[int] = Field(
        default_factory=lambda: [0, 1, 2, 3, 4],
        description="Weekdays the market is open, Monday=0 .. Sunday=6.",
    )


class QuoteConfig(BaseModel):
    """Market-data settings."""

    watchlist: list[str] = Field(
        default_factory=lambda: list(DEFAULT_WATCHLIST),
        description="Symbols quoted every cycle, in addition to held symbols.",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-symbol fetch limit; a timeout excludes that symbol.",
    )

    @field_validator("watchlist")
    @classmethod
    def _normalise(cls, symbols: list[str]) -> list[str]:
        return [s.strip().upper() for s in symbols if s.strip()]


class LedgerConfig(BaseModel):
    """Ledger storage and concurrency settings."""

    db_path: str = Field(default="data/ledger.db", description="SQLite database file.")
    conflict_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts per trade when a concurrent write is detected.",
    )


class CompetitionConfig(BaseModel):
    """Top-level configuration for a competition, loaded from YAML."""

    initial_cash: Decimal = Field(
        default=Decimal("1000"),
        gt=0,
        description="Starting cash for every owner.",
    )
    agent_owner: str = Field(default="claude", description="Owner id traded by the agent.")
    human_owner: str = Field(default="gabe", description="Owner id traded by hand.")
    agent: AgentConfig = Field(default_factory=AgentConfig)
    market_hours: MarketHoursConfig = Field(default_factory=MarketHoursConfig)
    quotes: QuoteConfig = Field(default_factory=QuoteConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    recent_trades_in_prompt: int = Field(
        default=5,
        ge=0,
        description="How many recent trades (both owners) the agent sees.",
    )
    max_positions: int = Field(
        default=5,
        ge=1,
        description="Position limit stated to the agent in its rules.",
    )
    history_limit: int = Field(
        default=50,
        ge=1,
        description="Trades shown in the standings view.",
    )
    schedule_interval_minutes: float = Field(
        default=15.0,
        gt=0,
        description="Cadence of the scheduled agent loop.",
    )
    output_dir: str = Field(default="results", description="Where cycle logs are written.")

    @property
    def owners(self) -> list[str]:
        return [self.agent_owner, self.human_owner]

    @classmethod
    def from_yaml(cls, path: str | Path) -> CompetitionConfig:
        """Load and validate a ``CompetitionConfig`` from a YAML file.

        Raises ``FileNotFoundError`` if the file does not exist and
        ``ValueError`` if the content is not a valid YAML mapping.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open(encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)

        if not isinstance(raw, dict):
            raise ValueError(
                f"Expected a YAML mapping in {path}, got {type(raw).__name__}."
            )

        return cls(**raw)
