"""Trade intents, agent decisions and execution results."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.errors import ErrorKind
from models.portfolio import Portfolio, Position, Trade, TradeAction


class TradeIntent(BaseModel):
    """A proposed trade, from either the human or the agent.

    Quantity and symbol are deliberately unconstrained here: the execution
    engine is the single place that validates them.
    """

    action: TradeAction
    symbol: str
    quantity: int


class AgentDecision(BaseModel):
    """Structured reply expected from the text-generation model.

    Validation is strict on shape only: field names, the action literal and
    JSON types. Whether the symbol is quoted and the quantity is positive is
    decided later, on the same path a human trade takes.
    """

    model_config = ConfigDict(extra="forbid")

    action: Literal["BUY", "SELL", "HOLD"]
    symbol: str = Field(default="", strict=True)
    quantity: int | None = Field(default=None, strict=True)
    reasoning: str = Field(default="", strict=True)

    @field_validator("action", mode="before")
    @classmethod
    def _upper_action(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("symbol", "reasoning", mode="before")
    @classmethod
    def _null_to_empty(cls, value: object) -> object:
        return "" if value is None else value

    @model_validator(mode="after")
    def _check_trade_fields(self) -> AgentDecision:
        if self.action != "HOLD" and self.quantity is None:
            raise ValueError(f"{self.action} decision needs an integer quantity.")
        return self

    @property
    def is_hold(self) -> bool:
        return self.action == "HOLD"

    def to_intent(self) -> TradeIntent:
        """Convert a BUY/SELL decision into an engine intent."""
        if self.is_hold or self.quantity is None:
            raise ValueError("A HOLD decision has no trade intent.")
        return TradeIntent(
            action=self.action,
            symbol=self.symbol.strip().upper(),
            quantity=self.quantity,
        )


class ExecutionResult(BaseModel):
    """Outcome of one trade attempt.

    When ``status`` is ``"accepted"`` the updated portfolio, the resulting
    position (``None`` when it was closed) and the new trade are attached.
    When ``"rejected"``, ``error`` names the violated constraint and nothing
    was written.
    """

    status: Literal["accepted", "rejected"]
    error: ErrorKind | None = None
    message: str = ""
    portfolio: Portfolio | None = None
    position: Position | None = None
    position_closed: bool = False
    trade: Trade | None = None

    @property
    def accepted(self) -> bool:
        return self.status == "accepted"

    @classmethod
    def rejected(cls, error: ErrorKind, message: str) -> ExecutionResult:
        return cls(status="rejected", error=error, message=message)


class CycleResult(BaseModel):
    """Outcome of one autonomous-agent cycle.

    * ``traded``: a BUY or SELL was executed.
    * ``held``: the model chose HOLD; the ledger was not touched.
    * ``closed``: outside the trading window; nothing was read or called.
    * ``failed``: ``error`` says why; no trade this cycle.
    """

    status: Literal["traded", "held", "closed", "failed"]
    error: ErrorKind | None = None
    message: str = ""
    decision: AgentDecision | None = None
    execution: ExecutionResult | None = None
