"""Audit models for autonomous-agent cycles.

- ``CycleLog``: one record per scheduled (or forced) agent cycle, holding
  the prompt, the raw model trace and the outcome.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from models.decision import CycleResult


class CycleLog(BaseModel):
    """Per-cycle audit record written by ``CycleLogger``."""

    cycle_id: str
    owner: str
    started_at: datetime
    elapsed_seconds: float = 0.0
    result: CycleResult
    quoted_symbols: list[str] = []
    prompt: str | None = None
    trace: dict[str, Any] | None = None
