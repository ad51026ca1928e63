"""Cycle output logging: persists one JSON record per agent cycle.

The output directory structure is::

    {output_dir}/
    ├── cycles/
    │   ├── cycle_20261016T143000_a1b2c3.json
    │   └── ...
    └── cycles.jsonl      (one summary line per cycle, append-only)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from models.log import CycleLog

logger = logging.getLogger(__name__)


class CycleLogger:
    """Manages on-disk output for agent cycles.

    Agent-side failures never reach the human as errors; this log is where
    they are recorded for later inspection.
    """

    def __init__(self, output_dir: str | Path) -> None:
        self._output_dir = Path(output_dir)
        self._cycles_dir = self._output_dir / "cycles"

    def write_cycle(self, cycle_log: CycleLog) -> Path:
        """Persist the full cycle record and append its summary line."""
        self._cycles_dir.mkdir(parents=True, exist_ok=True)
        path = self._cycles_dir / f"{cycle_log.cycle_id}.json"
        _write_json(path, cycle_log.model_dump(mode="json"))

        result = cycle_log.result
        summary = {
            "cycle_id": cycle_log.cycle_id,
            "started_at": cycle_log.started_at.isoformat(),
            "status": result.status,
            "error": result.error.value if result.error else None,
            "message": result.message,
        }
        with (self._output_dir / "cycles.jsonl").open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(summary) + "\n")

        if result.error is not None and result.status == "failed":
            logger.warning("Cycle %s failed [%s]: %s", cycle_log.cycle_id, result.error.value, result.message)
        logger.debug("Wrote cycle log %s", path)
        return path

    @property
    def output_dir(self) -> Path:
        return self._output_dir


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _write_json(path: Path, data: Any) -> None:
    """Write *data* as pretty-printed JSON to *path*."""
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
