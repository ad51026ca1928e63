#!/usr/bin/env python3
"""CLI entrypoint for the paper-trading competition.

Usage::

    python run_competition.py --config config/competition.yaml init
    python run_competition.py trade gabe AAPL BUY 5 150 --reasoning "earnings"
    python run_competition.py agent-cycle
    python run_competition.py schedule --interval-minutes 15
    python run_competition.py standings
    python run_competition.py watch --interval 5

API keys for the model provider are read from the environment (a ``.env``
file in the working directory is loaded first).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from models.config import CompetitionConfig
from simulation.projection import render_standings
from simulation.runner import CompetitionRunner

DEFAULT_CONFIG = "config/competition.yaml"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the AI-vs-human paper-trading competition.",
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG,
        type=str,
        help=f"Path to the YAML configuration file (default: {DEFAULT_CONFIG}; built-in defaults if absent).",
    )
    parser.add_argument(
        "--store",
        default="sqlite",
        choices=["sqlite", "memory"],
        help="Ledger back end (default: sqlite).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create both portfolios with the starting capital.")
    sub.add_parser("reset", help="Start the competition over (clears positions and trades).")

    trade = sub.add_parser("trade", help="Submit a manual trade at a declared price.")
    trade.add_argument("owner")
    trade.add_argument("symbol")
    trade.add_argument("action", type=str.upper, choices=["BUY", "SELL"])
    trade.add_argument("quantity")
    trade.add_argument("price")
    trade.add_argument("--reasoning", default=None)

    cycle = sub.add_parser("agent-cycle", help="Run one autonomous-agent cycle now.")
    cycle.add_argument(
        "--force-open",
        action="store_true",
        help="Ignore the trading-window gate.",
    )

    schedule = sub.add_parser("schedule", help="Run agent cycles at a fixed cadence.")
    schedule.add_argument("--interval-minutes", type=float, default=None)
    schedule.add_argument("--max-cycles", type=int, default=None)

    sub.add_parser("standings", help="Print the current standings.")

    watch = sub.add_parser("watch", help="Re-print the standings whenever the ledger changes.")
    watch.add_argument("--interval", type=float, default=5.0, help="Poll interval in seconds.")

    return parser.parse_args(argv)


def _setup_logging(level: str) -> None:
    """Configure root logger with a clean format."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _load_config(path: str) -> CompetitionConfig:
    if path == DEFAULT_CONFIG and not Path(path).exists():
        return CompetitionConfig()
    return CompetitionConfig.from_yaml(path)


async def _main(argv: list[str] | None = None) -> int:
    load_dotenv()  # auto-load .env file if present
    args = _parse_args(argv)
    _setup_logging(args.log_level)

    logger = logging.getLogger(__name__)
    config = _load_config(args.config)
    logger.info("Config loaded: agent='%s', store='%s'", config.agent.agent_system, args.store)

    runner = CompetitionRunner.from_config(config, store_kind=args.store)

    if args.command in ("init", "reset"):
        await runner.initialise(reset=args.command == "reset")
        print(render_standings(await runner.standings()))
        return 0

    await runner.initialise()

    if args.command == "trade":
        try:
            result = await runner.submit_trade(
                args.owner, args.symbol, args.action, args.quantity, args.price, args.reasoning
            )
        except ValueError as exc:
            logger.error("%s", exc)
            print(f"Error: {exc}")
            return 2
        if not result.accepted:
            print(f"Rejected [{result.error.value}]: {result.message}")
            return 1
        print(f"Executed: {result.message}")
        return 0

    if args.command == "agent-cycle":
        cycle = await runner.run_agent_cycle(force_open=args.force_open)
        suffix = f" [{cycle.error.value}]" if cycle.error else ""
        print(f"{cycle.status}{suffix}: {cycle.message}")
        return 0

    if args.command == "schedule":
        await runner.run_schedule(args.interval_minutes, args.max_cycles)
        return 0

    if args.command == "standings":
        print(render_standings(await runner.standings()))
        return 0

    if args.command == "watch":
        while True:
            standings, changed = await runner.view.refresh()
            if changed:
                print(render_standings(standings), end="\n\n", flush=True)
            await asyncio.sleep(args.interval)

    return 2


def main() -> None:
    try:
        sys.exit(asyncio.run(_main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
