"""Tests for the composition root, cycle logging and the CLI."""

import asyncio
import json
from datetime import datetime
from decimal import Decimal

import pytest
import pytz

import run_competition
from agents.mock import MockAgent
from api_client.quotes.provider import StaticQuoteProvider
from models.config import AgentConfig, CompetitionConfig
from simulation.ledger_store import InMemoryLedgerStore
from simulation.runner import CompetitionRunner, build_store
from simulation.sim_logging import CycleLogger
from simulation.sqlite_store import SQLiteLedgerStore

NY = pytz.timezone("America/New_York")


def _run(coro):
    return asyncio.run(coro)


def _runner(tmp_path, now) -> CompetitionRunner:
    config = CompetitionConfig(agent=AgentConfig(agent_system="mock"), output_dir=str(tmp_path))
    return CompetitionRunner(
        config,
        InMemoryLedgerStore(config.initial_cash),
        StaticQuoteProvider({"AAPL": "150"}),
        MockAgent(config.agent),
        cycle_logger=CycleLogger(tmp_path),
        clock=lambda: now,
    )


class TestRunner:
    def test_initialise_creates_both_portfolios(self, tmp_path):
        runner = _runner(tmp_path, NY.localize(datetime(2026, 10, 16, 11, 0)))
        _run(runner.initialise())
        standings = _run(runner.standings())
        assert set(standings.owners) == {"claude", "gabe"}
        assert standings.leader == "tie"

    def test_open_cycle_is_logged(self, tmp_path):
        runner = _runner(tmp_path, NY.localize(datetime(2026, 10, 16, 11, 0)))
        result = _run(runner.run_agent_cycle())
        assert result.status == "held"

        files = list((tmp_path / "cycles").glob("cycle_*.json"))
        assert len(files) == 1
        record = json.loads(files[0].read_text(encoding="utf-8"))
        assert record["result"]["status"] == "held"
        assert record["quoted_symbols"] == ["AAPL"]

        lines = (tmp_path / "cycles.jsonl").read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[0])["status"] == "held"

    def test_closed_cycle_is_not_logged(self, tmp_path):
        runner = _runner(tmp_path, NY.localize(datetime(2026, 10, 17, 11, 0)))
        result = _run(runner.run_agent_cycle())
        assert result.status == "closed"
        assert not (tmp_path / "cycles").exists()

    def test_schedule_runs_bounded_cycles(self, tmp_path):
        runner = _runner(tmp_path, NY.localize(datetime(2026, 10, 16, 11, 0)))
        results = _run(runner.run_schedule(interval_minutes=0.0001, max_cycles=2))
        assert [r.status for r in results] == ["held", "held"]

    def test_end_to_end_manual_trades(self, tmp_path):
        runner = _runner(tmp_path, NY.localize(datetime(2026, 10, 16, 11, 0)))

        async def scenario():
            await runner.initialise()
            bought = await runner.submit_trade("gabe", "AAPL", "BUY", 5, 150)
            sold = await runner.submit_trade("gabe", "AAPL", "SELL", 5, 160)
            return bought, sold, await runner.standings()

        bought, sold, standings = _run(scenario())
        assert bought.portfolio.cash == Decimal("250")
        assert sold.portfolio.cash == Decimal("1050")
        gabe = standings.owners["gabe"]
        assert gabe.positions == []
        assert gabe.pnl == Decimal("50")
        assert len(standings.trades) == 2
        assert standings.leader == "gabe"

    def test_unknown_owner_is_refused(self, tmp_path):
        runner = _runner(tmp_path, NY.localize(datetime(2026, 10, 16, 11, 0)))

        async def scenario():
            await runner.initialise()
            with pytest.raises(ValueError, match="Unknown owner 'Gabe'"):
                await runner.submit_trade("Gabe", "AAPL", "BUY", 5, 150)
            return await runner.engine.store.list_portfolios()

        portfolios = _run(scenario())
        assert sorted(p.owner for p in portfolios) == ["claude", "gabe"]

    def test_build_store(self, tmp_path):
        config = CompetitionConfig()
        assert isinstance(build_store(config, "memory"), InMemoryLedgerStore)
        config.ledger.db_path = str(tmp_path / "x.db")
        assert isinstance(build_store(config, "sqlite"), SQLiteLedgerStore)
        with pytest.raises(ValueError):
            build_store(config, "redis")


class TestCli:
    @pytest.fixture
    def config_path(self, tmp_path):
        path = tmp_path / "cli.yaml"
        path.write_text(
            "agent:\n"
            "  agent_system: mock\n"
            f"ledger:\n  db_path: {tmp_path / 'cli.db'}\n"
            f"output_dir: {tmp_path / 'out'}\n",
            encoding="utf-8",
        )
        return str(path)

    def test_trade_then_standings(self, config_path, capsys):
        assert _run(run_competition._main(["--config", config_path, "trade", "gabe", "AAPL", "buy", "5", "150"])) == 0
        assert "Executed: BUY 5 AAPL" in capsys.readouterr().out

        assert _run(run_competition._main(["--config", config_path, "standings"])) == 0
        out = capsys.readouterr().out
        assert "gabe: value $1,000.00  cash $250.00" in out

    def test_rejected_trade_exit_code(self, config_path, capsys):
        code = _run(run_competition._main(["--config", config_path, "trade", "gabe", "AAPL", "SELL", "1", "150"]))
        assert code == 1
        assert "Rejected [InsufficientShares]" in capsys.readouterr().out

    def test_reset(self, config_path, capsys):
        _run(run_competition._main(["--config", config_path, "trade", "gabe", "AAPL", "BUY", "1", "150"]))
        assert _run(run_competition._main(["--config", config_path, "reset"])) == 0
        assert "No trades yet." in capsys.readouterr().out

    def test_unknown_owner_exit_code(self, config_path, capsys):
        code = _run(run_competition._main(["--config", config_path, "trade", "Gabe", "AAPL", "BUY", "1", "150"]))
        assert code == 2
        assert "Unknown owner 'Gabe'" in capsys.readouterr().out
