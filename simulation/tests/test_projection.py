"""Tests for the standings projection and the polling view."""

import asyncio
from decimal import Decimal

import pytest

from models.decision import TradeIntent
from models.portfolio import Portfolio, Position
from simulation.engine import TradeExecutionEngine
from simulation.ledger_store import InMemoryLedgerStore
from simulation.projection import (
    TIE,
    StandingsView,
    portfolio_value,
    project_standings,
    render_standings,
)

C0 = Decimal("1000")
OWNERS = ["claude", "gabe"]


def _run(coro):
    return asyncio.run(coro)


@pytest.fixture
def portfolios() -> list[Portfolio]:
    return [
        Portfolio(owner="claude", cash=Decimal("400")),
        Portfolio(owner="gabe", cash=Decimal("1050")),
    ]


@pytest.fixture
def positions() -> list[Position]:
    return [
        Position(owner="claude", symbol="NVDA", quantity=5, avg_price=Decimal("130")),
    ]


class TestProjection:
    def test_value_is_cash_plus_cost_basis(self, positions):
        assert portfolio_value(Decimal("400"), positions) == Decimal("1050")
        assert portfolio_value(Decimal("400"), []) == Decimal("400")

    def test_pnl_and_percent(self, portfolios, positions):
        standings = project_standings(OWNERS, portfolios, positions, [], C0)
        claude = standings.owners["claude"]
        assert claude.value == Decimal("1050")
        assert claude.pnl == Decimal("50")
        assert claude.pnl_pct == Decimal("5")
        assert claude.positions == positions

    def test_tie(self, portfolios, positions):
        standings = project_standings(OWNERS, portfolios, positions, [], C0)
        assert standings.leader == TIE
        assert standings.spread == Decimal("0")

    def test_leader_needs_strictly_greater_value(self, portfolios):
        standings = project_standings(OWNERS, portfolios, [], [], C0)
        assert standings.leader == "gabe"
        assert standings.spread == Decimal("650")

    def test_missing_portfolio_defaults_to_starting_capital(self):
        standings = project_standings(OWNERS, [], [], [], C0)
        assert standings.owners["claude"].cash == C0
        assert standings.owners["gabe"].pnl == Decimal("0")
        assert standings.leader == TIE

    def test_projection_is_pure(self, portfolios, positions):
        first = project_standings(OWNERS, portfolios, positions, [], C0)
        second = project_standings(OWNERS, portfolios, positions, [], C0)
        assert first == second
        assert portfolios[0].cash == Decimal("400")

    def test_loss(self):
        standings = project_standings(
            OWNERS, [Portfolio(owner="gabe", cash=Decimal("900"))], [], [], C0
        )
        assert standings.owners["gabe"].pnl_pct == Decimal("-10")
        assert standings.leader == "claude"


class TestStandingsView:
    def test_rereads_only_after_a_change(self):
        store = InMemoryLedgerStore(C0)
        engine = TradeExecutionEngine(store)
        view = StandingsView(store, OWNERS, C0)

        async def scenario():
            first, changed = await view.refresh()
            assert changed
            again, changed = await view.refresh()
            assert not changed
            assert again is first

            await engine.execute_trade("gabe", TradeIntent(action="BUY", symbol="AAPL", quantity=5), 150)
            await engine.execute_trade("gabe", TradeIntent(action="SELL", symbol="AAPL", quantity=5), 160)
            latest, changed = await view.refresh()
            assert changed
            assert view.snapshot is latest
            return latest

        standings = _run(scenario())
        assert standings.owners["gabe"].cash == Decimal("1050")
        assert standings.owners["gabe"].pnl == Decimal("50")
        assert standings.leader == "gabe"
        assert len(standings.trades) == 2

    def test_history_limit(self):
        store = InMemoryLedgerStore(C0)
        engine = TradeExecutionEngine(store)
        view = StandingsView(store, OWNERS, C0, history_limit=2)

        async def scenario():
            for _ in range(3):
                await engine.execute_trade("claude", TradeIntent(action="BUY", symbol="SPY", quantity=1), 10)
            standings, _ = await view.refresh()
            return standings

        assert len(_run(scenario()).trades) == 2


class TestRendering:
    def test_render(self, portfolios, positions):
        text = render_standings(project_standings(OWNERS, portfolios, positions, [], C0))
        assert text.startswith("Tied!")
        assert "claude: value $1,050.00" in text
        assert "NVDA" in text
        assert "No trades yet." in text

    def test_render_leader_and_loss(self):
        standings = project_standings(
            OWNERS, [Portfolio(owner="gabe", cash=Decimal("900"))], [], [], C0
        )
        text = render_standings(standings)
        assert text.startswith("claude leads by $100.00")
        assert "-$100.00 (-10.00%)" in text
