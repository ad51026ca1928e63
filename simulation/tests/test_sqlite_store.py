"""Tests for the SQLite ledger: durability, conditional writes and atomicity."""

import asyncio
from decimal import Decimal

import pytest

from models.decision import TradeIntent
from models.errors import StoreUnavailable, WriteConflict
from simulation.engine import TradeExecutionEngine, plan_trade
from simulation.sqlite_store import SQLiteLedgerStore


def _run(coro):
    return asyncio.run(coro)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "ledger.db"


@pytest.fixture
def store(db_path) -> SQLiteLedgerStore:
    return SQLiteLedgerStore(db_path, Decimal("1000"))


class TestReads:
    def test_portfolio_created_on_first_read(self, store):
        portfolio = _run(store.get_portfolio("gabe"))
        assert portfolio.cash == Decimal("1000")
        assert portfolio.version == 0
        assert [p.owner for p in _run(store.list_portfolios())] == ["gabe"]

    def test_state_survives_reopen(self, store, db_path):
        engine = TradeExecutionEngine(store)
        _run(engine.execute_trade("gabe", TradeIntent(action="BUY", symbol="AAPL", quantity=3), "101.10"))

        reopened = SQLiteLedgerStore(db_path, Decimal("1000"))
        portfolio = _run(reopened.get_portfolio("gabe"))
        positions = _run(reopened.get_positions("gabe"))
        trades = _run(reopened.recent_trades(5))

        assert portfolio.cash == Decimal("696.70")
        assert portfolio.version == 1
        assert positions[0].avg_price == Decimal("101.10")
        assert trades[0].price == Decimal("101.10")
        assert trades[0].reasoning == "No reasoning"

    def test_recent_trades_filter_and_limit(self, store):
        engine = TradeExecutionEngine(store)

        async def scenario():
            for owner in ("claude", "gabe", "claude"):
                await engine.execute_trade(
                    owner, TradeIntent(action="BUY", symbol="SPY", quantity=1), Decimal("10")
                )
            assert len(await store.recent_trades(2)) == 2
            assert [t.owner for t in await store.recent_trades(10)] == ["claude", "gabe", "claude"]
            assert len(await store.recent_trades(10, owner="claude")) == 2

        _run(scenario())


class TestWrites:
    def test_stale_version_is_refused(self, store):
        async def scenario():
            portfolio = await store.get_portfolio("gabe")
            intent = TradeIntent(action="BUY", symbol="AAPL", quantity=1)
            first = plan_trade("gabe", intent, portfolio, [], Decimal("100"))
            second = plan_trade("gabe", intent, portfolio, [], Decimal("100"))
            await store.commit_trade(first)
            with pytest.raises(WriteConflict):
                await store.commit_trade(second)
            return await store.get_portfolio("gabe")

        portfolio = _run(scenario())
        assert portfolio.cash == Decimal("900")
        assert portfolio.version == 1

    def test_failed_commit_rolls_back_everything(self, store):
        async def scenario():
            portfolio = await store.get_portfolio("gabe")
            intent = TradeIntent(action="BUY", symbol="AAPL", quantity=1)
            first = await store.commit_trade(
                plan_trade("gabe", intent, portfolio, [], Decimal("100"))
            )

            portfolio = await store.get_portfolio("gabe")
            positions = await store.get_positions("gabe")
            token = await store.change_token()
            change = plan_trade("gabe", intent, portfolio, positions, Decimal("100"))
            # Reusing a trade id violates the unique constraint on the last insert.
            clash = change.model_copy(
                update={"trade": change.trade.model_copy(update={"trade_id": first.trade_id})}
            )
            with pytest.raises(StoreUnavailable):
                await store.commit_trade(clash)

            assert await store.get_portfolio("gabe") == portfolio
            assert await store.get_positions("gabe") == positions
            assert len(await store.recent_trades(10)) == 1
            assert await store.change_token() == token

        _run(scenario())

    def test_full_sell_deletes_row(self, store):
        engine = TradeExecutionEngine(store)

        async def scenario():
            await engine.execute_trade("gabe", TradeIntent(action="BUY", symbol="AAPL", quantity=5), 150)
            await engine.execute_trade("gabe", TradeIntent(action="SELL", symbol="AAPL", quantity=5), 160)
            assert await store.list_positions() == []
            assert (await store.get_portfolio("gabe")).cash == Decimal("1050")

        _run(scenario())

    def test_reset(self, store):
        engine = TradeExecutionEngine(store)

        async def scenario():
            await engine.execute_trade("gabe", TradeIntent(action="BUY", symbol="AAPL", quantity=1), 10)
            before = await store.change_token()
            await store.reset(["claude", "gabe"], Decimal("2000"))
            assert await store.change_token() > before
            assert await store.recent_trades(10) == []
            assert await store.list_positions() == []
            cash = {p.owner: p.cash for p in await store.list_portfolios()}
            assert cash == {"claude": Decimal("2000"), "gabe": Decimal("2000")}

        _run(scenario())

    def test_change_planned_before_reset_is_refused(self, store):
        async def scenario():
            portfolio = await store.get_portfolio("gabe")
            stale = plan_trade(
                "gabe", TradeIntent(action="BUY", symbol="AAPL", quantity=1), portfolio, [], Decimal("100")
            )
            await store.reset(["claude", "gabe"], Decimal("1000"))
            assert (await store.get_portfolio("gabe")).version == 1
            assert (await store.get_portfolio("claude")).version == 0
            with pytest.raises(WriteConflict):
                await store.commit_trade(stale)
            assert await store.recent_trades(10) == []

        _run(scenario())

    def test_concurrent_buys_for_one_owner(self, db_path):
        store = SQLiteLedgerStore(db_path, Decimal("1000"))
        engines = [TradeExecutionEngine(store), TradeExecutionEngine(store)]

        async def scenario():
            return await asyncio.gather(
                *(
                    e.execute_trade("claude", TradeIntent(action="BUY", symbol="NVDA", quantity=4), 150)
                    for e in engines
                )
            )

        results = _run(scenario())
        assert sum(r.accepted for r in results) == 1
        assert _run(store.get_portfolio("claude")).cash == Decimal("400")
