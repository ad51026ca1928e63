"""SQLite-backed ledger store.

Uses WAL mode so the dashboard can read while a trade commits. Every
``commit_trade`` runs in one ``BEGIN IMMEDIATE`` transaction that first
checks the portfolio version, so two processes trading for the same owner
cannot both apply a change computed from the same read.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Iterable, TypeVar

from models.errors import StoreUnavailable, WriteConflict
from models.portfolio import Portfolio, Position, Trade, utc_now
from simulation.ledger_store import LedgerChange, next_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS portfolios (
    owner TEXT PRIMARY KEY,
    cash TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS positions (
    owner TEXT NOT NULL,
    symbol TEXT NOT NULL,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    avg_price TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (owner, symbol)
);
CREATE TABLE IF NOT EXISTS trades (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    trade_id TEXT NOT NULL UNIQUE,
    owner TEXT NOT NULL,
    symbol TEXT NOT NULL,
    action TEXT NOT NULL CHECK (action IN ('BUY', 'SELL')),
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    price TEXT NOT NULL,
    reasoning TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS ledger_meta (
    key TEXT PRIMARY KEY,
    value INTEGER NOT NULL
);
INSERT OR IGNORE INTO ledger_meta (key, value) VALUES ('change_token', 0);
"""


class SQLiteLedgerStore:
    """Durable ``LedgerStore``; blocking SQLite calls run in a worker thread."""

    def __init__(self, db_path: str | Path, initial_cash: Decimal) -> None:
        self.db_path = Path(db_path)
        self._initial_cash = Decimal(initial_cash)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=5.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        try:
            conn = self._connect()
            try:
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
                conn.executescript(_SCHEMA)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Failed to initialise ledger DB at %s: %s", self.db_path, exc)
            raise StoreUnavailable(f"Cannot open ledger at {self.db_path}: {exc}") from exc
        logger.info("Initialised ledger store at %s (WAL mode)", self.db_path)

    async def _run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        return await asyncio.to_thread(self._run_sync, fn)

    def _run_sync(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Cannot connect to ledger: {exc}") from exc
        try:
            return fn(conn)
        except sqlite3.Error as exc:
            logger.error("Ledger query failed: %s", exc)
            raise StoreUnavailable(f"Ledger query failed: {exc}") from exc
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_portfolio(self, owner: str) -> Portfolio:
        def _get(conn: sqlite3.Connection) -> Portfolio:
            conn.execute(
                "INSERT OR IGNORE INTO portfolios (owner, cash, version, updated_at) "
                "VALUES (?, ?, 0, ?)",
                (owner, str(self._initial_cash), utc_now().isoformat()),
            )
            row = conn.execute("SELECT * FROM portfolios WHERE owner = ?", (owner,)).fetchone()
            return _portfolio_from_row(row)

        return await self._run(_get)

    async def list_portfolios(self) -> list[Portfolio]:
        def _list(conn: sqlite3.Connection) -> list[Portfolio]:
            rows = conn.execute("SELECT * FROM portfolios ORDER BY owner").fetchall()
            return [_portfolio_from_row(r) for r in rows]

        return await self._run(_list)

    async def get_positions(self, owner: str) -> list[Position]:
        def _get(conn: sqlite3.Connection) -> list[Position]:
            rows = conn.execute(
                "SELECT * FROM positions WHERE owner = ? ORDER BY symbol", (owner,)
            ).fetchall()
            return [_position_from_row(r) for r in rows]

        return await self._run(_get)

    async def list_positions(self) -> list[Position]:
        def _list(conn: sqlite3.Connection) -> list[Position]:
            rows = conn.execute("SELECT * FROM positions ORDER BY owner, symbol").fetchall()
            return [_position_from_row(r) for r in rows]

        return await self._run(_list)

    async def recent_trades(self, limit: int, owner: str | None = None) -> list[Trade]:
        def _recent(conn: sqlite3.Connection) -> list[Trade]:
            if owner is None:
                rows = conn.execute(
                    "SELECT * FROM trades ORDER BY seq DESC LIMIT ?", (limit,)
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM trades WHERE owner = ? ORDER BY seq DESC LIMIT ?",
                    (owner, limit),
                ).fetchall()
            return [_trade_from_row(r) for r in rows]

        return await self._run(_recent)

    async def change_token(self) -> int:
        def _token(conn: sqlite3.Connection) -> int:
            row = conn.execute(
                "SELECT value FROM ledger_meta WHERE key = 'change_token'"
            ).fetchone()
            return int(row["value"]) if row else 0

        return await self._run(_token)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def commit_trade(self, change: LedgerChange) -> Trade:
        return await self._run(lambda conn: self._commit(conn, change))

    def _commit(self, conn: sqlite3.Connection, change: LedgerChange) -> Trade:
        owner = change.portfolio.owner
        conn.execute("BEGIN IMMEDIATE")
        try:
            row = conn.execute(
                "SELECT version FROM portfolios WHERE owner = ?", (owner,)
            ).fetchone()
            actual = int(row["version"]) if row else None
            if actual != change.expected_version:
                raise WriteConflict(owner, change.expected_version, actual)

            last_row = conn.execute(
                "SELECT created_at FROM trades ORDER BY seq DESC LIMIT 1"
            ).fetchone()
            last = datetime.fromisoformat(last_row["created_at"]) if last_row else None
            trade = change.trade.model_copy(update={"created_at": next_timestamp(last)})

            portfolio = change.portfolio
            conn.execute(
                "UPDATE portfolios SET cash = ?, version = ?, updated_at = ? WHERE owner = ?",
                (str(portfolio.cash), portfolio.version, portfolio.updated_at.isoformat(), owner),
            )
            if change.position is not None:
                pos = change.position
                conn.execute(
                    "INSERT INTO positions (owner, symbol, quantity, avg_price, updated_at) "
                    "VALUES (?, ?, ?, ?, ?) "
                    "ON CONFLICT (owner, symbol) DO UPDATE SET "
                    "quantity = excluded.quantity, avg_price = excluded.avg_price, "
                    "updated_at = excluded.updated_at",
                    (owner, pos.symbol, pos.quantity, str(pos.avg_price), pos.updated_at.isoformat()),
                )
            if change.closed_symbol is not None:
                conn.execute(
                    "DELETE FROM positions WHERE owner = ? AND symbol = ?",
                    (owner, change.closed_symbol),
                )
            conn.execute(
                "INSERT INTO trades (trade_id, owner, symbol, action, quantity, price, "
                "reasoning, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    trade.trade_id,
                    trade.owner,
                    trade.symbol,
                    trade.action,
                    trade.quantity,
                    str(trade.price),
                    trade.reasoning,
                    trade.created_at.isoformat(),
                ),
            )
            _bump_token(conn)
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        return trade

    async def reset(self, owners: Iterable[str], initial_cash: Decimal) -> None:
        owners = list(owners)
        self._initial_cash = Decimal(initial_cash)

        def _reset(conn: sqlite3.Connection) -> None:
            now = utc_now().isoformat()
            conn.execute("BEGIN IMMEDIATE")
            try:
                # Versions keep rising across a reset.
                versions = {
                    row["owner"]: int(row["version"])
                    for row in conn.execute("SELECT owner, version FROM portfolios")
                }
                conn.execute("DELETE FROM trades")
                conn.execute("DELETE FROM positions")
                conn.execute("DELETE FROM portfolios")
                conn.executemany(
                    "INSERT INTO portfolios (owner, cash, version, updated_at) VALUES (?, ?, ?, ?)",
                    [
                        (owner, str(self._initial_cash), versions.get(owner, -1) + 1, now)
                        for owner in owners
                    ],
                )
                _bump_token(conn)
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise

        await self._run(_reset)
        logger.info("Reset ledger for %s with $%s each.", ", ".join(owners), self._initial_cash)


# ------------------------------------------------------------------
# Row mapping
# ------------------------------------------------------------------

def _bump_token(conn: sqlite3.Connection) -> None:
    conn.execute("UPDATE ledger_meta SET value = value + 1 WHERE key = 'change_token'")


def _portfolio_from_row(row: Any) -> Portfolio:
    return Portfolio(
        owner=row["owner"],
        cash=Decimal(row["cash"]),
        version=row["version"],
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _position_from_row(row: Any) -> Position:
    return Position(
        owner=row["owner"],
        symbol=row["symbol"],
        quantity=row["quantity"],
        avg_price=Decimal(row["avg_price"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _trade_from_row(row: Any) -> Trade:
    return Trade(
        trade_id=row["trade_id"],
        owner=row["owner"],
        symbol=row["symbol"],
        action=row["action"],
        quantity=row["quantity"],
        price=Decimal(row["price"]),
        reasoning=row["reasoning"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )
