"""
Database - Persistence for stocks, portfolios, positions, audit entries and settings.

Usage:
    db = Database()
    await db.connect()
    portfolio_id = await db.create_portfolio('Retirement', owner='alice', remaining_capital=10000.0)
    await db.upsert_position(portfolio_id, 'AAPL', quantity=10, buy_price=150.0, buy_date='2024-01-02')
    positions = await db.get_positions(portfolio_id)

Every write commits immediately, so a saved row is visible to the next read.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import aiosqlite

logger = logging.getLogger(__name__)


class Database:
    """aiosqlite-backed store, one instance per database file."""

    _instances: dict[str, "Database"] = {}  # path -> instance
    _default_path: str = None

    def __new__(cls, path: str = None):
        """
        Singleton pattern per path - one database instance per unique path.

        Args:
            path: Database file path. If None, uses FOLIO_DATABASE_PATH.
        """
        if path is None:
            if cls._default_path is None:
                from folio.config import FolioConfig

                cls._default_path = str(FolioConfig().database_path)
            path = cls._default_path

        path = str(path)
        if path not in cls._instances:
            instance = super().__new__(cls)
            instance._path = Path(path)
            instance._connection = None
            cls._instances[path] = instance

        return cls._instances[path]

    def __init__(self, path: str = None):
        # Path is already set in __new__
        pass

    @property
    def conn(self) -> aiosqlite.Connection:
        """Get database connection."""
        if not self._connection:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> "Database":
        """Connect to database and initialize schema."""
        if self._connection is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self._path)
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA foreign_keys=ON")
            await self._init_schema()
            logger.debug(f"Connected to {self._path}")
        return self

    async def close(self):
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def remove_from_cache(self):
        """Remove this instance from the singleton cache. Use for temporary databases."""
        path_str = str(self._path)
        if path_str in self._instances:
            del self._instances[path_str]

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a setting value by key."""
        cursor = await self.conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = await cursor.fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except (json.JSONDecodeError, TypeError):
            return row["value"]

    async def set_setting(self, key: str, value: Any) -> None:
        """Set a setting value."""
        json_value = json.dumps(value) if not isinstance(value, str) else value
        await self.conn.execute("INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, json_value))
        await self.conn.commit()

    async def get_all_settings(self) -> dict:
        """Get all settings as a dictionary."""
        cursor = await self.conn.execute("SELECT key, value FROM settings")
        rows = await cursor.fetchall()
        result = {}
        for row in rows:
            try:
                result[row["key"]] = json.loads(row["value"])
            except (json.JSONDecodeError, TypeError):
                result[row["key"]] = row["value"]
        return result

    # -------------------------------------------------------------------------
    # Stocks
    # -------------------------------------------------------------------------

    async def get_stock(self, symbol: str) -> Optional[dict]:
        """Get a stock by symbol."""
        cursor = await self.conn.execute("SELECT * FROM stocks WHERE symbol = ?", (symbol,))
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def get_stocks(self, symbols: list[str]) -> dict[str, dict]:
        """Get several stocks at once, keyed by symbol."""
        if not symbols:
            return {}
        placeholders = ", ".join("?" * len(symbols))
        cursor = await self.conn.execute(
            f"SELECT * FROM stocks WHERE symbol IN ({placeholders})",  # noqa: S608
            tuple(symbols),
        )
        rows = await cursor.fetchall()
        return {row["symbol"]: dict(row) for row in rows}

    async def insert_stock(self, symbol: str, **data) -> None:
        """Insert a stock. Existing rows are left untouched, stocks are immutable."""
        data["symbol"] = symbol
        cols = ", ".join(data.keys())
        placeholders = ", ".join("?" * len(data))
        await self.conn.execute(
            f"INSERT OR IGNORE INTO stocks ({cols}) VALUES ({placeholders})",  # noqa: S608
            tuple(data.values()),
        )
        await self.conn.commit()

    # -------------------------------------------------------------------------
    # Portfolios
    # -------------------------------------------------------------------------

    async def create_portfolio(self, name: str, owner: str, remaining_capital: float) -> int:
        """Create a portfolio and return its id."""
        cursor = await self.conn.execute(
            """INSERT INTO portfolios (name, owner, remaining_capital, created_at)
               VALUES (?, ?, ?, datetime('now'))""",
            (name, owner, remaining_capital),
        )
        await self.conn.commit()
        return cursor.lastrowid

    async def get_portfolio(self, portfolio_id: int) -> Optional[dict]:
        """Get a portfolio by id."""
        cursor = await self.conn.execute("SELECT * FROM portfolios WHERE id = ?", (portfolio_id,))
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def get_portfolios(self, owner: str | None = None) -> list[dict]:
        """Get all portfolios, optionally for one owner."""
        query = "SELECT * FROM portfolios"
        params = []
        if owner:
            query += " WHERE owner = ?"
            params.append(owner)
        cursor = await self.conn.execute(query + " ORDER BY id", params)
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def set_remaining_capital(self, portfolio_id: int, amount: float) -> None:
        """Set a portfolio's remaining capital."""
        await self.conn.execute("UPDATE portfolios SET remaining_capital = ? WHERE id = ?", (amount, portfolio_id))
        await self.conn.commit()

    async def delete_portfolio(self, portfolio_id: int) -> None:
        """Delete a portfolio and its positions."""
        await self.conn.execute("DELETE FROM positions WHERE portfolio_id = ?", (portfolio_id,))
        await self.conn.execute("DELETE FROM portfolios WHERE id = ?", (portfolio_id,))
        await self.conn.commit()

    # -------------------------------------------------------------------------
    # Positions
    # -------------------------------------------------------------------------

    async def get_position(self, portfolio_id: int, symbol: str) -> Optional[dict]:
        """Get a position by (portfolio, symbol)."""
        cursor = await self.conn.execute(
            "SELECT * FROM positions WHERE portfolio_id = ? AND symbol = ?",
            (portfolio_id, symbol),
        )
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def get_positions(self, portfolio_id: int) -> list[dict]:
        """Get all positions of a portfolio."""
        cursor = await self.conn.execute(
            "SELECT * FROM positions WHERE portfolio_id = ? AND quantity > 0 ORDER BY symbol",
            (portfolio_id,),
        )
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def upsert_position(self, portfolio_id: int, symbol: str, **data) -> None:
        """Insert or update a position."""
        await self._write_position(portfolio_id, symbol, data)
        await self.conn.commit()

    async def delete_position(self, portfolio_id: int, symbol: str) -> None:
        """Delete a position."""
        await self.conn.execute(
            "DELETE FROM positions WHERE portfolio_id = ? AND symbol = ?",
            (portfolio_id, symbol),
        )
        await self.conn.commit()

    async def save_trade(
        self,
        portfolio_id: int,
        symbol: str,
        remaining_capital: float,
        position: dict | None,
    ) -> None:
        """
        Persist one trade leg: the position change and the new capital, in one commit.

        Args:
            portfolio_id: Portfolio the leg belongs to
            symbol: Traded symbol
            remaining_capital: Capital after the leg
            position: New position fields, or None to delete the position
        """
        if position is None:
            await self.conn.execute(
                "DELETE FROM positions WHERE portfolio_id = ? AND symbol = ?",
                (portfolio_id, symbol),
            )
        else:
            await self._write_position(portfolio_id, symbol, dict(position))
        await self.conn.execute(
            "UPDATE portfolios SET remaining_capital = ? WHERE id = ?",
            (remaining_capital, portfolio_id),
        )
        await self.conn.commit()

    async def _write_position(self, portfolio_id: int, symbol: str, data: dict) -> None:
        existing = await self.get_position(portfolio_id, symbol)
        if existing:
            sets = ", ".join(f"{k} = ?" for k in data.keys())
            await self.conn.execute(
                f"UPDATE positions SET {sets} WHERE portfolio_id = ? AND symbol = ?",  # noqa: S608
                (*data.values(), portfolio_id, symbol),
            )
        else:
            data["portfolio_id"] = portfolio_id
            data["symbol"] = symbol
            cols = ", ".join(data.keys())
            placeholders = ", ".join("?" * len(data))
            await self.conn.execute(
                f"INSERT INTO positions ({cols}) VALUES ({placeholders})",  # noqa: S608
                tuple(data.values()),
            )

    # -------------------------------------------------------------------------
    # Audit log
    # -------------------------------------------------------------------------

    async def insert_audit_entry(self, actor: str, action: str) -> int:
        """Append an audit entry."""
        cursor = await self.conn.execute(
            "INSERT INTO audit_log (actor, action, created_at) VALUES (?, ?, datetime('now'))",
            (actor, action),
        )
        await self.conn.commit()
        return cursor.lastrowid

    async def get_audit_entries(self, actor: str | None = None, limit: int = 100) -> list[dict]:
        """Get the most recent audit entries, newest first."""
        query = "SELECT * FROM audit_log"
        params: list = []
        if actor:
            query += " WHERE actor = ?"
            params.append(actor)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        cursor = await self.conn.execute(query, params)
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    async def _init_schema(self) -> None:
        """Initialize database schema."""
        await self.conn.executescript(SCHEMA)
        await self.conn.commit()


SCHEMA = """
-- Settings (key-value store)
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Stock reference data, created on first reference
CREATE TABLE IF NOT EXISTS stocks (
    symbol TEXT PRIMARY KEY,
    name TEXT,
    sector TEXT,
    industry TEXT,
    exchange TEXT,
    country TEXT
);

CREATE TABLE IF NOT EXISTS portfolios (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    owner TEXT NOT NULL,
    remaining_capital REAL NOT NULL DEFAULT 0 CHECK(remaining_capital >= 0),
    created_at TEXT
);

-- One position per stock per portfolio
CREATE TABLE IF NOT EXISTS positions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    portfolio_id INTEGER NOT NULL,
    symbol TEXT NOT NULL,
    quantity INTEGER NOT NULL CHECK(quantity > 0),
    buy_price REAL NOT NULL CHECK(buy_price > 0),
    buy_date TEXT NOT NULL,
    UNIQUE (portfolio_id, symbol),
    FOREIGN KEY (portfolio_id) REFERENCES portfolios(id),
    FOREIGN KEY (symbol) REFERENCES stocks(symbol)
);

CREATE INDEX IF NOT EXISTS idx_positions_portfolio ON positions(portfolio_id);

-- Append-only access log
CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    actor TEXT NOT NULL,
    action TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""
