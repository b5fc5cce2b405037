"""Position store and trade ledger on SQLite."""

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog

from ..core.errors import DuplicateKeyError, StorageError
from ..core.interfaces import PositionStore
from ..core.types import (
    Position,
    PositionStatus,
    TradeDirection,
    TradeLedgerEntry,
)

logger = structlog.get_logger(__name__)

# Matches SQLite's CURRENT_TIMESTAMP so explicit and default values compare.
_TS_FORMAT = "%Y-%m-%d %H:%M:%S"


def _format_ts(ts: datetime) -> str:
    if ts.tzinfo is not None:
        ts = ts.astimezone(UTC)
    return ts.strftime(_TS_FORMAT)


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=UTC)


def _row_to_position(row: aiosqlite.Row) -> Position:
    return Position(
        pair_address=row["address"],
        token_mint=row["token_mint"],
        symbol=row["symbol"],
        entry_price=row["entry_price"],
        amount=row["amount"],
        token_amount=row["token_amount"],
        status=PositionStatus(row["status"]),
        created_at=_parse_ts(row["created_at"]),
    )


def _row_to_entry(row: aiosqlite.Row) -> TradeLedgerEntry:
    return TradeLedgerEntry(
        tx_id=row["tx_id"],
        pair_address=row["pair_address"],
        direction=TradeDirection(row["direction"]),
        amount=row["amount"],
        price=row["price"],
        timestamp=_parse_ts(row["timestamp"]),
    )


class SQLitePositionStore(PositionStore):
    """SQLite-backed position table and append-only trade ledger.

    Every operation opens its own connection and runs one statement, so
    concurrent monitors and the trading tick serialize on SQLite's own
    locking.
    """

    def __init__(self, db_path: str = "trades.db") -> None:
        """Initialize SQLite storage.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        logger.info("SQLite storage initialized", db_path=db_path)

    @asynccontextmanager
    async def _connect(self, operation: str, **context: Any) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except sqlite3.IntegrityError as e:
            logger.warning("Duplicate key", operation=operation, error=str(e), **context)
            raise DuplicateKeyError(
                f"{operation}: {e}", context={"operation": operation, **context}
            ) from e
        except sqlite3.Error as e:
            logger.error("Storage error", operation=operation, error=str(e), **context)
            raise StorageError(
                f"{operation}: {e}", context={"operation": operation, **context}
            ) from e

    async def initialize(self) -> None:
        """Create tables if they do not exist."""
        async with self._connect("initialize") as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS positions (
                    address TEXT PRIMARY KEY,
                    token_mint TEXT NOT NULL,
                    symbol TEXT,
                    entry_price REAL,
                    amount REAL,
                    token_amount INTEGER,
                    status TEXT CHECK(status IN ('open', 'closed', 'liquidated'))
                        DEFAULT 'open',
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS trade_history (
                    tx_id TEXT PRIMARY KEY,
                    pair_address TEXT,
                    direction TEXT,
                    amount REAL,
                    price REAL,
                    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_trade_history_pair
                ON trade_history(pair_address)
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_trade_history_timestamp
                ON trade_history(timestamp)
            """)

            await db.commit()

        logger.info("Database tables initialized")

    async def list_open_addresses(self) -> set[str]:
        """Pair addresses of positions still open."""
        async with self._connect("list_open_addresses") as db:
            async with db.execute(
                "SELECT address FROM positions WHERE status = ?",
                (PositionStatus.OPEN.value,),
            ) as cursor:
                rows = await cursor.fetchall()
        return {row["address"] for row in rows}

    async def list_tracked_addresses(self) -> set[str]:
        """Pair addresses of every stored position, whatever its status."""
        async with self._connect("list_tracked_addresses") as db:
            async with db.execute("SELECT address FROM positions") as cursor:
                rows = await cursor.fetchall()
        return {row["address"] for row in rows}

    async def list_open_positions(self) -> list[Position]:
        async with self._connect("list_open_positions") as db:
            async with db.execute(
                "SELECT * FROM positions WHERE status = ? ORDER BY created_at",
                (PositionStatus.OPEN.value,),
            ) as cursor:
                rows = await cursor.fetchall()
        return [_row_to_position(row) for row in rows]

    async def insert_position(self, position: Position) -> None:
        """Insert a new position.

        Raises:
            DuplicateKeyError: If the pair address is already stored
        """
        async with self._connect(
            "insert_position", pair_address=position.pair_address
        ) as db:
            await db.execute(
                """
                INSERT INTO positions
                    (address, token_mint, symbol, entry_price, amount, token_amount, status)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    position.pair_address,
                    position.token_mint,
                    position.symbol,
                    position.entry_price,
                    position.amount,
                    position.token_amount,
                    position.status.value,
                ),
            )
            await db.commit()

        logger.debug(
            "Position inserted",
            pair_address=position.pair_address,
            symbol=position.symbol,
            entry_price=position.entry_price,
        )

    async def update_status(self, pair_address: str, status: PositionStatus) -> None:
        async with self._connect("update_status", pair_address=pair_address) as db:
            await db.execute(
                "UPDATE positions SET status = ? WHERE address = ?",
                (PositionStatus(status).value, pair_address),
            )
            await db.commit()

        logger.debug("Position status updated", pair_address=pair_address, status=status)

    async def mark_liquidated(self, pair_address: str) -> None:
        """Record a forced exit. No code path in the trading loop calls this yet."""
        await self.update_status(pair_address, PositionStatus.LIQUIDATED)

    async def get_position(self, pair_address: str) -> Position | None:
        async with self._connect("get_position", pair_address=pair_address) as db:
            async with db.execute(
                "SELECT * FROM positions WHERE address = ?", (pair_address,)
            ) as cursor:
                row = await cursor.fetchone()
        return _row_to_position(row) if row else None

    async def append_ledger_entry(self, entry: TradeLedgerEntry) -> None:
        """Append an executed swap to the ledger.

        Raises:
            DuplicateKeyError: If the transaction id was already recorded
        """
        async with self._connect(
            "append_ledger_entry", tx_id=entry.tx_id, pair_address=entry.pair_address
        ) as db:
            await db.execute(
                """
                INSERT INTO trade_history
                    (tx_id, pair_address, direction, amount, price, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    entry.tx_id,
                    entry.pair_address,
                    entry.direction.value,
                    entry.amount,
                    entry.price,
                    _format_ts(entry.timestamp),
                ),
            )
            await db.commit()

        logger.debug(
            "Trade recorded",
            tx_id=entry.tx_id,
            pair_address=entry.pair_address,
            direction=entry.direction.value,
            amount=entry.amount,
            price=entry.price,
        )

    async def list_ledger_entries(
        self, pair_address: str | None = None
    ) -> list[TradeLedgerEntry]:
        query = "SELECT * FROM trade_history"
        params: tuple[Any, ...] = ()
        if pair_address is not None:
            query += " WHERE pair_address = ?"
            params = (pair_address,)
        query += " ORDER BY timestamp, rowid"

        async with self._connect("list_ledger_entries", pair_address=pair_address) as db:
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
        return [_row_to_entry(row) for row in rows]

    async def count_ledger_entries_since(
        self, since: datetime, direction: TradeDirection
    ) -> int:
        async with self._connect("count_ledger_entries_since") as db:
            async with db.execute(
                "SELECT COUNT(*) FROM trade_history WHERE direction = ? AND timestamp >= ?",
                (TradeDirection(direction).value, _format_ts(since)),
            ) as cursor:
                row = await cursor.fetchone()
        return int(row[0])

    async def close(self) -> None:
        """Close storage (connections are per operation)."""
        logger.info("Storage closed")

    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
