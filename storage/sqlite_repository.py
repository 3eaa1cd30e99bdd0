"""SQLite-backed persistence layer for scan cycles and trade outcomes."""
from __future__ import annotations

import asyncio
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from analysis.models import TradeOutcome
from storage.models import ScanCycleRecord, TradeOutcomeRecord

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def _serialize_list(values: Iterable[str]) -> str:
    return ",".join(sorted(set(values)))


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.strptime(value, ISO_FORMAT) if value else None


class SQLiteRepository:
    """Provides async-friendly helpers for persisting arbitrage activity."""

    def __init__(self, db_path: Path | str = Path("data/trades.db")) -> None:
        self.db_path = Path(db_path)
        if self.db_path != Path(":memory:"):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._connection = sqlite3.connect(
            str(self.db_path),
            detect_types=sqlite3.PARSE_DECLTYPES,
            check_same_thread=False,
        )
        self._connection.row_factory = sqlite3.Row
        self._configure()
        self._create_schema()

    def _configure(self) -> None:
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute("PRAGMA journal_mode=WAL;")
            except sqlite3.DatabaseError:
                pass
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    def _create_schema(self) -> None:
        statements = [
            """
            CREATE TABLE IF NOT EXISTS scan_cycle (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                started_at TEXT NOT NULL,
                finished_at TEXT,
                candidates TEXT NOT NULL,
                opportunities_found INTEGER NOT NULL DEFAULT 0,
                trades_attempted INTEGER NOT NULL DEFAULT 0
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS trade_outcome (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                scan_cycle_id INTEGER,
                status TEXT NOT NULL,
                token TEXT NOT NULL,
                route TEXT NOT NULL,
                realized_profit REAL NOT NULL DEFAULT 0,
                estimated_profit REAL,
                buy_signature TEXT,
                sell_signature TEXT,
                reason TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (scan_cycle_id) REFERENCES scan_cycle(id) ON DELETE SET NULL
            );
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_trade_outcome_time
                ON trade_outcome(created_at);
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_trade_outcome_status
                ON trade_outcome(status, created_at);
            """,
        ]

        with self._lock:
            cursor = self._connection.cursor()
            for statement in statements:
                cursor.execute(statement)
            self._connection.commit()
            cursor.close()

    async def record_scan_cycle_start(self, candidates: Iterable[str]) -> int:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._record_scan_cycle_start_sync, list(candidates))

    def _record_scan_cycle_start_sync(self, candidates: list[str]) -> int:
        started_at = datetime.now(timezone.utc).strftime(ISO_FORMAT)
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute(
                """
                INSERT INTO scan_cycle (started_at, candidates)
                VALUES (?, ?)
                """,
                (started_at, _serialize_list(candidates)),
            )
            self._connection.commit()
            cycle_id = cursor.lastrowid
            cursor.close()
        return cycle_id

    async def record_scan_cycle_finish(self, scan_cycle_id: int, opportunities_found: int, trades_attempted: int) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            self._record_scan_cycle_finish_sync,
            scan_cycle_id,
            opportunities_found,
            trades_attempted,
        )

    def _record_scan_cycle_finish_sync(self, scan_cycle_id: int, opportunities_found: int, trades_attempted: int) -> None:
        finished_at = datetime.now(timezone.utc).strftime(ISO_FORMAT)
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute(
                """
                UPDATE scan_cycle
                SET finished_at = ?, opportunities_found = ?, trades_attempted = ?
                WHERE id = ?
                """,
                (finished_at, opportunities_found, trades_attempted, scan_cycle_id),
            )
            self._connection.commit()
            cursor.close()

    async def fetch_scan_cycle(self, scan_cycle_id: int) -> Optional[ScanCycleRecord]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_scan_cycle_sync, scan_cycle_id)

    def _fetch_scan_cycle_sync(self, scan_cycle_id: int) -> Optional[ScanCycleRecord]:
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute("SELECT * FROM scan_cycle WHERE id = ?", (scan_cycle_id,))
            row = cursor.fetchone()
            cursor.close()
        if row is None:
            return None
        return ScanCycleRecord(
            id=row["id"],
            started_at=_parse_time(row["started_at"]),
            finished_at=_parse_time(row["finished_at"]),
            candidates=row["candidates"].split(",") if row["candidates"] else [],
            opportunities_found=row["opportunities_found"],
            trades_attempted=row["trades_attempted"],
        )

    async def record_trade_outcome(
        self,
        outcome: TradeOutcome,
        *,
        scan_cycle_id: Optional[int] = None,
        estimated_profit: Optional[float] = None,
    ) -> int:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            self._record_trade_outcome_sync,
            outcome,
            scan_cycle_id,
            estimated_profit,
        )

    def _record_trade_outcome_sync(
        self,
        outcome: TradeOutcome,
        scan_cycle_id: Optional[int],
        estimated_profit: Optional[float],
    ) -> int:
        created_at = datetime.fromtimestamp(outcome.created_at, tz=timezone.utc).strftime(ISO_FORMAT)
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute(
                """
                INSERT INTO trade_outcome (
                    scan_cycle_id,
                    status,
                    token,
                    route,
                    realized_profit,
                    estimated_profit,
                    buy_signature,
                    sell_signature,
                    reason,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    scan_cycle_id,
                    outcome.status.value,
                    outcome.token_asset_id,
                    outcome.route_label,
                    outcome.realized_profit,
                    estimated_profit,
                    outcome.buy_signature,
                    outcome.sell_signature,
                    outcome.reason,
                    created_at,
                ),
            )
            self._connection.commit()
            trade_id = cursor.lastrowid
            cursor.close()
        return trade_id

    async def fetch_recent_trades(self, limit: int = 20, status: Optional[str] = None) -> list[TradeOutcomeRecord]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            self._fetch_recent_trades_sync,
            limit,
            status.upper() if status else None,
        )

    def _fetch_recent_trades_sync(self, limit: int, status: Optional[str]) -> list[TradeOutcomeRecord]:
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute(
                """
                SELECT * FROM trade_outcome
                WHERE (? IS NULL OR status = ?)
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (status, status, limit),
            )
            rows = cursor.fetchall()
            cursor.close()
        records: list[TradeOutcomeRecord] = []
        for row in rows:
            records.append(
                TradeOutcomeRecord(
                    id=row["id"],
                    scan_cycle_id=row["scan_cycle_id"],
                    status=row["status"],
                    token=row["token"],
                    route=row["route"],
                    realized_profit=row["realized_profit"],
                    estimated_profit=row["estimated_profit"],
                    buy_signature=row["buy_signature"],
                    sell_signature=row["sell_signature"],
                    reason=row["reason"],
                    created_at=_parse_time(row["created_at"]),
                )
            )
        return records

    async def close(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._close_sync)

    def _close_sync(self) -> None:
        with self._lock:
            self._connection.commit()
            self._connection.close()


__all__ = ["SQLiteRepository", "ScanCycleRecord", "TradeOutcomeRecord"]
