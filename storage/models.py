"""Dataclasses representing stored arbitrage records."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class ScanCycleRecord:
    id: int
    started_at: datetime
    finished_at: Optional[datetime]
    candidates: list[str]
    opportunities_found: int
    trades_attempted: int


@dataclass(slots=True)
class TradeOutcomeRecord:
    id: int
    scan_cycle_id: Optional[int]
    status: str
    token: str
    route: str
    realized_profit: float
    estimated_profit: Optional[float]
    buy_signature: Optional[str]
    sell_signature: Optional[str]
    reason: Optional[str]
    created_at: datetime
