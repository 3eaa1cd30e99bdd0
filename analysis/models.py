#!/usr/bin/env python3
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey


@dataclass(frozen=True)
class BaseCurrency:
    """A quote currency the bot round-trips through (WSOL, USDC, USD1)."""
    symbol: str
    mint: str
    decimals: int


@dataclass(frozen=True)
class TokenCandidate:
    """A token to scan this cycle."""
    asset_id: str
    symbol: str
    volume_score: float = 0.0


@dataclass
class DiscoveredToken:
    """Raw output of a discovery feed, before filtering."""
    asset_id: str
    symbol: str
    volume_24h: float = 0.0
    liquidity_usd: float = 0.0
    source: str = 'unknown'
    discovered_at: float = field(default_factory=time.time)


@dataclass
class Quote:
    input_asset: str
    output_asset: str
    in_amount: int
    out_amount: int
    price_impact_pct: float
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FeeModel:
    """Per round-trip fee estimate in SOL; every leg pays each component once."""
    tip: float
    base_fee: float
    priority_fee: float

    @property
    def total(self) -> float:
        return 2 * self.tip + 2 * self.base_fee + 2 * self.priority_fee


@dataclass
class ArbitrageOpportunity:
    """A quoted base -> token -> base round trip that clears the profit bar."""
    token_asset_id: str
    token_symbol: str
    route_label: str
    base: BaseCurrency
    buy_quote: Quote
    sell_quote: Quote
    gross_profit: float  # SOL
    total_fees: float  # SOL
    estimated_net_profit: float  # SOL
    profit_percent: float


@dataclass
class PendingTransaction:
    """One signed-later leg: decompiled swap instructions plus the relay tip."""
    leg: str
    payer: Pubkey
    instructions: List[Instruction]
    lookup_tables: List[AddressLookupTableAccount]
    tip_lamports: int
    tip_account: Pubkey
    use_lookup_tables: bool = True

    def compile(self, blockhash: Hash) -> MessageV0:
        tables = self.lookup_tables if self.use_lookup_tables else []
        return MessageV0.try_compile(self.payer, self.instructions, tables, blockhash)


class TradeStatus(str, Enum):
    SUCCESS = 'SUCCESS'
    SKIPPED = 'SKIPPED'
    FAILED = 'FAILED'
    STRANDED = 'STRANDED'


@dataclass(frozen=True)
class TradeOutcome:
    status: TradeStatus
    token_asset_id: str
    route_label: str
    realized_profit: float = 0.0
    buy_signature: Optional[str] = None
    sell_signature: Optional[str] = None
    reason: Optional[str] = None
    created_at: float = field(default_factory=time.time)

    @property
    def success(self) -> bool:
        return self.status is TradeStatus.SUCCESS

    @property
    def counts_as_failure(self) -> bool:
        return self.status in (TradeStatus.FAILED, TradeStatus.STRANDED)


@dataclass
class CircuitState:
    consecutive_failures: int = 0
    tripped: bool = False


@dataclass
class WatchlistEntry:
    asset_id: str
    symbol: str
    source: str
    discovered_at: float

    def to_json(self) -> Dict[str, Any]:
        return {
            'assetId': self.asset_id,
            'symbol': self.symbol,
            'source': self.source,
            'discoveredAt': self.discovered_at,
        }

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> Optional['WatchlistEntry']:
        asset_id = payload.get('assetId') or payload.get('mint')
        if not asset_id or not isinstance(asset_id, str):
            return None
        discovered_at = payload.get('discoveredAt', payload.get('graduatedAt', 0))
        try:
            discovered_at = float(discovered_at)
        except (TypeError, ValueError):
            discovered_at = 0.0
        # legacy files stored milliseconds
        if discovered_at > 1e12:
            discovered_at /= 1000.0
        return cls(
            asset_id=asset_id,
            symbol=str(payload.get('symbol') or asset_id[:6]),
            source=str(payload.get('source') or 'unknown'),
            discovered_at=discovered_at,
        )
