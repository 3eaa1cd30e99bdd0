"""Failure taxonomy shared by the quoting, build and submission pipeline."""
from __future__ import annotations


class ArbitrageError(Exception):
    """Base class for every pipeline failure the bot knows how to contain."""


class ConfigMissing(ArbitrageError):
    """Required settings are absent; the process must not start."""


class QuoteUnavailable(ArbitrageError):
    """Quote transport/parse failure or a response without an output amount."""


class PriceImpactExceeded(ArbitrageError):
    def __init__(self, price_impact_pct: float, max_price_impact: float) -> None:
        super().__init__(
            f"price impact {price_impact_pct:.4f}% >= limit {max_price_impact:.4f}%"
        )
        self.price_impact_pct = price_impact_pct
        self.max_price_impact = max_price_impact


class BuildFailed(ArbitrageError):
    """No swap transaction, unresolved lookup table, or oversized result."""


class SimulationRejected(ArbitrageError):
    """Dry-run rejected the first leg; nothing was sent."""


class SubmissionFailed(ArbitrageError):
    """Relay returned an error or no signature."""


class ConfirmationTimeout(ArbitrageError):
    """No terminal status within the confirmation window."""


class BlockhashExpired(ArbitrageError):
    """Chain height passed the transaction's last valid block height."""


class StrandedPosition(ArbitrageError):
    """Buy leg landed but the sell leg did not; the asset is still held."""

    def __init__(self, asset_id: str, buy_signature: str) -> None:
        super().__init__(f"stranded {asset_id} after buy {buy_signature}")
        self.asset_id = asset_id
        self.buy_signature = buy_signature


class RpcError(ArbitrageError):
    """JSON-RPC endpoint answered with an error object."""
