#!/usr/bin/env python3
import logging
from typing import Iterable, List, Optional

from analysis.models import ArbitrageOpportunity, BaseCurrency, FeeModel, Quote, TokenCandidate
from constants import (BASE_CURRENCIES, BASE_FEE_SOL, LAMPORTS_PER_SOL, PRIORITY_FEE_ESTIMATE_SOL,
                       SOL_USD_APPROX, USDC_MINT, WSOL_MINT)
from errors import ArbitrageError, PriceImpactExceeded
from services.jupiter_client import JupiterClient
from services.tip_oracle import TipOracle

logger = logging.getLogger(__name__)


def default_bases() -> List[BaseCurrency]:
    return [BaseCurrency(str(b['symbol']), str(b['mint']), int(b['decimals'])) for b in BASE_CURRENCIES]


def compute_fee_model(tip_sol: float, base_fee: float = BASE_FEE_SOL,
                      priority_fee: float = PRIORITY_FEE_ESTIMATE_SOL) -> FeeModel:
    return FeeModel(tip=tip_sol, base_fee=base_fee, priority_fee=priority_fee)


def compute_net_profit(gross_profit: float, fees: FeeModel, trade_size: float) -> tuple[float, float]:
    """Returns (net profit in SOL, net profit as a percent of trade size)."""
    net = gross_profit - fees.total
    pct = (net / trade_size) * 100 if trade_size > 0 else 0.0
    return net, pct


class OpportunityEvaluator:
    """Quotes base -> token -> base round trips and keeps the best one that clears the bar."""

    def __init__(
        self,
        quote_client: JupiterClient,
        tip_oracle: TipOracle,
        *,
        trade_size: float,
        min_profit_percent: float,
        max_price_impact: float,
        slippage_bps: int,
        base_fee: float = BASE_FEE_SOL,
        priority_fee: float = PRIORITY_FEE_ESTIMATE_SOL,
        sol_usd_rate: float = SOL_USD_APPROX,
        live_sol_rate: bool = False,
        bases: Optional[Iterable[BaseCurrency]] = None,
    ) -> None:
        self.quote_client = quote_client
        self.tip_oracle = tip_oracle
        self.trade_size = trade_size
        self.min_profit_percent = min_profit_percent
        self.max_price_impact = max_price_impact
        self.slippage_bps = slippage_bps
        self.base_fee = base_fee
        self.priority_fee = priority_fee
        self.static_sol_usd_rate = sol_usd_rate
        self.sol_usd_rate = sol_usd_rate
        self.live_sol_rate = live_sol_rate
        self.bases = list(bases) if bases is not None else default_bases()

    def input_amount(self, base: BaseCurrency) -> int:
        if base.mint == WSOL_MINT:
            return int(self.trade_size * LAMPORTS_PER_SOL)
        return int(self.trade_size * self.sol_usd_rate * (10 ** base.decimals))

    def to_sol(self, amount: int, base: BaseCurrency) -> float:
        if base.mint == WSOL_MINT:
            return amount / LAMPORTS_PER_SOL
        return (amount / (10 ** base.decimals)) / self.sol_usd_rate

    async def refresh_reference_rate(self) -> float:
        """Quotes 1 SOL -> USDC when live rates are enabled; falls back to the static rate."""
        if not self.live_sol_rate:
            return self.sol_usd_rate
        try:
            quote = await self.quote_client.get_quote(
                WSOL_MINT, USDC_MINT, LAMPORTS_PER_SOL, slippage_bps=self.slippage_bps,
            )
            rate = quote.out_amount / 1e6
            if rate <= 0:
                raise ValueError(f"non-positive SOL/USD rate {rate}")
            self.sol_usd_rate = rate
        except (ArbitrageError, ValueError) as exc:
            logger.debug("SOL/USD refresh failed, using %.2f: %s", self.static_sol_usd_rate, exc)
            self.sol_usd_rate = self.static_sol_usd_rate
        return self.sol_usd_rate

    def _check_impact(self, quote: Quote) -> None:
        if quote.price_impact_pct >= self.max_price_impact:
            raise PriceImpactExceeded(quote.price_impact_pct, self.max_price_impact)

    async def evaluate_base(self, candidate: TokenCandidate, base: BaseCurrency) -> Optional[ArbitrageOpportunity]:
        """
        Quotes one round trip through ``base``.

        Returns the opportunity when it clears the profit bar, else None.
        Quote and impact failures propagate as ``ArbitrageError``.
        """
        in_amount = self.input_amount(base)
        if in_amount <= 0:
            return None

        buy_quote = await self.quote_client.get_quote(
            base.mint, candidate.asset_id, in_amount, slippage_bps=self.slippage_bps,
        )
        self._check_impact(buy_quote)

        sell_quote = await self.quote_client.get_quote(
            candidate.asset_id, base.mint, buy_quote.out_amount, slippage_bps=self.slippage_bps,
        )
        self._check_impact(sell_quote)

        gross_profit = self.to_sol(sell_quote.out_amount - in_amount, base)
        tip_sol = await self.tip_oracle.get_tip_sol()
        fees = compute_fee_model(tip_sol, self.base_fee, self.priority_fee)
        net, pct = compute_net_profit(gross_profit, fees, self.trade_size)

        if net <= 0 or pct < self.min_profit_percent:
            logger.debug(
                "%s via %s: net %.6f SOL (%.3f%%) below bar", candidate.symbol, base.symbol, net, pct,
            )
            return None

        return ArbitrageOpportunity(
            token_asset_id=candidate.asset_id,
            token_symbol=candidate.symbol,
            route_label=f"{base.symbol}→{candidate.symbol}→{base.symbol}",
            base=base,
            buy_quote=buy_quote,
            sell_quote=sell_quote,
            gross_profit=gross_profit,
            total_fees=fees.total,
            estimated_net_profit=net,
            profit_percent=pct,
        )

    async def find_opportunity(self, candidate: TokenCandidate) -> Optional[ArbitrageOpportunity]:
        best: Optional[ArbitrageOpportunity] = None
        for base in self.bases:
            if base.mint == candidate.asset_id:
                continue
            try:
                opportunity = await self.evaluate_base(candidate, base)
            except ArbitrageError as exc:
                logger.debug("%s via %s skipped: %s", candidate.symbol, base.symbol, exc)
                continue
            except Exception as exc:
                logger.debug("%s via %s errored: %s", candidate.symbol, base.symbol, exc, exc_info=True)
                continue
            if opportunity is None:
                continue
            if best is None or opportunity.estimated_net_profit > best.estimated_net_profit:
                best = opportunity
        return best
