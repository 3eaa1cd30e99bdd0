"""Two-leg execution: build both legs, dry-run the buy, then buy and sell through the relay."""
from __future__ import annotations

import asyncio
import html
import logging
import time
from typing import Awaitable, Callable, Optional

from analysis.models import ArbitrageOpportunity, TradeOutcome, TradeStatus
from constants import BUY_SELL_DELAY, JUPITER_SWAP_UI_URL, SOLSCAN_TX_URL
from errors import StrandedPosition
from services.notifier import TelegramNotifier
from services.submitter import Submitter
from services.transaction_builder import TransactionBuilder

REASON_BUILD_FAILED = 'build_failed'
REASON_SIMULATION_REJECTED = 'simulation_rejected'
REASON_BUY_FAILED = 'buy_failed'
REASON_SELL_FAILED = 'sell_failed'


class TradeExecutor:
    """Runs one opportunity through BUILD, SIMULATE, SUBMIT_BUY, SUBMIT_SELL."""

    def __init__(
        self,
        builder: TransactionBuilder,
        submitter: Submitter,
        notifier: TelegramNotifier,
        *,
        buy_sell_delay: float = BUY_SELL_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.builder = builder
        self.submitter = submitter
        self.notifier = notifier
        self.buy_sell_delay = buy_sell_delay
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

    async def execute(self, opportunity: ArbitrageOpportunity) -> TradeOutcome:
        started = time.monotonic()
        buy_signature: Optional[str] = None
        try:
            buy_tx, sell_tx = await asyncio.gather(
                self.builder.build(opportunity.buy_quote, 'buy'),
                self.builder.build(opportunity.sell_quote, 'sell'),
            )
            if buy_tx is None or sell_tx is None:
                self.logger.warning("%s: failed to build transactions", opportunity.route_label)
                return self._outcome(opportunity, TradeStatus.SKIPPED, reason=REASON_BUILD_FAILED)

            if not await self.submitter.simulate(buy_tx):
                self.logger.debug("%s: simulation rejected", opportunity.route_label)
                return self._outcome(opportunity, TradeStatus.SKIPPED, reason=REASON_SIMULATION_REJECTED)

            buy_signature = await self.submitter.submit(buy_tx)
            if not buy_signature:
                self.logger.warning("%s: BUY tx failed", opportunity.route_label)
                return self._outcome(opportunity, TradeStatus.FAILED, reason=REASON_BUY_FAILED)
            self.logger.info("BUY  : %s%s", SOLSCAN_TX_URL, buy_signature)

            await self._sleep(self.buy_sell_delay)

            sell_signature = await self.submitter.submit(sell_tx)
            if not sell_signature:
                return await self._strand(opportunity, buy_signature, REASON_SELL_FAILED)
        except Exception as exc:
            if buy_signature:
                return await self._strand(opportunity, buy_signature, f"sell_error: {exc}")
            self.logger.error("Execute error: %s: %s", opportunity.route_label, exc)
            return self._outcome(opportunity, TradeStatus.FAILED, reason=str(exc))

        elapsed_ms = int((time.monotonic() - started) * 1000)
        self.logger.info("SELL : %s%s", SOLSCAN_TX_URL, sell_signature)
        self.logger.info(
            "%.6f SOL (%.2f%%) in %dms",
            opportunity.estimated_net_profit, opportunity.profit_percent, elapsed_ms,
        )
        await self.notifier.send(
            "💰 <b>Profitable Trade!</b>\n"
            f"Route: <b>{html.escape(opportunity.route_label)}</b>\n"
            f"Profit: <b>{opportunity.estimated_net_profit:.6f} SOL</b> ({opportunity.profit_percent:.2f}%)\n"
            f"Time: {elapsed_ms}ms\n"
            f"Buy: <a href=\"{SOLSCAN_TX_URL}{buy_signature}\">view</a>  |  "
            f"Sell: <a href=\"{SOLSCAN_TX_URL}{sell_signature}\">view</a>"
        )
        return self._outcome(
            opportunity,
            TradeStatus.SUCCESS,
            realized_profit=opportunity.estimated_net_profit,
            buy_signature=buy_signature,
            sell_signature=sell_signature,
        )

    async def _strand(self, opportunity: ArbitrageOpportunity, buy_signature: str, reason: str) -> TradeOutcome:
        """Exactly one urgent alert per stranded position; the sell is never retried."""
        stranded = StrandedPosition(opportunity.token_asset_id, buy_signature)
        self.logger.error("%s: SELL FAILED, %s (%s)", opportunity.route_label, stranded, reason)
        await self.notifier.send_urgent(
            "<b>SELL FAILED, ACTION NEEDED</b>\n"
            f"Route: <b>{html.escape(opportunity.route_label)}</b>\n"
            f"Mint: <code>{opportunity.token_asset_id}</code>\n"
            f"Buy tx: <a href=\"{SOLSCAN_TX_URL}{buy_signature}\">{buy_signature}</a>\n"
            f"Manually sell on Jupiter: {JUPITER_SWAP_UI_URL}{opportunity.token_asset_id}-SOL"
        )
        return self._outcome(opportunity, TradeStatus.STRANDED, reason=reason, buy_signature=buy_signature)

    @staticmethod
    def _outcome(opportunity: ArbitrageOpportunity, status: TradeStatus, **fields) -> TradeOutcome:
        return TradeOutcome(
            status=status,
            token_asset_id=opportunity.token_asset_id,
            route_label=opportunity.route_label,
            **fields,
        )
