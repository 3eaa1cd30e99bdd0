# arbitrage_bot.py
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from analysis.circuit_breaker import CircuitBreaker
from analysis.evaluator import OpportunityEvaluator
from analysis.models import TradeOutcome
from config import AppConfig
from constants import (CYCLE_PAUSE, ERROR_BACKOFF, HEALTH_CHECK_INTERVAL, LOW_BALANCE_SOL, BALANCE_HEADROOM_SOL,
                       POST_TRADE_PAUSE, RELAY_WARM_INTERVAL, SUMMARY_INTERVAL, WATCHER_POLL_INTERVAL)
from discovery.candidate_source import CandidateSource
from discovery.stream import DiscoveryStream
from discovery.watcher import GraduationWatcher
from services.notifier import TelegramNotifier
from services.solana_rpc_client import SolanaRpcClient
from services.submitter import Submitter
from services.trade_executor import TradeExecutor
from storage import SQLiteRepository, StatsStore

logger = logging.getLogger(__name__)


@dataclass
class BotState:
    breaker: CircuitBreaker
    running: bool = False
    started_at: float = field(default_factory=time.time)
    cycles_run: int = 0
    last_cycle_at: Optional[float] = None
    last_candidates: int = 0
    last_error: Optional[str] = None


class ArbitrageBot:
    def __init__(
        self,
        config: AppConfig,
        *,
        candidate_source: CandidateSource,
        evaluator: OpportunityEvaluator,
        executor: TradeExecutor,
        stats: StatsStore,
        notifier: TelegramNotifier,
        rpc_client: SolanaRpcClient,
        submitter: Submitter,
        wallet_address: str,
        repository: Optional[SQLiteRepository] = None,
        watcher: Optional[GraduationWatcher] = None,
        stream: Optional[DiscoveryStream] = None,
        post_trade_pause: float = POST_TRADE_PAUSE,
        cycle_pause: float = CYCLE_PAUSE,
        error_backoff: float = ERROR_BACKOFF,
    ):
        self.config = config
        self.candidate_source = candidate_source
        self.evaluator = evaluator
        self.executor = executor
        self.stats = stats
        self.notifier = notifier
        self.rpc_client = rpc_client
        self.submitter = submitter
        self.wallet_address = wallet_address
        self.repository = repository
        self.watcher = watcher
        self.stream = stream
        self.post_trade_pause = post_trade_pause
        self.cycle_pause = cycle_pause
        self.error_backoff = error_backoff
        self.state = BotState(breaker=CircuitBreaker(config.max_failures, config.cooldown))
        self._stop_event = asyncio.Event()
        self._tasks: List[asyncio.Task] = []

    @property
    def network_label(self) -> str:
        return 'Devnet' if self.config.is_devnet else 'Mainnet'

    async def _pause(self, seconds: float) -> None:
        """Sleeps, waking early once stop() has been called."""
        if seconds <= 0 or self._stop_event.is_set():
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def start(self) -> None:
        """Initializes the session and starts the main scanning loop."""
        logger.info("=" * 47)
        logger.info("  Solana Arbitrage Bot  %s", self.network_label.upper())
        logger.info("  Sender: %s", self.submitter.endpoint)
        logger.info("=" * 47)
        logger.info("Wallet     : %s", self.wallet_address)
        logger.info("Trade size : %s SOL", self.config.trade_amount)
        logger.info("Min profit : %s%%", self.config.min_profit_percent)
        logger.info("Bases      : %s", ', '.join(b.symbol for b in self.evaluator.bases))
        logger.info("Telegram   : %s", 'ON' if self.notifier.enabled else 'OFF')

        balance = await self._get_balance()
        if balance is not None:
            logger.info("Balance: %.4f SOL", balance)
            recommended = self.config.trade_amount + BALANCE_HEADROOM_SOL
            if balance < recommended:
                logger.warning("Low balance. Recommended minimum: %.3f SOL", recommended)

        await self.submitter.ping()
        balance_text = f"{balance:.4f} SOL" if balance is not None else "unknown"
        await self.notifier.send(
            "🤖 <b>Arbitrage Bot Started</b>\n"
            f"Network: {self.network_label}\n"
            f"Wallet: <code>{self.wallet_address}</code>\n"
            f"Balance: {balance_text}\n"
            f"Bases: {', '.join(b.symbol for b in self.evaluator.bases)}\n"
            f"Sender: {self.submitter.endpoint}"
        )

        if self._stop_event.is_set():
            return
        self.state.running = True
        self.start_periodic_tasks()
        await self.run()

    def start_periodic_tasks(self) -> None:
        self._tasks.append(asyncio.create_task(self._every(SUMMARY_INTERVAL, self.log_summary, 'summary')))
        self._tasks.append(asyncio.create_task(self._every(HEALTH_CHECK_INTERVAL, self.health_check, 'health')))
        if not self.config.is_devnet:
            self._tasks.append(asyncio.create_task(self._every(RELAY_WARM_INTERVAL, self.submitter.ping, 'relay-warm')))
        if self.watcher is not None:
            self._tasks.append(asyncio.create_task(
                self._every(WATCHER_POLL_INTERVAL, self.watcher.poll_once, 'watcher', run_first=True)
            ))
        if self.stream is not None:
            self._tasks.append(asyncio.create_task(self.stream.run()))

    async def _every(self, interval: float, job: Callable[[], Awaitable], name: str, run_first: bool = False) -> None:
        if not run_first:
            await asyncio.sleep(interval)
        while True:
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("Periodic task %s failed: %s", name, exc)
            await asyncio.sleep(interval)

    async def run(self) -> None:
        """The main loop: breaker check, one cycle, short pause."""
        breaker = self.state.breaker
        while self.state.running:
            if breaker.is_open:
                logger.warning("Circuit breaker: cooling down %.0fs...", breaker.cooldown_seconds)
                await self.notifier.send(f"⚠️ Circuit breaker tripped. Cooling {breaker.cooldown_seconds:.0f}s...")
                await breaker.cooldown(self._pause)
                continue
            try:
                await self.run_cycle()
                self.state.last_error = None
            except Exception as exc:
                logger.error("Main loop error: %s", exc, exc_info=logger.isEnabledFor(logging.DEBUG))
                self.state.last_error = str(exc)
                breaker.record_failure()
                await self._pause(self.error_backoff)
                continue
            await self._pause(self.cycle_pause)

    async def run_cycle(self) -> List[TradeOutcome]:
        """
        Scans every candidate once; trades run to completion before the stop flag is rechecked.

        The breaker sees one verdict per cycle: any successful trade resets it,
        otherwise any FAILED or STRANDED trade counts as a single failure.
        """
        breaker = self.state.breaker
        candidates = await self.candidate_source.get_candidates()
        await self.evaluator.refresh_reference_rate()
        self.state.last_candidates = len(candidates)
        logger.debug("Scanning %d tokens x %d bases...", len(candidates), len(self.evaluator.bases))

        cycle_id = await self._record_cycle_start([c.asset_id for c in candidates])
        outcomes: List[TradeOutcome] = []
        opportunities = 0
        succeeded = failed = False
        for candidate in candidates:
            if not self.state.running:
                break
            opportunity = await self.evaluator.find_opportunity(candidate)
            if opportunity is None:
                continue
            opportunities += 1
            logger.info(
                "OPPORTUNITY: %s | profit %.6f SOL | %.2f%%",
                opportunity.route_label, opportunity.estimated_net_profit, opportunity.profit_percent,
            )

            outcome = await self.executor.execute(opportunity)
            outcomes.append(outcome)
            self.stats.record(outcome)
            await self._record_outcome(outcome, cycle_id, opportunity.estimated_net_profit)
            if outcome.success:
                succeeded = True
                breaker.record_success()
            elif outcome.counts_as_failure:
                failed = True
            await self._pause(self.post_trade_pause)

        if failed and not succeeded:
            breaker.record_failure()
        self.state.cycles_run += 1
        self.state.last_cycle_at = time.time()
        await self._record_cycle_finish(cycle_id, opportunities, len(outcomes))
        return outcomes

    def stop(self) -> None:
        if self.state.running:
            logger.info("Shutting down...")
        self.state.running = False
        self._stop_event.set()

    async def shutdown(self) -> None:
        self.stop()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self.log_summary_sync()
        await self.notifier.send("🛑 <b>Arbitrage Bot Stopped</b>")

    async def health_check(self) -> None:
        balance = await self._get_balance()
        snapshot = self.stats.snapshot()
        logger.info(
            "Health | balance %s | trades %d | net %.6f SOL | failures %d",
            f"{balance:.4f} SOL" if balance is not None else "unknown",
            snapshot['totalTrades'],
            snapshot['netProfit'],
            self.state.breaker.state.consecutive_failures,
        )
        if balance is not None and balance < LOW_BALANCE_SOL:
            await self.notifier.send(f"⚠️ <b>LOW BALANCE</b>: {balance:.4f} SOL, top up soon!")

    async def log_summary(self) -> None:
        self.log_summary_sync()

    def log_summary_sync(self) -> None:
        logger.info("Performance summary")
        for line in self.stats.summary_lines():
            logger.info("  %s", line)

    async def _get_balance(self) -> Optional[float]:
        try:
            return await self.rpc_client.get_balance_sol(self.wallet_address)
        except Exception as exc:
            logger.warning("Balance check failed: %s", exc)
            return None

    async def _record_cycle_start(self, candidates: List[str]) -> Optional[int]:
        if not self.repository:
            return None
        try:
            return await self.repository.record_scan_cycle_start(candidates)
        except Exception as exc:
            logger.warning("Failed to record scan cycle start: %s", exc)
            return None

    async def _record_cycle_finish(self, cycle_id: Optional[int], opportunities: int, trades: int) -> None:
        if not self.repository or cycle_id is None:
            return
        try:
            await self.repository.record_scan_cycle_finish(cycle_id, opportunities, trades)
        except Exception as exc:
            logger.warning("Failed to record scan cycle finish: %s", exc)

    async def _record_outcome(self, outcome: TradeOutcome, cycle_id: Optional[int], estimated: float) -> None:
        if not self.repository:
            return
        try:
            await self.repository.record_trade_outcome(outcome, scan_cycle_id=cycle_id, estimated_profit=estimated)
        except Exception as exc:
            logger.warning("Failed to persist trade outcome: %s", exc)
