#!/usr/bin/env python3
import asyncio
import logging
import signal
import sys
import time
from datetime import datetime
from typing import Any, Dict, Optional

import aiohttp
from solders.keypair import Keypair
from telegram import Bot, BotCommand
from telegram.ext import Application, CommandHandler
from telegram.error import TimedOut, TelegramError

import constants
from analysis.evaluator import OpportunityEvaluator
from arbitrage_bot import ArbitrageBot
from bot.handlers import (
    help_command,
    stats_command,
    status_command,
    trades_command,
    watchlist_command,
)
from config import AppConfig, load_config
from discovery.candidate_source import CandidateSource
from discovery.feeds import DexScreenerBoostsFeed, DexScreenerTokensFeed
from discovery.stream import DiscoveryStream
from discovery.watcher import GraduationWatcher
from discovery.watchlist import SeenSet, Watchlist
from errors import ConfigMissing
from log_setup import setup_logging
from services.dexscreener_client import DexScreenerClient
from services.jupiter_client import JupiterClient
from services.notifier import TelegramNotifier
from services.solana_rpc_client import SolanaRpcClient
from services.submitter import Submitter
from services.tip_oracle import TipOracle
from services.trade_executor import TradeExecutor
from services.transaction_builder import TransactionBuilder
from storage import SQLiteRepository, StatsStore
from storage.models import TradeOutcomeRecord

logger = logging.getLogger(__name__)

USER_AGENT = 'SolanaArbBot/1.0'


def build_watcher(config: AppConfig, session: aiohttp.ClientSession, dexscreener: DexScreenerClient,
                  watchlist: Watchlist) -> GraduationWatcher:
    return GraduationWatcher(
        session,
        dexscreener,
        watchlist,
        SeenSet(config.seen_path),
        moralis_api_key=config.moralis_api_key,
    )


def build_components(
    config: AppConfig,
    session: aiohttp.ClientSession,
    telegram_bot: Optional[Bot],
    repository: Optional[SQLiteRepository],
) -> Dict[str, Any]:
    """Wires every collaborator of the arbitrage bot around one shared HTTP session."""
    try:
        keypair = Keypair.from_base58_string(config.private_key)
    except Exception as exc:
        raise ConfigMissing(f"PRIVATE_KEY is not a valid base58 keypair: {exc}") from exc
    wallet_address = str(keypair.pubkey())

    notifier = TelegramNotifier(telegram_bot, config.telegram_chat_id if config.telegram_enabled else None)
    rpc_client = SolanaRpcClient(session, config.rpc_url)
    jupiter = JupiterClient(session, config.jupiter_api_url)
    tip_oracle = TipOracle(session)
    dexscreener = DexScreenerClient(session)
    watchlist = Watchlist(config.watchlist_path)

    evaluator = OpportunityEvaluator(
        jupiter,
        tip_oracle,
        trade_size=config.trade_amount,
        min_profit_percent=config.min_profit_percent,
        max_price_impact=config.max_price_impact,
        slippage_bps=config.slippage_bps,
        base_fee=config.base_fee,
        priority_fee=config.priority_fee,
        sol_usd_rate=config.sol_usd_rate,
        live_sol_rate=config.live_sol_rate,
    )
    candidate_source = CandidateSource(
        [
            DexScreenerTokensFeed(dexscreener, [t['mint'] for t in constants.SEED_TOKENS]),
            DexScreenerBoostsFeed(dexscreener),
        ],
        watchlist,
        min_volume=config.min_volume,
        min_liquidity=config.min_liquidity,
        max_candidates=config.max_candidates,
    )
    submitter = Submitter(
        session,
        rpc_client,
        keypair,
        region=config.sender_region,
        is_devnet=config.is_devnet,
    )
    builder = TransactionBuilder(jupiter, rpc_client, tip_oracle, keypair.pubkey())
    executor = TradeExecutor(builder, submitter, notifier)
    stats = StatsStore(config.stats_path)

    watcher = None
    if config.watcher_enabled or config.stream_enabled:
        watcher = build_watcher(config, session, dexscreener, watchlist)
    stream = DiscoveryStream(watcher.ingest) if config.stream_enabled else None

    arbitrage_bot = ArbitrageBot(
        config,
        candidate_source=candidate_source,
        evaluator=evaluator,
        executor=executor,
        stats=stats,
        notifier=notifier,
        rpc_client=rpc_client,
        submitter=submitter,
        wallet_address=wallet_address,
        repository=repository,
        # stream-only runs share the watcher's ingest path without polling
        watcher=watcher if config.watcher_enabled else None,
        stream=stream,
    )
    return {
        'arbitrage_bot': arbitrage_bot,
        'stats': stats,
        'watchlist': watchlist,
        'notifier': notifier,
    }


async def post_init_hook(application: Application) -> None:
    """A hook that runs after the bot is initialized to set up shared clients and tasks."""
    session = aiohttp.ClientSession(headers={'User-Agent': USER_AGENT})
    application.bot_data['http_session'] = session

    config: AppConfig = application.bot_data['config']
    try:
        components = build_components(config, session, application.bot, application.bot_data.get('repository'))
    except ConfigMissing as exc:
        print(f"{constants.C_RED}{exc}{constants.C_RESET}")
        await session.close()
        raise
    application.bot_data.update(components)

    commands = [
        BotCommand("status", "Check bot status"),
        BotCommand("stats", "Trade statistics"),
        BotCommand("trades", "Recent trade outcomes"),
        BotCommand("watchlist", "Tokens on the watchlist"),
        BotCommand("help", "Show help message"),
    ]
    try:
        await application.bot.set_my_commands(commands)
    except (TimedOut, TelegramError) as exc:
        logger.warning("Unable to set Telegram bot commands (%s). Continuing startup without updating commands.", exc)

    bot_task = asyncio.create_task(components['arbitrage_bot'].start())
    application.bot_data['bot_task'] = bot_task


async def post_stop_hook(application: Application) -> None:
    """Stops the trading loop and lets an in-flight trade land before the bot goes offline."""
    arbitrage_bot: Optional[ArbitrageBot] = application.bot_data.get('arbitrage_bot')
    if arbitrage_bot:
        arbitrage_bot.stop()
    bot_task: Optional[asyncio.Task] = application.bot_data.get('bot_task')
    if bot_task and not bot_task.done():
        try:
            await asyncio.wait_for(asyncio.shield(bot_task), timeout=constants.SHUTDOWN_DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Trading loop still busy after %.0fs, cancelling it", constants.SHUTDOWN_DRAIN_TIMEOUT)
            bot_task.cancel()
            await asyncio.gather(bot_task, return_exceptions=True)
        except Exception as exc:
            logger.error("Trading loop ended with an error: %s", exc)
    if arbitrage_bot:
        # runs before Application.shutdown(), while the Telegram bot can still send
        await arbitrage_bot.shutdown()


async def post_shutdown_hook(application: Application) -> None:
    """A hook that runs on application shutdown to clean up resources."""
    bot_task: Optional[asyncio.Task] = application.bot_data.get('bot_task')
    if bot_task and not bot_task.done():
        bot_task.cancel()
        await asyncio.gather(bot_task, return_exceptions=True)
    session = application.bot_data.get('http_session')
    if session:
        await session.close()
    repository = application.bot_data.get('repository')
    if repository:
        await repository.close()


async def run_headless(config: AppConfig) -> None:
    """Runs the trading loop without Telegram; SIGINT/SIGTERM stop it gracefully."""
    repository = SQLiteRepository(config.db_path)
    async with aiohttp.ClientSession(headers={'User-Agent': USER_AGENT}) as session:
        components = build_components(config, session, None, repository)
        arbitrage_bot: ArbitrageBot = components['arbitrage_bot']

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, arbitrage_bot.stop)
            except NotImplementedError:
                pass

        try:
            await arbitrage_bot.start()
        finally:
            await arbitrage_bot.shutdown()
            await repository.close()


async def run_watch_only(config: AppConfig) -> None:
    """Runs only the graduation watcher (and the push stream when enabled)."""
    async with aiohttp.ClientSession(headers={'User-Agent': USER_AGENT}) as session:
        watcher = build_watcher(config, session, DexScreenerClient(session), Watchlist(config.watchlist_path))
        tasks = [asyncio.create_task(watcher.run())]
        if config.stream_enabled:
            tasks.append(asyncio.create_task(DiscoveryStream(watcher.ingest).run()))
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


def main() -> None:
    """The main synchronous entry point for the application."""
    try:
        config = load_config()
    except ConfigMissing as exc:
        print(f"{constants.C_RED}{exc}{constants.C_RESET}")
        sys.exit(1)

    setup_logging(config.log_level, config.log_dir)

    if config.show_trades:
        repository = SQLiteRepository(config.db_path)
        try:
            records = asyncio.run(repository.fetch_recent_trades(limit=config.trades_limit))
        finally:
            asyncio.run(repository.close())
        _print_trade_records(records, config.trades_limit)
        return

    if config.watch_only:
        try:
            asyncio.run(run_watch_only(config))
        except KeyboardInterrupt:
            print("Watcher stopped.")
        return

    if not config.telegram_enabled:
        print("Telegram is not configured. The application will run in CLI-only mode.")
        try:
            asyncio.run(run_headless(config))
        except ConfigMissing as exc:
            print(f"{constants.C_RED}{exc}{constants.C_RESET}")
            sys.exit(1)
        return

    application = (
        Application.builder()
        .token(config.telegram_bot_token)
        .post_init(post_init_hook)
        .post_stop(post_stop_hook)
        .post_shutdown(post_shutdown_hook)
        .build()
    )

    application.bot_data['config'] = config
    application.bot_data['start_time'] = time.time()
    application.bot_data['repository'] = SQLiteRepository(config.db_path)

    application.add_handler(CommandHandler("start", help_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("status", status_command))
    application.add_handler(CommandHandler("stats", stats_command))
    application.add_handler(CommandHandler("trades", trades_command))
    application.add_handler(CommandHandler("watchlist", watchlist_command))

    try:
        application.run_polling()
    except ConfigMissing:
        sys.exit(1)


def _print_trade_records(records: list[TradeOutcomeRecord], limit: int) -> None:
    heading = f"Showing up to {limit} trade outcomes"
    print(heading)
    print("=" * len(heading))

    if not records:
        print("No trades recorded.")
        return

    headers = [
        "Time (UTC)",
        "Status",
        "Route",
        "Profit SOL",
        "Est. SOL",
        "Buy Tx",
        "Sell Tx",
        "Reason",
    ]

    def _short(sig: str | None) -> str:
        return f"{sig[:8]}..." if sig else "-"

    def _format_row(record: TradeOutcomeRecord) -> list[str]:
        created: datetime | None = record.created_at
        return [
            created.strftime("%Y-%m-%d %H:%M:%S") if created else "N/A",
            record.status,
            record.route,
            f"{record.realized_profit:+.6f}",
            f"{record.estimated_profit:.6f}" if record.estimated_profit is not None else "-",
            _short(record.buy_signature),
            _short(record.sell_signature),
            record.reason or "-",
        ]

    rows = [_format_row(rec) for rec in records]
    widths = [len(h) for h in headers]
    for row in rows:
        for idx, cell in enumerate(row):
            widths[idx] = max(widths[idx], len(cell))

    def _format_line(row: list[str]) -> str:
        return "  ".join(cell.ljust(widths[idx]) for idx, cell in enumerate(row))

    print(_format_line(headers))
    print("  ".join('-' * w for w in widths))
    for row in rows:
        print(_format_line(row))


if __name__ == "__main__":
    main()
