#!/usr/bin/env python3
import os
import argparse
from pathlib import Path
from typing import NamedTuple, Optional, Sequence

from dotenv import load_dotenv

import constants
from errors import ConfigMissing


class AppConfig(NamedTuple):
    """Typed configuration object."""
    rpc_url: str
    ws_url: str
    private_key: str
    trade_amount: float
    min_profit_percent: float
    max_price_impact: float
    slippage_bps: int
    log_level: str
    log_dir: str
    is_devnet: bool
    sender_region: str
    jupiter_api_url: str
    telegram_enabled: bool
    telegram_bot_token: str | None
    telegram_chat_id: str | None
    moralis_api_key: str | None
    min_volume: float
    min_liquidity: float
    max_candidates: int
    max_failures: int
    cooldown: float
    sol_usd_rate: float
    live_sol_rate: bool
    base_fee: float
    priority_fee: float
    watchlist_path: str
    seen_path: str
    stats_path: str
    db_path: str
    watcher_enabled: bool
    stream_enabled: bool
    watch_only: bool
    show_trades: bool
    trades_limit: int


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigMissing(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigMissing(f"{name} must be an integer, got {raw!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Scan Jupiter round trips for arbitrage and execute them through the Helius Sender relay.",
        epilog="Example: ./main.py --trade-amount 0.05 --min-profit-percent 0.5 --watcher-enabled"
    )
    # --- Trading ---
    parser.add_argument('--trade-amount', type=float, default=None, help='Trade size in SOL (default: $TRADE_AMOUNT or 0.05).')
    parser.add_argument('--min-profit-percent', type=float, default=None, help='Minimum net profit percent of trade size (default: $MIN_PROFIT_PERCENT or 0.5).')
    parser.add_argument('--max-price-impact', type=float, default=None, help='Reject quotes whose price impact percent reaches this value (default: $MAX_PRICE_IMPACT or 1.0).')
    parser.add_argument('--slippage-bps', type=int, default=None, help='Slippage tolerance in basis points (default: $SLIPPAGE_BPS or 50).')
    parser.add_argument('--base-fee', type=float, default=constants.BASE_FEE_SOL, help='Base transaction fee estimate in SOL (default: 0.000005).')
    parser.add_argument('--priority-fee', type=float, default=constants.PRIORITY_FEE_ESTIMATE_SOL, help='Priority fee estimate per transaction in SOL (default: 0.0001).')
    parser.add_argument('--sol-usd-rate', type=float, default=constants.SOL_USD_APPROX, help='Static SOL/USD rate used to normalise stablecoin bases (default: 150).')
    parser.add_argument('--live-sol-rate', action='store_true', help='Refresh the SOL/USD rate from a Jupiter quote every cycle.')

    # --- Network ---
    parser.add_argument('--devnet', action='store_true', help='Use devnet (relay submission falls back to the RPC URL).')
    parser.add_argument('--sender-region', choices=sorted(constants.SENDER_ENDPOINTS.keys()), default=None, help='Helius Sender region (default: $SENDER_REGION or ewr).')
    parser.add_argument('--jupiter-api-url', type=str, default=constants.JUPITER_API_BASE_URL, help='Jupiter swap API base URL.')

    # --- Candidates & discovery ---
    parser.add_argument('--min-volume', type=float, default=constants.DEFAULT_MIN_VOLUME_USD, help='Min 24h volume USD for discovered tokens (default: 50000).')
    parser.add_argument('--min-liquidity', type=float, default=constants.DEFAULT_MIN_LIQUIDITY_USD, help='Min USD liquidity for discovered tokens (default: 20000).')
    parser.add_argument('--max-candidates', type=int, default=constants.DEFAULT_MAX_CANDIDATES, help='Max tokens scanned per cycle (default: 60).')
    parser.add_argument('--watcher-enabled', action='store_true', help='Run the graduation watcher as a background task.')
    parser.add_argument('--stream-enabled', action='store_true', help='Subscribe to the PumpPortal migration stream.')
    parser.add_argument('--watch-only', action='store_true', help='Only run the graduation watcher; no trading.')

    # --- Failure containment ---
    parser.add_argument('--max-failures', type=int, default=5, help='Consecutive failed cycles before the circuit breaker trips (default: 5).')
    parser.add_argument('--cooldown', type=float, default=60.0, help='Circuit breaker cooldown in seconds (default: 60).')

    # --- Files & output ---
    parser.add_argument('--watchlist-path', type=str, default='watchlist.json', help='Watchlist file (default: watchlist.json).')
    parser.add_argument('--seen-path', type=str, default='logs/watcher-seen.json', help='Seen-set file (default: logs/watcher-seen.json).')
    parser.add_argument('--stats-path', type=str, default='logs/stats.json', help='Stats file (default: logs/stats.json).')
    parser.add_argument('--db-path', type=str, default='data/trades.db', help='Trade history database (default: data/trades.db).')
    parser.add_argument('--log-dir', type=str, default='logs', help='Directory for per-level log files (default: logs).')
    parser.add_argument('--log-level', choices=['debug', 'info', 'warning', 'error'], default=None, help='Log level (default: $LOG_LEVEL or info).')
    parser.add_argument('--show-trades', action='store_true', help='Display recent trade outcomes and exit.')
    parser.add_argument('--trades-limit', type=int, default=20, help='Number of trades shown by --show-trades (default: 20).')
    return parser


def load_config(argv: Optional[Sequence[str]] = None) -> AppConfig:
    """
    Parses command-line arguments and loads environment variables to create a configuration object.

    Raises:
        ConfigMissing: when a required setting is absent or malformed.
    """
    load_dotenv(Path('config') / '.env')
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    rpc_url = os.environ.get(constants.RPC_URL_ENV_VAR) or ''
    private_key = os.environ.get(constants.PRIVATE_KEY_ENV_VAR) or ''
    needs_wallet = not (args.watch_only or args.show_trades)

    if needs_wallet:
        missing = [
            name for name, value in (
                (constants.RPC_URL_ENV_VAR, rpc_url),
                (constants.PRIVATE_KEY_ENV_VAR, private_key),
            ) if not value
        ]
        if missing:
            raise ConfigMissing(f"Missing env vars: {', '.join(missing)}")

    ws_url = os.environ.get(constants.WS_URL_ENV_VAR) or rpc_url.replace('https', 'wss', 1)

    telegram_bot_token = os.environ.get(constants.TELEGRAM_BOT_TOKEN_ENV_VAR)
    telegram_chat_id = os.environ.get(constants.TELEGRAM_CHAT_ID_ENV_VAR)
    if telegram_bot_token == 'disabled':
        telegram_bot_token = None
    telegram_enabled = bool(telegram_bot_token and telegram_chat_id)

    sender_region = args.sender_region or os.environ.get(constants.SENDER_REGION_ENV_VAR) or constants.DEFAULT_SENDER_REGION
    if sender_region not in constants.SENDER_ENDPOINTS:
        sender_region = 'global'

    log_level = (args.log_level or os.environ.get(constants.LOG_LEVEL_ENV_VAR) or 'info').lower()
    is_devnet = args.devnet or os.environ.get(constants.NETWORK_ENV_VAR, '').lower() == 'devnet'

    trade_amount = args.trade_amount if args.trade_amount is not None else _env_float(constants.TRADE_AMOUNT_ENV_VAR, 0.05)
    if trade_amount <= 0:
        raise ConfigMissing("Trade amount must be positive.")

    return AppConfig(
        rpc_url=rpc_url,
        ws_url=ws_url,
        private_key=private_key,
        trade_amount=trade_amount,
        min_profit_percent=args.min_profit_percent if args.min_profit_percent is not None else _env_float(constants.MIN_PROFIT_PERCENT_ENV_VAR, 0.5),
        max_price_impact=args.max_price_impact if args.max_price_impact is not None else _env_float(constants.MAX_PRICE_IMPACT_ENV_VAR, 1.0),
        slippage_bps=args.slippage_bps if args.slippage_bps is not None else _env_int(constants.SLIPPAGE_BPS_ENV_VAR, 50),
        log_level=log_level,
        log_dir=args.log_dir,
        is_devnet=is_devnet,
        sender_region=sender_region,
        jupiter_api_url=args.jupiter_api_url.rstrip('/'),
        telegram_enabled=telegram_enabled,
        telegram_bot_token=telegram_bot_token,
        telegram_chat_id=telegram_chat_id,
        moralis_api_key=os.environ.get(constants.MORALIS_API_KEY_ENV_VAR) or None,
        min_volume=args.min_volume,
        min_liquidity=args.min_liquidity,
        max_candidates=args.max_candidates,
        max_failures=args.max_failures,
        cooldown=args.cooldown,
        sol_usd_rate=args.sol_usd_rate,
        live_sol_rate=args.live_sol_rate,
        base_fee=args.base_fee,
        priority_fee=args.priority_fee,
        watchlist_path=args.watchlist_path,
        seen_path=args.seen_path,
        stats_path=args.stats_path,
        db_path=args.db_path,
        watcher_enabled=args.watcher_enabled or args.watch_only,
        stream_enabled=args.stream_enabled,
        watch_only=args.watch_only,
        show_trades=args.show_trades,
        trades_limit=args.trades_limit,
    )
