#!/usr/bin/env python3
from typing import Dict, List

# --- ANSI Color Codes ---
C_GREEN = '\033[92m'
C_RED = '\033[91m'
C_YELLOW = '\033[93m'
C_BLUE = '\033[94m'
C_CYAN = '\033[96m'
C_GREY = '\033[90m'
C_RESET = '\033[0m'

# --- API Configuration ---
JUPITER_API_BASE_URL = 'https://lite-api.jup.ag/swap/v1'
DEXSCREENER_API_BASE_URL = 'https://api.dexscreener.com/latest/dex'
DEXSCREENER_ROOT_URL = 'https://api.dexscreener.com'
MORALIS_PUMPFUN_GRADUATED_URL = 'https://solana-gateway.moralis.io/token/mainnet/exchange/pumpfun/graduated'
JITO_TIP_FLOOR_URL = 'https://bundles.jito.wtf/api/v1/bundles/tip_floor'
PUMPPORTAL_WS_URL = 'wss://pumpportal.fun/api/data'
SOLSCAN_TX_URL = 'https://solscan.io/tx/'
JUPITER_SWAP_UI_URL = 'https://jup.ag/swap/'

# --- Environment Variable Names ---
RPC_URL_ENV_VAR = 'RPC_URL'
WS_URL_ENV_VAR = 'WS_URL'
PRIVATE_KEY_ENV_VAR = 'PRIVATE_KEY'
TELEGRAM_BOT_TOKEN_ENV_VAR = 'TELEGRAM_BOT_TOKEN'
TELEGRAM_CHAT_ID_ENV_VAR = 'TELEGRAM_CHAT_ID'
MORALIS_API_KEY_ENV_VAR = 'MORALIS_API_KEY'
NETWORK_ENV_VAR = 'NETWORK'
SENDER_REGION_ENV_VAR = 'SENDER_REGION'
LOG_LEVEL_ENV_VAR = 'LOG_LEVEL'
TRADE_AMOUNT_ENV_VAR = 'TRADE_AMOUNT'
MIN_PROFIT_PERCENT_ENV_VAR = 'MIN_PROFIT_PERCENT'
MAX_PRICE_IMPACT_ENV_VAR = 'MAX_PRICE_IMPACT'
SLIPPAGE_BPS_ENV_VAR = 'SLIPPAGE_BPS'

# --- Helius Sender (priority relay) ---
HELIUS_TIP_ACCOUNTS: List[str] = [
    '4ACfpUFoaSD9bfPdeu6DBt89gB6ENTeHBXCAi87NhDEE',
    'D2L6yPZ2FmmmTKPgzaMKdhu6EWZcTpLy1Vhx8uvZe7NZ',
    '9bnz4RShgq1hAnLnZbP8kbgBg1kEmcJBYQq3gQbmnSta',
    '5VY91ws6B2hMmBFRsXkoAAdsPHBJwRfBht4DXox3xkwn',
    '2nyhqdwKcJZR2vcqCyrYsaPVdAnFoJjiksCXJ7hfEYgD',
    '2q5pghRs6arqVjRvT5gfgWfWcHWmw1ZuCzphgd5KfWGJ',
    'wyvPkWjVZz1M8fHQnMMCDTQDbkManefNNhweYk5WkcF',
    '3KCKozbAaF75qEU33jtzozcJ29yJuaLJTy2jFdzUY8bT',
    '4vieeGHPYPG2MmyPRcYjdiDmmhN3ww7hsFNap8pVN3Ey',
    '4TQLFNWK8AovT1gFvda5jfw2oJeRMKEmw7aH6MGBJ3or',
]

SENDER_ENDPOINTS: Dict[str, str] = {
    'ewr': 'http://ewr-sender.helius-rpc.com/fast',
    'slc': 'http://slc-sender.helius-rpc.com/fast',
    'lon': 'http://lon-sender.helius-rpc.com/fast',
    'fra': 'http://fra-sender.helius-rpc.com/fast',
    'ams': 'http://ams-sender.helius-rpc.com/fast',
    'sg': 'http://sg-sender.helius-rpc.com/fast',
    'tyo': 'http://tyo-sender.helius-rpc.com/fast',
    'global': 'https://sender.helius-rpc.com/fast',
}
DEFAULT_SENDER_REGION = 'ewr'

# --- Chain Constants ---
LAMPORTS_PER_SOL = 1_000_000_000
MIN_TIP_LAMPORTS = 200_000  # 0.0002 SOL, relay minimum
TIP_CACHE_SECONDS = 300.0
MAX_TRANSACTION_SIZE = 1232
LOOKUP_TABLE_META_SIZE = 56

# --- Base Currencies (symbol, mint, decimals) ---
WSOL_MINT = 'So11111111111111111111111111111111111111112'
USDC_MINT = 'EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v'
USD1_MINT = '83astBRguLjY6y8v5o3aryuPkAujEWL5zMBmXBRNkVAJ'

BASE_CURRENCIES: List[Dict[str, object]] = [
    {'symbol': 'WSOL', 'mint': WSOL_MINT, 'decimals': 9},
    {'symbol': 'USDC', 'mint': USDC_MINT, 'decimals': 6},
    {'symbol': 'USD1', 'mint': USD1_MINT, 'decimals': 6},
]

# --- Fee Model Defaults (SOL) ---
BASE_FEE_SOL = 0.000005
PRIORITY_FEE_ESTIMATE_SOL = 0.0001
SOL_USD_APPROX = 150.0

# --- Seed Tokens (consistent Solana volume) ---
SEED_TOKENS: List[Dict[str, str]] = [
    {'mint': 'DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263', 'symbol': 'BONK'},
    {'mint': 'EKpQGSJtjMFqKZ9KQanSqYXRYQAbKubwyIzACJgs5zU', 'symbol': 'WIF'},
    {'mint': 'MEW1gQWJ3nEXg2qgERiKu7FAFj79PHvQVREQUzScPP5', 'symbol': 'MEW'},
    {'mint': 'USDSwr9ApdHk5bvJKMjzff41FfuX8bSxdKcR81vTwcA', 'symbol': 'USDS'},
    {'mint': 'JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN', 'symbol': 'JUP'},
    {'mint': 'orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE', 'symbol': 'ORCA'},
    {'mint': 'RLBxxFkseAZ4RgJH3Sqn8jXxhmGoz9jWxDNtXed4hmN', 'symbol': 'RLB'},
    {'mint': '7vfCXTUXx5WJV5JADk17DUJ4ksgau7utNKj4b963voxs', 'symbol': 'ETH'},
    {'mint': 'Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB', 'symbol': 'USDT'},
    {'mint': 'mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So', 'symbol': 'mSOL'},
    {'mint': 'bSo13r4TkiE4KumL71LsHTPpL2euBYLFx6h9HP3piy1', 'symbol': 'bSOL'},
    {'mint': 'HZ1JovNiVvGqszpscSdjH7LMHnqQyjr5miqBzuVQMHBH', 'symbol': 'PYTH'},
    {'mint': 'jtojtomepa8bdph4n1qyplt5yx1kvZFvkKNzursvse', 'symbol': 'JTO'},
    {'mint': 'WENWENvqqNya429ubCdR81ZmD69brwQaaBYY6p3LCpk', 'symbol': 'WEN'},
    {'mint': 'nosXBVoaCTtYdLvKY6Csb4AC8JCdQKKAaWYtx2ZMoo7', 'symbol': 'NOS'},
    {'mint': 'TNSRxcUxoT9xBG3de7A4bBEkbdZtaQjhFLRLbSCxJQM', 'symbol': 'TNSR'},
    {'mint': 'BZLbGTNCSFfoth2GYDtwr7e4imWzpR5jqcUuGEwr646K', 'symbol': 'IO'},
    {'mint': 'GFX1ZjR2P15tmrSwow6FjyDYcEkoNAbSVmH7ULqdnhA2', 'symbol': 'GFXP'},
    {'mint': 'A9mUU4qviSctJVPJdBJWkb28deg915LYJKrzQ19ji3FM', 'symbol': 'USDCet'},
    {'mint': '2b1kV6DkPAnxd5ixfnxCpjxmKwqjjaYmCZfHsFu24GXo', 'symbol': 'PYUSD'},
]

# --- Candidate Discovery ---
DEXSCREENER_BATCH_SIZE = 30
DEFAULT_MIN_VOLUME_USD = 50_000.0
DEFAULT_MIN_LIQUIDITY_USD = 20_000.0
DEFAULT_MAX_CANDIDATES = 60

# --- Graduation Watcher ---
WATCHLIST_CAPACITY = 50
WATCHER_POLL_INTERVAL = 30.0
WATCHER_MAX_AGE_SECONDS = 2 * 60 * 60
DEX_RAYDIUM_LAUNCHLAB = 'raydium-launchlab'
LAUNCHLAB_MIN_LIQUIDITY_USD = 10_000.0
BAGS_MIN_LIQUIDITY_USD = 5_000.0

# --- Timeouts (seconds) ---
QUOTE_TIMEOUT = 3.0
SWAP_BUILD_TIMEOUT = 5.0
TIP_FLOOR_TIMEOUT = 3.0
RELAY_SEND_TIMEOUT = 8.0
RELAY_PING_TIMEOUT = 2.0
RPC_TIMEOUT = 5.0
DISCOVERY_TIMEOUT = 6.0
WATCHER_TIMEOUT = 8.0
CONFIRMATION_TIMEOUT = 15.0
CONFIRMATION_POLL_INTERVAL = 0.5
# a whole round trip (two builds, sends and confirmations) fits inside this
SHUTDOWN_DRAIN_TIMEOUT = 60.0
TIP_RETRY_SECONDS = 30.0

# --- Main Loop Pacing (seconds) ---
BUY_SELL_DELAY = 0.8
POST_TRADE_PAUSE = 2.0
CYCLE_PAUSE = 0.5
ERROR_BACKOFF = 5.0
HEALTH_CHECK_INTERVAL = 5 * 60.0
SUMMARY_INTERVAL = 60 * 60.0
RELAY_WARM_INTERVAL = 30.0
LOW_BALANCE_SOL = 0.05
BALANCE_HEADROOM_SOL = 0.05
