#!/usr/bin/env python3
import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from analysis.models import DiscoveredToken
from constants import DEXSCREENER_API_BASE_URL, DEXSCREENER_BATCH_SIZE, DEXSCREENER_ROOT_URL, DISCOVERY_TIMEOUT

logger = logging.getLogger(__name__)

SOLANA_CHAIN_ID = 'solana'


async def api_get(url: str, session: aiohttp.ClientSession, retries: int = 2, timeout: float = DISCOVERY_TIMEOUT) -> Optional[Any]:
    """Makes an async GET request with retries and timeout."""
    for attempt in range(retries):
        try:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
                response.raise_for_status()
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            if attempt < retries - 1:
                await asyncio.sleep(1)
            else:
                logger.warning("API request failed after %d attempts: %s (%s)", retries, url, e)
    return None


def pair_to_token(pair: Dict[str, Any], source: str) -> Optional[DiscoveredToken]:
    base = pair.get('baseToken') or {}
    mint = base.get('address')
    if not mint:
        return None
    created_ms = pair.get('pairCreatedAt')
    return DiscoveredToken(
        asset_id=mint,
        symbol=base.get('symbol') or '???',
        volume_24h=float((pair.get('volume') or {}).get('h24') or 0),
        liquidity_usd=float((pair.get('liquidity') or {}).get('usd') or 0),
        source=source,
        discovered_at=created_ms / 1000.0 if created_ms else time.time(),
    )


def chunked(values: List[str], size: int) -> Iterable[List[str]]:
    for i in range(0, len(values), size):
        yield values[i:i + size]


class DexScreenerClient:
    def __init__(self, session: aiohttp.ClientSession, timeout: float = DISCOVERY_TIMEOUT):
        self.session = session
        self.timeout = timeout
        self._last_request_time = 0.0
        self._rate_limit_delay = 0.2 # 200ms between requests keeps us under 300 req/min

    async def _wait_for_rate_limit(self):
        elapsed = time.time() - self._last_request_time
        if elapsed < self._rate_limit_delay:
            await asyncio.sleep(self._rate_limit_delay - elapsed)
        self._last_request_time = time.time()

    async def _get(self, url: str) -> Optional[Any]:
        await self._wait_for_rate_limit()
        return await api_get(url, self.session, timeout=self.timeout)

    async def get_token_pairs(self, mints: List[str]) -> List[Dict]:
        """Solana pairs for the given mints, looked up in batches of 30."""
        pairs: List[Dict] = []
        for chunk in chunked(mints, DEXSCREENER_BATCH_SIZE):
            data = await self._get(f"{DEXSCREENER_API_BASE_URL}/tokens/{','.join(chunk)}")
            if not data:
                continue
            pairs.extend(p for p in data.get('pairs') or [] if p.get('chainId') == SOLANA_CHAIN_ID)
        return pairs

    async def search_pairs(self, query: str) -> List[Dict]:
        data = await self._get(f"{DEXSCREENER_API_BASE_URL}/search?q={query}")
        if not data:
            return []
        return [p for p in data.get('pairs') or [] if p.get('chainId') == SOLANA_CHAIN_ID]

    async def get_top_boosts(self) -> List[Dict]:
        data = await self._get(f"{DEXSCREENER_ROOT_URL}/token-boosts/top/v1")
        if not isinstance(data, list):
            return []
        return [b for b in data if b.get('chainId') == SOLANA_CHAIN_ID]

    async def get_latest_profiles(self) -> List[Dict]:
        data = await self._get(f"{DEXSCREENER_ROOT_URL}/token-profiles/latest/v1")
        if not isinstance(data, list):
            return []
        return [p for p in data if p.get('chainId') == SOLANA_CHAIN_ID]
