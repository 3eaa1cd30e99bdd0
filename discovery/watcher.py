#!/usr/bin/env python3
"""Graduation watcher: finds freshly graduated launchpad tokens and feeds them to the watchlist."""
import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

import aiohttp

from analysis.models import DiscoveredToken, WatchlistEntry
from constants import (BAGS_MIN_LIQUIDITY_USD, DEX_RAYDIUM_LAUNCHLAB, LAUNCHLAB_MIN_LIQUIDITY_USD,
                       MORALIS_PUMPFUN_GRADUATED_URL, WATCHER_MAX_AGE_SECONDS, WATCHER_POLL_INTERVAL,
                       WATCHER_TIMEOUT)
from discovery.watchlist import SeenSet, Watchlist
from services.dexscreener_client import DexScreenerClient, pair_to_token

logger = logging.getLogger(__name__)

SOURCE_PUMPFUN = 'pump.fun'
SOURCE_BONKFUN = 'bonk.fun'
SOURCE_LAUNCHLAB = 'raydium-launchlab'
SOURCE_BAGS = 'bags.fm'
SOURCE_PUMPPORTAL = 'pumpportal'

LIQUIDITY_FLOORS: Dict[str, float] = {
    SOURCE_BONKFUN: LAUNCHLAB_MIN_LIQUIDITY_USD,
    SOURCE_LAUNCHLAB: LAUNCHLAB_MIN_LIQUIDITY_USD,
    SOURCE_BAGS: BAGS_MIN_LIQUIDITY_USD,
}


def parse_timestamp(value) -> Optional[float]:
    """Epoch seconds from ISO strings, epoch seconds or epoch milliseconds."""
    if value is None or value == '':
        return None
    if isinstance(value, (int, float)):
        return value / 1000.0 if value > 1e12 else float(value)
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).timestamp()
    except ValueError:
        return None


class GraduationWatcher:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        dexscreener: DexScreenerClient,
        watchlist: Watchlist,
        seen: SeenSet,
        *,
        moralis_api_key: Optional[str] = None,
        max_age: float = WATCHER_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.session = session
        self.dexscreener = dexscreener
        self.watchlist = watchlist
        self.seen = seen
        self.moralis_api_key = moralis_api_key
        self.max_age = max_age
        self._clock = clock
        self._lock = asyncio.Lock()
        self._warned_no_moralis = False

    async def ingest(self, token: DiscoveredToken) -> bool:
        """Single entry point for every source; returns True when the token was added."""
        async with self._lock:
            if token.asset_id in self.seen:
                return False
            age = self._clock() - token.discovered_at
            if age > self.max_age:
                return False
            floor = LIQUIDITY_FLOORS.get(token.source, 0.0)
            if floor and token.liquidity_usd <= floor:
                return False
            added = self.watchlist.add(WatchlistEntry(
                asset_id=token.asset_id,
                symbol=token.symbol,
                source=token.source,
                discovered_at=token.discovered_at,
            ))
            self.seen.add(token.asset_id)
            if added:
                logger.info(
                    "Added [%s] %s (%s...) graduated %dm ago",
                    token.source, token.symbol, token.asset_id[:8], max(age, 0) // 60,
                )
            return added

    async def _ingest_all(self, label: str, tokens: List[DiscoveredToken]) -> int:
        added = 0
        for token in tokens:
            if await self.ingest(token):
                added += 1
        if added:
            logger.info("[%s] Added %d new graduated token(s)", label, added)
        else:
            logger.debug("[%s] No new graduates (checked %d tokens)", label, len(tokens))
        return added

    async def fetch_pumpfun(self) -> List[DiscoveredToken]:
        if not self.moralis_api_key:
            if not self._warned_no_moralis:
                logger.warning("MORALIS_API_KEY not set, skipping pump.fun graduates")
                self._warned_no_moralis = True
            return []
        headers = {'accept': 'application/json', 'X-API-Key': self.moralis_api_key}
        async with self.session.get(
            MORALIS_PUMPFUN_GRADUATED_URL,
            params={'limit': '20'},
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=WATCHER_TIMEOUT),
        ) as response:
            response.raise_for_status()
            data = await response.json()
        tokens: List[DiscoveredToken] = []
        for item in (data or {}).get('result') or []:
            mint = item.get('tokenAddress')
            graduated_at = parse_timestamp(item.get('graduatedAt'))
            if not mint or graduated_at is None:
                continue
            tokens.append(DiscoveredToken(
                asset_id=mint,
                symbol=item.get('symbol') or '???',
                liquidity_usd=float(item.get('liquidity') or 0),
                source=SOURCE_PUMPFUN,
                discovered_at=graduated_at,
            ))
        return tokens

    async def fetch_launchlab(self) -> List[DiscoveredToken]:
        pairs = await self.dexscreener.search_pairs('SOL')
        tokens: List[DiscoveredToken] = []
        for pair in pairs:
            if pair.get('dexId') != DEX_RAYDIUM_LAUNCHLAB or not pair.get('pairCreatedAt'):
                continue
            websites = (pair.get('info') or {}).get('websites') or []
            is_bonk = any('bonk.fun' in (w.get('url') or '') or 'letsbonk' in (w.get('url') or '') for w in websites)
            token = pair_to_token(pair, SOURCE_BONKFUN if is_bonk else SOURCE_LAUNCHLAB)
            if token is not None:
                tokens.append(token)
        return tokens

    async def fetch_bags(self) -> List[DiscoveredToken]:
        profiles = await self.dexscreener.get_latest_profiles()
        tokens: List[DiscoveredToken] = []
        for profile in profiles:
            links = profile.get('links') or []
            is_bags = any(
                'bags.fm' in (link.get('url') or '').lower() or 'bags' in (link.get('label') or '').lower()
                for link in links
            ) or 'bags.fm' in (profile.get('description') or '').lower()
            mint = profile.get('tokenAddress')
            if not is_bags or not mint or mint in self.seen:
                continue
            pairs = await self.dexscreener.get_token_pairs([mint])
            pairs = [p for p in pairs if float((p.get('liquidity') or {}).get('usd') or 0) > BAGS_MIN_LIQUIDITY_USD]
            if not pairs:
                continue
            token = pair_to_token(pairs[0], SOURCE_BAGS)
            if token is not None:
                tokens.append(token)
        return tokens

    async def poll_once(self) -> int:
        sources: List[tuple[str, Callable[[], Awaitable[List[DiscoveredToken]]]]] = [
            (SOURCE_PUMPFUN, self.fetch_pumpfun),
            ('bonk.fun/launchlab', self.fetch_launchlab),
            (SOURCE_BAGS, self.fetch_bags),
        ]
        added = 0
        for label, fetch in sources:
            try:
                added += await self._ingest_all(label, await fetch())
            except Exception as exc:
                logger.error("Error polling %s: %s", label, exc)
        return added

    async def run(self, interval: float = WATCHER_POLL_INTERVAL) -> None:
        logger.info(
            "Graduation watcher started | Poll: %.0fs | Max age: %.1fh | Cap: %d | Seen: %d",
            interval, self.max_age / 3600, self.watchlist.capacity, len(self.seen),
        )
        while True:
            await self.poll_once()
            await asyncio.sleep(interval)
