#!/usr/bin/env python3
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from analysis.models import DiscoveredToken, TokenCandidate
from constants import (BASE_CURRENCIES, DEFAULT_MAX_CANDIDATES, DEFAULT_MIN_LIQUIDITY_USD,
                       DEFAULT_MIN_VOLUME_USD, SEED_TOKENS)
from discovery.feeds import DiscoveryFeed
from discovery.watchlist import Watchlist

logger = logging.getLogger(__name__)


class CandidateSource:
    """
    Builds the per-cycle scan list.

    Order: seeds and filtered discoveries sorted by volume (highest first),
    then watchlist entries in file order. Watchlist entries skip the volume
    and liquidity filters. Base-currency mints never appear.
    """

    def __init__(
        self,
        feeds: Sequence[DiscoveryFeed],
        watchlist: Optional[Watchlist] = None,
        *,
        seeds: Iterable[Dict[str, str]] = SEED_TOKENS,
        min_volume: float = DEFAULT_MIN_VOLUME_USD,
        min_liquidity: float = DEFAULT_MIN_LIQUIDITY_USD,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        excluded: Optional[Iterable[str]] = None,
    ) -> None:
        self.feeds = list(feeds)
        self.watchlist = watchlist
        self.seeds = list(seeds)
        self.min_volume = min_volume
        self.min_liquidity = min_liquidity
        self.max_candidates = max_candidates
        self.excluded = set(excluded) if excluded is not None else {str(b['mint']) for b in BASE_CURRENCIES}

    def passes_filters(self, token: DiscoveredToken) -> bool:
        return token.volume_24h >= self.min_volume and token.liquidity_usd >= self.min_liquidity

    async def _discover(self) -> List[DiscoveredToken]:
        discovered: List[DiscoveredToken] = []
        for feed in self.feeds:
            try:
                discovered.extend(await feed.fetch())
            except Exception as exc:
                logger.warning("Discovery feed %s failed: %s", getattr(feed, 'name', feed), exc)
        return discovered

    async def get_candidates(self) -> List[TokenCandidate]:
        seed_ids = {s['mint'] for s in self.seeds}
        ranked: Dict[str, TokenCandidate] = {}
        for seed in self.seeds:
            if seed['mint'] not in self.excluded:
                ranked[seed['mint']] = TokenCandidate(seed['mint'], seed.get('symbol', '???'), 0.0)

        for token in await self._discover():
            if token.asset_id in self.excluded:
                continue
            if token.asset_id in seed_ids:
                # seeds keep their slot and take the feed's volume as score
                current = ranked[token.asset_id]
                if token.volume_24h > current.volume_score:
                    ranked[token.asset_id] = TokenCandidate(token.asset_id, current.symbol, token.volume_24h)
                continue
            if token.asset_id in ranked or not self.passes_filters(token):
                continue
            ranked[token.asset_id] = TokenCandidate(token.asset_id, token.symbol, token.volume_24h)

        candidates = sorted(ranked.values(), key=lambda c: c.volume_score, reverse=True)
        seen = set(ranked)

        if self.watchlist is not None:
            for entry in self.watchlist.load():
                if entry.asset_id in seen or entry.asset_id in self.excluded:
                    continue
                seen.add(entry.asset_id)
                candidates.append(TokenCandidate(entry.asset_id, entry.symbol, 0.0))
                logger.debug("Watchlist: %s (%s...)", entry.symbol, entry.asset_id[:8])

        return candidates[:self.max_candidates]
