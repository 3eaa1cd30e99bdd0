#!/usr/bin/env python3
"""Discovery feeds: each returns raw DiscoveredToken metrics, filtering happens in the candidate source."""
from typing import Dict, List, Protocol, Sequence

from analysis.models import DiscoveredToken
from services.dexscreener_client import DexScreenerClient, pair_to_token


class DiscoveryFeed(Protocol):
    name: str

    async def fetch(self) -> List[DiscoveredToken]:
        ...


def best_pair_per_token(pairs: Sequence[Dict], source: str) -> List[DiscoveredToken]:
    """Collapses pairs to one token each, keeping the deepest pool's metrics."""
    best: Dict[str, DiscoveredToken] = {}
    for pair in pairs:
        token = pair_to_token(pair, source)
        if token is None:
            continue
        current = best.get(token.asset_id)
        if current is None or token.liquidity_usd > current.liquidity_usd:
            best[token.asset_id] = token
    return list(best.values())


class DexScreenerTokensFeed:
    """Volume and liquidity for a fixed list of mints."""

    name = 'dexscreener-tokens'

    def __init__(self, client: DexScreenerClient, mints: Sequence[str]) -> None:
        self.client = client
        self.mints = list(mints)

    async def fetch(self) -> List[DiscoveredToken]:
        pairs = await self.client.get_token_pairs(self.mints)
        return best_pair_per_token(pairs, self.name)


class DexScreenerBoostsFeed:
    """Top boosted Solana tokens, with metrics from a follow-up pair lookup."""

    name = 'dexscreener-boosts'

    def __init__(self, client: DexScreenerClient, limit: int = 30) -> None:
        self.client = client
        self.limit = limit

    async def fetch(self) -> List[DiscoveredToken]:
        boosts = await self.client.get_top_boosts()
        mints: List[str] = []
        for boost in boosts:
            mint = boost.get('tokenAddress')
            if mint and mint not in mints:
                mints.append(mint)
            if len(mints) >= self.limit:
                break
        if not mints:
            return []
        pairs = await self.client.get_token_pairs(mints)
        return best_pair_per_token(pairs, self.name)
