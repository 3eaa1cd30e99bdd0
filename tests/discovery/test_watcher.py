import pytest

from analysis.models import DiscoveredToken
from discovery.watcher import (SOURCE_BAGS, SOURCE_BONKFUN, SOURCE_LAUNCHLAB, SOURCE_PUMPFUN,
                               GraduationWatcher, parse_timestamp)
from discovery.watchlist import SeenSet, Watchlist

NOW = 1_700_000_000.0


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        return None

    async def json(self, **kwargs):
        return self._payload


class FakeSession:
    def __init__(self, payload):
        self.payload = payload
        self.headers = None

    def get(self, url, params=None, headers=None, timeout=None):
        self.headers = headers
        return FakeResponse(self.payload)


class FakeDexScreener:
    def __init__(self, search=None, profiles=None, pairs=None):
        self.search = search or []
        self.profiles = profiles or []
        self.pairs = pairs or {}

    async def search_pairs(self, query):
        return self.search

    async def get_latest_profiles(self):
        return self.profiles

    async def get_token_pairs(self, mints):
        return [p for m in mints for p in self.pairs.get(m, [])]


def make_watcher(tmp_path, session=None, dexscreener=None, moralis_api_key='key'):
    return GraduationWatcher(
        session,
        dexscreener or FakeDexScreener(),
        Watchlist(tmp_path / 'watchlist.json'),
        SeenSet(tmp_path / 'seen.json'),
        moralis_api_key=moralis_api_key,
        max_age=7200,
        clock=lambda: NOW,
    )


def test_parse_timestamp_variants():
    assert parse_timestamp('2023-11-14T22:13:20Z') == NOW
    assert parse_timestamp(NOW * 1000) == NOW
    assert parse_timestamp(NOW) == NOW
    assert parse_timestamp('nope') is None
    assert parse_timestamp(None) is None


@pytest.mark.asyncio
async def test_ingest_adds_fresh_token_once(tmp_path):
    watcher = make_watcher(tmp_path)
    token = DiscoveredToken('Fresh1', 'FRSH', source=SOURCE_PUMPFUN, discovered_at=NOW - 60)

    assert await watcher.ingest(token) is True
    assert await watcher.ingest(token) is False
    assert 'Fresh1' in watcher.seen
    assert [e.asset_id for e in watcher.watchlist.load()] == ['Fresh1']


@pytest.mark.asyncio
async def test_ingest_rejects_stale_and_shallow_tokens(tmp_path):
    watcher = make_watcher(tmp_path)
    stale = DiscoveredToken('Old1', 'OLD', source=SOURCE_PUMPFUN, discovered_at=NOW - 7201)
    shallow = DiscoveredToken('Thin1', 'THIN', liquidity_usd=10_000, source=SOURCE_LAUNCHLAB, discovered_at=NOW)
    deep = DiscoveredToken('Deep1', 'DEEP', liquidity_usd=10_001, source=SOURCE_LAUNCHLAB, discovered_at=NOW)

    assert await watcher.ingest(stale) is False
    assert await watcher.ingest(shallow) is False
    assert await watcher.ingest(deep) is True
    assert len(watcher.watchlist) == 1


@pytest.mark.asyncio
async def test_fetch_pumpfun_parses_moralis(tmp_path):
    session = FakeSession({'result': [
        {'tokenAddress': 'Pump1', 'symbol': 'PMP', 'graduatedAt': '2023-11-14T22:00:00Z', 'liquidity': '12000'},
        {'tokenAddress': 'NoTime'},
    ]})
    watcher = make_watcher(tmp_path, session=session)

    tokens = await watcher.fetch_pumpfun()

    assert [t.asset_id for t in tokens] == ['Pump1']
    assert tokens[0].source == SOURCE_PUMPFUN
    assert session.headers['X-API-Key'] == 'key'


@pytest.mark.asyncio
async def test_fetch_pumpfun_without_key_is_empty(tmp_path):
    watcher = make_watcher(tmp_path, moralis_api_key=None)
    assert await watcher.fetch_pumpfun() == []


@pytest.mark.asyncio
async def test_fetch_launchlab_labels_bonk(tmp_path):
    search = [
        {'dexId': 'raydium-launchlab', 'pairCreatedAt': NOW * 1000, 'baseToken': {'address': 'Bonk1', 'symbol': 'B'},
         'liquidity': {'usd': 20_000}, 'info': {'websites': [{'url': 'https://bonk.fun/token/x'}]}},
        {'dexId': 'raydium-launchlab', 'pairCreatedAt': NOW * 1000, 'baseToken': {'address': 'Lab1', 'symbol': 'L'},
         'liquidity': {'usd': 20_000}},
        {'dexId': 'raydium', 'pairCreatedAt': NOW * 1000, 'baseToken': {'address': 'Other', 'symbol': 'O'}},
    ]
    watcher = make_watcher(tmp_path, dexscreener=FakeDexScreener(search=search))

    tokens = await watcher.fetch_launchlab()

    assert {t.asset_id: t.source for t in tokens} == {'Bonk1': SOURCE_BONKFUN, 'Lab1': SOURCE_LAUNCHLAB}


@pytest.mark.asyncio
async def test_fetch_bags_requires_link_and_liquidity(tmp_path):
    profiles = [
        {'tokenAddress': 'Bag1', 'links': [{'url': 'https://bags.fm/Bag1'}]},
        {'tokenAddress': 'Bag2', 'links': [{'label': 'Bags'}]},
        {'tokenAddress': 'NotBag', 'links': [{'url': 'https://x.com'}]},
    ]
    pairs = {
        'Bag1': [{'baseToken': {'address': 'Bag1', 'symbol': 'BG'}, 'liquidity': {'usd': 6_000}}],
        'Bag2': [{'baseToken': {'address': 'Bag2', 'symbol': 'BG2'}, 'liquidity': {'usd': 4_000}}],
    }
    watcher = make_watcher(tmp_path, dexscreener=FakeDexScreener(profiles=profiles, pairs=pairs))

    tokens = await watcher.fetch_bags()

    assert [t.asset_id for t in tokens] == ['Bag1']
    assert tokens[0].source == SOURCE_BAGS


@pytest.mark.asyncio
async def test_poll_once_isolates_source_errors(tmp_path):
    class ExplodingDexScreener(FakeDexScreener):
        async def search_pairs(self, query):
            raise RuntimeError('dexscreener down')

    session = FakeSession({'result': [
        {'tokenAddress': 'Pump1', 'symbol': 'PMP', 'graduatedAt': NOW - 30},
    ]})
    watcher = make_watcher(tmp_path, session=session, dexscreener=ExplodingDexScreener())

    assert await watcher.poll_once() == 1
    assert 'Pump1' in watcher.watchlist
