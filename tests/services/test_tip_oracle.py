import aiohttp
import pytest

from services.tip_oracle import TipOracle


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
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = 0

    def get(self, url, timeout=None):
        self.calls += 1
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return FakeResponse(item)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_tip_uses_75th_percentile_rounded_up():
    session = FakeSession([[{'landed_tips_75th_percentile': 0.0012345678901}]])
    oracle = TipOracle(session, min_tip_lamports=200_000)
    assert await oracle.get_tip_lamports() == 1_234_568


@pytest.mark.asyncio
async def test_tip_is_floored_at_minimum():
    session = FakeSession([[{'landed_tips_75th_percentile': 0.00001}]])
    oracle = TipOracle(session, min_tip_lamports=200_000)
    assert await oracle.get_tip_lamports() == 200_000
    assert await oracle.get_tip_sol() == pytest.approx(0.0002)


@pytest.mark.asyncio
async def test_tip_is_cached_until_expiry():
    clock = FakeClock()
    session = FakeSession([
        [{'landed_tips_75th_percentile': 0.001}],
        [{'landed_tips_75th_percentile': 0.002}],
    ])
    oracle = TipOracle(session, cache_seconds=300, clock=clock)

    assert await oracle.get_tip_lamports() == 1_000_000
    clock.now += 299
    assert await oracle.get_tip_lamports() == 1_000_000
    assert session.calls == 1

    clock.now += 2
    assert await oracle.get_tip_lamports() == 2_000_000
    assert session.calls == 2


@pytest.mark.asyncio
async def test_failure_keeps_previous_value():
    clock = FakeClock()
    session = FakeSession([
        aiohttp.ClientConnectionError('down'),
        [{'landed_tips_75th_percentile': 0.001}],
        [{}],
    ])
    oracle = TipOracle(session, min_tip_lamports=200_000, cache_seconds=10, clock=clock)

    assert await oracle.get_tip_lamports() == 200_000
    clock.now += 31
    assert await oracle.get_tip_lamports() == 1_000_000
    clock.now += 20
    assert await oracle.get_tip_lamports() == 1_000_000
    assert oracle.cached_tip_lamports == 1_000_000


@pytest.mark.asyncio
async def test_failed_fetch_is_not_retried_until_retry_interval():
    clock = FakeClock()
    session = FakeSession([
        aiohttp.ClientConnectionError('down'),
        [{'landed_tips_75th_percentile': 0.001}],
    ])
    oracle = TipOracle(session, min_tip_lamports=200_000, retry_seconds=30, clock=clock)

    assert await oracle.get_tip_lamports() == 200_000
    clock.now += 29
    assert await oracle.get_tip_lamports() == 200_000
    assert await oracle.get_tip_lamports() == 200_000
    assert session.calls == 1

    clock.now += 2
    assert await oracle.get_tip_lamports() == 1_000_000
    assert session.calls == 2
