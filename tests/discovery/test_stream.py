import asyncio
import json

import pytest

from discovery.stream import DiscoveryStream, StreamState, migration_to_token


class ZeroJitter:
    def uniform(self, a, b):
        return 0.0


class FakeWebSocket:
    def __init__(self, messages):
        self.messages = list(messages)
        self.sent = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def send(self, message):
        self.sent.append(json.loads(message))

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.messages:
            raise StopAsyncIteration
        return self.messages.pop(0)


class FakeConnector:
    """Each call either raises the queued exception or returns the queued socket."""

    def __init__(self, attempts):
        self.attempts = list(attempts)
        self.urls = []

    def __call__(self, url):
        self.urls.append(url)
        attempt = self.attempts.pop(0)
        if isinstance(attempt, Exception):
            raise attempt
        return attempt


class SleepRecorder:
    def __init__(self, limit):
        self.delays = []
        self.limit = limit

    async def __call__(self, seconds):
        self.delays.append(seconds)
        if len(self.delays) >= self.limit:
            raise asyncio.CancelledError()


def test_migration_to_token():
    token = migration_to_token({'mint': 'Mig1', 'txType': 'migrate', 'symbol': 'MIG'}, 123.0)
    assert token.asset_id == 'Mig1'
    assert token.source == 'pumpportal'
    assert token.discovered_at == 123.0
    assert migration_to_token({'message': 'Successfully subscribed'}, 1.0) is None
    assert migration_to_token({'mint': 'X', 'txType': 'buy'}, 1.0) is None


@pytest.mark.asyncio
async def test_backoff_doubles_and_resets_after_subscribe():
    ingested = []

    async def ingest(token):
        ingested.append(token.asset_id)
        return True

    socket = FakeWebSocket([
        json.dumps({'message': 'Successfully subscribed to token migration.'}),
        json.dumps({'mint': 'Mig1', 'txType': 'migrate'}),
        'not json',
    ])
    connector = FakeConnector([OSError('refused'), OSError('refused'), OSError('refused'), socket])
    sleep = SleepRecorder(limit=5)
    stream = DiscoveryStream(ingest, url='wss://stream.test', connect=connector, sleep=sleep, rng=ZeroJitter())

    with pytest.raises(asyncio.CancelledError):
        await stream.run()

    # three failures (1, 2, 4), then a clean session resets to 1
    assert sleep.delays[:4] == [1.0, 2.0, 4.0, 1.0]
    assert socket.sent == [{'method': 'subscribeMigration'}]
    assert ingested == ['Mig1']
    assert stream.events_received == 1


@pytest.mark.asyncio
async def test_backoff_is_capped():
    async def ingest(token):
        return True

    connector = FakeConnector([OSError('down')] * 10)
    sleep = SleepRecorder(limit=10)
    stream = DiscoveryStream(ingest, connect=connector, sleep=sleep, rng=ZeroJitter(), max_backoff=8.0)

    with pytest.raises(asyncio.CancelledError):
        await stream.run()

    assert sleep.delays[:6] == [1.0, 2.0, 4.0, 8.0, 8.0, 8.0]
    assert stream.state is StreamState.DISCONNECTED
    assert stream.last_error == 'down'


@pytest.mark.asyncio
async def test_ingest_errors_do_not_break_the_stream():
    async def ingest(token):
        raise RuntimeError('disk full')

    stream = DiscoveryStream(ingest, connect=FakeConnector([]), rng=ZeroJitter())
    await stream.handle_message(json.dumps({'mint': 'Mig1'}))
    assert stream.events_received == 1
