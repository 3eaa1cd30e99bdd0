import pytest

from errors import RpcError
from services.solana_rpc_client import SolanaRpcClient


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload
        self.status = 200

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
        self.payloads = []

    def post(self, url, json, timeout):
        if not self._responses:
            raise AssertionError("No more fake responses configured")
        self.payloads.append((url, json))
        return FakeResponse(self._responses.pop(0))


@pytest.mark.asyncio
async def test_latest_blockhash_and_request_ids():
    session = FakeSession([
        {'jsonrpc': '2.0', 'id': 1, 'result': {'value': {'blockhash': 'Hash1', 'lastValidBlockHeight': 321}}},
        {'jsonrpc': '2.0', 'id': 2, 'result': 300},
    ])
    client = SolanaRpcClient(session, 'http://mock-rpc')

    assert await client.get_latest_blockhash() == ('Hash1', 321)
    assert await client.get_block_height() == 300
    assert [p['id'] for _, p in session.payloads] == [1, 2]
    assert session.payloads[0][1]['method'] == 'getLatestBlockhash'


@pytest.mark.asyncio
async def test_error_object_raises_rpc_error():
    session = FakeSession([{'jsonrpc': '2.0', 'id': 1, 'error': {'code': -32005, 'message': 'behind'}}])
    with pytest.raises(RpcError):
        await SolanaRpcClient(session, 'http://mock-rpc').get_block_height()


@pytest.mark.asyncio
async def test_signature_status_and_missing_status():
    session = FakeSession([
        {'result': {'value': [{'confirmationStatus': 'confirmed', 'err': None}]}},
        {'result': {'value': [None]}},
    ])
    client = SolanaRpcClient(session, 'http://mock-rpc')
    assert (await client.get_signature_status('Sig'))['confirmationStatus'] == 'confirmed'
    assert await client.get_signature_status('Sig') is None


@pytest.mark.asyncio
async def test_account_data_and_balance():
    session = FakeSession([
        {'result': {'value': {'data': ['AAAA', 'base64'], 'lamports': 1}}},
        {'result': {'value': None}},
        {'result': {'value': 1_500_000_000}},
    ])
    client = SolanaRpcClient(session, 'http://mock-rpc')
    assert await client.get_account_data('Table1') == 'AAAA'
    assert await client.get_account_data('Missing') is None
    assert await client.get_balance_sol('Wallet') == pytest.approx(1.5)


@pytest.mark.asyncio
async def test_simulate_skips_signature_verification():
    session = FakeSession([{'result': {'value': {'err': None, 'logs': []}}}])
    client = SolanaRpcClient(session, 'http://mock-rpc')

    value = await client.simulate_transaction('BASE64TX')

    assert value['err'] is None
    params = session.payloads[0][1]['params']
    assert params[0] == 'BASE64TX'
    assert params[1]['sigVerify'] is False
    assert params[1]['replaceRecentBlockhash'] is True


@pytest.mark.asyncio
async def test_send_raw_posts_to_given_url():
    session = FakeSession([{'jsonrpc': '2.0', 'id': 1, 'result': 'Sig123'}])
    client = SolanaRpcClient(session, 'http://mock-rpc')

    envelope = await client.send_raw('http://relay/fast', 'TX', timeout=8)

    assert envelope['result'] == 'Sig123'
    url, payload = session.payloads[0]
    assert url == 'http://relay/fast'
    assert payload['method'] == 'sendTransaction'
    assert payload['params'][1]['skipPreflight'] is True
