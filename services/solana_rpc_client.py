#!/usr/bin/env python3
import asyncio
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from constants import LAMPORTS_PER_SOL, RPC_TIMEOUT
from errors import RpcError


class SolanaRpcClient:
    """JSON-RPC calls against a Solana node over the shared aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession, rpc_url: str, *, timeout: float = RPC_TIMEOUT) -> None:
        self._session = session
        self._rpc_url = rpc_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._id_lock = asyncio.Lock()
        self._next_request_id = 1

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def get_latest_blockhash(self, commitment: str = 'confirmed') -> Tuple[str, int]:
        result = await self._rpc_call('getLatestBlockhash', [{'commitment': commitment}])
        value = (result or {}).get('value') or {}
        blockhash = value.get('blockhash')
        last_valid = value.get('lastValidBlockHeight')
        if not blockhash or last_valid is None:
            raise RpcError(f"getLatestBlockhash returned no blockhash: {result!r}")
        return blockhash, int(last_valid)

    async def get_block_height(self, commitment: str = 'confirmed') -> int:
        result = await self._rpc_call('getBlockHeight', [{'commitment': commitment}])
        return int(result)

    async def get_signature_status(self, signature: str) -> Optional[Dict[str, Any]]:
        result = await self._rpc_call('getSignatureStatuses', [[signature]])
        values = (result or {}).get('value') or [None]
        return values[0]

    async def simulate_transaction(self, encoded_tx: str) -> Dict[str, Any]:
        config = {
            'encoding': 'base64',
            'sigVerify': False,
            'replaceRecentBlockhash': True,
            'commitment': 'processed',
        }
        result = await self._rpc_call('simulateTransaction', [encoded_tx, config])
        return (result or {}).get('value') or {}

    async def get_account_data(self, address: str) -> Optional[str]:
        """Returns the base64 account data, or None when the account does not exist."""
        result = await self._rpc_call('getAccountInfo', [address, {'encoding': 'base64'}])
        value = (result or {}).get('value')
        if not value:
            return None
        data = value.get('data')
        if isinstance(data, list) and data:
            return data[0]
        return None

    async def get_balance_sol(self, address: str) -> float:
        result = await self._rpc_call('getBalance', [address])
        return int((result or {}).get('value', 0)) / LAMPORTS_PER_SOL

    async def send_raw(self, url: str, encoded_tx: str, *, timeout: float) -> Dict[str, Any]:
        """Posts a sendTransaction to ``url`` and returns the raw JSON-RPC envelope."""
        payload = {
            'jsonrpc': '2.0',
            'id': await self._get_request_id(),
            'method': 'sendTransaction',
            'params': [encoded_tx, {'encoding': 'base64', 'skipPreflight': True, 'maxRetries': 0}],
        }
        async with self._session.post(url, json=payload, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            return await response.json(content_type=None)

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        request_id = await self._get_request_id()
        payload = {
            'jsonrpc': '2.0',
            'method': method,
            'params': params,
            'id': request_id,
        }
        async with self._session.post(self._rpc_url, json=payload, timeout=self._timeout) as response:
            response.raise_for_status()
            data = await response.json()
        if 'error' in data:
            raise RpcError(f"{method}: {data['error']}")
        return data.get('result')

    async def _get_request_id(self) -> int:
        async with self._id_lock:
            request_id = self._next_request_id
            self._next_request_id += 1
        return request_id
