#!/usr/bin/env python3
import asyncio
import base64
import logging
import time
from typing import Awaitable, Callable, Optional

import aiohttp
from solders.hash import Hash
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from analysis.models import PendingTransaction
from constants import (CONFIRMATION_POLL_INTERVAL, CONFIRMATION_TIMEOUT, DEFAULT_SENDER_REGION,
                       RELAY_PING_TIMEOUT, RELAY_SEND_TIMEOUT, SENDER_ENDPOINTS)
from errors import (ArbitrageError, BlockhashExpired, ConfirmationTimeout, SimulationRejected,
                    SubmissionFailed)
from services.solana_rpc_client import SolanaRpcClient

logger = logging.getLogger(__name__)


def resolve_sender_endpoint(region: str, *, is_devnet: bool = False, rpc_url: str = '') -> str:
    if is_devnet:
        return rpc_url
    return SENDER_ENDPOINTS.get(region) or SENDER_ENDPOINTS['global']


class Submitter:
    """Signs legs with a fresh blockhash, sends them through the relay and waits for confirmation."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        rpc_client: SolanaRpcClient,
        keypair: Keypair,
        *,
        region: str = DEFAULT_SENDER_REGION,
        is_devnet: bool = False,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT,
        poll_interval: float = CONFIRMATION_POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.rpc_client = rpc_client
        self.keypair = keypair
        self.is_devnet = is_devnet
        self.endpoint = resolve_sender_endpoint(region, is_devnet=is_devnet, rpc_url=rpc_client.rpc_url)
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    def sign(self, pending: PendingTransaction, blockhash: str) -> VersionedTransaction:
        message = pending.compile(Hash.from_string(blockhash))
        return VersionedTransaction(message, [self.keypair])

    @staticmethod
    def encode(tx: VersionedTransaction) -> str:
        return base64.b64encode(bytes(tx)).decode('ascii')

    async def simulate(self, pending: PendingTransaction) -> bool:
        try:
            await self._simulate_or_raise(pending)
            return True
        except SimulationRejected as exc:
            logger.debug("%s leg simulation rejected: %s", pending.leg, exc)
        except (ArbitrageError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.debug("%s leg simulation errored: %s", pending.leg, exc)
        return False

    async def _simulate_or_raise(self, pending: PendingTransaction) -> None:
        blockhash, _ = await self.rpc_client.get_latest_blockhash()
        tx = self.sign(pending, blockhash)
        value = await self.rpc_client.simulate_transaction(self.encode(tx))
        if value.get('err'):
            raise SimulationRejected(str(value['err']))

    async def submit(self, pending: PendingTransaction) -> Optional[str]:
        """Returns the confirmed signature, or None when sending or confirmation failed."""
        try:
            return await self.submit_or_raise(pending)
        except ArbitrageError as exc:
            logger.warning("%s leg not landed: %s", pending.leg, exc)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("%s leg submission errored: %s", pending.leg, exc)
        return None

    async def submit_or_raise(self, pending: PendingTransaction) -> str:
        blockhash, last_valid_block_height = await self.rpc_client.get_latest_blockhash()
        tx = self.sign(pending, blockhash)
        envelope = await self.rpc_client.send_raw(self.endpoint, self.encode(tx), timeout=RELAY_SEND_TIMEOUT)
        if envelope.get('error'):
            raise SubmissionFailed(f"relay error: {envelope['error']}")
        signature = envelope.get('result')
        if not signature:
            raise SubmissionFailed("relay returned no signature")
        await self.confirm_or_raise(signature, last_valid_block_height)
        return signature

    async def confirm(self, signature: str, last_valid_block_height: int) -> bool:
        try:
            await self.confirm_or_raise(signature, last_valid_block_height)
            return True
        except ArbitrageError as exc:
            logger.debug("%s...: %s", signature[:12], exc)
            return False

    async def confirm_or_raise(self, signature: str, last_valid_block_height: int) -> None:
        deadline = self._clock() + self.confirmation_timeout
        while self._clock() < deadline:
            try:
                height = await self.rpc_client.get_block_height()
                if height > last_valid_block_height:
                    raise BlockhashExpired(f"block height {height} > {last_valid_block_height}")
                status = await self.rpc_client.get_signature_status(signature)
                if status:
                    if status.get('err'):
                        raise SubmissionFailed(f"on-chain error: {status['err']}")
                    if status.get('confirmationStatus') in ('confirmed', 'finalized'):
                        return
            except (BlockhashExpired, SubmissionFailed):
                raise
            except (ArbitrageError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                logger.debug("Confirmation poll for %s... retrying: %s", signature[:12], exc)
            await self._sleep(self.poll_interval)
        raise ConfirmationTimeout(f"{signature[:12]}... unconfirmed after {self.confirmation_timeout:.0f}s")

    async def ping(self) -> None:
        """Best-effort keep-alive against the relay's ping path."""
        if self.is_devnet:
            return
        url = self.endpoint.replace('/fast', '/ping')
        try:
            async with self.session.get(url, timeout=aiohttp.ClientTimeout(total=RELAY_PING_TIMEOUT)) as response:
                await response.read()
            logger.debug("Relay connection warmed")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.debug("Relay ping failed: %s", exc)
