#!/usr/bin/env python3
"""Push discovery: PumpPortal migration events over a websocket, reconnecting with backoff."""
import asyncio
import json
import logging
import random
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets

from analysis.models import DiscoveredToken
from constants import PUMPPORTAL_WS_URL
from discovery.watcher import SOURCE_PUMPPORTAL

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    DISCONNECTED = 'DISCONNECTED'
    CONNECTING = 'CONNECTING'
    SUBSCRIBED = 'SUBSCRIBED'


def migration_to_token(event: Dict[str, Any], now: float) -> Optional[DiscoveredToken]:
    mint = event.get('mint')
    if not mint or event.get('txType', 'migrate') != 'migrate':
        return None
    return DiscoveredToken(
        asset_id=mint,
        symbol=event.get('symbol') or mint[:6],
        source=SOURCE_PUMPPORTAL,
        discovered_at=now,
    )


class DiscoveryStream:
    """
    DISCONNECTED -> CONNECTING -> SUBSCRIBED -> DISCONNECTED, forever.

    Backoff starts at 1s, doubles per failed attempt up to 60s with up to
    half the backoff added as jitter, and resets once a subscription lands.
    """

    def __init__(
        self,
        ingest: Callable[[DiscoveredToken], Awaitable[bool]],
        *,
        url: str = PUMPPORTAL_WS_URL,
        connect: Callable[..., Any] = websockets.connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        initial_backoff: float = 1.0,
        max_backoff: float = 60.0,
    ) -> None:
        self._ingest = ingest
        self.url = url
        self._connect = connect
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.backoff = initial_backoff
        self.state = StreamState.DISCONNECTED
        self.last_error: Optional[str] = None
        self.events_received = 0

    def next_delay(self) -> float:
        return self.backoff + self._rng.uniform(0, self.backoff / 2)

    async def _connect_once(self) -> None:
        self.state = StreamState.CONNECTING
        logger.info("Connecting to migration stream %s", self.url)
        async with self._connect(self.url) as websocket:
            await websocket.send(json.dumps({'method': 'subscribeMigration'}))
            self.state = StreamState.SUBSCRIBED
            self.backoff = self.initial_backoff
            logger.info("Subscribed to migration events")
            async for message in websocket:
                await self.handle_message(message)

    async def handle_message(self, message) -> None:
        try:
            data = json.loads(message)
        except ValueError:
            logger.debug("Ignoring non-JSON stream message: %r", message)
            return
        if not isinstance(data, dict):
            return
        token = migration_to_token(data, time.time())
        if token is None:
            # subscription acks and other chatter
            logger.debug("Stream message: %s", data)
            return
        self.events_received += 1
        try:
            await self._ingest(token)
        except Exception as exc:
            logger.error("Failed to ingest migrated token %s: %s", token.asset_id, exc)

    async def run(self) -> None:
        while True:
            try:
                await self._connect_once()
                self.last_error = None
            except asyncio.CancelledError:
                self.state = StreamState.DISCONNECTED
                raise
            except Exception as exc:
                self.last_error = str(exc)
                logger.warning("Migration stream error: %s", exc)
            self.state = StreamState.DISCONNECTED

            delay = self.next_delay()
            logger.debug("Reconnecting in %.1fs (backoff %.1fs)", delay, self.backoff)
            await self._sleep(delay)
            self.backoff = min(self.backoff * 2, self.max_backoff)
