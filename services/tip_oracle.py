#!/usr/bin/env python3
import asyncio
import logging
import math
import time
from typing import Callable, Optional

import aiohttp

from constants import (JITO_TIP_FLOOR_URL, LAMPORTS_PER_SOL, MIN_TIP_LAMPORTS, TIP_CACHE_SECONDS, TIP_FLOOR_TIMEOUT,
                       TIP_RETRY_SECONDS)

logger = logging.getLogger(__name__)


class TipOracle:
    """Relay tip sized from the 75th percentile of recently landed tips."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        url: str = JITO_TIP_FLOOR_URL,
        min_tip_lamports: int = MIN_TIP_LAMPORTS,
        cache_seconds: float = TIP_CACHE_SECONDS,
        timeout: float = TIP_FLOOR_TIMEOUT,
        retry_seconds: float = TIP_RETRY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.url = url
        self.min_tip_lamports = min_tip_lamports
        self.cache_seconds = cache_seconds
        self.retry_seconds = retry_seconds
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._clock = clock
        self._cached_tip = min_tip_lamports
        self._fetched_at: Optional[float] = None
        self._failed_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def cached_tip_lamports(self) -> int:
        return self._cached_tip

    async def get_tip_lamports(self) -> int:
        async with self._lock:
            now = self._clock()
            if self._fetched_at is not None and now - self._fetched_at < self.cache_seconds:
                return self._cached_tip
            if self._failed_at is not None and now - self._failed_at < self.retry_seconds:
                return self._cached_tip
            tip = await self._fetch()
            if tip is None:
                self._failed_at = now
            else:
                self._cached_tip = tip
                self._fetched_at = now
                self._failed_at = None
            return self._cached_tip

    async def get_tip_sol(self) -> float:
        return await self.get_tip_lamports() / LAMPORTS_PER_SOL

    async def _fetch(self) -> Optional[int]:
        try:
            async with self.session.get(self.url, timeout=self._timeout) as response:
                response.raise_for_status()
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.debug("Tip floor fetch failed, keeping %d lamports: %s", self._cached_tip, exc)
            return None

        try:
            tip_75 = float(data[0]['landed_tips_75th_percentile'])
        except (IndexError, KeyError, TypeError, ValueError):
            logger.debug("Tip floor payload missing landed_tips_75th_percentile: %r", data)
            return None
        return max(math.ceil(tip_75 * LAMPORTS_PER_SOL), self.min_tip_lamports)
