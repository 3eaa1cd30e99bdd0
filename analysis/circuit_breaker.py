#!/usr/bin/env python3
import asyncio
import logging
from typing import Awaitable, Callable

from analysis.models import CircuitState

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    Halts trading after ``max_failures`` consecutive failed cycles.

    ``record_success`` resets the counter whether or not the breaker is open;
    ``cooldown`` sleeps for the configured period and then resets fully.
    """

    def __init__(self, max_failures: int = 5, cooldown_seconds: float = 60.0) -> None:
        if max_failures < 1:
            raise ValueError("max_failures must be >= 1")
        self.max_failures = max_failures
        self.cooldown_seconds = cooldown_seconds
        self._state = CircuitState()

    @property
    def state(self) -> CircuitState:
        return CircuitState(self._state.consecutive_failures, self._state.tripped)

    @property
    def is_open(self) -> bool:
        return self._state.tripped

    def record_failure(self) -> None:
        self._state.consecutive_failures += 1
        if self._state.consecutive_failures >= self.max_failures and not self._state.tripped:
            self._state.tripped = True
            logger.error(
                "Circuit breaker tripped after %d consecutive failures; pausing %.0fs",
                self._state.consecutive_failures,
                self.cooldown_seconds,
            )

    def record_success(self) -> None:
        self._state.consecutive_failures = 0

    def reset(self) -> None:
        self._state = CircuitState()

    async def cooldown(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        await sleep(self.cooldown_seconds)
        self.reset()
        logger.info("Circuit breaker reset after cooldown")
