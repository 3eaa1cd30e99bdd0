import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

import constants
import main


class FakeArbitrageBot:
    def __init__(self, trade_seconds):
        self.trade_seconds = trade_seconds
        self.events = []

    async def start(self):
        try:
            await asyncio.sleep(self.trade_seconds)
        except asyncio.CancelledError:
            self.events.append('cancelled mid-trade')
            raise
        self.events.append('trade recorded')

    def stop(self):
        self.events.append('stop')

    async def shutdown(self):
        self.events.append('shutdown')


async def start_application(trade_seconds):
    arbitrage_bot = FakeArbitrageBot(trade_seconds)
    bot_task = asyncio.create_task(arbitrage_bot.start())
    await asyncio.sleep(0)
    application = SimpleNamespace(bot_data={'arbitrage_bot': arbitrage_bot, 'bot_task': bot_task})
    return application, arbitrage_bot, bot_task


@pytest.mark.asyncio
async def test_post_stop_lets_in_flight_trade_finish():
    application, arbitrage_bot, bot_task = await start_application(0.05)

    await main.post_stop_hook(application)

    assert arbitrage_bot.events == ['stop', 'trade recorded', 'shutdown']
    assert bot_task.done() and not bot_task.cancelled()


@pytest.mark.asyncio
async def test_post_stop_cancels_loop_stuck_past_drain_timeout(monkeypatch):
    monkeypatch.setattr(constants, 'SHUTDOWN_DRAIN_TIMEOUT', 0.01)
    application, arbitrage_bot, bot_task = await start_application(10)

    await main.post_stop_hook(application)

    assert arbitrage_bot.events == ['stop', 'cancelled mid-trade', 'shutdown']
    assert bot_task.cancelled()


@pytest.mark.asyncio
async def test_post_shutdown_closes_session_and_repository():
    session = MagicMock(close=AsyncMock())
    repository = MagicMock(close=AsyncMock())
    application = SimpleNamespace(bot_data={'http_session': session, 'repository': repository})

    await main.post_shutdown_hook(application)

    session.close.assert_awaited_once()
    repository.close.assert_awaited_once()
