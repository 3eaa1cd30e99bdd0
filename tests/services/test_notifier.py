from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.error import TimedOut

from services.notifier import TelegramNotifier


@pytest.mark.asyncio
async def test_disabled_notifier_is_a_no_op():
    notifier = TelegramNotifier(None, None)
    assert notifier.enabled is False
    assert await notifier.send('hello') is False


@pytest.mark.asyncio
async def test_send_uses_html_parse_mode():
    bot = MagicMock()
    bot.send_message = AsyncMock()
    notifier = TelegramNotifier(bot, '42')

    assert await notifier.send('<b>hi</b>') is True

    bot.send_message.assert_awaited_once_with(chat_id='42', text='<b>hi</b>', parse_mode='HTML')


@pytest.mark.asyncio
async def test_send_failures_are_contained():
    bot = MagicMock()
    bot.send_message = AsyncMock(side_effect=[TimedOut(), RuntimeError('weird')])
    notifier = TelegramNotifier(bot, '42')

    assert await notifier.send('one') is False
    assert await notifier.send('two') is False


@pytest.mark.asyncio
async def test_urgent_messages_are_prefixed():
    bot = MagicMock()
    bot.send_message = AsyncMock()
    notifier = TelegramNotifier(bot, '42')

    await notifier.send_urgent('SELL FAILED')

    assert bot.send_message.await_args.kwargs['text'] == '🚨 SELL FAILED'
