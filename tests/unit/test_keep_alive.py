"""
Unit Tests for the Listen Key Keep-Alive Task

asyncio.sleep is patched so the loop runs without waiting.

Run with:
    pytest tests/unit/test_keep_alive.py -v
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.errors import HttpError
from exchanges.binance.keep_alive import keep_alive_loop, start_keep_alive


def make_client(*outcomes):
    """UserDataClient double whose keep_alive(...).text() yields ``outcomes`` in turn."""
    client = MagicMock()
    builder = MagicMock()
    builder.text = AsyncMock(side_effect=list(outcomes))
    client.keep_alive.return_value = builder
    return client, builder


class TestKeepAliveLoop:
    """Tests for keep_alive_loop()"""

    @pytest.mark.asyncio
    async def test_extends_key_after_each_interval(self):
        client, builder = make_client("{}", "{}", asyncio.CancelledError())
        sleep = AsyncMock()

        with patch("exchanges.binance.keep_alive.asyncio.sleep", sleep):
            with pytest.raises(asyncio.CancelledError):
                await keep_alive_loop(client, "listenKey123", interval=60)

        assert builder.text.await_count == 3
        client.keep_alive.assert_called_with("listenKey123")
        sleep.assert_awaited_with(60)

    @pytest.mark.asyncio
    async def test_failure_ends_loop(self):
        client, builder = make_client("{}", HttpError(400, '{"code":-1125,"msg":"This listenKey does not exist."}'))

        with patch("exchanges.binance.keep_alive.asyncio.sleep", AsyncMock()):
            with pytest.raises(HttpError) as exc_info:
                await keep_alive_loop(client, "listenKey123", interval=1)

        assert exc_info.value.code == -1125
        assert builder.text.await_count == 2

    @pytest.mark.asyncio
    async def test_sleeps_before_first_extension(self):
        client, builder = make_client()
        sleep = AsyncMock(side_effect=asyncio.CancelledError())

        with patch("exchanges.binance.keep_alive.asyncio.sleep", sleep):
            with pytest.raises(asyncio.CancelledError):
                await keep_alive_loop(client, "listenKey123", interval=1800)

        builder.text.assert_not_awaited()


class TestStartKeepAlive:
    @pytest.mark.asyncio
    async def test_task_can_be_cancelled(self):
        client, builder = make_client()

        task = start_keep_alive(client, "listenKey123", interval=3600)
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert "listenKey123" not in task.get_name()
