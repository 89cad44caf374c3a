"""
User Data Stream Keep-Alive

A listen key expires 60 minutes after it was created or last extended.
keep_alive_loop() extends it on a fixed interval for as long as the task
runs; cancel the task when the stream is closed.

Usage:
    task = start_keep_alive(user_data_client, listen_key)
    try:
        async with open_stream(UserData(listen_key)) as stream:
            async for event in stream:
                ...
    finally:
        task.cancel()
"""

import asyncio
from typing import Optional

from core.config import settings
from core.errors import BinanceClientError
from core.logging import get_logger, mask_secret
from .api_client import UserDataClient

logger = get_logger(__name__)


async def keep_alive_loop(
    client: UserDataClient,
    listen_key: str,
    interval: Optional[float] = None
) -> None:
    """
    Extend ``listen_key`` every ``interval`` seconds until cancelled.

    Args:
        client: UserDataClient holding the API key
        listen_key: Listen key returned by start_stream()
        interval: Seconds between extensions (default: settings.keep_alive_interval)

    Raises:
        BinanceClientError: The first failed extension ends the loop; there is
            no retry, the caller decides whether to start a new stream
    """
    interval = interval if interval is not None else settings.keep_alive_interval
    masked = mask_secret(listen_key)

    while True:
        await asyncio.sleep(interval)
        try:
            await client.keep_alive(listen_key).text()
        except BinanceClientError as e:
            logger.error(f"Keep-alive failed for listen key {masked}: {e}")
            raise
        logger.debug(f"Listen key {masked} extended")


def start_keep_alive(
    client: UserDataClient,
    listen_key: str,
    interval: Optional[float] = None
) -> "asyncio.Task[None]":
    """Run keep_alive_loop() as a background task and return it."""
    return asyncio.create_task(
        keep_alive_loop(client, listen_key, interval),
        name=f"keep-alive-{mask_secret(listen_key)}"
    )


__all__ = ["keep_alive_loop", "start_keep_alive"]
