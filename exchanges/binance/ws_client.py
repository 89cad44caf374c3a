"""
Binance WebSocket Client

This module provides async WebSocket streaming for Binance market and user
data streams. It handles:
- Connecting to a Channel (single, combined or user data stream)
- Pulling decoded messages one at a time, on demand
- Telling a graceful close apart from a transport failure
- SUBSCRIBE / UNSUBSCRIBE / SET_PROPERTY control messages
- Releasing the socket (and any owned HTTP session) on close

Lifecycle:
    connect() ──► OPEN ──► CLOSED   (peer closed the stream, or close() was called)
                     └──► ERROR    (transport failure; terminal)

Pull Outcomes:
    Each pull (``async for``, text(), json()) ends in exactly one of:
        - a message      : a frame arrived and was decoded
        - end of stream  : the peer closed with a close code; StopAsyncIteration /
                           None, and every later pull returns end immediately
        - StreamError    : transport failure, or a drop with no close frame
                           (code 1006); the connection is closed and every
                           later pull raises StreamError again
    A frame that is not valid JSON fails that single pull with DecodeError;
    the connection stays OPEN and the next pull proceeds normally
    (exchange streams occasionally emit non-JSON control frames).

Not handled here (caller's responsibility):
    - Reconnecting after a close or error
    - Refreshing the listen key of a user data stream (see keep_alive.py);
      the server closes the stream once the key expires

Concurrency:
    One client, one consumer. Pulling from the same client in two tasks at
    once is a precondition violation and is not guarded.

WebSocket Documentation:
    https://github.com/binance-us/binance-official-api-docs/blob/master/web-socket-streams.md

Usage:
    async with open_stream(SingleStream(ticker("BNBUSDT"))) as stream:
        async for message in stream:
            print(message)
"""

import asyncio
import json
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Iterable, List, Optional, Union

import aiohttp
from yarl import URL

from core.config import settings
from core.errors import ConfigError, ConnectError, DecodeError, StreamError
from core.logging import get_logger, log_websocket_event
from .channels import Channel, channel_url, log_name, normalize_stream_name, stream_names
from .response import decode_payload

logger = get_logger(__name__)


class StreamState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    ERROR = "error"


def validate_ws_url(base_ws_url: str) -> str:
    """
    Check that a WebSocket base URL is well formed.

    Raises:
        ConfigError: If the URL is not an absolute ws:// or wss:// URL
    """
    try:
        url = URL(base_ws_url)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Malformed WebSocket URL: {base_ws_url!r}") from e
    if url.scheme not in ("ws", "wss") or not url.host:
        raise ConfigError(f"WebSocket URL must be absolute ws:// or wss://, got {base_ws_url!r}")
    return base_ws_url.rstrip("/")


class BinanceWebSocketClient:
    """
    Async WebSocket client for one Binance stream connection.

    Instances are created by connect(); there is no way to obtain a client
    that is not connected.

    Attributes:
        channel: The Channel this connection was opened for
        url: Full WebSocket URL
        state: Current StreamState

    Example:
        >>> stream = await BinanceWebSocketClient.connect(
        ...     CombinedStreams([agg_trade("BNBUSDT"), trade("BTCUSDT")]),
        ...     BINANCE_US_WSS_URL,
        ... )
        >>> async with stream:
        ...     async for envelope in stream:
        ...         if matches(SingleStream(agg_trade("BNBUSDT")), envelope):
        ...             print(envelope["data"])
    """

    def __init__(
        self,
        channel: Channel,
        ws: aiohttp.ClientWebSocketResponse,
        url: str,
        session: Optional[aiohttp.ClientSession] = None,
        owns_session: bool = False
    ):
        self.channel = channel
        self.url = url
        self.ws = ws
        self.session = session
        self._owns_session = owns_session
        self._state = StreamState.OPEN
        self._request_id = 0

    # ============================================
    # Connection Management
    # ============================================

    @classmethod
    async def connect(
        cls,
        channel: Channel,
        base_ws_url: Optional[str] = None,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        heartbeat: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        combined: bool = False
    ) -> "BinanceWebSocketClient":
        """
        Resolve the channel to a URL and perform the WebSocket handshake.

        Args:
            channel: What to subscribe to
            base_ws_url: Streams base URL (defaults to settings.binance_ws_url)
            session: Optional aiohttp session to reuse (not closed by the client)
            heartbeat: Ping interval in seconds (defaults to settings.ws_heartbeat)
            connect_timeout: Handshake timeout (defaults to settings.ws_connect_timeout)
            combined: Send SET_PROPERTY combined=true after connecting, so every
                payload arrives wrapped in a {"stream", "data"} envelope

        Returns:
            A client in the OPEN state

        Raises:
            ConfigError: If base_ws_url is malformed
            ConnectError: If the handshake fails or times out, or combined mode
                cannot be enabled
        """
        base_ws_url = validate_ws_url(base_ws_url or settings.binance_ws_url)
        url = channel_url(channel, base_ws_url)
        stream = log_name(channel)

        owns_session = session is None
        if session is None:
            session = aiohttp.ClientSession()

        log_websocket_event("connecting", stream)

        try:
            ws = await asyncio.wait_for(
                session.ws_connect(url, heartbeat=heartbeat or settings.ws_heartbeat),
                timeout=connect_timeout or settings.ws_connect_timeout
            )

        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            if owns_session:
                await session.close()
            # Exception text can carry the URL (and with it a listen key)
            log_websocket_event("error", stream, f"Handshake failed: {type(e).__name__}")
            raise ConnectError(f"Failed to connect to {stream}: {type(e).__name__}") from e

        except asyncio.CancelledError:
            if owns_session:
                await session.close()
            raise

        client = cls(channel, ws, url, session=session, owns_session=owns_session)
        log_websocket_event("connected", stream)

        if combined:
            try:
                await client.set_combined(True)
            except StreamError as e:
                # _send_control already released the socket and owned session
                log_websocket_event("error", stream, "SET_PROPERTY failed after handshake")
                raise ConnectError(f"Failed to enable combined mode on {stream}") from e

        return client

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def closed(self) -> bool:
        """True once the stream ended, failed or was closed."""
        return self._state is not StreamState.OPEN

    async def close(self) -> None:
        """
        Close the WebSocket and the owned session.

        Notes:
            - Safe to call multiple times
            - A caller-supplied session is left open
        """
        await self._shutdown(StreamState.CLOSED if self._state is StreamState.OPEN else self._state)

    async def _shutdown(self, state: StreamState) -> None:
        self._state = state

        if self.ws is not None and not self.ws.closed:
            await self.ws.close()
            logger.debug(f"WebSocket closed for {log_name(self.channel)}")

        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()
            logger.debug(f"Session closed for {log_name(self.channel)}")

    async def __aenter__(self) -> "BinanceWebSocketClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================================
    # Message Pulling
    # ============================================

    async def _next_frame(self) -> Optional[str]:
        """
        Wait for the next data frame.

        Returns:
            Frame text, or None once the peer has closed the stream

        Raises:
            StreamError: On transport failure or abnormal closure (now or earlier)
            DecodeError: If a binary frame is not UTF-8 text
        """
        if self._state is StreamState.CLOSED:
            return None
        if self._state is StreamState.ERROR:
            raise StreamError(f"Stream {log_name(self.channel)} already failed")

        while True:
            try:
                msg = await self.ws.receive()

            except (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError) as e:
                await self._shutdown(StreamState.ERROR)
                log_websocket_event("error", log_name(self.channel), f"{type(e).__name__}: {e}")
                raise StreamError(f"Transport failure on {log_name(self.channel)}: {e}") from e

            # Text message - handed to the decoder
            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data

            elif msg.type == aiohttp.WSMsgType.BINARY:
                try:
                    return msg.data.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise DecodeError("Binary frame is not UTF-8 text", msg.data) from e

            # Connection closed - graceful only with a real close code and no exception
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                error = self.ws.exception()
                code = self.ws.close_code
                if code is None and msg.type == aiohttp.WSMsgType.CLOSE:
                    code = msg.data

                if error is not None or code is None or code == aiohttp.WSCloseCode.ABNORMAL_CLOSURE:
                    await self._shutdown(StreamState.ERROR)
                    details = f"code={code} {type(error).__name__ if error else 'no close frame'}"
                    log_websocket_event("error", log_name(self.channel), f"Connection dropped: {details}")
                    raise StreamError(f"Connection dropped on {log_name(self.channel)} ({details})") from error

                await self._shutdown(StreamState.CLOSED)
                log_websocket_event("closed", log_name(self.channel), f"code={code}")
                return None

            # Error
            elif msg.type == aiohttp.WSMsgType.ERROR:
                await self._shutdown(StreamState.ERROR)
                log_websocket_event("error", log_name(self.channel), str(msg.data))
                raise StreamError(f"WebSocket error on {log_name(self.channel)}: {msg.data}")

            # Ping/Pong (answered automatically by aiohttp)
            else:
                logger.debug(f"Received message type: {msg.type}")

    async def text(self) -> Optional[str]:
        """
        Pull the next frame as raw text.

        Returns:
            Frame text, or None at end of stream
        """
        return await self._next_frame()

    async def json(self, model: Optional[Any] = None) -> Optional[Any]:
        """
        Pull the next frame and decode it.

        Args:
            model: Optional pydantic model / type to validate the message into

        Returns:
            Decoded message, or None at end of stream

        Raises:
            DecodeError: Malformed frame; the stream stays usable
            StreamError: Transport failure; the stream is finished
        """
        frame = await self._next_frame()
        if frame is None:
            return None
        return decode_payload(frame, model, source=f"stream {log_name(self.channel)}")

    async def next_message(self) -> Any:
        """
        Pull the next decoded message.

        Raises:
            StopAsyncIteration: At end of stream (and on every later pull)
            DecodeError: Malformed frame; the stream stays usable
            StreamError: Transport failure; the stream is finished
        """
        frame = await self._next_frame()
        if frame is None:
            raise StopAsyncIteration
        return decode_payload(frame, source=f"stream {log_name(self.channel)}")

    def __aiter__(self) -> "BinanceWebSocketClient":
        return self

    async def __anext__(self) -> Any:
        return await self.next_message()

    # ============================================
    # Control Messages
    # ============================================

    async def _send_control(self, method: str, params: List[Any]) -> int:
        if self._state is not StreamState.OPEN:
            raise StreamError(f"Stream {log_name(self.channel)} is {self._state.value}")

        request_id = self._request_id
        message = json.dumps({"method": method, "params": params, "id": request_id})

        try:
            await self.ws.send_str(message)
        except (aiohttp.ClientError, ConnectionError) as e:
            await self._shutdown(StreamState.ERROR)
            raise StreamError(f"Failed to send {method} on {log_name(self.channel)}: {e}") from e

        self._request_id += 1
        logger.debug(f"Sent {method} (id={request_id})")
        return request_id

    @staticmethod
    def _stream_params(streams: Iterable[Union[str, Channel]]) -> List[str]:
        params: List[str] = []
        for stream in streams:
            names = (normalize_stream_name(stream),) if isinstance(stream, str) else stream_names(stream)
            params.extend(name for name in names if name not in params)
        return params

    async def subscribe(self, streams: Iterable[Union[str, Channel]]) -> int:
        """
        Subscribe this connection to more streams.

        Args:
            streams: Stream names or channels

        Returns:
            Request id of the SUBSCRIBE message (echoed in the server's reply)
        """
        return await self._send_control("SUBSCRIBE", self._stream_params(streams))

    async def unsubscribe(self, streams: Iterable[Union[str, Channel]]) -> int:
        """Unsubscribe this connection from streams. Returns the request id."""
        return await self._send_control("UNSUBSCRIBE", self._stream_params(streams))

    async def set_combined(self, enabled: bool = True) -> int:
        """Toggle the combined-stream envelope for this connection. Returns the request id."""
        return await self._send_control("SET_PROPERTY", ["combined", enabled])


@asynccontextmanager
async def open_stream(
    channel: Channel,
    base_ws_url: Optional[str] = None,
    **kwargs: Any
) -> AsyncIterator[BinanceWebSocketClient]:
    """
    Connect to a channel for the duration of an ``async with`` block.

    The connection is closed when the block exits, including on error or
    cancellation.

    Example:
        >>> async with open_stream(UserData(listen_key)) as stream:
        ...     async for event in stream:
        ...         print(event["e"])
    """
    client = await BinanceWebSocketClient.connect(channel, base_ws_url, **kwargs)
    try:
        yield client
    finally:
        await client.close()


__all__ = ["BinanceWebSocketClient", "StreamState", "open_stream", "validate_ws_url"]
