"""
Binance Exchange Connector

Async client for the Binance (Binance.US) spot API:

REST (api_client.py):
    - GeneralClient     - ping, server time, exchange info
    - MarketDataClient  - order book, trades, klines, tickers
    - AccountClient     - orders, OCO orders, account info (SIGNED)
    - UserDataClient    - user data stream listen keys
    - WithdrawalClient  - withdrawals, deposits, sub accounts (SIGNED)

    Every endpoint returns a ParamBuilder (request_builder.py); awaiting its
    text()/json() sends the request through a single-use ResponseHandle
    (response.py).

Streams (ws_client.py, channels.py):
    - Channel: SingleStream | CombinedStreams | UserData
    - BinanceWebSocketClient / open_stream: pull messages until the stream ends

API Documentation:
    https://github.com/binance-us/binance-official-api-docs

Structure:
    exchanges/binance/
    ├── __init__.py          # This file (public exports)
    ├── signer.py            # HMAC-SHA256 request signing
    ├── request_builder.py   # ParamBuilder -> RequestDescriptor
    ├── response.py          # ResponseHandle, JSON decoding
    ├── api_client.py        # REST clients
    ├── channels.py          # Stream channels and stream names
    ├── ws_client.py         # WebSocket streaming client
    └── keep_alive.py        # Listen key keep-alive task

Example:
    >>> async with MarketDataClient.connect(api_key, BINANCE_US_URL) as client:
    ...     book = await client.get_order_book("BNBUSDT").with_limit(5).json()
    >>>
    >>> async with open_stream(SingleStream(ticker("BNBUSDT")), BINANCE_US_WSS_URL) as stream:
    ...     async for message in stream:
    ...         print(message["c"])
"""

from core.config import BINANCE_US_URL, BINANCE_US_WSS_URL
from core.errors import (
    BinanceClientError,
    ConfigError,
    ConnectError,
    DecodeError,
    HttpError,
    StreamError,
    TransportError,
)
from core.schemas import ClientOrderId, Credentials, ExchangeOrderId, OrderId
from .api_client import (
    AccountClient,
    BinanceAPIClient,
    GeneralClient,
    MarketDataClient,
    UserDataClient,
    WithdrawalClient,
)
from .channels import (
    Channel,
    CombinedStreams,
    SingleStream,
    UserData,
    agg_trade,
    all_book_tickers,
    all_mini_tickers,
    all_tickers,
    book_ticker,
    depth,
    kline,
    matches,
    mini_ticker,
    partial_depth,
    render,
    ticker,
    trade,
)
from .keep_alive import keep_alive_loop, start_keep_alive
from .request_builder import ParamBuilder
from .response import ResponseHandle
from .signer import sign
from .ws_client import BinanceWebSocketClient, StreamState, open_stream

__all__ = [
    "BINANCE_US_URL",
    "BINANCE_US_WSS_URL",
    # Errors
    "BinanceClientError",
    "ConfigError",
    "TransportError",
    "ConnectError",
    "HttpError",
    "DecodeError",
    "StreamError",
    # REST
    "Credentials",
    "OrderId",
    "ExchangeOrderId",
    "ClientOrderId",
    "BinanceAPIClient",
    "GeneralClient",
    "MarketDataClient",
    "AccountClient",
    "UserDataClient",
    "WithdrawalClient",
    "ParamBuilder",
    "ResponseHandle",
    "sign",
    # Streams
    "Channel",
    "SingleStream",
    "CombinedStreams",
    "UserData",
    "render",
    "matches",
    "agg_trade",
    "trade",
    "kline",
    "mini_ticker",
    "all_mini_tickers",
    "ticker",
    "all_tickers",
    "book_ticker",
    "all_book_tickers",
    "partial_depth",
    "depth",
    "BinanceWebSocketClient",
    "StreamState",
    "open_stream",
    "keep_alive_loop",
    "start_keep_alive",
]
