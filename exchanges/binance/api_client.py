"""
Binance REST API Clients

This module provides the async REST clients of the Binance (Binance.US) API.
Every endpoint method returns a ParamBuilder: optional parameters are added
with its with_*() helpers and the call is made by awaiting text()/json()
(or send() for a deferred ResponseHandle).

Clients:
    - GeneralClient: connectivity, server time, exchange info (public)
    - MarketDataClient: order book, trades, klines, tickers (API key)
    - AccountClient: orders, OCO orders, account info (SIGNED)
    - UserDataClient: user data stream listen keys (API key)
    - WithdrawalClient: withdrawals, deposits, sub accounts (SIGNED)

It handles:
- Credential and base URL validation at construction (ConfigError)
- aiohttp session ownership (async with, or a caller-supplied session)
- Server time synchronisation for signed timestamps

No retry logic: every failure is reported to the caller (see core.errors).

API Documentation:
    https://github.com/binance-us/binance-official-api-docs/blob/master/rest-api.md

Usage:
    async with AccountClient.connect(api_key, secret_key, BINANCE_US_URL) as client:
        account = await client.get_account().with_recv_window(8000).json()
"""

from typing import Any, Optional, Tuple, Union

import aiohttp
from yarl import URL

from core.config import settings
from core.errors import ConfigError
from core.logging import get_logger, mask_secret
from core.schemas import (
    ClientOrderId,
    Credentials,
    ExchangeOrderId,
    Interval,
    OrderId,
    OrderType,
    RequestDescriptor,
    Side,
    TimeInForce,
)
from core.utils.time import current_utc_timestamp, to_utc_datetime
from .request_builder import ParamBuilder
from .response import ResponseHandle
from .signer import validate_secret_key

USER_DATA_STREAM_PATH = "/api/v3/userDataStream"


# ============================================
# Validation Helpers
# ============================================

def validate_base_url(base_url: str) -> str:
    """
    Check that a REST base URL is well formed.

    Raises:
        ConfigError: If the URL is not an absolute http:// or https:// URL
    """
    try:
        url = URL(base_url)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Malformed base URL: {base_url!r}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(f"Base URL must be absolute http:// or https://, got {base_url!r}")
    return base_url.rstrip("/")


def validate_api_key(api_key: str) -> str:
    """
    Raises:
        ConfigError: If the API key is empty or contains whitespace
    """
    if not isinstance(api_key, str) or not api_key:
        raise ConfigError("API key must be a non-empty string")
    if any(ch.isspace() for ch in api_key):
        raise ConfigError("API key must not contain whitespace")
    return api_key


def order_id_param(
    order_id: OrderId,
    exchange_key: str = "orderId",
    client_key: str = "origClientOrderId"
) -> Tuple[str, Union[int, str]]:
    """
    Map an order identifier to the (name, value) parameter it is sent as.

    Example:
        >>> order_id_param(ExchangeOrderId(order_id=42))
        ('orderId', 42)
        >>> order_id_param(ClientOrderId(client_order_id="my-order"))
        ('origClientOrderId', 'my-order')
    """
    if isinstance(order_id, ExchangeOrderId):
        return exchange_key, order_id.order_id
    if isinstance(order_id, ClientOrderId):
        return client_key, order_id.client_order_id
    raise TypeError(f"Unknown order identifier type: {type(order_id).__name__}")


# ============================================
# Base Client
# ============================================

class BinanceAPIClient:
    """
    Shared plumbing of all Binance REST clients.

    Attributes:
        base_url: REST API base URL
        credentials: API credentials (None for public-only clients)
        timeout: Total timeout for one call in seconds
        recv_window: recvWindow applied to every signed request (None = server default)
        time_offset_ms: Server time minus local time, set by sync_server_time()
        session: aiohttp ClientSession (created lazily when not supplied)

    Notes:
        - Use as an async context manager so the owned session gets closed
        - A caller-supplied session is never closed by the client
        - Clients derived with market_client()/general_client() share the
          parent's session
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        credentials: Optional[Credentials] = None,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[float] = None,
        recv_window: Optional[int] = None,
        parent: Optional["BinanceAPIClient"] = None
    ):
        self.base_url = validate_base_url(base_url or settings.binance_base_url)
        self.credentials = credentials
        self.timeout = timeout or settings.request_timeout
        self.recv_window = recv_window if recv_window is not None else settings.recv_window
        self.time_offset_ms = 0

        self.session = session
        self._owns_session = session is None and parent is None
        self._parent = parent

        self.logger = get_logger(__name__)
        api_key = credentials.api_key if credentials else None
        self.logger.debug(
            f"{type(self).__name__} created base_url={self.base_url} key={mask_secret(api_key) or '-'}"
        )

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Close the owned HTTP session. Safe to call multiple times."""
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()
            self.logger.debug(f"{type(self).__name__} session closed")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._parent is not None:
            return self._parent._get_session()
        if self.session is None or (self._owns_session and self.session.closed):
            self.session = aiohttp.ClientSession()
            self._owns_session = True
            self.logger.debug(f"{type(self).__name__} session created")
        return self.session

    # ============================================
    # Request Plumbing
    # ============================================

    def _request(self, method: str, path: str, *, signed: bool = False) -> ParamBuilder:
        builder = ParamBuilder(method, path, signed=signed, credentials=self.credentials, client=self)
        if signed and self.recv_window is not None:
            builder.with_recv_window(self.recv_window)
        return builder

    def dispatch(self, descriptor: RequestDescriptor) -> ResponseHandle:
        """
        Wrap a built request in a ResponseHandle bound to this client's session.

        Nothing is sent until the handle's text()/json() is awaited.
        """
        return ResponseHandle(descriptor, self._get_session, self.timeout)

    async def sync_server_time(self) -> int:
        """
        Measure the offset between the exchange clock and the local clock.

        Signed requests built afterwards use local time + offset as their
        timestamp, which keeps them inside the recv window on machines with
        a drifting clock.

        Returns:
            Offset in milliseconds (server - local)

        Binance Endpoint:
            GET /api/v3/time
        """
        data = await self._request("GET", "/api/v3/time").json()
        server_time = int(data["serverTime"])
        self.time_offset_ms = server_time - current_utc_timestamp(milliseconds=True)
        self.logger.info(
            f"Server time {to_utc_datetime(server_time).isoformat()} (offset_ms={self.time_offset_ms})"
        )
        return self.time_offset_ms


# ============================================
# General Endpoints
# ============================================

class GeneralClient(BinanceAPIClient):
    """Client for connectivity checks and exchange metadata (no credentials)."""

    @classmethod
    def connect(cls, base_url: Optional[str] = None, **kwargs: Any) -> "GeneralClient":
        """
        Create a client; no network I/O happens here.

        Raises:
            ConfigError: If base_url is malformed
        """
        return cls(base_url, None, **kwargs)

    def ping(self) -> ParamBuilder:
        """Test connectivity to the REST API. GET /api/v3/ping"""
        return self._request("GET", "/api/v3/ping")

    def get_server_time(self) -> ParamBuilder:
        """GET /api/v3/time"""
        return self._request("GET", "/api/v3/time")

    def get_exchange_info(self) -> ParamBuilder:
        """Current trading rules and symbol information. GET /api/v3/exchangeInfo"""
        return self._request("GET", "/api/v3/exchangeInfo")


# ============================================
# Market Data Endpoints
# ============================================

class MarketDataClient(BinanceAPIClient):
    """
    Client for market data.

    All endpoints are public, but the API key is always sent because some of
    them (historical trades) require it.

    Example:
        >>> async with MarketDataClient.connect("<api-key>", BINANCE_US_URL) as client:
        ...     book = await client.get_order_book("BNBUSDT").with_limit(5).json()
    """

    @classmethod
    def connect(cls, api_key: str, base_url: Optional[str] = None, **kwargs: Any) -> "MarketDataClient":
        """
        Raises:
            ConfigError: If the API key is empty or base_url is malformed
        """
        return cls(base_url, Credentials(api_key=validate_api_key(api_key)), **kwargs)

    def get_order_book(self, symbol: str) -> ParamBuilder:
        """
        Get order book.

        Optional:
            with_limit: default 100; max 5000

        Binance Endpoint:
            GET /api/v3/depth
        """
        return self._request("GET", "/api/v3/depth").param("symbol", symbol)

    def get_trades(self, symbol: str) -> ParamBuilder:
        """Recent trades (up to last 500). GET /api/v3/trades"""
        return self._request("GET", "/api/v3/trades").param("symbol", symbol)

    def get_historical_trades(self, symbol: str) -> ParamBuilder:
        """
        Older trades. Requires the API key.

        Optional:
            with_limit: default 500; max 1000
            with_from_id: trade id to fetch from; default gets most recent trades
        """
        return self._request("GET", "/api/v3/historicalTrades").param("symbol", symbol)

    def get_aggregate_trades(self, symbol: str) -> ParamBuilder:
        """
        Compressed, aggregate trades.

        Optional:
            with_from_id, with_start_time, with_end_time, with_limit (default 500; max 1000)

        Binance Endpoint:
            GET /api/v3/aggTrades
        """
        return self._request("GET", "/api/v3/aggTrades").param("symbol", symbol)

    def get_candlestick_bars(self, symbol: str, interval: Interval) -> ParamBuilder:
        """
        Kline/candlestick bars for a symbol.

        Args:
            symbol: Trading pair (e.g., "BNBUSDT")
            interval: Bar interval (e.g., Interval.ONE_MINUTE)

        Optional:
            with_start_time, with_end_time, with_limit (default 500; max 1000)

        Binance Endpoint:
            GET /api/v3/klines

        Example:
            >>> bars = await client.get_candlestick_bars("BNBUSDT", Interval.ONE_HOUR).with_limit(24).json()
        """
        return (
            self._request("GET", "/api/v3/klines")
            .param("symbol", symbol)
            .param("interval", Interval(interval))
        )

    def get_average_price(self, symbol: str) -> ParamBuilder:
        """GET /api/v3/avgPrice"""
        return self._request("GET", "/api/v3/avgPrice").param("symbol", symbol)

    def get_24hr_ticker_price(self) -> ParamBuilder:
        """24 hour rolling window price change statistics; with_symbol() to narrow."""
        return self._request("GET", "/api/v3/ticker/24hr")

    def get_price_ticker(self) -> ParamBuilder:
        """Latest price for a symbol (with_symbol) or all symbols."""
        return self._request("GET", "/api/v3/ticker/price")

    def get_order_book_ticker(self) -> ParamBuilder:
        """Best price/qty on the order book for a symbol (with_symbol) or all symbols."""
        return self._request("GET", "/api/v3/ticker/bookTicker")


# ============================================
# Account Endpoints (SIGNED)
# ============================================

class AccountClient(BinanceAPIClient):
    """
    Client for orders and account information. Every endpoint is SIGNED.

    Example:
        >>> client = AccountClient.connect("<api-key>", "<secret-key>", BINANCE_US_URL)
        >>> async with client:
        ...     order = await (
        ...         client.place_limit_order("BNBUSDT", Side.BUY, 20.0, 5.0, execute=False)
        ...         .with_new_client_order_id("my-order-1")
        ...         .with_recv_window(8000)
        ...         .json()
        ...     )
    """

    @classmethod
    def connect(
        cls,
        api_key: str,
        secret_key: str,
        base_url: Optional[str] = None,
        **kwargs: Any
    ) -> "AccountClient":
        """
        Create a client; no network I/O happens here.

        Raises:
            ConfigError: If a credential is empty/malformed or base_url is malformed
        """
        credentials = Credentials(
            api_key=validate_api_key(api_key),
            secret_key=validate_secret_key(secret_key)
        )
        return cls(base_url, credentials, **kwargs)

    def _order_path(self, execute: bool) -> str:
        # /order/test validates the order without sending it to the matching engine
        return "/api/v3/order" if execute else "/api/v3/order/test"

    def place_limit_order(
        self,
        symbol: str,
        side: Side,
        price: float,
        quantity: float,
        execute: bool
    ) -> ParamBuilder:
        """
        Place a GTC limit order.

        Args:
            symbol: Trading pair (e.g., "BNBUSDT")
            side: Side.BUY or Side.SELL
            price: Limit price
            quantity: Order quantity
            execute: False sends the order to the test endpoint only

        Optional:
            with_time_in_force, with_new_client_order_id, with_stop_price,
            with_iceberg_qty, with_new_order_resp_type, with_recv_window

        Binance Endpoint:
            POST /api/v3/order (or /api/v3/order/test)
        """
        return (
            self._request("POST", self._order_path(execute), signed=True)
            .param("symbol", symbol)
            .param("side", Side(side))
            .param("type", OrderType.LIMIT)
            .param("timeInForce", TimeInForce.GTC)
            .param("quantity", quantity)
            .param("price", price)
        )

    def place_market_order(self, symbol: str, side: Side, quantity: float, execute: bool) -> ParamBuilder:
        """Place a market order. POST /api/v3/order (or /api/v3/order/test)"""
        return (
            self._request("POST", self._order_path(execute), signed=True)
            .param("symbol", symbol)
            .param("side", Side(side))
            .param("type", OrderType.MARKET)
            .param("quantity", quantity)
        )

    def get_order(self, symbol: str, order_id: OrderId) -> ParamBuilder:
        """Check an order's status. GET /api/v3/order"""
        return (
            self._request("GET", "/api/v3/order", signed=True)
            .param("symbol", symbol)
            .param(*order_id_param(order_id))
        )

    def cancel_order(self, symbol: str, order_id: OrderId) -> ParamBuilder:
        """Cancel an active order. DELETE /api/v3/order"""
        return (
            self._request("DELETE", "/api/v3/order", signed=True)
            .param("symbol", symbol)
            .param(*order_id_param(order_id))
        )

    def get_open_orders(self) -> ParamBuilder:
        """All open orders, or those of one symbol with with_symbol()."""
        return self._request("GET", "/api/v3/openOrders", signed=True)

    def get_all_orders(self, symbol: str) -> ParamBuilder:
        """All account orders: active, canceled, or filled. GET /api/v3/allOrders"""
        return self._request("GET", "/api/v3/allOrders", signed=True).param("symbol", symbol)

    def place_oco_order(
        self,
        symbol: str,
        side: Side,
        price: float,
        stop_price: float,
        quantity: float
    ) -> ParamBuilder:
        """
        Place a one-cancels-the-other order pair.

        Optional:
            with_list_client_order_id, with_limit_client_order_id,
            with_limit_iceberg_qty, with_stop_client_order_id,
            with_stop_limit_price, with_stop_iceberg_qty,
            with_stop_limit_time_in_force, with_new_order_resp_type

        Binance Endpoint:
            POST /api/v3/order/oco
        """
        return (
            self._request("POST", "/api/v3/order/oco", signed=True)
            .param("symbol", symbol)
            .param("side", Side(side))
            .param("quantity", quantity)
            .param("price", price)
            .param("stopPrice", stop_price)
        )

    def cancel_oco(self, symbol: str, order_list_id: OrderId) -> ParamBuilder:
        """Cancel an entire order list. DELETE /api/v3/orderList"""
        return (
            self._request("DELETE", "/api/v3/orderList", signed=True)
            .param("symbol", symbol)
            .param(*order_id_param(order_list_id, "orderListId", "listClientOrderId"))
        )

    def get_oco(self, order_list_id: OrderId) -> ParamBuilder:
        """Retrieve a specific order list. GET /api/v3/orderList"""
        return (
            self._request("GET", "/api/v3/orderList", signed=True)
            .param(*order_id_param(order_list_id, "orderListId", "origClientOrderId"))
        )

    def get_all_oco_orders(self) -> ParamBuilder:
        """GET /api/v3/allOrderList"""
        return self._request("GET", "/api/v3/allOrderList", signed=True)

    def get_open_oco_orders(self) -> ParamBuilder:
        """GET /api/v3/openOrderList"""
        return self._request("GET", "/api/v3/openOrderList", signed=True)

    def get_account(self) -> ParamBuilder:
        """Current account information (balances, permissions). GET /api/v3/account"""
        return self._request("GET", "/api/v3/account", signed=True)

    def get_account_trades(self, symbol: str) -> ParamBuilder:
        """Trades for a specific account and symbol. GET /api/v3/myTrades"""
        return self._request("GET", "/api/v3/myTrades", signed=True).param("symbol", symbol)

    def market_client(self) -> MarketDataClient:
        """A MarketDataClient sharing this client's API key and session."""
        return MarketDataClient(
            self.base_url,
            Credentials(api_key=self.credentials.api_key),
            timeout=self.timeout,
            parent=self
        )

    def general_client(self) -> GeneralClient:
        """A GeneralClient sharing this client's session."""
        return GeneralClient(self.base_url, None, timeout=self.timeout, parent=self)


# ============================================
# User Data Stream Endpoints
# ============================================

class UserDataClient(BinanceAPIClient):
    """
    Client managing user data stream sessions (listen keys).

    These endpoints authenticate with the API key header only; the
    exchange does not sign them.

    Typical Flow:
        1. listen_key = (await client.start_stream().json())["listenKey"]
        2. open the stream: UserData(listen_key)
        3. every ~30 minutes: await client.keep_alive(listen_key).text()
           (see keep_alive.start_keep_alive)
        4. await client.close_stream(listen_key).text()
    """

    @classmethod
    def connect(cls, api_key: str, base_url: Optional[str] = None, **kwargs: Any) -> "UserDataClient":
        """
        Raises:
            ConfigError: If the API key is empty or base_url is malformed
        """
        return cls(base_url, Credentials(api_key=validate_api_key(api_key)), **kwargs)

    def start_stream(self) -> ParamBuilder:
        """
        Start a new user data stream.

        Returns:
            Builder whose JSON response is {"listenKey": "<key>"}

        Binance Endpoint:
            POST /api/v3/userDataStream
        """
        return self._request("POST", USER_DATA_STREAM_PATH)

    def keep_alive(self, listen_key: str) -> ParamBuilder:
        """
        Extend the validity of a listen key by 60 minutes.

        Binance Endpoint:
            PUT /api/v3/userDataStream
        """
        return self._request("PUT", USER_DATA_STREAM_PATH).param("listenKey", listen_key)

    def close_stream(self, listen_key: str) -> ParamBuilder:
        """Close a user data stream. DELETE /api/v3/userDataStream"""
        return self._request("DELETE", USER_DATA_STREAM_PATH).param("listenKey", listen_key)


# ============================================
# Withdrawal & Sub Account Endpoints (SIGNED)
# ============================================

class WithdrawalClient(BinanceAPIClient):
    """Client for withdrawals, deposits and sub accounts. Every endpoint is SIGNED."""

    @classmethod
    def connect(
        cls,
        api_key: str,
        secret_key: str,
        base_url: Optional[str] = None,
        **kwargs: Any
    ) -> "WithdrawalClient":
        """
        Raises:
            ConfigError: If a credential is empty/malformed or base_url is malformed
        """
        credentials = Credentials(
            api_key=validate_api_key(api_key),
            secret_key=validate_secret_key(secret_key)
        )
        return cls(base_url, credentials, **kwargs)

    def withdraw(self, asset: str, address: str, amount: float) -> ParamBuilder:
        """
        Submit a withdraw request.

        Optional:
            with_address_tag: secondary address identifier for coins like XRP, XMR etc.
            with_name: description of the address

        Binance Endpoint:
            POST /wapi/v3/withdraw.html
        """
        return (
            self._request("POST", "/wapi/v3/withdraw.html", signed=True)
            .param("asset", asset)
            .param("address", address)
            .param("amount", amount)
        )

    def get_deposit_history(self) -> ParamBuilder:
        """
        Fetch deposit history.

        Optional:
            with_asset, with_status (0: pending, 6: credited but cannot withdraw, 1: success),
            with_start_time, with_end_time
        """
        return self._request("GET", "/wapi/v3/depositHistory.html", signed=True)

    def get_withdraw_history(self) -> ParamBuilder:
        """Fetch withdraw history; same optional filters as get_deposit_history()."""
        return self._request("GET", "/wapi/v3/withdrawHistory.html", signed=True)

    def get_deposit_address(self, asset: str) -> ParamBuilder:
        """Fetch deposit address; with_status() to filter by status."""
        return self._request("GET", "/wapi/v3/depositAddress.html", signed=True).param("asset", asset)

    def get_account_status(self) -> ParamBuilder:
        return self._request("GET", "/wapi/v3/accountStatus.html", signed=True)

    def get_system_status(self) -> ParamBuilder:
        return self._request("GET", "/wapi/v3/systemStatus.html", signed=True)

    def get_api_status(self) -> ParamBuilder:
        """API trading status detail."""
        return self._request("GET", "/wapi/v3/apiTradingStatus.html", signed=True)

    def get_dustlog(self) -> ParamBuilder:
        """Small amounts of assets exchanged for BNB."""
        return self._request("GET", "/wapi/v3/userAssetDribbletLog.html", signed=True)

    def get_trade_fee(self) -> ParamBuilder:
        return self._request("GET", "/wapi/v3/tradeFee.html", signed=True)

    def get_asset_detail(self) -> ParamBuilder:
        return self._request("GET", "/wapi/v3/assetDetail.html", signed=True)

    def get_sub_accounts(self) -> ParamBuilder:
        """List sub accounts; with_email(), with_status(), with_page(), with_limit() to filter."""
        return self._request("GET", "/wapi/v3/sub-account/list.html", signed=True)

    def get_transfer_history(self, email: str) -> ParamBuilder:
        """Sub account transfer history. GET /wapi/v3/sub-account/transfer/history.html"""
        return (
            self._request("GET", "/wapi/v3/sub-account/transfer/history.html", signed=True)
            .param("email", email)
        )

    def transfer_sub_account(self, from_email: str, to_email: str, asset: str, amount: float) -> ParamBuilder:
        """Execute an asset transfer between sub accounts. POST /wapi/v3/sub-account/transfer.html"""
        return (
            self._request("POST", "/wapi/v3/sub-account/transfer.html", signed=True)
            .param("fromEmail", from_email)
            .param("toEmail", to_email)
            .param("asset", asset)
            .param("amount", amount)
        )

    def get_sub_account_assets(self, email: str) -> ParamBuilder:
        return self._request("GET", "/wapi/v3/sub-account/assets.html", signed=True).param("email", email)

    def dust_transfer(self, asset: str) -> ParamBuilder:
        """Convert dust assets to BNB. POST /sapi/v1/asset/dust"""
        return self._request("POST", "/sapi/v1/asset/dust", signed=True).param("asset", asset)

    def get_asset_dividends(self) -> ParamBuilder:
        """Asset dividend record. GET /sapi/v1/asset/assetDividend"""
        return self._request("GET", "/sapi/v1/asset/assetDividend", signed=True)


__all__ = [
    "BinanceAPIClient",
    "GeneralClient",
    "MarketDataClient",
    "AccountClient",
    "UserDataClient",
    "WithdrawalClient",
    "validate_base_url",
    "validate_api_key",
    "order_id_param",
]
