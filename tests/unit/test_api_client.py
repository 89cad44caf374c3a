"""
Unit Tests for Binance REST Clients

These tests verify that the REST clients:
- Validate credentials and base URLs at construction
- Map each endpoint to the right method, path and parameters
- Sign account/withdrawal endpoints, and only those
- Manage the aiohttp session (owned, shared, or caller-supplied)

Endpoint mapping is checked on built descriptors; end-to-end calls use
mocked HTTP responses (aioresponses).

Run with:
    pytest tests/unit/test_api_client.py -v
"""

import re
from unittest.mock import patch

import aiohttp
import pytest
import pytest_asyncio
from aioresponses import aioresponses

from core.errors import ConfigError, HttpError
from core.schemas import ClientOrderId, ExchangeOrderId, Interval, Side
from exchanges.binance.api_client import (
    AccountClient,
    GeneralClient,
    MarketDataClient,
    UserDataClient,
    WithdrawalClient,
    order_id_param,
    validate_base_url,
)
from exchanges.binance.request_builder import API_KEY_HEADER, FORM_CONTENT_TYPE

BASE_URL = "https://api.binance.us"
API_KEY = "test-api-key"
SECRET_KEY = "test-secret-key"


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def account_client():
    return AccountClient.connect(API_KEY, SECRET_KEY, BASE_URL)


@pytest_asyncio.fixture
async def mock_http():
    with aioresponses() as m:
        yield m


def query_params(query: str) -> list:
    return [pair.split("=", 1)[0] for pair in query.split("&") if pair]


# ============================================
# Tests for Construction
# ============================================

class TestConnect:
    """connect() validates everything before any network I/O"""

    def test_empty_api_key_rejected(self):
        with pytest.raises(ConfigError):
            AccountClient.connect("", SECRET_KEY, BASE_URL)

    def test_empty_secret_key_rejected(self):
        with pytest.raises(ConfigError):
            WithdrawalClient.connect(API_KEY, "", BASE_URL)

    @pytest.mark.parametrize("url", ["", "api.binance.us", "ftp://api.binance.us", "wss://stream.binance.us:9443"])
    def test_malformed_base_url_rejected(self, url):
        with pytest.raises(ConfigError):
            validate_base_url(url)

    def test_trailing_slash_stripped(self):
        client = GeneralClient.connect(BASE_URL + "/")
        assert client.base_url == BASE_URL

    def test_market_client_needs_api_key(self):
        with pytest.raises(ConfigError):
            MarketDataClient.connect("", BASE_URL)

    def test_secret_not_in_repr(self, account_client):
        assert SECRET_KEY not in repr(account_client.credentials)


# ============================================
# Tests for Order Identifiers
# ============================================

class TestOrderIdParam:
    def test_exchange_order_id(self):
        assert order_id_param(ExchangeOrderId(order_id=42)) == ("orderId", 42)

    def test_client_order_id(self):
        assert order_id_param(ClientOrderId(client_order_id="my-order")) == ("origClientOrderId", "my-order")

    def test_unknown_variant_rejected(self):
        with pytest.raises(TypeError):
            order_id_param(42)


# ============================================
# Tests for Endpoint Mapping
# ============================================

class TestAccountEndpoints:
    """Every account endpoint is SIGNED"""

    def test_limit_order_test_endpoint(self, account_client):
        descriptor = account_client.place_limit_order("BNBUSDT", Side.BUY, 20.0, 5.0, execute=False).build(
            timestamp_ms=1
        )

        assert descriptor.method == "POST"
        assert descriptor.path == "/api/v3/order/test"
        assert descriptor.body.startswith(
            "symbol=BNBUSDT&side=BUY&type=LIMIT&timeInForce=GTC&quantity=5.0&price=20.0&timestamp=1&signature="
        )
        assert descriptor.headers[API_KEY_HEADER] == API_KEY
        assert descriptor.headers["Content-Type"] == FORM_CONTENT_TYPE

    def test_market_order_live_endpoint(self, account_client):
        descriptor = account_client.place_market_order("BNBUSDT", Side.SELL, 5.0, execute=True).build(timestamp_ms=1)

        assert descriptor.path == "/api/v3/order"
        assert query_params(descriptor.body) == ["symbol", "side", "type", "quantity", "timestamp", "signature"]
        assert "type=MARKET" in descriptor.body

    def test_optional_params_inserted_before_timestamp(self, account_client):
        descriptor = (
            account_client.place_limit_order("BNBUSDT", Side.BUY, 20.0, 5.0, execute=True)
            .with_new_client_order_id("my-order-1")
            .with_recv_window(8000)
            .build(timestamp_ms=1)
        )

        assert query_params(descriptor.body)[-4:] == ["newClientOrderId", "recvWindow", "timestamp", "signature"]

    def test_get_order_by_exchange_id(self, account_client):
        descriptor = account_client.get_order("BNBUSDT", ExchangeOrderId(order_id=42)).build(timestamp_ms=1)

        assert descriptor.method == "GET"
        assert descriptor.query.startswith("symbol=BNBUSDT&orderId=42&timestamp=1&signature=")

    def test_cancel_order_by_client_id(self, account_client):
        descriptor = account_client.cancel_order("BNBUSDT", ClientOrderId(client_order_id="abc")).build(
            timestamp_ms=1
        )

        assert descriptor.method == "DELETE"
        assert descriptor.query.startswith("symbol=BNBUSDT&origClientOrderId=abc&timestamp=1&")

    def test_oco_order(self, account_client):
        descriptor = account_client.place_oco_order("BNBUSDT", Side.SELL, 25.0, 18.0, 5.0).build(timestamp_ms=1)

        assert descriptor.path == "/api/v3/order/oco"
        assert query_params(descriptor.body)[:5] == ["symbol", "side", "quantity", "price", "stopPrice"]

    def test_cancel_oco_uses_list_ids(self, account_client):
        by_id = account_client.cancel_oco("BNBUSDT", ExchangeOrderId(order_id=7)).build(timestamp_ms=1)
        by_client = account_client.cancel_oco("BNBUSDT", ClientOrderId(client_order_id="list-1")).build(
            timestamp_ms=1
        )

        assert by_id.path == "/api/v3/orderList"
        assert "orderListId=7" in by_id.query
        assert "listClientOrderId=list-1" in by_client.query

    def test_get_oco_by_client_id(self, account_client):
        descriptor = account_client.get_oco(ClientOrderId(client_order_id="list-1")).build(timestamp_ms=1)
        assert descriptor.query.startswith("origClientOrderId=list-1&timestamp=1&")

    @pytest.mark.parametrize("method_name, path", [
        ("get_open_orders", "/api/v3/openOrders"),
        ("get_all_oco_orders", "/api/v3/allOrderList"),
        ("get_open_oco_orders", "/api/v3/openOrderList"),
        ("get_account", "/api/v3/account"),
    ])
    def test_signed_paths(self, account_client, method_name, path):
        descriptor = getattr(account_client, method_name)().build(timestamp_ms=1)

        assert descriptor.method == "GET"
        assert descriptor.path == path
        assert descriptor.query.startswith("timestamp=1&signature=")

    def test_client_recv_window_applied(self):
        client = AccountClient.connect(API_KEY, SECRET_KEY, BASE_URL, recv_window=7000)

        descriptor = client.get_account().build(timestamp_ms=1)

        assert descriptor.query.startswith("recvWindow=7000&timestamp=1&signature=")

    def test_client_recv_window_validated_at_build(self):
        client = AccountClient.connect(API_KEY, SECRET_KEY, BASE_URL, recv_window=70000)
        builder = client.get_account()

        with pytest.raises(ConfigError):
            builder.build(timestamp_ms=1)


class TestMarketEndpoints:
    """Market data endpoints send the API key but are not signed"""

    def test_klines(self):
        client = MarketDataClient.connect(API_KEY, BASE_URL)

        descriptor = client.get_candlestick_bars("BNBUSDT", Interval.ONE_HOUR).with_limit(24).build()

        assert descriptor.full_url == f"{BASE_URL}/api/v3/klines?symbol=BNBUSDT&interval=1h&limit=24"
        assert descriptor.headers == {API_KEY_HEADER: API_KEY}

    @pytest.mark.parametrize("method_name, path", [
        ("get_order_book", "/api/v3/depth"),
        ("get_trades", "/api/v3/trades"),
        ("get_historical_trades", "/api/v3/historicalTrades"),
        ("get_aggregate_trades", "/api/v3/aggTrades"),
        ("get_average_price", "/api/v3/avgPrice"),
    ])
    def test_symbol_endpoints(self, method_name, path):
        client = MarketDataClient.connect(API_KEY, BASE_URL)

        descriptor = getattr(client, method_name)("BNBUSDT").build()

        assert descriptor.path == path
        assert descriptor.query == "symbol=BNBUSDT"

    def test_ticker_without_symbol(self):
        client = MarketDataClient.connect(API_KEY, BASE_URL)
        assert client.get_price_ticker().build().query == ""

    def test_general_client_sends_no_key(self):
        descriptor = GeneralClient.connect(BASE_URL).ping().build()

        assert descriptor.full_url == f"{BASE_URL}/api/v3/ping"
        assert API_KEY_HEADER not in descriptor.headers


class TestUserDataEndpoints:
    """Listen key endpoints use the API key header without a signature"""

    def test_start_stream(self):
        descriptor = UserDataClient.connect(API_KEY, BASE_URL).start_stream().build()

        assert descriptor.method == "POST"
        assert descriptor.path == "/api/v3/userDataStream"
        assert descriptor.body == ""
        assert descriptor.headers[API_KEY_HEADER] == API_KEY

    def test_keep_alive(self):
        descriptor = UserDataClient.connect(API_KEY, BASE_URL).keep_alive("key123").build()

        assert descriptor.method == "PUT"
        assert descriptor.body == "listenKey=key123"
        assert "signature" not in descriptor.body

    def test_close_stream(self):
        descriptor = UserDataClient.connect(API_KEY, BASE_URL).close_stream("key123").build()

        assert descriptor.method == "DELETE"
        assert descriptor.query == "listenKey=key123"


class TestWithdrawalEndpoints:
    @pytest.fixture
    def client(self):
        return WithdrawalClient.connect(API_KEY, SECRET_KEY, BASE_URL)

    def test_withdraw(self, client):
        descriptor = client.withdraw("BNB", "0xabc", 1.5).with_name("cold wallet").build(timestamp_ms=1)

        assert descriptor.path == "/wapi/v3/withdraw.html"
        assert query_params(descriptor.body) == ["asset", "address", "amount", "name", "timestamp", "signature"]
        assert "name=cold+wallet" in descriptor.body

    def test_sub_account_transfer(self, client):
        descriptor = client.transfer_sub_account("a@x.com", "b@x.com", "BTC", 0.1).build(timestamp_ms=1)

        assert descriptor.method == "POST"
        assert query_params(descriptor.body)[:4] == ["fromEmail", "toEmail", "asset", "amount"]

    @pytest.mark.parametrize("method_name, path", [
        ("get_deposit_history", "/wapi/v3/depositHistory.html"),
        ("get_withdraw_history", "/wapi/v3/withdrawHistory.html"),
        ("get_account_status", "/wapi/v3/accountStatus.html"),
        ("get_system_status", "/wapi/v3/systemStatus.html"),
        ("get_api_status", "/wapi/v3/apiTradingStatus.html"),
        ("get_dustlog", "/wapi/v3/userAssetDribbletLog.html"),
        ("get_trade_fee", "/wapi/v3/tradeFee.html"),
        ("get_asset_detail", "/wapi/v3/assetDetail.html"),
        ("get_sub_accounts", "/wapi/v3/sub-account/list.html"),
        ("get_asset_dividends", "/sapi/v1/asset/assetDividend"),
    ])
    def test_signed_paths(self, client, method_name, path):
        descriptor = getattr(client, method_name)().build(timestamp_ms=1)

        assert descriptor.path == path
        assert descriptor.query.startswith("timestamp=1&signature=")


# ============================================
# Tests for Dispatch (mocked HTTP)
# ============================================

class TestDispatch:
    """End-to-end calls through the client's session"""

    @pytest.mark.asyncio
    async def test_get_account_signed_request(self, mock_http):
        mock_http.get(
            re.compile(r"^https://api\.binance\.us/api/v3/account\?.*$"),
            status=200,
            payload={"balances": [{"asset": "BNB", "free": "1.0", "locked": "0.0"}]}
        )

        async with AccountClient.connect(API_KEY, SECRET_KEY, BASE_URL) as client:
            account = await client.get_account().with_recv_window(8000).json()

        assert account["balances"][0]["asset"] == "BNB"
        (method, url), calls = next(iter(mock_http.requests.items()))
        assert method == "GET"
        assert "recvWindow=8000" in str(url)
        assert "signature=" in str(url)
        assert calls[0].kwargs["headers"][API_KEY_HEADER] == API_KEY

    @pytest.mark.asyncio
    async def test_http_error_surfaced(self, mock_http):
        mock_http.get(
            re.compile(r"^https://api\.binance\.us/api/v3/depth.*$"),
            status=400,
            body='{"code":-1121,"msg":"Invalid symbol."}'
        )

        async with MarketDataClient.connect(API_KEY, BASE_URL) as client:
            with pytest.raises(HttpError) as exc_info:
                await client.get_order_book("NOPE").json()

        assert exc_info.value.code == -1121

    @pytest.mark.asyncio
    async def test_sync_server_time_sets_offset(self, mock_http):
        mock_http.get(f"{BASE_URL}/api/v3/time", status=200, payload={"serverTime": 1700000003500})

        async with GeneralClient.connect(BASE_URL) as client:
            with patch("exchanges.binance.api_client.current_utc_timestamp", return_value=1700000001000):
                offset = await client.sync_server_time()

        assert offset == 2500
        assert client.time_offset_ms == 2500

    @pytest.mark.asyncio
    async def test_send_defers_request(self, mock_http):
        mock_http.get(f"{BASE_URL}/api/v3/ping", status=200, body="{}")

        async with GeneralClient.connect(BASE_URL) as client:
            handle = client.ping().send()
            assert not mock_http.requests
            assert await handle.json() == {}

        assert len(mock_http.requests) == 1


# ============================================
# Tests for Session Management
# ============================================

class TestSessionManagement:
    @pytest.mark.asyncio
    async def test_context_manager_closes_owned_session(self):
        client = GeneralClient.connect(BASE_URL)

        async with client:
            assert client.session is not None
            session = client.session

        assert session.closed

    @pytest.mark.asyncio
    async def test_caller_session_left_open(self):
        async with aiohttp.ClientSession() as session:
            async with GeneralClient.connect(BASE_URL, session=session) as client:
                assert client.session is session

            assert not session.closed

    @pytest.mark.asyncio
    async def test_derived_clients_share_session(self, account_client):
        async with account_client:
            market = account_client.market_client()
            general = account_client.general_client()

            assert market._get_session() is account_client.session
            assert general._get_session() is account_client.session
            assert market.credentials.api_key == API_KEY
            assert not market.credentials.can_sign

    @pytest.mark.asyncio
    async def test_close_twice_is_safe(self):
        client = GeneralClient.connect(BASE_URL)
        async with client:
            pass
        await client.close()
