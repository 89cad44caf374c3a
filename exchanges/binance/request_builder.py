"""
Binance Request Builder

ParamBuilder accumulates the parameters of one REST call and turns them into
an immutable RequestDescriptor. For SIGNED endpoints it also stamps the
`timestamp` parameter and appends the HMAC `signature` as the very last
parameter.

Canonical Query String:
    Parameters are rendered as `key=value` pairs joined with `&`, in the order
    they were FIRST inserted (never sorted). Setting an existing key again
    replaces its value in place, so every key appears exactly once.

    For signed requests the final layout is:

        <caller params...>&recvWindow=<ms>&timestamp=<ms>&signature=<hex>

    (`recvWindow` only when set). The signature covers everything before it,
    byte for byte, and the very same string is what goes on the wire.

Recv Window:
    with_recv_window() only records the value; it is validated (1..60000 ms)
    when build() runs, so several configuration calls can be chained first.

Usage:
    builder = (
        ParamBuilder("GET", "/api/v3/order", signed=True)
        .param("symbol", "BNBUSDT")
        .param("orderId", 42)
        .with_recv_window(8000)
    )
    descriptor = builder.build(credentials)

    # Bound to a client, the builder can also dispatch itself:
    order = await client.get_order("BNBUSDT", ExchangeOrderId(order_id=42)).json()
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union
from urllib.parse import urlencode

from core.config import validate_recv_window
from core.errors import ConfigError
from core.schemas import (
    Credentials,
    OrderRespType,
    RequestDescriptor,
    TimeInForce,
)
from core.utils.time import current_utc_timestamp, datetime_to_timestamp
from .response import ResponseHandle
from .signer import sign

API_KEY_HEADER = "X-MBX-APIKEY"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Methods whose parameters travel in a form-encoded body instead of the query
BODY_METHODS = ("POST", "PUT")

TimeLike = Union[datetime, int]


def render_value(value: Any) -> str:
    """
    Render one parameter value the way the exchange expects it.

    Examples:
        >>> render_value(True)
        'true'
        >>> render_value(0.00001)
        '0.00001'
        >>> render_value(TimeInForce.GTC)
        'GTC'
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, datetime):
        return str(datetime_to_timestamp(value, milliseconds=True))
    if isinstance(value, float):
        # str() would give scientific notation for small quantities (1e-05)
        return format(Decimal(repr(value)), "f")
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


class ParamBuilder:
    """
    Ordered parameter accumulator for one REST call.

    Attributes:
        method: HTTP method (upper-case)
        path: Endpoint path (e.g., "/api/v3/order")
        signed: True for SIGNED endpoints (timestamp + signature)

    Notes:
        - One builder per call: after build() it is frozen and cannot be
          built or modified again.
        - ``None`` values passed to param() are skipped, which keeps the
          optional with_*() helpers simple.
        - Not safe to share between concurrent calls.
    """

    def __init__(
        self,
        method: str,
        path: str,
        *,
        signed: bool = False,
        credentials: Optional[Credentials] = None,
        base_url: Optional[str] = None,
        client: Optional[Any] = None
    ):
        """
        Args:
            method: HTTP method
            path: Endpoint path
            signed: Whether the endpoint requires a signature
            credentials: Default credentials used by build()
            base_url: REST base URL (defaults to the client's)
            client: Owning REST client, used by send() to dispatch
        """
        self.method = method.upper()
        self.path = path
        self.signed = signed
        self._credentials = credentials
        self._client = client
        if base_url is None and client is not None:
            base_url = client.base_url
        self._base_url = (base_url or "").rstrip("/")

        self._params: Dict[str, str] = {}
        self._recv_window: Optional[int] = None
        self._frozen = False

    # ============================================
    # Parameter Accumulation
    # ============================================

    def param(self, name: str, value: Any) -> "ParamBuilder":
        """
        Insert or overwrite a parameter.

        Args:
            name: Parameter name (non-empty)
            value: Parameter value; None leaves the parameter out

        Returns:
            The builder, for chaining
        """
        if self._frozen:
            raise RuntimeError("ParamBuilder already built; create a new builder per call")
        if not isinstance(name, str) or not name:
            raise ValueError("Parameter name must be a non-empty string")
        if name == "recvWindow":
            return self.with_recv_window(value)
        if value is None:
            return self

        # dict assignment keeps the first-insertion position on overwrite
        self._params[name] = render_value(value)
        return self

    def with_recv_window(self, recv_window: Optional[int]) -> "ParamBuilder":
        """
        Processing time for the request; default is 5000, can't be above 60000.

        Validated in build(), not here.
        """
        if self._frozen:
            raise RuntimeError("ParamBuilder already built; create a new builder per call")
        self._recv_window = recv_window
        return self

    @property
    def params(self) -> Dict[str, str]:
        """Copy of the current (unsigned) parameters, in canonical order."""
        return dict(self._params)

    @property
    def recv_window(self) -> Optional[int]:
        return self._recv_window

    def canonical_query(self) -> str:
        """Render the current parameters (without timestamp/signature)."""
        return urlencode(list(self._params.items()))

    # ============================================
    # Optional Parameter Helpers
    # ============================================

    def with_symbol(self, symbol: str) -> "ParamBuilder":
        return self.param("symbol", symbol)

    def with_limit(self, limit: int) -> "ParamBuilder":
        return self.param("limit", limit)

    def with_from_id(self, from_id: int) -> "ParamBuilder":
        return self.param("fromId", from_id)

    def with_start_time(self, start_time: TimeLike) -> "ParamBuilder":
        """Start of the time range; datetime or epoch milliseconds."""
        return self.param("startTime", start_time)

    def with_end_time(self, end_time: TimeLike) -> "ParamBuilder":
        """End of the time range; datetime or epoch milliseconds."""
        return self.param("endTime", end_time)

    def with_time_in_force(self, time_in_force: TimeInForce) -> "ParamBuilder":
        return self.param("timeInForce", time_in_force)

    def with_new_client_order_id(self, client_order_id: str) -> "ParamBuilder":
        return self.param("newClientOrderId", client_order_id)

    def with_stop_price(self, stop_price: float) -> "ParamBuilder":
        return self.param("stopPrice", stop_price)

    def with_iceberg_qty(self, iceberg_qty: float) -> "ParamBuilder":
        return self.param("icebergQty", iceberg_qty)

    def with_new_order_resp_type(self, resp_type: OrderRespType) -> "ParamBuilder":
        return self.param("newOrderRespType", resp_type)

    def with_list_client_order_id(self, list_client_order_id: str) -> "ParamBuilder":
        return self.param("listClientOrderId", list_client_order_id)

    def with_limit_client_order_id(self, limit_client_order_id: str) -> "ParamBuilder":
        return self.param("limitClientOrderId", limit_client_order_id)

    def with_stop_client_order_id(self, stop_client_order_id: str) -> "ParamBuilder":
        return self.param("stopClientOrderId", stop_client_order_id)

    def with_limit_iceberg_qty(self, limit_iceberg_qty: float) -> "ParamBuilder":
        return self.param("limitIcebergQty", limit_iceberg_qty)

    def with_stop_iceberg_qty(self, stop_iceberg_qty: float) -> "ParamBuilder":
        return self.param("stopIcebergQty", stop_iceberg_qty)

    def with_stop_limit_price(self, stop_limit_price: float) -> "ParamBuilder":
        return self.param("stopLimitPrice", stop_limit_price)

    def with_stop_limit_time_in_force(self, time_in_force: TimeInForce) -> "ParamBuilder":
        return self.param("stopLimitTimeInForce", time_in_force)

    def with_asset(self, asset: str) -> "ParamBuilder":
        return self.param("asset", asset)

    def with_status(self, status: Any) -> "ParamBuilder":
        return self.param("status", status)

    def with_address_tag(self, address_tag: str) -> "ParamBuilder":
        """Secondary address identifier for coins like XRP, XMR etc."""
        return self.param("addressTag", address_tag)

    def with_name(self, name: str) -> "ParamBuilder":
        """Description of the address."""
        return self.param("name", name)

    def with_email(self, email: str) -> "ParamBuilder":
        return self.param("email", email)

    def with_page(self, page: int) -> "ParamBuilder":
        return self.param("page", page)

    # ============================================
    # Terminal Steps
    # ============================================

    def build(
        self,
        credentials: Optional[Credentials] = None,
        timestamp_ms: Optional[int] = None
    ) -> RequestDescriptor:
        """
        Validate, stamp, sign and freeze the request.

        Args:
            credentials: Overrides the builder's default credentials
            timestamp_ms: Explicit timestamp for signed requests; defaults to
                the wall clock corrected by the client's server-time offset

        Returns:
            RequestDescriptor ready for dispatch

        Raises:
            ConfigError: recv window out of range, or a signed request
                without a secret key
            RuntimeError: If the builder was already built
        """
        if self._frozen:
            raise RuntimeError("ParamBuilder already built; create a new builder per call")

        credentials = credentials or self._credentials
        params = dict(self._params)

        if self._recv_window is not None:
            params["recvWindow"] = str(validate_recv_window(self._recv_window))

        headers: Dict[str, str] = {}
        if credentials is not None and credentials.api_key:
            headers[API_KEY_HEADER] = credentials.api_key

        if self.signed:
            if credentials is None or not credentials.can_sign:
                raise ConfigError(f"{self.method} {self.path} is a signed endpoint and needs a secret key")

            if timestamp_ms is None:
                offset = getattr(self._client, "time_offset_ms", 0) or 0
                timestamp_ms = current_utc_timestamp(milliseconds=True) + offset

            params.pop("timestamp", None)
            params.pop("signature", None)
            params["timestamp"] = str(timestamp_ms)

            canonical = urlencode(list(params.items()))
            rendered = f"{canonical}&signature={sign(credentials.secret_key.get_secret_value(), canonical)}"
        else:
            rendered = urlencode(list(params.items()))

        query, body = rendered, ""
        if self.method in BODY_METHODS:
            query, body = "", rendered
            headers["Content-Type"] = FORM_CONTENT_TYPE

        self._frozen = True

        return RequestDescriptor(
            method=self.method,
            url=f"{self._base_url}{self.path}",
            path=self.path,
            headers=headers,
            query=query,
            body=body
        )

    def send(self) -> ResponseHandle:
        """
        Build the request and hand it to the owning client.

        Returns:
            ResponseHandle; nothing is sent until text()/json() is awaited
        """
        if self._client is None:
            raise RuntimeError("ParamBuilder is not bound to a client; use build() and dispatch it yourself")
        return self._client.dispatch(self.build())

    async def text(self) -> str:
        """Shortcut for ``await builder.send().text()``."""
        return await self.send().text()

    async def json(self, model: Optional[Any] = None) -> Any:
        """Shortcut for ``await builder.send().json(model)``."""
        return await self.send().json(model)


__all__ = ["ParamBuilder", "render_value", "API_KEY_HEADER"]
