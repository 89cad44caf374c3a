"""
Client Data Schemas

This module defines the Pydantic models and enumerations shared by the REST
and streaming surfaces of the client.

Models:
    - Credentials: API key / secret key pair owned by a client
    - RequestDescriptor: Immutable, dispatch-ready description of one REST call
    - ExchangeOrderId / ClientOrderId: The two ways of naming an order (OrderId)

Enumerations:
    - Side, OrderType, TimeInForce, OrderRespType: Order parameters
    - Interval: Kline/candlestick intervals
    - DepthLevel, UpdateSpeed: Partial book depth stream options

All models are frozen: once built, a descriptor or a set of credentials
cannot be changed.
"""

from enum import Enum
from typing import Dict, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, SecretStr


# ============================================
# Credentials
# ============================================

class Credentials(BaseModel):
    """
    API credentials for one client.

    Attributes:
        api_key: Sent in the X-MBX-APIKEY header
        secret_key: HMAC key for signed endpoints (None for API-key-only clients)

    Notes:
        - The secret is a SecretStr: masked in model dumps and left out of repr()
    """

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., repr=False)
    secret_key: Optional[SecretStr] = Field(default=None, repr=False)

    @property
    def can_sign(self) -> bool:
        """True if a secret key is available for signed endpoints."""
        return self.secret_key is not None and bool(self.secret_key.get_secret_value())


# ============================================
# Request Descriptor
# ============================================

class RequestDescriptor(BaseModel):
    """
    Immutable, dispatch-ready REST request.

    Produced once per logical call by ParamBuilder.build() and consumed
    exactly once by the transport.

    Attributes:
        method: HTTP method ("GET", "POST", "PUT", "DELETE")
        url: Absolute URL without query string
        path: Endpoint path (e.g., "/api/v3/order")
        headers: Request headers (API key, content type)
        query: Rendered query string (GET/DELETE), possibly empty
        body: Rendered form body (POST/PUT), possibly empty
    """

    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    path: str
    headers: Dict[str, str] = Field(default_factory=dict, repr=False)
    query: str = ""
    body: str = ""

    @property
    def query_or_body(self) -> str:
        """The rendered parameter string, wherever it travels."""
        return self.body if self.method in ("POST", "PUT") else self.query

    @property
    def full_url(self) -> str:
        """URL including the query string, exactly as it is signed."""
        return f"{self.url}?{self.query}" if self.query else self.url


# ============================================
# Order Identifier (closed sum type)
# ============================================

class ExchangeOrderId(BaseModel):
    """Order id assigned by the exchange."""

    model_config = ConfigDict(frozen=True)

    order_id: int


class ClientOrderId(BaseModel):
    """Order id chosen by the client when placing the order."""

    model_config = ConfigDict(frozen=True)

    client_order_id: str


OrderId = Union[ExchangeOrderId, ClientOrderId]


# ============================================
# Enumerations
# ============================================

class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    LIMIT = "LIMIT"
    MARKET = "MARKET"
    STOP_LOSS = "STOP_LOSS"
    STOP_LOSS_LIMIT = "STOP_LOSS_LIMIT"
    TAKE_PROFIT = "TAKE_PROFIT"
    TAKE_PROFIT_LIMIT = "TAKE_PROFIT_LIMIT"
    LIMIT_MAKER = "LIMIT_MAKER"


class TimeInForce(str, Enum):
    GTC = "GTC"
    IOC = "IOC"
    FOK = "FOK"


class OrderRespType(str, Enum):
    ACK = "ACK"
    RESULT = "RESULT"
    FULL = "FULL"


class Interval(str, Enum):
    """Kline intervals, valued as the exchange spells them."""

    ONE_MINUTE = "1m"
    THREE_MINUTES = "3m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    THIRTY_MINUTES = "30m"
    ONE_HOUR = "1h"
    TWO_HOURS = "2h"
    FOUR_HOURS = "4h"
    SIX_HOURS = "6h"
    EIGHT_HOURS = "8h"
    TWELVE_HOURS = "12h"
    ONE_DAY = "1d"
    THREE_DAYS = "3d"
    ONE_WEEK = "1w"
    ONE_MONTH = "1M"


class DepthLevel(str, Enum):
    FIVE = "5"
    TEN = "10"
    TWENTY = "20"


class UpdateSpeed(str, Enum):
    HUNDRED_MILLIS = "100ms"
    THOUSAND_MILLIS = "1000ms"
