"""
Binance Stream Channels

A Channel names what a WebSocket connection subscribes to. It is a closed
set of three variants:

    SingleStream("bnbusdt@aggTrade")         -> ws/bnbusdt@aggTrade
    CombinedStreams(("a@trade", "b@trade"))  -> stream?streams=a@trade/b@trade
    UserData("<listen key>")                 -> ws/<listen key>

Stream names are built with the helpers at the bottom of this module
(agg_trade, kline, partial_depth, ...). Symbols are lowercased, as the
exchange requires; stream-type suffixes such as "aggTrade" keep their case.

Combined streams wrap every payload in an envelope:

    {"stream": "bnbusdt@aggTrade", "data": {...}}

Channel.matches(envelope) tells which subscription an envelope belongs to,
so several consumers can filter one shared connection.

WebSocket Documentation:
    https://github.com/binance-us/binance-official-api-docs/blob/master/web-socket-streams.md
"""

from typing import Any, Tuple, Union
from pydantic import BaseModel, ConfigDict, field_validator

from core.logging import mask_secret
from core.schemas import DepthLevel, Interval, UpdateSpeed

SINGLE_STREAM_PREFIX = "ws/"
COMBINED_STREAM_PREFIX = "stream?streams="
STREAM_SEPARATOR = "/"


def normalize_stream_name(name: str) -> str:
    """
    Lowercase the symbol part of a stream name, keep the stream type verbatim.

    Example:
        >>> normalize_stream_name("BNBUSDT@aggTrade")
        'bnbusdt@aggTrade'
        >>> normalize_stream_name("!miniTicker@arr")
        '!miniTicker@arr'

    Raises:
        ValueError: If the name is not a stream name (no "@", no "!" prefix)
    """
    if not isinstance(name, str) or STREAM_SEPARATOR in name:
        raise ValueError(f"Invalid stream name: {name!r}")
    # All-market streams ("!ticker@arr", "!bookTicker") carry no symbol
    if name.startswith("!") and len(name) > 1:
        return name
    symbol, sep, rest = name.partition("@")
    if not symbol or not sep or not rest:
        raise ValueError(f"Invalid stream name: {name!r} (expected <symbol>@<stream>)")
    return symbol.lower() + sep + rest


class SingleStream(BaseModel):
    """One raw stream on a dedicated connection."""

    model_config = ConfigDict(frozen=True)

    name: str

    def __init__(self, name: str, **data: Any):
        super().__init__(name=name, **data)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return normalize_stream_name(v)


class CombinedStreams(BaseModel):
    """Several streams multiplexed over one connection (order kept, duplicates dropped)."""

    model_config = ConfigDict(frozen=True)

    names: Tuple[str, ...]

    def __init__(self, names: Any, **data: Any):
        super().__init__(names=names, **data)

    @field_validator("names", mode="before")
    @classmethod
    def validate_names(cls, v: Any) -> Tuple[str, ...]:
        if isinstance(v, str):
            v = (v,)
        names = []
        for name in v:
            name = normalize_stream_name(name)
            if name not in names:
                names.append(name)
        if not names:
            raise ValueError("CombinedStreams needs at least one stream name")
        return tuple(names)


class UserData(BaseModel):
    """Private user data stream, addressed by the listen key (verbatim)."""

    model_config = ConfigDict(frozen=True)

    listen_key: str

    def __init__(self, listen_key: str, **data: Any):
        super().__init__(listen_key=listen_key, **data)

    @field_validator("listen_key")
    @classmethod
    def validate_listen_key(cls, v: str) -> str:
        # "@" and "!" are reserved for stream names, so a listen key can
        # never render to the same path as a SingleStream
        if not v or any(ch in v for ch in (STREAM_SEPARATOR, "@", "?")) or v.startswith("!"):
            raise ValueError("Listen key must be a non-empty opaque token")
        return v

    def __repr__(self) -> str:
        return f"UserData(listen_key={mask_secret(self.listen_key)!r})"


Channel = Union[SingleStream, CombinedStreams, UserData]


# ============================================
# Rendering & Correlation
# ============================================

def stream_names(channel: Channel) -> Tuple[str, ...]:
    """
    Stream names a channel delivers, as they appear in envelopes.

    Raises:
        TypeError: If ``channel`` is not one of the three variants
    """
    if isinstance(channel, SingleStream):
        return (channel.name,)
    if isinstance(channel, CombinedStreams):
        return channel.names
    if isinstance(channel, UserData):
        return (channel.listen_key,)
    raise TypeError(f"Unknown channel type: {type(channel).__name__}")


def render(channel: Channel) -> str:
    """
    Render a channel to its URL path fragment.

    Example:
        >>> render(CombinedStreams(names=("bnbusdt@trade", "btcusdt@trade")))
        'stream?streams=bnbusdt@trade/btcusdt@trade'
    """
    if isinstance(channel, SingleStream):
        return SINGLE_STREAM_PREFIX + channel.name
    if isinstance(channel, CombinedStreams):
        return COMBINED_STREAM_PREFIX + STREAM_SEPARATOR.join(channel.names)
    if isinstance(channel, UserData):
        return SINGLE_STREAM_PREFIX + channel.listen_key
    raise TypeError(f"Unknown channel type: {type(channel).__name__}")


def channel_url(channel: Channel, base_ws_url: str) -> str:
    """
    Full WebSocket URL for a channel.

    Example:
        >>> channel_url(SingleStream(name="bnbusdt@ticker"), "wss://stream.binance.us:9443")
        'wss://stream.binance.us:9443/ws/bnbusdt@ticker'
    """
    return f"{base_ws_url.rstrip('/')}/{render(channel)}"


def log_name(channel: Channel) -> str:
    """Rendered path safe for logs (listen keys masked)."""
    if isinstance(channel, UserData):
        return SINGLE_STREAM_PREFIX + mask_secret(channel.listen_key)
    return render(channel)


def matches(channel: Channel, envelope: Any) -> bool:
    """
    Check whether an inbound message belongs to ``channel``.

    Args:
        channel: The subscription to test against
        envelope: A stream name, or a decoded combined-stream envelope
            ({"stream": ..., "data": ...})

    Returns:
        True if the envelope's stream name is one of the channel's streams
    """
    if isinstance(envelope, dict):
        envelope = envelope.get("stream")
    if not isinstance(envelope, str):
        return False
    return envelope in stream_names(channel)


# ============================================
# Stream Name Helpers
# ============================================

def agg_trade(symbol: str) -> str:
    return f"{symbol.lower()}@aggTrade"


def trade(symbol: str) -> str:
    return f"{symbol.lower()}@trade"


def kline(symbol: str, interval: Interval) -> str:
    return f"{symbol.lower()}@kline_{Interval(interval).value}"


def mini_ticker(symbol: str) -> str:
    return f"{symbol.lower()}@miniTicker"


def all_mini_tickers() -> str:
    return "!miniTicker@arr"


def ticker(symbol: str) -> str:
    return f"{symbol.lower()}@ticker"


def all_tickers() -> str:
    return "!ticker@arr"


def book_ticker(symbol: str) -> str:
    return f"{symbol.lower()}@bookTicker"


def all_book_tickers() -> str:
    return "!bookTicker"


def partial_depth(symbol: str, level: DepthLevel, speed: UpdateSpeed = UpdateSpeed.THOUSAND_MILLIS) -> str:
    """Top <level> bids and asks, e.g. ``bnbusdt@depth5@100ms``."""
    return f"{symbol.lower()}@depth{DepthLevel(level).value}@{UpdateSpeed(speed).value}"


def depth(symbol: str, speed: UpdateSpeed = UpdateSpeed.THOUSAND_MILLIS) -> str:
    """Diff depth stream, e.g. ``bnbusdt@depth@100ms``."""
    return f"{symbol.lower()}@depth@{UpdateSpeed(speed).value}"


__all__ = [
    "Channel",
    "SingleStream",
    "CombinedStreams",
    "UserData",
    "render",
    "channel_url",
    "stream_names",
    "matches",
    "log_name",
    "normalize_stream_name",
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
]
