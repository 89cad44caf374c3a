"""
Client Error Taxonomy

Every failure the client can report is a subclass of BinanceClientError, so
callers can catch the whole family or a single kind:

    BinanceClientError
    ├── ConfigError     - bad credentials / URL / recv window, raised before dispatch
    ├── TransportError  - network failure or timeout, no retry is attempted
    │   └── ConnectError  - WebSocket handshake failed
    ├── HttpError       - server answered with a non-success status
    ├── DecodeError     - payload did not parse into the requested shape
    └── StreamError     - transport failure in the middle of a stream

Graceful close of a stream is NOT an error: the message sequence simply ends.

Credentials never appear in any error message.
"""

import json
from typing import Any, Optional


class BinanceClientError(Exception):
    """Base class for all errors raised by this library."""


class ConfigError(BinanceClientError, ValueError):
    """
    Local configuration problem detected before anything is sent.

    Raised for empty/malformed credentials, malformed base URLs and
    recv windows outside 1..60000 ms.
    """


class TransportError(BinanceClientError):
    """Network-level failure (connection refused, TLS, timeout, ...)."""


class ConnectError(TransportError):
    """WebSocket handshake failed; no connection object is handed out."""


class HttpError(BinanceClientError):
    """
    The server was reached but returned a non-success HTTP status.

    Attributes:
        status: HTTP status code
        body: Response body, verbatim
        reason: HTTP reason phrase (may be empty)

    Example:
        >>> err = HttpError(400, '{"code":-1121,"msg":"Invalid symbol."}')
        >>> err.code, err.msg
        (-1121, 'Invalid symbol.')
    """

    def __init__(self, status: int, body: str, reason: str = ""):
        self.status = status
        self.body = body
        self.reason = reason
        reason_str = f" {reason}" if reason else ""
        super().__init__(f"HTTP {status}{reason_str}: {body}")

    def _payload(self) -> Optional[dict]:
        try:
            payload = json.loads(self.body)
        except (TypeError, ValueError):
            return None
        return payload if isinstance(payload, dict) else None

    @property
    def code(self) -> Optional[int]:
        """Exchange error code from a ``{"code": ..., "msg": ...}`` body, if any."""
        payload = self._payload()
        return payload.get("code") if payload else None

    @property
    def msg(self) -> Optional[str]:
        """Exchange error message from a ``{"code": ..., "msg": ...}`` body, if any."""
        payload = self._payload()
        return payload.get("msg") if payload else None


class DecodeError(BinanceClientError):
    """
    The payload could not be decoded into the requested shape.

    Attributes:
        payload: The raw text (or bytes) that failed to decode
    """

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload


class StreamError(BinanceClientError):
    """Transport failure while a stream was open. Terminal for that connection."""
