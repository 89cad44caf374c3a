"""
Binance Response Handle

A ResponseHandle wraps one pending REST call. Nothing is sent until the
caller asks for the body, and the caller chooses how to interpret it:

    handle = client.get_account().send()
    account = await handle.json()          # or: raw = await handle.text()

Error precedence (identical for text() and json()):
    1. TransportError - the call never produced a response
    2. HttpError      - non-2xx status; the body is kept verbatim
    3. DecodeError    - (json only) 2xx status but the body is not the requested shape

Handles are single-use: the network response is consumed exactly once.
"""

import asyncio
import json
import time
from typing import Any, Callable, Optional

import aiohttp
from pydantic import TypeAdapter, ValidationError
from yarl import URL

from core.errors import DecodeError, HttpError, TransportError
from core.logging import get_logger, log_api_request, log_api_response
from core.schemas import RequestDescriptor

logger = get_logger(__name__)


def decode_payload(payload: str, model: Optional[Any] = None, source: str = "response") -> Any:
    """
    Decode a JSON payload, optionally validating it into ``model``.

    Args:
        payload: Raw text
        model: Pydantic model or any type accepted by pydantic.TypeAdapter
            (e.g. ``Dict[str, Any]``, ``List[MyModel]``). None returns plain JSON.
        source: Where the payload came from, for the error message

    Raises:
        DecodeError: If the text is not JSON or does not validate
    """
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise DecodeError(f"Malformed JSON in {source}: {e}", payload) from e

    if model is None:
        return data

    try:
        return TypeAdapter(model).validate_python(data)
    except ValidationError as e:
        raise DecodeError(f"Unexpected {source} shape: {e}", payload) from e


def redact_signature(params: str) -> str:
    """Drop the signature from a rendered parameter string before logging it."""
    return "&".join(p for p in params.split("&") if p and not p.startswith("signature="))


class ResponseHandle:
    """
    Deferred response of one REST call.

    Attributes:
        descriptor: The immutable request this handle will dispatch
        timeout: Total timeout in seconds for the call

    Example:
        >>> handle = ResponseHandle(descriptor, lambda: session)
        >>> data = await handle.json()

    Notes:
        - ``session_factory`` is only called when the body is requested, so
          handles can be created outside a running event loop.
        - The aiohttp response is released before text()/json() return,
          including when the awaiting task is cancelled.
    """

    def __init__(
        self,
        descriptor: RequestDescriptor,
        session_factory: Callable[[], aiohttp.ClientSession],
        timeout: Optional[float] = None
    ):
        self.descriptor = descriptor
        self.timeout = timeout
        self._session_factory = session_factory
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    async def _fetch(self) -> str:
        if self._consumed:
            raise RuntimeError("Response already consumed: a ResponseHandle is single-use")
        self._consumed = True

        request = self.descriptor
        session = self._session_factory()
        log_api_request(request.method, request.path, redact_signature(request.query_or_body))

        started = time.monotonic()
        try:
            async with session.request(
                request.method,
                URL(request.full_url, encoded=True),
                data=request.body or None,
                headers=request.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as resp:
                body = await resp.text()
                status = resp.status
                reason = resp.reason or ""

        except asyncio.TimeoutError as e:
            logger.error(f"Timeout on {request.method} {request.path}")
            raise TransportError(f"Timeout on {request.method} {request.path}") from e

        except aiohttp.ClientError as e:
            logger.error(f"Request failed on {request.method} {request.path}: {e}")
            raise TransportError(f"Request failed on {request.method} {request.path}: {e}") from e

        log_api_response(request.method, request.path, status, time.monotonic() - started)

        if not 200 <= status < 300:
            logger.warning(f"HTTP {status} on {request.path}: {body}")
            raise HttpError(status, body, reason)

        return body

    async def text(self) -> str:
        """
        Dispatch the request and return the raw body.

        Raises:
            TransportError: Network failure or timeout
            HttpError: Non-success status (body preserved verbatim)
            RuntimeError: If the handle was already consumed
        """
        return await self._fetch()

    async def json(self, model: Optional[Any] = None) -> Any:
        """
        Dispatch the request and decode the body.

        Args:
            model: Optional pydantic model / type to validate the payload into

        Raises:
            TransportError: Network failure or timeout
            HttpError: Non-success status, reported before any decoding
            DecodeError: Malformed JSON or payload not matching ``model``
            RuntimeError: If the handle was already consumed
        """
        body = await self._fetch()
        return decode_payload(body, model, source=f"{self.descriptor.method} {self.descriptor.path}")


__all__ = ["ResponseHandle", "decode_payload", "redact_signature"]
