"""Signing helpers for Binance private (SIGNED) REST endpoints."""

import hashlib
import hmac
from typing import Union

from pydantic import SecretStr

from core.errors import ConfigError


def sign(secret_key: str, canonical_string: str) -> str:
    """Return the hex HMAC-SHA256 of ``canonical_string`` keyed by ``secret_key``.

    The canonical string is signed byte for byte as it will be sent, so the
    caller must render parameters in their final order before calling this.
    """
    return hmac.new(
        secret_key.encode("utf-8"),
        canonical_string.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def validate_secret_key(secret_key: Union[str, SecretStr]) -> str:
    """Reject secret keys that can never produce a valid signature.

    A SecretStr (e.g. ``settings.binance_secret_key``) is unwrapped first.

    Raises:
        ConfigError: If the key is empty, not ASCII, or contains whitespace
    """
    if isinstance(secret_key, SecretStr):
        secret_key = secret_key.get_secret_value()
    if not isinstance(secret_key, str) or not secret_key:
        raise ConfigError("Secret key must be a non-empty string")
    if not secret_key.isascii() or any(ch.isspace() for ch in secret_key):
        raise ConfigError("Secret key must be printable ASCII without whitespace")
    return secret_key


__all__ = ["sign", "validate_secret_key"]
