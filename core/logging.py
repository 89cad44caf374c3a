"""
Unified Logging Configuration

This module sets up the logging conventions shared by the whole client.
All modules import get_logger() from here instead of using print().

Every logger lives under the "binanceclient" namespace, so an application
embedding the client can tune or silence it in one place:

    logging.getLogger("binanceclient").setLevel(logging.WARNING)

Usage:
    from core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Connected to Binance")

Log Levels (from most to least verbose):
    DEBUG    - Request/response traces (e.g., "API Request: GET /api/v3/depth")
    INFO     - Connection lifecycle (e.g., "WebSocket: binance connected")
    WARNING  - Unexpected but tolerated situations (e.g., "Malformed frame")
    ERROR    - Failures surfaced to the caller (e.g., "Handshake failed")

Credentials:
    Secret keys and signatures are never logged. API keys are only ever
    logged through mask_secret().

Configuration:
    The library never configures the root logger on import. Applications
    (or tests) call setup_logging() to get the console format below; the
    level defaults to the LOG_LEVEL setting.
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "binanceclient"


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure console logging and return the client's root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to settings.log_level.
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: The "binanceclient" logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Client started")
        2024-01-01 12:00:00 [INFO] binanceclient Client started
    """
    if log_level is None:
        from core.config import settings
        log_level = settings.log_level

    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    return root


# Library-wide logger; handlers come from the embedding application.
logger = logging.getLogger(ROOT_LOGGER_NAME)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger named "binanceclient.<name>"

    Example:
        # In exchanges/binance/api_client.py:
        logger = get_logger(__name__)  # "binanceclient.exchanges.binance.api_client"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """
    Change the client's log level at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def mask_secret(value: Optional[str]) -> str:
    """
    Mask a credential for log output, keeping only the first and last 4 chars.

    Example:
        >>> mask_secret("vmPUZE6mv9SD5VNHk4HlWFsOr6aKE2zvsw0MuIgwCIPy6utIco14y7Ju91duEh8A")
        'vmPU********************************************************Eh8A'
        >>> mask_secret("short")
        '*****'
    """
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return value[:4] + "*" * (len(value) - 8) + value[-4:]


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(method: str, path: str, params: Optional[str] = None) -> None:
    """
    Log an outgoing REST request.

    Args:
        method: HTTP method
        path: API endpoint path
        params: Rendered parameters WITHOUT the signature (optional)

    Example:
        >>> log_api_request("GET", "/api/v3/depth", "symbol=BNBUSDT&limit=5")
        [DEBUG] API Request: GET /api/v3/depth | Params: symbol=BNBUSDT&limit=5
    """
    if params:
        logger.debug(f"API Request: {method} {path} | Params: {params}")
    else:
        logger.debug(f"API Request: {method} {path}")


def log_api_response(method: str, path: str, status: int, response_time: Optional[float] = None) -> None:
    """
    Log a REST response with status and timing information.

    Example:
        >>> log_api_response("GET", "/api/v3/depth", 200, 0.342)
        [DEBUG] API Response: GET /api/v3/depth | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time is not None else ""
    logger.debug(f"API Response: {method} {path} | Status: {status}{time_str}")


def log_websocket_event(event: str, stream: Optional[str] = None, details: Optional[str] = None) -> None:
    """
    Log a WebSocket lifecycle event.

    Args:
        event: Event type ("connecting", "connected", "closed", "error", ...)
        stream: Rendered channel path (optional)
        details: Additional details (optional)

    Example:
        >>> log_websocket_event("connected", "ws/bnbusdt@ticker")
        [INFO] WebSocket: binance connected | Stream: ws/bnbusdt@ticker
    """
    stream_str = f" | Stream: {stream}" if stream else ""
    details_str = f" | {details}" if details else ""

    level = logging.ERROR if event == "error" else logging.INFO
    logger.log(level, f"WebSocket: binance {event}{stream_str}{details_str}")
