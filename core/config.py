"""
Configuration Management Module

This module loads client configuration from environment variables (.env file)
using Pydantic Settings for validation and type conversion.

Key Features:
- Loads configuration from .env file
- Provides type-safe access to configuration values
- Validates URLs, recv window and timeouts before anything is sent

Usage:
    from core.config import settings

    client = AccountClient.connect(
        settings.binance_api_key,
        settings.binance_secret_key.get_secret_value(),
        settings.binance_base_url,
    )
"""

from typing import Optional
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigError
from core.schemas import Credentials

BINANCE_US_URL = "https://api.binance.us"
BINANCE_US_WSS_URL = "wss://stream.binance.us:9443"

# Exchange-enforced bounds for the recvWindow parameter (milliseconds)
DEFAULT_RECV_WINDOW = 5000
MAX_RECV_WINDOW = 60000


class Settings(BaseSettings):
    """
    Client Settings

    Values are automatically loaded from environment variables or .env file
    (case-insensitive, e.g. BINANCE_API_KEY).

    Attributes:
        binance_base_url: REST API base URL
        binance_ws_url: WebSocket streams base URL
        binance_api_key: API key (sent as X-MBX-APIKEY)
        binance_secret_key: Secret key used to sign private requests
        recv_window: recvWindow applied to every signed request (None = server default)
        request_timeout: Total timeout for one REST call in seconds
        ws_connect_timeout: WebSocket handshake timeout in seconds
        ws_heartbeat: Interval of protocol-level WebSocket pings in seconds
        keep_alive_interval: Seconds between listen-key keep-alive calls
        log_level: Logging level for the "binanceclient" loggers
    """

    # ============================================
    # Binance API Configuration
    # ============================================

    binance_base_url: str = Field(
        default=BINANCE_US_URL,
        description="Binance REST API base URL"
    )

    binance_ws_url: str = Field(
        default=BINANCE_US_WSS_URL,
        description="Binance WebSocket streams base URL"
    )

    binance_api_key: str = Field(
        default="",
        description="Binance API key"
    )

    binance_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Binance secret key (only needed for signed endpoints)"
    )

    # ============================================
    # Request Configuration
    # ============================================

    recv_window: Optional[int] = Field(
        default=None,
        description=f"recvWindow in ms for signed requests (server default {DEFAULT_RECV_WINDOW}, max {MAX_RECV_WINDOW})"
    )

    request_timeout: float = Field(
        default=10.0,
        description="REST request timeout in seconds"
    )

    # ============================================
    # Streaming Configuration
    # ============================================

    ws_connect_timeout: float = Field(
        default=10.0,
        description="WebSocket handshake timeout in seconds"
    )

    ws_heartbeat: float = Field(
        default=30.0,
        description="WebSocket ping interval in seconds"
    )

    keep_alive_interval: float = Field(
        default=30 * 60,
        description="Seconds between user data stream keep-alive calls"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    @property
    def credentials(self) -> Credentials:
        """
        Credentials built from the configured keys.

        Returns:
            Credentials with secret_key set to None when no secret is configured
        """
        return Credentials(
            api_key=self.binance_api_key,
            secret_key=self.binance_secret_key.get_secret_value() or None
        )


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_recv_window(recv_window: int) -> int:
    """
    Check a recvWindow value against the exchange bounds.

    Raises:
        ConfigError: If the value is not an integer in 1..60000
    """
    if isinstance(recv_window, bool) or not isinstance(recv_window, int):
        raise ConfigError(f"recvWindow must be an integer, got {recv_window!r}")
    if not (0 < recv_window <= MAX_RECV_WINDOW):
        raise ConfigError(
            f"recvWindow must be between 1 and {MAX_RECV_WINDOW} ms, got {recv_window}"
        )
    return recv_window


def validate_configuration(config: Optional[Settings] = None) -> None:
    """
    Validate the configuration before the first request is made.

    Args:
        config: Settings to check (defaults to the global settings)

    Raises:
        ConfigError: If any setting is missing or invalid
    """
    # Imported here: exchanges.binance imports this module
    from core.logging import get_logger, mask_secret
    from exchanges.binance.api_client import validate_base_url
    from exchanges.binance.ws_client import validate_ws_url

    config = config or settings
    logger = get_logger(__name__)

    validate_base_url(config.binance_base_url)
    validate_ws_url(config.binance_ws_url)

    if config.recv_window is not None:
        validate_recv_window(config.recv_window)

    for name in ("request_timeout", "ws_connect_timeout", "ws_heartbeat", "keep_alive_interval"):
        if getattr(config, name) <= 0:
            raise ConfigError(f"{name.upper()} must be positive, got {getattr(config, name)}")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ConfigError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"REST API: {config.binance_base_url}")
    logger.info(f"Streams: {config.binance_ws_url}")
    logger.info(f"API key: {mask_secret(config.binance_api_key) or '<not set>'}")
    logger.info(f"Log level: {config.log_level.upper()}")
