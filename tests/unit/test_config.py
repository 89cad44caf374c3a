"""
Unit Tests for Configuration Module

These tests verify that the configuration system works correctly:
- Default values point at Binance.US
- Environment variables override defaults
- Validation catches invalid configurations
- recvWindow bounds are enforced

Run with:
    pytest tests/unit/test_config.py -v
"""

import logging

import pytest

from core.config import (
    BINANCE_US_URL,
    BINANCE_US_WSS_URL,
    MAX_RECV_WINDOW,
    Settings,
    settings,
    validate_configuration,
    validate_recv_window,
)
from core.errors import BinanceClientError, ConfigError
from core.logging import ROOT_LOGGER_NAME, get_logger, mask_secret, set_log_level, setup_logging


class TestConfigurationLoading:
    """Test that configuration loads correctly"""

    def test_binance_base_url_loaded(self):
        """Verify Binance API URL is set"""
        assert settings.binance_base_url is not None
        assert settings.binance_base_url.startswith("http")

    def test_defaults_point_at_binance_us(self, monkeypatch):
        monkeypatch.delenv("BINANCE_BASE_URL", raising=False)
        monkeypatch.delenv("BINANCE_WS_URL", raising=False)

        config = Settings(_env_file=None)

        assert config.binance_base_url == BINANCE_US_URL == "https://api.binance.us"
        assert config.binance_ws_url == BINANCE_US_WSS_URL == "wss://stream.binance.us:9443"
        assert config.recv_window is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BINANCE_API_KEY", "env-key")
        monkeypatch.setenv("RECV_WINDOW", "8000")

        config = Settings(_env_file=None)

        assert config.binance_api_key == "env-key"
        assert config.recv_window == 8000

    def test_credentials_without_secret(self):
        config = Settings(_env_file=None, binance_api_key="k", binance_secret_key="")

        assert config.credentials.api_key == "k"
        assert config.credentials.secret_key is None
        assert not config.credentials.can_sign

    def test_secret_key_masked_in_dump(self):
        config = Settings(_env_file=None, binance_api_key="k", binance_secret_key="s3cr3t-value")

        assert "s3cr3t-value" not in config.model_dump_json()
        assert "s3cr3t-value" not in repr(config)
        assert config.credentials.secret_key.get_secret_value() == "s3cr3t-value"

    def test_log_level_is_set(self):
        """Verify log level is configured"""
        assert isinstance(settings.log_level, str)
        assert len(settings.log_level) > 0


class TestRecvWindowValidation:
    """recvWindow must be an integer in 1..60000"""

    @pytest.mark.parametrize("value", [1, 5000, MAX_RECV_WINDOW])
    def test_valid(self, value):
        assert validate_recv_window(value) == value

    @pytest.mark.parametrize("value", [0, -5, MAX_RECV_WINDOW + 1, 5000.0, "5000", True])
    def test_invalid(self, value):
        with pytest.raises(ConfigError):
            validate_recv_window(value)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_recv_window(0)


class TestValidateConfiguration:
    """Tests for validate_configuration()"""

    def test_defaults_pass(self):
        validate_configuration(Settings(_env_file=None))

    def test_bad_base_url(self):
        with pytest.raises(ConfigError):
            validate_configuration(Settings(_env_file=None, binance_base_url="not-a-url"))

    def test_bad_ws_url(self):
        with pytest.raises(ConfigError):
            validate_configuration(Settings(_env_file=None, binance_ws_url="https://stream.binance.us"))

    def test_bad_recv_window(self):
        with pytest.raises(ConfigError):
            validate_configuration(Settings(_env_file=None, recv_window=60001))

    def test_non_positive_timeout(self):
        with pytest.raises(ConfigError):
            validate_configuration(Settings(_env_file=None, request_timeout=0))

    def test_bad_log_level(self):
        with pytest.raises(BinanceClientError):
            validate_configuration(Settings(_env_file=None, log_level="LOUD"))

    def test_api_key_masked_in_logs(self, caplog):
        config = Settings(_env_file=None, binance_api_key="abcd1234567890wxyz")

        with caplog.at_level(logging.INFO, logger=ROOT_LOGGER_NAME):
            validate_configuration(config)

        assert "abcd1234567890wxyz" not in caplog.text
        assert mask_secret("abcd1234567890wxyz") in caplog.text


class TestLoggingHelpers:
    def test_get_logger_namespaced(self):
        assert get_logger("exchanges.binance.api_client").name == "binanceclient.exchanges.binance.api_client"

    def test_mask_secret(self):
        assert mask_secret("abcd1234567890wxyz") == "abcd**********wxyz"
        assert mask_secret("short") == "*****"
        assert mask_secret(None) == ""

    def test_setup_logging_sets_level(self):
        logger = setup_logging(log_level="DEBUG")

        assert logger.name == ROOT_LOGGER_NAME
        assert logger.level == logging.DEBUG

        set_log_level("warning")
        assert logger.level == logging.WARNING
        set_log_level("INFO")
