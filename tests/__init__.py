"""
Test Suite

Contains unit tests for the Binance client.

Structure:
- tests/unit/: Tests for individual components (signing, request building,
  response handling, channels, streaming, REST clients, configuration)

HTTP traffic is mocked with aioresponses and WebSocket traffic with
unittest.mock; no test touches the network.

Uses pytest with pytest-asyncio for testing async functionality.
"""
