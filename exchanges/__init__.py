"""
Exchange Connectors Package

This package contains the exchange connector modules. The Binance connector
lives in its own subfolder with:
- api_client.py: REST API clients
- ws_client.py: WebSocket streaming
- request_builder.py / response.py: request signing and response decoding
"""
