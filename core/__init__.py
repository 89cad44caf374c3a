"""
Core Package

Contains the exchange-independent building blocks of the client:
- config: Pydantic Settings loaded from the environment
- logging: "binanceclient" logger namespace and log helpers
- errors: The error taxonomy every operation reports through
- schemas: Credentials, request descriptors, order identifiers, enums
"""
