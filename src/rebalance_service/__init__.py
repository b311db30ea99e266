"""Solana portfolio rebalancer service: HTTP API, stores and background sweep."""

__version__ = "1.0.0"
