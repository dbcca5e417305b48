"""predscan - prediction market orderbook aggregation and signal screening."""

__version__ = "0.1.0"
