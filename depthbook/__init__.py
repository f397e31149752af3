"""Aggregated price-level market depth for limit order books."""

__version__ = "0.1.0"
__all__ = ["depth"]