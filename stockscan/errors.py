"""Exception types raised by the inventory package."""

from __future__ import annotations


class StockscanError(Exception):
    """Base class for errors scoped to a single inventory operation."""


class InvalidScanError(StockscanError, ValueError):
    """The scanned QR payload is not a JSON object."""


class ScanFailedError(StockscanError, RuntimeError):
    """No QR code could be found in the frame or image."""


class StoreError(StockscanError, RuntimeError):
    """A read or write against the product store failed."""


class InsightsError(StockscanError, RuntimeError):
    """The insight-generation service failed or returned nothing."""
