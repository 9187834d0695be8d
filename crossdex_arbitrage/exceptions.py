"""
Exception hierarchy for the cross-DEX arbitrage scanner.

Venue-level errors (``QuoteError`` and subclasses) are raised inside quote
adapters and always downgraded to a ``QuoteFailure`` before they reach the
fan-out. Only configuration and network errors are allowed to surface to
the polling loop, which logs them and cools down.
"""

from typing import Any, Dict, Optional


class CrossDexArbitrageError(Exception):
    """Base exception for all cross-DEX arbitrage related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(CrossDexArbitrageError):
    """Raised for an invalid catalog, YAML file or environment override."""

    pass


class QuoteError(CrossDexArbitrageError):
    """Raised when a venue cannot produce a quote."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.venue = venue


class NoPoolError(QuoteError):
    """Raised when a venue has no pool (or no liquidity) for a route."""

    pass


class BadResponseError(QuoteError):
    """Raised when a venue returns a response that cannot be decoded."""

    pass


class EstimationError(CrossDexArbitrageError):
    """Raised when gas price, gas units or native price lookups fail."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source = source


class NetworkError(CrossDexArbitrageError):
    """Raised when no RPC endpoint answers or the chain id does not match."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class CallTimeoutError(NetworkError):
    """Raised when a single RPC call gets no answer within its budget."""

    pass
