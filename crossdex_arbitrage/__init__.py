"""
Cross-DEX Arbitrage Scanner.

Shared support code for the cross-venue quote aggregation engine in the
``dex`` package: version information, the exception hierarchy and logging
helpers.
"""

PROJECT_NAME = "crossdex-arbitrage"

from crossdex_arbitrage.version import __version__
from crossdex_arbitrage.exceptions import (
    CrossDexArbitrageError,
    ConfigurationError,
    QuoteError,
    NoPoolError,
    BadResponseError,
    EstimationError,
    NetworkError,
    CallTimeoutError,
)

VERSION = __version__

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "__version__",
    "CrossDexArbitrageError",
    "ConfigurationError",
    "QuoteError",
    "NoPoolError",
    "BadResponseError",
    "EstimationError",
    "NetworkError",
    "CallTimeoutError",
]
