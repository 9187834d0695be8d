"""Version information for the cross-DEX arbitrage scanner."""

__version__ = "0.3.0"
