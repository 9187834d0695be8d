"""
Cross-DEX quote aggregation and opportunity engine.
"""

from .types import (
    Opportunity,
    OpportunityReason,
    Quote,
    QuoteFailure,
    TokenRef,
    VenueConfig,
    VenueKind,
)

__all__ = [
    "Opportunity",
    "OpportunityReason",
    "Quote",
    "QuoteFailure",
    "TokenRef",
    "VenueConfig",
    "VenueKind",
]
