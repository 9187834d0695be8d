"""
DEX quote adapters, one per venue interface kind.
"""

from typing import Any, Dict, Optional, Type

from ..retry import RetryPolicy
from ..types import TokenRef, VenueConfig, VenueKind
from .balancer import BatchVaultRouterAdapter
from .base import QuoteAdapter, QuoteResult
from .curve import CurveRouterAdapter
from .solidly import StableSwapRouterAdapter
from .v2 import ConstantProductRouterAdapter
from .v3 import MultiHopQuoterAdapter, SingleHopQuoterAdapter

ADAPTERS: Dict[VenueKind, Type[QuoteAdapter]] = {
    cls.kind: cls
    for cls in (
        SingleHopQuoterAdapter,
        MultiHopQuoterAdapter,
        ConstantProductRouterAdapter,
        StableSwapRouterAdapter,
        BatchVaultRouterAdapter,
        CurveRouterAdapter,
    )
}


def build_adapter(
    venue: VenueConfig,
    web3: Any,
    bridge: Optional[TokenRef] = None,
    retry_policy: Optional[RetryPolicy] = None,
    call_timeout_ms: Optional[int] = None,
) -> QuoteAdapter:
    """
    Create the adapter matching ``venue.kind``.

    ``call_timeout_ms`` bounds each contract call attempt, so every retry
    gets its own budget.

    Raises:
        ValueError: No adapter is registered for the kind
    """
    try:
        cls = ADAPTERS[VenueKind(venue.kind)]
    except (KeyError, ValueError) as e:
        raise ValueError(f"No adapter for venue kind {venue.kind!r}") from e
    return cls(
        venue,
        web3,
        bridge=bridge,
        retry_policy=retry_policy,
        call_timeout_ms=call_timeout_ms,
    )


__all__ = [
    "ADAPTERS",
    "QuoteAdapter",
    "QuoteResult",
    "SingleHopQuoterAdapter",
    "MultiHopQuoterAdapter",
    "ConstantProductRouterAdapter",
    "StableSwapRouterAdapter",
    "BatchVaultRouterAdapter",
    "CurveRouterAdapter",
    "build_adapter",
]
