"""
Solidly style router adapter (Aerodrome, Velodrome).

The router keeps a stable-curve and a volatile pool per pair;
``getAmountOut`` returns the better of the two together with a flag
telling which one was used.
"""

from typing import Optional, Tuple

from crossdex_arbitrage.exceptions import BadResponseError
from crossdex_arbitrage.utils import get_logger

from ..abi import SOLIDLY_ROUTER_ABI
from ..types import Quote, TokenRef, VenueKind
from .base import QuoteAdapter, as_amount

logger = get_logger(__name__)


class StableSwapRouterAdapter(QuoteAdapter):
    kind = VenueKind.STABLE_SWAP_ROUTER

    async def _quote(
        self, token_in: TokenRef, token_out: TokenRef, amount_in: int
    ) -> Optional[Quote]:
        direct_error: Optional[Exception] = None
        try:
            amount_out, stable = await self._best_of_pools(amount_in, token_in, token_out)
        except Exception as e:
            direct_error = e
            amount_out, stable = 0, False

        if amount_out > 0:
            logger.debug(
                f"{self.name}: {token_in.symbol}->{token_out.symbol} "
                f"via {'stable' if stable else 'volatile'} pool"
            )
            return self._make_quote(token_in, token_out, amount_in, amount_out)

        bridge = self._bridge_for(token_in, token_out)
        if bridge is None:
            if direct_error is not None:
                raise direct_error
            return None

        mid_amount, _ = await self._best_of_pools(amount_in, token_in, bridge)
        if mid_amount == 0:
            return None
        amount_out, _ = await self._best_of_pools(mid_amount, bridge, token_out)
        if amount_out == 0:
            return None
        return self._make_quote(
            token_in, token_out, amount_in, amount_out, path=(bridge.address,)
        )

    async def _best_of_pools(
        self, amount_in: int, token_in: TokenRef, token_out: TokenRef
    ) -> Tuple[int, bool]:
        router = self._contract(self.venue.address, SOLIDLY_ROUTER_ABI)
        result = await self._call(
            router.functions.getAmountOut(amount_in, token_in.address, token_out.address),
            "getAmountOut",
        )
        if not isinstance(result, (list, tuple)) or len(result) != 2:
            raise BadResponseError(
                f"getAmountOut returned {result!r}", venue=self.name
            )
        return as_amount(result[0], "amount", self.name), bool(result[1])
