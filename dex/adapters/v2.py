"""
Uniswap V2 style router adapter for constant-product AMM pools.

Quotes come from the router's ``getAmountsOut(amountIn, path)``, which
applies the x*y=k formula (fee included) along an explicit hop list.
The direct path is tried first, then a path through the bridge asset.
"""

from typing import List, Optional

from crossdex_arbitrage.exceptions import BadResponseError, NoPoolError
from crossdex_arbitrage.utils import get_logger

from ..abi import UNISWAP_V2_ROUTER_ABI
from ..types import Quote, TokenRef, VenueKind
from .base import QuoteAdapter, as_amount

logger = get_logger(__name__)


class ConstantProductRouterAdapter(QuoteAdapter):
    kind = VenueKind.CONSTANT_PRODUCT_ROUTER

    async def _quote(
        self, token_in: TokenRef, token_out: TokenRef, amount_in: int
    ) -> Optional[Quote]:
        fee_tier = self.venue.fee_tiers[0] if self.venue.fee_tiers else None

        direct_error: Optional[Exception] = None
        try:
            amount_out = await self._amounts_out(amount_in, [token_in, token_out])
        except Exception as e:
            direct_error = e
            amount_out = 0
        if amount_out > 0:
            return self._make_quote(
                token_in, token_out, amount_in, amount_out, fee_tier=fee_tier
            )

        bridge = self._bridge_for(token_in, token_out)
        if bridge is None:
            if direct_error is not None:
                raise direct_error
            return None

        logger.debug(
            f"{self.name}: direct {token_in.symbol}->{token_out.symbol} "
            f"unavailable, trying via {bridge.symbol}"
        )
        amount_out = await self._amounts_out(amount_in, [token_in, bridge, token_out])
        if amount_out == 0:
            return None
        return self._make_quote(
            token_in,
            token_out,
            amount_in,
            amount_out,
            fee_tier=fee_tier,
            path=(bridge.address,),
        )

    async def _amounts_out(self, amount_in: int, hops: List[TokenRef]) -> int:
        router = self._contract(self.venue.address, UNISWAP_V2_ROUTER_ABI)
        path = [t.address for t in hops]
        amounts = await self._call(
            router.functions.getAmountsOut(amount_in, path), "getAmountsOut"
        )
        if not isinstance(amounts, (list, tuple)):
            raise BadResponseError(
                f"getAmountsOut returned {amounts!r}", venue=self.name
            )
        if len(amounts) != len(path):
            # Some forks answer an empty array instead of reverting
            if not amounts:
                raise NoPoolError(
                    f"no route {'->'.join(t.symbol for t in hops)}", venue=self.name
                )
            raise BadResponseError(
                f"getAmountsOut returned {len(amounts)} amounts for "
                f"{len(path)} hops",
                venue=self.name,
            )
        return as_amount(amounts[-1], "amounts[-1]", self.name)
