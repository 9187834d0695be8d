"""
Curve router adapter: ``get_best_rate`` scans registered pools and returns
the pool giving the best output together with that output.
"""

from typing import Optional

from crossdex_arbitrage.exceptions import BadResponseError, NoPoolError

from ..abi import CURVE_ROUTER_ABI
from ..types import ZERO_ADDRESS, Quote, TokenRef, VenueKind
from .base import QuoteAdapter, as_amount


class CurveRouterAdapter(QuoteAdapter):
    kind = VenueKind.CURVE_ROUTER

    async def _quote(
        self, token_in: TokenRef, token_out: TokenRef, amount_in: int
    ) -> Optional[Quote]:
        router = self._contract(self.venue.address, CURVE_ROUTER_ABI)
        result = await self._call(
            router.functions.get_best_rate(
                token_in.address, token_out.address, amount_in
            ),
            "get_best_rate",
        )
        if not isinstance(result, (list, tuple)) or len(result) != 2:
            raise BadResponseError(f"get_best_rate returned {result!r}", venue=self.name)

        pool, amount_out = result
        if not pool or str(pool).lower() == ZERO_ADDRESS:
            raise NoPoolError(
                f"no pool for {token_in.symbol}/{token_out.symbol}", venue=self.name
            )
        amount_out = as_amount(amount_out, "amountOut", self.name)
        if amount_out == 0:
            raise NoPoolError("best rate is zero", venue=self.name)
        return self._make_quote(token_in, token_out, amount_in, amount_out)
