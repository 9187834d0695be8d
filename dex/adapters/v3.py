"""
Uniswap V3 style quoter adapters.

V3 pools are keyed by fee tier, so a quote means asking the Quoter contract
once per tier. The Quoter simulates the swap and reverts when the pool for
that tier does not exist; a revert is therefore "no pool", never an error.
"""

from typing import Any, Optional, Tuple

from crossdex_arbitrage.exceptions import BadResponseError, NoPoolError
from crossdex_arbitrage.utils import get_logger

from ..abi import QUOTER_V1_ABI, QUOTER_V2_ABI, UNISWAP_V3_FACTORY_ABI
from ..retry import with_timeout
from ..types import ZERO_ADDRESS, Quote, TokenRef, VenueKind
from .base import QuoteAdapter, as_amount

logger = get_logger(__name__)


class SingleHopQuoterAdapter(QuoteAdapter):
    """Direct pool quotes, fee tiers tried in ascending order."""

    kind = VenueKind.SINGLE_HOP_QUOTER

    @property
    def quoter(self) -> Any:
        abi = QUOTER_V2_ABI if self.venue.quoter_version == 2 else QUOTER_V1_ABI
        return self._contract(self.venue.address, abi)

    async def _quote(
        self, token_in: TokenRef, token_out: TokenRef, amount_in: int
    ) -> Optional[Quote]:
        found = await self._single_hop(token_in, token_out, amount_in, first_wins=True)
        if found is None:
            return None
        amount_out, fee = found
        return self._make_quote(token_in, token_out, amount_in, amount_out, fee_tier=fee)

    async def _single_hop(
        self,
        token_in: TokenRef,
        token_out: TokenRef,
        amount_in: int,
        first_wins: bool,
    ) -> Optional[Tuple[int, int]]:
        """
        Quote every fee tier for one hop.

        Args:
            first_wins: Stop at the first non-zero tier instead of taking
                the maximum output across tiers

        Returns:
            (amount_out, fee_tier), or None when pools exist but all
            answered zero

        Raises:
            NoPoolError: No tier has a pool
            Exception: Last non-"no pool" error when nothing succeeded
        """
        if not self.venue.fee_tiers:
            raise NoPoolError("no fee tiers configured", venue=self.name)

        best: Optional[Tuple[int, int]] = None
        saw_zero = False
        last_error: Optional[Exception] = None

        for fee in sorted(self.venue.fee_tiers):
            try:
                amount_out = await self._quote_tier(token_in, token_out, amount_in, fee)
            except NoPoolError:
                continue
            except Exception as e:
                last_error = e
                continue

            if amount_out == 0:
                saw_zero = True
                continue
            if best is None or amount_out > best[0]:
                best = (amount_out, fee)
            if first_wins:
                break

        if best is not None:
            return best
        if saw_zero:
            return None
        if last_error is not None:
            raise last_error
        raise NoPoolError(
            f"no pool for {token_in.symbol}/{token_out.symbol} "
            f"at fees {list(self.venue.fee_tiers)}",
            venue=self.name,
        )

    async def _quote_tier(
        self, token_in: TokenRef, token_out: TokenRef, amount_in: int, fee: int
    ) -> int:
        if not await self._pool_exists(token_in, token_out, fee):
            raise NoPoolError(f"factory has no pool at fee {fee}", venue=self.name)

        if self.venue.quoter_version == 2:
            fn = self.quoter.functions.quoteExactInputSingle(
                (token_in.address, token_out.address, amount_in, fee, 0)
            )
            result = await self._call(fn, f"quoteExactInputSingle[{fee}]")
            if not isinstance(result, (list, tuple)) or not result:
                raise BadResponseError(
                    f"unexpected quoter result: {result!r}", venue=self.name
                )
            result = result[0]
        else:
            fn = self.quoter.functions.quoteExactInputSingle(
                token_in.address, token_out.address, fee, amount_in, 0
            )
            result = await self._call(fn, f"quoteExactInputSingle[{fee}]")

        return as_amount(result, "amountOut", self.name)

    async def _pool_exists(self, token_in: TokenRef, token_out: TokenRef, fee: int) -> bool:
        """Factory probe; a failed probe still lets the quote be attempted."""
        if not self.venue.factory_address:
            return True
        factory = self._contract(self.venue.factory_address, UNISWAP_V3_FACTORY_ABI)
        try:
            probe = factory.functions.getPool(token_in.address, token_out.address, fee).call()
            if self.call_timeout_ms is None:
                pool = await probe
            else:
                pool = await with_timeout(probe, self.call_timeout_ms)
        except Exception as e:
            logger.debug(f"{self.name}: getPool probe failed at fee {fee} ({e})")
            return True
        if pool is None:
            logger.debug(f"{self.name}: getPool probe timed out at fee {fee}")
            return True
        return bool(pool) and str(pool).lower() != ZERO_ADDRESS


class MultiHopQuoterAdapter(SingleHopQuoterAdapter):
    """
    Direct quote first, then two chained single-hop quotes through the
    bridge asset. The bridge token is recorded in ``Quote.path`` and the
    first hop's fee tier in ``Quote.fee_tier``.
    """

    kind = VenueKind.MULTI_HOP_QUOTER

    async def _quote(
        self, token_in: TokenRef, token_out: TokenRef, amount_in: int
    ) -> Optional[Quote]:
        direct_error: Optional[Exception] = None
        try:
            found = await self._single_hop(token_in, token_out, amount_in, first_wins=True)
        except Exception as e:
            direct_error = e
            found = None
        if found is not None:
            amount_out, fee = found
            return self._make_quote(
                token_in, token_out, amount_in, amount_out, fee_tier=fee
            )

        bridge = self._bridge_for(token_in, token_out)
        if bridge is None:
            if direct_error is not None:
                raise direct_error
            return None

        first = await self._single_hop(token_in, bridge, amount_in, first_wins=False)
        if first is None:
            return None
        mid_amount, first_fee = first

        second = await self._single_hop(bridge, token_out, mid_amount, first_wins=False)
        if second is None:
            return None
        amount_out, _ = second

        logger.debug(
            f"{self.name}: routed {token_in.symbol}->{bridge.symbol}->"
            f"{token_out.symbol} via fee {first_fee}"
        )
        return self._make_quote(
            token_in,
            token_out,
            amount_in,
            amount_out,
            fee_tier=first_fee,
            path=(bridge.address,),
        )
