"""
Balancer style vault adapter.

The vault simulates swaps with ``queryBatchSwap``. Pools are addressed by a
bytes32 pool id that must be configured per pair; a pair without one is
disabled rather than failed.
"""

from typing import Optional

from crossdex_arbitrage.exceptions import BadResponseError, NoPoolError

from ..abi import BALANCER_VAULT_ABI
from ..types import ZERO_ADDRESS, FailureReason, Quote, TokenRef, VenueKind
from .base import QuoteAdapter, QuoteResult, as_amount

# SwapKind.GIVEN_IN
GIVEN_IN = 0


class BatchVaultRouterAdapter(QuoteAdapter):
    kind = VenueKind.BATCH_VAULT_ROUTER

    async def quote(
        self, token_in: TokenRef, token_out: TokenRef, amount_in: int
    ) -> QuoteResult:
        if self.venue.pool_id_for(token_in, token_out) is None:
            return self._failure(
                FailureReason.DISABLED,
                f"no pool id for {token_in.symbol}/{token_out.symbol}",
            )
        return await super().quote(token_in, token_out, amount_in)

    async def _quote(
        self, token_in: TokenRef, token_out: TokenRef, amount_in: int
    ) -> Optional[Quote]:
        pool_id = self.venue.pool_id_for(token_in, token_out)
        if pool_id is None:
            raise NoPoolError("no pool id configured", venue=self.name)

        vault = self._contract(self.venue.address, BALANCER_VAULT_ABI)
        swaps = [(_pool_id_bytes(pool_id), 0, 1, amount_in, b"")]
        assets = [token_in.address, token_out.address]
        funds = (ZERO_ADDRESS, False, ZERO_ADDRESS, False)

        deltas = await self._call(
            vault.functions.queryBatchSwap(GIVEN_IN, swaps, assets, funds),
            "queryBatchSwap",
        )
        if not isinstance(deltas, (list, tuple)) or len(deltas) != 2:
            raise BadResponseError(f"queryBatchSwap returned {deltas!r}", venue=self.name)

        # Vault deltas are signed from the vault's view: tokens leaving are negative
        amount_out = as_amount(-deltas[1], "-assetDeltas[1]", self.name)
        if amount_out == 0:
            return None
        return self._make_quote(token_in, token_out, amount_in, amount_out)


def _pool_id_bytes(pool_id: str) -> bytes:
    raw = bytes.fromhex(pool_id[2:] if pool_id.startswith("0x") else pool_id)
    if len(raw) != 32:
        raise ValueError(f"pool id must be 32 bytes: {pool_id}")
    return raw
