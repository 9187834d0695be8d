"""
Live gas cost estimation in settlement-token units.

The cost of the settlement transaction is

    gas_units * gas_price_wei * native_price // 10**native_decimals

where ``native_price`` is the value of one whole native token in
settlement-token smallest units, read live through the quote fan-out.
Every input has a static fallback so estimation never fails a scan.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from crossdex_arbitrage.exceptions import EstimationError
from crossdex_arbitrage.utils import get_logger

from .abi import SETTLEMENT_ABI
from .adapters import QuoteAdapter
from .fanout import DEFAULT_QUOTE_TIMEOUT_MS, fan_out
from .retry import with_timeout
from .types import TokenRef

logger = get_logger(__name__)

GWEI = 10**9


@dataclass(frozen=True)
class GasFallbacks:
    """
    Conservative static assumptions used when live reads fail.

    Attributes:
        gas_units: Gas for one settlement transaction
        gas_price_gwei: Gas price
        native_price: Whole settlement tokens per whole native token
    """

    gas_units: int = 500_000
    gas_price_gwei: int = 20
    native_price: int = 2000


class GasCostEstimator:
    """
    Derives the gas cost of an opportunity in settlement-token units.

    Attributes:
        web3: AsyncWeb3 instance (or test double)
        native_token: Wrapped native token (e.g., WETH)
        adapters: Venue adapters used for the native price quote
        settlement_address: Settlement contract for live gas estimates
        fallbacks: Static fallbacks
        price_cache_ttl: Seconds a native price quote stays valid
        timeout_ms: Budget for each live read
        venue_timeout_ms: Per-venue bound for the native price fan-out
            (defaults to ``timeout_ms``)
    """

    def __init__(
        self,
        web3: Any,
        native_token: TokenRef,
        adapters: Sequence[QuoteAdapter] = (),
        settlement_address: Optional[str] = None,
        fallbacks: Optional[GasFallbacks] = None,
        price_cache_ttl: float = 60.0,
        timeout_ms: int = DEFAULT_QUOTE_TIMEOUT_MS,
        venue_timeout_ms: Optional[int] = None,
    ):
        self.web3 = web3
        self.native_token = native_token
        self.adapters = list(adapters)
        self.settlement_address = settlement_address
        self.fallbacks = fallbacks or GasFallbacks()
        self.price_cache_ttl = price_cache_ttl
        self.timeout_ms = timeout_ms
        self.venue_timeout_ms = venue_timeout_ms or timeout_ms
        self._price_cache: Dict[str, Tuple[int, float]] = {}
        self._settlement = None

    async def gas_price_wei(self) -> int:
        try:
            price = await with_timeout(self._read_gas_price(), self.timeout_ms)
            if price is None:
                raise EstimationError(
                    f"no answer within {self.timeout_ms}ms", source="eth_gasPrice"
                )
        except Exception as e:
            logger.warning(
                f"Gas price lookup failed ({e}), "
                f"using {self.fallbacks.gas_price_gwei} gwei"
            )
            return self.fallbacks.gas_price_gwei * GWEI
        return price

    async def _read_gas_price(self) -> int:
        price = await self.web3.eth.gas_price
        if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
            raise EstimationError(f"invalid gas price {price!r}", source="eth_gasPrice")
        return price

    async def estimate_gas_units(
        self, settlement_token: TokenRef, amount_in: int, min_profit: int
    ) -> int:
        """
        Live ``estimate_gas`` of ``executeArbitrage(token, amount, minProfit)``.

        Falls back to the static unit count when no settlement contract is
        configured or the estimate reverts (it usually does while the trade
        is unprofitable).
        """
        if not self.settlement_address:
            return self.fallbacks.gas_units

        try:
            if self._settlement is None:
                self._settlement = self.web3.eth.contract(
                    address=self.settlement_address, abi=SETTLEMENT_ABI
                )
            fn = self._settlement.functions.executeArbitrage(
                settlement_token.address, amount_in, min_profit
            )
            units = await with_timeout(fn.estimate_gas(), self.timeout_ms)
        except Exception as e:
            logger.debug(
                f"Gas estimate failed ({e}), using {self.fallbacks.gas_units} units"
            )
            return self.fallbacks.gas_units

        if not isinstance(units, int) or units <= 0:
            logger.debug(
                f"Gas estimate unavailable ({units!r}), "
                f"using {self.fallbacks.gas_units} units"
            )
            return self.fallbacks.gas_units
        return units

    async def native_price(self, settlement_token: TokenRef) -> int:
        """
        Value of one whole native token in settlement smallest units.

        Quoted live (best output across venues) and cached per settlement
        token for ``price_cache_ttl`` seconds.
        """
        if settlement_token.same_as(self.native_token):
            return self.native_token.one

        key = settlement_token.address.lower()
        cached = self._price_cache.get(key)
        now = time.time()
        if cached is not None and now - cached[1] < self.price_cache_ttl:
            return cached[0]

        fallback = self.fallbacks.native_price * settlement_token.one
        try:
            result = await fan_out(
                self.adapters,
                self.native_token,
                settlement_token,
                self.native_token.one,
                timeout_ms=self.venue_timeout_ms,
            )
        except Exception as e:
            logger.warning(
                f"{self.native_token.symbol} price lookup failed ({e}), "
                f"using static {self.fallbacks.native_price} {settlement_token.symbol}"
            )
            return fallback

        best = result.best()
        if best is None:
            logger.warning(
                f"No {self.native_token.symbol}->{settlement_token.symbol} quote "
                f"({result.summary()}), using static "
                f"{self.fallbacks.native_price} {settlement_token.symbol}"
            )
            return fallback

        self._price_cache[key] = (best.amount_out, now)
        return best.amount_out

    async def estimate_gas_cost(self, gas_units: int, settlement_token: TokenRef) -> int:
        """
        Gas cost of ``gas_units`` in settlement-token smallest units.

        Never raises.
        """
        price_wei = await self.gas_price_wei()
        native_price = await self.native_price(settlement_token)
        cost = gas_units * price_wei * native_price // 10**self.native_token.decimals
        logger.debug(
            f"gas cost: {gas_units} units @ {price_wei / GWEI:.3f} gwei, "
            f"{self.native_token.symbol}={native_price} -> {cost} "
            f"{settlement_token.symbol} units"
        )
        return cost

    def clear_cache(self):
        self._price_cache.clear()
