"""
Execution boundary for cross-DEX opportunities.

The engine never signs or submits transactions itself. A profitable
opportunity is turned into an ``ExecutionRequest`` and handed to an
``Executor``; whatever happens on chain comes back as a ``TradeRecord``.
Failed executions are recorded and never retried within the same cycle.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, runtime_checkable

from crossdex_arbitrage.utils import get_logger

from .types import Opportunity, TokenRef, TradeRecord, TradeStatus, format_units

logger = get_logger(__name__)

DEFAULT_SAFETY_MARGIN_BPS = 1000


@dataclass(frozen=True)
class ExecutionRequest:
    """
    A finalized opportunity in the shape an executor needs.

    Attributes:
        pair: Pair label (e.g., "USDC/DAI")
        base_token: Asset borrowed/spent and returned (settlement asset)
        token: Intermediate asset bought on the buy venue
        buy_venue: Venue for base -> token
        buy_fee_tier: Fee tier used on the buy venue
        sell_venue: Venue for token -> base
        sell_fee_tier: Fee tier used on the sell venue
        amount_in: Base-asset input (smallest units)
        expected_intermediate: Expected token amount after the buy
        expected_final: Expected base amount after the sell
        expected_profit: Net profit as evaluated
        min_profit: Profit floor passed on chain (expected minus safety margin)
        gas_cost: Estimated gas cost in settlement units
    """

    pair: str
    base_token: TokenRef
    token: TokenRef
    buy_venue: str
    buy_fee_tier: Optional[int]
    sell_venue: str
    sell_fee_tier: Optional[int]
    amount_in: int
    expected_intermediate: int
    expected_final: int
    expected_profit: int
    min_profit: int
    gas_cost: int

    @classmethod
    def from_opportunity(
        cls,
        opportunity: Opportunity,
        base_token: TokenRef,
        token: TokenRef,
        safety_margin_bps: int = DEFAULT_SAFETY_MARGIN_BPS,
    ) -> "ExecutionRequest":
        """
        Build a request from a profitable opportunity.

        The on-chain profit floor is the expected profit reduced by
        ``safety_margin_bps`` (rounded down).

        Raises:
            ValueError: The opportunity is not profitable or the margin is
                outside [0, 10000]
        """
        if not opportunity.profitable:
            raise ValueError(
                f"Cannot execute {opportunity.pair}: {opportunity.message}"
            )
        if not 0 <= safety_margin_bps <= 10_000:
            raise ValueError(f"safety_margin_bps must be in [0, 10000]: {safety_margin_bps}")

        expected = opportunity.net_profit
        min_profit = expected * (10_000 - safety_margin_bps) // 10_000
        return cls(
            pair=opportunity.pair,
            base_token=base_token,
            token=token,
            buy_venue=opportunity.buy_venue,
            buy_fee_tier=opportunity.buy_fee_tier,
            sell_venue=opportunity.sell_venue,
            sell_fee_tier=opportunity.sell_fee_tier,
            amount_in=opportunity.amount_in,
            expected_intermediate=opportunity.intermediate_amount,
            expected_final=opportunity.final_amount,
            expected_profit=expected,
            min_profit=min_profit,
            gas_cost=opportunity.gas_cost,
        )

    def describe(self) -> str:
        d = self.base_token.decimals
        return (
            f"{self.pair} {format_units(self.amount_in, d)} {self.base_token.symbol} "
            f"via {self.buy_venue} -> {self.sell_venue}, expect "
            f"{format_units(self.expected_profit, d)} (min {format_units(self.min_profit, d)})"
        )


@runtime_checkable
class Executor(Protocol):
    """Submits an execution request and reports the outcome."""

    async def execute(self, request: ExecutionRequest) -> TradeRecord:
        ...


def can_execute(opportunity: Optional[Opportunity]) -> Tuple[bool, str]:
    """
    Check whether an opportunity may be handed to an executor.

    Returns:
        Tuple of (can_execute: bool, reason: str)
    """
    if opportunity is None:
        return False, "no candidate"
    if not opportunity.has_quote_pair:
        return False, opportunity.message
    if not opportunity.profitable:
        return False, opportunity.message
    return True, "ok"


class ScanOnlyExecutor:
    """Logs the request and skips it (SCAN_ONLY mode)."""

    async def execute(self, request: ExecutionRequest) -> TradeRecord:
        logger.info(f"Scan-only: would execute {request.describe()}")
        return TradeRecord(status=TradeStatus.SKIPPED)
