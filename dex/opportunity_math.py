"""
Single source of truth for opportunity math.

All amounts are integers in smallest units. Nothing here touches floats:
cross-decimal comparisons scale every operand to the widest precision,
subtract there, and convert to the settlement precision exactly once.

Conversion policy:
- Scaling up (fewer -> more decimals) is exact
- Scaling down truncates toward zero
- Decimal is only used to parse and render human amounts
"""

import logging
from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext
from typing import Iterable, Optional, Sequence, Union

from .types import Opportunity, OpportunityReason, Quote, format_units

logger = logging.getLogger(__name__)

# Widest token precision; cross-asset profit comparisons happen here
COMMON_DECIMALS = 18

__all__ = [
    "normalize_amount",
    "to_smallest_units",
    "format_units",
    "compute_net_profit",
    "is_profitable",
    "pick_best",
    "evaluate",
    "comparable_profit",
    "select_best_opportunity",
]


# ============================================================================
# Unit conversion helpers
# ============================================================================


def normalize_amount(amount: int, from_decimals: int, to_decimals: int) -> int:
    """
    Re-express ``amount`` with ``to_decimals`` decimals.

    >>> normalize_amount(10_050_000, 6, 18)
    10050000000000000000
    >>> normalize_amount(10_050_000_000_000_000_001, 18, 6)
    10050000
    """
    if to_decimals == from_decimals:
        return amount
    if to_decimals > from_decimals:
        return amount * 10 ** (to_decimals - from_decimals)
    divisor = 10 ** (from_decimals - to_decimals)
    # int division floors; truncate toward zero so negatives are symmetric
    quotient = abs(amount) // divisor
    return quotient if amount >= 0 else -quotient


def to_smallest_units(value: Union[Decimal, str, int], decimals: int) -> int:
    """
    Parse a human amount into smallest units, truncating extra digits.

    Raises:
        ValueError: ``value`` is not a finite number
    """
    try:
        with localcontext() as ctx:
            ctx.prec = 80
            d = Decimal(str(value))
            if not d.is_finite():
                raise ValueError(f"Amount must be finite: {value}")
            return int(d.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


# ============================================================================
# Core computation
# ============================================================================


def compute_net_profit(
    sell_return: int,
    amount_in: int,
    gas_cost: int,
    *,
    base_decimals: int,
    settlement_decimals: int,
) -> int:
    """
    Net profit = sell_return - amount_in - gas_cost, in settlement units.

    ``sell_return`` and ``amount_in`` are base-asset amounts; ``gas_cost``
    is already in settlement units. Operands are scaled to the widest of
    the two precisions before subtracting, and the difference is
    converted once, so reordering normalization and subtraction cannot
    change the result.
    """
    widest = max(base_decimals, settlement_decimals)
    gross = normalize_amount(sell_return - amount_in, base_decimals, widest)
    gas = normalize_amount(gas_cost, settlement_decimals, widest)
    return normalize_amount(gross - gas, widest, settlement_decimals)


def is_profitable(net_profit: Optional[int], min_profit: int) -> bool:
    """Both conditions are required: strictly positive AND at least the minimum."""
    if net_profit is None:
        return False
    return net_profit > 0 and net_profit >= min_profit


def pick_best(quotes: Iterable[Quote]) -> Optional[Quote]:
    """Quote with the maximum output; the first one wins ties."""
    best: Optional[Quote] = None
    for quote in quotes:
        if quote.amount_out <= 0:
            continue
        if best is None or quote.amount_out > best.amount_out:
            best = quote
    return best


def evaluate(
    buy_quotes: Sequence[Quote],
    sell_quotes: Sequence[Quote],
    amount_in: int,
    gas_cost: int,
    min_profit: int,
    *,
    pair: str,
    settlement_decimals: int,
    base_decimals: Optional[int] = None,
) -> Opportunity:
    """
    Evaluate one round trip base -> token -> base.

    Pure function of its inputs: the same quotes and costs always give an
    equal Opportunity. A leg without quotes yields a non-profitable result
    with a reason instead of raising.

    Args:
        buy_quotes: base -> token quotes for ``amount_in``
        sell_quotes: token -> base quotes for the best buy output
        amount_in: Base-asset input (smallest units)
        gas_cost: Gas cost in settlement units
        min_profit: Minimum net profit in settlement units
        pair: Label, e.g. "USDC/DAI"
        settlement_decimals: Decimals of the settlement token
        base_decimals: Decimals of the base asset (defaults to settlement)

    Returns:
        Opportunity with verdict and reason
    """
    if base_decimals is None:
        base_decimals = settlement_decimals

    common = dict(
        pair=pair,
        amount_in=amount_in,
        gas_cost=gas_cost,
        settlement_decimals=settlement_decimals,
        profitable=False,
    )

    best_buy = pick_best(buy_quotes)
    if best_buy is None:
        return Opportunity(reason=OpportunityReason.NO_BUY_QUOTES, **common)

    best_sell = pick_best(sell_quotes)
    if best_sell is None:
        return Opportunity(
            reason=OpportunityReason.NO_SELL_QUOTES,
            buy_venue=best_buy.venue,
            buy_fee_tier=best_buy.fee_tier,
            intermediate_amount=best_buy.amount_out,
            **common,
        )

    net = compute_net_profit(
        best_sell.amount_out,
        amount_in,
        gas_cost,
        base_decimals=base_decimals,
        settlement_decimals=settlement_decimals,
    )
    if is_profitable(net, min_profit):
        reason = OpportunityReason.PROFITABLE
    elif net > 0:
        reason = OpportunityReason.BELOW_THRESHOLD
    else:
        reason = OpportunityReason.NOT_PROFITABLE

    common["profitable"] = reason is OpportunityReason.PROFITABLE
    return Opportunity(
        reason=reason,
        net_profit=net,
        buy_venue=best_buy.venue,
        buy_fee_tier=best_buy.fee_tier,
        sell_venue=best_sell.venue,
        sell_fee_tier=best_sell.fee_tier,
        intermediate_amount=best_buy.amount_out,
        final_amount=best_sell.amount_out,
        **common,
    )


def comparable_profit(opportunity: Opportunity) -> Optional[int]:
    """Net profit scaled to ``COMMON_DECIMALS``, or None without a quote pair."""
    if opportunity.net_profit is None:
        return None
    return normalize_amount(
        opportunity.net_profit, opportunity.settlement_decimals, COMMON_DECIMALS
    )


def select_best_opportunity(
    candidates: Iterable[Opportunity],
) -> Optional[Opportunity]:
    """
    Highest net profit among candidates with a valid quote pair.

    Profits are compared at ``COMMON_DECIMALS`` so base assets with
    different decimals rank fairly. Profitability of the winner is judged
    independently by its own verdict; a losing best candidate is still
    returned.
    """
    best: Optional[Opportunity] = None
    best_profit: Optional[int] = None
    for opp in candidates:
        profit = comparable_profit(opp)
        if profit is None:
            continue
        if best_profit is None or profit > best_profit:
            best, best_profit = opp, profit
    return best
