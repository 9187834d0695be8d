"""
Core data types for cross-DEX quote aggregation.

All token amounts are plain Python ints in the token's smallest unit
(wei-style). Floating point never touches an amount; Decimal is only used
at the edges for human-readable formatting and configuration parsing.
"""

from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from enum import Enum
from typing import Dict, Optional, Tuple

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def format_units(amount: int, decimals: int, places: Optional[int] = None) -> str:
    """Render a smallest-unit amount as a human number (10050000, 6 -> "10.05")."""
    with localcontext() as ctx:
        ctx.prec = 80
        value = Decimal(amount).scaleb(-decimals)
        if places is not None:
            value = value.quantize(Decimal(1).scaleb(-places))
        elif value == value.to_integral_value():
            value = value.quantize(Decimal(1))
        else:
            value = value.normalize()
    return f"{value:f}"


@dataclass(frozen=True)
class TokenRef:
    """
    An ERC-20 token known to the configuration.

    Attributes:
        address: Checksum address of the token contract
        symbol: Ticker used in logs and pair labels (e.g., "USDC")
        decimals: Decimal precision of the smallest unit (0-18)
    """

    address: str
    symbol: str
    decimals: int

    def __post_init__(self):
        if not 0 <= self.decimals <= 18:
            raise ValueError(
                f"Token {self.symbol} decimals must be in [0, 18]: {self.decimals}"
            )

    @property
    def one(self) -> int:
        """One whole token in smallest units."""
        return 10**self.decimals

    def same_as(self, other: "TokenRef") -> bool:
        return self.address.lower() == other.address.lower()


class VenueKind(str, Enum):
    """Quoting interface shape exposed by a venue."""

    SINGLE_HOP_QUOTER = "SingleHopQuoter"
    MULTI_HOP_QUOTER = "MultiHopQuoter"
    CONSTANT_PRODUCT_ROUTER = "ConstantProductRouter"
    STABLE_SWAP_ROUTER = "StableSwapRouter"
    BATCH_VAULT_ROUTER = "BatchVaultRouter"
    CURVE_ROUTER = "CurveRouter"

    @property
    def uses_fee_tiers(self) -> bool:
        return self in (VenueKind.SINGLE_HOP_QUOTER, VenueKind.MULTI_HOP_QUOTER)


def pair_key(symbol_a: str, symbol_b: str) -> str:
    """Order-insensitive pair key ("DAI/USDC" for either order)."""
    a, b = sorted((symbol_a.upper(), symbol_b.upper()))
    return f"{a}/{b}"


@dataclass(frozen=True)
class VenueConfig:
    """
    Static description of one liquidity venue.

    Attributes:
        name: Venue identifier used in quotes and logs (e.g., "Uniswap V3")
        kind: Interface shape, selects the quote adapter
        address: Quoter / router / vault address
        fee_tiers: Supported fee tiers in hundredths of a bip, ascending
        factory_address: Optional factory used to probe pool existence
        quoter_version: 1 for positional quoters, 2 for struct quoters
        pool_ids: Pair key -> bytes32 pool id (batch vaults only)
    """

    name: str
    kind: VenueKind
    address: str
    fee_tiers: Tuple[int, ...] = ()
    factory_address: Optional[str] = None
    quoter_version: int = 1
    pool_ids: Dict[str, str] = field(default_factory=dict, hash=False)

    def pool_id_for(self, token_a: TokenRef, token_b: TokenRef) -> Optional[str]:
        return self.pool_ids.get(pair_key(token_a.symbol, token_b.symbol))


@dataclass(frozen=True)
class Quote:
    """
    A venue's normalized answer for one (token_in, token_out, amount_in).

    ``amount_out`` is always positive: a zero answer is reported as a
    ``QuoteFailure`` instead. ``path`` lists intermediate hop token
    addresses when the quote needed bridge routing.
    """

    venue: str
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    fee_tier: Optional[int] = None
    path: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.amount_out <= 0:
            raise ValueError(f"Quote from {self.venue} must have a positive amount")

    @property
    def is_multi_hop(self) -> bool:
        return bool(self.path)


class FailureReason(str, Enum):
    """Why a venue produced no quote."""

    NO_POOL = "no_pool"
    ZERO_OUTPUT = "zero_output"
    BAD_RESPONSE = "bad_response"
    TIMEOUT = "timeout"
    DISABLED = "disabled"
    ERROR = "error"


@dataclass(frozen=True)
class QuoteFailure:
    """A classified "no quote" result from one venue."""

    venue: str
    reason: FailureReason
    detail: str = ""

    def __str__(self) -> str:
        if self.detail:
            return f"{self.venue}: {self.reason.value} ({self.detail})"
        return f"{self.venue}: {self.reason.value}"


class OpportunityReason(str, Enum):
    """Verdict code attached to every evaluated opportunity."""

    PROFITABLE = "profitable"
    BELOW_THRESHOLD = "below_threshold"
    NOT_PROFITABLE = "not_profitable"
    NO_BUY_QUOTES = "no_buy_quotes"
    NO_SELL_QUOTES = "no_sell_quotes"


REASON_MESSAGES = {
    OpportunityReason.PROFITABLE: "profitable",
    OpportunityReason.BELOW_THRESHOLD: "below threshold",
    OpportunityReason.NOT_PROFITABLE: "not profitable",
    OpportunityReason.NO_BUY_QUOTES: "no quotes for leg buy",
    OpportunityReason.NO_SELL_QUOTES: "no quotes for leg sell",
}


@dataclass(frozen=True)
class Opportunity:
    """
    Evaluated round trip base -> token -> base across two venues.

    ``net_profit`` is ``None`` only when a leg had no quotes; otherwise it
    is a signed amount in the settlement token's smallest units.
    ``amount_in`` and ``final_amount`` are in base-asset units and
    ``intermediate_amount`` in the traded token's units.
    """

    pair: str
    amount_in: int
    gas_cost: int
    settlement_decimals: int
    profitable: bool
    reason: OpportunityReason
    net_profit: Optional[int] = None
    buy_venue: Optional[str] = None
    buy_fee_tier: Optional[int] = None
    sell_venue: Optional[str] = None
    sell_fee_tier: Optional[int] = None
    intermediate_amount: Optional[int] = None
    final_amount: Optional[int] = None

    @property
    def message(self) -> str:
        return REASON_MESSAGES[self.reason]

    @property
    def has_quote_pair(self) -> bool:
        return self.net_profit is not None

    def format_log(self) -> str:
        """One-line summary for console output."""
        if not self.has_quote_pair:
            return f"{self.pair}: {self.message}"
        d = self.settlement_decimals
        return (
            f"{self.pair}: buy {self.buy_venue}{_fee_label(self.buy_fee_tier)} -> "
            f"sell {self.sell_venue}{_fee_label(self.sell_fee_tier)} | "
            f"in {format_units(self.amount_in, d)} "
            f"out {format_units(self.final_amount, d)} "
            f"gas {format_units(self.gas_cost, d)} "
            f"net {format_units(self.net_profit, d)} [{self.message}]"
        )


def _fee_label(fee_tier: Optional[int]) -> str:
    return f" ({fee_tier / 10000:.2f}%)" if fee_tier is not None else ""


@dataclass(frozen=True)
class PriceRecord:
    """Per-quote observability record."""

    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    venue: str
    fee_tier: Optional[int] = None

    @classmethod
    def from_quote(cls, quote: Quote) -> "PriceRecord":
        return cls(
            token_in=quote.token_in,
            token_out=quote.token_out,
            amount_in=quote.amount_in,
            amount_out=quote.amount_out,
            venue=quote.venue,
            fee_tier=quote.fee_tier,
        )


@dataclass(frozen=True)
class CycleRecord:
    """Per-cycle observability record."""

    timestamp: float
    opportunity_found: bool
    profit: Optional[int]
    gas_cost: Optional[int]
    decimals: int = 0


class TradeStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class TradeRecord:
    """
    Outcome reported back by an executor.

    Attributes:
        status: success / failed / skipped
        tx_hash: Transaction hash (if submitted)
        gas_used: Gas consumed (if mined)
        realized_profit: Profit in settlement units (if known)
        error: Error message (if failed)
    """

    status: TradeStatus
    tx_hash: Optional[str] = None
    gas_used: Optional[int] = None
    realized_profit: Optional[int] = None
    error: Optional[str] = None
