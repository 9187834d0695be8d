"""
Common machinery for venue quote adapters.

Each adapter turns ``(token_in, token_out, amount_in)`` into either a
``Quote`` or a classified ``QuoteFailure``. Subclasses implement
``_quote()`` and raise ``QuoteError`` subclasses for anything that is not
a quote; the base class owns retries, contract caching, logging and the
downgrade of every exception to a failure so that one venue can never
abort a fan-out.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from crossdex_arbitrage.exceptions import (
    BadResponseError,
    CallTimeoutError,
    NoPoolError,
    QuoteError,
)
from crossdex_arbitrage.utils import get_logger

from ..retry import RetryPolicy, with_retry, with_timeout
from ..types import FailureReason, Quote, QuoteFailure, TokenRef, VenueConfig, VenueKind

logger = get_logger(__name__)

QuoteResult = Union[Quote, QuoteFailure]

_NO_ANSWER = object()


class QuoteAdapter(ABC):
    """
    Base class for one venue's quoting interface.

    Attributes:
        venue: Static venue configuration
        web3: AsyncWeb3 instance (or a compatible test double)
        bridge: Bridge asset used for two-hop fallbacks (optional)
        retry_policy: Attempts/backoff applied to every contract call
        call_timeout_ms: Budget for each call attempt (None for unbounded)
    """

    kind: VenueKind

    def __init__(
        self,
        venue: VenueConfig,
        web3: Any,
        bridge: Optional[TokenRef] = None,
        retry_policy: Optional[RetryPolicy] = None,
        call_timeout_ms: Optional[int] = None,
    ):
        self.venue = venue
        self.web3 = web3
        self.bridge = bridge
        self.retry_policy = retry_policy or RetryPolicy()
        self.call_timeout_ms = call_timeout_ms
        self._contracts: Dict[Tuple[str, int], Any] = {}

    @property
    def name(self) -> str:
        return self.venue.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.venue.name!r})"

    async def quote(
        self, token_in: TokenRef, token_out: TokenRef, amount_in: int
    ) -> QuoteResult:
        """
        Quote ``amount_in`` of ``token_in`` for ``token_out``.

        Never raises (except for task cancellation): every error is
        returned as a ``QuoteFailure`` carrying a reason.
        """
        if amount_in <= 0:
            return self._failure(FailureReason.ERROR, f"non-positive amount {amount_in}")
        if token_in.same_as(token_out):
            return self._failure(FailureReason.NO_POOL, "identical tokens")

        label = f"{token_in.symbol}->{token_out.symbol}"
        try:
            quote = await self._quote(token_in, token_out, amount_in)
        except asyncio.CancelledError:
            raise
        except NoPoolError as e:
            logger.debug(f"{self.name} {label}: no pool ({e})")
            return self._failure(FailureReason.NO_POOL, str(e))
        except BadResponseError as e:
            logger.warning(f"{self.name} {label}: bad response ({e})")
            return self._failure(FailureReason.BAD_RESPONSE, str(e))
        except CallTimeoutError as e:
            logger.warning(f"{self.name} {label}: {e}")
            return self._failure(FailureReason.TIMEOUT, str(e))
        except Exception as e:
            logger.warning(f"{self.name} {label}: quote failed ({e})")
            return self._failure(FailureReason.ERROR, str(e))

        if quote is None:
            return self._failure(FailureReason.ZERO_OUTPUT, label)
        logger.debug(
            f"{self.name} {label}: {quote.amount_out} "
            f"(fee={quote.fee_tier}, path={len(quote.path)} hops)"
        )
        return quote

    @abstractmethod
    async def _quote(
        self, token_in: TokenRef, token_out: TokenRef, amount_in: int
    ) -> Optional[Quote]:
        """
        Venue-specific quoting.

        Returns:
            A Quote, or None when every route answered with zero output

        Raises:
            NoPoolError: No pool exists for any attempted route
            BadResponseError: The venue answered with undecodable data
        """

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _contract(self, address: str, abi: Sequence[dict]) -> Any:
        key = (address.lower(), id(abi))
        if key not in self._contracts:
            self._contracts[key] = self.web3.eth.contract(address=address, abi=abi)
        return self._contracts[key]

    async def _call(self, fn: Any, label: str = "") -> Any:
        """
        Execute a read-only contract call with retries.

        Reverts are deterministic and become ``NoPoolError`` without a
        retry; empty return data becomes ``BadResponseError``. Any other
        error (rate limit, transport, an attempt exceeding
        ``call_timeout_ms``) is retried per ``retry_policy`` and re-raised
        once attempts are exhausted.
        """
        label = label or getattr(fn, "fn_name", "call")

        async def attempt():
            try:
                if self.call_timeout_ms is None:
                    return await fn.call()
                result = await with_timeout(fn.call(), self.call_timeout_ms, _NO_ANSWER)
            except ContractLogicError as e:
                raise NoPoolError(f"{label} reverted: {e}", venue=self.name) from e
            except BadFunctionCallOutput as e:
                raise BadResponseError(
                    f"{label} returned no data: {e}", venue=self.name
                ) from e
            if result is _NO_ANSWER:
                raise CallTimeoutError(
                    f"{label}: no answer within {self.call_timeout_ms}ms",
                    endpoint=self.name,
                )
            return result

        return await with_retry(
            attempt,
            max_attempts=self.retry_policy.max_attempts,
            base_delay_ms=self.retry_policy.base_delay_ms,
            give_up_on=QuoteError,
        )

    def _make_quote(
        self,
        token_in: TokenRef,
        token_out: TokenRef,
        amount_in: int,
        amount_out: int,
        fee_tier: Optional[int] = None,
        path: Tuple[str, ...] = (),
    ) -> Quote:
        return Quote(
            venue=self.name,
            token_in=token_in.address,
            token_out=token_out.address,
            amount_in=amount_in,
            amount_out=amount_out,
            fee_tier=fee_tier,
            path=path,
        )

    def _bridge_for(self, token_in: TokenRef, token_out: TokenRef) -> Optional[TokenRef]:
        """The bridge asset, unless it is one of the endpoints."""
        if self.bridge is None:
            return None
        if self.bridge.same_as(token_in) or self.bridge.same_as(token_out):
            return None
        return self.bridge

    def _failure(self, reason: FailureReason, detail: str = "") -> QuoteFailure:
        return QuoteFailure(venue=self.name, reason=reason, detail=detail)


def as_amount(value: Any, what: str, venue: str) -> int:
    """Validate an on-chain uint answer; negative or non-int is malformed."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise BadResponseError(
            f"{what} is not an integer: {value!r}", venue=venue
        )
    if value < 0:
        raise BadResponseError(f"{what} is negative: {value}", venue=venue)
    return value
