"""
Venue fan-out: query every adapter for one direction concurrently.

All adapters are started together and awaited together; each call is
bounded by its own timeout so a hanging venue only costs its own slot.
Results keep configuration order so identical inputs give identical
outputs.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from crossdex_arbitrage.utils import get_logger

from .adapters import QuoteAdapter, QuoteResult
from .observability import ObservabilitySink, notify
from .retry import with_timeout
from .types import FailureReason, PriceRecord, Quote, QuoteFailure, TokenRef

logger = get_logger(__name__)

DEFAULT_QUOTE_TIMEOUT_MS = 1500


@dataclass(frozen=True)
class FanOutResult:
    """Successful quotes and classified failures, both in venue order."""

    quotes: List[Quote] = field(default_factory=list)
    failures: List[QuoteFailure] = field(default_factory=list)

    def best(self) -> Optional[Quote]:
        """Max-output quote; the earliest venue wins ties."""
        best: Optional[Quote] = None
        for quote in self.quotes:
            if best is None or quote.amount_out > best.amount_out:
                best = quote
        return best

    def summary(self) -> str:
        if not self.failures:
            return f"{len(self.quotes)} quotes"
        reasons = ", ".join(str(f) for f in self.failures)
        return f"{len(self.quotes)} quotes, {len(self.failures)} failed [{reasons}]"


async def _bounded_quote(
    adapter: QuoteAdapter,
    token_in: TokenRef,
    token_out: TokenRef,
    amount_in: int,
    timeout_ms: int,
) -> QuoteResult:
    timed_out = QuoteFailure(
        venue=adapter.name,
        reason=FailureReason.TIMEOUT,
        detail=f"no answer within {timeout_ms}ms",
    )
    return await with_timeout(
        adapter.quote(token_in, token_out, amount_in), timeout_ms, fallback=timed_out
    )


async def fan_out(
    adapters: Sequence[QuoteAdapter],
    token_in: TokenRef,
    token_out: TokenRef,
    amount_in: int,
    timeout_ms: int = DEFAULT_QUOTE_TIMEOUT_MS,
    sink: Optional[ObservabilitySink] = None,
) -> FanOutResult:
    """
    Ask every adapter for ``amount_in`` of ``token_in`` -> ``token_out``.

    Args:
        adapters: Venue adapters in configuration order
        token_in: Token sold
        token_out: Token bought
        amount_in: Input amount in ``token_in`` smallest units
        timeout_ms: Per-venue time budget
        sink: Receives one PriceRecord per successful quote

    Returns:
        FanOutResult with quotes and failures in configuration order
    """
    if not adapters:
        return FanOutResult()

    results = await asyncio.gather(
        *(
            _bounded_quote(adapter, token_in, token_out, amount_in, timeout_ms)
            for adapter in adapters
        ),
        return_exceptions=True,
    )

    quotes: List[Quote] = []
    failures: List[QuoteFailure] = []
    for adapter, result in zip(adapters, results):
        if isinstance(result, Quote):
            quotes.append(result)
            if sink is not None:
                notify(sink.record_price, PriceRecord.from_quote(result))
        elif isinstance(result, QuoteFailure):
            failures.append(result)
        elif isinstance(result, asyncio.CancelledError):
            raise result
        else:
            # Adapters classify their own errors; reaching here means a bug
            logger.error(f"{adapter.name} raised out of quote(): {result!r}")
            failures.append(
                QuoteFailure(
                    venue=adapter.name, reason=FailureReason.ERROR, detail=repr(result)
                )
            )

    logger.debug(
        f"fan-out {token_in.symbol}->{token_out.symbol} amount={amount_in}: "
        f"{FanOutResult(quotes, failures).summary()}"
    )
    return FanOutResult(quotes=quotes, failures=failures)
