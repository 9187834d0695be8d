"""
Retry and timeout combinators for on-chain reads.

Every external query made by the engine goes through these two functions
so that attempt counts, backoff and timeouts are configured in one place
instead of at each call site.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

ExceptionTypes = Union[Type[BaseException], Tuple[Type[BaseException], ...]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry configuration.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        base_delay_ms: Delay before the second attempt; doubles each retry
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1: {self.max_attempts}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0: {self.base_delay_ms}")

    def delay_ms(self, attempt: int) -> int:
        """Backoff before the attempt following ``attempt`` (1-based)."""
        return self.base_delay_ms * 2 ** (attempt - 1)

    def budget_ms(self, attempt_timeout_ms: int) -> int:
        """Worst case for one retried call: every attempt times out, plus all backoffs."""
        backoff = sum(self.delay_ms(attempt) for attempt in range(1, self.max_attempts))
        return self.max_attempts * attempt_timeout_ms + backoff


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_ms: int = 1000,
    retry_on: ExceptionTypes = Exception,
    give_up_on: ExceptionTypes = (),
) -> T:
    """
    Run ``operation`` until it succeeds or ``max_attempts`` is exhausted.

    Waits ``base_delay_ms * 2**(attempt-1)`` between attempts. Exceptions
    that are not instances of ``retry_on``, or that are instances of
    ``give_up_on``, propagate immediately.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt)
        max_attempts: Total number of attempts
        base_delay_ms: Initial backoff delay in milliseconds
        retry_on: Exception type(s) worth retrying
        give_up_on: Exception type(s) that are deterministic (never retried)

    Returns:
        The operation's result

    Raises:
        The last error once all attempts failed
    """
    policy = RetryPolicy(max_attempts=max_attempts, base_delay_ms=base_delay_ms)

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except give_up_on:
            raise
        except retry_on as e:
            if attempt == policy.max_attempts:
                raise
            delay_ms = policy.delay_ms(attempt)
            logger.debug(
                f"Attempt {attempt}/{policy.max_attempts} failed ({e}), "
                f"retrying in {delay_ms}ms"
            )
            await asyncio.sleep(delay_ms / 1000)

    # range() above always runs at least once and either returns or raises
    raise RuntimeError("unreachable")


async def with_timeout(
    operation: Awaitable[T],
    timeout_ms: int,
    fallback: T = None,
) -> T:
    """
    Race ``operation`` against a timer.

    When the timer fires first the operation is cancelled, so a late result
    can never be observed or touch shared state, and ``fallback`` is
    returned instead.

    Args:
        operation: Awaitable to bound
        timeout_ms: Time budget in milliseconds
        fallback: Value returned on timeout

    Returns:
        The operation's result, or ``fallback`` on timeout
    """
    try:
        return await asyncio.wait_for(operation, timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        logger.debug(f"Operation timed out after {timeout_ms}ms, using fallback")
        return fallback
