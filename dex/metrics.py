"""
Scan metrics accumulator.

``ScanMetrics`` is an immutable value: every ``record_*`` method returns a
new instance. The runner passes the current value into each cycle and
keeps the one the cycle returns, so there are no ambient counters.
"""

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional

from .fanout import FanOutResult
from .opportunity_math import COMMON_DECIMALS, comparable_profit, normalize_amount
from .types import FailureReason, Opportunity, TradeRecord, TradeStatus


@dataclass(frozen=True)
class ScanMetrics:
    """
    Counters for a scanning session.

    Attributes:
        total_checks: Pairs evaluated
        successful_fetches: Venue quotes that returned an amount
        failed_fetches: Venue quotes that returned a failure (timeouts included)
        timeouts: Venue quotes that hit the per-quote timeout
        opportunities: Pairs with a valid buy/sell quote pair
        profitable: Pairs whose verdict was profitable
        trades: Execution hand-offs that succeeded
        trade_failures: Execution hand-offs reported as failed
        cycles: Completed cycles
        cycle_errors: Cycles aborted by an exception
        total_cycle_time: Sum of completed cycle durations in seconds
        best_net_profit: Highest net profit seen, in its own settlement units
        best_net_profit_decimals: Decimals of that settlement token
    """

    total_checks: int = 0
    successful_fetches: int = 0
    failed_fetches: int = 0
    timeouts: int = 0
    opportunities: int = 0
    profitable: int = 0
    trades: int = 0
    trade_failures: int = 0
    cycles: int = 0
    cycle_errors: int = 0
    total_cycle_time: float = 0.0
    best_net_profit: Optional[int] = None
    best_net_profit_decimals: Optional[int] = None

    @property
    def average_cycle_time(self) -> float:
        if self.cycles == 0:
            return 0.0
        return self.total_cycle_time / self.cycles

    @property
    def success_rate(self) -> float:
        """Fraction of venue queries that produced a quote."""
        total = self.successful_fetches + self.failed_fetches
        if total == 0:
            return 0.0
        return self.successful_fetches / total

    def record_fanout(self, result: FanOutResult) -> "ScanMetrics":
        timeouts = sum(1 for f in result.failures if f.reason == FailureReason.TIMEOUT)
        return replace(
            self,
            successful_fetches=self.successful_fetches + len(result.quotes),
            failed_fetches=self.failed_fetches + len(result.failures),
            timeouts=self.timeouts + timeouts,
        )

    def record_evaluation(self, opportunity: Opportunity) -> "ScanMetrics":
        best, best_decimals = self.best_net_profit, self.best_net_profit_decimals
        profit = comparable_profit(opportunity)
        if profit is not None and (
            best is None
            or profit > normalize_amount(best, best_decimals, COMMON_DECIMALS)
        ):
            best, best_decimals = opportunity.net_profit, opportunity.settlement_decimals
        return replace(
            self,
            total_checks=self.total_checks + 1,
            opportunities=self.opportunities + int(opportunity.has_quote_pair),
            profitable=self.profitable + int(opportunity.profitable),
            best_net_profit=best,
            best_net_profit_decimals=best_decimals,
        )

    def record_trade(self, record: TradeRecord) -> "ScanMetrics":
        if record.status == TradeStatus.SUCCESS:
            return replace(self, trades=self.trades + 1)
        if record.status == TradeStatus.FAILED:
            return replace(self, trade_failures=self.trade_failures + 1)
        return self

    def record_cycle(self, duration: float) -> "ScanMetrics":
        return replace(
            self,
            cycles=self.cycles + 1,
            total_cycle_time=self.total_cycle_time + duration,
        )

    def record_cycle_error(self) -> "ScanMetrics":
        return replace(self, cycle_errors=self.cycle_errors + 1)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["average_cycle_time"] = self.average_cycle_time
        data["success_rate"] = self.success_rate
        return data

    def format_log(self) -> str:
        return (
            f"checks={self.total_checks} quotes={self.successful_fetches}/"
            f"{self.successful_fetches + self.failed_fetches} "
            f"timeouts={self.timeouts} opportunities={self.opportunities} "
            f"profitable={self.profitable} trades={self.trades} "
            f"failed_trades={self.trade_failures} errors={self.cycle_errors} "
            f"avg_cycle={self.average_cycle_time:.2f}s"
        )
