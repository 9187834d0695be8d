"""
Observability sinks for quote, cycle and trade records.

The engine emits one ``PriceRecord`` per successful quote, one
``CycleRecord`` per scan cycle and one ``TradeRecord`` per execution
hand-off. Delivery is one-way: ``notify()`` swallows and logs sink errors
so a broken sink can never fail a scan.
"""

import logging
from typing import Any, Callable, Optional, Protocol, Sequence, runtime_checkable

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge

from crossdex_arbitrage.utils import short_address, timestamp_to_iso

from .types import CycleRecord, PriceRecord, TradeRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class ObservabilitySink(Protocol):
    """Receiver of engine records."""

    def record_price(self, record: PriceRecord) -> None:
        ...

    def record_cycle(self, record: CycleRecord) -> None:
        ...

    def record_trade(self, record: TradeRecord) -> None:
        ...


def notify(hook: Callable[[Any], None], record: Any) -> bool:
    """
    Deliver ``record`` to a sink method, fire-and-forget.

    Returns:
        True when the sink accepted the record
    """
    try:
        hook(record)
        return True
    except Exception as e:
        logger.warning(
            f"Observability sink {getattr(hook, '__qualname__', hook)} failed: {e}"
        )
        return False


class NullSink:
    """Discards everything."""

    def record_price(self, record: PriceRecord) -> None:
        pass

    def record_cycle(self, record: CycleRecord) -> None:
        pass

    def record_trade(self, record: TradeRecord) -> None:
        pass


class LoggingSink:
    """Writes records to a logger at DEBUG (prices) and INFO (cycles, trades)."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def record_price(self, record: PriceRecord) -> None:
        self.log.debug(
            f"price {record.venue} "
            f"{short_address(record.token_in)}->{short_address(record.token_out)} "
            f"in={record.amount_in} out={record.amount_out} fee={record.fee_tier}"
        )

    def record_cycle(self, record: CycleRecord) -> None:
        self.log.info(
            f"cycle found={record.opportunity_found} profit={record.profit} "
            f"gas={record.gas_cost} at {timestamp_to_iso(record.timestamp)}"
        )

    def record_trade(self, record: TradeRecord) -> None:
        self.log.info(
            f"trade status={record.status.value} tx={record.tx_hash} "
            f"gas_used={record.gas_used} profit={record.realized_profit}"
            + (f" error={record.error}" if record.error else "")
        )


class PrometheusSink:
    """
    Exposes engine records as Prometheus metrics.

    Amounts are exported in smallest units; dashboards scale them by the
    token's decimals.
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        namespace: str = "crossdex_arbitrage",
    ):
        self.registry = registry or REGISTRY
        self.namespace = namespace
        self._initialize_metrics()

    def _initialize_metrics(self):
        ns = self.namespace

        # === QUOTE METRICS ===
        self.quotes_total = Counter(
            f"{ns}_quotes_total",
            "Successful venue quotes",
            ["venue"],
            registry=self.registry,
        )
        self.quote_amount_out = Gauge(
            f"{ns}_quote_amount_out",
            "Last quoted output amount (smallest units)",
            ["venue", "token_in", "token_out"],
            registry=self.registry,
        )

        # === CYCLE METRICS ===
        self.cycles_total = Counter(
            f"{ns}_cycles_total",
            "Completed scan cycles",
            registry=self.registry,
        )
        self.opportunities_total = Counter(
            f"{ns}_opportunities_found_total",
            "Cycles that found a profitable opportunity",
            registry=self.registry,
        )
        self.last_profit = Gauge(
            f"{ns}_last_net_profit",
            "Net profit of the last cycle's best candidate (whole settlement tokens)",
            registry=self.registry,
        )
        self.last_gas_cost = Gauge(
            f"{ns}_last_gas_cost",
            "Gas cost of the last cycle's best candidate (whole settlement tokens)",
            registry=self.registry,
        )

        # === TRADE METRICS ===
        self.trades_total = Counter(
            f"{ns}_trades_total",
            "Execution hand-offs by outcome",
            ["status"],
            registry=self.registry,
        )

    def record_price(self, record: PriceRecord) -> None:
        self.quotes_total.labels(venue=record.venue).inc()
        self.quote_amount_out.labels(
            venue=record.venue,
            token_in=record.token_in,
            token_out=record.token_out,
        ).set(record.amount_out)

    def record_cycle(self, record: CycleRecord) -> None:
        self.cycles_total.inc()
        if record.opportunity_found:
            self.opportunities_total.inc()
        if record.profit is not None:
            self.last_profit.set(record.profit / 10**record.decimals)
        if record.gas_cost is not None:
            self.last_gas_cost.set(record.gas_cost / 10**record.decimals)

    def record_trade(self, record: TradeRecord) -> None:
        self.trades_total.labels(status=record.status.value).inc()


class CompositeSink:
    """Fans each record out to several sinks; one failing sink does not stop the rest."""

    def __init__(self, sinks: Sequence[ObservabilitySink]):
        self.sinks = list(sinks)

    def record_price(self, record: PriceRecord) -> None:
        for sink in self.sinks:
            notify(sink.record_price, record)

    def record_cycle(self, record: CycleRecord) -> None:
        for sink in self.sinks:
            notify(sink.record_cycle, record)

    def record_trade(self, record: TradeRecord) -> None:
        for sink in self.sinks:
            notify(sink.record_trade, record)
