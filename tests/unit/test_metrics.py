"""
Unit tests for scan metrics and the Prometheus sink
"""

import pytest
from prometheus_client import CollectorRegistry

from dex.fanout import FanOutResult
from dex.metrics import ScanMetrics
from dex.observability import PrometheusSink
from dex.types import (
    CycleRecord,
    FailureReason,
    Opportunity,
    OpportunityReason,
    PriceRecord,
    Quote,
    QuoteFailure,
    TradeRecord,
    TradeStatus,
)


def opportunity(net_profit=None, profitable=False):
    reason = OpportunityReason.PROFITABLE if profitable else OpportunityReason.NOT_PROFITABLE
    if net_profit is None:
        reason = OpportunityReason.NO_BUY_QUOTES
    return Opportunity(
        pair="USDC/DAI",
        amount_in=10,
        gas_cost=1,
        settlement_decimals=6,
        profitable=profitable,
        reason=reason,
        net_profit=net_profit,
    )


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def sink(registry):
    return PrometheusSink(registry)


class TestScanMetrics:
    """Test the immutable ScanMetrics accumulator"""

    def test_starts_empty(self):
        metrics = ScanMetrics()
        assert metrics.cycles == 0
        assert metrics.average_cycle_time == 0.0
        assert metrics.success_rate == 0.0
        assert metrics.best_net_profit is None

    def test_record_fanout(self):
        result = FanOutResult(
            quotes=[Quote("A", "x", "y", 1, 5)],
            failures=[
                QuoteFailure("B", FailureReason.TIMEOUT),
                QuoteFailure("C", FailureReason.NO_POOL),
            ],
        )
        metrics = ScanMetrics().record_fanout(result)
        assert metrics.successful_fetches == 1
        assert metrics.failed_fetches == 2
        assert metrics.timeouts == 1
        assert metrics.success_rate == pytest.approx(1 / 3)

    def test_record_evaluation(self):
        metrics = (
            ScanMetrics()
            .record_evaluation(opportunity())
            .record_evaluation(opportunity(-5))
            .record_evaluation(opportunity(7, profitable=True))
            .record_evaluation(opportunity(3))
        )
        assert metrics.total_checks == 4
        assert metrics.opportunities == 3
        assert metrics.profitable == 1
        assert metrics.best_net_profit == 7

    def test_best_net_profit_across_decimals(self):
        dai = Opportunity(
            pair="DAI/USDC",
            amount_in=10 * 10**18,
            gas_cost=0,
            settlement_decimals=18,
            profitable=False,
            reason=OpportunityReason.BELOW_THRESHOLD,
            net_profit=10**12,
        )
        metrics = ScanMetrics().record_evaluation(dai).record_evaluation(opportunity(500_000))
        assert metrics.best_net_profit == 500_000
        assert metrics.best_net_profit_decimals == 6

        metrics = metrics.record_evaluation(dai)
        assert metrics.best_net_profit == 500_000

    def test_record_trade(self):
        metrics = (
            ScanMetrics()
            .record_trade(TradeRecord(TradeStatus.SUCCESS))
            .record_trade(TradeRecord(TradeStatus.FAILED, error="reverted"))
            .record_trade(TradeRecord(TradeStatus.SKIPPED))
        )
        assert metrics.trades == 1
        assert metrics.trade_failures == 1

    def test_cycles(self):
        metrics = ScanMetrics().record_cycle(1.0).record_cycle(3.0).record_cycle_error()
        assert metrics.cycles == 2
        assert metrics.cycle_errors == 1
        assert metrics.average_cycle_time == 2.0

    def test_records_do_not_mutate(self):
        original = ScanMetrics()
        original.record_cycle(1.0)
        assert original.cycles == 0

    def test_to_dict_and_log(self):
        metrics = ScanMetrics().record_cycle(0.5)
        data = metrics.to_dict()
        assert data["cycles"] == 1
        assert data["average_cycle_time"] == 0.5
        assert "avg_cycle=0.50s" in metrics.format_log()


class TestPrometheusSink:
    """Test Prometheus export of engine records"""

    def test_price_records(self, sink, registry):
        record = PriceRecord("x", "y", 1, 42, "Uniswap V3", 500)
        sink.record_price(record)
        sink.record_price(record)

        assert registry.get_sample_value(
            "crossdex_arbitrage_quotes_total", {"venue": "Uniswap V3"}
        ) == 2
        assert registry.get_sample_value(
            "crossdex_arbitrage_quote_amount_out",
            {"venue": "Uniswap V3", "token_in": "x", "token_out": "y"},
        ) == 42

    def test_cycle_records(self, sink, registry):
        sink.record_cycle(CycleRecord(1.0, True, 120, 30))
        sink.record_cycle(CycleRecord(2.0, False, None, None))

        assert registry.get_sample_value("crossdex_arbitrage_cycles_total") == 2
        assert registry.get_sample_value("crossdex_arbitrage_opportunities_found_total") == 1
        assert registry.get_sample_value("crossdex_arbitrage_last_net_profit") == 120
        assert registry.get_sample_value("crossdex_arbitrage_last_gas_cost") == 30

    def test_cycle_gauges_in_whole_tokens(self, sink, registry):
        sink.record_cycle(CycleRecord(1.0, True, 500_000, 250_000, decimals=6))

        assert registry.get_sample_value("crossdex_arbitrage_last_net_profit") == 0.5
        assert registry.get_sample_value("crossdex_arbitrage_last_gas_cost") == 0.25

    def test_trade_records(self, sink, registry):
        sink.record_trade(TradeRecord(TradeStatus.SKIPPED))
        assert registry.get_sample_value(
            "crossdex_arbitrage_trades_total", {"status": "skipped"}
        ) == 1

    def test_custom_namespace(self, registry):
        sink = PrometheusSink(registry, namespace="scanner")
        sink.record_cycle(CycleRecord(1.0, False, None, None))
        assert registry.get_sample_value("scanner_cycles_total") == 1
