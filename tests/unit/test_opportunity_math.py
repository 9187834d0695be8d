"""
Unit tests for dex/opportunity_math.py

Covers unit conversion, net profit across decimals, the profitability
predicate and the evaluation of a full round trip.
"""

import unittest
from decimal import Decimal

from hypothesis import assume, given
from hypothesis import strategies as st

from dex.opportunity_math import (
    COMMON_DECIMALS,
    comparable_profit,
    compute_net_profit,
    evaluate,
    format_units,
    is_profitable,
    normalize_amount,
    pick_best,
    select_best_opportunity,
    to_smallest_units,
)
from dex.types import Opportunity, OpportunityReason, Quote

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
DAI = "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb"


def q(venue, amount_out, fee_tier=None, amount_in=1):
    return Quote(
        venue=venue,
        token_in=USDC,
        token_out=DAI,
        amount_in=amount_in,
        amount_out=amount_out,
        fee_tier=fee_tier,
    )


def usdc_dai(buy, sell, gas_cost=500_000, min_profit=0):
    return evaluate(
        buy,
        sell,
        amount_in=10_000_000,
        gas_cost=gas_cost,
        min_profit=min_profit,
        pair="USDC/DAI",
        settlement_decimals=6,
    )


class TestConversionHelpers(unittest.TestCase):
    """Test smallest-unit conversion helpers."""

    def test_scale_up_is_exact(self):
        self.assertEqual(normalize_amount(10_050_000, 6, 18), 10_050_000 * 10**12)

    def test_scale_down_truncates(self):
        self.assertEqual(normalize_amount(10_050_000_999_999_999_999, 18, 6), 10_050_000)

    def test_scale_down_truncates_toward_zero(self):
        """Negative amounts truncate toward zero, not toward minus infinity."""
        self.assertEqual(normalize_amount(-1_999_999_999_999, 18, 6), -1)

    def test_same_decimals(self):
        self.assertEqual(normalize_amount(-42, 6, 6), -42)

    def test_to_smallest_units(self):
        self.assertEqual(to_smallest_units("10.5", 6), 10_500_000)
        self.assertEqual(to_smallest_units(Decimal("1.9999999"), 6), 1_999_999)
        self.assertEqual(to_smallest_units(3, 18), 3 * 10**18)
        self.assertEqual(to_smallest_units("0.0000001", 6), 0)

    def test_to_smallest_units_rejects_garbage(self):
        for bad in ("abc", "NaN", "Infinity"):
            with self.assertRaises(ValueError):
                to_smallest_units(bad, 6)

    def test_format_units(self):
        self.assertEqual(format_units(10_050_000, 6), "10.05")
        self.assertEqual(format_units(10**18, 18), "1")
        self.assertEqual(format_units(0, 6), "0")
        self.assertEqual(format_units(-460_000, 6), "-0.46")
        self.assertEqual(format_units(1, 6, places=2), "0.00")
        self.assertEqual(format_units(1_234_567, 6, places=2), "1.23")


class TestNetProfit(unittest.TestCase):
    """Test compute_net_profit and is_profitable."""

    def test_same_decimals(self):
        net = compute_net_profit(
            10_040_000, 10_000_000, 500_000, base_decimals=6, settlement_decimals=6
        )
        self.assertEqual(net, -460_000)

    def test_base_wider_than_settlement(self):
        """Difference is taken at 18 decimals and truncated once."""
        net = compute_net_profit(
            10 * 10**18 + 2_500_000_000_000,
            10 * 10**18,
            1,
            base_decimals=18,
            settlement_decimals=6,
        )
        self.assertEqual(net, 1)

    def test_negative_result_truncates_toward_zero(self):
        net = compute_net_profit(
            10 * 10**18 - 2_500_000_000_000,
            10 * 10**18,
            1,
            base_decimals=18,
            settlement_decimals=6,
        )
        self.assertEqual(net, -3)

    def test_settlement_wider_than_base(self):
        net = compute_net_profit(
            10_100_000, 10_000_000, 5 * 10**16, base_decimals=6, settlement_decimals=18
        )
        self.assertEqual(net, 5 * 10**16)

    def test_threshold_is_inclusive(self):
        self.assertTrue(is_profitable(100_000, 100_000))
        self.assertFalse(is_profitable(99_999, 100_000))

    def test_zero_is_never_profitable(self):
        self.assertFalse(is_profitable(0, 0))
        self.assertFalse(is_profitable(0, -10))

    def test_none_is_not_profitable(self):
        self.assertFalse(is_profitable(None, 0))


class TestEvaluate(unittest.TestCase):
    """Test evaluation of a USDC -> DAI -> USDC round trip."""

    BUY = [q("A", 9_990_000_000_000_000_000, 500), q("B", 10_010_000_000_000_000_000, 3000)]

    def test_losing_round_trip(self):
        opp = usdc_dai(self.BUY, [q("A", 10_040_000), q("B", 10_020_000)])

        self.assertEqual(opp.buy_venue, "B")
        self.assertEqual(opp.buy_fee_tier, 3000)
        self.assertEqual(opp.sell_venue, "A")
        self.assertEqual(opp.intermediate_amount, 10_010_000_000_000_000_000)
        self.assertEqual(opp.final_amount, 10_040_000)
        self.assertEqual(opp.net_profit, -460_000)
        self.assertFalse(opp.profitable)
        self.assertEqual(opp.reason, OpportunityReason.NOT_PROFITABLE)
        self.assertEqual(opp.message, "not profitable")

    def test_profitable_at_exact_threshold(self):
        opp = usdc_dai(self.BUY, [q("A", 10_600_000)], min_profit=100_000)
        self.assertEqual(opp.net_profit, 100_000)
        self.assertTrue(opp.profitable)
        self.assertEqual(opp.reason, OpportunityReason.PROFITABLE)

    def test_positive_but_below_threshold(self):
        opp = usdc_dai(self.BUY, [q("A", 10_550_000)], min_profit=100_000)
        self.assertEqual(opp.net_profit, 50_000)
        self.assertFalse(opp.profitable)
        self.assertEqual(opp.reason, OpportunityReason.BELOW_THRESHOLD)

    def test_no_buy_quotes(self):
        opp = usdc_dai([], [q("A", 10_600_000)])
        self.assertEqual(opp.reason, OpportunityReason.NO_BUY_QUOTES)
        self.assertEqual(opp.message, "no quotes for leg buy")
        self.assertIsNone(opp.net_profit)
        self.assertIsNone(opp.buy_venue)
        self.assertFalse(opp.profitable)

    def test_no_sell_quotes(self):
        opp = usdc_dai(self.BUY, [])
        self.assertEqual(opp.reason, OpportunityReason.NO_SELL_QUOTES)
        self.assertEqual(opp.message, "no quotes for leg sell")
        self.assertEqual(opp.buy_venue, "B")
        self.assertEqual(opp.intermediate_amount, 10_010_000_000_000_000_000)
        self.assertIsNone(opp.net_profit)

    def test_evaluation_is_deterministic(self):
        sell = [q("A", 10_600_000)]
        self.assertEqual(usdc_dai(self.BUY, sell), usdc_dai(self.BUY, sell))

    def test_format_log(self):
        opp = usdc_dai(self.BUY, [q("A", 10_600_000, 500)], min_profit=100_000)
        self.assertEqual(
            opp.format_log(),
            "USDC/DAI: buy B (0.30%) -> sell A (0.05%) | in 10 out 10.6 "
            "gas 0.5 net 0.1 [profitable]",
        )
        self.assertEqual(usdc_dai([], []).format_log(), "USDC/DAI: no quotes for leg buy")


class TestSelection(unittest.TestCase):
    """Test pick_best and select_best_opportunity."""

    def test_pick_best_first_wins_ties(self):
        best = pick_best([q("A", 5), q("B", 7), q("C", 7)])
        self.assertEqual(best.venue, "B")

    def test_pick_best_empty(self):
        self.assertIsNone(pick_best([]))

    def test_select_best_returns_losing_winner(self):
        candidates = [
            usdc_dai([], []),
            usdc_dai(TestEvaluate.BUY, [q("A", 9_000_000)]),
            usdc_dai(TestEvaluate.BUY, [q("A", 10_040_000)]),
        ]
        best = select_best_opportunity(candidates)
        self.assertEqual(best.net_profit, -460_000)
        self.assertFalse(best.profitable)

    def test_select_best_compares_across_decimals(self):
        usdc_weth = Opportunity(
            pair="USDC/WETH",
            amount_in=10_000_000,
            gas_cost=500_000,
            settlement_decimals=6,
            profitable=True,
            reason=OpportunityReason.PROFITABLE,
            net_profit=500_000,
        )
        dai_usdc = Opportunity(
            pair="DAI/USDC",
            amount_in=10 * 10**18,
            gas_cost=0,
            settlement_decimals=18,
            profitable=False,
            reason=OpportunityReason.BELOW_THRESHOLD,
            net_profit=10**12,
        )
        for candidates in ([usdc_weth, dai_usdc], [dai_usdc, usdc_weth]):
            best = select_best_opportunity(candidates)
            self.assertEqual(best.pair, "USDC/WETH")

    def test_comparable_profit(self):
        opp = usdc_dai([q("B", 1)], [q("S", 10_600_000)])
        self.assertEqual(COMMON_DECIMALS, 18)
        self.assertEqual(comparable_profit(opp), 100_000 * 10**12)
        self.assertIsNone(comparable_profit(usdc_dai([], [])))

    def test_select_best_without_quote_pairs(self):
        self.assertIsNone(select_best_opportunity([usdc_dai([], [])]))
        self.assertIsNone(select_best_opportunity([]))


amounts = st.integers(min_value=1, max_value=10**30)


class TestProperties(unittest.TestCase):
    """Property-based checks."""

    @given(st.lists(amounts, min_size=1, max_size=8))
    def test_best_buy_is_maximal_and_earliest(self, outputs):
        quotes = [q(f"V{i}", out) for i, out in enumerate(outputs)]
        opp = usdc_dai(quotes, [q("S", 10_000_000)])
        top = max(outputs)
        self.assertEqual(opp.intermediate_amount, top)
        self.assertEqual(opp.buy_venue, f"V{outputs.index(top)}")

    @given(
        sell=amounts,
        gas=st.integers(min_value=0, max_value=10**12),
        floor=st.integers(min_value=-(10**9), max_value=10**9),
    )
    def test_profitable_implies_both_conditions(self, sell, gas, floor):
        opp = usdc_dai([q("B", 1)], [q("S", sell)], gas_cost=gas, min_profit=floor)
        self.assertEqual(opp.net_profit, sell - 10_000_000 - gas)
        if opp.profitable:
            self.assertGreater(opp.net_profit, 0)
            self.assertGreaterEqual(opp.net_profit, floor)
        else:
            self.assertTrue(opp.net_profit <= 0 or opp.net_profit < floor)

    @given(
        amount=st.integers(min_value=-(10**30), max_value=10**30),
        low=st.integers(min_value=0, max_value=18),
        extra=st.integers(min_value=0, max_value=18),
    )
    def test_scaling_up_then_down_is_lossless(self, amount, low, extra):
        high = min(low + extra, 36)
        self.assertEqual(normalize_amount(normalize_amount(amount, low, high), high, low), amount)

    @given(
        sell=amounts,
        amount_in=amounts,
        gas=st.integers(min_value=0, max_value=10**24),
        base_decimals=st.integers(min_value=0, max_value=18),
        settlement_decimals=st.integers(min_value=0, max_value=18),
    )
    def test_net_profit_converts_once(
        self, sell, amount_in, gas, base_decimals, settlement_decimals
    ):
        assume(base_decimals != settlement_decimals)
        widest = max(base_decimals, settlement_decimals)
        each_scaled_first = (
            normalize_amount(sell, base_decimals, widest)
            - normalize_amount(amount_in, base_decimals, widest)
            - normalize_amount(gas, settlement_decimals, widest)
        )
        net = compute_net_profit(
            sell,
            amount_in,
            gas,
            base_decimals=base_decimals,
            settlement_decimals=settlement_decimals,
        )
        self.assertEqual(
            net, normalize_amount(each_scaled_first, widest, settlement_decimals)
        )
        if settlement_decimals > base_decimals:
            # Scaling up is exact, so per-operand conversion agrees too
            self.assertEqual(
                net,
                normalize_amount(sell, base_decimals, settlement_decimals)
                - normalize_amount(amount_in, base_decimals, settlement_decimals)
                - gas,
            )


if __name__ == "__main__":
    unittest.main()
