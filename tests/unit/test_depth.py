"""
Unit tests for liquidity depth profiling.
"""

import unittest
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from smart_router.exceptions import IlliquidPoolError, ValidationError
from smart_router.graph import PoolGraph
from smart_router.models import DepthTier, Pool, Token
from smart_router.depth import all_depth_tiers, depth_tiers, max_input_for_impact, max_input_where
from smart_router.quote import quote

A = Token("A", "A", 0)
B = Token("B", "B", 0)
C = Token("C", "C", 0)


def impact(pool, token_in, amount):
    return quote(pool, token_in, amount).price_impact


class TestMaxInputForImpact(unittest.TestCase):
    def test_fee_free_closed_form(self):
        pool = Pool("p", A, B, 1_000_000, 500_000, Decimal(0))
        # Ri * p / (1 - p) = 10101.01...
        self.assertEqual(max_input_for_impact(pool, "A", Decimal(1)), 10_101)

    def test_bound_is_tight(self):
        pool = Pool("p", A, B, 10**12, 3 * 10**9, Decimal("0.003"))
        for tier in (Decimal("0.5"), Decimal(1), Decimal(5), Decimal(10)):
            with self.subTest(tier=tier):
                m = max_input_for_impact(pool, "A", tier)
                self.assertGreater(m, 0)
                self.assertLessEqual(impact(pool, "A", m), tier)
                self.assertGreater(impact(pool, "A", m + 1), tier)

    def test_tier_at_or_below_fee_is_zero(self):
        pool = Pool("p", A, B, 10**12, 10**12, Decimal("0.003"))
        self.assertEqual(max_input_for_impact(pool, "A", Decimal("0.3")), 0)
        self.assertEqual(max_input_for_impact(pool, "A", Decimal("0.1")), 0)

    def test_direction_matters(self):
        pool = Pool("p", A, B, 10**6, 10**9, Decimal("0.003"))
        self.assertGreater(
            max_input_for_impact(pool, "B", Decimal(2)),
            max_input_for_impact(pool, "A", Decimal(2)),
        )

    def test_invalid_tiers(self):
        pool = Pool("p", A, B, 10**6, 10**6)
        for tier in (0, 100, -1, 150):
            with self.subTest(tier=tier):
                with self.assertRaises(ValidationError):
                    max_input_for_impact(pool, "A", tier)

    def test_empty_pool(self):
        pool = Pool("p", A, B, 0, 10**6)
        with self.assertRaises(IlliquidPoolError):
            max_input_for_impact(pool, "A", Decimal(1))


class TestDepthTiers(unittest.TestCase):
    def setUp(self):
        self.pool = Pool("p", A, B, 10**12, 10**12, Decimal("0.003"))

    def test_tiers_non_decreasing(self):
        result = depth_tiers(self.pool, "A", [Decimal("0.5"), Decimal(1), Decimal(2), Decimal(5)])
        amounts = [m for _, m in result.tiers]
        self.assertEqual(amounts, sorted(amounts))
        self.assertEqual(result.token_in, A)
        self.assertEqual(result.token_out, B)

    def test_lookup_by_tier(self):
        result = depth_tiers(self.pool, "A", [Decimal(1), Decimal(2)])
        self.assertEqual(result.max_input_for("2"), result.tiers[1][1])
        self.assertIsNone(result.max_input_for(Decimal(7)))

    def test_serializes(self):
        data = depth_tiers(self.pool, "A", [Decimal(1)]).to_dict()
        self.assertEqual(data["pool_id"], "p")
        self.assertEqual(data["tiers"][0]["impact_pct"], 1.0)

    def test_all_depth_tiers_per_edge(self):
        graph = PoolGraph(
            [
                self.pool,
                Pool("q", A, C, 10**9, 10**9),
                Pool("r", B, C, 10**9, 10**9),
            ]
        )
        everything = all_depth_tiers(graph, "A", [Decimal(1)])
        only_c = all_depth_tiers(graph, "A", [Decimal(1)], token_out="C")

        self.assertEqual(sorted(d.pool_id for d in everything), ["p", "q"])
        self.assertEqual([d.pool_id for d in only_c], ["q"])
        self.assertTrue(all(isinstance(d, DepthTier) for d in everything))


class TestMaxInputWhere(unittest.TestCase):
    def test_finds_threshold(self):
        self.assertEqual(max_input_where(lambda x: x <= 37, 100), 37)
        self.assertEqual(max_input_where(lambda x: x <= 10**12 + 3, 10**15), 10**12 + 3)

    def test_nothing_accepted(self):
        self.assertEqual(max_input_where(lambda x: False, 100), 0)
        self.assertEqual(max_input_where(lambda x: True, 0), 0)

    def test_everything_accepted(self):
        self.assertEqual(max_input_where(lambda x: True, 100), 100)


@settings(max_examples=60, deadline=None)
@given(
    reserve_in=st.integers(min_value=1_000, max_value=10**15),
    reserve_out=st.integers(min_value=1_000, max_value=10**15),
    fee_bps=st.integers(min_value=0, max_value=100),
    tier=st.sampled_from(["0.5", "1", "2", "5", "10"]),
)
def test_depth_bound_holds(reserve_in, reserve_out, fee_bps, tier):
    pool = Pool.from_bps("p", A, B, reserve_in, reserve_out, fee_bps)
    p = Decimal(tier)
    m = max_input_for_impact(pool, "A", p)
    if m > 0:
        assert impact(pool, "A", m) <= p
    assert impact(pool, "A", m + 1) > p
