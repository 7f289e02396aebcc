"""
Unit tests for the constant-product quote engine.

Tests cover:
- Forward and inverse quotes against the closed-form invariant
- Error taxonomy for bad amounts and empty pools
- Monotonic, concave output and round trips (property-based)
"""

import unittest
from decimal import ROUND_CEILING, Decimal, localcontext

from hypothesis import given, settings
from hypothesis import strategies as st

from smart_router.exceptions import (
    CorruptReservesError,
    IlliquidPoolError,
    InsufficientLiquidityError,
    InvalidAmountError,
    ValidationError,
)
from smart_router.models import Pool, Route, Token
from smart_router.quote import (
    marginal_rate,
    quote,
    quote_for_output,
    quote_hop,
    requote,
    route_output,
    spot_price,
)

A = Token("A", "A", 0)
B = Token("B", "B", 0)


def make_pool(reserve_a, reserve_b, fee="0.003", pool_id="p"):
    return Pool(pool_id, A, B, reserve_a, reserve_b, Decimal(fee))


class TestForwardQuote(unittest.TestCase):
    """Test the forward constant-product quote."""

    def setUp(self):
        self.pool = make_pool(1000, 1000)

    def test_output_matches_invariant(self):
        """Output equals reserveOut - k / (reserveIn + x*(1-f))."""
        result = quote(self.pool, "A", 10)
        with localcontext() as ctx:
            ctx.prec = 50
            expected = Decimal(1000) - Decimal(1000) * 1000 / (1000 + Decimal(10) * Decimal("0.997"))
        self.assertLess(abs(result.amount_out - expected), Decimal("1e-40"))

    def test_fee_taken_from_input(self):
        result = quote(self.pool, "A", 10)
        self.assertEqual(result.fee, Decimal("0.030"))

    def test_price_impact_percent(self):
        result = quote(self.pool, "A", 10)
        expected = (1 - (result.amount_out / 10) / 1) * 100
        self.assertLess(abs(result.price_impact - expected), Decimal("1e-20"))
        # tiny trade pays roughly the fee, nothing more
        small = quote(self.pool, "A", Decimal("0.0001"))
        self.assertAlmostEqual(float(small.price_impact), 0.3, places=4)

    def test_direction_uses_matching_reserves(self):
        pool = make_pool(1000, 4000, fee="0")
        self.assertEqual(spot_price(pool, "A"), Decimal(4))
        self.assertEqual(spot_price(pool, "B"), Decimal("0.25"))
        self.assertGreater(quote(pool, "A", 10).amount_out, quote(pool, "B", 10).amount_out)

    def test_marginal_rate_at_zero_is_spot_net_of_fee(self):
        self.assertEqual(marginal_rate(self.pool, "A"), Decimal("0.997"))
        self.assertLess(marginal_rate(self.pool, "A", 100), Decimal("0.997"))

    def test_invalid_amounts(self):
        for bad in (0, -5, Decimal("-0.1"), Decimal("NaN"), float("inf"), "abc", None, True):
            with self.subTest(amount=bad):
                with self.assertRaises(InvalidAmountError):
                    quote(self.pool, "A", bad)

    def test_empty_reserve_is_illiquid(self):
        pool = make_pool(0, 1000)
        with self.assertRaises(IlliquidPoolError):
            quote(pool, "A", 10)
        with self.assertRaises(IlliquidPoolError):
            quote(pool, "B", 10)

    def test_unknown_token(self):
        with self.assertRaises(ValidationError):
            quote(self.pool, "C", 10)

    def test_negative_reserves_rejected_at_construction(self):
        with self.assertRaises(CorruptReservesError):
            make_pool(-1, 1000)


class TestInverseQuote(unittest.TestCase):
    """Test quote_for_output."""

    def setUp(self):
        self.pool = make_pool(1000, 1000)

    def test_inverse_rounds_up_to_whole_units(self):
        amount_in = quote_for_output(self.pool, "B", 100)
        with localcontext() as ctx:
            ctx.prec = 50
            exact = Decimal(1000) * 100 / ((Decimal(1000) - 100) * Decimal("0.997"))
        self.assertEqual(exact.to_integral_value(rounding=ROUND_CEILING), 112)
        self.assertEqual(amount_in, Decimal(112))
        self.assertGreaterEqual(quote(self.pool, "A", amount_in).amount_out, 100)
        self.assertLess(quote(self.pool, "A", amount_in - 1).amount_out, 100)

    def test_output_at_or_above_reserve_fails(self):
        for amount_out in (1000, 1001, 10**9):
            with self.subTest(amount_out=amount_out):
                with self.assertRaises(InsufficientLiquidityError):
                    quote_for_output(self.pool, "B", amount_out)

    def test_invalid_output_amount(self):
        with self.assertRaises(InvalidAmountError):
            quote_for_output(self.pool, "B", 0)

    def test_inverse_input_prices_forward_past_target(self):
        hop = quote_hop(self.pool, "A", quote_for_output(self.pool, "B", 250))
        self.assertEqual(hop.token_in.token_id, "A")
        self.assertEqual(hop.amount_in, hop.amount_in.to_integral_value())
        self.assertEqual(hop.amount_out, quote(self.pool, "A", hop.amount_in).amount_out)
        self.assertGreaterEqual(hop.amount_out, 250)


class TestHopsAndRequote(unittest.TestCase):
    def test_hop_snapshot(self):
        pool = make_pool(1000, 3000)
        hop = quote_hop(pool, "B", 30)
        self.assertEqual(hop.reserve_in, 3000)
        self.assertEqual(hop.reserve_out, 1000)
        self.assertEqual(hop.token_out, A)
        self.assertAlmostEqual(float(hop.spot_price), 1 / 3)

    def test_requote_uses_route_snapshot(self):
        pool = make_pool(10_000, 20_000)
        route = Route((quote_hop(pool, "A", 100),))
        bigger = requote(route, 500)
        self.assertEqual(bigger.total_input, Decimal(500))
        self.assertEqual(bigger.total_output, quote(pool, "A", 500).amount_out)
        self.assertEqual(route_output(route, 500), bigger.total_output)


reserves = st.integers(min_value=1_000, max_value=10**15)
fees = st.integers(min_value=0, max_value=100)


@settings(max_examples=60, deadline=None)
@given(
    reserve_in=reserves,
    reserve_out=reserves,
    fee_bps=fees,
    x=st.integers(min_value=1, max_value=10**12),
    h=st.integers(min_value=1, max_value=10**9),
)
def test_output_strictly_increasing_and_concave(reserve_in, reserve_out, fee_bps, x, h):
    pool = Pool.from_bps("p", A, B, reserve_in, reserve_out, fee_bps)
    y0 = quote(pool, "A", x).amount_out
    y1 = quote(pool, "A", x + h).amount_out
    y2 = quote(pool, "A", x + 2 * h).amount_out
    assert y0 < y1 < y2
    assert y1 - y0 > y2 - y1


@settings(max_examples=60, deadline=None)
@given(
    reserve_in=reserves,
    reserve_out=reserves,
    fee_bps=fees,
    x=st.integers(min_value=1, max_value=10**12),
)
def test_round_trip(reserve_in, reserve_out, fee_bps, x):
    pool = Pool.from_bps("p", A, B, reserve_in, reserve_out, fee_bps)
    out = quote(pool, "A", x).amount_out
    back = quote_for_output(pool, "B", out)
    assert back == x


@settings(max_examples=60, deadline=None)
@given(
    reserve_in=reserves,
    reserve_out=reserves,
    fee_bps=fees,
    x=st.integers(min_value=1, max_value=10**12),
)
def test_price_impact_at_least_fee(reserve_in, reserve_out, fee_bps, x):
    pool = Pool.from_bps("p", A, B, reserve_in, reserve_out, fee_bps)
    impact = quote(pool, "A", x).price_impact
    assert impact >= Decimal(fee_bps) / 100
