"""
Test the oracle-relative arbitrage scanner.
"""

from decimal import Decimal

import pytest

from smart_router.arb import scan_oracle_arb
from smart_router.budget import SearchBudget
from smart_router.graph import PoolGraph
from smart_router.models import Pool, Token
from smart_router.quote import quote

ERG = Token("ERG", "ERG", 9)
SIGUSD = Token("SigUSD", "SigUSD", 2)
FEE = Decimal("0.003")

# 100,000 ERG against 130,000.00 SigUSD: spot 1.30 SigUSD per ERG
MAIN = Pool("main", ERG, SIGUSD, 10**14, 13_000_000, FEE)
# 1 ERG against 1.30 SigUSD: same price, far too shallow to matter
TINY = Pool("tiny", ERG, SIGUSD, 10**9, 130, FEE)


def human_rate(pool, amount_in):
    out = quote(pool, "ERG", amount_in).amount_out
    return (out / amount_in).scaleb(7)


class TestOracleWindows:
    def test_discount_against_reference(self):
        snapshot = scan_oracle_arb(PoolGraph([MAIN]), "ERG", "SigUSD", Decimal("1.25"))

        assert len(snapshot.windows) == 1
        window = snapshot.windows[0]
        assert window.spot_rate == Decimal("1.3")
        assert window.discount_pct == Decimal(4)
        assert window.path_label == "ERG → SigUSD"
        assert window.pool_ids == ("main",)

    def test_window_sized_to_reference(self):
        window = scan_oracle_arb(PoolGraph([MAIN]), "ERG", "SigUSD", Decimal("1.25")).windows[0]

        assert human_rate(MAIN, window.max_input) >= Decimal("1.25")
        assert human_rate(MAIN, window.max_input + 1) < Decimal("1.25")
        assert window.rate_at_max >= Decimal("1.25")
        assert window.price_impact_at_max < 10
        assert window.output_at_max_human == window.output_at_max.scaleb(-2)

    def test_impact_cap_limits_size(self):
        graph = PoolGraph([MAIN])
        uncapped = scan_oracle_arb(graph, "ERG", "SigUSD", Decimal("1.25")).windows[0]
        capped = scan_oracle_arb(
            graph, "ERG", "SigUSD", Decimal("1.25"), max_impact_pct=Decimal(1)
        ).windows[0]

        assert capped.max_input < uncapped.max_input
        assert capped.price_impact_at_max <= 1

    def test_dust_windows_dropped(self):
        graph = PoolGraph([MAIN, TINY])

        filtered = scan_oracle_arb(graph, "ERG", "SigUSD", Decimal("1.25"))
        everything = scan_oracle_arb(graph, "ERG", "SigUSD", Decimal("1.25"), min_window_output=0)

        assert [w.pool_ids for w in filtered.windows] == [("main",)]
        assert [w.pool_ids for w in everything.windows] == [("main",), ("tiny",)]
        assert everything.windows[1].output_at_max < 10

    def test_totals(self):
        snapshot = scan_oracle_arb(
            PoolGraph([MAIN, TINY]), "ERG", "SigUSD", Decimal("1.25"), min_window_output=0
        )
        assert snapshot.total_output == sum(w.output_at_max for w in snapshot.windows)
        assert snapshot.total_input == sum(w.max_input for w in snapshot.windows)

    @pytest.mark.parametrize("reference", ["1.3", "2"])
    def test_spot_not_better_than_reference(self, reference):
        snapshot = scan_oracle_arb(PoolGraph([MAIN]), "ERG", "SigUSD", Decimal(reference))
        assert snapshot.windows == ()

    @pytest.mark.parametrize("reference", [0, -1])
    def test_non_positive_reference(self, reference):
        snapshot = scan_oracle_arb(PoolGraph([MAIN]), "ERG", "SigUSD", reference)
        assert snapshot.windows == ()
        assert not snapshot.partial

    def test_multi_hop_window(self, scenario_graph):
        # ERG → X → SigUSD spot is 500 SigUSD per ERG
        snapshot = scan_oracle_arb(scenario_graph, "ERG", "SigUSD", Decimal(400))

        assert len(snapshot.windows) == 1
        window = snapshot.windows[0]
        assert window.hops == 2
        assert window.spot_rate == Decimal(500)
        assert window.rate_at_max >= 400

    def test_budget_exhaustion_is_partial(self):
        budget = SearchBudget(time_budget_ms=None, max_paths=1)
        snapshot = scan_oracle_arb(
            PoolGraph([MAIN, TINY]), "ERG", "SigUSD", Decimal("1.25"), budget=budget
        )
        assert snapshot.partial
        assert len(snapshot.windows) <= 1


def test_snapshot_serializes():
    data = scan_oracle_arb(PoolGraph([MAIN]), "ERG", "SigUSD", Decimal("1.25")).to_dict()
    assert data["reference_rate"] == 1.25
    assert data["windows"][0]["pool_ids"] == ["main"]
    assert isinstance(data["windows"][0]["max_input"], int)
