"""
Shared fixtures for smart router tests.
"""

from decimal import Decimal
from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry

from smart_router.graph import PoolGraph
from smart_router.models import Pool, Token

EXAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "router_example.yaml"


@pytest.fixture
def erg():
    return Token("ERG", "ERG", 9)


@pytest.fixture
def sigusd():
    return Token("SigUSD", "SigUSD", 2)


@pytest.fixture
def token_x():
    return Token("X", "X", 0)


@pytest.fixture
def scenario_pools(erg, token_x, sigusd):
    """ERG/X 1e9/2000 and X/SigUSD 2000/50000, 0.3% fee each."""
    return [
        Pool("pool_a", erg, token_x, 1_000_000_000, 2_000, Decimal("0.003")),
        Pool("pool_b", token_x, sigusd, 2_000, 50_000, Decimal("0.003")),
    ]


@pytest.fixture
def scenario_graph(scenario_pools):
    return PoolGraph(scenario_pools)


@pytest.fixture
def example_config_path():
    return EXAMPLE_CONFIG


@pytest.fixture
def test_registry():
    """Create a test-specific prometheus registry"""
    return CollectorRegistry()
