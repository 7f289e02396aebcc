"""
Smart Router.

Route optimization and arbitrage detection over constant-product AMM pools:
multi-hop route search, split optimization, liquidity depth tiers,
cross-protocol comparison and oracle-relative / circular arbitrage scans.
"""

PROJECT_NAME = "smart-router"

from smart_router.version import __version__
from smart_router.arb import scan_circular_arbs, scan_oracle_arb
from smart_router.compare import FixedRateMint, compare_options
from smart_router.depth import all_depth_tiers, depth_tiers
from smart_router.exceptions import (
    ConfigurationError,
    CorruptReservesError,
    IlliquidPoolError,
    InsufficientLiquidityError,
    InvalidAmountError,
    NoRouteFoundError,
    SearchBudgetExceededError,
    SmartRouterError,
    ValidationError,
)
from smart_router.graph import PoolGraph
from smart_router.models import Pool, Route, RouteQuote, RoutesResponse, Token
from smart_router.quote import quote, quote_for_output
from smart_router.registry import PoolRegistry
from smart_router.search import find_routes, find_routes_by_output
from smart_router.service import RouterService
from smart_router.split import optimize_split

__all__ = [
    "PROJECT_NAME",
    "__version__",
    "ConfigurationError",
    "CorruptReservesError",
    "FixedRateMint",
    "IlliquidPoolError",
    "InsufficientLiquidityError",
    "InvalidAmountError",
    "NoRouteFoundError",
    "Pool",
    "PoolGraph",
    "PoolRegistry",
    "Route",
    "RouteQuote",
    "RouterService",
    "RoutesResponse",
    "SearchBudgetExceededError",
    "SmartRouterError",
    "Token",
    "ValidationError",
    "all_depth_tiers",
    "compare_options",
    "depth_tiers",
    "find_routes",
    "find_routes_by_output",
    "optimize_split",
    "quote",
    "quote_for_output",
    "scan_circular_arbs",
    "scan_oracle_arb",
]
