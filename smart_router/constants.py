"""
Constants and enums for the smart router.

Centralizes defaults for search, split, depth and scanner tuning so the
config schema and the library functions agree on them.
"""

from decimal import Decimal
from enum import Enum


class QueryDirection(Enum):
    """Which side of a swap the caller fixes."""

    EXACT_INPUT = "exact_input"
    EXACT_OUTPUT = "exact_output"


class OutputFormat(Enum):
    """CLI output formats."""

    TABLE = "table"
    JSON = "json"


DECIMAL_PRECISION = 50

# Route search
DEFAULT_MAX_HOPS = 3
DEFAULT_MAX_ROUTES = 5
DEFAULT_SLIPPAGE_PCT = Decimal("0.5")
DEFAULT_MAX_POOLS_PER_PAIR = 3

# Split optimizer
DEFAULT_MAX_SPLITS = 3
DEFAULT_SPLIT_STEPS = 100
MIN_SPLIT_IMPROVEMENT_PCT = Decimal("0.5")

# Depth profiler, percent
DEFAULT_IMPACT_TIERS_PCT = (
    Decimal("0.5"),
    Decimal("1"),
    Decimal("2"),
    Decimal("5"),
    Decimal("10"),
)

# Scanners
DEFAULT_TX_FEE = 1_100_000
DEFAULT_TERNARY_ITERATIONS = 100
DEFAULT_BINARY_ITERATIONS = 64
DEFAULT_MAX_IMPACT_PCT = Decimal("10")
MIN_WINDOW_OUTPUT = 10

# Budget
DEFAULT_TIME_BUDGET_MS = 2000
DEFAULT_MAX_PATHS = 10_000

PATH_SEPARATOR = " → "
