"""
Liquidity depth profiling.

For a constant-product pool with fee f, the end-to-end price impact of
selling x is

    impact(x) = 1 - a*Ri / (Ri + a*x),  a = 1 - f

which starts at f and grows monotonically towards 1. Solving for the
largest x with impact(x) <= p gives

    x = Ri * (p - f) / ((1 - p) * (1 - f))

which reduces to ``Ri * p / (1 - p)`` for a fee-free pool. The closed form is
floored to a raw unit and then nudged by at most a couple of units so the
returned bound holds exactly under the quote engine's own arithmetic.
"""

from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence, Tuple

from .budget import SearchBudget
from .constants import DEFAULT_BINARY_ITERATIONS, DEFAULT_IMPACT_TIERS_PCT
from .exceptions import ValidationError
from .graph import PoolGraph
from .models import DepthTier, Pool
from .quote import quote, spot_price
from .utils import floor_int, get_logger, precise, to_decimal

logger = get_logger(__name__)

# Rounding nudges; the closed form is off by at most one unit either way.
_MAX_ADJUST_STEPS = 4


def _impact_pct(pool: Pool, token_in: str, amount_in: int) -> Decimal:
    return quote(pool, token_in, amount_in).price_impact


def max_input_for_impact(pool: Pool, token_in: str, impact_pct: Decimal) -> int:
    """Largest integer input whose price impact stays within ``impact_pct``."""
    p_pct = to_decimal(impact_pct)
    if not (Decimal(0) < p_pct < Decimal(100)):
        raise ValidationError(f"Impact tier must be in (0, 100), got {impact_pct}")

    spot_price(pool, token_in)  # raises IlliquidPoolError on empty reserves
    reserve_in, _ = pool.reserves_for(token_in)

    with precise():
        p = p_pct / 100
        f = pool.fee_rate
        if p <= f:
            return 0
        x = Decimal(reserve_in) * (p - f) / ((Decimal(1) - p) * (Decimal(1) - f))
        max_input = floor_int(x)

    for _ in range(_MAX_ADJUST_STEPS):
        if max_input > 0 and _impact_pct(pool, token_in, max_input) > p_pct:
            max_input -= 1
        elif _impact_pct(pool, token_in, max_input + 1) <= p_pct:
            max_input += 1
        else:
            break
    return max_input


def depth_tiers(
    pool: Pool,
    token_in: str,
    impact_tiers_pct: Sequence[Decimal] = DEFAULT_IMPACT_TIERS_PCT,
) -> DepthTier:
    """Max input for each impact tier (percent), in the order given."""
    tiers: Tuple[Tuple[Decimal, int], ...] = tuple(
        (to_decimal(p), max_input_for_impact(pool, token_in, p))
        for p in impact_tiers_pct
    )
    return DepthTier(
        pool_id=pool.pool_id,
        token_in=pool.token(token_in),
        token_out=pool.other(token_in),
        tiers=tiers,
    )


def all_depth_tiers(
    graph: PoolGraph,
    token_in: str,
    impact_tiers_pct: Sequence[Decimal] = DEFAULT_IMPACT_TIERS_PCT,
    token_out: Optional[str] = None,
) -> Tuple[DepthTier, ...]:
    """Depth tiers for every pool edge leaving ``token_in``.

    With ``token_out`` set, only pools paying out that token are profiled.
    """
    legs: Iterable = graph.edges_from(token_in)
    if token_out is not None:
        legs = [leg for leg in legs if leg.token_out == token_out]
    return tuple(depth_tiers(leg.pool, token_in, impact_tiers_pct) for leg in legs)


def max_input_where(
    accept: Callable[[int], bool],
    upper: int,
    iterations: int = DEFAULT_BINARY_ITERATIONS,
    budget: Optional[SearchBudget] = None,
) -> int:
    """
    Largest integer in [1, upper] accepted by a monotone predicate.

    ``accept`` must hold on a prefix of the range and fail afterwards. The
    search is capped at ``iterations`` halvings; on hitting the cap the best
    accepted value found so far is returned. Returns 0 if nothing is accepted.
    """
    if upper < 1 or not accept(1):
        return 0
    if accept(upper):
        return upper

    lo, hi = 1, upper
    for _ in range(iterations):
        if hi - lo <= 1:
            break
        if budget is not None:
            budget.check()
        mid = (lo + hi) // 2
        if accept(mid):
            lo = mid
        else:
            hi = mid
    return lo
