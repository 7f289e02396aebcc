"""
Route search over a pool graph snapshot.

Enumerates simple paths up to a hop bound, prices each one hop by hop
through the quote engine and ranks the survivors. A path whose quote fails
is dropped on its own; an empty candidate set is an ordinary empty result.
"""

from decimal import Decimal
from typing import List, Optional, Sequence

from .budget import SearchBudget
from .constants import (
    DEFAULT_IMPACT_TIERS_PCT,
    DEFAULT_MAX_HOPS,
    DEFAULT_MAX_ROUTES,
    DEFAULT_MAX_SPLITS,
    DEFAULT_SLIPPAGE_PCT,
    DEFAULT_SPLIT_STEPS,
    MIN_SPLIT_IMPROVEMENT_PCT,
    PATH_SEPARATOR,
    QueryDirection,
)
from .depth import all_depth_tiers
from .exceptions import QuoteError, SearchBudgetExceededError, ValidationError
from .graph import Path, PoolGraph
from .models import Amount, Route, RouteQuote, RoutesResponse
from .quote import marginal_rate, quote, quote_for_output, quote_hop, validate_amount
from .split import optimize_split
from .utils import get_logger, precise, to_decimal

logger = get_logger(__name__)


# ============================================================================
# Path evaluation
# ============================================================================


def path_label(graph: PoolGraph, path: Path) -> str:
    names = [graph.token(path[0].token_in).name]
    names.extend(graph.token(leg.token_out).name for leg in path)
    return PATH_SEPARATOR.join(names)


def quote_path(path: Path, amount_in: Amount) -> Route:
    """Chain forward quotes along ``path``; each output feeds the next hop."""
    hops = []
    amount = amount_in
    for leg in path:
        hop = quote_hop(leg.pool, leg.token_in, amount)
        hops.append(hop)
        amount = hop.amount_out
    return Route(tuple(hops))


def quote_path_reverse(path: Path, amount_out: Amount) -> Route:
    """
    Walk ``path`` backwards from a target final output.

    Each hop's whole-unit input is solved from the input the next hop needs,
    then every hop is re-priced forward from its own input. A hop's output
    can therefore exceed what the next hop consumes, and the final output is
    at least ``amount_out``.
    """
    required = []
    amount = amount_out
    for leg in reversed(path):
        amount = quote_for_output(leg.pool, leg.token_out, amount)
        required.append(amount)
    required.reverse()
    return Route(
        tuple(quote_hop(leg.pool, leg.token_in, amount_in) for leg, amount_in in zip(path, required))
    )


def path_output(path: Path, amount_in: Amount) -> Decimal:
    """Final output of ``path`` for ``amount_in``, without building hops."""
    amount = amount_in
    for leg in path:
        amount = quote(leg.pool, leg.token_in, amount).amount_out
    return amount


def path_marginal_rate(path: Path) -> Decimal:
    """Best achievable raw rate along ``path``: spot product net of fees."""
    with precise():
        rate = Decimal(1)
        for leg in path:
            rate *= marginal_rate(leg.pool, leg.token_in)
        return rate


def to_human_rate(graph: PoolGraph, path: Path, raw_rate: Decimal) -> Decimal:
    """Convert a raw-unit rate along ``path`` into display units."""
    decimals_in = graph.token(path[0].token_in).decimals
    decimals_out = graph.token(path[-1].token_out).decimals
    with precise():
        return raw_rate.scaleb(decimals_in - decimals_out)


def _rank_key_by_output(route: Route):
    return (-route.total_output, route.hop_count, route.total_price_impact)


def _rank_key_by_input(route: Route):
    return (route.total_input, route.hop_count, route.total_price_impact)


def _check_bounds(max_hops: int, max_routes: int, slippage_pct: Decimal) -> None:
    if max_hops < 1:
        raise ValidationError(f"max_hops must be at least 1, got {max_hops}")
    if max_routes < 1:
        raise ValidationError(f"max_routes must be at least 1, got {max_routes}")
    if not (Decimal(0) <= slippage_pct < Decimal(100)):
        raise ValidationError(f"slippage_pct must be in [0, 100), got {slippage_pct}")


def _below_reference(
    graph: PoolGraph, path: Path, reference_rate: Optional[Decimal]
) -> bool:
    if reference_rate is None:
        return False
    return to_human_rate(graph, path, path_marginal_rate(path)) < reference_rate


# ============================================================================
# Queries
# ============================================================================


def find_routes(
    graph: PoolGraph,
    token_in: str,
    token_out: str,
    amount_in: Amount,
    max_hops: int = DEFAULT_MAX_HOPS,
    max_routes: int = DEFAULT_MAX_ROUTES,
    slippage_pct=DEFAULT_SLIPPAGE_PCT,
    reference_rate=None,
    budget: Optional[SearchBudget] = None,
    impact_tiers_pct: Sequence[Decimal] = DEFAULT_IMPACT_TIERS_PCT,
    max_splits: int = DEFAULT_MAX_SPLITS,
    split_steps: int = DEFAULT_SPLIT_STEPS,
    min_split_improvement_pct=MIN_SPLIT_IMPROVEMENT_PCT,
) -> RoutesResponse:
    """
    Ranked routes selling exactly ``amount_in`` raw units of ``token_in``.

    Args:
        graph: Snapshot to search
        token_in: Source token id
        token_out: Destination token id
        amount_in: Input in raw units of the source token
        max_hops: Longest path considered
        max_routes: Number of ranked routes returned
        slippage_pct: Tolerance used for each route's min_output
        reference_rate: If set, paths whose best possible display rate is
            below it are skipped
        budget: Time and path allowance; running out yields ``partial=True``

    Returns:
        RoutesResponse ranked by output descending, then fewer hops, then
        lower impact. The split is attached only when it beats the best
        single route by at least ``min_split_improvement_pct``.

    Raises:
        InvalidAmountError: amount_in is non-positive or malformed
        ValidationError: bad bounds or identical tokens
    """
    amount = validate_amount(amount_in, "amount_in")
    slippage = to_decimal(slippage_pct)
    _check_bounds(max_hops, max_routes, slippage)
    if token_in == token_out:
        raise ValidationError(f"Source and target are both {token_in}")
    reference = to_decimal(reference_rate) if reference_rate is not None else None

    candidates: List[Route] = []
    partial = False
    dropped = 0
    try:
        for path in graph.find_paths(token_in, token_out, max_hops, budget):
            try:
                if _below_reference(graph, path, reference):
                    continue
                candidates.append(quote_path(path, amount))
            except QuoteError as e:
                dropped += 1
                logger.debug("Dropping path %s: %s", path_label(graph, path), e)
    except SearchBudgetExceededError as e:
        partial = True
        logger.warning("Route search %s → %s cut short: %s", token_in, token_out, e)

    candidates.sort(key=_rank_key_by_output)
    routes = tuple(
        RouteQuote(route, route.min_output(slippage), slippage)
        for route in candidates[:max_routes]
    )

    depth = all_depth_tiers(graph, token_in, impact_tiers_pct) if routes else ()

    split = None
    if len(candidates) >= 2:
        detail = optimize_split(candidates, amount, max_splits, split_steps)
        if detail.worth_splitting(to_decimal(min_split_improvement_pct)):
            split = detail

    logger.info(
        "Routes %s → %s for %s: %d found, %d dropped%s%s",
        token_in,
        token_out,
        amount,
        len(candidates),
        dropped,
        ", split attached" if split else "",
        ", partial" if partial else "",
    )
    return RoutesResponse(
        token_in=token_in,
        token_out=token_out,
        direction=QueryDirection.EXACT_INPUT,
        routes=routes,
        depth_tiers=depth,
        split=split,
        partial=partial,
    )


def find_routes_by_output(
    graph: PoolGraph,
    token_in: str,
    token_out: str,
    amount_out: Amount,
    max_hops: int = DEFAULT_MAX_HOPS,
    max_routes: int = DEFAULT_MAX_ROUTES,
    slippage_pct=DEFAULT_SLIPPAGE_PCT,
    reference_rate=None,
    budget: Optional[SearchBudget] = None,
    impact_tiers_pct: Sequence[Decimal] = DEFAULT_IMPACT_TIERS_PCT,
) -> RoutesResponse:
    """
    Ranked routes delivering at least ``amount_out`` raw units of ``token_out``.

    Each path is priced backwards through ``quote_for_output`` to a whole-unit
    input; paths that cannot pay out the amount are dropped. Ranked by input
    ascending, then fewer hops, then lower impact. No split is computed for
    this direction.
    """
    desired = validate_amount(amount_out, "amount_out")
    slippage = to_decimal(slippage_pct)
    _check_bounds(max_hops, max_routes, slippage)
    if token_in == token_out:
        raise ValidationError(f"Source and target are both {token_in}")
    reference = to_decimal(reference_rate) if reference_rate is not None else None

    candidates: List[Route] = []
    partial = False
    try:
        for path in graph.find_paths(token_in, token_out, max_hops, budget):
            try:
                if _below_reference(graph, path, reference):
                    continue
                candidates.append(quote_path_reverse(path, desired))
            except QuoteError as e:
                logger.debug("Dropping path %s: %s", path_label(graph, path), e)
    except SearchBudgetExceededError as e:
        partial = True
        logger.warning("Reverse search %s → %s cut short: %s", token_in, token_out, e)

    candidates.sort(key=_rank_key_by_input)
    routes = tuple(
        RouteQuote(route, route.min_output(slippage), slippage)
        for route in candidates[:max_routes]
    )
    depth = all_depth_tiers(graph, token_in, impact_tiers_pct) if routes else ()

    logger.info(
        "Reverse routes %s → %s for %s out: %d found%s",
        token_in,
        token_out,
        desired,
        len(candidates),
        ", partial" if partial else "",
    )
    return RoutesResponse(
        token_in=token_in,
        token_out=token_out,
        direction=QueryDirection.EXACT_OUTPUT,
        routes=routes,
        depth_tiers=depth,
        split=None,
        partial=partial,
    )
