"""
Split optimizer: spread one input over independent routes.

Each route's output is concave in its input, so the optimum equalizes
marginal output across every route that receives anything. Two solvers:

- Waterfall (closed form), when every candidate is a single pool. With
  a = 1 - fee, the marginal output of a pool after x is
  ``Ro*a*Ri / (Ri + a*x)^2``; equalizing it under ``sum(x) = total`` gives
  ``x_i = sqrt(Ro_i*Ri_i/a_i) * T / W - Ri_i/a_i`` where
  ``T = total + sum(Ri/a)`` and ``W = sum(sqrt(Ro*Ri/a))``. Pools that come
  out non-positive are dropped and the rest re-solved.
- Incremental, otherwise: hand out ``steps`` equal chunks, each to the route
  with the best marginal gain for that chunk.
"""

from decimal import Decimal
from typing import List, Sequence, Union

from .constants import DEFAULT_MAX_SPLITS, DEFAULT_SPLIT_STEPS
from .exceptions import NoRouteFoundError, QuoteError, ValidationError
from .models import Route, RouteQuote, SplitAllocation, SplitRouteDetail
from .quote import route_output, validate_amount
from .utils import calculate_percentage, floor_int, get_logger, precise

logger = get_logger(__name__)

# Chunk gains this close to the best share the chunk.
_TIE_TOLERANCE = Decimal("1e-12")


def _as_route(candidate: Union[Route, RouteQuote]) -> Route:
    return candidate.route if isinstance(candidate, RouteQuote) else candidate


def _output_at(route: Route, amount_in: Decimal) -> Decimal:
    if amount_in <= 0:
        return Decimal(0)
    return route_output(route, amount_in)


def select_independent(routes: Sequence[Route], max_splits: int) -> List[Route]:
    """Best-first routes that share no pool with a better one."""
    chosen: List[Route] = []
    used = set()
    for route in routes:
        if used.intersection(route.pool_ids):
            continue
        chosen.append(route)
        used.update(route.pool_ids)
        if len(chosen) >= max_splits:
            break
    return chosen


def waterfall_allocation(routes: Sequence[Route], total: Decimal) -> List[Decimal]:
    """Closed-form optimal inputs for single-pool routes."""
    with precise():
        params = []
        for route in routes:
            hop = route.hops[0]
            a = Decimal(1) - hop.fee_rate
            ri = Decimal(hop.reserve_in)
            ro = Decimal(hop.reserve_out)
            params.append((ri / a, (ro * ri / a).sqrt()))

        active = set(range(len(routes)))
        alloc = {}
        for _ in range(len(routes)):
            t = total + sum(params[i][0] for i in active)
            w = sum(params[i][1] for i in active)
            alloc = {i: params[i][1] * t / w - params[i][0] for i in active}
            dropped = {i for i, x in alloc.items() if x <= 0}
            if not dropped or dropped == active:
                break
            active -= dropped

        return [max(alloc.get(i, Decimal(0)), Decimal(0)) for i in range(len(routes))]


def incremental_allocation(
    routes: Sequence[Route], total: Decimal, steps: int
) -> List[Decimal]:
    """Greedy marginal allocation in ``steps`` equal chunks."""
    if steps < 1:
        raise ValidationError(f"steps must be at least 1, got {steps}")

    with precise():
        chunk = total / steps
        alloc = [Decimal(0)] * len(routes)
        outputs = [Decimal(0)] * len(routes)

        for _ in range(steps):
            gains = []
            for i, route in enumerate(routes):
                try:
                    gains.append(_output_at(route, alloc[i] + chunk) - outputs[i])
                except QuoteError:
                    gains.append(Decimal(0))
            best = max(gains)
            if best <= 0:
                break

            tied = [i for i, g in enumerate(gains) if g >= best * (1 - _TIE_TOLERANCE)]
            tied_gain = sum(gains[i] for i in tied)
            for i in tied:
                alloc[i] += chunk * gains[i] / tied_gain
                outputs[i] = _output_at(routes[i], alloc[i])

        return alloc


def _quantize(amounts: List[Decimal], total: Decimal) -> List[Decimal]:
    """Floor every share to a raw unit; the largest share absorbs the rest."""
    keep = [i for i, x in enumerate(amounts) if x > 0]
    if not keep:
        return [total] + [Decimal(0)] * (len(amounts) - 1)
    largest = max(keep, key=lambda i: amounts[i])
    result = [Decimal(0)] * len(amounts)
    for i in keep:
        if i != largest:
            result[i] = Decimal(floor_int(amounts[i]))
    result[largest] = total - sum(result)
    return result


def optimize_split(
    routes: Sequence[Union[Route, RouteQuote]],
    total_input,
    max_splits: int = DEFAULT_MAX_SPLITS,
    steps: int = DEFAULT_SPLIT_STEPS,
) -> SplitRouteDetail:
    """
    Allocate ``total_input`` across independent candidate routes.

    Routes are re-priced from their own reserve snapshots, so the candidates
    may have been quoted at any size. Only single-hop allocations are marked
    executable.

    Raises:
        InvalidAmountError: total_input is non-positive or malformed
        NoRouteFoundError: no candidate can be priced at all
    """
    total = validate_amount(total_input, "total_input")
    if max_splits < 1:
        raise ValidationError(f"max_splits must be at least 1, got {max_splits}")

    priced = []
    for candidate in routes:
        route = _as_route(candidate)
        try:
            priced.append((route_output(route, total), route))
        except QuoteError as e:
            logger.debug("Split candidate %s dropped: %s", route.path_label, e)
    if not priced:
        raise NoRouteFoundError("No route can carry the split input")

    priced.sort(key=lambda item: (-item[0], item[1].hop_count))
    best_single_output, best_route = priced[0]
    candidates = select_independent([route for _, route in priced], max_splits)

    if len(candidates) == 1:
        amounts = [total]
    elif all(route.is_single_hop for route in candidates):
        amounts = waterfall_allocation(candidates, total)
    else:
        amounts = incremental_allocation(candidates, total, steps)
    amounts = _quantize(amounts, total)

    with precise():
        allocations = []
        total_output = Decimal(0)
        fraction_left = Decimal(1)
        kept = [(route, x) for route, x in zip(candidates, amounts) if x > 0]
        for n, (route, amount) in enumerate(kept):
            output = route_output(route, amount)
            fraction = fraction_left if n == len(kept) - 1 else amount / total
            fraction_left -= fraction
            total_output += output
            allocations.append(
                SplitAllocation(
                    fraction=fraction,
                    route=route,
                    input_amount=amount,
                    output_amount=output,
                    executable=route.is_single_hop,
                )
            )

        if total_output < best_single_output:
            allocations = [
                SplitAllocation(
                    fraction=Decimal(1),
                    route=best_route,
                    input_amount=total,
                    output_amount=best_single_output,
                    executable=best_route.is_single_hop,
                )
            ]
            total_output = best_single_output

        improvement = calculate_percentage(
            total_output - best_single_output, best_single_output
        )

    logger.debug(
        "Split over %d routes: %s vs single %s (%+.4f%%)",
        len(allocations),
        total_output,
        best_single_output,
        improvement,
    )
    return SplitRouteDetail(
        allocations=tuple(allocations),
        total_input=total,
        total_output=total_output,
        best_single_output=best_single_output,
        improvement_pct=improvement,
    )
