"""
Circular arbitrage scanner.

Walks every closed cycle through the base token and sizes the trade that
maximizes ``output(x) - x``. A chain of constant-product swaps is concave
in its input, so the profit has a single peak and an integer ternary
search finds it. The search is capped; whatever bracket is left when the
cap is hit gets a short linear scan.
"""

import time
from decimal import Decimal
from typing import Callable, List, Optional

from ..budget import SearchBudget
from ..constants import DEFAULT_MAX_HOPS, DEFAULT_TERNARY_ITERATIONS, DEFAULT_TX_FEE
from ..exceptions import QuoteError, SearchBudgetExceededError, ValidationError
from ..graph import PoolGraph
from ..models import CircularArb, CircularArbSnapshot
from ..search import path_label, path_marginal_rate, path_output, quote_path
from ..utils import calculate_percentage, elapsed_ms, get_logger

logger = get_logger(__name__)

# Points probed when the ternary search stops with a wide bracket.
_FINAL_SCAN_POINTS = 16


def ternary_search_max(
    profit: Callable[[int], Decimal],
    lo: int,
    hi: int,
    iterations: int = DEFAULT_TERNARY_ITERATIONS,
    budget: Optional[SearchBudget] = None,
) -> int:
    """Integer argmax of a unimodal function on [lo, hi]."""
    if lo > hi:
        raise ValidationError(f"Empty search range [{lo}, {hi}]")

    for _ in range(iterations):
        if hi - lo <= 2:
            break
        if budget is not None:
            budget.check()
        third = (hi - lo) // 3
        m1 = lo + third
        m2 = hi - third
        if profit(m1) < profit(m2):
            lo = m1 + 1
        else:
            hi = m2

    if hi - lo <= _FINAL_SCAN_POINTS:
        candidates = range(lo, hi + 1)
    else:
        step = (hi - lo) // _FINAL_SCAN_POINTS
        candidates = list(range(lo, hi, step)) + [hi]
    return max(candidates, key=lambda x: (profit(x), -x))


def scan_circular_arbs(
    graph: PoolGraph,
    base: str,
    max_hops: int = DEFAULT_MAX_HOPS,
    tx_fee: int = DEFAULT_TX_FEE,
    iterations: int = DEFAULT_TERNARY_ITERATIONS,
    budget: Optional[SearchBudget] = None,
) -> CircularArbSnapshot:
    """
    Find profitable cycles base → ... → base of up to ``max_hops`` swaps.

    Cycles whose zero-size rate product is not above 1 cannot profit at any
    size and are skipped without searching. A cycle is reported only when
    its optimum clears ``tx_fee``; results are sorted by net profit.
    """
    started = time.perf_counter()
    windows: List[CircularArb] = []
    partial = False
    evaluated = 0

    try:
        for cycle in graph.find_cycles(base, max_hops, budget):
            label = path_label(graph, cycle)
            try:
                if path_marginal_rate(cycle) <= 1:
                    continue
                evaluated += 1

                def profit(amount_in: int, cycle=cycle) -> Decimal:
                    return path_output(cycle, amount_in) - amount_in

                upper, _ = cycle[0].pool.reserves_for(base)
                optimal = ternary_search_max(profit, 1, upper, iterations, budget)
                route = quote_path(cycle, optimal)
            except QuoteError as e:
                logger.debug("Dropping cycle %s: %s", label, e)
                continue

            gross = route.total_output - optimal
            net = gross - tx_fee
            if net <= 0:
                continue
            windows.append(
                CircularArb(
                    path_label=label,
                    hops=route.hop_count,
                    pool_ids=route.pool_ids,
                    optimal_input=optimal,
                    output=route.total_output,
                    gross_profit=gross,
                    tx_fee=tx_fee,
                    net_profit=net,
                    profit_pct=calculate_percentage(net, Decimal(optimal)),
                    price_impact=route.total_price_impact,
                    route=route,
                )
            )
    except SearchBudgetExceededError as e:
        partial = True
        logger.warning("Circular scan from %s cut short: %s", base, e)

    windows.sort(key=lambda w: w.net_profit, reverse=True)
    total_net = sum((w.net_profit for w in windows), Decimal(0))

    scan_ms = elapsed_ms(started)
    logger.info(
        "Circular scan from %s: %d/%d candidate cycles profitable in %.1fms%s",
        base,
        len(windows),
        evaluated,
        scan_ms,
        " (partial)" if partial else "",
    )
    return CircularArbSnapshot(
        windows=tuple(windows),
        total_net_profit=total_net,
        scan_time_ms=scan_ms,
        partial=partial,
    )
