"""
Oracle-relative arbitrage scanner.

Finds paths from the base token to a target whose pool rate beats an
external reference rate, and sizes each window: the largest input whose
effective rate still clears the reference and whose impact stays under a
ceiling.
"""

import time
from decimal import Decimal
from typing import List, Optional

from ..budget import SearchBudget
from ..constants import (
    DEFAULT_BINARY_ITERATIONS,
    DEFAULT_MAX_HOPS,
    DEFAULT_MAX_IMPACT_PCT,
    MIN_WINDOW_OUTPUT,
)
from ..depth import max_input_where
from ..exceptions import QuoteError, SearchBudgetExceededError
from ..graph import Path, PoolGraph
from ..models import OracleArbSnapshot, OracleArbWindow
from ..search import path_label, path_output, quote_path, to_human_rate
from ..utils import calculate_percentage, elapsed_ms, get_logger, precise, scale_to_human, to_decimal

logger = get_logger(__name__)


def _spot_product(path: Path) -> Decimal:
    with precise():
        product = Decimal(1)
        for leg in path:
            reserve_in, reserve_out = leg.pool.reserves_for(leg.token_in)
            product *= Decimal(reserve_out) / Decimal(reserve_in)
        return product


def _size_window(
    graph: PoolGraph,
    path: Path,
    reference: Decimal,
    max_impact_pct: Decimal,
    iterations: int,
    budget: Optional[SearchBudget],
) -> int:
    spot = _spot_product(path)

    def accept(amount_in: int) -> bool:
        output = path_output(path, amount_in)
        with precise():
            raw_rate = output / amount_in
            impact = (Decimal(1) - raw_rate / spot) * 100
        return (
            to_human_rate(graph, path, raw_rate) >= reference
            and impact <= max_impact_pct
        )

    upper, _ = path[0].pool.reserves_for(path[0].token_in)
    return max_input_where(accept, upper, iterations, budget)


def scan_oracle_arb(
    graph: PoolGraph,
    base: str,
    target: str,
    reference_rate,
    max_hops: int = DEFAULT_MAX_HOPS,
    max_impact_pct=DEFAULT_MAX_IMPACT_PCT,
    min_window_output: int = MIN_WINDOW_OUTPUT,
    iterations: int = DEFAULT_BINARY_ITERATIONS,
    budget: Optional[SearchBudget] = None,
) -> OracleArbSnapshot:
    """
    Scan every path base → target for rates better than ``reference_rate``.

    Args:
        graph: Snapshot to scan
        base: Token spent
        target: Token acquired
        reference_rate: External rate in display units of target per base
        max_hops: Longest path considered
        max_impact_pct: Ceiling on end-to-end impact when sizing a window
        min_window_output: Windows paying out fewer raw units are dust
        iterations: Cap on binary search halvings per window
        budget: Time and path allowance; running out yields ``partial=True``

    Returns:
        Snapshot with windows sorted by output descending
    """
    started = time.perf_counter()
    reference = to_decimal(reference_rate)
    impact_cap = to_decimal(max_impact_pct)
    if not reference.is_finite() or reference <= 0:
        logger.warning("Oracle scan skipped: reference rate %s is not positive", reference_rate)
        return OracleArbSnapshot(reference_rate=reference, scan_time_ms=elapsed_ms(started))

    windows: List[OracleArbWindow] = []
    partial = False
    try:
        for path in graph.find_paths(base, target, max_hops, budget):
            label = path_label(graph, path)
            try:
                spot_rate = to_human_rate(graph, path, _spot_product(path))
                if spot_rate <= reference:
                    continue
                max_input = _size_window(
                    graph, path, reference, impact_cap, iterations, budget
                )
                if max_input == 0:
                    continue
                route = quote_path(path, max_input)
            except QuoteError as e:
                logger.debug("Dropping path %s: %s", label, e)
                continue

            if route.total_output < min_window_output:
                continue

            windows.append(
                OracleArbWindow(
                    path_label=label,
                    hops=route.hop_count,
                    pool_ids=route.pool_ids,
                    spot_rate=spot_rate,
                    discount_pct=calculate_percentage(spot_rate - reference, reference),
                    rate_at_max=route.effective_rate_human,
                    max_input=max_input,
                    output_at_max=route.total_output,
                    output_at_max_human=scale_to_human(
                        route.total_output, route.token_out.decimals
                    ),
                    price_impact_at_max=route.total_price_impact,
                    route=route,
                )
            )
    except SearchBudgetExceededError as e:
        partial = True
        logger.warning("Oracle scan %s → %s cut short: %s", base, target, e)

    windows.sort(key=lambda w: w.output_at_max, reverse=True)
    total_output = sum((w.output_at_max for w in windows), Decimal(0))
    total_input = sum(w.max_input for w in windows)

    scan_ms = elapsed_ms(started)
    logger.info(
        "Oracle scan %s → %s @ %s: %d windows in %.1fms%s",
        base,
        target,
        reference,
        len(windows),
        scan_ms,
        " (partial)" if partial else "",
    )
    return OracleArbSnapshot(
        reference_rate=reference,
        windows=tuple(windows),
        total_output=total_output,
        total_input=total_input,
        scan_time_ms=scan_ms,
        partial=partial,
    )
