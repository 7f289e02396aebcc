#!/usr/bin/env python3
"""
Smart router CLI.

Loads pools from a YAML config and answers routing and arbitrage queries
against them, printing tables or JSON.

Usage:
    python3 run_router.py --config configs/router_example.yaml routes ERG SigUSD 100000000
    python3 run_router.py --config configs/router_example.yaml circular
"""

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import List

from prometheus_client import CollectorRegistry
from tabulate import tabulate

import logging_config
from smart_router.config_loader import load_router_config
from smart_router.constants import OutputFormat
from smart_router.exceptions import ConfigurationError, SmartRouterError
from smart_router.metrics import RouterMetrics
from smart_router.models import (
    AcquisitionComparison,
    CircularArbSnapshot,
    DepthTier,
    OracleArbSnapshot,
    RoutesResponse,
)
from smart_router.service import RouterService
from smart_router.utils import format_pct, safe_json_dump
from smart_router.version import get_version


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value}")


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="AMM route optimizer and arbitrage scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Best routes selling 0.1 ERG (raw nanoERG) for SigUSD
  python3 run_router.py routes ERG SigUSD 100000000

  # Input needed to receive 50.00 SigUSD (raw cents)
  python3 run_router.py by-output ERG SigUSD 5000

  # Depth tiers for every pool ERG can be sold into
  python3 run_router.py depth ERG

  # DEX vs configured mints
  python3 run_router.py compare SigUSD 100000000

  # Windows below a reference of 12.5 SigUSD per ERG
  python3 run_router.py oracle --reference-rate 12.5

  # Self-financing cycles through the base token, as JSON
  python3 run_router.py --format json circular
        """,
    )

    parser.add_argument(
        "--config",
        default="configs/router_example.yaml",
        help="Path to config YAML file (default: configs/router_example.yaml)",
    )
    parser.add_argument(
        "--format",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.TABLE.value,
        help="Output format (default: table)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--quiet", "-q", action="store_true", help="Warnings only")
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")

    sub = parser.add_subparsers(dest="command", required=True)

    routes = sub.add_parser("routes", help="Rank routes for a fixed input")
    routes.add_argument("token_in")
    routes.add_argument("token_out")
    routes.add_argument("amount", type=_decimal, help="Input in raw units")
    routes.add_argument("--max-hops", type=int)
    routes.add_argument("--max-routes", type=int)
    routes.add_argument("--slippage", type=_decimal, help="Slippage tolerance in percent")
    routes.add_argument("--min-rate", type=_decimal, help="Skip paths below this display rate")

    by_output = sub.add_parser("by-output", help="Rank routes for a fixed output")
    by_output.add_argument("token_in")
    by_output.add_argument("token_out")
    by_output.add_argument("amount", type=_decimal, help="Desired output in raw units")
    by_output.add_argument("--max-hops", type=int)
    by_output.add_argument("--max-routes", type=int)
    by_output.add_argument("--slippage", type=_decimal)

    depth = sub.add_parser("depth", help="Depth tiers for pools selling a token")
    depth.add_argument("token_in")

    compare = sub.add_parser("compare", help="DEX route vs protocol mints")
    compare.add_argument("token_out")
    compare.add_argument("amount", type=_decimal, help="Base input in raw units")

    oracle = sub.add_parser("oracle", help="Scan for rates better than a reference")
    oracle.add_argument("--reference-rate", type=_decimal)
    oracle.add_argument("--target")

    circular = sub.add_parser("circular", help="Scan for profitable cycles")
    circular.add_argument("--max-hops", type=int)

    return parser.parse_args(argv)


# ============================================================================
# Table rendering
# ============================================================================


def _routes_table(response: RoutesResponse) -> str:
    rows = []
    for rank, rq in enumerate(response.routes, 1):
        route = rq.route
        rows.append(
            [
                rank,
                route.path_label,
                route.hop_count,
                f"{route.total_input:.0f}",
                f"{route.total_output:.4f}",
                rq.min_output,
                f"{route.total_price_impact:.3f}%",
                "yes" if rq.executable else "quote only",
            ]
        )
    lines = [
        tabulate(
            rows,
            headers=["#", "Path", "Hops", "In", "Out", "Min out", "Impact", "Executable"],
            tablefmt="grid",
        )
    ]
    if response.split:
        split = response.split
        lines.append(f"\nSplit improves output by {format_pct(split.improvement_pct, 3)}:")
        lines.append(
            tabulate(
                [
                    [
                        f"{a.fraction * 100:.2f}%",
                        a.route.path_label,
                        f"{a.input_amount:.0f}",
                        f"{a.output_amount:.4f}",
                        "yes" if a.executable else "quote only",
                    ]
                    for a in split.allocations
                ],
                headers=["Share", "Path", "In", "Out", "Executable"],
                tablefmt="grid",
            )
        )
    if response.partial:
        lines.append("\n(search budget exhausted; results are partial)")
    return "\n".join(lines)


def _depth_table(tiers: List[DepthTier]) -> str:
    if not tiers:
        return "No pools."
    pcts = [pct for pct, _ in tiers[0].tiers]
    rows = [
        [d.pool_id, f"{d.token_in.name} → {d.token_out.name}"] + [m for _, m in d.tiers]
        for d in tiers
    ]
    return tabulate(
        rows, headers=["Pool", "Direction"] + [f"≤{p}%" for p in pcts], tablefmt="grid"
    )


def _compare_table(result: AcquisitionComparison) -> str:
    rows = []
    for i, option in enumerate(result.options):
        rows.append(
            [
                "*" if i == result.best_index else "",
                option.protocol,
                option.description,
                f"{option.output_amount:.0f}" if option.available else "-",
                f"{option.impact_or_fee_pct:.2f}%",
                option.unavailable_reason or "",
            ]
        )
    return tabulate(
        rows, headers=["Best", "Protocol", "Description", "Out", "Impact/fee", "Note"], tablefmt="grid"
    )


def _oracle_table(snapshot: OracleArbSnapshot) -> str:
    rows = [
        [
            w.path_label,
            f"{w.spot_rate:.6f}",
            f"{w.discount_pct:.2f}%",
            w.max_input,
            f"{w.output_at_max_human:.4f}",
            f"{w.price_impact_at_max:.2f}%",
        ]
        for w in snapshot.windows
    ]
    table = tabulate(
        rows,
        headers=["Path", "Spot rate", "Discount", "Max in", "Out", "Impact"],
        tablefmt="grid",
    )
    return (
        f"{table}\nTotal: {snapshot.total_output:.0f} out for {snapshot.total_input} in "
        f"({snapshot.scan_time_ms:.1f}ms{', partial' if snapshot.partial else ''})"
    )


def _circular_table(snapshot: CircularArbSnapshot) -> str:
    rows = [
        [
            w.path_label,
            w.optimal_input,
            f"{w.gross_profit:.0f}",
            w.tx_fee,
            f"{w.net_profit:.0f}",
            format_pct(w.profit_pct, 3),
        ]
        for w in snapshot.windows
    ]
    table = tabulate(
        rows,
        headers=["Cycle", "Optimal in", "Gross", "Tx fee", "Net", "Profit"],
        tablefmt="grid",
    )
    return (
        f"{table}\nTotal net profit: {snapshot.total_net_profit:.0f} "
        f"({snapshot.scan_time_ms:.1f}ms{', partial' if snapshot.partial else ''})"
    )


def _render(result, fmt: str) -> str:
    if fmt == OutputFormat.JSON.value:
        if isinstance(result, (list, tuple)):
            return safe_json_dump([r.to_dict() for r in result])
        return safe_json_dump(result.to_dict())
    if isinstance(result, RoutesResponse):
        return _routes_table(result) if result.found else "No route found."
    if isinstance(result, AcquisitionComparison):
        return _compare_table(result)
    if isinstance(result, OracleArbSnapshot):
        return _oracle_table(result)
    if isinstance(result, CircularArbSnapshot):
        return _circular_table(result)
    return _depth_table(list(result))


def run_command(service: RouterService, args: argparse.Namespace):
    if args.command == "routes":
        return service.find_routes(
            args.token_in,
            args.token_out,
            args.amount,
            max_hops=args.max_hops,
            max_routes=args.max_routes,
            slippage_pct=args.slippage,
            reference_rate=args.min_rate,
        )
    if args.command == "by-output":
        return service.find_routes_by_output(
            args.token_in,
            args.token_out,
            args.amount,
            max_hops=args.max_hops,
            max_routes=args.max_routes,
            slippage_pct=args.slippage,
        )
    if args.command == "depth":
        return service.liquidity_depth(args.token_in)
    if args.command == "compare":
        return service.compare_options(args.token_out, args.amount)
    if args.command == "oracle":
        return service.scan_oracle_arb(args.reference_rate, args.target)
    return service.scan_circular_arbs(args.max_hops)


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    if args.verbose:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup()

    try:
        config = load_router_config(args.config)
    except ConfigurationError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    service = RouterService.from_config(config, metrics=RouterMetrics(CollectorRegistry()))

    try:
        result = run_command(service, args)
    except SmartRouterError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    print(_render(result, args.format))
    logging.getLogger(__name__).debug("Metrics: %s", service.metrics.get_metrics_summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
