"""
Arbitrage scanners over a pool graph snapshot.
"""

from .circular import scan_circular_arbs, ternary_search_max
from .oracle import scan_oracle_arb

__all__ = ["scan_circular_arbs", "scan_oracle_arb", "ternary_search_max"]
