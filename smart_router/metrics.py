"""
Prometheus metrics for the smart router.

Counts queries and their outcomes and times scans. Nothing here serves
HTTP; callers expose the registry however they like (for example with
``prometheus_client.generate_latest``).
"""

import threading
from typing import Any, Dict, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from .utils import get_logger

logger = get_logger(__name__)


class RouterMetrics:
    """
    Router metrics collection

    Provides Prometheus-compatible metrics for:
    - Route queries and the routes they return
    - Partial results after a budget overrun
    - Arbitrage scan duration and windows found
    - Registry snapshot version
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with custom registry or default"""
        self.registry = registry or REGISTRY
        self._lock = threading.RLock()
        self._initialize_metrics()

    def _initialize_metrics(self):
        # === QUERY METRICS ===
        self.queries_total = Counter(
            "smart_router_queries_total",
            "Total number of router queries served",
            ["operation"],
            registry=self.registry,
        )

        self.routes_found_total = Counter(
            "smart_router_routes_found_total",
            "Total number of routes returned to callers",
            ["direction"],
            registry=self.registry,
        )

        self.no_route_total = Counter(
            "smart_router_no_route_total",
            "Queries that found no route",
            ["direction"],
            registry=self.registry,
        )

        self.splits_surfaced_total = Counter(
            "smart_router_splits_surfaced_total",
            "Queries whose split cleared the improvement threshold",
            registry=self.registry,
        )

        self.partial_results_total = Counter(
            "smart_router_partial_results_total",
            "Results cut short by the search budget",
            ["operation"],
            registry=self.registry,
        )

        # === SCAN METRICS ===
        self.scan_duration_seconds = Histogram(
            "smart_router_scan_duration_seconds",
            "Wall-clock duration of arbitrage scans",
            ["scanner"],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
            registry=self.registry,
        )

        self.windows_found = Gauge(
            "smart_router_windows_found",
            "Windows reported by the latest scan",
            ["scanner"],
            registry=self.registry,
        )

        self.snapshot_version = Gauge(
            "smart_router_snapshot_version",
            "Registry version of the latest snapshot used",
            registry=self.registry,
        )

    def record_query(self, operation: str, partial: bool = False):
        """Record one served query"""
        with self._lock:
            self.queries_total.labels(operation=operation).inc()
            if partial:
                self.partial_results_total.labels(operation=operation).inc()

    def record_routes(self, direction: str, count: int, split_surfaced: bool = False):
        """Record the routes returned by a search"""
        with self._lock:
            if count:
                self.routes_found_total.labels(direction=direction).inc(count)
            else:
                self.no_route_total.labels(direction=direction).inc()
            if split_surfaced:
                self.splits_surfaced_total.inc()

    def record_scan(self, scanner: str, duration_ms: float, windows: int, partial: bool = False):
        """Record a completed arbitrage scan"""
        with self._lock:
            self.queries_total.labels(operation=scanner).inc()
            self.scan_duration_seconds.labels(scanner=scanner).observe(duration_ms / 1000.0)
            self.windows_found.labels(scanner=scanner).set(windows)
            if partial:
                self.partial_results_total.labels(operation=scanner).inc()

    def update_snapshot_version(self, version: int):
        with self._lock:
            self.snapshot_version.set(version)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Current values of the headline counters"""
        summary: Dict[str, Any] = {}
        for family in self.registry.collect():
            if not family.name.startswith("smart_router"):
                continue
            for sample in family.samples:
                if sample.name.endswith("_total") or sample.name.endswith("_version"):
                    key = sample.name
                    if sample.labels:
                        key += "{" + ",".join(f"{k}={v}" for k, v in sorted(sample.labels.items())) + "}"
                    summary[key] = sample.value
        return summary
