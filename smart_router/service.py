"""
Router service: the query surface for presentation and execution layers.

Every call takes one registry snapshot at entry and prices everything
against it, so a concurrent refresh cannot mix reserve states inside one
result. The engine functions are synchronous; the ``*_async`` wrappers run
them in worker threads and ``scan_all_async`` runs both scanners over the
same snapshot concurrently.
"""

import asyncio
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from .arb import scan_circular_arbs, scan_oracle_arb
from .budget import SearchBudget
from .compare import compare_options
from .config_loader import RouterRuntimeConfig
from .config_schema import RouterConfig
from .depth import all_depth_tiers, depth_tiers
from .exceptions import ValidationError
from .graph import PoolGraph
from .interfaces import AcquisitionSource, PoolFeed, ReferenceRateProvider, TimeProvider
from .metrics import RouterMetrics
from .models import (
    AcquisitionComparison,
    Amount,
    CircularArbSnapshot,
    DepthTier,
    OracleArbSnapshot,
    RoutesResponse,
)
from .registry import PoolRegistry
from .search import find_routes, find_routes_by_output
from .utils import get_logger

logger = get_logger(__name__)


class RouterService:
    """Synchronous query functions over a pool registry."""

    def __init__(
        self,
        registry: PoolRegistry,
        settings: RouterConfig,
        reference_rates: Optional[ReferenceRateProvider] = None,
        alternatives: Optional[dict] = None,
        metrics: Optional[RouterMetrics] = None,
        time_provider: Optional[TimeProvider] = None,
    ):
        self.registry = registry
        self.settings = settings
        self.reference_rates = reference_rates
        self.alternatives = alternatives or {}
        self.metrics = metrics
        self.time_provider = time_provider

    @classmethod
    def from_config(
        cls,
        config: RouterRuntimeConfig,
        reference_rates: Optional[ReferenceRateProvider] = None,
        metrics: Optional[RouterMetrics] = None,
    ) -> "RouterService":
        """Build a service with a registry seeded from the configured pools."""
        search = config.settings.search
        registry = PoolRegistry(
            config.pools,
            base_token=config.base_token,
            min_liquidity=search.min_liquidity,
            max_pools_per_pair=search.max_pools_per_pair,
        )
        alternatives = {m.target_token: config.mints_for(m.target_token) for m in config.mints}
        return cls(
            registry,
            config.settings,
            reference_rates=reference_rates,
            alternatives=alternatives,
            metrics=metrics,
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def snapshot(self) -> PoolGraph:
        graph = self.registry.snapshot()
        if self.metrics:
            self.metrics.update_snapshot_version(graph.version)
        return graph

    def new_budget(self) -> SearchBudget:
        search = self.settings.search
        return SearchBudget(
            time_budget_ms=search.time_budget_ms,
            max_paths=search.max_paths,
            time_provider=self.time_provider,
        )

    def refresh(self, feed: PoolFeed) -> int:
        return self.registry.refresh(feed)

    def _resolve(self, graph: PoolGraph, token_ref: str) -> str:
        if graph.has_token(token_ref):
            return token_ref
        return graph.find_token(token_ref).token_id

    def _record_routes(self, operation: str, response: RoutesResponse) -> None:
        if not self.metrics:
            return
        self.metrics.record_query(operation, response.partial)
        self.metrics.record_routes(
            response.direction.value, len(response.routes), response.split is not None
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_routes(
        self,
        token_in: str,
        token_out: str,
        amount_in: Amount,
        max_hops: Optional[int] = None,
        max_routes: Optional[int] = None,
        slippage_pct=None,
        reference_rate=None,
    ) -> RoutesResponse:
        search = self.settings.search
        split = self.settings.split
        graph = self.snapshot()
        response = find_routes(
            graph,
            self._resolve(graph, token_in),
            self._resolve(graph, token_out),
            amount_in,
            max_hops=search.max_hops if max_hops is None else max_hops,
            max_routes=search.max_routes if max_routes is None else max_routes,
            slippage_pct=search.slippage_pct if slippage_pct is None else slippage_pct,
            reference_rate=reference_rate,
            budget=self.new_budget(),
            impact_tiers_pct=self.settings.depth.impact_tiers_pct,
            max_splits=split.max_splits,
            split_steps=split.steps,
            min_split_improvement_pct=split.min_improvement_pct,
        )
        self._record_routes("find_routes", response)
        return response

    def find_routes_by_output(
        self,
        token_in: str,
        token_out: str,
        amount_out: Amount,
        max_hops: Optional[int] = None,
        max_routes: Optional[int] = None,
        slippage_pct=None,
    ) -> RoutesResponse:
        search = self.settings.search
        graph = self.snapshot()
        response = find_routes_by_output(
            graph,
            self._resolve(graph, token_in),
            self._resolve(graph, token_out),
            amount_out,
            max_hops=search.max_hops if max_hops is None else max_hops,
            max_routes=search.max_routes if max_routes is None else max_routes,
            slippage_pct=search.slippage_pct if slippage_pct is None else slippage_pct,
            budget=self.new_budget(),
            impact_tiers_pct=self.settings.depth.impact_tiers_pct,
        )
        self._record_routes("find_routes_by_output", response)
        return response

    def compare_options(
        self,
        token_out: str,
        amount_in: Amount,
        token_in: Optional[str] = None,
        alternatives: Optional[Sequence[AcquisitionSource]] = None,
    ) -> AcquisitionComparison:
        """Compare DEX and configured alternatives for acquiring ``token_out``."""
        graph = self.snapshot()
        source = self._resolve(graph, token_in or self.settings.base_token)
        target = self._resolve(graph, token_out)
        if alternatives is None:
            alternatives = self.alternatives.get(target, ())
        result = compare_options(
            graph,
            source,
            target,
            amount_in,
            alternatives=alternatives,
            max_hops=self.settings.search.max_hops,
            budget=self.new_budget(),
        )
        if self.metrics:
            self.metrics.record_query("compare_options")
        return result

    def depth_tiers(self, pool_id: str, token_in: str) -> DepthTier:
        graph = self.snapshot()
        return depth_tiers(
            graph.pool(pool_id),
            self._resolve(graph, token_in),
            self.settings.depth.impact_tiers_pct,
        )

    def liquidity_depth(self, token_in: str) -> Tuple[DepthTier, ...]:
        """Depth tiers for every pool a token can be sold into."""
        graph = self.snapshot()
        return all_depth_tiers(
            graph, self._resolve(graph, token_in), self.settings.depth.impact_tiers_pct
        )

    def _reference_rate(self, reference_rate) -> Decimal:
        if reference_rate is not None:
            return reference_rate
        if self.reference_rates is not None:
            return self.reference_rates.get_reference_rate()
        if self.settings.arb.reference_rate is not None:
            return self.settings.arb.reference_rate
        raise ValidationError("No reference rate given and no provider configured")

    def scan_oracle_arb(
        self,
        reference_rate=None,
        target_token: Optional[str] = None,
        graph: Optional[PoolGraph] = None,
    ) -> OracleArbSnapshot:
        arb = self.settings.arb
        graph = self.snapshot() if graph is None else graph
        target_ref = target_token or arb.target_token
        if target_ref is None:
            raise ValidationError("No target token given for the oracle scan")
        result = scan_oracle_arb(
            graph,
            self._resolve(graph, self.settings.base_token),
            self._resolve(graph, target_ref),
            self._reference_rate(reference_rate),
            max_hops=arb.max_hops,
            max_impact_pct=arb.max_impact_pct,
            min_window_output=arb.min_window_output,
            iterations=arb.binary_iterations,
            budget=self.new_budget(),
        )
        if self.metrics:
            self.metrics.record_scan(
                "oracle", result.scan_time_ms, len(result.windows), result.partial
            )
        return result

    def scan_circular_arbs(
        self,
        max_hops: Optional[int] = None,
        graph: Optional[PoolGraph] = None,
    ) -> CircularArbSnapshot:
        arb = self.settings.arb
        graph = self.snapshot() if graph is None else graph
        result = scan_circular_arbs(
            graph,
            self._resolve(graph, self.settings.base_token),
            max_hops=arb.max_hops if max_hops is None else max_hops,
            tx_fee=arb.tx_fee,
            iterations=arb.ternary_iterations,
            budget=self.new_budget(),
        )
        if self.metrics:
            self.metrics.record_scan(
                "circular", result.scan_time_ms, len(result.windows), result.partial
            )
        return result

    # ------------------------------------------------------------------
    # Async wrappers
    # ------------------------------------------------------------------

    async def find_routes_async(self, *args, **kwargs) -> RoutesResponse:
        return await asyncio.to_thread(self.find_routes, *args, **kwargs)

    async def scan_all_async(
        self, reference_rate=None
    ) -> Tuple[Optional[OracleArbSnapshot], CircularArbSnapshot]:
        """
        Run both scanners concurrently over one snapshot.

        The oracle scan is skipped (None) when no target token is configured.
        """
        graph = self.snapshot()
        circular_task = asyncio.to_thread(self.scan_circular_arbs, None, graph)
        if self.settings.arb.target_token is None:
            return None, await circular_task
        oracle_task = asyncio.to_thread(self.scan_oracle_arb, reference_rate, None, graph)
        oracle, circular = await asyncio.gather(oracle_task, circular_task)
        return oracle, circular
