"""
Immutable token/pool graph.

Nodes are token ids, and every pool contributes one directed edge per
direction, keyed by pool id so parallel pools on the same pair stay
distinct. The underlying networkx graph is frozen once built; the registry
hands a new PoolGraph to each call instead of mutating this one.
"""

from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Set, Tuple

import networkx as nx

from .budget import SearchBudget
from .constants import DEFAULT_MAX_POOLS_PER_PAIR
from .exceptions import ValidationError
from .models import Pool, Token
from .utils import get_logger

logger = get_logger(__name__)


class Leg(NamedTuple):
    """One directed use of a pool inside a candidate path."""

    pool: Pool
    token_in: str
    token_out: str


Path = Tuple[Leg, ...]


class PoolGraph:
    """Read-only view over a set of pools at one registry version."""

    def __init__(
        self,
        pools: Iterable[Pool],
        version: int = 0,
        base_token: Optional[str] = None,
        min_liquidity: int = 0,
        max_pools_per_pair: Optional[int] = DEFAULT_MAX_POOLS_PER_PAIR,
    ):
        self.version = version
        self._pools: Dict[str, Pool] = {}
        self._tokens: Dict[str, Token] = {}
        self._graph = self._build(
            sorted(pools, key=lambda p: p.pool_id),
            base_token,
            min_liquidity,
            max_pools_per_pair,
        )

    def _build(
        self,
        pools: List[Pool],
        base_token: Optional[str],
        min_liquidity: int,
        max_pools_per_pair: Optional[int],
    ) -> nx.MultiDiGraph:
        by_direction: Dict[Tuple[str, str], List[Pool]] = defaultdict(list)
        skipped = 0

        for pool in pools:
            if pool.reserve_x == 0 or pool.reserve_y == 0:
                skipped += 1
                continue
            if base_token is not None and min_liquidity > 0 and pool.has_token(base_token):
                base_reserve, _ = pool.reserves_for(base_token)
                if base_reserve < min_liquidity:
                    skipped += 1
                    continue
            x, y = pool.token_ids
            by_direction[(x, y)].append(pool)
            by_direction[(y, x)].append(pool)

        graph = nx.MultiDiGraph()
        for (token_in, token_out), candidates in by_direction.items():
            # deepest pools first, ties by id for a stable order
            candidates.sort(key=lambda p: (-p.reserves_for(token_in)[0], p.pool_id))
            if max_pools_per_pair is not None:
                candidates = candidates[:max_pools_per_pair]
            for pool in candidates:
                for token in (pool.token_x, pool.token_y):
                    self._tokens.setdefault(token.token_id, token)
                    if token.token_id not in graph:
                        graph.add_node(token.token_id, token=token)
                graph.add_edge(token_in, token_out, key=pool.pool_id, pool=pool)
                self._pools[pool.pool_id] = pool

        logger.debug(
            "Built pool graph v%d: %d tokens, %d pools (%d skipped)",
            self.version,
            graph.number_of_nodes(),
            len(self._pools),
            skipped,
        )
        return nx.freeze(graph)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def pools(self) -> Tuple[Pool, ...]:
        return tuple(self._pools.values())

    @property
    def tokens(self) -> Tuple[Token, ...]:
        return tuple(self._tokens.values())

    def __len__(self) -> int:
        return len(self._pools)

    def has_token(self, token_id: str) -> bool:
        return token_id in self._tokens

    def token(self, token_id: str) -> Token:
        try:
            return self._tokens[token_id]
        except KeyError:
            raise ValidationError(f"Unknown token: {token_id}", {"token": token_id})

    def find_token(self, ref: str) -> Token:
        """Resolve a token by id, falling back to a case-insensitive name match."""
        if ref in self._tokens:
            return self._tokens[ref]
        matches = [t for t in self._tokens.values() if t.name.lower() == ref.lower()]
        if len(matches) == 1:
            return matches[0]
        if matches:
            raise ValidationError(f"Token name {ref} is ambiguous", {"token": ref})
        raise ValidationError(f"Unknown token: {ref}", {"token": ref})

    def pool(self, pool_id: str) -> Pool:
        try:
            return self._pools[pool_id]
        except KeyError:
            raise ValidationError(f"Unknown pool: {pool_id}", {"pool_id": pool_id})

    def neighbors(self, token_id: str) -> Set[Tuple[Pool, Token]]:
        """Every (pool, other token) reachable in one hop from ``token_id``."""
        return {(leg.pool, self._tokens[leg.token_out]) for leg in self.edges_from(token_id)}

    def edges_from(self, token_id: str) -> List[Leg]:
        if token_id not in self._graph:
            return []
        return [
            Leg(data["pool"], token_id, token_out)
            for _, token_out, data in self._graph.out_edges(token_id, data=True)
        ]

    def pools_between(self, token_a: str, token_b: str) -> List[Pool]:
        """Parallel pools that can sell ``token_a`` for ``token_b``."""
        if not self._graph.has_edge(token_a, token_b):
            return []
        return [data["pool"] for data in self._graph[token_a][token_b].values()]

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def _to_path(self, edges) -> Path:
        return tuple(
            Leg(self._graph.edges[u, v, key]["pool"], u, v) for u, v, key in edges
        )

    def find_paths(
        self,
        source: str,
        target: str,
        max_hops: int,
        budget: Optional[SearchBudget] = None,
    ) -> Iterator[Path]:
        """
        Yield every path from ``source`` to ``target`` of at most ``max_hops``.

        No token is visited twice, which also rules out reusing a pool.
        Raises SearchBudgetExceededError mid-iteration when the budget runs out.
        """
        if max_hops < 1:
            raise ValidationError(f"max_hops must be at least 1, got {max_hops}")
        if source == target:
            raise ValidationError(f"Source and target are both {source}")
        if source not in self._graph or target not in self._graph:
            return
        for edges in nx.all_simple_edge_paths(self._graph, source, target, cutoff=max_hops):
            if budget is not None:
                budget.charge_path()
            yield self._to_path(edges)

    def find_cycles(
        self,
        base: str,
        max_hops: int,
        budget: Optional[SearchBudget] = None,
    ) -> Iterator[Path]:
        """
        Yield closed walks base → ... → base of 2..``max_hops`` legs.

        Intermediate tokens are not revisited and no pool is used twice, so
        selling into a pool and straight back out of it is never a cycle.
        """
        if max_hops < 2 or base not in self._graph:
            return
        for _, first_out, first_key in self._graph.out_edges(base, keys=True):
            first = Leg(self._graph.edges[base, first_out, first_key]["pool"], base, first_out)
            for edges in nx.all_simple_edge_paths(
                self._graph, first_out, base, cutoff=max_hops - 1
            ):
                if len(edges) == 1 and edges[0][2] == first_key:
                    continue
                if budget is not None:
                    budget.charge_path()
                yield (first,) + self._to_path(edges)
