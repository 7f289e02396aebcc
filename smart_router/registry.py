"""
Pool registry: the single mutable holder of pool state.

Feeds push pool updates in; search and scan calls pull an immutable
PoolGraph out via ``snapshot()``. A snapshot is built once per registry
version and shared by every call that starts while that version is current,
so a refresh mid-call never changes the reserves a call is pricing against.
"""

import threading
from typing import Dict, Iterable, Optional

from .constants import DEFAULT_MAX_POOLS_PER_PAIR
from .graph import PoolGraph
from .interfaces import PoolFeed
from .models import Pool
from .utils import get_logger

logger = get_logger(__name__)


class PoolRegistry:
    """Thread-safe store of the latest known state of every pool."""

    def __init__(
        self,
        pools: Optional[Iterable[Pool]] = None,
        base_token: Optional[str] = None,
        min_liquidity: int = 0,
        max_pools_per_pair: Optional[int] = DEFAULT_MAX_POOLS_PER_PAIR,
    ):
        self.base_token = base_token
        self.min_liquidity = min_liquidity
        self.max_pools_per_pair = max_pools_per_pair

        self._pools: Dict[str, Pool] = {}
        self._version = 0
        self._snapshot: Optional[PoolGraph] = None
        self._lock = threading.RLock()

        if pools:
            self.update_many(pools)

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._pools)

    def get(self, pool_id: str) -> Optional[Pool]:
        with self._lock:
            return self._pools.get(pool_id)

    def update(self, pool: Pool) -> bool:
        """
        Store ``pool`` unless a fresher state is already held.

        Returns:
            True if the registry changed
        """
        with self._lock:
            changed = self._apply(pool)
            if changed:
                self._bump()
            return changed

    def update_many(self, pools: Iterable[Pool]) -> int:
        """Apply a batch of updates under one version bump."""
        with self._lock:
            applied = sum(1 for pool in pools if self._apply(pool))
            if applied:
                self._bump()
            return applied

    def remove(self, pool_id: str) -> bool:
        with self._lock:
            if self._pools.pop(pool_id, None) is None:
                return False
            self._bump()
            return True

    def refresh(self, feed: PoolFeed) -> int:
        """Pull every pool from ``feed`` and apply the fresh ones."""
        pools = list(feed.fetch_pools())
        applied = self.update_many(pools)
        logger.info(
            "Registry refresh: %d/%d pools applied (version %d)",
            applied,
            len(pools),
            self.version,
        )
        return applied

    def snapshot(self) -> PoolGraph:
        """Immutable graph of the current version, built at most once."""
        with self._lock:
            if self._snapshot is None or self._snapshot.version != self._version:
                self._snapshot = PoolGraph(
                    self._pools.values(),
                    version=self._version,
                    base_token=self.base_token,
                    min_liquidity=self.min_liquidity,
                    max_pools_per_pair=self.max_pools_per_pair,
                )
            return self._snapshot

    def _apply(self, pool: Pool) -> bool:
        current = self._pools.get(pool.pool_id)
        if current is not None:
            if pool.last_updated < current.last_updated:
                logger.debug(
                    "Ignoring stale update for %s (%d < %d)",
                    pool.pool_id,
                    pool.last_updated,
                    current.last_updated,
                )
                return False
            if pool == current:
                return False
        self._pools[pool.pool_id] = pool
        return True

    def _bump(self) -> None:
        self._version += 1
