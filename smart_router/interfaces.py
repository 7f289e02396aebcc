"""
Dependency injection interfaces for the router's collaborators.

Lightweight protocols for the clock, the pool-state feed, the reference
rate and alternative acquisition mechanisms, with simple implementations
for production and for tests.
"""

import time
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Protocol, Sequence, runtime_checkable

from .utils import to_decimal

if TYPE_CHECKING:
    from .models import AcquisitionOption, Pool


@runtime_checkable
class TimeProvider(Protocol):
    """Protocol for time-related operations."""

    def current_timestamp(self) -> float:
        """Get current Unix timestamp."""
        ...

    def monotonic_ms(self) -> float:
        """Get a monotonic clock reading in milliseconds."""
        ...


@runtime_checkable
class PoolFeed(Protocol):
    """Source of pool state (an indexer, a node, or a fixture)."""

    def fetch_pools(self) -> Iterable["Pool"]:
        """Return the latest state of every known pool."""
        ...


@runtime_checkable
class ReferenceRateProvider(Protocol):
    """External reference rate, display units of target per base."""

    def get_reference_rate(self) -> Decimal:
        ...


@runtime_checkable
class AcquisitionSource(Protocol):
    """A non-DEX way of acquiring the target token, such as a protocol mint."""

    def quote(self, amount_in: Decimal) -> "AcquisitionOption":
        ...


class SystemTimeProvider:
    """Production time provider using system time."""

    def current_timestamp(self) -> float:
        return time.time()

    def monotonic_ms(self) -> float:
        return time.perf_counter() * 1000.0


class DeterministicTimeProvider:
    """Deterministic time provider for tests."""

    def __init__(self, start_time: float = 1640995200.0):  # 2022-01-01
        self._current_time = start_time

    def current_timestamp(self) -> float:
        return self._current_time

    def monotonic_ms(self) -> float:
        return self._current_time * 1000.0

    def advance_time(self, seconds: float) -> None:
        """Manually advance time by specified seconds."""
        self._current_time += seconds


class StaticPoolFeed:
    """Feed that always returns the same pools, e.g. loaded from config."""

    def __init__(self, pools: Sequence["Pool"]):
        self._pools = tuple(pools)

    def fetch_pools(self) -> Iterable["Pool"]:
        return self._pools


class StaticReferenceRate:
    """Fixed reference rate, used by configs and tests."""

    def __init__(self, rate):
        self._rate = to_decimal(rate)

    def get_reference_rate(self) -> Decimal:
        return self._rate
