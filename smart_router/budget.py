"""
Per-call search budget.

Every search or scan call gets one budget. Enumeration code calls
``charge_path()`` once per candidate path and ``check()`` inside inner
loops; both raise SearchBudgetExceededError when the call has used up its
time or its path allowance. The error never leaves the engine: callers
catch it and return what they have with ``partial=True``.
"""

from typing import Optional

from .constants import DEFAULT_MAX_PATHS, DEFAULT_TIME_BUDGET_MS
from .exceptions import SearchBudgetExceededError
from .interfaces import SystemTimeProvider, TimeProvider


class SearchBudget:
    def __init__(
        self,
        time_budget_ms: Optional[float] = DEFAULT_TIME_BUDGET_MS,
        max_paths: Optional[int] = DEFAULT_MAX_PATHS,
        time_provider: Optional[TimeProvider] = None,
    ):
        self.time_budget_ms = time_budget_ms
        self.max_paths = max_paths
        self._clock = time_provider or SystemTimeProvider()
        self._started_ms = self._clock.monotonic_ms()
        self.paths_visited = 0
        self.exhausted = False

    @classmethod
    def unlimited(cls) -> "SearchBudget":
        return cls(time_budget_ms=None, max_paths=None)

    @property
    def elapsed_ms(self) -> float:
        return self._clock.monotonic_ms() - self._started_ms

    def check(self) -> None:
        """Raise if the time budget is spent."""
        if self.time_budget_ms is None:
            return
        elapsed = self.elapsed_ms
        if elapsed > self.time_budget_ms:
            self.exhausted = True
            raise SearchBudgetExceededError(
                f"Time budget of {self.time_budget_ms}ms exceeded",
                elapsed_ms=elapsed,
                paths_visited=self.paths_visited,
            )

    def charge_path(self) -> None:
        """Account for one more candidate path, raising past the cap."""
        if self.max_paths is not None and self.paths_visited >= self.max_paths:
            self.exhausted = True
            raise SearchBudgetExceededError(
                f"Path cap of {self.max_paths} reached",
                elapsed_ms=self.elapsed_ms,
                paths_visited=self.paths_visited,
            )
        self.paths_visited += 1
        self.check()
