"""
Exception hierarchy for the smart router.

Quote-level failures derive from QuoteError so search code can drop a single
path without swallowing configuration or validation problems.
"""

from typing import Any, Dict, Optional


class SmartRouterError(Exception):
    """Base exception for all smart router errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(SmartRouterError):
    """Raised when there are configuration-related issues."""

    pass


class ValidationError(SmartRouterError):
    """Raised when call parameters are invalid (unknown token, bad bounds)."""

    pass


class InvalidAmountError(ValidationError):
    """Raised for non-positive or malformed amounts."""

    def __init__(
        self,
        message: str,
        amount: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.amount = amount


class QuoteError(SmartRouterError):
    """Raised when a single pool cannot price a swap."""

    def __init__(
        self,
        message: str,
        pool_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.pool_id = pool_id


class IlliquidPoolError(QuoteError):
    """Raised when a pool has an empty reserve."""

    pass


class InsufficientLiquidityError(QuoteError):
    """Raised when a requested output meets or exceeds the output reserve."""

    pass


class CorruptReservesError(QuoteError):
    """Raised when a quote violates the constant-product invariant."""

    pass


class NoRouteFoundError(SmartRouterError):
    """Raised by accessors that need a route when none exists."""

    def __init__(
        self,
        message: str,
        token_in: Optional[str] = None,
        token_out: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.token_in = token_in
        self.token_out = token_out


class SearchBudgetExceededError(SmartRouterError):
    """Raised internally when a call runs out of its time or path budget."""

    def __init__(
        self,
        message: str,
        elapsed_ms: Optional[float] = None,
        paths_visited: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.elapsed_ms = elapsed_ms
        self.paths_visited = paths_visited
