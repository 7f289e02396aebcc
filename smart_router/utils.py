"""
Common helpers for the smart router.

Provides the structured logger factory, decimal helpers used by the math
modules, and JSON serialization for result objects.
"""

import dataclasses
import json
import logging
import math
import time
from contextlib import contextmanager
from decimal import ROUND_FLOOR, Context, Decimal, InvalidOperation, localcontext
from typing import Any, Dict, Iterator, Optional, Union

from .constants import DECIMAL_PRECISION

Number = Union[int, float, str, Decimal]


# Decimal utilities
@contextmanager
def precise() -> Iterator[Context]:
    """Run a block under a fresh high-precision decimal context.

    Decimal contexts are thread-local, so every math entry point opens its own
    instead of relying on a process-wide ``getcontext().prec``.
    """
    with localcontext(Context(prec=DECIMAL_PRECISION)) as ctx:
        yield ctx


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal, raising ValueError on garbage input."""
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Not a finite number: {value!r}")
        return Decimal(repr(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"Not a number: {value!r}") from e
    raise ValueError(f"Not a number: {value!r}")


def floor_int(value: Decimal) -> int:
    """Floor a Decimal to the nearest integer below it."""
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def scale_to_human(raw: Decimal, decimals: int) -> Decimal:
    """Convert a raw smallest-unit amount into display units."""
    return raw.scaleb(-decimals)


def calculate_percentage(value: Decimal, total: Decimal) -> Decimal:
    """Calculate percentage with zero-division protection."""
    if total == 0:
        return Decimal(0)
    return value / total * 100


def basis_points_to_decimal(bps: Number) -> Decimal:
    """Convert basis points to a fraction (30 bps = 0.003)."""
    return to_decimal(bps) / Decimal(10000)


# Time utilities
def elapsed_ms(start: float) -> float:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return (time.perf_counter() - start) * 1000.0


# JSON utilities
def safe_json_dump(data: Any, **kwargs) -> str:
    """
    Serialize result objects to JSON with sensible defaults.

    Args:
        data: Data to serialize
        **kwargs: Additional arguments to json.dumps

    Returns:
        JSON string
    """
    defaults = {"ensure_ascii": False, "indent": 2, "default": _json_default_handler}
    defaults.update(kwargs)
    return json.dumps(data, **defaults)


def _json_default_handler(obj: Any) -> Any:
    """Default JSON serialization handler for custom types."""
    if isinstance(obj, Decimal):
        if obj == obj.to_integral_value():
            return int(obj)
        return str(obj)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
    minimal: bool = False,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages
        minimal: If True, use simplified format (time + message only)

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()

        if minimal:
            format_str = "%(asctime)s | %(message)s"
        else:
            format_str = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )

        formatter = logging.Formatter(format_str, datefmt="%H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        if extra:
            logger = logging.LoggerAdapter(
                logger, {"extra_" + k: v for k, v in extra.items()}
            )

    return logger


def timing_decorator(func):
    """Decorator to log function execution time at DEBUG."""

    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        result = func(*args, **kwargs)
        logger = logging.getLogger(func.__module__)
        logger.debug(f"{func.__name__} executed in {elapsed_ms(start_time):.2f}ms")
        return result

    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


def format_pct(value: Decimal, places: int = 2) -> str:
    """Format a percentage with a sign prefix, e.g. ``+1.23%``."""
    rounded = float(value)
    if rounded >= 0:
        return f"+{rounded:.{places}f}%"
    return f"{rounded:.{places}f}%"
