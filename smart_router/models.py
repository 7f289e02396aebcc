"""
Core data types for routing and arbitrage scanning.

Amounts are in each token's smallest unit ("raw units"). Reserves are ints;
quoted amounts are exact Decimals and only on-chain bounds (min output, depth
limits, scanner inputs) are floored to ints. Everything except Pool is built
fresh per query and never mutated afterwards.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Optional, Tuple, Union

from .constants import MIN_SPLIT_IMPROVEMENT_PCT, PATH_SEPARATOR, QueryDirection
from .exceptions import CorruptReservesError, NoRouteFoundError, ValidationError
from .utils import basis_points_to_decimal, floor_int, precise, to_decimal

Amount = Union[int, Decimal]


def _amount(value: Decimal) -> str:
    """Exact string form for raw amounts in serialized output."""
    if value == value.to_integral_value():
        return str(int(value))
    return str(value)


# ============================================================================
# Pool state
# ============================================================================


@dataclass(frozen=True)
class Token:
    """
    A token known to the pool feed.

    Attributes:
        token_id: Chain identifier of the token
        name: Display name (e.g., "SigUSD")
        decimals: Number of decimals between raw and display units
    """

    token_id: str
    name: str
    decimals: int = 0

    def __post_init__(self):
        if self.decimals < 0:
            raise ValidationError(
                f"Token {self.name} has negative decimals: {self.decimals}"
            )


@dataclass(frozen=True)
class Pool:
    """
    A constant-product pool over an ordered token pair.

    Attributes:
        pool_id: Unique pool identifier
        token_x: First token of the pair
        token_y: Second token of the pair
        reserve_x: Reserve of token_x in raw units
        reserve_y: Reserve of token_y in raw units
        fee_rate: Fee as a fraction of input, in [0, 1)
        last_updated: Monotonic freshness marker from the feed
    """

    pool_id: str
    token_x: Token
    token_y: Token
    reserve_x: int
    reserve_y: int
    fee_rate: Decimal = Decimal("0.003")
    last_updated: int = 0

    def __post_init__(self):
        object.__setattr__(self, "fee_rate", to_decimal(self.fee_rate))
        if self.token_x.token_id == self.token_y.token_id:
            raise ValidationError(
                f"Pool {self.pool_id} pairs a token with itself",
                {"token": self.token_x.token_id},
            )
        if self.reserve_x < 0 or self.reserve_y < 0:
            raise CorruptReservesError(
                f"Pool {self.pool_id} has a negative reserve",
                pool_id=self.pool_id,
                details={"reserve_x": self.reserve_x, "reserve_y": self.reserve_y},
            )
        if not (Decimal(0) <= self.fee_rate < Decimal(1)):
            raise ValidationError(
                f"Pool {self.pool_id} fee rate {self.fee_rate} outside [0, 1)"
            )

    @classmethod
    def from_fee_fraction(
        cls,
        pool_id: str,
        token_x: Token,
        token_y: Token,
        reserve_x: int,
        reserve_y: int,
        fee_num: int,
        fee_denom: int,
        last_updated: int = 0,
    ) -> "Pool":
        """Build a pool whose fee is given as the retained fraction (997/1000)."""
        if fee_denom <= 0 or not (0 < fee_num <= fee_denom):
            raise ValidationError(f"Invalid fee fraction {fee_num}/{fee_denom}")
        with precise():
            fee_rate = Decimal(1) - Decimal(fee_num) / Decimal(fee_denom)
        return cls(pool_id, token_x, token_y, reserve_x, reserve_y, fee_rate, last_updated)

    @classmethod
    def from_bps(
        cls,
        pool_id: str,
        token_x: Token,
        token_y: Token,
        reserve_x: int,
        reserve_y: int,
        fee_bps: int,
        last_updated: int = 0,
    ) -> "Pool":
        return cls(
            pool_id,
            token_x,
            token_y,
            reserve_x,
            reserve_y,
            basis_points_to_decimal(fee_bps),
            last_updated,
        )

    @property
    def label(self) -> str:
        return f"{self.token_x.name}/{self.token_y.name}"

    @property
    def token_ids(self) -> Tuple[str, str]:
        return (self.token_x.token_id, self.token_y.token_id)

    def has_token(self, token_id: str) -> bool:
        return token_id in self.token_ids

    def token(self, token_id: str) -> Token:
        if token_id == self.token_x.token_id:
            return self.token_x
        if token_id == self.token_y.token_id:
            return self.token_y
        raise ValidationError(
            f"Token {token_id} is not in pool {self.pool_id}",
            {"pool_id": self.pool_id, "token": token_id},
        )

    def other(self, token_id: str) -> Token:
        """Return the token on the opposite side of ``token_id``."""
        if token_id == self.token_x.token_id:
            return self.token_y
        if token_id == self.token_y.token_id:
            return self.token_x
        raise ValidationError(
            f"Token {token_id} is not in pool {self.pool_id}",
            {"pool_id": self.pool_id, "token": token_id},
        )

    def reserves_for(self, token_in: str) -> Tuple[int, int]:
        """Return (reserve_in, reserve_out) for a swap selling ``token_in``."""
        if token_in == self.token_x.token_id:
            return self.reserve_x, self.reserve_y
        if token_in == self.token_y.token_id:
            return self.reserve_y, self.reserve_x
        raise ValidationError(
            f"Token {token_in} is not in pool {self.pool_id}",
            {"pool_id": self.pool_id, "token": token_in},
        )

    def with_reserves(self, reserve_x: int, reserve_y: int, last_updated: int) -> "Pool":
        return replace(
            self, reserve_x=reserve_x, reserve_y=reserve_y, last_updated=last_updated
        )


# ============================================================================
# Route building blocks
# ============================================================================


@dataclass(frozen=True)
class SwapQuote:
    """Result of pricing one swap through one pool."""

    amount_out: Decimal
    fee: Decimal
    price_impact: Decimal  # percent
    spot_price: Decimal


@dataclass(frozen=True)
class Hop:
    """
    One traversal of a pool in a fixed direction.

    Attributes:
        pool_id: Pool traversed
        token_in: Token sold into the pool
        token_out: Token received
        amount_in: Input in raw units of token_in
        amount_out: Output in raw units of token_out
        fee: Fee paid, in raw units of token_in
        price_impact: Percent deviation of the hop's rate from spot
        reserve_in: Reserve of token_in before the swap
        reserve_out: Reserve of token_out before the swap
        fee_rate: Pool fee fraction
    """

    pool_id: str
    token_in: Token
    token_out: Token
    amount_in: Decimal
    amount_out: Decimal
    fee: Decimal
    price_impact: Decimal
    reserve_in: int
    reserve_out: int
    fee_rate: Decimal

    @property
    def spot_price(self) -> Decimal:
        with precise():
            return Decimal(self.reserve_out) / Decimal(self.reserve_in)

    def pool_state(self) -> Pool:
        """The pool as this hop saw it, oriented token_in → token_out."""
        return Pool(
            pool_id=self.pool_id,
            token_x=self.token_in,
            token_y=self.token_out,
            reserve_x=self.reserve_in,
            reserve_y=self.reserve_out,
            fee_rate=self.fee_rate,
        )

    def to_dict(self):
        return {
            "pool_id": self.pool_id,
            "token_in": self.token_in.name,
            "token_out": self.token_out.name,
            "amount_in": _amount(self.amount_in),
            "amount_out": _amount(self.amount_out),
            "fee": _amount(self.fee),
            "price_impact": float(self.price_impact),
            "reserve_in": self.reserve_in,
            "reserve_out": self.reserve_out,
            "fee_rate": float(self.fee_rate),
        }


@dataclass(frozen=True)
class Route:
    """An ordered chain of hops; each hop's output token feeds the next."""

    hops: Tuple[Hop, ...]

    def __post_init__(self):
        object.__setattr__(self, "hops", tuple(self.hops))
        if not self.hops:
            raise ValidationError("A route needs at least one hop")
        for prev, nxt in zip(self.hops, self.hops[1:]):
            if prev.token_out.token_id != nxt.token_in.token_id:
                raise ValidationError(
                    f"Hop {prev.pool_id} outputs {prev.token_out.name} "
                    f"but {nxt.pool_id} expects {nxt.token_in.name}"
                )

    @property
    def token_in(self) -> Token:
        return self.hops[0].token_in

    @property
    def token_out(self) -> Token:
        return self.hops[-1].token_out

    @property
    def total_input(self) -> Decimal:
        return self.hops[0].amount_in

    @property
    def total_output(self) -> Decimal:
        return self.hops[-1].amount_out

    @property
    def hop_count(self) -> int:
        return len(self.hops)

    @property
    def is_single_hop(self) -> bool:
        return len(self.hops) == 1

    @property
    def pool_ids(self) -> Tuple[str, ...]:
        return tuple(h.pool_id for h in self.hops)

    @property
    def path_label(self) -> str:
        names = [self.hops[0].token_in.name] + [h.token_out.name for h in self.hops]
        return PATH_SEPARATOR.join(names)

    @property
    def spot_price_product(self) -> Decimal:
        """Product of pre-trade spot prices along the route (raw units)."""
        with precise():
            product = Decimal(1)
            for hop in self.hops:
                product *= Decimal(hop.reserve_out) / Decimal(hop.reserve_in)
            return product

    @property
    def total_fees(self) -> Decimal:
        """All hop fees, converted into source-token units at spot prices."""
        with precise():
            total = Decimal(0)
            to_source = Decimal(1)
            for hop in self.hops:
                total += hop.fee * to_source
                to_source *= Decimal(hop.reserve_in) / Decimal(hop.reserve_out)
            return total

    @property
    def total_price_impact(self) -> Decimal:
        """End-to-end impact in percent, taken against the spot product."""
        with precise():
            effective = self.total_output / self.total_input
            return (Decimal(1) - effective / self.spot_price_product) * 100

    @property
    def effective_rate(self) -> Decimal:
        with precise():
            return self.total_output / self.total_input

    @property
    def effective_rate_human(self) -> Decimal:
        with precise():
            return self.effective_rate.scaleb(self.token_in.decimals - self.token_out.decimals)

    @property
    def spot_rate_human(self) -> Decimal:
        with precise():
            return self.spot_price_product.scaleb(
                self.token_in.decimals - self.token_out.decimals
            )

    def min_output(self, slippage_pct: Decimal) -> int:
        """Output discounted by ``slippage_pct`` percent, floored to a raw unit."""
        with precise():
            factor = Decimal(1) - to_decimal(slippage_pct) / 100
            return floor_int(self.total_output * factor)

    def to_dict(self):
        return {
            "path": self.path_label,
            "pool_ids": list(self.pool_ids),
            "hops": [h.to_dict() for h in self.hops],
            "total_input": _amount(self.total_input),
            "total_output": _amount(self.total_output),
            "total_fees": _amount(self.total_fees),
            "total_price_impact": float(self.total_price_impact),
        }


@dataclass(frozen=True)
class RouteQuote:
    """A route plus its slippage-protected minimum output."""

    route: Route
    min_output: int
    slippage_pct: Decimal

    @property
    def total_input(self) -> Decimal:
        return self.route.total_input

    @property
    def total_output(self) -> Decimal:
        return self.route.total_output

    @property
    def executable(self) -> bool:
        """Only single-hop routes can be submitted as one swap."""
        return self.route.is_single_hop

    def to_dict(self):
        data = self.route.to_dict()
        data["min_output"] = self.min_output
        data["slippage_pct"] = float(self.slippage_pct)
        data["executable"] = self.executable
        return data


# ============================================================================
# Split and depth
# ============================================================================


@dataclass(frozen=True)
class SplitAllocation:
    """A share of the total input sent down one route."""

    fraction: Decimal
    route: Route
    input_amount: Decimal
    output_amount: Decimal
    executable: bool

    def to_dict(self):
        return {
            "fraction": float(self.fraction),
            "path": self.route.path_label,
            "pool_ids": list(self.route.pool_ids),
            "input_amount": _amount(self.input_amount),
            "output_amount": _amount(self.output_amount),
            "executable": self.executable,
        }


@dataclass(frozen=True)
class SplitRouteDetail:
    """Allocations whose fractions sum to 1, with the gain over one route."""

    allocations: Tuple[SplitAllocation, ...]
    total_input: Decimal
    total_output: Decimal
    best_single_output: Decimal
    improvement_pct: Decimal

    def worth_splitting(self, threshold_pct: Decimal = MIN_SPLIT_IMPROVEMENT_PCT) -> bool:
        return len(self.allocations) >= 2 and self.improvement_pct >= threshold_pct

    def to_dict(self):
        return {
            "allocations": [a.to_dict() for a in self.allocations],
            "total_input": _amount(self.total_input),
            "total_output": _amount(self.total_output),
            "best_single_output": _amount(self.best_single_output),
            "improvement_pct": float(self.improvement_pct),
        }


@dataclass(frozen=True)
class DepthTier:
    """
    Liquidity depth of one pool direction.

    Attributes:
        pool_id: Pool profiled
        token_in: Token sold into the pool
        token_out: Token received
        tiers: (impact_pct, max_input) pairs, ordered as requested
    """

    pool_id: str
    token_in: Token
    token_out: Token
    tiers: Tuple[Tuple[Decimal, int], ...]

    def max_input_for(self, impact_pct: Decimal) -> Optional[int]:
        target = to_decimal(impact_pct)
        for pct, max_input in self.tiers:
            if pct == target:
                return max_input
        return None

    def to_dict(self):
        return {
            "pool_id": self.pool_id,
            "token_in": self.token_in.name,
            "token_out": self.token_out.name,
            "tiers": [
                {"impact_pct": float(pct), "max_input": max_input}
                for pct, max_input in self.tiers
            ],
        }


@dataclass(frozen=True)
class RoutesResponse:
    """Ranked routes for one query, plus depth and an optional split."""

    token_in: str
    token_out: str
    direction: QueryDirection
    routes: Tuple[RouteQuote, ...] = ()
    depth_tiers: Tuple[DepthTier, ...] = ()
    split: Optional[SplitRouteDetail] = None
    partial: bool = False

    @property
    def found(self) -> bool:
        return bool(self.routes)

    def best(self) -> RouteQuote:
        if not self.routes:
            raise NoRouteFoundError(
                f"No route from {self.token_in} to {self.token_out}",
                token_in=self.token_in,
                token_out=self.token_out,
            )
        return self.routes[0]

    def to_dict(self):
        return {
            "direction": self.direction.value,
            "routes": [r.to_dict() for r in self.routes],
            "depth_tiers": [d.to_dict() for d in self.depth_tiers],
            "split": self.split.to_dict() if self.split else None,
            "partial": self.partial,
        }


# ============================================================================
# Arbitrage windows
# ============================================================================


@dataclass(frozen=True)
class OracleArbWindow:
    """
    A path whose rate beats the external reference.

    Attributes:
        path_label: Human-readable path (e.g., "ERG → SigUSD")
        hops: Number of hops
        pool_ids: Pools along the path
        spot_rate: Zero-size rate in display units of target per base
        discount_pct: How far the spot rate beats the reference, in percent
        rate_at_max: Effective display rate at max_input
        max_input: Largest input keeping the rate at or above the reference
        output_at_max: Output at max_input, raw units
        output_at_max_human: Output at max_input, display units
        price_impact_at_max: End-to-end impact at max_input, percent
    """

    path_label: str
    hops: int
    pool_ids: Tuple[str, ...]
    spot_rate: Decimal
    discount_pct: Decimal
    rate_at_max: Decimal
    max_input: int
    output_at_max: Decimal
    output_at_max_human: Decimal
    price_impact_at_max: Decimal
    route: Route

    def to_dict(self):
        return {
            "path_label": self.path_label,
            "hops": self.hops,
            "pool_ids": list(self.pool_ids),
            "spot_rate": float(self.spot_rate),
            "discount_pct": float(self.discount_pct),
            "rate_at_max": float(self.rate_at_max),
            "max_input": self.max_input,
            "output_at_max": _amount(self.output_at_max),
            "output_at_max_human": float(self.output_at_max_human),
            "price_impact_at_max": float(self.price_impact_at_max),
        }


@dataclass(frozen=True)
class OracleArbSnapshot:
    reference_rate: Decimal
    windows: Tuple[OracleArbWindow, ...] = ()
    total_output: Decimal = Decimal(0)
    total_input: int = 0
    scan_time_ms: float = 0.0
    partial: bool = False

    def to_dict(self):
        return {
            "reference_rate": float(self.reference_rate),
            "windows": [w.to_dict() for w in self.windows],
            "total_output": _amount(self.total_output),
            "total_input": self.total_input,
            "scan_time_ms": round(self.scan_time_ms, 3),
            "partial": self.partial,
        }


@dataclass(frozen=True)
class CircularArb:
    """
    A closed walk from the base token back to itself that nets a profit.

    Attributes:
        optimal_input: Input maximizing gross profit, raw base units
        output: Base tokens returned at optimal_input
        gross_profit: output - optimal_input
        tx_fee: Fixed transaction cost in base units
        net_profit: gross_profit - tx_fee
        profit_pct: net_profit relative to optimal_input, percent
        price_impact: End-to-end impact at optimal_input, percent
    """

    path_label: str
    hops: int
    pool_ids: Tuple[str, ...]
    optimal_input: int
    output: Decimal
    gross_profit: Decimal
    tx_fee: int
    net_profit: Decimal
    profit_pct: Decimal
    price_impact: Decimal
    route: Route

    def to_dict(self):
        return {
            "path_label": self.path_label,
            "hops": self.hops,
            "pool_ids": list(self.pool_ids),
            "optimal_input": self.optimal_input,
            "output": _amount(self.output),
            "gross_profit": _amount(self.gross_profit),
            "tx_fee": self.tx_fee,
            "net_profit": _amount(self.net_profit),
            "profit_pct": float(self.profit_pct),
            "price_impact": float(self.price_impact),
        }


@dataclass(frozen=True)
class CircularArbSnapshot:
    windows: Tuple[CircularArb, ...] = ()
    total_net_profit: Decimal = Decimal(0)
    scan_time_ms: float = 0.0
    partial: bool = False

    def to_dict(self):
        return {
            "windows": [w.to_dict() for w in self.windows],
            "total_net_profit": _amount(self.total_net_profit),
            "scan_time_ms": round(self.scan_time_ms, 3),
            "partial": self.partial,
        }


# ============================================================================
# Cross-protocol acquisition
# ============================================================================


@dataclass(frozen=True)
class AcquisitionOption:
    """One way of turning the source token into the target token."""

    protocol: str
    description: str
    available: bool
    input_amount: Decimal
    output_amount: Decimal
    effective_price: Optional[Decimal] = None
    impact_or_fee_pct: Decimal = Decimal(0)
    unavailable_reason: Optional[str] = None
    route: Optional[Route] = None

    def to_dict(self):
        return {
            "protocol": self.protocol,
            "description": self.description,
            "available": self.available,
            "input_amount": _amount(self.input_amount),
            "output_amount": _amount(self.output_amount),
            "effective_price": (
                float(self.effective_price) if self.effective_price is not None else None
            ),
            "impact_or_fee_pct": float(self.impact_or_fee_pct),
            "unavailable_reason": self.unavailable_reason,
            "route": self.route.to_dict() if self.route else None,
        }


@dataclass(frozen=True)
class AcquisitionComparison:
    target_token: str
    input_amount: Decimal
    options: Tuple[AcquisitionOption, ...] = field(default_factory=tuple)
    best_index: Optional[int] = None

    @property
    def best(self) -> Optional[AcquisitionOption]:
        if self.best_index is None:
            return None
        return self.options[self.best_index]

    def to_dict(self):
        return {
            "target_token": self.target_token,
            "input_amount": _amount(self.input_amount),
            "options": [o.to_dict() for o in self.options],
            "best_index": self.best_index,
        }
