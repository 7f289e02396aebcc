"""
Constant-product quote engine.

The numerical primitive every other component builds on. The fee is taken
from the input before the invariant is applied:

    amount_out = reserve_out * a*x / (reserve_in + a*x),  a = 1 - fee_rate

which is the same curve as ``reserve_out - reserve_in*reserve_out/(reserve_in + a*x)``
written without the cancelling subtraction.

Conversion policy:
- Internal: Decimal with 50 digits precision, opened per call
- Forward amounts are raw units and are never rounded here
- Inverse quotes round the required input up to a whole raw unit
- Price impact is returned in percent
"""

from decimal import Decimal

from .exceptions import (
    CorruptReservesError,
    IlliquidPoolError,
    InsufficientLiquidityError,
    InvalidAmountError,
)
from .models import Amount, Hop, Pool, Route, SwapQuote
from .utils import floor_int, precise, to_decimal


def validate_amount(amount: Amount, label: str = "amount") -> Decimal:
    """Coerce ``amount`` to Decimal, rejecting non-positive and malformed values."""
    try:
        value = to_decimal(amount)
    except ValueError as e:
        raise InvalidAmountError(f"Malformed {label}: {amount!r}", amount=amount) from e
    if not value.is_finite():
        raise InvalidAmountError(f"Malformed {label}: {amount!r}", amount=amount)
    if value <= 0:
        raise InvalidAmountError(f"{label} must be positive, got {amount}", amount=amount)
    return value


def _live_reserves(pool: Pool, token_in: str):
    reserve_in, reserve_out = pool.reserves_for(token_in)
    if reserve_in == 0 or reserve_out == 0:
        raise IlliquidPoolError(
            f"Pool {pool.pool_id} has an empty reserve",
            pool_id=pool.pool_id,
            details={"reserve_in": reserve_in, "reserve_out": reserve_out},
        )
    return reserve_in, reserve_out


def spot_price(pool: Pool, token_in: str) -> Decimal:
    """Pre-trade price of ``token_in`` in raw output units per raw input unit."""
    reserve_in, reserve_out = _live_reserves(pool, token_in)
    with precise():
        return Decimal(reserve_out) / Decimal(reserve_in)


def marginal_rate(pool: Pool, token_in: str, amount_in: Amount = 0) -> Decimal:
    """Derivative of the output curve after ``amount_in`` has been sold.

    At zero this is ``spot_price * (1 - fee_rate)``, the best rate any
    trade through the pool can get.
    """
    reserve_in, reserve_out = _live_reserves(pool, token_in)
    with precise():
        a = Decimal(1) - pool.fee_rate
        ri = Decimal(reserve_in)
        denom = ri + a * to_decimal(amount_in)
        return Decimal(reserve_out) * a * ri / (denom * denom)


def quote(pool: Pool, token_in: str, amount_in: Amount) -> SwapQuote:
    """
    Price a swap of ``amount_in`` raw units of ``token_in`` through ``pool``.

    Raises:
        InvalidAmountError: amount is non-positive or malformed
        IlliquidPoolError: either reserve is zero
        CorruptReservesError: the result would drain the output reserve
    """
    x = validate_amount(amount_in, "amount_in")
    reserve_in, reserve_out = _live_reserves(pool, token_in)

    with precise():
        ri = Decimal(reserve_in)
        ro = Decimal(reserve_out)
        effective_in = x * (Decimal(1) - pool.fee_rate)
        amount_out = ro * effective_in / (ri + effective_in)

        if amount_out >= ro or amount_out < 0:
            raise CorruptReservesError(
                f"Quote through {pool.pool_id} broke the invariant",
                pool_id=pool.pool_id,
                details={"amount_in": str(x), "amount_out": str(amount_out)},
            )

        spot = ro / ri
        price_impact = (Decimal(1) - (amount_out / x) / spot) * 100
        return SwapQuote(
            amount_out=amount_out,
            fee=x * pool.fee_rate,
            price_impact=price_impact,
            spot_price=spot,
        )


def quote_for_output(pool: Pool, token_out: str, amount_out: Amount) -> Decimal:
    """
    Smallest whole input of the opposite token that receives at least ``amount_out``.

    The closed-form inverse is floored and then stepped up until a forward
    quote clears the target, so the result is always executable.

    Raises:
        InvalidAmountError: amount is non-positive or malformed
        IlliquidPoolError: either reserve is zero
        InsufficientLiquidityError: the pool cannot pay out that much
    """
    out = validate_amount(amount_out, "amount_out")
    token_in = pool.other(token_out).token_id
    reserve_in, reserve_out = _live_reserves(pool, token_in)

    if out >= reserve_out:
        raise InsufficientLiquidityError(
            f"Pool {pool.pool_id} holds {reserve_out}, cannot pay out {out}",
            pool_id=pool.pool_id,
            details={"reserve_out": reserve_out, "amount_out": str(out)},
        )

    with precise():
        a = Decimal(1) - pool.fee_rate
        exact = Decimal(reserve_in) * out / ((Decimal(reserve_out) - out) * a)

    required = max(floor_int(exact), 1)
    while quote(pool, token_in, required).amount_out < out:
        required += 1
    return Decimal(required)


def quote_hop(pool: Pool, token_in: str, amount_in: Amount) -> Hop:
    """Forward quote packaged as a Hop with its reserve snapshot."""
    result = quote(pool, token_in, amount_in)
    reserve_in, reserve_out = pool.reserves_for(token_in)
    return Hop(
        pool_id=pool.pool_id,
        token_in=pool.token(token_in),
        token_out=pool.other(token_in),
        amount_in=to_decimal(amount_in),
        amount_out=result.amount_out,
        fee=result.fee,
        price_impact=result.price_impact,
        reserve_in=reserve_in,
        reserve_out=reserve_out,
        fee_rate=pool.fee_rate,
    )


def requote(route: Route, amount_in: Amount) -> Route:
    """Re-price ``route`` for a new input against its own reserve snapshot."""
    hops = []
    amount = amount_in
    for hop in route.hops:
        priced = quote_hop(hop.pool_state(), hop.token_in.token_id, amount)
        hops.append(priced)
        amount = priced.amount_out
    return Route(tuple(hops))


def route_output(route: Route, amount_in: Amount) -> Decimal:
    """Output of ``route`` for ``amount_in`` without building hops."""
    amount = amount_in
    for hop in route.hops:
        amount = quote(hop.pool_state(), hop.token_in.token_id, amount).amount_out
    return amount
