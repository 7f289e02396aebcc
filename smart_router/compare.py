"""
Cross-protocol acquisition comparison.

Puts the best DEX route next to alternative ways of acquiring the same
token (a fixed-rate protocol mint, for instance) and ranks the available
ones by output.
"""

from decimal import Decimal
from typing import Optional, Sequence

from .budget import SearchBudget
from .constants import DEFAULT_MAX_HOPS, DEFAULT_SLIPPAGE_PCT
from .graph import PoolGraph
from .interfaces import AcquisitionSource
from .models import AcquisitionComparison, AcquisitionOption, Amount
from .quote import validate_amount
from .search import find_routes
from .utils import floor_int, get_logger, precise, to_decimal

logger = get_logger(__name__)

DEX_PROTOCOL = "DEX"


class FixedRateMint:
    """
    A protocol that issues the target token at a fixed all-in price.

    Attributes:
        protocol: Display name (e.g., "SigmaUSD")
        price: Source raw units charged per target raw unit, fee included
        fee_pct: Protocol fee in percent, reported alongside the option
        available: Whether minting is currently allowed
        unavailable_reason: Why minting is closed, shown when not available
    """

    def __init__(
        self,
        protocol: str,
        price,
        fee_pct=Decimal(0),
        available: bool = True,
        unavailable_reason: Optional[str] = None,
        description: Optional[str] = None,
    ):
        self.protocol = protocol
        self.price = to_decimal(price)
        self.fee_pct = to_decimal(fee_pct)
        self.available = available
        self.unavailable_reason = unavailable_reason
        self.description = description or f"Protocol mint ({self.fee_pct}% fee)"

    @classmethod
    def reserve_backed(
        cls,
        protocol: str,
        price,
        reserve_ratio_pct,
        min_reserve_ratio_pct=Decimal(400),
        fee_pct=Decimal(2),
    ) -> "FixedRateMint":
        """A stablecoin mint that closes below a minimum reserve ratio."""
        ratio = to_decimal(reserve_ratio_pct)
        minimum = to_decimal(min_reserve_ratio_pct)
        return cls(
            protocol,
            price,
            fee_pct=fee_pct,
            available=ratio >= minimum,
            unavailable_reason=f"Reserve ratio {ratio:.0f}% < {minimum:.0f}% minimum",
            description=f"Protocol mint ({fee_pct}% fee, RR={ratio:.0f}%)",
        )

    def quote(self, amount_in: Decimal) -> AcquisitionOption:
        if not self.available:
            return self._unavailable(amount_in, self.unavailable_reason or "Minting unavailable")
        if self.price <= 0:
            return self._unavailable(amount_in, "Mint price unavailable")

        with precise():
            output = floor_int(amount_in / self.price)
            if output <= 0:
                return self._unavailable(amount_in, "Amount too small to mint")
            effective_price = amount_in / output

        return AcquisitionOption(
            protocol=self.protocol,
            description=self.description,
            available=True,
            input_amount=amount_in,
            output_amount=Decimal(output),
            effective_price=effective_price,
            impact_or_fee_pct=self.fee_pct,
        )

    def _unavailable(self, amount_in: Decimal, reason: str) -> AcquisitionOption:
        return AcquisitionOption(
            protocol=self.protocol,
            description=self.description,
            available=False,
            input_amount=amount_in,
            output_amount=Decimal(0),
            impact_or_fee_pct=self.fee_pct,
            unavailable_reason=reason,
        )


def dex_option(
    graph: PoolGraph,
    token_in: str,
    token_out: str,
    amount_in: Decimal,
    max_hops: int = DEFAULT_MAX_HOPS,
    budget: Optional[SearchBudget] = None,
) -> AcquisitionOption:
    """The best DEX route wrapped as an acquisition option."""
    response = find_routes(
        graph,
        token_in,
        token_out,
        amount_in,
        max_hops=max_hops,
        max_routes=1,
        slippage_pct=DEFAULT_SLIPPAGE_PCT,
        budget=budget,
    )
    if not response.found:
        return AcquisitionOption(
            protocol=DEX_PROTOCOL,
            description=f"Swap {token_in} → {token_out}",
            available=False,
            input_amount=amount_in,
            output_amount=Decimal(0),
            unavailable_reason="No route found",
        )

    route = response.best().route
    with precise():
        effective_price = route.total_input / route.total_output
    return AcquisitionOption(
        protocol=DEX_PROTOCOL,
        description=f"Swap via {route.path_label}",
        available=True,
        input_amount=route.total_input,
        output_amount=route.total_output,
        effective_price=effective_price,
        impact_or_fee_pct=route.total_price_impact,
        route=route,
    )


def compare_options(
    graph: PoolGraph,
    token_in: str,
    token_out: str,
    amount_in: Amount,
    alternatives: Sequence[AcquisitionSource] = (),
    max_hops: int = DEFAULT_MAX_HOPS,
    budget: Optional[SearchBudget] = None,
) -> AcquisitionComparison:
    """
    Rank the DEX route against ``alternatives`` for the same input.

    Available options come first, by output descending; unavailable ones
    follow in their original order and are never ranked. ``best_index`` is
    0 when anything is available, otherwise None.
    """
    amount = validate_amount(amount_in, "amount_in")

    options = [dex_option(graph, token_in, token_out, amount, max_hops, budget)]
    options.extend(source.quote(amount) for source in alternatives)

    available = sorted(
        (o for o in options if o.available), key=lambda o: o.output_amount, reverse=True
    )
    unavailable = [o for o in options if not o.available]
    ranked = tuple(available + unavailable)

    logger.info(
        "Compared %d options for %s → %s: %d available",
        len(ranked),
        token_in,
        token_out,
        len(available),
    )
    return AcquisitionComparison(
        target_token=token_out,
        input_amount=amount,
        options=ranked,
        best_index=0 if available else None,
    )
