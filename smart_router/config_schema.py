"""
Configuration schema validation using Pydantic
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import (
    DEFAULT_BINARY_ITERATIONS,
    DEFAULT_IMPACT_TIERS_PCT,
    DEFAULT_MAX_HOPS,
    DEFAULT_MAX_IMPACT_PCT,
    DEFAULT_MAX_PATHS,
    DEFAULT_MAX_POOLS_PER_PAIR,
    DEFAULT_MAX_ROUTES,
    DEFAULT_MAX_SPLITS,
    DEFAULT_SLIPPAGE_PCT,
    DEFAULT_SPLIT_STEPS,
    DEFAULT_TERNARY_ITERATIONS,
    DEFAULT_TIME_BUDGET_MS,
    DEFAULT_TX_FEE,
    MIN_SPLIT_IMPROVEMENT_PCT,
    MIN_WINDOW_OUTPUT,
)


class TokenSpec(BaseModel):
    """Token metadata"""

    id: str = Field(min_length=1, description="Token identifier")
    name: str = Field(min_length=1, description="Display name")
    decimals: int = Field(ge=0, le=36, default=0)


class PoolSpec(BaseModel):
    """Pool state; the fee is given either in bps or as a retained fraction"""

    id: str = Field(min_length=1, description="Pool identifier")
    token_x: str
    token_y: str
    reserve_x: int = Field(ge=0)
    reserve_y: int = Field(ge=0)
    fee_bps: Optional[Decimal] = Field(ge=0, lt=10000, default=None)
    fee_num: Optional[int] = Field(gt=0, default=None)
    fee_denom: Optional[int] = Field(gt=0, default=None)
    last_updated: int = Field(ge=0, default=0)

    @model_validator(mode="after")
    def validate_fee(self):
        has_fraction = self.fee_num is not None or self.fee_denom is not None
        if self.fee_bps is not None and has_fraction:
            raise ValueError(f"Pool {self.id}: give fee_bps or fee_num/fee_denom, not both")
        if has_fraction:
            if self.fee_num is None or self.fee_denom is None:
                raise ValueError(f"Pool {self.id}: fee_num and fee_denom go together")
            if self.fee_num > self.fee_denom:
                raise ValueError(f"Pool {self.id}: fee_num cannot exceed fee_denom")
        if self.token_x == self.token_y:
            raise ValueError(f"Pool {self.id} pairs {self.token_x} with itself")
        return self


class SearchConfig(BaseModel):
    """Route search bounds"""

    max_hops: int = Field(ge=1, le=6, default=DEFAULT_MAX_HOPS)
    max_routes: int = Field(ge=1, le=50, default=DEFAULT_MAX_ROUTES)
    slippage_pct: Decimal = Field(ge=0, lt=100, default=DEFAULT_SLIPPAGE_PCT)
    time_budget_ms: Optional[float] = Field(gt=0, default=DEFAULT_TIME_BUDGET_MS)
    max_paths: Optional[int] = Field(ge=1, default=DEFAULT_MAX_PATHS)
    min_liquidity: int = Field(
        ge=0, default=0, description="Minimum base-token reserve for pools touching the base"
    )
    max_pools_per_pair: Optional[int] = Field(ge=1, default=DEFAULT_MAX_POOLS_PER_PAIR)


class SplitConfig(BaseModel):
    """Split optimizer tuning"""

    max_splits: int = Field(ge=1, le=10, default=DEFAULT_MAX_SPLITS)
    steps: int = Field(ge=1, le=10000, default=DEFAULT_SPLIT_STEPS)
    min_improvement_pct: Decimal = Field(ge=0, default=MIN_SPLIT_IMPROVEMENT_PCT)


class DepthConfig(BaseModel):
    """Depth tiers in percent"""

    impact_tiers_pct: List[Decimal] = Field(
        default_factory=lambda: list(DEFAULT_IMPACT_TIERS_PCT)
    )

    @field_validator("impact_tiers_pct")
    @classmethod
    def validate_tiers(cls, v):
        if not v:
            raise ValueError("impact_tiers_pct cannot be empty")
        for tier in v:
            if not (0 < tier < 100):
                raise ValueError(f"Impact tier must be in (0, 100): {tier}")
        return v


class ArbConfig(BaseModel):
    """Arbitrage scanner settings"""

    target_token: Optional[str] = Field(
        default=None, description="Token the oracle scan acquires"
    )
    reference_rate: Optional[Decimal] = Field(
        gt=0, default=None, description="Reference rate, target per base in display units"
    )
    tx_fee: int = Field(ge=0, default=DEFAULT_TX_FEE, description="Fixed fee in base raw units")
    max_hops: int = Field(ge=2, le=6, default=DEFAULT_MAX_HOPS)
    max_impact_pct: Decimal = Field(gt=0, lt=100, default=DEFAULT_MAX_IMPACT_PCT)
    min_window_output: int = Field(ge=0, default=MIN_WINDOW_OUTPUT)
    ternary_iterations: int = Field(ge=1, le=1000, default=DEFAULT_TERNARY_ITERATIONS)
    binary_iterations: int = Field(ge=1, le=1000, default=DEFAULT_BINARY_ITERATIONS)


class MintSpec(BaseModel):
    """Fixed-rate acquisition alternative (protocol mint)"""

    protocol: str = Field(min_length=1)
    target_token: str
    price: Decimal = Field(gt=0, description="Source raw units per target raw unit, fee included")
    fee_pct: Decimal = Field(ge=0, lt=100, default=Decimal(0))
    reserve_ratio_pct: Optional[Decimal] = Field(ge=0, default=None)
    min_reserve_ratio_pct: Decimal = Field(ge=0, default=Decimal(400))


class RouterConfig(BaseModel):
    """Complete router configuration"""

    base_token: str = Field(min_length=1, description="Token used as base currency")
    tokens: List[TokenSpec]
    pools: List[PoolSpec] = Field(default_factory=list)
    search: SearchConfig = Field(default_factory=SearchConfig)
    split: SplitConfig = Field(default_factory=SplitConfig)
    depth: DepthConfig = Field(default_factory=DepthConfig)
    arb: ArbConfig = Field(default_factory=ArbConfig)
    mints: List[MintSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_references(self):
        token_ids = [t.id for t in self.tokens]
        if len(set(token_ids)) != len(token_ids):
            raise ValueError("Duplicate token ids")
        known = set(token_ids)

        if self.base_token not in known:
            raise ValueError(f"base_token {self.base_token} is not a declared token")

        pool_ids = [p.id for p in self.pools]
        if len(set(pool_ids)) != len(pool_ids):
            raise ValueError("Duplicate pool ids")
        for pool in self.pools:
            for token in (pool.token_x, pool.token_y):
                if token not in known:
                    raise ValueError(f"Pool {pool.id} references unknown token {token}")

        if self.arb.target_token is not None and self.arb.target_token not in known:
            raise ValueError(f"arb.target_token {self.arb.target_token} is not declared")
        for mint in self.mints:
            if mint.target_token not in known:
                raise ValueError(f"Mint {mint.protocol} targets unknown token {mint.target_token}")
        return self
