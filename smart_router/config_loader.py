"""
Configuration loading and normalization for the smart router.

Loads a YAML file, validates it against the pydantic schema and turns the
result into domain objects (tokens, pools, mint alternatives) the service
can use directly.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import pydantic
import yaml

from .compare import FixedRateMint
from .config_schema import MintSpec, PoolSpec, RouterConfig
from .exceptions import ConfigurationError, SmartRouterError
from .models import Pool, Token
from .utils import timing_decorator


@dataclass(frozen=True)
class MintAlternative:
    """A configured mint, tied to the token it produces."""

    target_token: str
    source: FixedRateMint


@dataclass(frozen=True)
class RouterRuntimeConfig:
    """Immutable runtime configuration object."""

    settings: RouterConfig
    tokens: Dict[str, Token] = field(default_factory=dict)
    pools: Tuple[Pool, ...] = ()
    mints: Tuple[MintAlternative, ...] = ()

    @property
    def base_token(self) -> str:
        return self.settings.base_token

    def mints_for(self, target_token: str) -> Tuple[FixedRateMint, ...]:
        return tuple(m.source for m in self.mints if m.target_token == target_token)


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse YAML configuration file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config {config_path}: {e}")

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")
    return config_dict


def validate_router_config(config_dict: Dict[str, Any]) -> RouterConfig:
    """Validate a raw config dict against the schema."""
    try:
        return RouterConfig.model_validate(config_dict)
    except pydantic.ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed: {e}", {"errors": e.errors()}
        )


def _build_pool(spec: PoolSpec, tokens: Dict[str, Token]) -> Pool:
    token_x = tokens[spec.token_x]
    token_y = tokens[spec.token_y]
    if spec.fee_num is not None:
        return Pool.from_fee_fraction(
            spec.id,
            token_x,
            token_y,
            spec.reserve_x,
            spec.reserve_y,
            spec.fee_num,
            spec.fee_denom,
            spec.last_updated,
        )
    if spec.fee_bps is not None:
        return Pool.from_bps(
            spec.id,
            token_x,
            token_y,
            spec.reserve_x,
            spec.reserve_y,
            spec.fee_bps,
            spec.last_updated,
        )
    return Pool(
        spec.id,
        token_x,
        token_y,
        spec.reserve_x,
        spec.reserve_y,
        last_updated=spec.last_updated,
    )


def _build_mint(spec: MintSpec) -> MintAlternative:
    if spec.reserve_ratio_pct is not None:
        source = FixedRateMint.reserve_backed(
            spec.protocol,
            spec.price,
            spec.reserve_ratio_pct,
            min_reserve_ratio_pct=spec.min_reserve_ratio_pct,
            fee_pct=spec.fee_pct,
        )
    else:
        source = FixedRateMint(spec.protocol, spec.price, fee_pct=spec.fee_pct)
    return MintAlternative(target_token=spec.target_token, source=source)


@timing_decorator
def build_runtime_config(settings: RouterConfig) -> RouterRuntimeConfig:
    tokens = {t.id: Token(t.id, t.name, t.decimals) for t in settings.tokens}
    try:
        pools = tuple(_build_pool(spec, tokens) for spec in settings.pools)
    except SmartRouterError as e:
        raise ConfigurationError(f"Invalid pool in configuration: {e}", e.details)
    mints = tuple(_build_mint(spec) for spec in settings.mints)
    return RouterRuntimeConfig(settings=settings, tokens=tokens, pools=pools, mints=mints)


def load_router_config(config_path: Union[str, Path]) -> RouterRuntimeConfig:
    """
    Load and normalize a router configuration file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Frozen runtime configuration with pools built

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_dict = load_yaml_config(config_path)
    settings = validate_router_config(config_dict)
    return build_runtime_config(settings)
