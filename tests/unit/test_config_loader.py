"""Tests for the config_loader module."""

import logging
from decimal import Decimal

import pytest
import yaml

from smart_router.config_loader import (
    build_runtime_config,
    load_router_config,
    load_yaml_config,
    validate_router_config,
)
from smart_router.config_schema import RouterConfig
from smart_router.exceptions import ConfigurationError


def minimal_config(**overrides):
    config = {
        "base_token": "ERG",
        "tokens": [
            {"id": "ERG", "name": "ERG", "decimals": 9},
            {"id": "SigUSD", "name": "SigUSD", "decimals": 2},
        ],
        "pools": [
            {
                "id": "main",
                "token_x": "ERG",
                "token_y": "SigUSD",
                "reserve_x": 10**14,
                "reserve_y": 12_500_000,
                "fee_bps": 30,
            }
        ],
    }
    config.update(overrides)
    return config


def write_yaml(tmp_path, data, name="router.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


def test_load_yaml_config_valid(tmp_path):
    """Test loading a valid YAML configuration."""
    data = minimal_config()
    assert load_yaml_config(write_yaml(tmp_path, data)) == data


def test_load_yaml_config_file_not_found():
    """Test loading config from non-existent file."""
    with pytest.raises(ConfigurationError, match="Configuration file not found"):
        load_yaml_config("/non/existent/file.yaml")


def test_load_yaml_config_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    with pytest.raises(ConfigurationError, match="Empty configuration file"):
        load_yaml_config(path)


def test_load_yaml_config_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("invalid: yaml: content: [")
    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_yaml_config(path)


def test_load_yaml_config_non_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- one\n- two\n")
    with pytest.raises(ConfigurationError, match="must be a mapping"):
        load_yaml_config(path)


def test_example_config_loads(example_config_path):
    """The shipped example config is valid and builds every pool."""
    config = load_router_config(example_config_path)

    assert config.base_token == "ERG"
    assert set(config.tokens) == {"ERG", "SigUSD", "RSN"}
    assert len(config.pools) == 4
    pools = {p.pool_id: p for p in config.pools}
    assert pools["erg_sigusd_main"].fee_rate == Decimal("0.003")
    assert pools["erg_sigusd_alt"].fee_rate == Decimal("0.003")
    assert pools["erg_sigusd_main"].token_x.decimals == 9

    mints = config.mints_for("SigUSD")
    assert len(mints) == 1
    assert mints[0].available
    assert config.mints_for("RSN") == ()

    assert config.settings.arb.reference_rate == Decimal("1.24")
    assert config.settings.search.min_liquidity == 1_000_000_000


def test_defaults_applied():
    settings = validate_router_config(minimal_config())

    assert settings.search.max_hops == 3
    assert settings.search.slippage_pct == Decimal("0.5")
    assert settings.split.max_splits == 3
    assert settings.depth.impact_tiers_pct == [
        Decimal("0.5"),
        Decimal(1),
        Decimal(2),
        Decimal(5),
        Decimal(10),
    ]
    assert settings.arb.tx_fee == 1_100_000
    assert settings.arb.target_token is None


def test_default_fee_when_unspecified():
    data = minimal_config()
    del data["pools"][0]["fee_bps"]
    runtime = build_runtime_config(RouterConfig.model_validate(data))
    assert runtime.pools[0].fee_rate == Decimal("0.003")


def test_fee_fraction():
    data = minimal_config()
    pool = data["pools"][0]
    del pool["fee_bps"]
    pool.update(fee_num=998, fee_denom=1000)
    runtime = build_runtime_config(validate_router_config(data))
    assert runtime.pools[0].fee_rate == Decimal("0.002")


@pytest.mark.parametrize(
    "mutate, message",
    [
        (lambda c: c["pools"][0].update(token_y="DOGE"), "unknown token"),
        (lambda c: c["pools"].append(dict(c["pools"][0])), "Duplicate pool ids"),
        (lambda c: c["tokens"].append({"id": "ERG", "name": "ERG2"}), "Duplicate token ids"),
        (lambda c: c.update(base_token="DOGE"), "base_token"),
        (lambda c: c["pools"][0].update(token_y="ERG"), "with itself"),
        (lambda c: c["pools"][0].update(fee_num=997, fee_denom=1000), "not both"),
        (lambda c: c["pools"][0].update(reserve_x=-1), "reserve_x"),
        (lambda c: c.update(depth={"impact_tiers_pct": [0.5, 100]}), "Impact tier"),
        (lambda c: c.update(depth={"impact_tiers_pct": []}), "cannot be empty"),
        (lambda c: c.update(arb={"max_hops": 1}), "max_hops"),
        (lambda c: c.update(arb={"target_token": "DOGE"}), "target_token"),
        (
            lambda c: c.update(mints=[{"protocol": "M", "target_token": "DOGE", "price": 1}]),
            "unknown token",
        ),
    ],
)
def test_invalid_configs_rejected(mutate, message):
    data = minimal_config()
    mutate(data)
    with pytest.raises(ConfigurationError, match=message):
        validate_router_config(data)


def test_invalid_file_surfaces_as_configuration_error(tmp_path):
    data = minimal_config()
    data["search"] = {"max_hops": 0}
    with pytest.raises(ConfigurationError, match="validation failed"):
        load_router_config(write_yaml(tmp_path, data))


def test_runtime_build_is_timed(caplog):
    settings = validate_router_config(minimal_config())
    with caplog.at_level(logging.DEBUG, logger="smart_router.config_loader"):
        runtime = build_runtime_config(settings)

    assert len(runtime.pools) == 1
    assert any("build_runtime_config executed in" in r.message for r in caplog.records)
