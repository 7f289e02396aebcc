"""
Tests for the run_router CLI entry point.
"""

import json
import logging
from decimal import Decimal

import pytest

import run_router
from smart_router.version import get_version


@pytest.fixture(autouse=True)
def restore_logging():
    """main() reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def run(capsys, *argv):
    code = run_router.main(list(argv))
    return code, capsys.readouterr()


def test_routes_json(capsys, example_config_path):
    code, captured = run(
        capsys, "--config", str(example_config_path), "-q", "--format", "json",
        "routes", "ERG", "SigUSD", "1000000000",
    )

    assert code == 0
    data = json.loads(captured.out)
    assert data["direction"] == "exact_input"
    assert len(data["routes"]) == 3
    assert data["partial"] is False


def test_routes_table(capsys, example_config_path):
    code, captured = run(
        capsys, "--config", str(example_config_path), "-q",
        "routes", "ERG", "SigUSD", "1000000000", "--max-hops", "1",
    )

    assert code == 0
    assert "ERG → SigUSD" in captured.out
    assert "Min out" in captured.out


def test_by_output_json(capsys, example_config_path):
    code, captured = run(
        capsys, "--config", str(example_config_path), "-q", "--format", "json",
        "by-output", "ERG", "SigUSD", "5000",
    )

    assert code == 0
    data = json.loads(captured.out)
    assert data["direction"] == "exact_output"
    best = data["routes"][0]
    assert Decimal(best["total_output"]) >= 5000
    assert Decimal(best["total_input"]) == int(Decimal(best["total_input"]))


def test_depth_json(capsys, example_config_path):
    code, captured = run(
        capsys, "--config", str(example_config_path), "-q", "--format", "json", "depth", "ERG"
    )

    assert code == 0
    assert {d["pool_id"] for d in json.loads(captured.out)} == {
        "erg_sigusd_main",
        "erg_sigusd_alt",
        "erg_rsn",
    }


@pytest.mark.parametrize(
    "command, marker",
    [
        (["compare", "SigUSD", "1000000000"], "SigmaUSD"),
        (["oracle", "--reference-rate", "1.24"], "Discount"),
        (["circular"], "Total net profit"),
    ],
)
def test_table_commands(capsys, example_config_path, command, marker):
    code, captured = run(capsys, "--config", str(example_config_path), "-q", *command)

    assert code == 0
    assert marker in captured.out


def test_missing_config(capsys, tmp_path):
    code, captured = run(capsys, "--config", str(tmp_path / "missing.yaml"), "circular")

    assert code == 1
    assert "Config error" in captured.err


def test_engine_error_exit_code(capsys, example_config_path):
    code, captured = run(
        capsys, "--config", str(example_config_path), "-q", "routes", "ERG", "DOGE", "1000"
    )

    assert code == 1
    assert "Unknown token" in captured.err


def test_bad_amount_rejected_by_parser(capsys, example_config_path):
    with pytest.raises(SystemExit):
        run_router.main(["--config", str(example_config_path), "routes", "ERG", "SigUSD", "abc"])


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc:
        run_router.main(["--version"])

    assert exc.value.code == 0
    assert get_version() in capsys.readouterr().out
