"""Tests for levercdp/integration/config.py: YAML parameter files."""

from __future__ import annotations

from pathlib import Path

import pytest

from levercdp.core.cdp import DEFAULT_PARAMS
from levercdp.integration.config import (
    PARAMS_ENV_VAR,
    PARAMS_SCHEMA,
    ConfigError,
    load_params,
    params_from_env,
    params_from_mapping,
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "params.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_overrides_and_keeps_defaults(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        f"schema: {PARAMS_SCHEMA}\n"
        "params:\n"
        "  flash_fee_bps: 9\n"
        '  min_net_debt: "2000000000000000000000"\n',
    )
    params = load_params(path)
    assert params.flash_fee_bps == 9
    assert params.min_net_debt == 2_000 * 10**18
    assert params.mcr == DEFAULT_PARAMS.mcr
    assert params.gas_compensation == DEFAULT_PARAMS.gas_compensation


def test_missing_params_section_means_defaults(tmp_path: Path) -> None:
    path = _write(tmp_path, f"schema: {PARAMS_SCHEMA}\n")
    assert load_params(path) == DEFAULT_PARAMS


@pytest.mark.parametrize(
    "text",
    [
        "- just\n- a list\n",
        "params: {}\n",
        "schema: levercdp/params/v0\n",
        f"schema: {PARAMS_SCHEMA}\nparams: [1, 2]\n",
    ],
)
def test_malformed_files_rejected(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError):
        load_params(_write(tmp_path, text))


@pytest.mark.parametrize(
    "raw",
    [
        {"liquidation_bonus": 5},
        {"mcr": True},
        {"mcr": -1},
        {"mcr": "1.1"},
        {"mcr": 10**18},
        {"borrowing_fee_floor": 10**17, "max_borrowing_fee": 10**16},
        {"flash_fee_bps": 10_001},
    ],
)
def test_invalid_values_rejected(raw: dict) -> None:
    with pytest.raises(ConfigError):
        params_from_mapping(raw)


def test_mapping_uses_base() -> None:
    base = params_from_mapping({"flash_fee_bps": 5})
    params = params_from_mapping({"max_leftover": 0}, base=base)
    assert params.flash_fee_bps == 5
    assert params.max_leftover == 0


def test_env_unset_means_defaults() -> None:
    assert params_from_env({}) == DEFAULT_PARAMS
    assert params_from_env({PARAMS_ENV_VAR: "  "}) == DEFAULT_PARAMS


def test_env_names_a_file(tmp_path: Path) -> None:
    path = _write(tmp_path, f"schema: {PARAMS_SCHEMA}\nparams:\n  flash_fee_bps: 3\n")
    assert params_from_env({PARAMS_ENV_VAR: str(path)}).flash_fee_bps == 3
