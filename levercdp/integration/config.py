"""
Protocol parameter loading.

Parameter files are YAML:

    schema: levercdp/params/v1
    params:
      mcr: 1100000000000000000
      min_net_debt: "1800000000000000000000"   # decimal strings are accepted
      flash_fee_bps: 9

Omitted keys keep their `ProtocolParams` defaults; unknown keys are rejected.
"""

from __future__ import annotations

import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from ..core.cdp.params import DEFAULT_PARAMS, ProtocolParams

PARAMS_SCHEMA = "levercdp/params/v1"
PARAMS_ENV_VAR = "LEVERCDP_PARAMS"


class ConfigError(ValueError):
    pass


def _require_mapping(obj: Any, *, name: str) -> dict[str, Any]:
    if not isinstance(obj, dict):
        raise ConfigError(f"{name} must be an object")
    return obj


def _require_str(obj: Any, *, name: str) -> str:
    if not isinstance(obj, str) or not obj.strip():
        raise ConfigError(f"{name} must be a non-empty string")
    return obj.strip()


def _require_uint(obj: Any, *, name: str) -> int:
    if isinstance(obj, bool):
        raise ConfigError(f"{name} must be an integer")
    if isinstance(obj, int):
        value = obj
    elif isinstance(obj, str) and obj.strip().isdigit():
        value = int(obj.strip())
    else:
        raise ConfigError(f"{name} must be an integer or a decimal string")
    if value < 0:
        raise ConfigError(f"{name} must be non-negative")
    return value


_PARAM_NAMES = tuple(f.name for f in fields(ProtocolParams))


def params_from_mapping(raw: Mapping[str, Any], *, base: ProtocolParams = DEFAULT_PARAMS) -> ProtocolParams:
    values = {name: getattr(base, name) for name in _PARAM_NAMES}
    for key, val in raw.items():
        if key not in values:
            raise ConfigError(f"unknown parameter: {key}")
        values[key] = _require_uint(val, name=f"params.{key}")
    try:
        return ProtocolParams(**values)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid parameters: {exc}") from exc


def load_params(path: Path) -> ProtocolParams:
    root = _require_mapping(yaml.safe_load(Path(path).read_text(encoding="utf-8")), name="config")
    schema = _require_str(root.get("schema"), name="config.schema")
    if schema != PARAMS_SCHEMA:
        raise ConfigError(f"unsupported config.schema: {schema}")
    raw = root.get("params")
    if raw is None:
        return DEFAULT_PARAMS
    return params_from_mapping(_require_mapping(raw, name="config.params"))


def params_from_env(environ: Optional[Mapping[str, str]] = None) -> ProtocolParams:
    """Load from the file named by ``LEVERCDP_PARAMS``, or return the defaults."""
    env = os.environ if environ is None else environ
    path = env.get(PARAMS_ENV_VAR, "").strip()
    if not path:
        return DEFAULT_PARAMS
    return load_params(Path(path))
