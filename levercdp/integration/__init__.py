"""
Integration layer: atomic execution, configuration, reference swap venue and
in-memory deployment.
"""

from .config import ConfigError, load_params, params_from_env, params_from_mapping
from .swap_venue import CpmmSwapVenue
from .system import CdpSystem, ManualClock, deploy_system
from .transaction import AtomicExecutor, TxResult

__all__ = [
    "ConfigError",
    "load_params",
    "params_from_env",
    "params_from_mapping",
    "CpmmSwapVenue",
    "CdpSystem",
    "ManualClock",
    "deploy_system",
    "AtomicExecutor",
    "TxResult",
]
