from __future__ import annotations
"""
subsidy - gas subsidy ledger.

Reimburses an operator (typically a bridge relayer) for the gas it spends on
classified work. Funders deposit native value per (operator, criteria); the
balance accrues to the operator over time at a funder-chosen rate scaled by the
live base fee, and the operator claims it to a beneficiary.

Public surface (lazily loaded):
- ledger (GasSubsidy), records, errors
- config, metrics, adapters
"""


from typing import List

from .version import __version__

__all__: List[str] = [
    "__version__",
    # lazily importable subpackages/modules
    "adapters",
    "config",
    "errors",
    "ledger",
    "metrics",
    "records",
]

# --- Lazy module loader (PEP 562) -------------------------------------------------
import importlib


_lazy_modules = set(__all__) - {"__version__"}


def __getattr__(name: str):
    if name in _lazy_modules:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals().keys()) | _lazy_modules)


def get_version() -> str:
    """Return the package version string."""
    return __version__
