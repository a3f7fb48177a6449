"""
subsidy.adapters
================

External collaborators consumed by the ledger: a clock, a unit-price oracle,
and a value-transfer primitive. Each is a small Protocol with one or two
concrete implementations; hosts may supply their own.
"""

from .clock import Clock, ManualClock, SystemClock
from .price import BaseFeeOracle, FixedPriceOracle, UnitPriceOracle
from .transfer import NativeVault, ValueTransfer

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "UnitPriceOracle",
    "FixedPriceOracle",
    "BaseFeeOracle",
    "ValueTransfer",
    "NativeVault",
]
