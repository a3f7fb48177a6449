from __future__ import annotations

"""
Subsidy ledger - records
------------------------

Plain dataclasses for the two per-(operator, criteria) tables and the audit
journal, plus the unsigned-integer bounds every stored field must respect.

Amounts are integer wei (18-decimal native units); timestamps are integer
seconds. All records serialize to JSON-friendly dicts; integers wider than 53
bits are written as decimal strings so that JS consumers do not lose precision.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Literal, Tuple

from subsidy.errors import ValueOutOfRange

Address = str
CriteriaId = int
Wei = int
Timestamp = int
Key = Tuple[Address, CriteriaId]

OpName = Literal["configure", "fund", "claim"]

UINT32_MAX = 2**32 - 1
UINT128_MAX = 2**128 - 1
UINT256_MAX = 2**256 - 1

_BITS = {32: UINT32_MAX, 128: UINT128_MAX, 256: UINT256_MAX}


def check_uint(name: str, value: Any, bits: int) -> int:
    """Return `value` as int if it fits an unsigned `bits`-wide field, else raise."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueOutOfRange(name=name, value=value, bits=bits)
    if value < 0 or value > _BITS[bits]:
        raise ValueOutOfRange(name=name, value=value, bits=bits)
    return value


@dataclass(frozen=True)
class GasParams:
    """Operator-configured parameters for one criteria. gas_usage == 0 means unset."""

    gas_usage: int = 0
    min_gas_per_second: int = 0

    @property
    def is_set(self) -> bool:
        return self.gas_usage != 0

    def to_dict(self) -> Dict[str, int]:
        return {"gas_usage": self.gas_usage, "min_gas_per_second": self.min_gas_per_second}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "GasParams":
        return GasParams(
            gas_usage=check_uint("gas_usage", int(d.get("gas_usage", 0)), 32),
            min_gas_per_second=check_uint("min_gas_per_second", int(d.get("min_gas_per_second", 0)), 32),
        )


@dataclass(frozen=True)
class SubsidyRecord:
    """
    Funded subsidy for one (operator, criteria).

    `gas_usage` and `min_gas_per_second` are snapshots taken at fund time; claim
    only reads `available`, `gas_per_second` and `last_updated`.
    """

    available: Wei = 0
    gas_usage: int = 0
    min_gas_per_second: int = 0
    gas_per_second: int = 0
    last_updated: Timestamp = 0

    @property
    def active(self) -> bool:
        return self.available > 0

    def with_claim(self, payout: Wei, now: Timestamp) -> "SubsidyRecord":
        if payout > self.available:
            raise ValueError("payout exceeds available")
        return replace(self, available=self.available - payout, last_updated=now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": str(self.available),
            "gas_usage": self.gas_usage,
            "min_gas_per_second": self.min_gas_per_second,
            "gas_per_second": self.gas_per_second,
            "last_updated": self.last_updated,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SubsidyRecord":
        return SubsidyRecord(
            available=check_uint("available", int(d.get("available", 0)), 128),
            gas_usage=check_uint("gas_usage", int(d.get("gas_usage", 0)), 32),
            min_gas_per_second=check_uint("min_gas_per_second", int(d.get("min_gas_per_second", 0)), 32),
            gas_per_second=check_uint("gas_per_second", int(d.get("gas_per_second", 0)), 32),
            last_updated=check_uint("last_updated", int(d.get("last_updated", 0)), 32),
        )


@dataclass(frozen=True)
class JournalEntry:
    seq: int
    op: OpName
    operator: Address
    criteria: CriteriaId
    amount: Wei
    timestamp: Timestamp
    meta: Dict[str, str] = field(default_factory=dict)
    available_after: Wei = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "op": self.op,
            "operator": self.operator,
            "criteria": str(self.criteria),
            "amount": str(self.amount),
            "timestamp": self.timestamp,
            "meta": dict(self.meta),
            "available_after": str(self.available_after),
        }


EMPTY_PARAMS = GasParams()
EMPTY_RECORD = SubsidyRecord()


__all__ = [
    "Address",
    "CriteriaId",
    "Wei",
    "Timestamp",
    "Key",
    "UINT32_MAX",
    "UINT128_MAX",
    "UINT256_MAX",
    "check_uint",
    "GasParams",
    "SubsidyRecord",
    "JournalEntry",
    "EMPTY_PARAMS",
    "EMPTY_RECORD",
]
