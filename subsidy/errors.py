from __future__ import annotations
# subsidy/errors.py
"""
Error types for the gas subsidy ledger. Every failure surfaced by the ledger is
one of these; they are lightweight, serializable, and safe to log.

Exports:
- SubsidyError (base)
- ArrayLengthsDoNotMatch
- GasUsageNotSet
- GasPerSecondTooLow
- SubsidyTooLow
- AlreadySubsidized
- EthTransferFailed
- ValueOutOfRange
- Unauthorized
- InvalidAddress
- ClockRegression
- LedgerInvariantError
- PriceOracleError
- ConfigError
"""


from typing import Any, Dict, Mapping, Optional
import json


class SubsidyError(Exception):
    """Base class for ledger domain errors."""

    code: str = "SUBSIDY_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"))
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class ArrayLengthsDoNotMatch(SubsidyError):
    """Batch configuration sequences differ in length."""
    code = "ARRAY_LENGTHS_DO_NOT_MATCH"

    def __init__(
        self,
        *,
        criteria: int,
        gas_usage: int,
        min_gas_per_second: int,
        message: str = "array lengths do not match",
    ) -> None:
        super().__init__(
            message,
            details={
                "criteria": int(criteria),
                "gas_usage": int(gas_usage),
                "min_gas_per_second": int(min_gas_per_second),
            },
        )


class GasUsageNotSet(SubsidyError):
    """Funding attempted for a criteria the operator never configured."""
    code = "GAS_USAGE_NOT_SET"

    def __init__(self, *, operator: str, criteria: int, message: str = "gas usage not set") -> None:
        super().__init__(message, details={"operator": operator, "criteria": str(criteria)})


class GasPerSecondTooLow(SubsidyError):
    """Funder proposed a rate under the configured floor."""
    code = "GAS_PER_SECOND_TOO_LOW"

    def __init__(
        self,
        *,
        gas_per_second: int,
        min_gas_per_second: int,
        message: str = "gas per second too low",
    ) -> None:
        super().__init__(
            message,
            details={
                "gas_per_second": int(gas_per_second),
                "min_gas_per_second": int(min_gas_per_second),
            },
        )


class SubsidyTooLow(SubsidyError):
    """Attached value is below the minimum deposit."""
    code = "SUBSIDY_TOO_LOW"

    def __init__(self, *, value: int, minimum: int, message: str = "subsidy too low") -> None:
        # wei amounts routinely exceed JSON-safe integers; keep them as strings
        super().__init__(message, details={"value": str(value), "minimum": str(minimum)})


class AlreadySubsidized(SubsidyError):
    """Funding attempted while the record still holds a balance."""
    code = "ALREADY_SUBSIDIZED"

    def __init__(
        self,
        *,
        operator: str,
        criteria: int,
        available: int,
        message: str = "already subsidized",
    ) -> None:
        super().__init__(
            message,
            details={"operator": operator, "criteria": str(criteria), "available": str(available)},
        )


class EthTransferFailed(SubsidyError):
    """
    The value-transfer primitive refused the payout. The claim that triggered it
    has been rolled back in full.
    """
    code = "ETH_TRANSFER_FAILED"

    def __init__(
        self,
        *,
        beneficiary: str,
        amount: int,
        reason: Optional[str] = None,
        message: str = "eth transfer failed",
    ) -> None:
        d: Dict[str, Any] = {"beneficiary": beneficiary, "amount": str(amount)}
        if reason is not None:
            d["reason"] = reason
        super().__init__(message, details=d)


class ValueOutOfRange(SubsidyError):
    """An integer argument does not fit the unsigned width of its field."""
    code = "VALUE_OUT_OF_RANGE"

    def __init__(self, *, name: str, value: Any, bits: int, message: str = "value out of range") -> None:
        super().__init__(message, details={"name": name, "value": str(value), "bits": int(bits)})


class Unauthorized(SubsidyError):
    """Caller identity is missing or malformed."""
    code = "UNAUTHORIZED"


class InvalidAddress(SubsidyError):
    """An operator, funder or beneficiary address is empty or not a string."""
    code = "INVALID_ADDRESS"


class ClockRegression(SubsidyError):
    """The clock reported a time earlier than a record's last update."""
    code = "CLOCK_REGRESSION"

    def __init__(self, *, now: int, last_updated: int, message: str = "clock went backwards") -> None:
        super().__init__(message, details={"now": int(now), "last_updated": int(last_updated)})


class LedgerInvariantError(SubsidyError):
    """Ledger state violates an accounting invariant (should never happen)."""
    code = "LEDGER_INVARIANT"


class PriceOracleError(SubsidyError):
    """The unit-price signal could not be read or was malformed."""
    code = "PRICE_ORACLE_ERROR"


class ConfigError(SubsidyError):
    """Invalid configuration value or file."""
    code = "CONFIG_ERROR"


__all__ = [
    "SubsidyError",
    "ArrayLengthsDoNotMatch",
    "GasUsageNotSet",
    "GasPerSecondTooLow",
    "SubsidyTooLow",
    "AlreadySubsidized",
    "EthTransferFailed",
    "ValueOutOfRange",
    "Unauthorized",
    "InvalidAddress",
    "ClockRegression",
    "LedgerInvariantError",
    "PriceOracleError",
    "ConfigError",
]
