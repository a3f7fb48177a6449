from __future__ import annotations

"""
subsidy.adapters.transfer
=========================

Value-transfer primitive used to pay claims out of the ledger's pool.

The ledger hands a (beneficiary, amount) pair to `ValueTransfer.send` and
treats anything other than a `True` return as a refused transfer. A host wired
to a real chain would implement `send` on top of its wallet/custody layer;
`NativeVault` is the in-memory implementation used by tests and simulations.
"""

import logging
from threading import RLock
from typing import Dict, Iterable, Optional, Protocol, Set, runtime_checkable

log = logging.getLogger(__name__)


@runtime_checkable
class ValueTransfer(Protocol):
    """Moves native value to a recipient; reports success with a bool."""

    def send(self, to: str, amount: int) -> bool:
        """Attempt to credit `amount` wei to `to`. Return False if refused."""


class NativeVault:
    """
    In-memory recipient balances.

    Addresses listed in `rejecting` model recipients that cannot accept value
    (e.g. contracts without a payable fallback); `send` returns False for them.
    """

    def __init__(self, rejecting: Optional[Iterable[str]] = None) -> None:
        self._balances: Dict[str, int] = {}
        self._rejecting: Set[str] = set(rejecting or ())
        self._lock = RLock()

    def reject(self, address: str) -> None:
        with self._lock:
            self._rejecting.add(address)

    def accept(self, address: str) -> None:
        with self._lock:
            self._rejecting.discard(address)

    def balance_of(self, address: str) -> int:
        with self._lock:
            return self._balances.get(address, 0)

    def total(self) -> int:
        with self._lock:
            return sum(self._balances.values())

    def send(self, to: str, amount: int) -> bool:
        if amount < 0:
            raise ValueError("amount must be >= 0")
        with self._lock:
            if to in self._rejecting:
                log.info("vault: recipient %s refused %d wei", to, amount)
                return False
            self._balances[to] = self._balances.get(to, 0) + int(amount)
            return True


__all__ = ["ValueTransfer", "NativeVault"]
