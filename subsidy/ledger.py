from __future__ import annotations

"""
Gas subsidy ledger - parameter registry & subsidy records
---------------------------------------------------------

This module reimburses an operator (typically a relayer) for the gas it spends
executing classified work ("criteria"). It keeps two tables over the same
keyspace, (operator, criteria):

  • Gas parameters: {gas_usage, min_gas_per_second}, written in batches by the
    operator itself via `configure`.
  • Subsidy records: {available, gas_usage, min_gas_per_second, gas_per_second,
    last_updated}, created by `fund` and drawn down by `claim_subsidy`.

Accrual is lazy. Nothing happens between calls; a claim computes

    payout = min((now - last_updated) * gas_per_second * unit_price, available)

with `unit_price` read from the oracle at call time, so identical elapsed time
can pay differently as the base fee moves.

Amounts are integer wei. Every public call holds one coarse `threading.RLock`
from validation to commit and either commits fully or leaves state untouched;
in particular a payout refused by the transfer primitive rolls the claim back.

Typical flow
~~~~~~~~~~~~
1) Operator:  ledger.configure(op, [1], [50_000], [5])
2) Funder:    ledger.fund(op, 1, 10, value=10**18)
3) Operator:  ledger.claim_subsidy(op, 1, beneficiary)   # any time later
"""

import logging
from contextlib import contextmanager
from threading import RLock
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from subsidy import metrics
from subsidy.adapters.clock import Clock
from subsidy.adapters.price import UnitPriceOracle
from subsidy.adapters.transfer import ValueTransfer
from subsidy.config import LedgerConfig
from subsidy.errors import (
    AlreadySubsidized,
    ArrayLengthsDoNotMatch,
    ClockRegression,
    EthTransferFailed,
    GasPerSecondTooLow,
    GasUsageNotSet,
    InvalidAddress,
    LedgerInvariantError,
    PriceOracleError,
    SubsidyError,
    SubsidyTooLow,
    Unauthorized,
)
from subsidy.records import (
    EMPTY_PARAMS,
    EMPTY_RECORD,
    Address,
    CriteriaId,
    GasParams,
    JournalEntry,
    Key,
    OpName,
    SubsidyRecord,
    Timestamp,
    Wei,
    check_uint,
)

log = logging.getLogger(__name__)


def _require_caller(caller: Any) -> Address:
    if not isinstance(caller, str) or not caller:
        raise Unauthorized("caller identity is required", details={"caller": repr(caller)})
    return caller


def _require_address(name: str, addr: Any) -> Address:
    if not isinstance(addr, str) or not addr:
        raise InvalidAddress(f"{name} must be a non-empty address", details={name: repr(addr)})
    return addr


@contextmanager
def _observed(op: OpName) -> Iterator[None]:
    with metrics.time_call(op):
        try:
            yield
        except SubsidyError as e:
            log.warning("%s rejected: %s", op, e)
            metrics.record_failure(op, e.code)
            raise


class GasSubsidy:
    """
    In-memory gas subsidy ledger.

    Storage-agnostic: call `dump()` to serialize to a JSON-friendly dict, and
    `load()` to restore. The journal is retained only in-memory for audit.

    Growth: every successful claim stamps `last_updated`, so a claim on a key
    that was never funded still stores a zero record and a journal entry.
    Neither table nor the journal is ever pruned; hosts that expose
    `claim_subsidy` to untrusted callers should rate-limit it or periodically
    `dump()` and rebuild.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        oracle: UnitPriceOracle,
        transfer: ValueTransfer,
        config: Optional[LedgerConfig] = None,
    ) -> None:
        self.config = config or LedgerConfig()
        self.config.validate()
        self._clock = clock
        self._oracle = oracle
        self._transfer = transfer

        self._params: Dict[Key, GasParams] = {}
        self._subsidies: Dict[Key, SubsidyRecord] = {}
        self._pool: Wei = 0
        self._journal: List[JournalEntry] = []
        self._seq = 0
        self._lock = RLock()

    # --- load/save ---

    def dump(self) -> Dict[str, Any]:
        with self._lock:
            params: Dict[str, Dict[str, Any]] = {}
            for (op, crit), p in sorted(self._params.items()):
                params.setdefault(op, {})[str(crit)] = p.to_dict()
            subsidies: Dict[str, Dict[str, Any]] = {}
            for (op, crit), r in sorted(self._subsidies.items()):
                subsidies.setdefault(op, {})[str(crit)] = r.to_dict()
            return {
                "pool_balance": str(self._pool),
                "journal_seq": self._seq,
                "params": params,
                "subsidies": subsidies,
            }

    @classmethod
    def load(
        cls,
        data: Dict[str, Any],
        *,
        clock: Clock,
        oracle: UnitPriceOracle,
        transfer: ValueTransfer,
        config: Optional[LedgerConfig] = None,
    ) -> "GasSubsidy":
        st = cls(clock=clock, oracle=oracle, transfer=transfer, config=config)
        for op, by_crit in (data.get("params") or {}).items():
            for crit, d in by_crit.items():
                st._params[(op, check_uint("criteria", int(crit), 256))] = GasParams.from_dict(d)
        for op, by_crit in (data.get("subsidies") or {}).items():
            for crit, d in by_crit.items():
                st._subsidies[(op, check_uint("criteria", int(crit), 256))] = SubsidyRecord.from_dict(d)
        st._pool = int(data.get("pool_balance", 0))
        st._seq = int(data.get("journal_seq", 0))
        st.assert_consistent()
        return st

    # --- introspection ---

    def get_gas_params(self, operator: Address, criteria: CriteriaId) -> GasParams:
        with self._lock:
            return self._params.get((operator, criteria), EMPTY_PARAMS)

    def get_subsidy(self, operator: Address, criteria: CriteriaId) -> SubsidyRecord:
        """Return the record for (operator, criteria); the zero record if none exists."""
        with self._lock:
            return self._subsidies.get((operator, criteria), EMPTY_RECORD)

    @property
    def pool_balance(self) -> Wei:
        return self._pool

    def total_available(self) -> Wei:
        with self._lock:
            return sum(r.available for r in self._subsidies.values())

    def journal(self) -> Iterable[JournalEntry]:
        return tuple(self._journal)

    def accrued(self, operator: Address, criteria: CriteriaId) -> Wei:
        """What a claim by `operator` would pay right now. Mutates nothing."""
        with self._lock:
            rec = self.get_subsidy(operator, criteria)
            now = self._now()
            return self._payout_for(rec, now, self._unit_price())

    # --- parameter registry ---

    def configure(
        self,
        caller: Address,
        criteria: Sequence[CriteriaId],
        gas_usage: Sequence[int],
        min_gas_per_second: Sequence[int],
    ) -> None:
        """
        Upsert gas parameters for the caller's own criteria, all-or-nothing.

        The three sequences are index-aligned and must have equal length. A
        criteria repeated within one batch ends up with its last values.
        """
        with _observed("configure"), self._lock:
            operator = _require_caller(caller)
            criteria, gas_usage, min_gas_per_second = (
                list(criteria), list(gas_usage), list(min_gas_per_second)
            )
            if not (len(criteria) == len(gas_usage) == len(min_gas_per_second)):
                raise ArrayLengthsDoNotMatch(
                    criteria=len(criteria),
                    gas_usage=len(gas_usage),
                    min_gas_per_second=len(min_gas_per_second),
                )

            staged: List[tuple] = []
            for crit, usage, floor in zip(criteria, gas_usage, min_gas_per_second):
                staged.append(
                    (
                        check_uint("criteria", crit, 256),
                        GasParams(
                            gas_usage=check_uint("gas_usage", usage, 32),
                            min_gas_per_second=check_uint("min_gas_per_second", floor, 32),
                        ),
                    )
                )

            now = self._now()
            for crit, params in staged:
                self._params[(operator, crit)] = params
                log.debug(
                    "configure: operator=%s criteria=%d gas_usage=%d min_gas_per_second=%d",
                    operator, crit, params.gas_usage, params.min_gas_per_second,
                )
                self._append(
                    op="configure",
                    operator=operator,
                    criteria=crit,
                    amount=0,
                    timestamp=now,
                    meta={
                        "gas_usage": str(params.gas_usage),
                        "min_gas_per_second": str(params.min_gas_per_second),
                    },
                    available_after=self.get_subsidy(operator, crit).available,
                )
            log.info("configure: operator=%s entries=%d", operator, len(staged))
            metrics.record_configure(len(staged))

    # --- subsidy ledger ---

    def fund(
        self,
        operator: Address,
        criteria: CriteriaId,
        gas_per_second: int,
        *,
        value: Wei,
        funder: Optional[Address] = None,
    ) -> SubsidyRecord:
        """
        Deposit `value` wei for (operator, criteria) at the chosen accrual rate.

        Rejected while the record still holds a balance; a drained (or never
        funded) record is overwritten with the new deposit, rate and a fresh
        snapshot of the operator's parameters.
        """
        with _observed("fund"), self._lock:
            operator = _require_address("operator", operator)
            funder = _require_address("funder", funder) if funder is not None else operator
            criteria = check_uint("criteria", criteria, 256)
            gas_per_second = check_uint("gas_per_second", gas_per_second, 32)
            value = check_uint("value", value, 128)

            key = (operator, criteria)
            params = self._params.get(key, EMPTY_PARAMS)
            if not params.is_set:
                raise GasUsageNotSet(operator=operator, criteria=criteria)
            if gas_per_second < params.min_gas_per_second:
                raise GasPerSecondTooLow(
                    gas_per_second=gas_per_second,
                    min_gas_per_second=params.min_gas_per_second,
                )
            if value < self.config.min_subsidy_wei:
                raise SubsidyTooLow(value=value, minimum=self.config.min_subsidy_wei)
            current = self._subsidies.get(key, EMPTY_RECORD)
            if current.active:
                raise AlreadySubsidized(operator=operator, criteria=criteria, available=current.available)

            now = self._now()
            if now < current.last_updated:
                raise ClockRegression(now=now, last_updated=current.last_updated)

            rec = SubsidyRecord(
                available=value,
                gas_usage=params.gas_usage,
                min_gas_per_second=params.min_gas_per_second,
                gas_per_second=gas_per_second,
                last_updated=now,
            )
            self._subsidies[key] = rec
            self._pool += value
            self._append(
                op="fund",
                operator=operator,
                criteria=criteria,
                amount=value,
                timestamp=now,
                meta={"funder": funder, "gas_per_second": str(gas_per_second)},
                available_after=rec.available,
            )
            self._check()
            log.info(
                "fund: operator=%s criteria=%d value=%d gas_per_second=%d funder=%s",
                operator, criteria, value, gas_per_second, funder,
            )
            metrics.record_fund(value, self._pool)
            return rec

    def claim_subsidy(self, caller: Address, criteria: CriteriaId, beneficiary: Address) -> Wei:
        """
        Pay the caller's accrued subsidy for `criteria` to `beneficiary`.

        Returns the amount paid, which is 0 when nothing has accrued or the
        record is empty. If the transfer is refused, the record and pool are
        restored and EthTransferFailed is raised.
        """
        with _observed("claim"), self._lock:
            operator = _require_caller(caller)
            beneficiary = _require_address("beneficiary", beneficiary)
            criteria = check_uint("criteria", criteria, 256)
            key = (operator, criteria)

            existed = key in self._subsidies
            before = self._subsidies.get(key, EMPTY_RECORD)
            pool_before = self._pool

            now = self._now()
            price = self._unit_price()
            payout = self._payout_for(before, now, price)

            self._subsidies[key] = before.with_claim(payout, now)
            self._pool -= payout
            try:
                sent = self._transfer.send(beneficiary, payout) if payout > 0 else True
            except Exception as exc:
                self._restore(key, before if existed else None, pool_before)
                raise EthTransferFailed(beneficiary=beneficiary, amount=payout, reason=repr(exc)) from exc
            if not sent:
                self._restore(key, before if existed else None, pool_before)
                raise EthTransferFailed(beneficiary=beneficiary, amount=payout)

            after = self._subsidies[key]
            self._append(
                op="claim",
                operator=operator,
                criteria=criteria,
                amount=payout,
                timestamp=now,
                meta={
                    "beneficiary": beneficiary,
                    "elapsed": str(now - before.last_updated),
                    "unit_price": str(price),
                },
                available_after=after.available,
            )
            self._check()
            log.info(
                "claim: operator=%s criteria=%d payout=%d available=%d beneficiary=%s",
                operator, criteria, payout, after.available, beneficiary,
            )
            metrics.record_claim(payout, self._pool)
            return payout

    # --- utilities ---

    def assert_consistent(self) -> None:
        """Verify the pool covers every outstanding balance."""
        with self._lock:
            if self._pool < 0:
                raise LedgerInvariantError(f"pool balance is negative: {self._pool}")
            total = self.total_available()
            if total > self._pool:
                raise LedgerInvariantError(
                    f"pool invariant violated: sum(available)={total} > pool={self._pool}"
                )

    # --- internal helpers ---

    def _now(self) -> Timestamp:
        return check_uint("now", self._clock.now(), 32)

    def _unit_price(self) -> Wei:
        price = self._oracle.unit_price()
        if isinstance(price, bool) or not isinstance(price, int) or price < 0:
            raise PriceOracleError(f"invalid unit price: {price!r}")
        return price

    @staticmethod
    def _payout_for(rec: SubsidyRecord, now: Timestamp, price: Wei) -> Wei:
        if now < rec.last_updated:
            raise ClockRegression(now=now, last_updated=rec.last_updated)
        accrued = (now - rec.last_updated) * rec.gas_per_second * price
        return min(accrued, rec.available)

    def _restore(self, key: Key, rec: Optional[SubsidyRecord], pool: Wei) -> None:
        if rec is None:
            self._subsidies.pop(key, None)
        else:
            self._subsidies[key] = rec
        self._pool = pool

    def _check(self) -> None:
        if self.config.check_invariants:
            self.assert_consistent()

    def _append(
        self,
        *,
        op: OpName,
        operator: Address,
        criteria: CriteriaId,
        amount: Wei,
        timestamp: Timestamp,
        meta: Dict[str, str],
        available_after: Wei,
    ) -> JournalEntry:
        self._seq += 1
        je = JournalEntry(
            seq=self._seq,
            op=op,
            operator=operator,
            criteria=criteria,
            amount=amount,
            timestamp=timestamp,
            meta=meta,
            available_after=available_after,
        )
        self._journal.append(je)
        return je


__all__ = ["GasSubsidy"]
