from __future__ import annotations

"""
Prometheus metrics for the gas subsidy ledger.

We expose counters, histograms and a gauge covering:
- configure: criteria entries written per batch
- fund: successful fundings and deposited amount distribution
- claim: successful claims and paid amount distribution
- failures: rejected calls by operation and error code
- pool: native value currently held by the ledger

The registry is dedicated so embedding apps can choose to merge or expose it.
"""


import time
from contextlib import contextmanager
from typing import Optional, Tuple

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, Histogram, generate_latest)

REGISTRY = CollectorRegistry()

WEI_PER_NATIVE = 10**18

# ────────────────────────────────────────────────────────────────────────────────
# Label conventions
#   op:   "configure" | "fund" | "claim"
#   code: SubsidyError.code (e.g. "ALREADY_SUBSIDIZED")
# ────────────────────────────────────────────────────────────────────────────────

CRITERIA_CONFIGURED = Counter(
    "subsidy_criteria_configured_total",
    "Total criteria parameter entries written by configure().",
    registry=REGISTRY,
)

FUNDINGS = Counter(
    "subsidy_fundings_total",
    "Total successful fund() calls.",
    registry=REGISTRY,
)

CLAIMS = Counter(
    "subsidy_claims_total",
    "Total successful claim calls, split by whether anything was paid.",
    labelnames=("paid",),  # "yes" | "no"
    registry=REGISTRY,
)

FAILURES = Counter(
    "subsidy_failures_total",
    "Total rejected ledger calls by operation and error code.",
    labelnames=("op", "code"),
    registry=REGISTRY,
)

# Amounts are tracked in native units (float) to keep bucket scales reasonable.
_AMOUNT_BUCKETS = (
    0.000001,
    0.00001,
    0.0001,
    0.001,
    0.01,
    0.1,
    0.5,
    1,
    5,
    10,
    50,
    100,
)

FUNDED_AMOUNT = Histogram(
    "subsidy_funded_amount_native",
    "Distribution of deposited amounts (native units).",
    buckets=_AMOUNT_BUCKETS,
    registry=REGISTRY,
)

CLAIMED_AMOUNT = Histogram(
    "subsidy_claimed_amount_native",
    "Distribution of claim payouts (native units).",
    buckets=_AMOUNT_BUCKETS,
    registry=REGISTRY,
)

POOL_BALANCE = Gauge(
    "subsidy_pool_balance_native",
    "Native value currently held by the ledger (native units).",
    registry=REGISTRY,
)

CALL_SECONDS = Histogram(
    "subsidy_call_seconds",
    "Time spent inside a ledger call, by operation.",
    labelnames=("op",),
    buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
    registry=REGISTRY,
)


def _native(wei: int) -> float:
    return wei / WEI_PER_NATIVE


# ────────────────────────────────────────────────────────────────────────────────
# Recording helpers
# ────────────────────────────────────────────────────────────────────────────────


def record_configure(entries: int) -> None:
    """Count criteria entries written by one configure() batch."""
    CRITERIA_CONFIGURED.inc(entries)


def record_fund(amount_wei: int, pool_wei: int) -> None:
    """Record a successful funding and the resulting pool balance."""
    FUNDINGS.inc()
    FUNDED_AMOUNT.observe(_native(amount_wei))
    POOL_BALANCE.set(_native(pool_wei))


def record_claim(amount_wei: int, pool_wei: int) -> None:
    """Record a successful claim; zero payouts are counted but not observed."""
    CLAIMS.labels(paid="yes" if amount_wei > 0 else "no").inc()
    if amount_wei > 0:
        CLAIMED_AMOUNT.observe(_native(amount_wei))
    POOL_BALANCE.set(_native(pool_wei))


def record_failure(op: str, code: str) -> None:
    FAILURES.labels(op=op, code=code).inc()


@contextmanager
def time_call(op: str):
    """Context manager to observe wall time spent inside a ledger call."""
    start = time.perf_counter()
    try:
        yield
    finally:
        CALL_SECONDS.labels(op=op).observe(time.perf_counter() - start)


def render_latest(registry: Optional[CollectorRegistry] = None) -> Tuple[bytes, str]:
    """Return (payload, content_type) for an HTTP /metrics handler."""
    return generate_latest(registry or REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "REGISTRY",
    "CRITERIA_CONFIGURED",
    "FUNDINGS",
    "CLAIMS",
    "FAILURES",
    "FUNDED_AMOUNT",
    "CLAIMED_AMOUNT",
    "POOL_BALANCE",
    "CALL_SECONDS",
    "record_configure",
    "record_fund",
    "record_claim",
    "record_failure",
    "time_call",
    "render_latest",
]
