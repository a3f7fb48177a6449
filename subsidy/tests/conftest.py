from __future__ import annotations

import pytest

from subsidy.adapters.clock import ManualClock
from subsidy.adapters.price import FixedPriceOracle
from subsidy.adapters.transfer import NativeVault
from subsidy.ledger import GasSubsidy
from subsidy.tests import OPERATOR, T0


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def oracle() -> FixedPriceOracle:
    return FixedPriceOracle(1)


@pytest.fixture
def vault() -> NativeVault:
    return NativeVault()


@pytest.fixture
def ledger(clock, oracle, vault) -> GasSubsidy:
    return GasSubsidy(clock=clock, oracle=oracle, transfer=vault)


@pytest.fixture
def configured(ledger) -> GasSubsidy:
    """Ledger with criteria 1 configured for OPERATOR: gas_usage=5e4, min rate 5."""
    ledger.configure(OPERATOR, [1], [50_000], [5])
    return ledger
