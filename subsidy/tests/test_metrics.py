import pytest

from subsidy import metrics
from subsidy.errors import AlreadySubsidized, SubsidyTooLow
from subsidy.tests import BENEFICIARY, ONE_ETHER, OPERATOR


def _sample(name, labels=None) -> float:
    return metrics.REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_failures_are_counted_by_code(configured):
    fails = {"op": "fund", "code": SubsidyTooLow.code}
    before = _sample("subsidy_failures_total", fails)

    with pytest.raises(SubsidyTooLow):
        configured.fund(OPERATOR, 1, 10, value=1)

    assert _sample("subsidy_failures_total", fails) == before + 1


def test_success_paths_update_counters_and_pool_gauge(configured, clock):
    fundings = _sample("subsidy_fundings_total")
    paid = _sample("subsidy_claims_total", {"paid": "yes"})
    already = _sample("subsidy_failures_total", {"op": "fund", "code": AlreadySubsidized.code})

    configured.fund(OPERATOR, 1, 10, value=ONE_ETHER)
    with pytest.raises(AlreadySubsidized):
        configured.fund(OPERATOR, 1, 10, value=ONE_ETHER)
    clock.advance(1)
    configured.claim_subsidy(OPERATOR, 1, BENEFICIARY)

    assert _sample("subsidy_fundings_total") == fundings + 1
    assert _sample("subsidy_claims_total", {"paid": "yes"}) == paid + 1
    assert _sample("subsidy_failures_total", {"op": "fund", "code": AlreadySubsidized.code}) == already + 1
    assert _sample("subsidy_pool_balance_native") == pytest.approx((ONE_ETHER - 10) / 10**18)


def test_render_latest():
    payload, content_type = metrics.render_latest()
    assert b"subsidy_fundings_total" in payload
    assert content_type.startswith("text/plain")
