import http.client
import io
import json
import urllib.error

import pytest

from subsidy import metrics
from subsidy.adapters import Clock, UnitPriceOracle, ValueTransfer
from subsidy.adapters.clock import ManualClock, SystemClock
from subsidy.adapters.price import BaseFeeOracle, FixedPriceOracle
from subsidy.adapters.transfer import NativeVault
from subsidy.config import OracleConfig
from subsidy.errors import PriceOracleError
from subsidy.ledger import GasSubsidy


class _FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def _serve(monkeypatch, *responses):
    """Patch urlopen to return (or raise) `responses` in order; returns captured requests."""
    calls = []
    queue = list(responses)

    def fake_urlopen(req, timeout=None):
        calls.append(json.loads(req.data.decode("utf-8")))
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, bytes):
            return _FakeResponse(item)
        return _FakeResponse(json.dumps(item).encode("utf-8"))

    monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)
    return calls


def test_protocols_are_satisfied():
    assert isinstance(ManualClock(), Clock)
    assert isinstance(SystemClock(), Clock)
    assert isinstance(FixedPriceOracle(), UnitPriceOracle)
    assert isinstance(BaseFeeOracle("http://node"), UnitPriceOracle)
    assert isinstance(NativeVault(), ValueTransfer)


def test_manual_clock_only_moves_forward():
    clock = ManualClock(100)
    assert clock.advance(5) == 105
    clock.set(200)
    assert clock.now() == 200
    with pytest.raises(ValueError):
        clock.set(199)
    with pytest.raises(ValueError):
        clock.advance(-1)


def test_system_clock_returns_whole_seconds():
    assert isinstance(SystemClock().now(), int)


def test_fixed_price_oracle_rejects_negative():
    oracle = FixedPriceOracle(3)
    assert oracle.unit_price() == 3
    with pytest.raises(ValueError):
        oracle.set(-1)


def test_base_fee_oracle_reads_latest_block(monkeypatch):
    calls = _serve(
        monkeypatch,
        {"jsonrpc": "2.0", "id": 1, "result": {"number": "0x10", "baseFeePerGas": "0x3b9aca00"}},
    )
    oracle = BaseFeeOracle("http://node:8545")

    assert oracle.unit_price() == 1_000_000_000
    assert calls[0]["method"] == "eth_getBlockByNumber"
    assert calls[0]["params"] == ["latest", False]


def test_base_fee_oracle_is_not_cached(monkeypatch):
    _serve(
        monkeypatch,
        {"result": {"baseFeePerGas": "0x1"}},
        {"result": {"baseFeePerGas": "0x2"}},
    )
    oracle = BaseFeeOracle("http://node:8545")
    assert [oracle.unit_price(), oracle.unit_price()] == [1, 2]


def test_base_fee_oracle_retries_transport_errors(monkeypatch):
    monkeypatch.setattr("time.sleep", lambda _s: None)
    calls = _serve(
        monkeypatch,
        urllib.error.URLError("connection refused"),
        {"result": {"baseFeePerGas": "0x7"}},
    )
    oracle = BaseFeeOracle("http://node:8545", retries=1)
    assert oracle.unit_price() == 7
    assert len(calls) == 2


def test_base_fee_oracle_gives_up(monkeypatch):
    monkeypatch.setattr("time.sleep", lambda _s: None)
    _serve(monkeypatch, urllib.error.URLError("down"), urllib.error.URLError("down"))
    with pytest.raises(PriceOracleError):
        BaseFeeOracle("http://node:8545", retries=1).unit_price()


@pytest.mark.parametrize(
    "payload",
    [
        {"error": {"code": -32000, "message": "boom"}},
        {"result": None},
        {"result": {"number": "0x1"}},
        {"result": {"baseFeePerGas": "zzz"}},
    ],
)
def test_base_fee_oracle_malformed_responses(monkeypatch, payload):
    _serve(monkeypatch, payload)
    with pytest.raises(PriceOracleError):
        BaseFeeOracle("http://node:8545", retries=0).unit_price()


@pytest.mark.parametrize("body", [b"[1, 2]", b"\xff\xfe", b"\"ok\"", b"not json"])
def test_base_fee_oracle_undecodable_bodies(monkeypatch, body):
    _serve(monkeypatch, body)
    with pytest.raises(PriceOracleError):
        BaseFeeOracle("http://node:8545", retries=0).unit_price()


def test_base_fee_oracle_retries_dropped_connections(monkeypatch):
    monkeypatch.setattr("time.sleep", lambda _s: None)
    calls = _serve(
        monkeypatch,
        http.client.RemoteDisconnected("closed"),
        ConnectionResetError("reset"),
        {"result": {"baseFeePerGas": "0x9"}},
    )
    assert BaseFeeOracle("http://node:8545", retries=2).unit_price() == 9
    assert len(calls) == 3


def test_claim_surfaces_oracle_outage_as_domain_error(monkeypatch):
    _serve(monkeypatch, http.client.RemoteDisconnected("closed"))
    vault = NativeVault()
    ledger = GasSubsidy(
        clock=ManualClock(1_000), oracle=BaseFeeOracle("http://node:8545", retries=0), transfer=vault
    )
    ledger.configure("0xop", [1], [50_000], [5])
    ledger.fund("0xop", 1, 10, value=10**18)
    labels = {"op": "claim", "code": PriceOracleError.code}
    before = metrics.REGISTRY.get_sample_value("subsidy_failures_total", labels) or 0.0

    with pytest.raises(PriceOracleError):
        ledger.claim_subsidy("0xop", 1, "0xbene")
    assert metrics.REGISTRY.get_sample_value("subsidy_failures_total", labels) == before + 1
    assert ledger.get_subsidy("0xop", 1).available == 10**18
    assert ledger.pool_balance == 10**18
    assert vault.total() == 0


def test_base_fee_oracle_from_config():
    with pytest.raises(PriceOracleError):
        BaseFeeOracle.from_config(OracleConfig())
    oracle = BaseFeeOracle.from_config(OracleConfig(rpc_url="http://node", timeout_sec=2.0, retries=3))
    assert oracle.client.url == "http://node"
    assert oracle.client.timeout == 2.0
    assert oracle.client.retries == 3


def test_vault_accept_and_reject():
    vault = NativeVault()
    vault.reject("0xabc")
    assert vault.send("0xabc", 5) is False
    vault.accept("0xabc")
    assert vault.send("0xabc", 5) is True
    assert vault.balance_of("0xabc") == 5
    with pytest.raises(ValueError):
        vault.send("0xabc", -1)
