from __future__ import annotations

"""
subsidy.adapters.price
======================

Unit-price signals for claim accrual: the price of one gas unit in wei, read
synchronously every time a claim is computed. No caching, no staleness check.

Two sources ship here:
- FixedPriceOracle: a settable constant (tests, devnets, replay).
- BaseFeeOracle: the `baseFeePerGas` of the latest block, fetched over JSON-RPC
  (`eth_getBlockByNumber("latest", false)`).

Design notes
------------
* Pure stdlib HTTP client (urllib) to avoid hard deps; callers may wrap/replace.
* JSON-RPC 2.0 with a timeout and exponential-backoff retries.
* Any transport, protocol, or decoding failure surfaces as PriceOracleError.
"""

import http.client
import json
import logging
import time
import urllib.request
from typing import Any, Dict, Optional, Protocol, Sequence, runtime_checkable

from subsidy.config import OracleConfig
from subsidy.errors import PriceOracleError

log = logging.getLogger(__name__)


@runtime_checkable
class UnitPriceOracle(Protocol):
    """Live price-per-gas-unit signal."""

    def unit_price(self) -> int:
        """Return the current price of one gas unit, in wei."""


class FixedPriceOracle:
    """Constant price; `set()` lets tests model fee volatility between calls."""

    def __init__(self, price_wei: int = 1) -> None:
        self.set(price_wei)

    def set(self, price_wei: int) -> None:
        if price_wei < 0:
            raise ValueError("price must be >= 0")
        self._price = int(price_wei)

    def unit_price(self) -> int:
        return self._price


# ---- Client --------------------------------------------------------------------

class JsonRpcClient:
    """
    Tiny JSON-RPC 2.0 client using stdlib urllib with optional retries.

    Only what the base-fee read needs: positional params, a single object
    response, `result` returned as-is for the caller to decode (eth_* QUANTITY
    strings, block objects). No batching, no subscriptions.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        headers: Optional[Dict[str, str]] = None,
        retries: int = 1,
        backoff_sec: float = 0.25,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}
        if headers:
            self.headers.update(headers)
        self._id = 0
        self.retries = max(0, retries)
        self.backoff_sec = max(0.0, backoff_sec)

    def call(self, method: str, params: Optional[Sequence[Any]] = None) -> Any:
        self._id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._id,
            "method": method,
            "params": list(params or []),
        }
        body = json.dumps(payload).encode("utf-8")

        last_err: Optional[Exception] = None
        attempts = 1 + self.retries
        for attempt in range(attempts):
            try:
                req = urllib.request.Request(self.url, data=body, headers=self.headers, method="POST")
                with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                    data = resp.read()
                obj = json.loads(data.decode("utf-8"))
                if not isinstance(obj, dict):
                    raise PriceOracleError(f"RPC response is not an object: {obj!r}")
                if "error" in obj and obj["error"]:
                    raise PriceOracleError(f"RPC error {obj['error']}")
                return obj.get("result")
            except (OSError, http.client.HTTPException, ValueError) as e:
                last_err = e
                log.debug("rpc: %s attempt %d/%d failed: %s", method, attempt + 1, attempts, e)
                if attempt < attempts - 1 and self.backoff_sec > 0:
                    time.sleep(self.backoff_sec * (2 ** attempt))
        raise PriceOracleError(f"RPC call failed after {attempts} attempt(s): {last_err}")


# ---- Oracle --------------------------------------------------------------------

def _parse_quantity(value: Any) -> int:
    """Decode an Ethereum JSON-RPC QUANTITY ("0x1a") into an int."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.startswith(("0x", "0X")):
        try:
            return int(value, 16)
        except ValueError as e:
            raise PriceOracleError(f"malformed quantity: {value!r}") from e
    raise PriceOracleError(f"unexpected quantity: {value!r}")


class BaseFeeOracle:
    """
    Reads the latest block's base fee from a node.

    Example:
        oracle = BaseFeeOracle("http://127.0.0.1:8545")
        price = oracle.unit_price()
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_sec: float = 5.0,
        retries: int = 1,
        backoff_sec: float = 0.25,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.client = JsonRpcClient(
            rpc_url, timeout=timeout_sec, headers=headers, retries=retries, backoff_sec=backoff_sec
        )

    @classmethod
    def from_config(cls, cfg: OracleConfig) -> "BaseFeeOracle":
        if not cfg.rpc_url:
            raise PriceOracleError("oracle.rpc_url is not configured")
        return cls(cfg.rpc_url, timeout_sec=cfg.timeout_sec, retries=cfg.retries, backoff_sec=cfg.backoff_sec)

    def unit_price(self) -> int:
        block = self.client.call("eth_getBlockByNumber", ["latest", False])
        if not isinstance(block, dict):
            raise PriceOracleError(f"unexpected block format: {block!r}")
        if block.get("baseFeePerGas") is None:
            raise PriceOracleError("latest block has no baseFeePerGas (pre-London chain?)")
        price = _parse_quantity(block["baseFeePerGas"])
        if price < 0:
            raise PriceOracleError(f"negative base fee: {price}")
        log.debug("oracle: base fee=%d wei (block=%s)", price, block.get("number"))
        return price


__all__ = ["UnitPriceOracle", "FixedPriceOracle", "JsonRpcClient", "BaseFeeOracle"]
