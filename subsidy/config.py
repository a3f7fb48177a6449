from __future__ import annotations
"""
subsidy.config - configuration for the gas subsidy ledger

Covers:
- Minimum deposit accepted by fund() (wei)
- Whether the pool invariant is re-checked after every committed mutation
- Unit-price oracle endpoint (JSON-RPC) and its timeout/retry policy

Environment overrides (all optional; sensible defaults provided):

  # Ledger
  SUBSIDY_MIN_SUBSIDY_WEI=100000000000000000
  SUBSIDY_CHECK_INVARIANTS=1
  SUBSIDY_NATIVE_DECIMALS=18

  # Base-fee oracle
  SUBSIDY_ORACLE_RPC_URL=http://127.0.0.1:8545
  SUBSIDY_ORACLE_TIMEOUT_SEC=5.0
  SUBSIDY_ORACLE_RETRIES=1
  SUBSIDY_ORACLE_BACKOFF_SEC=0.25

You can also load from a JSON or YAML file via `SUBSIDY_CONFIG_FILE=/path/to/config.(json|yaml|yml)`.
File values override defaults; environment overrides the file.
"""


from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional
import json
import os
from pathlib import Path

import yaml

from subsidy.errors import ConfigError

# 0.1 native unit in 18-decimal fixed point.
DEFAULT_MIN_SUBSIDY_WEI = 10**17


# -------------------------- Data classes --------------------------


@dataclass
class OracleConfig:
    """JSON-RPC endpoint serving the network base fee."""
    rpc_url: Optional[str] = None
    timeout_sec: float = 5.0
    retries: int = 1
    backoff_sec: float = 0.25

    def validate(self) -> None:
        if self.timeout_sec <= 0:
            raise ConfigError(f"oracle.timeout_sec must be positive (got {self.timeout_sec}).")
        if self.retries < 0:
            raise ConfigError(f"oracle.retries must be >= 0 (got {self.retries}).")
        if self.backoff_sec < 0:
            raise ConfigError(f"oracle.backoff_sec must be >= 0 (got {self.backoff_sec}).")


@dataclass
class LedgerConfig:
    """Top-level configuration container."""
    min_subsidy_wei: int = DEFAULT_MIN_SUBSIDY_WEI
    check_invariants: bool = True
    native_decimals: int = 18  # informational
    oracle: OracleConfig = field(default_factory=OracleConfig)

    def validate(self) -> None:
        if self.min_subsidy_wei < 0:
            raise ConfigError(f"min_subsidy_wei must be non-negative (got {self.min_subsidy_wei}).")
        if self.native_decimals <= 0:
            raise ConfigError("native_decimals must be positive.")
        self.oracle.validate()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["min_subsidy_wei"] = str(self.min_subsidy_wei)
        return d


# -------------------------- Loaders --------------------------


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(str(v).replace("_", ""))
    except ValueError as e:
        raise ConfigError(f"Invalid int for {name}: {v!r}") from e


def _getenv_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError as e:
        raise ConfigError(f"Invalid float for {name}: {v!r}") from e


def _parse_bool(name: str, v: Any) -> bool:
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"Invalid bool for {name}: {v!r}")


def _getenv_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return _parse_bool(name, v)


def from_env(base: Optional[LedgerConfig] = None, prefix: str = "SUBSIDY_") -> LedgerConfig:
    """
    Build a LedgerConfig from environment variables, optionally layering on top of `base`.
    """
    cfg = base or LedgerConfig()

    rpc_url = os.getenv(f"{prefix}ORACLE_RPC_URL") or cfg.oracle.rpc_url

    new_cfg = LedgerConfig(
        min_subsidy_wei=_getenv_int(f"{prefix}MIN_SUBSIDY_WEI", cfg.min_subsidy_wei),
        check_invariants=_getenv_bool(f"{prefix}CHECK_INVARIANTS", cfg.check_invariants),
        native_decimals=_getenv_int(f"{prefix}NATIVE_DECIMALS", cfg.native_decimals),
        oracle=OracleConfig(
            rpc_url=rpc_url,
            timeout_sec=_getenv_float(f"{prefix}ORACLE_TIMEOUT_SEC", cfg.oracle.timeout_sec),
            retries=_getenv_int(f"{prefix}ORACLE_RETRIES", cfg.oracle.retries),
            backoff_sec=_getenv_float(f"{prefix}ORACLE_BACKOFF_SEC", cfg.oracle.backoff_sec),
        ),
    )
    new_cfg.validate()
    return new_cfg


def from_file(path: str | os.PathLike[str]) -> LedgerConfig:
    """
    Load configuration from a JSON or YAML file.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    try:
        if p.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text or "{}")
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not parse config file {p}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {p} must contain a mapping at the top level.")

    defaults = LedgerConfig()
    oracle = data.get("oracle") or {}
    if not isinstance(oracle, dict):
        raise ConfigError(f"Config file {p}: oracle must be a mapping (got {oracle!r}).")

    try:
        cfg = LedgerConfig(
            min_subsidy_wei=int(data.get("min_subsidy_wei", defaults.min_subsidy_wei)),
            check_invariants=_parse_bool("check_invariants", data.get("check_invariants", defaults.check_invariants)),
            native_decimals=int(data.get("native_decimals", defaults.native_decimals)),
            oracle=OracleConfig(
                rpc_url=oracle.get("rpc_url", defaults.oracle.rpc_url),
                timeout_sec=float(oracle.get("timeout_sec", defaults.oracle.timeout_sec)),
                retries=int(oracle.get("retries", defaults.oracle.retries)),
                backoff_sec=float(oracle.get("backoff_sec", defaults.oracle.backoff_sec)),
            ),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in config file {p}: {e}") from e
    cfg.validate()
    return cfg


def load() -> LedgerConfig:
    """
    Load configuration using the following precedence:
      1) File at $SUBSIDY_CONFIG_FILE (JSON/YAML)
      2) Environment variables (SUBSIDY_*), applied on top of defaults or file values
    """
    file_path = os.getenv("SUBSIDY_CONFIG_FILE")
    base = from_file(file_path) if file_path else LedgerConfig()
    return from_env(base=base)


# -------------------------- Utilities --------------------------


def pretty(cfg: Optional[LedgerConfig] = None) -> str:
    """Return a human-readable JSON string of the current config."""
    obj = (cfg or load()).to_dict()
    return json.dumps(obj, indent=2, sort_keys=True)


__all__ = [
    "DEFAULT_MIN_SUBSIDY_WEI",
    "OracleConfig",
    "LedgerConfig",
    "from_env",
    "from_file",
    "load",
    "pretty",
]
