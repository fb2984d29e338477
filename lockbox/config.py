from __future__ import annotations
"""
lockbox.config - configuration for time-locked escrows

Covers:
- The single asset escrows are denominated in (symbol, decimals)
- Lock policy bounds applied when an escrow is created
- Logging defaults (level, format, optional JSON log file)
- The domain tag mixed into escrow ids

Environment overrides (all optional; sensible defaults provided):

  # Asset
  LOCKBOX_ASSET_SYMBOL=ANM
  LOCKBOX_ASSET_DECIMALS=9

  # Lock policy (milliseconds)
  LOCKBOX_MIN_LOCK_MS=1
  LOCKBOX_MAX_LOCK_MS=            # empty = unbounded

  # Logging
  LOCKBOX_LOG_LEVEL=INFO
  LOCKBOX_LOG_FORMAT=text         # text | json
  LOCKBOX_LOG_FILE=

  # Ids
  LOCKBOX_ID_DOMAIN=lockbox/escrow-id/v1

You can also load from a JSON or YAML file via `LOCKBOX_CONFIG_FILE=/path/to/config.(json|yaml|yml)`.
File values override defaults; environment overrides the file.
"""


from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional
import json
import os
from pathlib import Path

import yaml


# -------------------------- Data classes --------------------------


@dataclass
class AssetConfig:
    """The one fungible asset escrows hold. Amounts are integer base units."""
    symbol: str = "ANM"
    decimals: int = 9

    def validate(self) -> None:
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Asset symbol must be a non-empty string.")
        if not (0 <= self.decimals <= 18):
            raise ValueError(f"Asset decimals must be between 0 and 18 (got {self.decimals}).")

    def format_amount(self, amount: int) -> str:
        """Render base units for display, e.g. 1_500_000_000 -> '1.500000000 ANM'."""
        if not self.decimals:
            return f"{amount} {self.symbol}"
        whole, frac = divmod(amount, 10 ** self.decimals)
        return f"{whole}.{frac:0{self.decimals}d} {self.symbol}"


@dataclass
class LockPolicy:
    """
    Bounds on `unlock_time - current_time` at creation.

    min_lock_ms=1 is exactly "unlock time strictly in the future".
    max_lock_ms=None leaves the horizon unbounded.
    """
    min_lock_ms: int = 1
    max_lock_ms: Optional[int] = None

    def validate(self) -> None:
        if self.min_lock_ms < 1:
            raise ValueError(f"min_lock_ms must be >= 1 (got {self.min_lock_ms}).")
        if self.max_lock_ms is not None and self.max_lock_ms < self.min_lock_ms:
            raise ValueError(
                f"max_lock_ms ({self.max_lock_ms}) must be >= min_lock_ms ({self.min_lock_ms})."
            )

    def allows(self, lock_ms: int) -> bool:
        if lock_ms < self.min_lock_ms:
            return False
        return self.max_lock_ms is None or lock_ms <= self.max_lock_ms


_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


@dataclass
class LogConfig:
    level: str = "INFO"
    format: str = "text"  # "text" | "json"
    file: Optional[str] = None

    def validate(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level {self.level!r}.")
        if self.format not in ("text", "json"):
            raise ValueError(f"Log format must be 'text' or 'json' (got {self.format!r}).")


DEFAULT_ID_DOMAIN = "lockbox/escrow-id/v1"


@dataclass
class LockboxConfig:
    """Top-level configuration container."""
    asset: AssetConfig = field(default_factory=AssetConfig)
    lock: LockPolicy = field(default_factory=LockPolicy)
    log: LogConfig = field(default_factory=LogConfig)
    id_domain: str = DEFAULT_ID_DOMAIN

    def validate(self) -> None:
        self.asset.validate()
        self.lock.validate()
        self.log.validate()
        if not self.id_domain:
            raise ValueError("id_domain must be non-empty.")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -------------------------- Loaders --------------------------


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(str(v).replace("_", ""))
    except ValueError as e:
        raise ValueError(f"Invalid int for {name}: {v!r}") from e


def _getenv_opt_int(name: str, default: Optional[int]) -> Optional[int]:
    v = os.getenv(name)
    if v is None:
        return default
    if v.strip() == "":
        return None
    return _getenv_int(name, 0)


def _getenv_str(name: str, default: Optional[str]) -> Optional[str]:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v


def from_env(base: Optional[LockboxConfig] = None, prefix: str = "LOCKBOX_") -> LockboxConfig:
    """
    Build a LockboxConfig from environment variables, optionally layering on top of `base`.
    """
    cfg = base or LockboxConfig()

    new_cfg = LockboxConfig(
        asset=AssetConfig(
            symbol=_getenv_str(f"{prefix}ASSET_SYMBOL", cfg.asset.symbol) or cfg.asset.symbol,
            decimals=_getenv_int(f"{prefix}ASSET_DECIMALS", cfg.asset.decimals),
        ),
        lock=LockPolicy(
            min_lock_ms=_getenv_int(f"{prefix}MIN_LOCK_MS", cfg.lock.min_lock_ms),
            max_lock_ms=_getenv_opt_int(f"{prefix}MAX_LOCK_MS", cfg.lock.max_lock_ms),
        ),
        log=LogConfig(
            level=(_getenv_str(f"{prefix}LOG_LEVEL", cfg.log.level) or cfg.log.level).upper(),
            format=(_getenv_str(f"{prefix}LOG_FORMAT", cfg.log.format) or cfg.log.format).lower(),
            file=_getenv_str(f"{prefix}LOG_FILE", cfg.log.file),
        ),
        id_domain=_getenv_str(f"{prefix}ID_DOMAIN", cfg.id_domain) or cfg.id_domain,
    )
    new_cfg.validate()
    return new_cfg


def from_file(path: str | os.PathLike[str]) -> LockboxConfig:
    """
    Load configuration from a JSON or YAML file.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")

    asset = data.get("asset", {})
    lock = data.get("lock", {})
    log = data.get("log", {})

    cfg = LockboxConfig(
        asset=AssetConfig(
            symbol=asset.get("symbol", AssetConfig().symbol),
            decimals=int(asset.get("decimals", AssetConfig().decimals)),
        ),
        lock=LockPolicy(
            min_lock_ms=int(lock.get("min_lock_ms", LockPolicy().min_lock_ms)),
            max_lock_ms=lock.get("max_lock_ms", LockPolicy().max_lock_ms),
        ),
        log=LogConfig(
            level=str(log.get("level", LogConfig().level)).upper(),
            format=str(log.get("format", LogConfig().format)).lower(),
            file=log.get("file", LogConfig().file),
        ),
        id_domain=data.get("id_domain", DEFAULT_ID_DOMAIN),
    )
    cfg.validate()
    return cfg


def load() -> LockboxConfig:
    """
    Load configuration using the following precedence:
      1) File at $LOCKBOX_CONFIG_FILE (JSON/YAML)
      2) Environment variables (LOCKBOX_*), applied on top of defaults or file values
    """
    file_path = os.getenv("LOCKBOX_CONFIG_FILE")
    base = from_file(file_path) if file_path else LockboxConfig()
    return from_env(base=base)


# -------------------------- Utilities --------------------------


def pretty(cfg: Optional[LockboxConfig] = None) -> str:
    """Return a human-readable JSON string of the current config."""
    obj = (cfg or load()).to_dict()
    return json.dumps(obj, indent=2, sort_keys=True)


__all__ = [
    "AssetConfig",
    "LockPolicy",
    "LogConfig",
    "LockboxConfig",
    "DEFAULT_ID_DOMAIN",
    "from_env",
    "from_file",
    "load",
    "pretty",
]
