from __future__ import annotations
"""
lockbox - time-locked single-asset escrow records.

An escrow holds funds of one configured asset for one owner. The owner may
top it up at any time, cancel it (and get everything back) while it is still
locked, and withdraw all or part of it once the unlock time has passed.

Public surface (lazily loaded):
- config, errors, logging, metrics, version
- clock, ids, ledger, record, events, manager
"""


from typing import List

try:
    from .version import __version__  # type: ignore
except Exception:  # pragma: no cover - safe fallback when git/env probing breaks
    __version__ = "0.0.0+local"

__all__: List[str] = [
    "__version__",
    # lazily importable submodules
    "config",
    "errors",
    "logging",
    "metrics",
    "clock",
    "ids",
    "ledger",
    "record",
    "events",
    "manager",
]

# --- Lazy module loader (PEP 562) -------------------------------------------------
import importlib


_lazy_modules = set(__all__) - {"__version__"}


def __getattr__(name: str):
    if name in _lazy_modules:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals().keys()) | _lazy_modules)


def get_version() -> str:
    """Return the lockbox package version string."""
    return __version__
