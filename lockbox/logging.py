"""
lockbox.logging
---------------

Structured log output for escrow hosts.

The manager binds `op`, `escrow_id` and `caller` into a context-local scope
around every operation, so every line it (or anything it calls) emits carries
them without repeating them at each call site. Hosts can add their own fields
(`component`, `trace_id`, ...) the same way:

    from lockbox import logging as llog

    llog.configure(json=True, level="INFO")
    with llog.trace_scope(), llog.scope(component="payouts"):
        mgr.withdraw_full(eid, "alice")

Two formatters read the scope plus any `extra=` fields of the record:
`JSONFormatter` (one object per line, also used for log files) and
`TextFormatter` (`ts | LEVEL | logger | k=v ... | message`).
"""

from __future__ import annotations

import datetime as _dt
import json
import logging
import os
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, TextIO

_SCOPE: ContextVar[Dict[str, Any]] = ContextVar("lockbox_log_scope", default={})

# Printed first, in this order, by TextFormatter.
CONTEXT_KEYS = ("trace_id", "component", "op", "escrow_id", "caller")

# Standard LogRecord attributes; everything else on a record is an extra.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


def context() -> Dict[str, Any]:
    """Copy of the fields bound in the current scope."""
    return dict(_SCOPE.get())


def bind(**fields: Any) -> None:
    _SCOPE.set({**_SCOPE.get(), **{k: _jsonable(v) for k, v in fields.items()}})


def unbind(*keys: str) -> None:
    _SCOPE.set({k: v for k, v in _SCOPE.get().items() if k not in keys})


def clear_context() -> None:
    _SCOPE.set({})


@contextmanager
def scope(**fields: Any) -> Iterator[None]:
    """Bind `fields` until the block exits, then restore the outer scope."""
    token = _SCOPE.set({**_SCOPE.get(), **{k: _jsonable(v) for k, v in fields.items()}})
    try:
        yield
    finally:
        _SCOPE.reset(token)


def trace_scope(trace_id: Optional[str] = None):
    """`scope` with a trace_id; an already bound trace_id is kept."""
    tid = trace_id or _SCOPE.get().get("trace_id") or uuid.uuid4().hex[:12]
    return scope(trace_id=tid)


def _jsonable(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str, list, dict)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return v.hex()
    if is_dataclass(v) and not isinstance(v, type):
        return asdict(v)
    return str(v)


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Scope fields, then record extras (the scope wins on collisions)."""
    out = context()
    for k, v in vars(record).items():
        if k not in _RECORD_ATTRS and not k.startswith("_"):
            out.setdefault(k, _jsonable(v))
    return out


def _timestamp(record: logging.LogRecord) -> str:
    ts = _dt.datetime.fromtimestamp(record.created, _dt.timezone.utc)
    return ts.isoformat(timespec="milliseconds")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k, v in _fields(record).items():
            payload.setdefault(k, v)
        if record.exc_info:
            payload["err"] = "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return json.dumps(payload, default=str, separators=(",", ":"))


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields = _fields(record)
        ordered = [k for k in CONTEXT_KEYS if k in fields]
        ordered += [k for k in fields if k not in CONTEXT_KEYS]
        parts = [_timestamp(record), f"{record.levelname:<5}", record.name]
        kv = " ".join(f"{k}={fields[k]}" for k in ordered if fields[k] is not None)
        if kv:
            parts.append(kv)
        parts.append(record.getMessage())
        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return line


def configure(
    *,
    json: Optional[bool] = None,
    level: str | int = "INFO",
    stream: Optional[TextIO] = None,
    file_path: Optional[str] = None,
) -> None:
    """
    Replace the root handlers with a console handler (JSON or text) and, when
    `file_path` is given, a JSON file handler.

    `json=None` consults LOCKBOX_LOG_FORMAT, then picks text for a terminal
    and JSON otherwise.
    """
    stream = stream or sys.stderr
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if json is None:
        env = os.environ.get("LOCKBOX_LOG_FORMAT", "").strip().lower()
        json = env == "json" if env in ("json", "text") else not _isatty(stream)

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(level)

    console = logging.StreamHandler(stream)
    console.setFormatter(JSONFormatter() if json else TextFormatter())
    root.addHandler(console)

    if file_path:
        path = Path(file_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setFormatter(JSONFormatter())
        root.addHandler(fh)


def configure_from_config(cfg: Any, *, stream: Optional[TextIO] = None) -> None:
    """Apply the `log` section of a `lockbox.config.LockboxConfig`."""
    configure(
        json=cfg.log.format == "json",
        level=cfg.log.level,
        stream=stream,
        file_path=cfg.log.file,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "lockbox")


def _isatty(stream: TextIO) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


__all__ = [
    "CONTEXT_KEYS",
    "context",
    "bind",
    "unbind",
    "clear_context",
    "scope",
    "trace_scope",
    "JSONFormatter",
    "TextFormatter",
    "configure",
    "configure_from_config",
    "get_logger",
]
