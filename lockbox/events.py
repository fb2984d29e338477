from __future__ import annotations
"""
Escrow lifecycle events.

The manager hands one event to its `on_event` callback after every successful
mutating operation (never on failure). Events are frozen dataclasses with
JSON-friendly fields so hosts can forward them to a bus, a log or an indexer.

Events:
  - EscrowCreated:   a new escrow was funded.
  - EscrowDeposited: a live escrow was topped up.
  - EscrowWithdrawn: funds left an unlocked escrow (partial or full).
  - EscrowCancelled: a locked escrow was cancelled and refunded.

Timestamps are the `current_time` the operation ran at (UNIX ms).
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, Union


class EventType(str, Enum):
    CREATED = "EscrowCreated"
    DEPOSITED = "EscrowDeposited"
    WITHDRAWN = "EscrowWithdrawn"
    CANCELLED = "EscrowCancelled"


@dataclass(frozen=True)
class EscrowCreated:
    escrow_id: str
    owner: str
    unlock_time: int
    amount: int
    ts_ms: int

    etype = EventType.CREATED

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.etype.value, **asdict(self)}


@dataclass(frozen=True)
class EscrowDeposited:
    escrow_id: str
    amount: int
    balance_after: int
    ts_ms: int

    etype = EventType.DEPOSITED

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.etype.value, **asdict(self)}


@dataclass(frozen=True)
class EscrowWithdrawn:
    escrow_id: str
    to: str
    amount: int
    balance_after: int
    closed: bool
    ts_ms: int

    etype = EventType.WITHDRAWN

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.etype.value, **asdict(self)}


@dataclass(frozen=True)
class EscrowCancelled:
    escrow_id: str
    to: str
    amount: int
    ts_ms: int

    etype = EventType.CANCELLED

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.etype.value, **asdict(self)}


EscrowEvent = Union[EscrowCreated, EscrowDeposited, EscrowWithdrawn, EscrowCancelled]
EventSink = Callable[[EscrowEvent], None]


__all__ = [
    "EventType",
    "EscrowCreated",
    "EscrowDeposited",
    "EscrowWithdrawn",
    "EscrowCancelled",
    "EscrowEvent",
    "EventSink",
]
