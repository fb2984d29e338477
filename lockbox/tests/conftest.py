# -*- coding: utf-8 -*-
"""
lockbox.tests.conftest
======================

Fixtures for escrow tests:
- a funded in-memory ledger (alice, bob, carol)
- a manual clock starting at t=0
- an EscrowManager wired to both, recording emitted events
- `metric(...)` to read counter values from the lockbox registry
"""
from __future__ import annotations

from typing import List, Optional

import pytest

from lockbox.clock import ManualClock
from lockbox.config import LockboxConfig
from lockbox.events import EscrowEvent
from lockbox.ledger import InMemoryLedger
from lockbox.manager import EscrowManager
from lockbox.metrics import REGISTRY

from . import ALICE, ASSET, BOB, CAROL, START_FUNDS


@pytest.fixture
def ledger() -> InMemoryLedger:
    led = InMemoryLedger(ASSET)
    for who in (ALICE, BOB, CAROL):
        led.mint(who, START_FUNDS)
    return led


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(0)


@pytest.fixture
def events() -> List[EscrowEvent]:
    return []


@pytest.fixture
def manager(ledger: InMemoryLedger, clock: ManualClock, events: List[EscrowEvent]) -> EscrowManager:
    return EscrowManager(ledger, config=LockboxConfig(), clock=clock, on_event=events.append)


@pytest.fixture
def metric():
    """Read a sample from the lockbox registry (0.0 when not yet emitted)."""

    def _read(name: str, labels: Optional[dict] = None) -> float:
        v = REGISTRY.get_sample_value(name, labels or {})
        return 0.0 if v is None else v

    return _read
