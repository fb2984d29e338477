from __future__ import annotations

"""
Prometheus metrics for lockbox escrows.

We expose counters, a gauge and a histogram covering:
- lifecycle: escrows created and closed (withdrawn / cancelled)
- fund movements: deposits and withdrawals by kind (full / partial)
- rejections: failed preconditions by operation and error code
- payouts: distribution of amounts paid out to owners (base units)

Amounts are observed in integer base units of the configured asset; bucket
edges are powers of ten so they stay meaningful for any `decimals` setting.
"""


from typing import Tuple

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, Histogram, generate_latest)

# Dedicated registry so embedding apps can choose to merge or expose it directly.
REGISTRY = CollectorRegistry()

# ────────────────────────────────────────────────────────────────────────────────
# Label conventions
#   reason: "withdrawn" | "cancelled"
#   kind:   "full" | "partial"
#   op:     "create" | "deposit" | "withdraw_full" | "withdraw_partial" | "cancel"
#   code:   LockboxError.code
# ────────────────────────────────────────────────────────────────────────────────

ESCROWS_CREATED = Counter(
    "lockbox_escrows_created_total",
    "Total escrows created.",
    registry=REGISTRY,
)

ESCROWS_CLOSED = Counter(
    "lockbox_escrows_closed_total",
    "Total escrows destroyed, by reason.",
    labelnames=("reason",),
    registry=REGISTRY,
)

DEPOSITS = Counter(
    "lockbox_deposits_total",
    "Total top-up deposits into live escrows.",
    registry=REGISTRY,
)

WITHDRAWALS = Counter(
    "lockbox_withdrawals_total",
    "Total withdrawals after unlock, by kind.",
    labelnames=("kind",),
    registry=REGISTRY,
)

REJECTIONS = Counter(
    "lockbox_rejections_total",
    "Operations rejected by a failed precondition, by operation and error code.",
    labelnames=("op", "code"),
    registry=REGISTRY,
)

LIVE_ESCROWS = Gauge(
    "lockbox_live_escrows",
    "Escrows currently live in this manager process.",
    registry=REGISTRY,
)

PAYOUT_AMOUNT = Histogram(
    "lockbox_payout_amount",
    "Distribution of amounts paid out to owners (asset base units).",
    buckets=tuple(float(10 ** e) for e in range(0, 19, 2)),
    registry=REGISTRY,
)


def render_latest() -> Tuple[bytes, str]:
    """Serialize the lockbox registry in the Prometheus text exposition format."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "REGISTRY",
    "ESCROWS_CREATED",
    "ESCROWS_CLOSED",
    "DEPOSITS",
    "WITHDRAWALS",
    "REJECTIONS",
    "LIVE_ESCROWS",
    "PAYOUT_AMOUNT",
    "render_latest",
]
