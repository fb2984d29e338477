from __future__ import annotations

"""
Deterministic escrow-id allocation.

Definition
----------
escrow_id = SHA3-256(
    domain ||
    u64_be(nonce)        ||
    u64_be(created_ms)   ||
    len(owner)||owner
)

Notes
-----
- Domain-separated so ids from different deployments never collide by accident.
- `nonce` is a per-allocator counter that only ever increases, so two escrows
  created by the same owner in the same millisecond still get different ids.
- The allocator remembers every id it has issued and refuses to issue one
  twice; retired (destroyed) ids are never handed out again.
- Returns lowercase hex with 0x prefix.
"""

import hashlib
import struct
from typing import Iterable, Optional, Set

from .config import DEFAULT_ID_DOMAIN

U64_MAX = (1 << 64) - 1


def _len_prefix(b: bytes) -> bytes:
    return struct.pack(">I", len(b))


def _u64(x: int, name: str) -> bytes:
    if not (0 <= x <= U64_MAX):
        raise ValueError(f"{name} out of range for u64: {x}")
    return struct.pack(">Q", x)


def derive_escrow_id(
    owner: str,
    created_ms: int,
    nonce: int,
    *,
    domain: str = DEFAULT_ID_DOMAIN,
) -> str:
    """
    Compute an escrow id.

    Args:
        owner:      Owner account identifier.
        created_ms: Creation time (UNIX ms) observed by the manager.
        nonce:      Allocator sequence number.
        domain:     Domain tag for separation.

    Returns:
        "0x" + 64 lowercase hex chars.
    """
    owner_b = owner.encode("utf-8")
    h = hashlib.sha3_256()
    h.update(domain.encode("utf-8"))
    h.update(_u64(nonce, "nonce"))
    h.update(_u64(created_ms, "created_ms"))
    h.update(_len_prefix(owner_b))
    h.update(owner_b)
    return "0x" + h.hexdigest()


class IdAllocator:
    """
    Hands out fresh escrow ids. State is just the next nonce and the set of
    issued ids; `dump()`/`load()` let a host carry it across restarts.
    """

    __slots__ = ("domain", "_next_nonce", "_issued")

    def __init__(self, domain: str = DEFAULT_ID_DOMAIN, *, next_nonce: int = 0,
                 issued: Optional[Iterable[str]] = None) -> None:
        self.domain = domain
        self._next_nonce = int(next_nonce)
        self._issued: Set[str] = set(issued or ())

    def peek(self, owner: str, created_ms: int) -> str:
        """The id `allocate` would return next, without consuming it."""
        nonce = self._next_nonce
        while True:
            eid = derive_escrow_id(owner, created_ms, nonce, domain=self.domain)
            if eid not in self._issued:
                return eid
            nonce += 1

    def allocate(self, owner: str, created_ms: int) -> str:
        while True:
            nonce = self._next_nonce
            self._next_nonce += 1
            eid = derive_escrow_id(owner, created_ms, nonce, domain=self.domain)
            if eid not in self._issued:
                self._issued.add(eid)
                return eid

    def was_issued(self, escrow_id: str) -> bool:
        return escrow_id in self._issued

    def __len__(self) -> int:
        return len(self._issued)

    def dump(self) -> dict:
        return {
            "domain": self.domain,
            "next_nonce": self._next_nonce,
            "issued": sorted(self._issued),
        }

    @staticmethod
    def load(d: dict) -> "IdAllocator":
        return IdAllocator(
            d.get("domain", DEFAULT_ID_DOMAIN),
            next_nonce=int(d.get("next_nonce", 0)),
            issued=d.get("issued") or (),
        )


__all__ = ["derive_escrow_id", "IdAllocator", "U64_MAX"]
