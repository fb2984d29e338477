from __future__ import annotations
"""
The escrow record and its derived phase.

`Escrow` is frozen: `id`, `owner`, `unlock_time` and `created_at` are fixed
for the record's lifetime. The held value lives in `_funds`, a `Balance`
mutated only by `lockbox.manager.EscrowManager`.

There is no stored phase. `Phase.at(unlock_time, now)` recomputes it on
every read, so it can never drift from the clock.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from .ledger import Balance

EscrowId = str


class Phase(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"

    @staticmethod
    def at(unlock_time: int, current_time: int) -> "Phase":
        return Phase.UNLOCKED if current_time >= unlock_time else Phase.LOCKED


@dataclass(frozen=True)
class Escrow:
    id: EscrowId
    owner: str
    unlock_time: int
    created_at: int
    _funds: Balance = field(repr=False, compare=False)

    @property
    def balance(self) -> int:
        return self._funds.value

    @property
    def asset(self) -> str:
        return self._funds.asset

    @property
    def destroyed(self) -> bool:
        return self._funds.consumed

    def phase(self, current_time: int) -> Phase:
        return Phase.at(self.unlock_time, current_time)

    def is_unlocked(self, current_time: int) -> bool:
        return current_time >= self.unlock_time

    def time_until_unlock(self, current_time: int) -> int:
        return max(0, self.unlock_time - current_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "unlock_time": self.unlock_time,
            "created_at": self.created_at,
            "asset": self.asset,
            "balance": self.balance,
        }


__all__ = ["EscrowId", "Phase", "Escrow"]
