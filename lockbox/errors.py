from __future__ import annotations
# lockbox/errors.py
"""
Error types for lockbox escrows. Every failure is a precondition violation:
the operation that raised it had no effect on the record, the ledger or the
id allocator. Errors are lightweight and serializable so they can be surfaced
over logs or an embedding API unchanged.

Exports:
- LockboxError (base)
- InvalidUnlockTime
- NotOwner
- NotUnlocked
- InsufficientFunds
- EscrowNotFound
- InvalidAmount
- LedgerError
"""


import json
from typing import Any, Dict, Mapping, Optional


class LockboxError(Exception):
    """Base class for lockbox domain errors."""

    code: str = "LOCKBOX_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:
        if self.details:
            # Compact and stable for logs
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"))
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class InvalidUnlockTime(LockboxError):
    """Creation was requested with an unlock time that is not far enough in the future."""
    code = "LOCKBOX_INVALID_UNLOCK_TIME"

    def __init__(
        self,
        *,
        unlock_time: int,
        current_time: int,
        message: str = "unlock time must be in the future",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"unlock_time": int(unlock_time), "current_time": int(current_time)})
        super().__init__(message, details=d)


class NotOwner(LockboxError):
    """The caller is not the escrow's designated owner."""
    code = "LOCKBOX_NOT_OWNER"

    def __init__(
        self,
        *,
        escrow_id: str,
        caller: str,
        message: str = "caller is not the escrow owner",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"escrow_id": escrow_id, "caller": caller})
        super().__init__(message, details=d)


class NotUnlocked(LockboxError):
    """
    A time-gated operation was invoked in the wrong phase: a withdrawal before
    the unlock time, or a cancellation at or after it.
    """
    code = "LOCKBOX_NOT_UNLOCKED"

    def __init__(
        self,
        *,
        escrow_id: str,
        unlock_time: int,
        current_time: int,
        op: Optional[str] = None,
        message: str = "escrow is not in the required phase",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update(
            {
                "escrow_id": escrow_id,
                "unlock_time": int(unlock_time),
                "current_time": int(current_time),
            }
        )
        if op is not None:
            d["op"] = op
        super().__init__(message, details=d)


class InsufficientFunds(LockboxError):
    """More was requested than the escrow (or ledger account) holds."""
    code = "LOCKBOX_INSUFFICIENT_FUNDS"

    def __init__(
        self,
        *,
        requested: int,
        available: int,
        escrow_id: Optional[str] = None,
        account: Optional[str] = None,
        message: str = "insufficient funds",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"requested": int(requested), "available": int(available)})
        if escrow_id is not None:
            d["escrow_id"] = escrow_id
        if account is not None:
            d["account"] = account
        super().__init__(message, details=d)


class EscrowNotFound(LockboxError):
    """The escrow id is unknown or belongs to a record that was already destroyed."""
    code = "LOCKBOX_ESCROW_NOT_FOUND"

    def __init__(
        self,
        *,
        escrow_id: str,
        message: str = "escrow not found",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d["escrow_id"] = escrow_id
        super().__init__(message, details=d)


class InvalidAmount(LockboxError):
    """Amounts are non-negative integers in base units."""
    code = "LOCKBOX_INVALID_AMOUNT"

    def __init__(
        self,
        *,
        amount: Any,
        message: str = "amount must be a non-negative integer",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d["amount"] = amount if isinstance(amount, int) else repr(amount)
        super().__init__(message, details=d)


class LedgerError(LockboxError):
    """
    Misuse of the asset primitive: a balance of another asset or ledger, a
    balance that was already consumed or is held by a live escrow, or a ledger
    whose asset differs from the configured one.
    """
    code = "LOCKBOX_LEDGER_ERROR"


__all__ = [
    "LockboxError",
    "InvalidUnlockTime",
    "NotOwner",
    "NotUnlocked",
    "InsufficientFunds",
    "EscrowNotFound",
    "InvalidAmount",
    "LedgerError",
]
