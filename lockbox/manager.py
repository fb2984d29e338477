from __future__ import annotations

"""
Escrow manager - time-locked custody of a single asset
------------------------------------------------------

Owns the full lifecycle of escrow records:

  create ──► LOCKED ──(clock passes unlock_time)──► UNLOCKED
               │  deposit                             │  deposit
               │  cancel ──► destroyed (refund)       │  withdraw_partial
               │                                      │  withdraw_full ──► destroyed

The phase is never stored; every time-gated operation compares the record's
immutable `unlock_time` with the `current_time` of the call. `withdraw_*`
requires `current_time >= unlock_time`, `cancel` requires
`current_time < unlock_time`, so for any instant exactly one of the two paths
out of an escrow is open.

Rules enforced on every call:
  • Only the owner may mutate a record (NotOwner).
  • All preconditions are checked before anything moves, so a failed call
    leaves the record, the ledger and the id allocator untouched.
  • Destroying a record pays its whole balance to the owner in the same call;
    the id is retired and every later reference raises EscrowNotFound.

Money never moves by arithmetic on integers here: incoming funds are `Balance`
objects issued by the ledger and moved into the record, outgoing funds are
split off (or drained) and handed to `AssetLedger.pay`. A Balance the ledger
did not issue, or one already held by a live escrow, is refused.

Every operation runs inside a `lockbox.logging.scope` binding `op`,
`escrow_id` and `caller`, so all log lines of one call share those fields.

Usage:
  ledger = InMemoryLedger("ANM")
  mgr = EscrowManager(ledger, config=LockboxConfig())
  ledger.mint("alice", 100)
  esc = mgr.create("alice", 1_000, ledger.withdraw("alice", 50), current_time=100)
  mgr.cancel(esc, "alice", current_time=500)   # -> 50 paid back to alice
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Union

from . import metrics
from .clock import Clock, SystemClock
from .config import LockboxConfig
from .config import load as load_config
from .errors import (EscrowNotFound, InsufficientFunds, InvalidUnlockTime,
                     LedgerError, LockboxError, NotOwner, NotUnlocked)
from .events import (EscrowCancelled, EscrowCreated, EscrowDeposited,
                     EscrowEvent, EscrowWithdrawn, EventSink)
from .ids import U64_MAX, IdAllocator
from .ledger import AssetLedger, Balance, require_amount
from .logging import bind, configure_from_config, get_logger, scope
from .record import Escrow, EscrowId, Phase

log = get_logger(__name__)

EscrowRef = Union[Escrow, EscrowId]


class EscrowManager:
    """
    Registry of live escrows over one asset ledger.

    Every time-taking operation accepts `current_time` (UNIX ms). When it is
    omitted the injected clock is read once for that call.
    """

    __slots__ = ("cfg", "ledger", "ids", "clock", "_on_event", "_live", "_held")

    def __init__(
        self,
        ledger: AssetLedger,
        *,
        config: Optional[LockboxConfig] = None,
        ids: Optional[IdAllocator] = None,
        clock: Optional[Clock] = None,
        on_event: Optional[EventSink] = None,
    ) -> None:
        cfg = config or LockboxConfig()
        cfg.validate()
        if ledger.asset != cfg.asset.symbol:
            raise LedgerError(
                "ledger asset differs from configured asset",
                details={"configured": cfg.asset.symbol, "ledger": ledger.asset},
            )
        self.cfg = cfg
        self.ledger = ledger
        self.ids = ids or IdAllocator(cfg.id_domain)
        self.clock = clock or SystemClock()
        self._on_event = on_event
        self._live: Dict[EscrowId, Escrow] = {}
        # id() of each live record's Balance -> escrow id
        self._held: Dict[int, EscrowId] = {}

    @classmethod
    def from_config(
        cls,
        ledger: AssetLedger,
        config: Optional[LockboxConfig] = None,
        *,
        setup_logging: bool = True,
        **kwargs: Any,
    ) -> "EscrowManager":
        """
        Build a manager from `config`, or from `lockbox.config.load()` (file
        and LOCKBOX_* environment) when omitted. The config's `log` section is
        applied to the root logger first unless `setup_logging` is False.
        """
        cfg = config or load_config()
        if setup_logging:
            configure_from_config(cfg)
        return cls(ledger, config=cfg, **kwargs)

    # --- registry ---

    def get(self, escrow_id: EscrowId) -> Escrow:
        rec = self._live.get(escrow_id)
        if rec is None:
            raise EscrowNotFound(escrow_id=escrow_id)
        return rec

    def exists(self, escrow_id: EscrowId) -> bool:
        return escrow_id in self._live

    def live_ids(self) -> List[EscrowId]:
        return sorted(self._live)

    def __len__(self) -> int:
        return len(self._live)

    # --- construction ---

    def create(
        self,
        owner: str,
        unlock_time: int,
        initial_funds: Balance,
        current_time: Optional[int] = None,
    ) -> Escrow:
        """
        Open an escrow for `owner` holding `initial_funds` until `unlock_time`.

        `initial_funds` is consumed: its value moves into the record.

        Raises:
            InvalidUnlockTime: unlock_time is not strictly after current_time
                (or violates the configured lock policy).
            LedgerError: funds of another asset or ledger, an already consumed
                balance, or one held by a live escrow.
        """
        now = self._now(current_time)
        with self._operation("create", caller=owner):
            if not isinstance(owner, str) or not owner:
                raise ValueError("owner must be a non-empty string")
            if isinstance(unlock_time, bool) or not isinstance(unlock_time, int):
                raise TypeError(
                    f"unlock_time must be int milliseconds, got {type(unlock_time).__name__}"
                )
            if unlock_time <= now:
                raise InvalidUnlockTime(unlock_time=unlock_time, current_time=now)
            if not self.cfg.lock.allows(unlock_time - now):
                raise InvalidUnlockTime(
                    unlock_time=unlock_time,
                    current_time=now,
                    message="lock duration outside the configured policy",
                    details={
                        "min_lock_ms": self.cfg.lock.min_lock_ms,
                        "max_lock_ms": self.cfg.lock.max_lock_ms,
                    },
                )
            self._require_spendable(initial_funds)

            escrow_id = self.ids.allocate(owner, now)
            bind(escrow_id=escrow_id)
            rec = Escrow(
                id=escrow_id,
                owner=owner,
                unlock_time=unlock_time,
                created_at=now,
                _funds=initial_funds.take(),
            )
            self._live[rec.id] = rec
            self._held[id(rec._funds)] = rec.id

            metrics.ESCROWS_CREATED.inc()
            metrics.LIVE_ESCROWS.inc()
            log.info(
                "escrow created",
                extra={"amount": rec.balance, "unlock_time": rec.unlock_time},
            )
            self._emit(EscrowCreated(rec.id, owner, rec.unlock_time, rec.balance, now))
        return rec

    def create_for(
        self,
        owner: str,
        lock_ms: int,
        initial_funds: Balance,
        current_time: Optional[int] = None,
    ) -> Escrow:
        """Open an escrow that unlocks `lock_ms` after `current_time`."""
        now = self._now(current_time)
        return self.create(owner, now + int(lock_ms), initial_funds, now)

    # --- fund movements ---

    def deposit(
        self,
        record: EscrowRef,
        additional_funds: Balance,
        caller: str,
        current_time: Optional[int] = None,
    ) -> None:
        """
        Top up a live escrow. Allowed in both phases; only the owner may deposit.
        `additional_funds` is consumed.
        """
        now = self._now(current_time)
        with self._operation("deposit", record=record, caller=caller):
            rec = self._resolve(record)
            self._require_owner(rec, caller)
            self._require_spendable(additional_funds)

            amount = additional_funds.value
            rec._funds.join(additional_funds)

            metrics.DEPOSITS.inc()
            log.debug("escrow topped up", extra={"amount": amount, "balance_after": rec.balance})
            self._emit(EscrowDeposited(rec.id, amount, rec.balance, now))

    def withdraw_full(
        self,
        record: EscrowRef,
        caller: str,
        current_time: Optional[int] = None,
    ) -> int:
        """
        Destroy an unlocked escrow and pay its whole balance to the owner.
        Returns the amount paid.
        """
        now = self._now(current_time)
        with self._operation("withdraw_full", record=record, caller=caller):
            rec = self._resolve(record)
            self._require_owner(rec, caller)
            self._require_unlocked(rec, now, "withdraw_full")

            paid = self._close(rec, reason="withdrawn")
            metrics.WITHDRAWALS.labels(kind="full").inc()
            self._emit(EscrowWithdrawn(rec.id, rec.owner, paid, 0, True, now))
        return paid

    def withdraw_partial(
        self,
        record: EscrowRef,
        amount: int,
        caller: str,
        current_time: Optional[int] = None,
    ) -> int:
        """
        Pay `amount` out of an unlocked escrow to its owner; the escrow stays
        live (possibly with a zero balance). Returns `amount`.
        """
        now = self._now(current_time)
        with self._operation("withdraw_partial", record=record, caller=caller):
            rec = self._resolve(record)
            self._require_owner(rec, caller)
            self._require_unlocked(rec, now, "withdraw_partial")
            require_amount(amount)
            if amount > rec.balance:
                raise InsufficientFunds(
                    requested=amount, available=rec.balance, escrow_id=rec.id
                )

            paid = self.ledger.pay(rec.owner, rec._funds.split(amount))

            metrics.WITHDRAWALS.labels(kind="partial").inc()
            metrics.PAYOUT_AMOUNT.observe(paid)
            log.info("partial withdrawal", extra={"amount": paid, "balance_after": rec.balance})
            self._emit(EscrowWithdrawn(rec.id, rec.owner, paid, rec.balance, False, now))
        return paid

    def cancel(
        self,
        record: EscrowRef,
        caller: str,
        current_time: Optional[int] = None,
    ) -> int:
        """
        Destroy a still-locked escrow and refund its whole balance to the owner.
        Only valid strictly before the unlock time. Returns the amount refunded.
        """
        now = self._now(current_time)
        with self._operation("cancel", record=record, caller=caller):
            rec = self._resolve(record)
            self._require_owner(rec, caller)
            if now >= rec.unlock_time:
                raise NotUnlocked(
                    escrow_id=rec.id,
                    unlock_time=rec.unlock_time,
                    current_time=now,
                    op="cancel",
                    message="escrow already unlocked; withdraw instead of cancelling",
                )

            paid = self._close(rec, reason="cancelled")
            self._emit(EscrowCancelled(rec.id, rec.owner, paid, now))
        return paid

    # --- read-only projections ---

    def owner(self, record: EscrowRef) -> str:
        return self._resolve(record).owner

    def unlock_time(self, record: EscrowRef) -> int:
        return self._resolve(record).unlock_time

    def balance(self, record: EscrowRef) -> int:
        return self._resolve(record).balance

    def is_unlocked(self, record: EscrowRef, current_time: Optional[int] = None) -> bool:
        return self._resolve(record).is_unlocked(self._now(current_time))

    def time_until_unlock(self, record: EscrowRef, current_time: Optional[int] = None) -> int:
        return self._resolve(record).time_until_unlock(self._now(current_time))

    def phase(self, record: EscrowRef, current_time: Optional[int] = None) -> Phase:
        return self._resolve(record).phase(self._now(current_time))

    def info(self, record: EscrowRef, current_time: Optional[int] = None) -> Dict:
        rec = self._resolve(record)
        now = self._now(current_time)
        d = rec.to_dict()
        d["balance_display"] = self.cfg.asset.format_amount(rec.balance)
        d["phase"] = rec.phase(now).value
        d["time_until_unlock"] = rec.time_until_unlock(now)
        return d

    # --- internal helpers ---

    def _now(self, current_time: Optional[int]) -> int:
        if current_time is None:
            current_time = int(self.clock.now_ms())
        elif isinstance(current_time, bool) or not isinstance(current_time, int):
            raise TypeError(f"current_time must be int milliseconds, got {type(current_time).__name__}")
        if not 0 <= current_time <= U64_MAX:
            raise ValueError(f"current_time out of range: {current_time}")
        return current_time

    def _resolve(self, record: EscrowRef) -> Escrow:
        escrow_id = record.id if isinstance(record, Escrow) else record
        return self.get(escrow_id)

    def _require_owner(self, rec: Escrow, caller: str) -> None:
        if caller != rec.owner:
            raise NotOwner(escrow_id=rec.id, caller=str(caller))

    def _require_unlocked(self, rec: Escrow, now: int, op: str) -> None:
        if now < rec.unlock_time:
            raise NotUnlocked(
                escrow_id=rec.id,
                unlock_time=rec.unlock_time,
                current_time=now,
                op=op,
                message="escrow is still locked",
            )

    def _require_spendable(self, funds: Balance) -> None:
        if not isinstance(funds, Balance):
            raise LedgerError(f"expected a Balance, got {type(funds).__name__}")
        if funds.consumed:
            raise LedgerError("balance already consumed")
        if funds.asset != self.ledger.asset:
            raise LedgerError(
                "asset mismatch", details={"expected": self.ledger.asset, "got": funds.asset}
            )
        if not self.ledger.issued(funds):
            raise LedgerError("balance was not issued by this ledger")
        holder = self._held.get(id(funds))
        if holder is not None:
            raise LedgerError("balance is held by a live escrow", details={"escrow_id": holder})

    def _close(self, rec: Escrow, *, reason: str) -> int:
        """Pay out everything the record holds and retire it."""
        paid = self.ledger.pay(rec.owner, rec._funds)
        del self._held[id(rec._funds)]
        del self._live[rec.id]

        metrics.ESCROWS_CLOSED.labels(reason=reason).inc()
        metrics.LIVE_ESCROWS.dec()
        metrics.PAYOUT_AMOUNT.observe(paid)
        log.info("escrow closed", extra={"owner": rec.owner, "amount": paid, "reason": reason})
        return paid

    def _emit(self, event: EscrowEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)

    @contextmanager
    def _operation(
        self, op: str, *, record: Optional[EscrowRef] = None, caller: Optional[str] = None
    ) -> Iterator[None]:
        """Bind the call's log fields; count and log rejections, which still propagate."""
        escrow_id = record.id if isinstance(record, Escrow) else record
        fields = {k: v for k, v in (("escrow_id", escrow_id), ("caller", caller)) if v is not None}
        with scope(op=op, **fields):
            try:
                yield
            except LockboxError as e:
                metrics.REJECTIONS.labels(op=op, code=e.code).inc()
                log.warning(
                    "%s rejected: %s",
                    op,
                    e.message,
                    extra={"op": op, "code": e.code, "caller": caller, "escrow_id": escrow_id},
                )
                raise


__all__ = ["EscrowManager", "EscrowRef"]
