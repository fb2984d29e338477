from __future__ import annotations

"""
Asset primitive - held balances and the ledger that backs them
---------------------------------------------------------------

Escrows never touch account balances directly. Value moves through two seams:

  • `AssetLedger.withdraw(account, amount)` turns an account's funds into a
    held `Balance` (the caller's deposit);
  • `AssetLedger.pay(account, balance)` consumes a held `Balance` and credits
    its whole value to an account (a payout).

In between, a `Balance` can be split (carve out a withdrawable part) and
joined (merge a top-up into existing held value). Joining *moves* value: the
absorbed balance is consumed and can never be spent again. Nothing here mints
or burns, so total value is conserved across every operation. Only balances
a ledger issued (directly or by splitting) are accepted back by it.

`InMemoryLedger` is a deterministic, integer-only implementation with a small
journal. Hosts plug their real transfer layer in behind the same protocol.

Amounts are integer base units (no floats).
"""

from dataclasses import asdict, dataclass
from typing import Dict, List, Protocol

from .errors import InsufficientFunds, InvalidAmount, LedgerError

Amount = int


def require_amount(x: object) -> int:
    """Validate a base-unit amount: a non-negative int (bool excluded)."""
    if isinstance(x, bool) or not isinstance(x, int) or x < 0:
        raise InvalidAmount(amount=x)
    return x


class Balance:
    """
    Value of a single asset held by something other than an account.

    A Balance is consumed when it is joined into another balance or paid out;
    a consumed balance holds 0 and rejects further use.

    Balances remember the ledger that issued them (`_issuer`); parts split off
    inherit it and only balances of the same issuer can be joined. A Balance
    built directly has no issuer, and no ledger will accept it.
    """

    __slots__ = ("asset", "_value", "_consumed", "_issuer")

    def __init__(self, asset: str, value: Amount = 0) -> None:
        self.asset = asset
        self._value = require_amount(value)
        self._consumed = False
        self._issuer: object = None

    @property
    def value(self) -> Amount:
        return self._value

    @property
    def consumed(self) -> bool:
        return self._consumed

    def split(self, amount: Amount) -> "Balance":
        """Carve `amount` out of this balance into a new one."""
        self._require_live()
        require_amount(amount)
        if amount > self._value:
            raise InsufficientFunds(requested=amount, available=self._value)
        self._value -= amount
        return _issue(self._issuer, self.asset, amount)

    def take(self) -> "Balance":
        """Move everything into a new balance; this one becomes consumed."""
        moved = self.split(self._value)
        self.drain()
        return moved

    def join(self, other: "Balance") -> Amount:
        """Absorb `other` (which becomes consumed). Returns the new value."""
        self._require_live()
        if other is self:
            raise LedgerError("cannot join a balance into itself")
        if other.asset != self.asset:
            raise LedgerError(
                "asset mismatch", details={"expected": self.asset, "got": other.asset}
            )
        if other._issuer is not self._issuer:
            raise LedgerError("cannot join balances issued by different ledgers")
        self._value += other.drain()
        return self._value

    def drain(self) -> Amount:
        """Empty this balance and mark it consumed, returning what it held."""
        self._require_live()
        v = self._value
        self._value = 0
        self._consumed = True
        return v

    def _require_live(self) -> None:
        if self._consumed:
            raise LedgerError("balance already consumed")

    def __repr__(self) -> str:
        state = " consumed" if self._consumed else ""
        return f"Balance({self.asset} {self._value}{state})"


def _issue(issuer: object, asset: str, value: Amount) -> Balance:
    b = Balance(asset, value)
    b._issuer = issuer
    return b


class AssetLedger(Protocol):
    """What the escrow manager needs from the host's transfer layer."""

    asset: str

    def withdraw(self, account: str, amount: Amount) -> Balance: ...

    def pay(self, account: str, balance: Balance) -> Amount: ...

    def issued(self, balance: Balance) -> bool:
        """True when `balance` came out of this ledger (or was split from one that did)."""
        ...


@dataclass(frozen=True)
class JournalEntry:
    seq: int
    op: str  # "mint" | "withdraw" | "pay"
    account: str
    amount: Amount
    account_after: Amount


class InMemoryLedger:
    """
    Account balances for one asset plus the count of value currently held
    outside accounts (in Balances). Invariant:

        minted == sum(accounts) + outstanding
    """

    def __init__(self, asset: str) -> None:
        if not asset:
            raise ValueError("asset must be non-empty")
        self.asset = asset
        self._accounts: Dict[str, Amount] = {}
        self._minted: Amount = 0
        self._outstanding: Amount = 0
        self._journal: List[JournalEntry] = []

    # --- queries ---

    def balance_of(self, account: str) -> Amount:
        return self._accounts.get(account, 0)

    @property
    def minted(self) -> Amount:
        return self._minted

    @property
    def outstanding(self) -> Amount:
        """Value currently held in Balances (escrows, in-flight deposits)."""
        return self._outstanding

    def journal(self) -> List[JournalEntry]:
        return list(self._journal)

    def check_conservation(self) -> None:
        in_accounts = sum(self._accounts.values())
        if self._outstanding < 0 or self._minted != in_accounts + self._outstanding:
            raise LedgerError(
                "conservation violated",
                details={
                    "minted": self._minted,
                    "accounts": in_accounts,
                    "outstanding": self._outstanding,
                },
            )

    # --- mutations ---

    def mint(self, account: str, amount: Amount) -> Amount:
        """Create new value in `account` (test/devnet funding only)."""
        require_amount(amount)
        self._minted += amount
        return self._credit(account, amount, "mint")

    def withdraw(self, account: str, amount: Amount) -> Balance:
        require_amount(amount)
        have = self.balance_of(account)
        if amount > have:
            raise InsufficientFunds(requested=amount, available=have, account=account)
        self._accounts[account] = have - amount
        self._outstanding += amount
        self._record("withdraw", account, amount)
        return _issue(self, self.asset, amount)

    def issued(self, balance: Balance) -> bool:
        return balance._issuer is self

    def pay(self, account: str, balance: Balance) -> Amount:
        if balance.asset != self.asset:
            raise LedgerError(
                "asset mismatch", details={"expected": self.asset, "got": balance.asset}
            )
        if not self.issued(balance):
            raise LedgerError("balance was not issued by this ledger")
        if balance.value > self._outstanding:
            raise LedgerError(
                "payout exceeds held value",
                details={"amount": balance.value, "outstanding": self._outstanding},
            )
        amount = balance.drain()
        self._outstanding -= amount
        self._credit(account, amount, "pay")
        return amount

    def dump(self) -> Dict:
        return {
            "asset": self.asset,
            "minted": self._minted,
            "outstanding": self._outstanding,
            "accounts": dict(sorted(self._accounts.items())),
            "journal": [asdict(e) for e in self._journal],
        }

    # --- internal helpers ---

    def _credit(self, account: str, amount: Amount, op: str) -> Amount:
        after = self.balance_of(account) + amount
        self._accounts[account] = after
        self._record(op, account, amount)
        return after

    def _record(self, op: str, account: str, amount: Amount) -> None:
        self._journal.append(
            JournalEntry(
                seq=len(self._journal) + 1,
                op=op,
                account=account,
                amount=amount,
                account_after=self.balance_of(account),
            )
        )


__all__ = [
    "Amount",
    "Balance",
    "AssetLedger",
    "InMemoryLedger",
    "JournalEntry",
    "require_amount",
]
