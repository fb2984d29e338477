"""
Unlocked phase: deposits, full and partial withdrawals; no cancellation.
"""
import pytest

from lockbox.errors import (EscrowNotFound, InsufficientFunds, InvalidAmount,
                            NotOwner, NotUnlocked)
from lockbox.events import EscrowWithdrawn

from . import ALICE, BOB, START_FUNDS


def _mk_escrow(manager, ledger, amount=50, unlock_time=1000, now=100):
    return manager.create(ALICE, unlock_time, ledger.withdraw(ALICE, amount), current_time=now)


def test_withdraw_full_at_exact_unlock_time(manager, ledger):
    esc = _mk_escrow(manager, ledger)

    paid = manager.withdraw_full(esc, ALICE, current_time=1000)

    assert paid == 50
    assert ledger.balance_of(ALICE) == START_FUNDS
    assert not manager.exists(esc.id)
    ledger.check_conservation()


def test_partial_withdrawals_keep_record_alive(manager, ledger):
    esc = _mk_escrow(manager, ledger)

    assert manager.withdraw_partial(esc, 20, ALICE, current_time=1500) == 20
    assert manager.balance(esc) == 30
    assert manager.owner(esc) == ALICE
    assert manager.unlock_time(esc) == 1000

    assert manager.withdraw_partial(esc, 30, ALICE, current_time=1600) == 30
    # drained but still live
    assert manager.exists(esc.id)
    assert manager.balance(esc) == 0
    assert ledger.balance_of(ALICE) == START_FUNDS

    assert manager.withdraw_full(esc, ALICE, current_time=1700) == 0
    assert not manager.exists(esc.id)


def test_partial_withdrawal_more_than_balance(manager, ledger):
    esc = _mk_escrow(manager, ledger)

    with pytest.raises(InsufficientFunds) as ei:
        manager.withdraw_partial(esc, 51, ALICE, current_time=1000)

    assert ei.value.details == {"requested": 51, "available": 50, "escrow_id": esc.id}
    assert manager.balance(esc) == 50
    ledger.check_conservation()


@pytest.mark.parametrize("bad", [-1, 1.5, "10", True])
def test_partial_withdrawal_rejects_bad_amounts(manager, ledger, bad):
    esc = _mk_escrow(manager, ledger)
    with pytest.raises(InvalidAmount):
        manager.withdraw_partial(esc, bad, ALICE, current_time=1000)
    assert manager.balance(esc) == 50


def test_precondition_order_for_partial(manager, ledger):
    esc = _mk_escrow(manager, ledger)
    # stranger + locked + too much -> NotOwner
    with pytest.raises(NotOwner):
        manager.withdraw_partial(esc, 999, BOB, current_time=10)
    # owner + locked + too much -> NotUnlocked
    with pytest.raises(NotUnlocked):
        manager.withdraw_partial(esc, 999, ALICE, current_time=10)
    # owner + unlocked + too much -> InsufficientFunds
    with pytest.raises(InsufficientFunds):
        manager.withdraw_partial(esc, 999, ALICE, current_time=1000)


def test_deposit_after_unlock_is_allowed(manager, ledger):
    esc = _mk_escrow(manager, ledger)
    manager.deposit(esc, ledger.withdraw(ALICE, 7), ALICE, current_time=5000)
    assert manager.balance(esc) == 57
    assert manager.withdraw_full(esc, ALICE, current_time=5001) == 57


def test_stranger_cannot_withdraw_after_unlock(manager, ledger):
    esc = _mk_escrow(manager, ledger)
    with pytest.raises(NotOwner):
        manager.withdraw_full(esc, BOB, current_time=2000)
    with pytest.raises(NotOwner):
        manager.withdraw_partial(esc, 1, BOB, current_time=2000)
    assert ledger.balance_of(BOB) == START_FUNDS
    assert manager.balance(esc) == 50


def test_destroyed_record_rejects_everything(manager, ledger):
    esc = _mk_escrow(manager, ledger)
    manager.withdraw_full(esc, ALICE, current_time=1000)

    with pytest.raises(EscrowNotFound):
        manager.withdraw_full(esc, ALICE, current_time=1001)
    with pytest.raises(EscrowNotFound):
        manager.withdraw_partial(esc.id, 1, ALICE, current_time=1001)
    with pytest.raises(EscrowNotFound):
        manager.cancel(esc, ALICE, current_time=1)
    with pytest.raises(EscrowNotFound):
        manager.balance(esc)
    with pytest.raises(EscrowNotFound):
        manager.get(esc.id)


def test_unlocked_phase_events(manager, ledger, events):
    esc = _mk_escrow(manager, ledger)
    manager.withdraw_partial(esc, 20, ALICE, current_time=1000)
    manager.withdraw_full(esc, ALICE, current_time=1001)

    assert events[1:] == [
        EscrowWithdrawn(esc.id, ALICE, 20, 30, False, 1000),
        EscrowWithdrawn(esc.id, ALICE, 30, 0, True, 1001),
    ]
