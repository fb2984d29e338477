import pytest

from lockbox.config import LockboxConfig, LockPolicy
from lockbox.errors import InvalidUnlockTime, LedgerError
from lockbox.events import EscrowCreated
from lockbox.ids import U64_MAX
from lockbox.ledger import Balance, InMemoryLedger
from lockbox.manager import EscrowManager
from lockbox.record import Phase

from . import ALICE, BOB, START_FUNDS


def test_create_moves_funds_into_record(manager, ledger):
    funds = ledger.withdraw(ALICE, 50)
    esc = manager.create(ALICE, 1000, funds, current_time=100)

    assert esc.owner == ALICE
    assert esc.unlock_time == 1000
    assert esc.created_at == 100
    assert esc.balance == 50
    assert esc.asset == "ANM"
    # the caller's deposit was consumed
    assert funds.consumed and funds.value == 0
    assert ledger.balance_of(ALICE) == START_FUNDS - 50
    assert manager.exists(esc.id)
    ledger.check_conservation()


@pytest.mark.parametrize("unlock_time", [100, 99, 0])
def test_unlock_time_not_in_future_is_rejected(manager, ledger, unlock_time):
    funds = ledger.withdraw(ALICE, 50)
    with pytest.raises(InvalidUnlockTime) as ei:
        manager.create(ALICE, unlock_time, funds, current_time=100)

    assert ei.value.details == {"unlock_time": unlock_time, "current_time": 100}
    # nothing consumed, nothing registered
    assert not funds.consumed and funds.value == 50
    assert len(manager) == 0
    assert len(manager.ids) == 0


def test_one_ms_in_future_is_enough(manager, ledger):
    esc = manager.create(ALICE, 101, ledger.withdraw(ALICE, 1), current_time=100)
    assert esc.phase(100) is Phase.LOCKED
    assert esc.phase(101) is Phase.UNLOCKED


def test_zero_value_escrow_is_allowed(manager, ledger):
    esc = manager.create(ALICE, 10, ledger.withdraw(ALICE, 0), current_time=0)
    assert esc.balance == 0


def test_ids_are_unique_even_for_identical_inputs(manager, ledger):
    a = manager.create(ALICE, 1000, ledger.withdraw(ALICE, 1), current_time=5)
    b = manager.create(ALICE, 1000, ledger.withdraw(ALICE, 1), current_time=5)
    assert a.id != b.id
    assert manager.live_ids() == sorted([a.id, b.id])


def test_create_uses_clock_when_time_omitted(manager, ledger, clock):
    clock.set(700)
    esc = manager.create(BOB, 701, ledger.withdraw(BOB, 3))
    assert esc.created_at == 700

    with pytest.raises(InvalidUnlockTime):
        manager.create(BOB, 700, ledger.withdraw(BOB, 3))


def test_create_for_duration(manager, ledger):
    esc = manager.create_for(ALICE, 3_600_000, ledger.withdraw(ALICE, 9), current_time=1_000)
    assert esc.unlock_time == 3_601_000

    with pytest.raises(InvalidUnlockTime):
        manager.create_for(ALICE, 0, ledger.withdraw(ALICE, 9), current_time=1_000)


def test_lock_policy_bounds(ledger):
    cfg = LockboxConfig(lock=LockPolicy(min_lock_ms=60_000, max_lock_ms=86_400_000))
    mgr = EscrowManager(ledger, config=cfg)

    with pytest.raises(InvalidUnlockTime) as ei:
        mgr.create(ALICE, 59_999, ledger.withdraw(ALICE, 1), current_time=0)
    assert ei.value.details["min_lock_ms"] == 60_000

    with pytest.raises(InvalidUnlockTime):
        mgr.create(ALICE, 86_400_001, ledger.withdraw(ALICE, 1), current_time=0)

    esc = mgr.create(ALICE, 86_400_000, ledger.withdraw(ALICE, 1), current_time=0)
    assert esc.unlock_time == 86_400_000


def test_consumed_or_foreign_funds_are_rejected(manager, ledger):
    spent = ledger.withdraw(ALICE, 5)
    manager.create(ALICE, 10, spent, current_time=0)
    with pytest.raises(LedgerError):
        manager.create(ALICE, 10, spent, current_time=0)

    with pytest.raises(LedgerError):
        manager.create(ALICE, 10, Balance("XYZ", 5), current_time=0)


def test_empty_owner_is_rejected(manager, ledger):
    with pytest.raises(ValueError):
        manager.create("", 10, ledger.withdraw(ALICE, 5), current_time=0)


def test_manager_refuses_ledger_of_other_asset():
    with pytest.raises(LedgerError):
        EscrowManager(InMemoryLedger("BTC"))


def test_create_emits_event(manager, ledger, events):
    esc = manager.create(ALICE, 1000, ledger.withdraw(ALICE, 50), current_time=100)
    assert events == [EscrowCreated(esc.id, ALICE, 1000, 50, 100)]
    assert events[0].to_dict()["type"] == "EscrowCreated"


@pytest.mark.parametrize("now", [-5, U64_MAX + 1])
def test_out_of_range_time_leaves_funds_untouched(manager, ledger, now):
    funds = ledger.withdraw(ALICE, 50)
    with pytest.raises(ValueError):
        manager.create(ALICE, 10, funds, current_time=now)

    assert not funds.consumed and funds.value == 50
    assert len(manager) == 0
    assert len(manager.ids) == 0
    ledger.pay(ALICE, funds)
    assert ledger.outstanding == 0
    ledger.check_conservation()


def test_unlock_time_must_be_int(manager, ledger):
    funds = ledger.withdraw(ALICE, 50)
    with pytest.raises(TypeError):
        manager.create(ALICE, 1000.0, funds, current_time=0)
    assert not funds.consumed


def test_forged_balance_is_refused(manager, ledger):
    forged = Balance("ANM", 10**9)
    with pytest.raises(LedgerError):
        manager.create(ALICE, 10, forged, current_time=0)
    assert not forged.consumed
    assert len(manager) == 0

    esc = manager.create(ALICE, 10, ledger.withdraw(ALICE, 5), current_time=0)
    with pytest.raises(LedgerError):
        manager.deposit(esc, Balance("ANM", 10**9), ALICE, current_time=1)
    assert manager.withdraw_full(esc, ALICE, current_time=10) == 5
    assert ledger.balance_of(ALICE) == START_FUNDS
    ledger.check_conservation()


def test_funds_from_another_ledger_are_refused(manager, ledger):
    other = InMemoryLedger("ANM")
    other.mint(ALICE, 5)
    with pytest.raises(LedgerError):
        manager.create(ALICE, 10, other.withdraw(ALICE, 5), current_time=0)
