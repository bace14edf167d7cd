import random
import threading
from uuid import uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from buzz_rewards.core.errors import BelowMinimumAmount, InsufficientBalance
from buzz_rewards.models import MileageTransactionType
from buzz_rewards.services import mileage_ledger


def _assert_chain(transactions) -> None:
    for previous, current in zip(transactions, transactions[1:]):
        assert previous.balance_after == current.balance_before
    for entry in transactions:
        assert entry.balance_after == entry.balance_before + entry.amount
        assert entry.balance_after >= 0


def test_earn_and_use_update_account_and_ledger(session) -> None:
    user_id = uuid4()
    business_id = uuid4()

    earned = mileage_ledger.earn(session, user_id=user_id, amount=5000, reason="signup_bonus")
    used = mileage_ledger.use(session, user_id=user_id, amount=1200, business_id=business_id, reason="qr_payment")
    session.commit()

    assert (earned.balance_before, earned.balance_after, earned.amount) == (0, 5000, 5000)
    assert (used.balance_before, used.balance_after, used.amount) == (5000, 3800, -1200)
    assert used.transaction_type is MileageTransactionType.USE
    assert used.business_id == business_id

    account = mileage_ledger.get_account(session, user_id)
    assert (account.balance, account.total_earned, account.total_used) == (3800, 5000, 1200)


def test_use_beyond_balance_fails_and_leaves_balance(session) -> None:
    user_id = uuid4()
    mileage_ledger.earn(session, user_id=user_id, amount=2000, reason="event")
    session.commit()

    with pytest.raises(InsufficientBalance) as excinfo:
        mileage_ledger.use(session, user_id=user_id, amount=3000, business_id=uuid4(), reason="qr_payment")
    session.rollback()

    assert excinfo.value.balance == 2000
    assert mileage_ledger.get_account(session, user_id).balance == 2000
    assert len(mileage_ledger.history(session, user_id=user_id)) == 1


def test_use_without_account_is_insufficient(session) -> None:
    with pytest.raises(InsufficientBalance):
        mileage_ledger.use(session, user_id=uuid4(), amount=1, business_id=uuid4(), reason="qr_payment")


@pytest.mark.parametrize("amount", [0, -10])
def test_non_positive_amounts_are_rejected(session, amount: int) -> None:
    with pytest.raises(BelowMinimumAmount):
        mileage_ledger.earn(session, user_id=uuid4(), amount=amount, reason="bad")
    with pytest.raises(BelowMinimumAmount):
        mileage_ledger.use(session, user_id=uuid4(), amount=amount, business_id=None, reason="bad")


def test_random_sequence_keeps_chain_and_non_negative_balance(session) -> None:
    rng = random.Random(20261017)
    user_id = uuid4()
    expected = 0

    for _ in range(150):
        amount = rng.randint(1, 3000)
        if rng.random() < 0.5:
            mileage_ledger.earn(session, user_id=user_id, amount=amount, reason="earn")
            expected += amount
        else:
            try:
                mileage_ledger.use(session, user_id=user_id, amount=amount, business_id=None, reason="use")
                expected -= amount
            except InsufficientBalance:
                assert amount > expected
        session.commit()

    history = mileage_ledger.history(session, user_id=user_id)
    _assert_chain(history)
    account = mileage_ledger.get_account(session, user_id)
    assert account.balance == expected
    assert account.balance == account.total_earned - account.total_used
    assert history[-1].balance_after == expected


def test_history_ordering_and_filter(session) -> None:
    user_id = uuid4()
    mileage_ledger.earn(session, user_id=user_id, amount=100, reason="first")
    mileage_ledger.earn(session, user_id=user_id, amount=200, reason="second")
    mileage_ledger.use(session, user_id=user_id, amount=50, business_id=None, reason="third")
    session.commit()

    oldest_first = [entry.reason for entry in mileage_ledger.history(session, user_id=user_id)]
    newest_first = [entry.reason for entry in mileage_ledger.history(session, user_id=user_id, newest_first=True)]
    uses = mileage_ledger.history(session, user_id=user_id, transaction_type=MileageTransactionType.USE)

    assert oldest_first == ["first", "second", "third"]
    assert newest_first == ["third", "second", "first"]
    assert [entry.reason for entry in uses] == ["third"]


def test_concurrent_earn_and_use_keep_chain(serialized_engine) -> None:
    factory = sessionmaker(bind=serialized_engine, autoflush=False, future=True)
    user_id = uuid4()
    with factory() as setup:
        mileage_ledger.earn(setup, user_id=user_id, amount=1000, reason="seed")
        setup.commit()

    barrier = threading.Barrier(8)

    def worker(index: int) -> None:
        barrier.wait()
        with factory() as db:
            try:
                if index % 2:
                    mileage_ledger.earn(db, user_id=user_id, amount=300, reason="earn")
                else:
                    mileage_ledger.use(db, user_id=user_id, amount=700, business_id=None, reason="use")
                db.commit()
            except InsufficientBalance:
                db.rollback()

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    with factory() as db:
        history = mileage_ledger.history(db, user_id=user_id)
        account = mileage_ledger.get_account(db, user_id)
        _assert_chain(history)
        assert account.balance == history[-1].balance_after
        assert account.balance == account.total_earned - account.total_used


def test_minimum_spend_policy() -> None:
    mileage_ledger.require_minimum_use(1000)
    with pytest.raises(BelowMinimumAmount):
        mileage_ledger.require_minimum_use(999)


def test_find_account_does_not_create(session) -> None:
    user_id = uuid4()

    assert mileage_ledger.find_account(session, user_id) is None
    assert mileage_ledger.get_account(session, user_id).balance == 0
    assert mileage_ledger.find_account(session, user_id) is not None
