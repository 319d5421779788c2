"""
Ledger tests: running balance, non-negativity, the consistency audit and
the retry wrapper around lost write races.
"""
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from starship.core.clock import as_utc
from starship.core.errors import (
    ConcurrentWriteError,
    InsufficientBalanceError,
    LedgerFrozenError,
    LedgerInvariantViolation,
)
from starship.models.point_transaction import PointTransaction, PointTransactionType
from starship.models.user import User
from starship.services import ledger, leveling

from helpers import WEDNESDAY


EARN = PointTransactionType.EARN
SPEND = PointTransactionType.SPEND
DEDUCT = PointTransactionType.DEDUCT


def _append(db, user_id, tx_type, delta, **kw):
    tx = ledger.append(db, user_id, tx_type, delta, description="test", **kw)
    db.commit()
    return tx


class TestAppend:
    def test_empty_ledger_balance_is_zero(self, db, family):
        assert ledger.get_balance(db, family.child.id) == 0

    def test_running_balance_and_seq(self, db, family):
        uid = family.child.id
        a = _append(db, uid, EARN, 30)
        b = _append(db, uid, SPEND, -12)
        c = _append(db, uid, EARN, 5)
        assert [a.seq, b.seq, c.seq] == [1, 2, 3]
        assert [a.balance, b.balance, c.balance] == [30, 18, 23]
        assert ledger.get_balance(db, uid) == 23

    def test_overdraw_rejected_and_nothing_written(self, db, family):
        uid = family.child.id
        _append(db, uid, EARN, 30)
        with pytest.raises(InsufficientBalanceError) as exc_info:
            ledger.append(db, uid, SPEND, -50, description="too much")
        db.rollback()
        assert exc_info.value.details == {"user_id": uid, "balance": 30, "required": 50}
        assert ledger.get_balance(db, uid) == 30
        total, _ = ledger.get_transactions(db, uid)
        assert total == 1

    def test_clamp_at_zero(self, db, family):
        uid = family.child.id
        _append(db, uid, EARN, 5)
        tx = _append(db, uid, DEDUCT, -20, clamp_at_zero=True)
        assert tx.amount == -5
        assert tx.balance == 0

    def test_history_sums_to_balance(self, db, family):
        uid = family.child.id
        for delta in (10, 20, -7, 3, -26):
            _append(db, uid, EARN if delta > 0 else SPEND, delta)
        _, rows = ledger.get_transactions(db, uid, limit=100)
        assert sum(r.amount for r in rows) == ledger.get_balance(db, uid) == 0

    def test_created_at_follows_seq_when_clock_goes_back(self, db, family):
        uid = family.child.id
        later = _append(db, uid, EARN, 10, now=WEDNESDAY + timedelta(hours=2))
        earlier = _append(db, uid, EARN, 5, now=WEDNESDAY)
        assert earlier.seq == later.seq + 1
        assert as_utc(earlier.created_at) == as_utc(later.created_at) == WEDNESDAY + timedelta(hours=2)

    def test_created_at_uses_given_time_when_ahead(self, db, family):
        uid = family.child.id
        _append(db, uid, EARN, 10, now=WEDNESDAY)
        tx = _append(db, uid, EARN, 5, now=WEDNESDAY + timedelta(minutes=1))
        assert as_utc(tx.created_at) == WEDNESDAY + timedelta(minutes=1)

    def test_long_description_stored_whole(self, db, family):
        description = "完成任务: " + "长" * 300
        tx = ledger.append(db, family.child.id, EARN, 1, description=description)
        db.commit()
        db.expire_all()
        assert db.get(PointTransaction, tx.id).description == description


class TestTransactionsPage:
    def test_newest_first_with_type_filter(self, db, family):
        uid = family.child.id
        _append(db, uid, EARN, 10)
        _append(db, uid, SPEND, -3)
        _append(db, uid, EARN, 4)

        total, items = ledger.get_transactions(db, uid)
        assert total == 3
        assert [t.seq for t in items] == [3, 2, 1]

        total, items = ledger.get_transactions(db, uid, tx_type=EARN)
        assert total == 2
        assert all(t.type == EARN for t in items)

    def test_pagination(self, db, family):
        uid = family.child.id
        for _ in range(5):
            _append(db, uid, EARN, 1)
        total, items = ledger.get_transactions(db, uid, limit=2, offset=2)
        assert total == 5
        assert [t.seq for t in items] == [3, 2]


class TestVerify:
    def test_consistent(self, db, family):
        uid = family.child.id
        _append(db, uid, EARN, 10)
        _append(db, uid, SPEND, -4)
        audit = ledger.verify(db, uid)
        assert audit.consistent
        assert audit.transactions == 2
        assert audit.stored_balance == audit.computed_balance == 6

    def test_drift_freezes_ledger(self, db, family):
        uid = family.child.id
        _append(db, uid, EARN, 10)
        tx = _append(db, uid, EARN, 5)
        tx.balance = 99
        db.commit()

        with pytest.raises(LedgerInvariantViolation) as exc_info:
            ledger.verify(db, uid)
        assert exc_info.value.details["stored"] == 99
        assert exc_info.value.details["computed"] == 15

        db.expire_all()
        assert db.get(User, uid).ledger_frozen is True
        with pytest.raises(LedgerFrozenError):
            ledger.append(db, uid, EARN, 1, description="blocked")


class TestAtomicWrite:
    def test_commits_result(self, db, family):
        uid = family.child.id
        tx = ledger.atomic_write(
            db, uid, lambda: ledger.append(db, uid, EARN, 7, description="x")
        )
        db.expire_all()
        assert tx.balance == 7
        assert ledger.get_balance(db, uid) == 7

    def test_retries_lost_race(self, db, family):
        uid = family.child.id
        calls = []

        def operation():
            calls.append(1)
            if len(calls) == 1:
                raise ledger.LedgerConflict(uid, 1)
            return ledger.append(db, uid, EARN, 3, description="retry")

        tx = ledger.atomic_write(db, uid, operation)
        assert len(calls) == 2
        assert tx.seq == 1

    def test_gives_up_after_retries(self, db, family):
        uid = family.child.id

        def operation():
            raise StaleDataError("always stale")

        with pytest.raises(ConcurrentWriteError) as exc_info:
            ledger.atomic_write(db, uid, operation)
        assert exc_info.value.http_status == 503

    def test_other_errors_roll_back(self, db, family):
        uid = family.child.id

        def operation():
            ledger.append(db, uid, EARN, 10, description="rolled back")
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            ledger.atomic_write(db, uid, operation)
        assert ledger.get_balance(db, uid) == 0

    def test_stale_level_record_is_retried(self, db, other_db, family):
        uid = family.child.id
        # Load the record here, then let another session bump its version.
        leveling.get_level(db, uid)
        leveling.apply_exp(other_db, uid, 30)
        other_db.commit()

        record = ledger.atomic_write(db, uid, lambda: leveling.apply_exp(db, uid, 50))
        assert record.total_exp == 80

    def test_duplicate_seq_is_a_conflict(self, db, family):
        uid = family.child.id
        _append(db, uid, EARN, 10)
        db.add(PointTransaction(
            user_id=uid, seq=1, type=EARN, amount=1, balance=11, description="dup",
        ))
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()
        assert ledger.get_balance(db, uid) == 10
