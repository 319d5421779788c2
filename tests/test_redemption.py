"""
Redemption and punishment tests: coins leave the ledger, experience and
levels never move.
"""
from datetime import timedelta

import pytest

from starship.core.errors import (
    InsufficientBalanceError,
    InvalidPunishmentTransition,
    NotFoundError,
    OutOfStockError,
    RoleMismatchError,
)
from starship.models.point_transaction import PointTransactionType
from starship.models.punishment import PunishmentStatus, PunishmentType
from starship.models.reward import Reward
from starship.services import catalog, ledger, leveling, redemption

from helpers import WEDNESDAY


def _fund(db, user_id, amount):
    ledger.append(db, user_id, PointTransactionType.EARN, amount, description="seed")
    db.commit()


class TestRedeem:
    def test_spend_and_stock_decrement(self, db, family):
        _fund(db, family.child.id, 100)
        reward = catalog.create_reward(db, family.parent.id, "看动画片", cost=30, stock=2)

        result = redemption.redeem(db, reward.id, family.child.id, WEDNESDAY)
        assert result.balance == 70
        assert result.remaining_stock == 1
        assert result.transaction.type == PointTransactionType.SPEND
        assert result.transaction.amount == -30
        assert result.transaction.description == "兑换奖励: 看动画片"

    def test_insufficient_balance_leaves_everything_unchanged(self, db, family):
        _fund(db, family.child.id, 30)
        reward = catalog.create_reward(db, family.parent.id, "乐高", cost=50, stock=3)

        with pytest.raises(InsufficientBalanceError):
            redemption.redeem(db, reward.id, family.child.id, WEDNESDAY)

        db.expire_all()
        assert ledger.get_balance(db, family.child.id) == 30
        assert db.get(Reward, reward.id).stock == 3

    def test_stock_exhaustion(self, db, family):
        _fund(db, family.child.id, 100)
        reward = catalog.create_reward(db, family.parent.id, "冰淇淋", cost=10, stock=1)

        redemption.redeem(db, reward.id, family.child.id, WEDNESDAY)
        with pytest.raises(OutOfStockError):
            redemption.redeem(db, reward.id, family.child.id, WEDNESDAY)

        assert ledger.get_balance(db, family.child.id) == 90
        db.expire_all()
        assert db.get(Reward, reward.id).stock == 0

    def test_concurrent_last_item_taken_rolls_back_spend(self, db, other_db, family):
        _fund(db, family.child.id, 100)
        reward = catalog.create_reward(db, family.parent.id, "冰淇淋", cost=10, stock=1)
        assert reward.stock == 1

        # Another request redeemed the last item; our session still holds stock=1.
        other_db.execute(
            Reward.__table__.update().where(Reward.id == reward.id).values(stock=0)
        )
        other_db.commit()

        with pytest.raises(OutOfStockError):
            redemption.redeem(db, reward.id, family.child.id, WEDNESDAY)

        db.expire_all()
        assert ledger.get_balance(db, family.child.id) == 100
        assert db.get(Reward, reward.id).stock == 0
        _, spends = ledger.get_transactions(db, family.child.id, tx_type=PointTransactionType.SPEND)
        assert spends == []

    def test_unlimited_stock_never_decrements(self, db, family):
        _fund(db, family.child.id, 100)
        reward = catalog.create_reward(db, family.parent.id, "贴纸", cost=5)
        for _ in range(3):
            result = redemption.redeem(db, reward.id, family.child.id, WEDNESDAY)
        assert result.remaining_stock == -1
        assert result.balance == 85

    def test_parent_cannot_redeem(self, db, family):
        reward = catalog.create_reward(db, family.parent.id, "贴纸", cost=5)
        with pytest.raises(RoleMismatchError):
            redemption.redeem(db, reward.id, family.parent.id, WEDNESDAY)

    def test_missing_reward(self, db, family):
        with pytest.raises(NotFoundError):
            redemption.redeem(db, 999_999, family.child.id, WEDNESDAY)

    def test_levels_unaffected(self, db, family):
        leveling.apply_exp(db, family.child.id, 150)
        _fund(db, family.child.id, 40)
        reward = catalog.create_reward(db, family.parent.id, "贴纸", cost=40)
        redemption.redeem(db, reward.id, family.child.id, WEDNESDAY)

        record = leveling.get_level(db, family.child.id)
        assert (record.level, record.total_exp) == (2, 150)


class TestPunishments:
    def _rule(self, db, family, rule_type=PunishmentType.DEDUCT_COINS, value=20):
        return catalog.create_punishment_rule(db, family.parent.id, "拖延", rule_type, value)

    def test_deduct_clamps_at_zero(self, db, family):
        _fund(db, family.child.id, 5)
        rule = self._rule(db, family, value=20)

        outcome = redemption.apply_punishment(
            db, rule.id, family.child.id, family.parent.id, "没写作业", WEDNESDAY
        )
        assert outcome.balance == 0
        assert outcome.transaction.amount == -5
        assert outcome.transaction.type == PointTransactionType.DEDUCT
        assert outcome.record.coins_deducted == 5
        assert outcome.record.status == PunishmentStatus.COMPLETED

    def test_deduct_keeps_experience(self, db, family):
        leveling.apply_exp(db, family.child.id, 120)
        _fund(db, family.child.id, 50)
        rule = self._rule(db, family, value=20)

        redemption.apply_punishment(db, rule.id, family.child.id, family.parent.id, now=WEDNESDAY)

        record = leveling.get_level(db, family.child.id)
        assert (record.level, record.exp, record.total_exp) == (2, 20, 120)
        assert ledger.get_balance(db, family.child.id) == 30

    def test_waive_refunds_deduction(self, db, family):
        _fund(db, family.child.id, 50)
        rule = self._rule(db, family, value=20)
        applied = redemption.apply_punishment(
            db, rule.id, family.child.id, family.parent.id, now=WEDNESDAY
        )

        waived = redemption.resolve_punishment(
            db, applied.record.id, family.parent.id, PunishmentStatus.WAIVED,
            WEDNESDAY + timedelta(hours=1),
        )
        assert waived.record.status == PunishmentStatus.WAIVED
        assert waived.transaction.type == PointTransactionType.BONUS
        assert waived.transaction.amount == 20
        assert waived.balance == 50

    def test_waive_twice_rejected(self, db, family):
        _fund(db, family.child.id, 50)
        rule = self._rule(db, family, value=20)
        applied = redemption.apply_punishment(
            db, rule.id, family.child.id, family.parent.id, now=WEDNESDAY
        )
        redemption.resolve_punishment(db, applied.record.id, family.parent.id, PunishmentStatus.WAIVED)
        with pytest.raises(InvalidPunishmentTransition):
            redemption.resolve_punishment(
                db, applied.record.id, family.parent.id, PunishmentStatus.WAIVED
            )
        assert ledger.get_balance(db, family.child.id) == 50

    def test_extra_task_stays_active_until_completed(self, db, family):
        _fund(db, family.child.id, 10)
        rule = self._rule(db, family, PunishmentType.EXTRA_TASK, value=2)

        outcome = redemption.apply_punishment(
            db, rule.id, family.child.id, family.parent.id, now=WEDNESDAY
        )
        assert outcome.transaction is None
        assert outcome.balance == 10
        assert outcome.record.status == PunishmentStatus.ACTIVE
        assert [p.id for p in redemption.get_active_extra_tasks(db, family.child.id)] == [
            outcome.record.id
        ]

        done = redemption.resolve_punishment(
            db, outcome.record.id, family.parent.id, PunishmentStatus.COMPLETED
        )
        assert done.record.status == PunishmentStatus.COMPLETED
        assert done.transaction is None
        assert redemption.get_active_extra_tasks(db, family.child.id) == []

    def test_completed_extra_task_cannot_be_waived(self, db, family):
        rule = self._rule(db, family, PunishmentType.EXTRA_TASK, value=1)
        outcome = redemption.apply_punishment(
            db, rule.id, family.child.id, family.parent.id, now=WEDNESDAY
        )
        redemption.resolve_punishment(
            db, outcome.record.id, family.parent.id, PunishmentStatus.COMPLETED
        )
        with pytest.raises(InvalidPunishmentTransition):
            redemption.resolve_punishment(
                db, outcome.record.id, family.parent.id, PunishmentStatus.WAIVED
            )

    def test_child_cannot_apply(self, db, family):
        rule = self._rule(db, family)
        with pytest.raises(RoleMismatchError):
            redemption.apply_punishment(db, rule.id, family.child.id, family.child.id)

    def test_history_filter(self, db, family):
        rule = self._rule(db, family, PunishmentType.EXTRA_TASK, value=1)
        for _ in range(3):
            redemption.apply_punishment(
                db, rule.id, family.child.id, family.parent.id, now=WEDNESDAY
            )
        total, items = redemption.get_punishments(
            db, family.child.id, status=PunishmentStatus.ACTIVE, limit=2
        )
        assert total == 3
        assert len(items) == 2
