"""
Reward redemption and punishments: the ways coins leave the ledger.

redeem()             voluntary SPEND; rejected on insufficient balance or
                     exhausted stock. The ledger append and the stock
                     decrement commit together or not at all.
apply_punishment()   parent-initiated. DEDUCT_COINS always takes effect and
                     clamps at a zero balance instead of failing;
                     EXTRA_TASK records an assignment of `value` extra tasks.
resolve_punishment() ACTIVE → COMPLETED | WAIVED. Waiving a coin deduction
                     refunds exactly what was taken, as a BONUS row.
get_punishment_stats() counts a household's punishments by severity, type
                     and status over a reporting window.

Experience is never touched here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from starship.core.clock import as_utc, utcnow
from starship.core.errors import (
    InvalidPunishmentTransition,
    NotChildOfParentError,
    NotFoundError,
    OutOfStockError,
)
from starship.models.point_transaction import PointTransaction, PointTransactionType
from starship.models.punishment import (
    PunishmentRecord,
    PunishmentRule,
    PunishmentStatus,
    PunishmentType,
)
from starship.models.reward import Reward, UNLIMITED_STOCK
from starship.models.user import User
from starship.services import cadence, ledger
from starship.services.accounts import get_child, get_parent, get_user, require_child_of

logger = logging.getLogger("starship.redemption")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RedemptionResult:
    reward_id: int
    user_id: int
    transaction: PointTransaction
    cost: int
    balance: int
    remaining_stock: int


@dataclass
class PunishmentOutcome:
    record: PunishmentRecord
    transaction: Optional[PointTransaction]
    balance: int


# ---------------------------------------------------------------------------
# Redemption
# ---------------------------------------------------------------------------

def redeem(
    db: Session,
    reward_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> RedemptionResult:
    now = as_utc(now or utcnow())
    reward = db.get(Reward, reward_id)
    if reward is None or not reward.is_active:
        raise NotFoundError("reward", reward_id)
    child = get_child(db, user_id)
    if reward.created_by != child.parent_id:
        raise NotChildOfParentError(child.id, reward.created_by)

    def _operation() -> RedemptionResult:
        if reward.stock == 0:
            raise OutOfStockError(reward.id)

        tx = ledger.append(
            db, user_id, PointTransactionType.SPEND, -reward.cost,
            description=f"兑换奖励: {reward.name}",
            related_id=reward.id,
            now=now,
        )
        if reward.stock != UNLIMITED_STOCK:
            res = db.execute(
                update(Reward)
                .where(Reward.id == reward.id, Reward.stock > 0)
                .values(stock=Reward.stock - 1)
            )
            if res.rowcount == 0:
                raise OutOfStockError(reward.id)

        return RedemptionResult(
            reward_id=reward.id,
            user_id=user_id,
            transaction=tx,
            cost=reward.cost,
            balance=tx.balance,
            remaining_stock=reward.stock,
        )

    result = ledger.atomic_write(db, user_id, _operation)
    db.refresh(reward)
    result.remaining_stock = reward.stock
    logger.info(
        "reward redeemed",
        extra={"user_id": user_id, "reward_id": reward_id, "amount": -result.cost, "balance": result.balance},
    )
    return result


# ---------------------------------------------------------------------------
# Punishments
# ---------------------------------------------------------------------------

def apply_punishment(
    db: Session,
    rule_id: int,
    user_id: int,
    parent_id: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PunishmentOutcome:
    now = as_utc(now or utcnow())
    parent = get_parent(db, parent_id)
    rule = db.get(PunishmentRule, rule_id)
    if rule is None or not rule.is_active or rule.created_by != parent.id:
        raise NotFoundError("punishment_rule", rule_id)
    child = get_child(db, user_id)
    require_child_of(child, parent)

    def _operation() -> PunishmentOutcome:
        record = PunishmentRecord(
            user_id=child.id,
            rule_id=rule.id,
            applied_by=parent.id,
            type=rule.type,
            severity=rule.severity,
            reason=reason or rule.name,
            value=rule.value,
            coins_deducted=0,
            status=PunishmentStatus.ACTIVE,
            day=cadence.local_date(now),
            created_at=now,
        )
        db.add(record)
        db.flush()

        tx = None
        if rule.type == PunishmentType.DEDUCT_COINS:
            tx = ledger.append(
                db, child.id, PointTransactionType.DEDUCT, -rule.value,
                description=f"惩罚扣除: {record.reason}",
                related_id=record.id,
                now=now,
                clamp_at_zero=True,
            )
            record.coins_deducted = -tx.amount
            # Coin punishments take effect immediately.
            record.status = PunishmentStatus.COMPLETED
            record.resolved_at = now
            record.resolved_by = parent.id
            db.flush()
            balance = tx.balance
        else:
            balance = ledger.get_balance(db, child.id)
        return PunishmentOutcome(record=record, transaction=tx, balance=balance)

    outcome = ledger.atomic_write(db, child.id, _operation)
    logger.info(
        "punishment applied",
        extra={
            "user_id": user_id,
            "rule_id": rule_id,
            "punishment_id": outcome.record.id,
            "amount": -outcome.record.coins_deducted,
            "balance": outcome.balance,
        },
    )
    return outcome


def resolve_punishment(
    db: Session,
    punishment_id: int,
    parent_id: int,
    target: PunishmentStatus,
    now: Optional[datetime] = None,
) -> PunishmentOutcome:
    now = as_utc(now or utcnow())
    parent = get_parent(db, parent_id)
    record = db.get(PunishmentRecord, punishment_id)
    if record is None:
        raise NotFoundError("punishment", punishment_id)
    require_child_of(get_user(db, record.user_id), parent)

    waivable = record.type == PunishmentType.DEDUCT_COINS and target == PunishmentStatus.WAIVED
    if target == PunishmentStatus.ACTIVE or (
        record.status != PunishmentStatus.ACTIVE and not (
            waivable and record.status == PunishmentStatus.COMPLETED
        )
    ):
        raise InvalidPunishmentTransition(
            record.id, PunishmentStatus(record.status).value, target.value
        )

    def _operation() -> PunishmentOutcome:
        tx = None
        if waivable and record.coins_deducted > 0:
            tx = ledger.append(
                db, record.user_id, PointTransactionType.BONUS, record.coins_deducted,
                description=f"惩罚豁免返还: {record.reason}",
                related_id=record.id,
                now=now,
            )
        record.status = target
        record.resolved_at = now
        record.resolved_by = parent.id
        db.flush()
        balance = tx.balance if tx else ledger.get_balance(db, record.user_id)
        return PunishmentOutcome(record=record, transaction=tx, balance=balance)

    outcome = ledger.atomic_write(db, record.user_id, _operation)
    logger.info(
        "punishment resolved",
        extra={"user_id": outcome.record.user_id, "punishment_id": punishment_id},
    )
    return outcome


def get_punishments(
    db: Session,
    user_id: int,
    status: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[int, list[PunishmentRecord]]:
    get_user(db, user_id)
    q = db.query(PunishmentRecord).filter(PunishmentRecord.user_id == user_id)
    if status:
        q = q.filter(PunishmentRecord.status == status)
    total = q.count()
    items = (
        q.order_by(PunishmentRecord.created_at.desc(), PunishmentRecord.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items


def get_active_extra_tasks(db: Session, user_id: int) -> list[PunishmentRecord]:
    return (
        db.query(PunishmentRecord)
        .filter(
            PunishmentRecord.user_id == user_id,
            PunishmentRecord.type == PunishmentType.EXTRA_TASK,
            PunishmentRecord.status == PunishmentStatus.ACTIVE,
        )
        .order_by(PunishmentRecord.id.asc())
        .all()
    )


@dataclass
class PunishmentStats:
    period: str
    since: datetime
    total_punishments: int
    coins_deducted: int
    by_severity: dict[str, int]
    by_type: dict[str, int]
    by_status: dict[str, int]


def get_punishment_stats(
    db: Session, parent_id: int, period: str = "today", now: Optional[datetime] = None
) -> PunishmentStats:
    """Punishments applied to a parent's children within the reporting window."""
    parent = get_parent(db, parent_id)
    now = as_utc(now or utcnow())
    since = cadence.window_start(period, now)

    base = (
        db.query(PunishmentRecord)
        .join(User, User.id == PunishmentRecord.user_id)
        .filter(User.parent_id == parent.id, PunishmentRecord.created_at >= since)
    )

    def breakdown(column) -> dict[str, int]:
        rows = base.with_entities(column, func.count(PunishmentRecord.id)).group_by(column).all()
        return {getattr(key, "value", key): count for key, count in rows}

    total = base.count()
    coins = base.with_entities(func.coalesce(func.sum(PunishmentRecord.coins_deducted), 0)).scalar()
    return PunishmentStats(
        period=period,
        since=since,
        total_punishments=total,
        coins_deducted=int(coins or 0),
        by_severity=breakdown(PunishmentRecord.severity),
        by_type=breakdown(PunishmentRecord.type),
        by_status=breakdown(PunishmentRecord.status),
    )
