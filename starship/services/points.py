"""
Points service: read models over the ledger and level record (stats,
leaderboard), plus the two parent/child conveniences that write to them
(bonus coins, ship name).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from starship.core.clock import as_utc, utcnow
from starship.models.level_record import LevelRecord
from starship.models.point_transaction import PointTransaction, PointTransactionType
from starship.models.user import User, UserRole
from starship.services import cadence, leveling, ledger
from starship.services.accounts import get_child, get_parent, get_user, require_child_of

logger = logging.getLogger("starship.points")


@dataclass
class PointsStats:
    period: str
    since: datetime
    total_earned: int
    total_spent: int
    total_deducted: int
    net_gain: int
    transaction_count: int
    balance: int
    lifetime_earned: int
    level: int
    title: str
    progress_percent: float


def _sum(db: Session, user_id: int, since: datetime, *types: PointTransactionType) -> int:
    total = (
        db.query(func.coalesce(func.sum(PointTransaction.amount), 0))
        .filter(
            PointTransaction.user_id == user_id,
            PointTransaction.type.in_(types),
            PointTransaction.created_at >= since,
        )
        .scalar()
    )
    return int(total or 0)


def get_stats(
    db: Session, user_id: int, period: str = "today", now: Optional[datetime] = None
) -> PointsStats:
    get_user(db, user_id)
    now = as_utc(now or utcnow())
    since = cadence.window_start(period, now)

    earned = _sum(db, user_id, since, PointTransactionType.EARN, PointTransactionType.BONUS)
    spent = -_sum(db, user_id, since, PointTransactionType.SPEND)
    deducted = -_sum(db, user_id, since, PointTransactionType.DEDUCT)
    count = (
        db.query(func.count(PointTransaction.id))
        .filter(PointTransaction.user_id == user_id, PointTransaction.created_at >= since)
        .scalar()
        or 0
    )
    record = leveling.get_level(db, user_id)
    return PointsStats(
        period=period,
        since=since,
        total_earned=earned,
        total_spent=spent,
        total_deducted=deducted,
        net_gain=earned - spent - deducted,
        transaction_count=count,
        balance=ledger.get_balance(db, user_id),
        lifetime_earned=total_earned(db, user_id),
        level=record.level,
        title=record.title,
        progress_percent=leveling.progress_percent(record),
    )


def total_earned(db: Session, user_id: int) -> int:
    """Lifetime EARN + BONUS coins."""
    return _sum(
        db, user_id, datetime(1970, 1, 1, tzinfo=timezone.utc),
        PointTransactionType.EARN, PointTransactionType.BONUS,
    )


def grant_bonus(
    db: Session,
    user_id: int,
    parent_id: int,
    amount: int,
    description: str,
    now: Optional[datetime] = None,
) -> PointTransaction:
    parent = get_parent(db, parent_id)
    child = get_child(db, user_id)
    require_child_of(child, parent)

    tx = ledger.atomic_write(
        db, child.id,
        lambda: ledger.append(
            db, child.id, PointTransactionType.BONUS, amount,
            description=description, now=now or utcnow(),
        ),
    )
    logger.info("bonus granted", extra={"user_id": child.id, "amount": amount})
    return tx


def rename_ship(db: Session, user_id: int, ship_name: str) -> LevelRecord:
    record = leveling.get_level(db, user_id)
    record.ship_name = ship_name.strip()
    db.commit()
    db.refresh(record)
    return record


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: int
    display_name: str
    level: int
    title: str
    total_exp: int
    balance: int
    ship_name: str


def get_leaderboard(
    db: Session, board: str = "level", limit: int = 10, parent_id: Optional[int] = None
) -> list[LeaderboardEntry]:
    """
    Rank children by level (ties broken by total_exp) or by coin balance.

    `parent_id` narrows the board to one household. Equal scores keep
    creation order so ranks are stable between calls.
    """
    q = (
        db.query(User, LevelRecord)
        .join(LevelRecord, LevelRecord.user_id == User.id)
        .filter(User.role == UserRole.CHILD)
    )
    if parent_id is not None:
        get_parent(db, parent_id)
        q = q.filter(User.parent_id == parent_id)
    rows = [
        (user, record, ledger.get_balance(db, user.id))
        for user, record in q.order_by(User.id.asc()).all()
    ]

    if board == "coins":
        rows.sort(key=lambda r: r[2], reverse=True)
    else:
        rows.sort(key=lambda r: (r[1].level, r[1].total_exp), reverse=True)

    return [
        LeaderboardEntry(
            rank=rank,
            user_id=user.id,
            display_name=user.display_name,
            level=record.level,
            title=record.title,
            total_exp=record.total_exp,
            balance=balance,
            ship_name=record.ship_name,
        )
        for rank, (user, record, balance) in enumerate(rows[:limit], start=1)
    ]
