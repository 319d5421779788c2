"""
Ledger service: the append-only star-coin ledger.

Every row stores a signed `amount` and the resulting running `balance`, so
the current balance is a single indexed read of the newest row. The full
history must always sum to that stored value; `verify` checks it and
freezes the user's ledger on drift instead of "fixing" anything.

Public API
----------
get_balance(db, user_id)                                  -> int
append(db, user_id, tx_type, delta, description, ...)     -> PointTransaction  (flush only)
atomic_write(db, user_id, operation)                      -> T   (commit + retry on lost races)
verify(db, user_id)                                       -> LedgerAudit
get_transactions(db, user_id, tx_type, limit, offset)     -> (total, page)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from starship.core.clock import as_utc, utcnow
from starship.core.config import settings
from starship.core.errors import (
    ConcurrentWriteError,
    InsufficientBalanceError,
    LedgerFrozenError,
    LedgerInvariantViolation,
    NotFoundError,
)
from starship.models.point_transaction import PointTransaction, PointTransactionType
from starship.models.user import User

logger = logging.getLogger("starship.ledger")

T = TypeVar("T")


class LedgerConflict(Exception):
    """Another writer appended the same (user_id, seq) first. Retried by atomic_write."""

    def __init__(self, user_id: int, seq: int):
        self.user_id = user_id
        self.seq = seq
        super().__init__(f"ledger seq {seq} for user {user_id} already taken")


@dataclass
class LedgerAudit:
    user_id: int
    transactions: int
    stored_balance: int
    computed_balance: int
    consistent: bool


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _latest(db: Session, user_id: int) -> Optional[PointTransaction]:
    return (
        db.query(PointTransaction)
        .filter(PointTransaction.user_id == user_id)
        .order_by(PointTransaction.seq.desc())
        .first()
    )


def get_balance(db: Session, user_id: int) -> int:
    latest = _latest(db, user_id)
    return latest.balance if latest else 0


def get_transactions(
    db: Session,
    user_id: int,
    tx_type: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[int, list[PointTransaction]]:
    """Return (total, page) of a user's transactions, newest first."""
    q = db.query(PointTransaction).filter(PointTransaction.user_id == user_id)
    if tx_type:
        q = q.filter(PointTransaction.type == tx_type)
    total = q.count()
    items = q.order_by(PointTransaction.seq.desc()).offset(offset).limit(limit).all()
    return total, items


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def append(
    db: Session,
    user_id: int,
    tx_type: PointTransactionType,
    delta: int,
    description: str,
    related_id: Optional[int] = None,
    now: Optional[datetime] = None,
    clamp_at_zero: bool = False,
) -> PointTransaction:
    """
    Append one transaction. Flushes but does NOT commit.

    A delta that would take the balance below zero raises
    InsufficientBalanceError, unless `clamp_at_zero` is set, in which case
    the delta is reduced to exactly empty the balance.
    """
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("user", user_id)
    if user.ledger_frozen:
        raise LedgerFrozenError(user_id)

    latest = _latest(db, user_id)
    current = latest.balance if latest else 0
    next_seq = (latest.seq if latest else 0) + 1

    if current + delta < 0:
        if not clamp_at_zero:
            logger.warning(
                "spend rejected: insufficient balance",
                extra={"user_id": user_id, "balance": current, "amount": delta},
            )
            raise InsufficientBalanceError(user_id, current, -delta)
        delta = -current

    # created_at never runs behind seq, whatever clock the caller passed.
    created_at = as_utc(now or utcnow())
    if latest is not None and latest.created_at is not None:
        created_at = max(created_at, as_utc(latest.created_at))

    tx = PointTransaction(
        user_id=user_id,
        seq=next_seq,
        type=tx_type,
        amount=delta,
        balance=current + delta,
        description=description,
        related_id=related_id,
        created_at=created_at,
    )
    db.add(tx)
    try:
        db.flush()
    except IntegrityError as exc:
        raise LedgerConflict(user_id, next_seq) from exc
    return tx


def atomic_write(db: Session, user_id: int, operation: Callable[[], T]) -> T:
    """
    Run a read-modify-write `operation` and commit it as one transaction.

    Lost races (ledger seq conflict, stale LevelRecord version) roll the
    whole operation back and run it again, up to settings.WRITE_RETRIES
    attempts. Any other error rolls back and propagates.
    """
    attempts = max(settings.WRITE_RETRIES, 1)
    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.commit()
            return result
        except (LedgerConflict, StaleDataError):
            db.rollback()
            logger.warning(
                "concurrent write detected, retrying",
                extra={"user_id": user_id, "attempt": attempt},
            )
        except Exception:
            db.rollback()
            raise
    raise ConcurrentWriteError(user_id, attempts)


# ---------------------------------------------------------------------------
# Consistency check
# ---------------------------------------------------------------------------

def _freeze(db: Session, user_id: int) -> None:
    user = db.get(User, user_id)
    if user is not None and not user.ledger_frozen:
        user.ledger_frozen = True
        db.commit()


def verify(db: Session, user_id: int) -> LedgerAudit:
    """
    Replay the user's whole history and compare it with the stored balances.
    Raises LedgerInvariantViolation (after freezing the ledger) on any drift.
    """
    rows = (
        db.query(PointTransaction)
        .filter(PointTransaction.user_id == user_id)
        .order_by(PointTransaction.seq.asc())
        .all()
    )
    running = 0
    for expected_seq, row in enumerate(rows, start=1):
        running += row.amount
        if row.seq != expected_seq or row.balance != running or row.balance < 0:
            logger.critical(
                "ledger invariant violated, freezing writes",
                extra={"user_id": user_id, "balance": row.balance, "amount": running},
            )
            stored, seq = row.balance, row.seq
            _freeze(db, user_id)
            raise LedgerInvariantViolation(user_id, stored=stored, computed=running, seq=seq)

    stored = rows[-1].balance if rows else 0
    return LedgerAudit(
        user_id=user_id,
        transactions=len(rows),
        stored_balance=stored,
        computed_balance=running,
        consistent=True,
    )
