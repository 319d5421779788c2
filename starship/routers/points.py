"""
Points router: star-coin ledger and level reads for one user.

GET  /users/{user_id}/balance
GET  /users/{user_id}/transactions
GET  /users/{user_id}/level
PUT  /users/{user_id}/level/ship-name
GET  /users/{user_id}/points/stats
POST /users/{user_id}/points/bonus
GET  /users/{user_id}/ledger/audit
GET  /points/leaderboard?type=&limit=&parent_id=
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from starship.core.clock import Clock, get_clock
from starship.db.base import get_db
from starship.models.level_record import LevelRecord
from starship.models.point_transaction import PointTransactionType
from starship.schemas.common import ERROR_RESPONSES
from starship.schemas.points import (
    BalanceResponse,
    BonusRequest,
    LeaderboardEntryOut,
    LedgerAuditResponse,
    LevelOut,
    PointsStatsResponse,
    ShipNameRequest,
    TransactionListResponse,
    TransactionOut,
)
from starship.services import ledger, leveling, points
from starship.services.accounts import get_user

router = APIRouter(prefix="/users", tags=["points"])
leaderboard_router = APIRouter(prefix="/points", tags=["points"])


def _level_out(record: LevelRecord) -> LevelOut:
    return LevelOut(
        user_id=record.user_id,
        level=record.level,
        title=record.title,
        exp=record.exp,
        total_exp=record.total_exp,
        ship_name=record.ship_name,
        next_level_exp=leveling.EXP_PER_LEVEL,
        policy_version=leveling.LEVEL_POLICY_VERSION,
        progress_percent=leveling.progress_percent(record),
    )


@router.get(
    "/{user_id}/balance",
    response_model=BalanceResponse,
    summary="Current star-coin balance",
    responses=ERROR_RESPONSES,
)
def get_balance(user_id: int, db: Session = Depends(get_db)):
    """Balance of the newest ledger row; history is not re-summed."""
    get_user(db, user_id)
    return BalanceResponse(user_id=user_id, balance=ledger.get_balance(db, user_id))


@router.get(
    "/{user_id}/transactions",
    response_model=TransactionListResponse,
    summary="Ledger history (newest first)",
    responses=ERROR_RESPONSES,
)
def list_transactions(
    user_id: int,
    type: Optional[PointTransactionType] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    db: Session = Depends(get_db),
):
    get_user(db, user_id)
    total, items = ledger.get_transactions(db, user_id, tx_type=type, limit=limit, offset=offset)
    return TransactionListResponse(
        total=total,
        items=[TransactionOut.model_validate(t) for t in items],
    )


@router.get(
    "/{user_id}/level",
    response_model=LevelOut,
    summary="Level, rank title and ship",
    responses=ERROR_RESPONSES,
)
def get_level(user_id: int, db: Session = Depends(get_db)):
    get_user(db, user_id)
    return _level_out(leveling.get_level(db, user_id))


@router.put(
    "/{user_id}/level/ship-name",
    response_model=LevelOut,
    summary="Rename the user's starship",
    responses=ERROR_RESPONSES,
)
def rename_ship(user_id: int, payload: ShipNameRequest, db: Session = Depends(get_db)):
    get_user(db, user_id)
    return _level_out(points.rename_ship(db, user_id, payload.ship_name))


@router.get(
    "/{user_id}/points/stats",
    response_model=PointsStatsResponse,
    summary="Earned / spent / deducted coins over a period",
    responses=ERROR_RESPONSES,
)
def points_stats(
    user_id: int,
    period: Literal["today", "week", "month"] = Query(default="today"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    stats = points.get_stats(db, user_id, period, clock())
    return PointsStatsResponse(**stats.__dict__)


@router.post(
    "/{user_id}/points/bonus",
    response_model=TransactionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Grant bonus coins to a child (parent only)",
    responses=ERROR_RESPONSES,
)
def grant_bonus(
    user_id: int,
    payload: BonusRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    tx = points.grant_bonus(
        db, user_id, payload.parent_id, payload.amount, payload.description, clock()
    )
    return TransactionOut.model_validate(tx)


@router.get(
    "/{user_id}/ledger/audit",
    response_model=LedgerAuditResponse,
    summary="Check the ledger's running balances against its history",
    responses={
        **ERROR_RESPONSES,
        500: {"description": "LEDGER_INVARIANT_VIOLATION; the ledger is now frozen."},
    },
)
def audit_ledger(user_id: int, db: Session = Depends(get_db)):
    get_user(db, user_id)
    audit = ledger.verify(db, user_id)
    return LedgerAuditResponse(**audit.__dict__)


@leaderboard_router.get(
    "/leaderboard",
    response_model=list[LeaderboardEntryOut],
    summary="Children ranked by level or by coin balance",
    responses=ERROR_RESPONSES,
)
def leaderboard(
    type: Literal["level", "coins"] = Query(default="level"),
    limit: int = Query(default=10, ge=1, le=100),
    parent_id: Optional[int] = Query(default=None, description="Restrict to one household."),
    db: Session = Depends(get_db),
):
    """`level` ranks by level, then total experience; `coins` by current balance."""
    entries = points.get_leaderboard(db, type, limit, parent_id)
    return [LeaderboardEntryOut(**e.__dict__) for e in entries]
