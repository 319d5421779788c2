"""
Rewards router.

POST /rewards
GET  /rewards?user_id=
POST /rewards/{reward_id}/redeem
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from starship.core.clock import Clock, get_clock
from starship.db.base import get_db
from starship.schemas.common import ERROR_RESPONSES
from starship.schemas.points import TransactionOut
from starship.schemas.rewards import RedeemRequest, RedemptionResponse, RewardCreate, RewardOut
from starship.services import catalog, redemption

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.post(
    "",
    response_model=RewardOut,
    status_code=status.HTTP_201_CREATED,
    summary="Define a reward (parent only)",
    responses=ERROR_RESPONSES,
)
def create_reward(payload: RewardCreate, db: Session = Depends(get_db)):
    reward = catalog.create_reward(
        db,
        created_by=payload.created_by,
        name=payload.name,
        cost=payload.cost,
        stock=payload.stock,
        category=payload.category,
        description=payload.description,
    )
    return RewardOut.model_validate(reward)


@router.get("", response_model=list[RewardOut], summary="List rewards visible to a user")
def list_rewards(user_id: int = Query(), db: Session = Depends(get_db)):
    return [RewardOut.model_validate(r) for r in catalog.list_rewards(db, user_id)]


@router.post(
    "/{reward_id}/redeem",
    response_model=RedemptionResponse,
    summary="Spend star coins on a reward",
    responses={
        **ERROR_RESPONSES,
        409: {"description": "INSUFFICIENT_BALANCE or OUT_OF_STOCK; nothing is persisted."},
    },
)
def redeem_reward(
    reward_id: int,
    payload: RedeemRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    result = redemption.redeem(db, reward_id, payload.user_id, clock())
    return RedemptionResponse(
        reward_id=result.reward_id,
        user_id=result.user_id,
        cost=result.cost,
        balance=result.balance,
        remaining_stock=result.remaining_stock,
        transaction=TransactionOut.model_validate(result.transaction),
    )
