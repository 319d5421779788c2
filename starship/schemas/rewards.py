from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from starship.schemas.points import TransactionOut


class RewardCreate(BaseModel):
    created_by: int
    name: Annotated[str, Field(min_length=1, max_length=128, examples=["看一集动画片"])]
    description: Optional[str] = None
    cost: int = Field(ge=0)
    stock: int = Field(default=-1, ge=-1, description="-1 means unlimited.")
    category: Optional[str] = Field(default=None, max_length=64)


class RewardOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    cost: int
    stock: int
    category: Optional[str] = None
    is_active: bool
    created_by: int
    created_at: datetime


class RedeemRequest(BaseModel):
    user_id: int = Field(description="Id of the CHILD spending coins.")


class RedemptionResponse(BaseModel):
    reward_id: int
    user_id: int
    cost: int
    balance: int
    remaining_stock: int
    transaction: TransactionOut
