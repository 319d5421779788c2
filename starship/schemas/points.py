from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from starship.models.point_transaction import PointTransactionType


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    seq: int
    type: PointTransactionType
    amount: int
    balance: int
    description: Optional[str] = None
    related_id: Optional[int] = None
    created_at: datetime


class TransactionListResponse(BaseModel):
    total: int
    items: list[TransactionOut]


class BalanceResponse(BaseModel):
    user_id: int
    balance: int


class LevelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    level: int
    title: str
    exp: int
    total_exp: int
    ship_name: str
    next_level_exp: int = Field(description="Experience needed per level.")
    policy_version: int
    progress_percent: float


class ShipNameRequest(BaseModel):
    ship_name: Annotated[str, Field(min_length=1, max_length=50)]

    @field_validator("ship_name", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("ship_name must not be empty after stripping whitespace")
        return stripped


class BonusRequest(BaseModel):
    parent_id: int
    amount: int = Field(gt=0)
    description: Annotated[str, Field(min_length=1, max_length=256)] = "家长奖励"


class PointsStatsResponse(BaseModel):
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


class LedgerAuditResponse(BaseModel):
    user_id: int
    transactions: int
    stored_balance: int
    computed_balance: int
    consistent: bool


class LeaderboardEntryOut(BaseModel):
    rank: int
    user_id: int
    display_name: str
    level: int
    title: str
    total_exp: int
    balance: int
    ship_name: str
