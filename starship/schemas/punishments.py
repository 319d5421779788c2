from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from starship.models.punishment import PunishmentSeverity, PunishmentStatus, PunishmentType
from starship.schemas.points import TransactionOut


class PunishmentRuleCreate(BaseModel):
    created_by: int
    name: Annotated[str, Field(min_length=1, max_length=128, examples=["拖延作业"])]
    description: Optional[str] = None
    type: PunishmentType
    severity: PunishmentSeverity = PunishmentSeverity.MINOR
    value: int = Field(gt=0, description="Coins to deduct, or number of extra tasks.")


class PunishmentRuleUpdate(BaseModel):
    parent_id: int
    name: Optional[Annotated[str, Field(min_length=1, max_length=128)]] = None
    description: Optional[str] = None
    type: Optional[PunishmentType] = None
    severity: Optional[PunishmentSeverity] = None
    value: Optional[int] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class PunishmentRuleDeleted(BaseModel):
    id: int
    deleted: bool = Field(description="False when the rule was in use and only deactivated.")


class PunishmentRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    type: PunishmentType
    severity: PunishmentSeverity
    value: int
    is_active: bool
    created_by: int


class ApplyPunishmentRequest(BaseModel):
    user_id: int = Field(description="Id of the CHILD being punished.")
    parent_id: int = Field(description="Id of the PARENT applying the rule.")
    reason: Optional[str] = Field(default=None, max_length=500)


class ResolvePunishmentRequest(BaseModel):
    parent_id: int


class PunishmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    rule_id: int
    applied_by: int
    type: PunishmentType
    severity: PunishmentSeverity
    reason: Optional[str] = None
    value: int
    coins_deducted: int
    status: PunishmentStatus
    day: date
    created_at: datetime
    resolved_at: Optional[datetime] = None


class PunishmentOutcomeResponse(BaseModel):
    punishment: PunishmentOut
    transaction: Optional[TransactionOut] = None
    balance: int


class PunishmentListResponse(BaseModel):
    total: int
    items: list[PunishmentOut]


class PunishmentStatsResponse(BaseModel):
    period: str
    since: datetime
    total_punishments: int
    coins_deducted: int
    by_severity: dict[str, int]
    by_type: dict[str, int]
    by_status: dict[str, int]
