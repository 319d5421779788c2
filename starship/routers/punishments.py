"""
Punishments router.

POST /punishments/rules
GET  /punishments/rules?parent_id=
PUT  /punishments/rules/{rule_id}
DELETE /punishments/rules/{rule_id}?parent_id=
GET  /punishments/stats?parent_id=&period=
POST /punishments/rules/{rule_id}/apply
POST /punishments/{punishment_id}/complete
POST /punishments/{punishment_id}/waive
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from starship.core.clock import Clock, get_clock
from starship.db.base import get_db
from starship.models.punishment import PunishmentStatus, PunishmentType
from starship.schemas.common import ERROR_RESPONSES
from starship.schemas.points import TransactionOut
from starship.schemas.punishments import (
    ApplyPunishmentRequest,
    PunishmentOut,
    PunishmentOutcomeResponse,
    PunishmentRuleCreate,
    PunishmentRuleDeleted,
    PunishmentRuleOut,
    PunishmentRuleUpdate,
    PunishmentStatsResponse,
    ResolvePunishmentRequest,
)
from starship.services import catalog, redemption
from starship.services.redemption import PunishmentOutcome

router = APIRouter(prefix="/punishments", tags=["punishments"])


def _outcome_response(outcome: PunishmentOutcome) -> PunishmentOutcomeResponse:
    return PunishmentOutcomeResponse(
        punishment=PunishmentOut.model_validate(outcome.record),
        transaction=TransactionOut.model_validate(outcome.transaction) if outcome.transaction else None,
        balance=outcome.balance,
    )


@router.post(
    "/rules",
    response_model=PunishmentRuleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Define a punishment rule (parent only)",
    responses=ERROR_RESPONSES,
)
def create_rule(payload: PunishmentRuleCreate, db: Session = Depends(get_db)):
    rule = catalog.create_punishment_rule(
        db,
        created_by=payload.created_by,
        name=payload.name,
        rule_type=payload.type,
        value=payload.value,
        severity=payload.severity,
        description=payload.description,
    )
    return PunishmentRuleOut.model_validate(rule)


@router.get("/rules", response_model=list[PunishmentRuleOut], summary="List a parent's rules")
def list_rules(
    parent_id: int = Query(),
    type: Optional[PunishmentType] = Query(default=None),
    db: Session = Depends(get_db),
):
    return [
        PunishmentRuleOut.model_validate(r)
        for r in catalog.list_punishment_rules(db, parent_id, rule_type=type)
    ]


@router.put(
    "/rules/{rule_id}",
    response_model=PunishmentRuleOut,
    summary="Edit a punishment rule (owning parent only)",
    responses=ERROR_RESPONSES,
)
def update_rule(rule_id: int, payload: PunishmentRuleUpdate, db: Session = Depends(get_db)):
    """Punishments already applied keep the values they were created with."""
    changes = payload.model_dump(exclude_unset=True, exclude={"parent_id"})
    rule = catalog.update_punishment_rule(db, rule_id, payload.parent_id, changes)
    return PunishmentRuleOut.model_validate(rule)


@router.delete(
    "/rules/{rule_id}",
    response_model=PunishmentRuleDeleted,
    summary="Delete a punishment rule, or deactivate it when already used",
    responses=ERROR_RESPONSES,
)
def delete_rule(rule_id: int, parent_id: int = Query(), db: Session = Depends(get_db)):
    deleted = catalog.delete_punishment_rule(db, rule_id, parent_id)
    return PunishmentRuleDeleted(id=rule_id, deleted=deleted)


@router.get(
    "/stats",
    response_model=PunishmentStatsResponse,
    summary="Punishments applied to a parent's children over a period",
    responses=ERROR_RESPONSES,
)
def punishment_stats(
    parent_id: int = Query(),
    period: Literal["today", "week", "month"] = Query(default="today"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    stats = redemption.get_punishment_stats(db, parent_id, period, clock())
    return PunishmentStatsResponse(**stats.__dict__)


@router.post(
    "/rules/{rule_id}/apply",
    response_model=PunishmentOutcomeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply a punishment rule to a child",
    responses=ERROR_RESPONSES,
)
def apply_rule(
    rule_id: int,
    payload: ApplyPunishmentRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    - `DEDUCT_COINS`: removes `value` coins, clamped so the balance stops at 0.
      Never rejected for insufficient balance. Experience is untouched.
    - `EXTRA_TASK`: records an active assignment of `value` extra tasks.
    """
    outcome = redemption.apply_punishment(
        db, rule_id, payload.user_id, payload.parent_id, payload.reason, clock()
    )
    return _outcome_response(outcome)


@router.post(
    "/{punishment_id}/complete",
    response_model=PunishmentOutcomeResponse,
    summary="Mark an active punishment as served",
    responses=ERROR_RESPONSES,
)
def complete_punishment(
    punishment_id: int,
    payload: ResolvePunishmentRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    outcome = redemption.resolve_punishment(
        db, punishment_id, payload.parent_id, PunishmentStatus.COMPLETED, clock()
    )
    return _outcome_response(outcome)


@router.post(
    "/{punishment_id}/waive",
    response_model=PunishmentOutcomeResponse,
    summary="Waive a punishment; refunds deducted coins",
    responses=ERROR_RESPONSES,
)
def waive_punishment(
    punishment_id: int,
    payload: ResolvePunishmentRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    outcome = redemption.resolve_punishment(
        db, punishment_id, payload.parent_id, PunishmentStatus.WAIVED, clock()
    )
    return _outcome_response(outcome)

