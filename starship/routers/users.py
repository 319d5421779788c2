"""
Users router.

POST /users
GET  /users/{user_id}
GET  /users/{user_id}/children
GET  /users/{user_id}/tasks/today
GET  /users/{user_id}/tasks/weekly
GET  /users/{user_id}/punishments
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from starship.core.clock import Clock, get_clock
from starship.db.base import get_db
from starship.models.punishment import PunishmentStatus
from starship.schemas.common import ERROR_RESPONSES
from starship.schemas.punishments import PunishmentListResponse, PunishmentOut
from starship.schemas.tasks import CompletionOut, TaskOut, TaskStatusOut, TodayTasksResponse
from starship.schemas.users import UserCreate, UserOut
from starship.services import accounts, cadence, completion, redemption
from starship.services.completion import TaskStatusView

router = APIRouter(prefix="/users", tags=["users"])


def _status_out(view: TaskStatusView) -> TaskStatusOut:
    return TaskStatusOut(
        task=TaskOut.model_validate(view.task),
        period_key=view.period_key,
        completed=view.completed,
        completion=CompletionOut.model_validate(view.completion) if view.completion else None,
    )


@router.post(
    "",
    response_model=UserOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a parent or child",
    responses=ERROR_RESPONSES,
)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Create a user and its level-1 record. A CHILD must name an existing PARENT."""
    user = accounts.create_user(
        db,
        username=payload.username,
        display_name=payload.display_name,
        role=payload.role,
        parent_id=payload.parent_id,
        ship_name=payload.ship_name,
    )
    return UserOut.model_validate(user)


@router.get("/{user_id}", response_model=UserOut, summary="Get a user", responses=ERROR_RESPONSES)
def get_user(user_id: int, db: Session = Depends(get_db)):
    return UserOut.model_validate(accounts.get_user(db, user_id))


@router.get(
    "/{user_id}/children",
    response_model=list[UserOut],
    summary="List a parent's children",
    responses=ERROR_RESPONSES,
)
def list_children(user_id: int, db: Session = Depends(get_db)):
    return [UserOut.model_validate(c) for c in accounts.list_children(db, user_id)]


@router.get(
    "/{user_id}/tasks/today",
    response_model=TodayTasksResponse,
    summary="Tasks due today with completion status",
    responses=ERROR_RESPONSES,
)
def today_tasks(
    user_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Active tasks whose cadence makes them eligible today (canonical time zone),
    each flagged with whether the current period is already completed.
    Active EXTRA_TASK punishments are listed alongside.
    """
    now = clock()
    views = completion.get_today_tasks(db, user_id, now)
    extra = redemption.get_active_extra_tasks(db, user_id)
    return TodayTasksResponse(
        day=cadence.local_date(now).isoformat(),
        tasks=[_status_out(v) for v in views],
        extra_tasks=[PunishmentOut.model_validate(p) for p in extra],
    )


@router.get(
    "/{user_id}/tasks/weekly",
    response_model=list[TaskStatusOut],
    summary="Weekly tasks with status for the current ISO week",
    responses=ERROR_RESPONSES,
)
def weekly_tasks(
    user_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return [_status_out(v) for v in completion.get_weekly_tasks(db, user_id, clock())]


@router.get(
    "/{user_id}/punishments",
    response_model=PunishmentListResponse,
    summary="A user's punishment records (newest first)",
    responses=ERROR_RESPONSES,
)
def list_punishments(
    user_id: int,
    status: Optional[PunishmentStatus] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    total, items = redemption.get_punishments(db, user_id, status=status, limit=limit, offset=offset)
    return PunishmentListResponse(
        total=total,
        items=[PunishmentOut.model_validate(p) for p in items],
    )
