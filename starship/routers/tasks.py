"""
Tasks router.

POST   /tasks
GET    /tasks?user_id=
GET    /tasks/stats?user_id=&period=
POST   /tasks/batch-complete
GET    /tasks/{task_id}
PUT    /tasks/{task_id}
DELETE /tasks/{task_id}?parent_id=
POST   /tasks/{task_id}/complete
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from starship.core.clock import Clock, get_clock
from starship.db.base import get_db
from starship.models.task import TaskType
from starship.schemas.common import ERROR_RESPONSES
from starship.schemas.tasks import (
    BatchCompleteRequest,
    BatchCompleteResponse,
    BatchErrorOut,
    CompleteRequest,
    CompletionResponse,
    TaskCreate,
    TaskOut,
    TaskStatsResponse,
    TaskUpdate,
)
from starship.services import catalog, completion
from starship.services.completion import CompletionResult

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _completion_response(result: CompletionResult) -> CompletionResponse:
    return CompletionResponse(
        status="already_completed" if result.already_completed else "completed",
        task_id=result.task_id,
        user_id=result.user_id,
        period_key=result.period_key,
        completion_id=result.completion_id,
        streak_count=result.streak_count,
        coins_awarded=result.coins_awarded,
        exp_awarded=result.exp_awarded,
        bonus_percent=result.bonus_percent,
        balance=result.balance,
        level=result.level,
        title=result.title,
        leveled_up=result.leveled_up,
    )


@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Define a recurring task (parent only)",
    responses={**ERROR_RESPONSES, 422: {"description": "Inconsistent frequency / weekdays."}},
)
def create_task(payload: TaskCreate, db: Session = Depends(get_db)):
    """
    Frequency rules:
    - `WEEKDAYS` → weekdays 1-5, `WEEKENDS` → weekdays {0, 6} (filled in when omitted).
    - `WEEKLY` → no weekdays; period is the ISO week.
    - `DAILY` → every day, or a custom subset when `weekdays` is given.

    Omitted `star_coins` / `exp_reward` take the defaults of the chosen difficulty.
    """
    task = catalog.create_task(
        db,
        created_by=payload.created_by,
        title=payload.title,
        frequency=payload.frequency,
        task_type=payload.type,
        weekdays=payload.weekdays,
        star_coins=payload.star_coins,
        exp_reward=payload.exp_reward,
        difficulty=payload.difficulty,
        description=payload.description,
        category=payload.category,
    )
    return TaskOut.model_validate(task)


@router.get("", response_model=list[TaskOut], summary="List tasks visible to a user")
def list_tasks(
    user_id: int = Query(description="Parent (own tasks) or child (parent's tasks)."),
    type: Optional[TaskType] = Query(default=None),
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    tasks = catalog.list_tasks(db, user_id, task_type=type, include_inactive=include_inactive)
    return [TaskOut.model_validate(t) for t in tasks]


@router.get(
    "/stats",
    response_model=TaskStatsResponse,
    summary="A child's completions over a period",
    responses=ERROR_RESPONSES,
)
def task_stats(
    user_id: int = Query(description="Id of the CHILD."),
    period: Literal["today", "week", "month"] = Query(default="today"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    stats = completion.get_task_stats(db, user_id, period, clock())
    return TaskStatsResponse(**stats.__dict__)


@router.post(
    "/batch-complete",
    response_model=BatchCompleteResponse,
    summary="Complete several tasks for the current period",
    responses=ERROR_RESPONSES,
)
def batch_complete(
    payload: BatchCompleteRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Each task is completed on its own. Failures (e.g. `TASK_NOT_DUE_TODAY`)
    are listed under `errors` with their code and do not undo the others.
    """
    batch = completion.batch_complete(db, payload.task_ids, payload.user_id, clock())
    return BatchCompleteResponse(
        results=[_completion_response(r) for r in batch.results],
        errors=[BatchErrorOut(**e.__dict__) for e in batch.errors],
        total_completed=batch.total_completed,
        total_already_completed=batch.total_already_completed,
        total_errors=len(batch.errors),
    )


@router.get("/{task_id}", response_model=TaskOut, summary="Get a task", responses=ERROR_RESPONSES)
def get_task(task_id: int, db: Session = Depends(get_db)):
    return TaskOut.model_validate(catalog.get_task(db, task_id))


@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Edit a task (owning parent only)",
    responses={**ERROR_RESPONSES, 422: {"description": "Inconsistent frequency / weekdays."}},
)
def update_task(task_id: int, payload: TaskUpdate, db: Session = Depends(get_db)):
    """The merged frequency / type / weekdays combination is validated like on create."""
    changes = payload.model_dump(exclude_unset=True, exclude={"parent_id"})
    return TaskOut.model_validate(catalog.update_task(db, task_id, payload.parent_id, changes))


@router.delete(
    "/{task_id}",
    response_model=TaskOut,
    summary="Deactivate a task (parent only)",
    responses=ERROR_RESPONSES,
)
def deactivate_task(
    task_id: int,
    parent_id: int = Query(),
    db: Session = Depends(get_db),
):
    """Soft delete. Past completions and ledger rows are kept."""
    return TaskOut.model_validate(catalog.deactivate_task(db, task_id, parent_id))


@router.post(
    "/{task_id}/complete",
    response_model=CompletionResponse,
    summary="Complete a task for the current period",
    responses={
        **ERROR_RESPONSES,
        200: {"description": 'Completed, or `status="already_completed"` when done earlier this period.'},
        409: {"description": "TASK_NOT_DUE_TODAY."},
    },
)
def complete_task(
    task_id: int,
    payload: CompleteRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Idempotent per period: a second call in the same day (or ISO week for
    weekly tasks) pays nothing and reports `already_completed`.
    """
    result = completion.complete(db, task_id, payload.user_id, clock())
    return _completion_response(result)
