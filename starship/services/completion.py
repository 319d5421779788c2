"""
Completion tracker: at most one paid completion per task, user and period.

Flow of complete()
------------------
  1. cadence   → period key for today (TaskNotDueToday when ineligible)
  2. existing completion for that period → no-op result (already_completed)
  3. streak    → previous period's streak + 1, else 1
  4. payout    → coins / exp from the reward calculator
  5. insert TaskCompletion, append EARN to the ledger, apply exp to the level

Steps 2-5 run inside ledger.atomic_write: one commit, retried when another
request wins a ledger or level race. A duplicate insert that slips past
step 2 hits the unique constraint and is reported as already_completed.

Public API
----------
complete(db, task_id, user_id, now)      -> CompletionResult
get_today_tasks(db, user_id, now)        -> list[TaskStatusView]
get_weekly_tasks(db, user_id, now)       -> list[TaskStatusView]
batch_complete(db, task_ids, user_id, now) -> BatchResult
get_task_stats(db, user_id, period, now) -> TaskStats
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from starship.core.clock import as_utc, utcnow
from starship.core.errors import NotChildOfParentError, NotFoundError, StarshipException
from starship.models.completion import TaskCompletion
from starship.models.point_transaction import PointTransactionType
from starship.models.task import Task, TaskType
from starship.services import cadence, ledger, leveling, payout
from starship.services.accounts import get_child, get_user, owner_id_for

logger = logging.getLogger("starship.completion")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class CompletionResult:
    task_id: int
    user_id: int
    period_key: str
    already_completed: bool
    completion_id: Optional[int] = None
    streak_count: int = 0
    coins_awarded: int = 0
    exp_awarded: int = 0
    bonus_percent: int = 0
    balance: int = 0
    level: int = 1
    title: str = ""
    leveled_up: bool = False


@dataclass
class TaskStatusView:
    """A task annotated with its completion status for the current period."""
    task: Task
    period_key: str
    completed: bool
    completion: Optional[TaskCompletion] = field(default=None)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _find_completion(
    db: Session, task_id: int, user_id: int, period_key: str
) -> Optional[TaskCompletion]:
    return (
        db.query(TaskCompletion)
        .filter(
            TaskCompletion.task_id == task_id,
            TaskCompletion.user_id == user_id,
            TaskCompletion.period_key == period_key,
        )
        .first()
    )


def _already_completed(
    db: Session, task: Task, user_id: int, existing: TaskCompletion
) -> CompletionResult:
    record = leveling.get_level(db, user_id)
    return CompletionResult(
        task_id=task.id,
        user_id=user_id,
        period_key=existing.period_key,
        already_completed=True,
        completion_id=existing.id,
        streak_count=existing.streak_count,
        balance=ledger.get_balance(db, user_id),
        level=record.level,
        title=record.title,
    )


def _get_task_for_child(db: Session, task_id: int, child_id: int) -> Task:
    task = db.get(Task, task_id)
    if task is None or not task.is_active:
        raise NotFoundError("task", task_id)
    child = get_child(db, child_id)
    if task.created_by != child.parent_id:
        raise NotChildOfParentError(child.id, task.created_by)
    return task


# ---------------------------------------------------------------------------
# Public: complete
# ---------------------------------------------------------------------------

def complete(
    db: Session,
    task_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> CompletionResult:
    now = now or utcnow()
    task = _get_task_for_child(db, task_id, user_id)
    today = cadence.local_date(now)
    period_key = cadence.period_key_of(task, today)

    def _operation() -> CompletionResult:
        existing = _find_completion(db, task.id, user_id, period_key)
        if existing is not None:
            return _already_completed(db, task, user_id, existing)

        previous = _find_completion(
            db, task.id, user_id, cadence.previous_period_key(task, today)
        )
        streak = previous.streak_count + 1 if previous else 1
        pay = payout.reward(task, streak)

        completion = TaskCompletion(
            task_id=task.id,
            user_id=user_id,
            period_key=period_key,
            streak_count=streak,
            star_coins=pay.coins,
            exp_gained=pay.exp,
            completed_at=as_utc(now),
        )
        db.add(completion)
        try:
            db.flush()
        except IntegrityError:
            # A concurrent request recorded this period first.
            db.rollback()
            existing = _find_completion(db, task.id, user_id, period_key)
            return _already_completed(db, task, user_id, existing)

        tx = ledger.append(
            db, user_id, PointTransactionType.EARN, pay.coins,
            description=f"完成任务: {task.title}",
            related_id=completion.id,
            now=now,
        )
        level_before = leveling.get_level(db, user_id).level
        record = leveling.apply_exp(db, user_id, pay.exp)

        return CompletionResult(
            task_id=task.id,
            user_id=user_id,
            period_key=period_key,
            already_completed=False,
            completion_id=completion.id,
            streak_count=streak,
            coins_awarded=pay.coins,
            exp_awarded=pay.exp,
            bonus_percent=pay.bonus_percent,
            balance=tx.balance,
            level=record.level,
            title=record.title,
            leveled_up=record.level > level_before,
        )

    result = ledger.atomic_write(db, user_id, _operation)
    if result.already_completed:
        logger.info(
            "completion ignored: already done for period",
            extra={"user_id": user_id, "task_id": task_id, "period_key": period_key},
        )
    else:
        logger.info(
            "task completed",
            extra={
                "user_id": user_id,
                "task_id": task_id,
                "period_key": period_key,
                "streak_count": result.streak_count,
                "amount": result.coins_awarded,
                "balance": result.balance,
            },
        )
    return result


# ---------------------------------------------------------------------------
# Public: views
# ---------------------------------------------------------------------------

def _annotate(
    db: Session, tasks: list[Task], user_id: int, day: date
) -> list[TaskStatusView]:
    keyed = [(t, cadence.period_key_of(t, day)) for t in tasks]
    if not keyed:
        return []
    completions = (
        db.query(TaskCompletion)
        .filter(
            TaskCompletion.user_id == user_id,
            TaskCompletion.task_id.in_([t.id for t, _ in keyed]),
            TaskCompletion.period_key.in_({k for _, k in keyed}),
        )
        .all()
    )
    by_key = {(c.task_id, c.period_key): c for c in completions}
    views = []
    for task, key in keyed:
        done = by_key.get((task.id, key))
        views.append(TaskStatusView(task=task, period_key=key, completed=done is not None, completion=done))
    return views


def _visible_tasks(db: Session, user_id: int) -> list[Task]:
    owner_id = owner_id_for(get_user(db, user_id))
    return (
        db.query(Task)
        .filter(Task.created_by == owner_id, Task.is_active == True)  # noqa
        .order_by(Task.created_at.asc(), Task.id.asc())
        .all()
    )


def get_today_tasks(
    db: Session, user_id: int, now: Optional[datetime] = None
) -> list[TaskStatusView]:
    """Active tasks eligible today, each flagged with whether its current period is done."""
    today = cadence.local_date(now or utcnow())
    due = [t for t in _visible_tasks(db, user_id) if cadence.is_eligible_day(t, today)]
    return _annotate(db, due, user_id, today)


def get_weekly_tasks(
    db: Session, user_id: int, now: Optional[datetime] = None
) -> list[TaskStatusView]:
    """Active WEEKLY tasks with their status for the current ISO week."""
    today = cadence.local_date(now or utcnow())
    weekly = [t for t in _visible_tasks(db, user_id) if t.type == TaskType.WEEKLY]
    return _annotate(db, weekly, user_id, today)


# ---------------------------------------------------------------------------
# Public: batch + stats
# ---------------------------------------------------------------------------

@dataclass
class BatchError:
    task_id: int
    code: str
    message: str


@dataclass
class BatchResult:
    results: list[CompletionResult]
    errors: list[BatchError]

    @property
    def total_completed(self) -> int:
        return sum(1 for r in self.results if not r.already_completed)

    @property
    def total_already_completed(self) -> int:
        return sum(1 for r in self.results if r.already_completed)


def batch_complete(
    db: Session, task_ids: list[int], user_id: int, now: Optional[datetime] = None
) -> BatchResult:
    """
    Complete several tasks in order, each in its own transaction.

    A task that fails (not due today, missing, not the child's) is reported
    under `errors` and does not stop the rest; earlier successes stay
    committed.
    """
    now = now or utcnow()
    results: list[CompletionResult] = []
    errors: list[BatchError] = []
    for task_id in task_ids:
        try:
            results.append(complete(db, task_id, user_id, now))
        except StarshipException as exc:
            errors.append(BatchError(task_id=task_id, code=exc.code, message=exc.message))
    logger.info(
        "batch completion finished",
        extra={"user_id": user_id, "completed": len(results), "failed": len(errors)},
    )
    return BatchResult(results=results, errors=errors)


@dataclass
class TaskStats:
    period: str
    since: datetime
    completed_tasks: int
    distinct_tasks: int
    total_tasks: int
    completion_rate: float
    total_star_coins: int
    total_exp: int


def get_task_stats(
    db: Session, user_id: int, period: str = "today", now: Optional[datetime] = None
) -> TaskStats:
    """
    Completion summary for a child over a reporting window.

    `total_tasks` counts the tasks due today for "today" and every active
    task otherwise; `completion_rate` is the share of them completed at
    least once in the window, in percent.
    """
    child = get_child(db, user_id)
    now = as_utc(now or utcnow())
    since = cadence.window_start(period, now)

    tasks = _visible_tasks(db, child.id)
    if period == "today":
        today = cadence.local_date(now)
        tasks = [t for t in tasks if cadence.is_eligible_day(t, today)]

    completed, coins, exp = (
        db.query(
            func.count(TaskCompletion.id),
            func.coalesce(func.sum(TaskCompletion.star_coins), 0),
            func.coalesce(func.sum(TaskCompletion.exp_gained), 0),
        )
        .filter(TaskCompletion.user_id == child.id, TaskCompletion.completed_at >= since)
        .one()
    )
    done_ids = {
        task_id
        for (task_id,) in db.query(TaskCompletion.task_id)
        .filter(TaskCompletion.user_id == child.id, TaskCompletion.completed_at >= since)
        .distinct()
    }
    distinct = len(done_ids & {t.id for t in tasks})
    rate = round(distinct * 100.0 / len(tasks), 1) if tasks else 0.0
    return TaskStats(
        period=period,
        since=since,
        completed_tasks=int(completed),
        distinct_tasks=distinct,
        total_tasks=len(tasks),
        completion_rate=rate,
        total_star_coins=int(coins),
        total_exp=int(exp),
    )
