"""
Catalog: the parent-owned definitions: tasks, rewards and punishment rules.

Difficulty is applied here, once, at definition time: when a parent leaves
star_coins / exp_reward empty, the difficulty's defaults are stored on the
task. The reward calculator then pays the stored values as-is.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from starship.core.errors import NotFoundError
from starship.models.punishment import (
    PunishmentRecord,
    PunishmentRule,
    PunishmentSeverity,
    PunishmentType,
)
from starship.models.reward import Reward, UNLIMITED_STOCK
from starship.models.task import Task, TaskDifficulty, TaskFrequency, TaskType
from starship.services.accounts import get_parent, get_user, owner_id_for
from starship.services.cadence import normalize_weekdays

logger = logging.getLogger("starship.catalog")

# difficulty → (star_coins, exp_reward) used when the parent gives none
DIFFICULTY_DEFAULTS: dict[TaskDifficulty, tuple[int, int]] = {
    TaskDifficulty.EASY: (5, 10),
    TaskDifficulty.MEDIUM: (10, 20),
    TaskDifficulty.HARD: (20, 40),
}


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

def create_task(
    db: Session,
    created_by: int,
    title: str,
    frequency: TaskFrequency,
    task_type: Optional[TaskType] = None,
    weekdays: Optional[Iterable[int]] = None,
    star_coins: Optional[int] = None,
    exp_reward: Optional[int] = None,
    difficulty: TaskDifficulty = TaskDifficulty.EASY,
    description: Optional[str] = None,
    category: Optional[str] = None,
) -> Task:
    parent = get_parent(db, created_by)
    if task_type is None:
        task_type = TaskType.WEEKLY if frequency == TaskFrequency.WEEKLY else TaskType.DAILY
    days = normalize_weekdays(frequency, weekdays, task_type)

    default_coins, default_exp = DIFFICULTY_DEFAULTS[TaskDifficulty(difficulty)]
    task = Task(
        title=title,
        description=description,
        type=task_type,
        frequency=frequency,
        weekdays=json.dumps(days) if days is not None else None,
        star_coins=default_coins if star_coins is None else star_coins,
        exp_reward=default_exp if exp_reward is None else exp_reward,
        difficulty=difficulty,
        category=category,
        is_active=True,
        created_by=parent.id,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("task created", extra={"user_id": parent.id, "task_id": task.id})
    return task


def get_task(db: Session, task_id: int) -> Task:
    task = db.get(Task, task_id)
    if task is None:
        raise NotFoundError("task", task_id)
    return task


def list_tasks(
    db: Session,
    user_id: int,
    task_type: Optional[str] = None,
    include_inactive: bool = False,
) -> list[Task]:
    """Tasks defined by the user, or by the user's parent for a child."""
    owner_id = owner_id_for(get_user(db, user_id))
    q = db.query(Task).filter(Task.created_by == owner_id)
    if not include_inactive:
        q = q.filter(Task.is_active == True)  # noqa
    if task_type:
        q = q.filter(Task.type == task_type)
    return q.order_by(Task.id.asc()).all()


def update_task(db: Session, task_id: int, parent_id: int, changes: dict[str, Any]) -> Task:
    """
    Apply a partial update from the owning parent.

    The resulting frequency / type / weekdays combination is checked again.
    When the frequency changes without new weekdays, the new frequency's
    defaults apply instead of the old schedule. Completions already recorded
    keep their period keys and payouts.
    """
    parent = get_parent(db, parent_id)
    task = get_task(db, task_id)
    if task.created_by != parent.id:
        raise NotFoundError("task", task_id)

    frequency = changes.get("frequency") or task.frequency
    frequency_changed = frequency != task.frequency
    task_type = changes.get("type")
    if task_type is None:
        if frequency_changed:
            task_type = TaskType.WEEKLY if frequency == TaskFrequency.WEEKLY else TaskType.DAILY
        else:
            task_type = task.type
    if "weekdays" in changes:
        weekdays = changes["weekdays"]
    elif frequency_changed:
        weekdays = None
    else:
        weekdays = sorted(task.weekday_set) if task.weekdays else None
    days = normalize_weekdays(frequency, weekdays, task_type)

    for field in (
        "title", "description", "star_coins", "exp_reward", "difficulty", "category", "is_active",
    ):
        if field in changes and changes[field] is not None:
            setattr(task, field, changes[field])
    task.frequency = frequency
    task.type = task_type
    task.weekdays = json.dumps(days) if days is not None else None
    db.commit()
    db.refresh(task)
    logger.info("task updated", extra={"user_id": parent.id, "task_id": task.id})
    return task


def deactivate_task(db: Session, task_id: int, parent_id: int) -> Task:
    """Soft delete: completions and ledger rows keep pointing at the task."""
    parent = get_parent(db, parent_id)
    task = get_task(db, task_id)
    if task.created_by != parent.id:
        raise NotFoundError("task", task_id)
    task.is_active = False
    db.commit()
    db.refresh(task)
    return task


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------

def create_reward(
    db: Session,
    created_by: int,
    name: str,
    cost: int,
    stock: int = UNLIMITED_STOCK,
    category: Optional[str] = None,
    description: Optional[str] = None,
) -> Reward:
    parent = get_parent(db, created_by)
    reward = Reward(
        name=name,
        description=description,
        cost=cost,
        stock=stock,
        category=category,
        is_active=True,
        created_by=parent.id,
    )
    db.add(reward)
    db.commit()
    db.refresh(reward)
    return reward


def list_rewards(db: Session, user_id: int) -> list[Reward]:
    owner_id = owner_id_for(get_user(db, user_id))
    return (
        db.query(Reward)
        .filter(Reward.created_by == owner_id, Reward.is_active == True)  # noqa
        .order_by(Reward.cost.asc(), Reward.id.asc())
        .all()
    )


# ---------------------------------------------------------------------------
# Punishment rules
# ---------------------------------------------------------------------------

def create_punishment_rule(
    db: Session,
    created_by: int,
    name: str,
    rule_type: PunishmentType,
    value: int,
    severity: PunishmentSeverity = PunishmentSeverity.MINOR,
    description: Optional[str] = None,
) -> PunishmentRule:
    parent = get_parent(db, created_by)
    rule = PunishmentRule(
        name=name,
        description=description,
        type=rule_type,
        severity=severity,
        value=value,
        is_active=True,
        created_by=parent.id,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def list_punishment_rules(
    db: Session,
    parent_id: int,
    rule_type: Optional[str] = None,
) -> list[PunishmentRule]:
    get_parent(db, parent_id)
    q = db.query(PunishmentRule).filter(
        PunishmentRule.created_by == parent_id,
        PunishmentRule.is_active == True,  # noqa
    )
    if rule_type:
        q = q.filter(PunishmentRule.type == rule_type)
    return q.order_by(PunishmentRule.id.asc()).all()


def get_punishment_rule(db: Session, rule_id: int, parent_id: int) -> PunishmentRule:
    """A rule owned by `parent_id`; other parents' rules read as missing."""
    parent = get_parent(db, parent_id)
    rule = db.get(PunishmentRule, rule_id)
    if rule is None or rule.created_by != parent.id:
        raise NotFoundError("punishment_rule", rule_id)
    return rule


def update_punishment_rule(
    db: Session, rule_id: int, parent_id: int, changes: dict[str, Any]
) -> PunishmentRule:
    """Partial update. Records already applied keep the type, severity and value they were created with."""
    rule = get_punishment_rule(db, rule_id, parent_id)
    for field in ("name", "description", "type", "severity", "value", "is_active"):
        if field in changes and changes[field] is not None:
            setattr(rule, field, changes[field])
    db.commit()
    db.refresh(rule)
    return rule


def delete_punishment_rule(db: Session, rule_id: int, parent_id: int) -> bool:
    """
    Remove a rule. A rule that has been applied is only deactivated so its
    records keep a valid rule_id. Returns True when the row was deleted.
    """
    rule = get_punishment_rule(db, rule_id, parent_id)
    used = (
        db.query(PunishmentRecord.id).filter(PunishmentRecord.rule_id == rule.id).first()
        is not None
    )
    if used:
        rule.is_active = False
        db.commit()
        return False
    db.delete(rule)
    db.commit()
    logger.info("punishment rule deleted", extra={"user_id": parent_id})
    return True
