"""
Task schemas.

POST /tasks                       → TaskCreate         → TaskOut
PUT  /tasks/{id}                  → TaskUpdate         → TaskOut
POST /tasks/batch-complete        → BatchCompleteRequest → BatchCompleteResponse
GET  /tasks/stats                 →                    → TaskStatsResponse
POST /tasks/{id}/complete         → CompleteRequest    → CompletionResponse
GET  /users/{id}/tasks/today      →                    → TodayTasksResponse
GET  /users/{id}/tasks/weekly     →                    → list[TaskStatusOut]
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from starship.models.task import TaskDifficulty, TaskFrequency, TaskType
from starship.schemas.punishments import PunishmentOut


class TaskCreate(BaseModel):
    created_by: int = Field(description="Id of the PARENT defining the task.")
    title: Annotated[str, Field(min_length=1, max_length=100, examples=["整理书包"])]
    description: Optional[str] = None
    frequency: TaskFrequency = TaskFrequency.DAILY
    type: Optional[TaskType] = Field(
        default=None,
        description="Derived from frequency when omitted.",
    )
    weekdays: Optional[list[Annotated[int, Field(ge=0, le=6)]]] = Field(
        default=None,
        description="Weekday numbers, Sunday=0. Defaulted for WEEKDAYS / WEEKENDS.",
        examples=[[1, 3, 5]],
    )
    star_coins: Optional[int] = Field(default=None, ge=0)
    exp_reward: Optional[int] = Field(default=None, ge=0)
    difficulty: TaskDifficulty = TaskDifficulty.EASY
    category: Optional[str] = Field(default=None, max_length=64)


class TaskUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""
    parent_id: int = Field(description="Id of the PARENT who owns the task.")
    title: Optional[Annotated[str, Field(min_length=1, max_length=100)]] = None
    description: Optional[str] = Field(default=None, max_length=500)
    frequency: Optional[TaskFrequency] = None
    type: Optional[TaskType] = None
    weekdays: Optional[list[Annotated[int, Field(ge=0, le=6)]]] = Field(
        default=None,
        description="Replaces the schedule. Send null to clear a custom DAILY subset.",
    )
    star_coins: Optional[int] = Field(default=None, ge=0)
    exp_reward: Optional[int] = Field(default=None, ge=0)
    difficulty: Optional[TaskDifficulty] = None
    category: Optional[str] = Field(default=None, max_length=64)
    is_active: Optional[bool] = None


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    type: TaskType
    frequency: TaskFrequency
    weekdays: list[int] = Field(default_factory=list)
    star_coins: int
    exp_reward: int
    difficulty: TaskDifficulty
    category: Optional[str] = None
    is_active: bool
    created_by: int
    created_at: datetime

    @field_validator("weekdays", mode="before")
    @classmethod
    def parse_stored_weekdays(cls, v):
        # Stored as a JSON text list on the ORM row.
        if v is None:
            return []
        if isinstance(v, str):
            return json.loads(v)
        return v


class CompleteRequest(BaseModel):
    user_id: int = Field(description="Id of the CHILD completing the task.")


class CompletionResponse(BaseModel):
    status: str = Field(description='"completed" | "already_completed"')
    task_id: int
    user_id: int
    period_key: str
    completion_id: Optional[int] = None
    streak_count: int
    coins_awarded: int
    exp_awarded: int
    bonus_percent: int
    balance: int
    level: int
    title: str
    leveled_up: bool


class CompletionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    period_key: str
    streak_count: int
    star_coins: int
    exp_gained: int
    completed_at: datetime


class TaskStatusOut(BaseModel):
    task: TaskOut
    period_key: str
    completed: bool
    completion: Optional[CompletionOut] = None


class TodayTasksResponse(BaseModel):
    day: str
    tasks: list[TaskStatusOut]
    extra_tasks: list[PunishmentOut] = Field(
        default_factory=list,
        description="Active EXTRA_TASK punishments owed by the user.",
    )


class BatchCompleteRequest(BaseModel):
    user_id: int = Field(description="Id of the CHILD completing the tasks.")
    task_ids: list[int] = Field(min_length=1, max_length=50)


class BatchErrorOut(BaseModel):
    task_id: int
    code: str
    message: str


class BatchCompleteResponse(BaseModel):
    results: list[CompletionResponse]
    errors: list[BatchErrorOut]
    total_completed: int
    total_already_completed: int
    total_errors: int


class TaskStatsResponse(BaseModel):
    period: str
    since: datetime
    completed_tasks: int = Field(description="Completions recorded in the window.")
    distinct_tasks: int
    total_tasks: int
    completion_rate: float = Field(description="Percent of total_tasks completed at least once.")
    total_star_coins: int
    total_exp: int
