from datetime import datetime
import json
from sqlalchemy import Integer, String, Text, Boolean, DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from starship.db.base import Base


class TaskType(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"


class TaskFrequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKDAYS = "WEEKDAYS"
    WEEKENDS = "WEEKENDS"
    WEEKLY = "WEEKLY"


class TaskDifficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class Task(Base):
    """A recurring task defined by a parent."""

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(
        Enum(TaskType, name="task_type_enum"),
        nullable=False,
        default=TaskType.DAILY,
    )
    frequency: Mapped[str] = mapped_column(
        Enum(TaskFrequency, name="task_frequency_enum"),
        nullable=False,
        default=TaskFrequency.DAILY,
    )
    # JSON list of weekday numbers, Sunday=0. NULL means "every day" / not applicable.
    weekdays: Mapped[str | None] = mapped_column(Text, nullable=True)
    star_coins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    exp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    difficulty: Mapped[str] = mapped_column(
        Enum(TaskDifficulty, name="task_difficulty_enum"),
        nullable=False,
        default=TaskDifficulty.EASY,
    )
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def weekday_set(self) -> frozenset[int]:
        if not self.weekdays:
            return frozenset()
        return frozenset(int(d) for d in json.loads(self.weekdays))
