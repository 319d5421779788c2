"""
TaskCompletion: one row per (task, user, period).

The unique constraint is the final guard against double payment when two
requests complete the same task in the same period concurrently.
"""
from datetime import datetime
from sqlalchemy import Integer, String, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from starship.db.base import Base


class TaskCompletion(Base):
    __tablename__ = "task_completions"
    __table_args__ = (
        UniqueConstraint("task_id", "user_id", "period_key", name="uq_completion_task_user_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    task_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tasks.id"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    # "YYYY-MM-DD" for daily cadences, "YYYY-Www" for weekly.
    period_key: Mapped[str] = mapped_column(String(16), nullable=False)
    streak_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    star_coins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    exp_gained: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
