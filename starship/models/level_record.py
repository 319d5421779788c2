from datetime import datetime
from sqlalchemy import Integer, String, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from starship.db.base import Base


class LevelRecord(Base):
    """Current level of a user. Exactly one row per user, mutated only by the leveling engine."""

    __tablename__ = "level_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, unique=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    title: Mapped[str] = mapped_column(String(64), nullable=False)
    exp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_exp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ship_name: Mapped[str] = mapped_column(String(50), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Concurrent updates of the same row raise StaleDataError instead of overwriting.
    __mapper_args__ = {"version_id_col": version}
