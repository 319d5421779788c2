"""
Punishment rules (parent-defined) and the records produced by applying them.

An EXTRA_TASK record is the extra-task assignment itself: `value` holds how
many extra tasks the child owes and `status` tracks whether they were done.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, Boolean, DateTime, Date, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from starship.db.base import Base


class PunishmentType(str, enum.Enum):
    DEDUCT_COINS = "DEDUCT_COINS"
    EXTRA_TASK = "EXTRA_TASK"


class PunishmentSeverity(str, enum.Enum):
    MINOR = "MINOR"
    MEDIUM = "MEDIUM"
    SEVERE = "SEVERE"


class PunishmentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    WAIVED = "WAIVED"


class PunishmentRule(Base):
    __tablename__ = "punishment_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(
        Enum(PunishmentType, name="punishment_type_enum"),
        nullable=False,
    )
    severity: Mapped[str] = mapped_column(
        Enum(PunishmentSeverity, name="punishment_severity_enum"),
        nullable=False,
        default=PunishmentSeverity.MINOR,
    )
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class PunishmentRecord(Base):
    __tablename__ = "punishment_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    rule_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("punishment_rules.id"), nullable=False, index=True
    )
    applied_by: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    type: Mapped[str] = mapped_column(
        Enum(PunishmentType, name="punishment_type_enum"),
        nullable=False,
    )
    severity: Mapped[str] = mapped_column(
        Enum(PunishmentSeverity, name="punishment_severity_enum"),
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    # Coins actually removed after clamping at a zero balance.
    coins_deducted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        Enum(PunishmentStatus, name="punishment_status_enum"),
        nullable=False,
        default=PunishmentStatus.ACTIVE,
    )
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
