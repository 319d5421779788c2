"""
PointTransaction: the append-only star-coin ledger.

`amount` is a signed delta; `balance` is the running balance after the row.
`seq` numbers a user's rows 1, 2, 3, ...; the (user_id, seq) unique
constraint turns two concurrent appends on the same balance into a
detectable conflict instead of a lost update.
"""
from datetime import datetime
from sqlalchemy import Integer, String, DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from starship.db.base import Base


class PointTransactionType(str, enum.Enum):
    EARN = "EARN"
    SPEND = "SPEND"
    DEDUCT = "DEDUCT"
    BONUS = "BONUS"


class PointTransaction(Base):
    __tablename__ = "point_transactions"
    __table_args__ = (
        UniqueConstraint("user_id", "seq", name="uq_point_tx_user_seq"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(
        Enum(PointTransactionType, name="point_tx_type_enum"),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    related_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
