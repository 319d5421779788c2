"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-09-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(name: str, *values: str, create_type: bool = True) -> sa.Enum:
    return sa.Enum(*values, name=name, create_type=create_type)


ENUMS = {
    "user_role_enum": ("PARENT", "CHILD"),
    "task_type_enum": ("DAILY", "WEEKLY"),
    "task_frequency_enum": ("DAILY", "WEEKDAYS", "WEEKENDS", "WEEKLY"),
    "task_difficulty_enum": ("EASY", "MEDIUM", "HARD"),
    "point_tx_type_enum": ("EARN", "SPEND", "DEDUCT", "BONUS"),
    "punishment_type_enum": ("DEDUCT_COINS", "EXTRA_TASK"),
    "punishment_severity_enum": ("MINOR", "MEDIUM", "SEVERE"),
    "punishment_status_enum": ("ACTIVE", "COMPLETED", "WAIVED"),
}


def _col_enum(name: str) -> sa.Enum:
    return _enum(name, *ENUMS[name], create_type=False)


def upgrade() -> None:
    # --- ENUM types ---
    for name, values in ENUMS.items():
        _enum(name, *values).create(op.get_bind(), checkfirst=True)

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("display_name", sa.String(128), nullable=False),
        sa.Column("role", _col_enum("user_role_enum"), nullable=False),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("ledger_frozen", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_parent_id", "users", ["parent_id"])

    # --- tasks ---
    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", _col_enum("task_type_enum"), nullable=False),
        sa.Column("frequency", _col_enum("task_frequency_enum"), nullable=False),
        sa.Column("weekdays", sa.Text(), nullable=True),
        sa.Column("star_coins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("exp_reward", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("difficulty", _col_enum("task_difficulty_enum"), nullable=False),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tasks_id", "tasks", ["id"])
    op.create_index("ix_tasks_created_by", "tasks", ["created_by"])

    # --- task_completions ---
    op.create_table(
        "task_completions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("tasks.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("period_key", sa.String(16), nullable=False),
        sa.Column("streak_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("star_coins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("exp_gained", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("task_id", "user_id", "period_key", name="uq_completion_task_user_period"),
    )
    op.create_index("ix_task_completions_id", "task_completions", ["id"])
    op.create_index("ix_task_completions_task_id", "task_completions", ["task_id"])
    op.create_index("ix_task_completions_user_id", "task_completions", ["user_id"])

    # --- point_transactions ---
    op.create_table(
        "point_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("type", _col_enum("point_tx_type_enum"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(512), nullable=True),
        sa.Column("related_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "seq", name="uq_point_tx_user_seq"),
        sa.CheckConstraint("balance >= 0", name="ck_point_tx_balance_non_negative"),
    )
    op.create_index("ix_point_transactions_id", "point_transactions", ["id"])
    op.create_index("ix_point_transactions_user_id", "point_transactions", ["user_id"])

    # --- level_records ---
    op.create_table(
        "level_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("title", sa.String(64), nullable=False),
        sa.Column("exp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_exp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ship_name", sa.String(50), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )
    op.create_index("ix_level_records_id", "level_records", ["id"])

    # --- rewards ---
    op.create_table(
        "rewards",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("cost", sa.Integer(), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="-1"),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rewards_id", "rewards", ["id"])
    op.create_index("ix_rewards_created_by", "rewards", ["created_by"])

    # --- punishment_rules ---
    op.create_table(
        "punishment_rules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", _col_enum("punishment_type_enum"), nullable=False),
        sa.Column("severity", _col_enum("punishment_severity_enum"), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_punishment_rules_id", "punishment_rules", ["id"])
    op.create_index("ix_punishment_rules_created_by", "punishment_rules", ["created_by"])

    # --- punishment_records ---
    op.create_table(
        "punishment_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("rule_id", sa.Integer(), sa.ForeignKey("punishment_rules.id"), nullable=False),
        sa.Column("applied_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", _col_enum("punishment_type_enum"), nullable=False),
        sa.Column("severity", _col_enum("punishment_severity_enum"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("coins_deducted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", _col_enum("punishment_status_enum"), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_punishment_records_id", "punishment_records", ["id"])
    op.create_index("ix_punishment_records_user_id", "punishment_records", ["user_id"])
    op.create_index("ix_punishment_records_rule_id", "punishment_records", ["rule_id"])
    op.create_index("ix_punishment_records_day", "punishment_records", ["day"])


def downgrade() -> None:
    op.drop_table("punishment_records")
    op.drop_table("punishment_rules")
    op.drop_table("rewards")
    op.drop_table("level_records")
    op.drop_table("point_transactions")
    op.drop_table("task_completions")
    op.drop_table("tasks")
    op.drop_table("users")

    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
