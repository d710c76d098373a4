"""Initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-11-08 00:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("telegram_id", sa.BigInteger(), nullable=False),
        sa.Column("telegram_username", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("has_private_chat", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_telegram_id", "users", ["telegram_id"], unique=True)

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("telegram_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("open", "locked", "assigned", name="group_status"),
            nullable=False,
            server_default="open",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_telegram_id", sa.BigInteger(), nullable=True),
        sa.Column("last_draw_seed", sa.BigInteger(), nullable=True),
    )
    op.create_index("ix_groups_telegram_id", "groups", ["telegram_id"], unique=True)

    op.create_table(
        "group_participants",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "group_id"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_group_participants_user_group"),
    )

    op.create_table(
        "assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("giver_user_id", sa.Integer(), nullable=False),
        sa.Column("receiver_user_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["giver_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("group_id", "giver_user_id", name="uq_assignments_group_giver"),
        sa.UniqueConstraint("group_id", "receiver_user_id", name="uq_assignments_group_receiver"),
    )

    op.create_table(
        "exclusion_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("user_id1", sa.Integer(), nullable=False),
        sa.Column("user_id2", sa.Integer(), nullable=False),
        sa.Column("created_by_telegram_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id1"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id2"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("group_id", "user_id1", "user_id2", name="uq_exclusion_rules_group_pair"),
        sa.CheckConstraint("user_id1 <> user_id2", name="ck_exclusion_rules_distinct_users"),
    )
    op.create_index("ix_exclusion_rules_group_id", "exclusion_rules", ["group_id"])


def downgrade() -> None:
    op.drop_index("ix_exclusion_rules_group_id", table_name="exclusion_rules")
    op.drop_table("exclusion_rules")
    op.drop_table("assignments")
    op.drop_table("group_participants")
    op.drop_index("ix_groups_telegram_id", table_name="groups")
    op.drop_table("groups")
    op.drop_index("ix_users_telegram_id", table_name="users")
    op.drop_table("users")
    sa.Enum(name="group_status").drop(op.get_bind(), checkfirst=True)
