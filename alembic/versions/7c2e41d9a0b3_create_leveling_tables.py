"""Create leveling, boost, balance and activity tables

Revision ID: 7c2e41d9a0b3
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c2e41d9a0b3"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the five leveling-core tables."""
    op.create_table(
        "level_progress",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("xp", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.CheckConstraint("xp >= 0", name="ck_level_progress_xp_nonneg"),
        sa.CheckConstraint("level >= 1", name="ck_level_progress_level_min"),
    )
    op.create_index(
        "ix_level_progress_guild_xp", "level_progress", ["guild_id", "xp"],
    )

    op.create_table(
        "boosts",
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("multiplier", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "multiplier >= 1 AND multiplier <= 10", name="ck_boosts_multiplier_range",
        ),
    )
    op.create_index("ix_boosts_expires_at", "boosts", ["expires_at"])

    op.create_table(
        "balances",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("amount", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.CheckConstraint("amount >= 0", name="ck_balances_amount_nonneg"),
    )

    op.create_table(
        "voice_activity",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("voice_seconds", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("last_joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("voice_seconds >= 0", name="ck_voice_activity_seconds_nonneg"),
    )

    op.create_table(
        "message_activity",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("characters", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop the leveling-core tables."""
    op.drop_table("message_activity")
    op.drop_table("voice_activity")
    op.drop_table("balances")
    op.drop_index("ix_boosts_expires_at", table_name="boosts")
    op.drop_table("boosts")
    op.drop_index("ix_level_progress_guild_xp", table_name="level_progress")
    op.drop_table("level_progress")
