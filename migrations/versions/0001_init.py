"""init schema: sessions and signups

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # sessions
    op.create_table(
        "sessions",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("topic", sa.Text(), nullable=False),
        sa.Column("instructor", sa.Text(), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),  # NULL = unlimited
        sa.Column("confirmed_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("waitlist_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'open'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_sessions"),
        sa.CheckConstraint("capacity IS NULL OR capacity > 0", name="ck_sessions_sessions_capacity_pos"),
        sa.CheckConstraint("confirmed_count >= 0", name="ck_sessions_sessions_confirmed_nonneg"),
        sa.CheckConstraint("waitlist_count >= 0", name="ck_sessions_sessions_waitlist_nonneg"),
        sa.CheckConstraint("status in ('open','closed')", name="ck_sessions_sessions_status"),
        sa.CheckConstraint("end_at > start_at", name="ck_sessions_sessions_end_after_start"),
    )
    op.create_index("ix_sessions_start_at", "sessions", ["start_at"], unique=False)

    # signups
    op.create_table(
        "signups",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Uuid(), nullable=False),
        sa.Column("registrant_key", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("class_year", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("user_id", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_signups"),
        sa.ForeignKeyConstraint(
            ["session_id"], ["sessions.id"], ondelete="CASCADE", name="fk_signups_session_id_sessions"
        ),
        sa.UniqueConstraint("session_id", "registrant_key", name="uq_signups_session_registrant"),
        sa.CheckConstraint("status in ('confirmed','waitlist')", name="ck_signups_signups_status"),
    )
    # roster reads: per session, by status, in arrival order
    op.create_index(
        "ix_signups_session_status_id", "signups", ["session_id", "status", "id"], unique=False
    )
    op.create_index("ix_signups_user_id", "signups", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_signups_user_id", table_name="signups")
    op.drop_index("ix_signups_session_status_id", table_name="signups")
    op.drop_table("signups")
    op.drop_index("ix_sessions_start_at", table_name="sessions")
    op.drop_table("sessions")
