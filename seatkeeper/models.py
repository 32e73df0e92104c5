from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGINT does not autoincrement on SQLite; INTEGER PRIMARY KEY does
BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


# ---------- Base & naming ----------
class Base(DeclarativeBase):
    # Keep index/constraint names stable for cleaner migrations
    metadata = sa.MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )


# ---------- SESSIONS ----------
class Session(Base):
    __tablename__ = "sessions"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    topic: Mapped[str] = mapped_column(sa.Text, nullable=False)
    instructor: Mapped[str] = mapped_column(sa.Text, nullable=False)
    location: Mapped[str] = mapped_column(sa.Text, nullable=False)

    start_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)

    # NULL means unlimited seating
    capacity: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)

    # running totals, mutated in the same transaction as the signup rows they count
    confirmed_count: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default=sa.text("0"))
    waitlist_count: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default=sa.text("0"))

    status: Mapped[str] = mapped_column(
        sa.Text,
        nullable=False,
        default="open",
        server_default=sa.text("'open'"),
    )  # 'open' | 'closed'

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )

    __table_args__ = (
        CheckConstraint("capacity IS NULL OR capacity > 0", name="sessions_capacity_pos"),
        CheckConstraint("confirmed_count >= 0", name="sessions_confirmed_nonneg"),
        CheckConstraint("waitlist_count >= 0", name="sessions_waitlist_nonneg"),
        CheckConstraint("status in ('open','closed')", name="sessions_status"),
        CheckConstraint("end_at > start_at", name="sessions_end_after_start"),
        Index("ix_sessions_start_at", "start_at"),
    )

    @property
    def is_unlimited(self) -> bool:
        return self.capacity is None

    @property
    def has_seat(self) -> bool:
        return self.capacity is None or self.confirmed_count < self.capacity

    @property
    def seats_left(self) -> Optional[int]:
        if self.capacity is None:
            return None
        return max(0, self.capacity - self.confirmed_count)


# ---------- SIGNUPS ----------
class Signup(Base):
    __tablename__ = "signups"
    __mapper_args__ = {"eager_defaults": True}

    # storage address; the registrant identity lives in registrant_key
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    session_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False
    )
    registrant_key: Mapped[str] = mapped_column(sa.Text, nullable=False)  # normalized email

    full_name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    email: Mapped[str] = mapped_column(sa.Text, nullable=False)
    class_year: Mapped[str] = mapped_column(sa.Text, nullable=False, default="", server_default=sa.text("''"))
    user_id: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)  # token subject, when known

    status: Mapped[str] = mapped_column(sa.Text, nullable=False)  # 'confirmed' | 'waitlist'

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )

    __table_args__ = (
        UniqueConstraint("session_id", "registrant_key", name="uq_signups_session_registrant"),
        CheckConstraint("status in ('confirmed','waitlist')", name="signups_status"),
        Index("ix_signups_session_status_id", "session_id", "status", "id"),
        Index("ix_signups_user_id", "user_id"),
    )
