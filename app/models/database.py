"""
Database Models

SQLAlchemy ORM models for the schedule assistant.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False
    )


class Schedule(Base, TimestampMixin):
    """
    Schedule model.

    One dated appointment owned by a chat user. The owner is the
    platform user id and never changes after creation.
    """

    __tablename__ = "schedules"
    __table_args__ = (
        Index("idx_schedule_owner_date", "owner_id", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # YYYY-MM-DD, sorts lexically in calendar order
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    time: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<Schedule(id={self.id}, owner_id='{self.owner_id}', date='{self.date}')>"
