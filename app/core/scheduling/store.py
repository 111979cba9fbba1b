"""
Schedule Store.

CRUD over appointments keyed by owning user. Listing order is always
date ascending with ties broken by store insertion order, which is the
order a user's numbered selection refers to.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import StoreUnavailableError
from app.core.intelligence.session.models import DateRange
from app.models.database import Schedule

logger = logging.getLogger(__name__)

# Fields an edit may touch; owner_id is fixed at creation
EDITABLE_FIELDS = frozenset({"date", "time", "content"})


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass
class Appointment:
    """One dated appointment."""

    id: str
    owner_id: str
    date: str  # YYYY-MM-DD
    content: str
    time: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_row(cls, row: Schedule) -> "Appointment":
        """Create from ORM row."""
        return cls(
            id=str(row.id),
            owner_id=row.owner_id,
            date=row.date,
            time=row.time,
            content=row.content,
            created_at=row.created_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "date": self.date,
            "time": self.time,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
        }


def _check_fields(fields: dict) -> None:
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not editable: {sorted(unknown)}")


class ScheduleStore(ABC):
    """Interface the dialogue engine uses for appointments."""

    @abstractmethod
    async def add(
        self,
        owner_id: str,
        date: str,
        time: Optional[str],
        content: str,
    ) -> str:
        """Create an appointment and return its store-assigned id."""

    @abstractmethod
    async def get(self, appointment_id: str) -> Optional[Appointment]:
        """Get an appointment, or None if it does not exist."""

    @abstractmethod
    async def update(self, appointment_id: str, fields: dict) -> None:
        """Overwrite some of date, time and content."""

    @abstractmethod
    async def delete(self, appointment_id: str) -> None:
        """Delete an appointment. Deleting a missing id is a no-op."""

    @abstractmethod
    async def query_by_owner(
        self,
        owner_id: str,
        date_range: Optional[DateRange] = None,
    ) -> list[Appointment]:
        """List an owner's appointments, date ascending, stable tiebreak."""


class SqlScheduleStore(ScheduleStore):
    """
    SQLAlchemy-backed store.

    Each call runs in its own session and transaction. Driver errors are
    raised as StoreUnavailableError.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize store.

        Args:
            session_factory: Async session factory bound to the database
        """
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Schedule store operation failed: {e}")
            raise StoreUnavailableError(str(e)) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @staticmethod
    def _parse_id(appointment_id: str) -> Optional[uuid.UUID]:
        try:
            return uuid.UUID(appointment_id)
        except ValueError:
            return None

    async def add(
        self,
        owner_id: str,
        date: str,
        time: Optional[str],
        content: str,
    ) -> str:
        async with self._session() as db:
            row = Schedule(owner_id=owner_id, date=date, time=time, content=content)
            db.add(row)
            await db.flush()
            appointment_id = str(row.id)

        logger.info(f"Schedule created: {appointment_id} for {owner_id} on {date}")
        return appointment_id

    async def get(self, appointment_id: str) -> Optional[Appointment]:
        key = self._parse_id(appointment_id)
        if key is None:
            return None

        async with self._session() as db:
            row = await db.get(Schedule, key)
            return Appointment.from_row(row) if row else None

    async def update(self, appointment_id: str, fields: dict) -> None:
        _check_fields(fields)
        key = self._parse_id(appointment_id)
        if key is None:
            return

        async with self._session() as db:
            row = await db.get(Schedule, key)
            if row is None:
                logger.warning(f"Schedule not found for update: {appointment_id}")
                return
            for name, value in fields.items():
                setattr(row, name, value)

        logger.info(f"Schedule updated: {appointment_id} ({', '.join(fields)})")

    async def delete(self, appointment_id: str) -> None:
        key = self._parse_id(appointment_id)
        if key is None:
            return

        async with self._session() as db:
            row = await db.get(Schedule, key)
            if row is not None:
                await db.delete(row)

        logger.info(f"Schedule deleted: {appointment_id}")

    async def query_by_owner(
        self,
        owner_id: str,
        date_range: Optional[DateRange] = None,
    ) -> list[Appointment]:
        stmt = select(Schedule).where(Schedule.owner_id == owner_id)
        if date_range is not None:
            stmt = stmt.where(
                Schedule.date >= date_range.start.isoformat(),
                Schedule.date <= date_range.end.isoformat(),
            )
        stmt = stmt.order_by(Schedule.date, Schedule.created_at, Schedule.id)

        async with self._session() as db:
            result = await db.execute(stmt)
            return [Appointment.from_row(row) for row in result.scalars().all()]


class InMemoryScheduleStore(ScheduleStore):
    """Dict-backed store for tests and local runs without a database."""

    def __init__(self):
        self._appointments: dict[str, Appointment] = {}

    async def add(
        self,
        owner_id: str,
        date: str,
        time: Optional[str],
        content: str,
    ) -> str:
        appointment_id = str(uuid.uuid4())
        self._appointments[appointment_id] = Appointment(
            id=appointment_id,
            owner_id=owner_id,
            date=date,
            time=time,
            content=content,
        )
        return appointment_id

    async def get(self, appointment_id: str) -> Optional[Appointment]:
        appointment = self._appointments.get(appointment_id)
        if appointment is None:
            return None
        # Hand out copies so callers cannot mutate stored records
        return Appointment(**vars(appointment))

    async def update(self, appointment_id: str, fields: dict) -> None:
        _check_fields(fields)
        appointment = self._appointments.get(appointment_id)
        if appointment is None:
            return
        for name, value in fields.items():
            setattr(appointment, name, value)

    async def delete(self, appointment_id: str) -> None:
        self._appointments.pop(appointment_id, None)

    async def query_by_owner(
        self,
        owner_id: str,
        date_range: Optional[DateRange] = None,
    ) -> list[Appointment]:
        owned = [
            Appointment(**vars(a))
            for a in self._appointments.values()
            if a.owner_id == owner_id
        ]
        if date_range is not None:
            start, end = date_range.start.isoformat(), date_range.end.isoformat()
            owned = [a for a in owned if start <= a.date <= end]
        # sorted() is stable, so insertion order breaks date ties
        return sorted(owned, key=lambda a: a.date)


# Singleton
_store: Optional[ScheduleStore] = None


def get_schedule_store() -> ScheduleStore:
    """Get singleton store bound to the application database."""
    global _store
    if _store is None:
        from app.infra.database import async_session_factory

        _store = SqlScheduleStore(async_session_factory)
    return _store
