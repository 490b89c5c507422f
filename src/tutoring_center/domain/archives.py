"""Domain models for archive requests."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from uuid import UUID


class EntityType(StrEnum):
    """Kind of entity an archive request targets."""

    STUDENT = "student"
    TEACHER = "teacher"
    COURSE = "course"


class ArchiveStatus(StrEnum):
    """Stored status of an archive request."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


ENTITY_TABLES: dict[EntityType, str] = {
    EntityType.STUDENT: "students",
    EntityType.TEACHER: "teachers",
    EntityType.COURSE: "course_instances",
}


@dataclass(frozen=True)
class Pending:
    """Request awaiting a manager decision."""

    status = ArchiveStatus.PENDING


@dataclass(frozen=True)
class Approved:
    """Request approved; the entity has been archived."""

    by: UUID
    by_name: str | None
    at: datetime
    status = ArchiveStatus.APPROVED


@dataclass(frozen=True)
class Denied:
    """Request denied by a manager."""

    by: UUID
    by_name: str | None
    at: datetime
    status = ArchiveStatus.DENIED


ArchiveState = Pending | Approved | Denied


@dataclass(frozen=True)
class ArchiveRequest:
    """Request to hide an entity from active views."""

    id: UUID
    school_id: UUID
    entity_type: EntityType
    entity_id: str
    entity_name: str
    requested_by: UUID | None
    requested_by_name: str | None
    requested_date: datetime
    reason: str | None
    state: ArchiveState

    @property
    def status(self) -> ArchiveStatus:
        """Status derived from the request state."""
        return self.state.status

    @property
    def is_pending(self) -> bool:
        """True while no manager has decided on the request."""
        return isinstance(self.state, Pending)


@dataclass(frozen=True)
class MonthGroup:
    """Archive requests filed in one calendar month."""

    month: date
    requests: list[ArchiveRequest]

    @property
    def label(self) -> str:
        """Human readable month label, e.g. 'October 2026'."""
        return self.month.strftime("%B %Y")
