"""Supabase-backed archive request repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from tutoring_center.domain.archives import (
    ENTITY_TABLES,
    Approved,
    ArchiveRequest,
    ArchiveState,
    ArchiveStatus,
    Denied,
    EntityType,
    Pending,
)
from tutoring_center.domain.errors import (
    ArchiveRequestPendingError,
    ArchiveRequestResolvedError,
    BackendError,
)
from tutoring_center.services.archives import ArchiveRepository

_COLUMNS = (
    "id, school_id, entity_type, entity_id, entity_name, reason, requested_by, "
    "requested_by_name, status, approved_by, approved_by_name, approved_date, "
    "created_at"
)
# Postgres unique_violation, raised by the one-pending-per-entity index.
_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseArchiveRepository(ArchiveRepository):
    """Supabase implementation for archive requests."""

    client: Client

    def find_pending_request(
        self, school_id: UUID, entity_type: EntityType, entity_id: str
    ) -> ArchiveRequest | None:
        """Return the pending request for an entity, if any."""
        response = (
            self.client.table("archive_requests")
            .select(_COLUMNS)
            .eq("school_id", str(school_id))
            .eq("entity_type", entity_type.value)
            .eq("entity_id", entity_id)
            .eq("status", ArchiveStatus.PENDING.value)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_request(response.data[0])

    def create_request(  # noqa: PLR0913
        self,
        school_id: UUID,
        entity_type: EntityType,
        entity_id: str,
        entity_name: str,
        reason: str | None,
        requested_by: UUID,
        requested_by_name: str,
    ) -> ArchiveRequest:
        """Insert a pending request and return it."""
        try:
            response = (
                self.client.table("archive_requests")
                .insert(
                    {
                        "school_id": str(school_id),
                        "entity_type": entity_type.value,
                        "entity_id": entity_id,
                        "entity_name": entity_name,
                        "reason": reason,
                        "requested_by": str(requested_by),
                        "requested_by_name": requested_by_name,
                        "status": ArchiveStatus.PENDING.value,
                    }
                )
                .execute()
            )
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise ArchiveRequestPendingError from exc
            raise
        if not response.data:
            raise BackendError("Failed to create archive request")
        return _to_request(response.data[0])

    def get_request(self, school_id: UUID, request_id: UUID) -> ArchiveRequest | None:
        """Return a request by id, if present."""
        response = (
            self.client.table("archive_requests")
            .select(_COLUMNS)
            .eq("id", str(request_id))
            .eq("school_id", str(school_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_request(response.data[0])

    def list_requests(self, school_id: UUID) -> list[ArchiveRequest]:
        """Return all requests of a school, newest first."""
        response = (
            self.client.table("archive_requests")
            .select(_COLUMNS)
            .eq("school_id", str(school_id))
            .order("created_at", desc=True)
            .execute()
        )
        return [_to_request(row) for row in response.data or []]

    def list_pending_requests(self, school_id: UUID) -> list[ArchiveRequest]:
        """Return pending requests of a school."""
        response = (
            self.client.table("archive_requests")
            .select(_COLUMNS)
            .eq("school_id", str(school_id))
            .eq("status", ArchiveStatus.PENDING.value)
            .execute()
        )
        return [_to_request(row) for row in response.data or []]

    def resolve_request(
        self, school_id: UUID, request_id: UUID, decision: Approved | Denied
    ) -> ArchiveRequest:
        """Move a pending request to approved or denied."""
        response = (
            self.client.table("archive_requests")
            .update(
                {
                    "status": decision.status.value,
                    "approved_by": str(decision.by),
                    "approved_by_name": decision.by_name,
                    "approved_date": decision.at.isoformat(),
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", str(request_id))
            .eq("school_id", str(school_id))
            .eq("status", ArchiveStatus.PENDING.value)
            .execute()
        )
        if not response.data:
            raise ArchiveRequestResolvedError("Archive request is no longer pending")
        return _to_request(response.data[0])

    def is_entity_archived(
        self, school_id: UUID, entity_type: EntityType, entity_id: str
    ) -> bool | None:
        """Return the entity's archived flag, or None when it does not exist."""
        response = (
            self.client.table(ENTITY_TABLES[entity_type])
            .select("id, archived")
            .eq("id", entity_id)
            .eq("school_id", str(school_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return bool(response.data[0].get("archived"))

    def set_entity_archived(
        self,
        school_id: UUID,
        entity_type: EntityType,
        entity_id: str,
        archived_date: datetime | None,
    ) -> bool:
        """Archive or unarchive an entity row; return False when it is missing."""
        response = (
            self.client.table(ENTITY_TABLES[entity_type])
            .update(
                {
                    "archived": archived_date is not None,
                    "archived_date": archived_date.isoformat()
                    if archived_date
                    else None,
                }
            )
            .eq("id", entity_id)
            .eq("school_id", str(school_id))
            .execute()
        )
        return bool(response.data)


def _to_request(row: dict[str, object]) -> ArchiveRequest:
    return ArchiveRequest(
        id=UUID(str(row["id"])),
        school_id=UUID(str(row["school_id"])),
        entity_type=EntityType(row["entity_type"]),
        entity_id=str(row["entity_id"]),
        entity_name=str(row["entity_name"]),
        requested_by=(
            UUID(str(row["requested_by"])) if row.get("requested_by") else None
        ),
        requested_by_name=row.get("requested_by_name"),
        requested_date=_parse_timestamp(row["created_at"]),
        reason=row.get("reason"),
        state=_to_state(row),
    )


def _to_state(row: dict[str, object]) -> ArchiveState:
    status = ArchiveStatus(row["status"])
    if status is ArchiveStatus.PENDING:
        return Pending()
    decision = Approved if status is ArchiveStatus.APPROVED else Denied
    return decision(
        by=UUID(str(row["approved_by"])),
        by_name=row.get("approved_by_name"),
        at=_parse_timestamp(row["approved_date"]),
    )


def _parse_timestamp(value: object) -> datetime:
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
