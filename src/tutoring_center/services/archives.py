"""Two-step archive workflow: staff request, managers approve or deny."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol
from uuid import UUID

from tutoring_center.domain.archives import (
    Approved,
    ArchiveRequest,
    Denied,
    EntityType,
    MonthGroup,
)
from tutoring_center.domain.errors import (
    ArchiveRequestNotFoundError,
    ArchiveRequestPendingError,
    ArchiveRequestResolvedError,
    AuthorizationError,
    EntityNotFoundError,
    ValidationError,
)
from tutoring_center.domain.profiles import Profile
from tutoring_center.domain.roles import MANAGEMENT_ROLES

_logger = logging.getLogger(__name__)


class ArchiveRepository(Protocol):
    """Persistence interface for archive requests and entity flags."""

    def find_pending_request(
        self, school_id: UUID, entity_type: EntityType, entity_id: str
    ) -> ArchiveRequest | None:
        """Return the pending request for an entity, if any."""

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

    def get_request(self, school_id: UUID, request_id: UUID) -> ArchiveRequest | None:
        """Return a request by id, if present."""

    def list_requests(self, school_id: UUID) -> list[ArchiveRequest]:
        """Return all requests of a school, newest first."""

    def list_pending_requests(self, school_id: UUID) -> list[ArchiveRequest]:
        """Return pending requests of a school."""

    def resolve_request(
        self, school_id: UUID, request_id: UUID, decision: Approved | Denied
    ) -> ArchiveRequest:
        """Move a pending request to its terminal state."""

    def is_entity_archived(
        self, school_id: UUID, entity_type: EntityType, entity_id: str
    ) -> bool | None:
        """Return the entity's archived flag, or None when it does not exist."""

    def set_entity_archived(
        self,
        school_id: UUID,
        entity_type: EntityType,
        entity_id: str,
        archived_date: datetime | None,
    ) -> bool:
        """Archive (date set) or unarchive (None) an entity; False if missing."""


@dataclass
class ArchiveService:
    """Service for archive requests."""

    repository: ArchiveRepository

    def create_archive_request(  # noqa: PLR0913
        self,
        actor: Profile,
        entity_type: EntityType | str,
        entity_id: str,
        entity_name: str,
        reason: str | None = None,
    ) -> ArchiveRequest:
        """File a pending archive request for an entity."""
        kind = _parse_entity_type(entity_type)
        if not entity_id or not entity_name.strip():
            raise ValidationError("Entity id and name are required")
        existing = self.repository.find_pending_request(
            actor.school_id, kind, entity_id
        )
        if existing is not None:
            raise ArchiveRequestPendingError
        request = self.repository.create_request(
            school_id=actor.school_id,
            entity_type=kind,
            entity_id=entity_id,
            entity_name=entity_name.strip(),
            reason=reason.strip() if reason and reason.strip() else None,
            requested_by=actor.id,
            requested_by_name=actor.full_name,
        )
        _logger.info(
            "Archive requested",
            extra={
                "entity_type": kind,
                "entity_id": entity_id,
                "request_id": request.id,
            },
        )
        return request

    def approve_archive_request(
        self, actor: Profile, request_id: UUID
    ) -> ArchiveRequest:
        """Archive the target entity and mark the request approved."""
        _require_management(actor, "approve archive requests")
        request = self._get_pending(actor, request_id)
        decided_at = datetime.now(tz=UTC)
        # Entity first: a failure here leaves the request pending and retryable.
        archived = self.repository.set_entity_archived(
            actor.school_id, request.entity_type, request.entity_id, decided_at
        )
        if not archived:
            raise EntityNotFoundError(
                f"{request.entity_type.capitalize()} {request.entity_id} not found"
            )
        approved = self.repository.resolve_request(
            actor.school_id,
            request.id,
            Approved(by=actor.id, by_name=actor.full_name, at=decided_at),
        )
        _logger.info("Archive approved", extra={"request_id": request.id})
        return approved

    def deny_archive_request(self, actor: Profile, request_id: UUID) -> ArchiveRequest:
        """Mark the request denied and unarchive the entity if it is archived."""
        _require_management(actor, "deny archive requests")
        request = self._get_pending(actor, request_id)
        denied = self.repository.resolve_request(
            actor.school_id,
            request.id,
            Denied(by=actor.id, by_name=actor.full_name, at=datetime.now(tz=UTC)),
        )
        archived = self.repository.is_entity_archived(
            actor.school_id, request.entity_type, request.entity_id
        )
        if archived:
            # Reverts the flag even when it was set outside this request.
            self.repository.set_entity_archived(
                actor.school_id, request.entity_type, request.entity_id, None
            )
            _logger.warning(
                "Denied archive request unarchived its entity",
                extra={"request_id": request.id, "entity_id": request.entity_id},
            )
        _logger.info("Archive denied", extra={"request_id": request.id})
        return denied

    def unarchive_entity(
        self, actor: Profile, entity_type: EntityType | str, entity_id: str
    ) -> None:
        """Bring an archived entity back into active views."""
        _require_management(actor, "unarchive records")
        kind = _parse_entity_type(entity_type)
        if not self.repository.set_entity_archived(
            actor.school_id, kind, entity_id, None
        ):
            raise EntityNotFoundError(f"{kind.capitalize()} {entity_id} not found")

    def get_pending_archive_entity_ids(
        self, actor: Profile
    ) -> dict[EntityType, set[str]]:
        """Return entity ids with an outstanding request, keyed by type."""
        pending: dict[EntityType, set[str]] = {kind: set() for kind in EntityType}
        for request in self.repository.list_pending_requests(actor.school_id):
            pending[request.entity_type].add(request.entity_id)
        return pending

    def list_archive_requests(self, actor: Profile) -> list[ArchiveRequest]:
        """Return every archive request of the school, newest first."""
        return self.repository.list_requests(actor.school_id)

    def list_archive_requests_by_month(self, actor: Profile) -> list[MonthGroup]:
        """Return archive requests grouped for the audit history view."""
        return group_requests_by_month(self.list_archive_requests(actor))

    def _get_pending(self, actor: Profile, request_id: UUID) -> ArchiveRequest:
        request = self.repository.get_request(actor.school_id, request_id)
        if request is None:
            raise ArchiveRequestNotFoundError("Archive request not found")
        if not request.is_pending:
            raise ArchiveRequestResolvedError(
                f"Archive request is already {request.status}"
            )
        return request


def group_requests_by_month(requests: Iterable[ArchiveRequest]) -> list[MonthGroup]:
    """Group requests by calendar month, newest month and request first."""
    groups: dict[date, list[ArchiveRequest]] = {}
    ordered = sorted(requests, key=lambda request: request.requested_date, reverse=True)
    for request in ordered:
        month = request.requested_date.date().replace(day=1)
        groups.setdefault(month, []).append(request)
    return [
        MonthGroup(month=month, requests=groups[month])
        for month in sorted(groups, reverse=True)
    ]


def _parse_entity_type(value: EntityType | str) -> EntityType:
    try:
        return EntityType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown entity type: {value}") from exc


def _require_management(actor: Profile, action: str) -> None:
    if actor.role not in MANAGEMENT_ROLES:
        raise AuthorizationError(f"Only owners and managers can {action}")
