"""Archive request endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Request, status

from tutoring_center.api.models import ArchiveRequestCreate
from tutoring_center.api.security import require_console_token
from tutoring_center.domain.archives import Approved, ArchiveRequest, Denied

if TYPE_CHECKING:
    from tutoring_center.containers import AppContainer

router = APIRouter(tags=["archives"], dependencies=[Depends(require_console_token)])


@router.get("/archive-requests")
async def list_archive_requests(request: Request) -> dict[str, object]:
    """Return the archive audit history grouped by month."""
    container: AppContainer = request.app.state.container
    actor = container.auth_service.require_profile()
    groups = container.archive_service.list_archive_requests_by_month(actor)
    return {
        "months": [
            {
                "month": group.month.isoformat(),
                "label": group.label,
                "requests": [_serialize(item) for item in group.requests],
            }
            for group in groups
        ]
    }


@router.get("/archive-requests/pending")
async def pending_entity_ids(request: Request) -> dict[str, list[str]]:
    """Return ids of entities with an outstanding request, by type."""
    container: AppContainer = request.app.state.container
    actor = container.auth_service.require_profile()
    pending = container.archive_service.get_pending_archive_entity_ids(actor)
    return {kind.value: sorted(ids) for kind, ids in pending.items()}


@router.post("/archive-requests", status_code=status.HTTP_201_CREATED)
async def create_archive_request(
    payload: ArchiveRequestCreate, request: Request
) -> dict[str, Any]:
    """File a pending archive request."""
    container: AppContainer = request.app.state.container
    actor = container.auth_service.require_profile()
    created = container.archive_service.create_archive_request(
        actor,
        payload.entity_type,
        payload.entity_id,
        payload.entity_name,
        payload.reason,
    )
    return _serialize(created)


@router.post("/archive-requests/{request_id}/approve")
async def approve_archive_request(
    request_id: UUID, request: Request
) -> dict[str, Any]:
    container: AppContainer = request.app.state.container
    actor = container.auth_service.require_profile()
    approved = container.archive_service.approve_archive_request(actor, request_id)
    return _serialize(approved)


@router.post("/archive-requests/{request_id}/deny")
async def deny_archive_request(request_id: UUID, request: Request) -> dict[str, Any]:
    container: AppContainer = request.app.state.container
    actor = container.auth_service.require_profile()
    denied = container.archive_service.deny_archive_request(actor, request_id)
    return _serialize(denied)


@router.post(
    "/archives/{entity_type}/{entity_id}/unarchive",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def unarchive_entity(entity_type: str, entity_id: str, request: Request) -> None:
    """Restore an archived entity."""
    container: AppContainer = request.app.state.container
    actor = container.auth_service.require_profile()
    container.archive_service.unarchive_entity(actor, entity_type, entity_id)


def _serialize(item: ArchiveRequest) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": str(item.id),
        "entity_type": item.entity_type.value,
        "entity_id": item.entity_id,
        "entity_name": item.entity_name,
        "reason": item.reason,
        "requested_by": str(item.requested_by) if item.requested_by else None,
        "requested_by_name": item.requested_by_name,
        "requested_date": item.requested_date.isoformat(),
        "status": item.status.value,
        "approved_by": None,
        "approved_by_name": None,
        "approved_date": None,
    }
    if isinstance(item.state, Approved | Denied):
        payload["approved_by"] = str(item.state.by)
        payload["approved_by_name"] = item.state.by_name
        payload["approved_date"] = item.state.at.isoformat()
    return payload
