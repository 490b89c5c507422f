"""Staff management endpoints for owners and managers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Request, status

from tutoring_center.api.models import InvitationCreate, RoleUpdate
from tutoring_center.api.security import require_console_token

if TYPE_CHECKING:
    from tutoring_center.containers import AppContainer
    from tutoring_center.domain.profiles import Invitation

router = APIRouter(
    prefix="/users", tags=["users"], dependencies=[Depends(require_console_token)]
)


def serialize_invitation(invitation: Invitation) -> dict[str, Any]:
    """Render an invitation for API responses."""
    return {
        "id": str(invitation.id),
        "email": invitation.email,
        "role": invitation.role.value,
        "expires_at": invitation.expires_at.isoformat(),
        "accepted_at": invitation.accepted_at.isoformat()
        if invitation.accepted_at
        else None,
        "invited_by_name": invitation.invited_by_name,
    }


@router.get("")
async def list_users(request: Request) -> dict[str, object]:
    """Return the staff of the signed-in user's school."""
    container: AppContainer = request.app.state.container
    profiles = container.auth_service.list_school_users()
    return {"users": [profile.model_dump(mode="json") for profile in profiles]}


@router.get("/invitations")
async def list_invitations(request: Request) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    invitations = container.auth_service.list_invitations()
    return {"invitations": [serialize_invitation(item) for item in invitations]}


@router.post("/invitations", status_code=status.HTTP_201_CREATED)
async def send_invitation(
    payload: InvitationCreate, request: Request
) -> dict[str, Any]:
    """Invite a manager or receptionist; returns a link to share manually."""
    container: AppContainer = request.app.state.container
    sent = container.auth_service.send_invitation(payload.email, payload.role)
    return {"invitation": serialize_invitation(sent.invitation), "link": sent.link}


@router.patch("/{user_id}/role")
async def update_role(
    user_id: UUID, payload: RoleUpdate, request: Request
) -> dict[str, Any]:
    container: AppContainer = request.app.state.container
    profile = container.auth_service.update_user_role(user_id, payload.role)
    return profile.model_dump(mode="json")


@router.post("/{user_id}/deactivate")
async def deactivate(user_id: UUID, request: Request) -> dict[str, Any]:
    container: AppContainer = request.app.state.container
    profile = container.auth_service.deactivate_user(user_id)
    return profile.model_dump(mode="json")
