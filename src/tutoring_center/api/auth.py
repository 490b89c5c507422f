"""Session and account endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, Depends, Request, status

from tutoring_center.api.models import (
    SchoolRegistrationRequest,
    SignInRequest,
    SignUpRequest,
    VisibilityChange,
)
from tutoring_center.api.security import require_console_token
from tutoring_center.api.users import serialize_invitation
from tutoring_center.domain.profiles import OwnerDetails, SchoolDetails

if TYPE_CHECKING:
    from tutoring_center.containers import AppContainer
    from tutoring_center.services.auth import AuthService

router = APIRouter(
    prefix="/auth", tags=["auth"], dependencies=[Depends(require_console_token)]
)


def _auth_service(request: Request) -> AuthService:
    container: AppContainer = request.app.state.container
    return container.auth_service


def session_summary(auth: AuthService) -> dict[str, Any]:
    """Serialize what the client needs to render the current session."""
    user = auth.user
    data = auth.session_manager.session_data
    return {
        "gate": auth.gate(),
        "loading": auth.loading,
        "validating": auth.session_manager.is_validating,
        "user": None
        if user is None
        else {
            "id": user.id,
            "email": user.email,
            "profile": user.profile.model_dump(mode="json") if user.profile else None,
            "school": user.school.model_dump(mode="json") if user.school else None,
        },
        "permissions": data.permissions if data else None,
        "error": data.error if data else None,
    }


@router.get("/session")
async def get_session(request: Request) -> dict[str, Any]:
    """Return the session gate and the signed-in user."""
    return session_summary(_auth_service(request))


@router.post("/session/refresh")
async def refresh_session(request: Request, force: bool = False) -> dict[str, Any]:
    """Re-validate the session; non-forced refreshes may be debounced."""
    auth = _auth_service(request)
    await auth.refresh_session(force=force)
    return session_summary(auth)


@router.post("/focus")
async def focus(payload: VisibilityChange, request: Request) -> dict[str, bool]:
    """Report that the client window regained focus or visibility."""
    auth = _auth_service(request)
    task = auth.session_manager.on_visibility_change(payload.hidden)
    return {"scheduled": task is not None}


@router.post("/sign-in")
async def sign_in(payload: SignInRequest, request: Request) -> dict[str, Any]:
    auth = _auth_service(request)
    await auth.sign_in(payload.email, payload.password)
    return session_summary(auth)


@router.post("/sign-up")
async def sign_up(payload: SignUpRequest, request: Request) -> dict[str, Any]:
    """Create an account from an invitation."""
    auth = _auth_service(request)
    user = await auth.sign_up(payload.email, payload.password, payload.token)
    return {"user": user, "session": session_summary(auth)}


@router.get("/invitations/verify")
async def verify_invitation(token: str, email: str, request: Request) -> dict[str, Any]:
    """Check an invitation link before showing the sign-up form."""
    invitation = _auth_service(request).verify_invitation(token, email)
    return {
        "valid": invitation is not None,
        "invitation": serialize_invitation(invitation) if invitation else None,
    }


@router.post("/register-school", status_code=status.HTTP_201_CREATED)
async def register_school(
    payload: SchoolRegistrationRequest, request: Request
) -> dict[str, Any]:
    """Create a school and its owner account."""
    registration = await _auth_service(request).create_school_and_owner(
        SchoolDetails(
            name=payload.school_name,
            address=payload.school_address,
            phone=payload.school_phone,
            email=payload.school_email,
        ),
        OwnerDetails(
            email=payload.email, full_name=payload.full_name, phone=payload.phone
        ),
        payload.password,
    )
    return {
        "school_id": str(registration.school_id),
        "user": registration.user,
        "needs_email_confirmation": registration.needs_email_confirmation,
    }


@router.post("/sign-out")
async def sign_out(request: Request) -> dict[str, Any]:
    auth = _auth_service(request)
    await auth.sign_out()
    return session_summary(auth)


@router.patch("/profile")
async def update_profile(
    request: Request, updates: dict[str, Any] = Body()
) -> dict[str, Any]:
    """Update the signed-in user's own profile fields."""
    profile = await _auth_service(request).update_profile(updates)
    return profile.model_dump(mode="json")


@router.get("/access/{resource}")
async def can_access(resource: str, request: Request) -> dict[str, object]:
    """Return whether the current role may open a resource."""
    return {
        "resource": resource,
        "allowed": _auth_service(request).can_access(resource),
    }
