"""Auth context: sign-in flows, role checks and staff management."""

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol
from urllib.parse import urlencode
from uuid import UUID

from tutoring_center.domain import roles
from tutoring_center.domain.errors import (
    AuthorizationError,
    BackendError,
    InvalidInvitationError,
    InvitationPendingError,
    NotAuthenticatedError,
    UserNotFoundError,
    ValidationError,
)
from tutoring_center.domain.profiles import (
    CurrentUser,
    Invitation,
    OwnerDetails,
    OwnerRegistration,
    Profile,
    SchoolDetails,
    SentInvitation,
)
from tutoring_center.domain.roles import INVITABLE_ROLES, MANAGEMENT_ROLES, Role
from tutoring_center.domain.sessions import SessionGate
from tutoring_center.services.session_manager import SessionManager

_EDITABLE_PROFILE_FIELDS = frozenset({"full_name", "phone", "avatar_url"})
INVITATION_TTL = timedelta(days=7)

_logger = logging.getLogger(__name__)


class AuthGateway(Protocol):
    """Backend auth operations."""

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        """Sign in with email and password and return the user."""

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, object],
        redirect_to: str,
    ) -> dict[str, Any]:
        """Create an auth user and return it."""

    async def sign_out(self) -> None:
        """End the current auth session."""


class ProfileRepository(Protocol):
    """Persistence interface for schools, staff profiles and invitations."""

    def find_invitation(
        self, token: str, email: str, now: datetime
    ) -> Invitation | None:
        """Return an unexpired, unaccepted invitation for token and email."""

    def find_open_invitation(
        self, school_id: UUID, email: str, now: datetime
    ) -> Invitation | None:
        """Return an unexpired, unaccepted invitation for email in a school."""

    def create_invitation(  # noqa: PLR0913
        self,
        school_id: UUID,
        email: str,
        role: Role,
        invited_by: UUID,
        expires_at: datetime,
    ) -> Invitation:
        """Insert an invitation; the backend generates its token."""

    def list_invitations(self, school_id: UUID) -> list[Invitation]:
        """Return every invitation of a school, newest first."""

    def create_school(self, school: SchoolDetails) -> UUID:
        """Create a school for a registering owner and return its id."""

    def create_owner_profile(
        self, user_id: UUID, school_id: UUID, owner: OwnerDetails
    ) -> None:
        """Ensure the owner profile of a freshly registered school exists."""

    def update_profile(
        self, user_id: UUID, updates: dict[str, object]
    ) -> Profile | None:
        """Update a profile and return it, or None when it does not exist."""

    def list_profiles(self, school_id: UUID) -> list[Profile]:
        """Return every profile of a school, newest first."""

    def update_role(self, school_id: UUID, user_id: UUID, role: Role) -> Profile | None:
        """Change a profile's role within the school."""

    def deactivate(self, school_id: UUID, user_id: UUID) -> Profile | None:
        """Mark a profile inactive within the school."""


@dataclass
class AuthService:
    """Application-facing view of authentication state."""

    gateway: AuthGateway
    profile_repository: ProfileRepository
    session_manager: SessionManager
    site_url: str

    @property
    def user(self) -> CurrentUser | None:
        """The authenticated principal, or None when signed out."""
        data = self.session_manager.session_data
        if data is None or not data.authenticated:
            return None
        user = data.user or {}
        return CurrentUser(
            id=user.get("id"),
            email=user.get("email"),
            profile=data.profile,
            school=data.school,
        )

    @property
    def loading(self) -> bool:
        """True until the first session check completes."""
        return self.session_manager.loading

    def gate(self) -> SessionGate:
        """What the application should render right now."""
        return self.session_manager.gate()

    def has_role(self, wanted: Role | str | Iterable[Role | str]) -> bool:
        """Return True when the current profile has one of the roles."""
        return roles.has_role(self._current_role(), wanted)

    def can_access(self, resource: str) -> bool:
        """Return True when the current role may access the resource."""
        return roles.can_access(self._current_role(), resource)

    def require_profile(self) -> Profile:
        """Return the active staff profile or raise NotAuthenticatedError."""
        data = self.session_manager.session_data
        if data is None or not data.valid or data.profile is None:
            raise NotAuthenticatedError("Sign in with an active staff account")
        return data.profile

    async def refresh_session(self, force: bool = False) -> None:
        """Re-validate the session."""
        await self.session_manager.refresh_session(force=force)

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        """Sign in and reload the session."""
        user = await self.gateway.sign_in(email.strip(), password)
        await self._reload()
        return user

    def verify_invitation(self, token: str, email: str) -> Invitation | None:
        """Return the open invitation for token and email, if any."""
        return self.profile_repository.find_invitation(
            token, _normalize_email(email), datetime.now(tz=UTC)
        )

    async def sign_up(self, email: str, password: str, token: str) -> dict[str, Any]:
        """Sign up through an invitation and reload the session."""
        invitation = self.verify_invitation(token, email)
        if invitation is None:
            raise InvalidInvitationError
        user = await self.gateway.sign_up(
            _normalize_email(email),
            password,
            metadata={"invitation_token": token},
            redirect_to=self._callback_url(),
        )
        _logger.info(
            "Signed up invited user",
            extra={"school_id": str(invitation.school_id), "role": invitation.role},
        )
        await self._reload()
        return user

    async def create_school_and_owner(
        self, school: SchoolDetails, owner: OwnerDetails, password: str
    ) -> OwnerRegistration:
        """Register a new school and sign up its owner.

        The owner profile is created by a database trigger when the auth user
        is inserted; ``create_owner_profile`` is called afterwards as a backup
        and its failure is only logged. The owner must confirm their email
        before the profile becomes readable.
        """
        _require_fields("school", asdict(school))
        _require_fields("owner", asdict(owner))
        school = SchoolDetails(**{k: v.strip() for k, v in asdict(school).items()})
        owner = OwnerDetails(
            email=_normalize_email(owner.email),
            full_name=owner.full_name.strip(),
            phone=owner.phone.strip(),
        )
        school_id = self.profile_repository.create_school(school)
        user = await self.gateway.sign_up(
            owner.email,
            password,
            metadata={
                "is_owner_signup": "true",
                "school_id": str(school_id),
                "full_name": owner.full_name,
                "phone": owner.phone,
            },
            redirect_to=self._callback_url(),
        )
        user_id = user.get("id")
        if user_id:
            try:
                self.profile_repository.create_owner_profile(
                    _parse_uuid(user_id, "user id"), school_id, owner
                )
            except BackendError as exc:
                _logger.warning("Owner profile backup creation failed: %s", exc)
        _logger.info("Registered school", extra={"school_id": str(school_id)})
        return OwnerRegistration(school_id=school_id, user=user)

    async def sign_out(self) -> None:
        """Sign out and drop the cached session."""
        await self.gateway.sign_out()
        await self._reload()

    async def update_profile(self, updates: dict[str, object]) -> Profile:
        """Update editable fields of the signed-in user's profile."""
        user = self.user
        if user is None or user.id is None:
            raise NotAuthenticatedError("No authenticated user")
        unknown = set(updates) - _EDITABLE_PROFILE_FIELDS
        if unknown:
            raise ValidationError(
                f"Profile fields cannot be changed: {', '.join(sorted(unknown))}"
            )
        profile = self.profile_repository.update_profile(
            _parse_uuid(user.id, "user id"), updates
        )
        if profile is None:
            raise UserNotFoundError("Profile not found")
        await self._reload()
        return profile

    def send_invitation(self, email: str, role: Role | str) -> SentInvitation:
        """Invite an email address to join the current school."""
        actor = self._require_management("send invitations")
        try:
            invited_role = Role(role)
        except ValueError as exc:
            raise ValidationError(f"Unknown role: {role}") from exc
        if invited_role not in INVITABLE_ROLES:
            raise ValidationError('Invalid role. Must be "manager" or "receptionist"')
        normalized = _normalize_email(email)
        if not normalized:
            raise ValidationError("Email is required")
        now = datetime.now(tz=UTC)
        existing = self.profile_repository.find_open_invitation(
            actor.school_id, normalized, now
        )
        if existing is not None:
            raise InvitationPendingError
        invitation = self.profile_repository.create_invitation(
            school_id=actor.school_id,
            email=normalized,
            role=invited_role,
            invited_by=actor.id,
            expires_at=now + INVITATION_TTL,
        )
        _logger.info(
            "Invitation sent",
            extra={"invitation_id": str(invitation.id), "role": invited_role},
        )
        query = urlencode({"token": invitation.token, "email": normalized})
        return SentInvitation(
            invitation=invitation,
            link=f"{self.site_url.rstrip('/')}/auth/signup?{query}",
        )

    def list_invitations(self) -> list[Invitation]:
        """Return the invitations of the current school."""
        actor = self.require_profile()
        return self.profile_repository.list_invitations(actor.school_id)

    def list_school_users(self) -> list[Profile]:
        """Return the staff of the current school."""
        actor = self._require_management("view staff")
        return self.profile_repository.list_profiles(actor.school_id)

    def update_user_role(self, user_id: UUID, role: Role | str) -> Profile:
        """Change another staff member's role."""
        actor = self._require_management("update user roles")
        try:
            new_role = Role(role)
        except ValueError as exc:
            raise ValidationError(f"Unknown role: {role}") from exc
        profile = self.profile_repository.update_role(
            actor.school_id, user_id, new_role
        )
        if profile is None:
            raise UserNotFoundError(f"User {user_id} not found")
        _logger.info("Role changed", extra={"user_id": str(user_id), "role": new_role})
        return profile

    def deactivate_user(self, user_id: UUID) -> Profile:
        """Deactivate a staff member of the current school."""
        actor = self._require_management("deactivate users")
        profile = self.profile_repository.deactivate(actor.school_id, user_id)
        if profile is None:
            raise UserNotFoundError(f"User {user_id} not found")
        _logger.info("User deactivated", extra={"user_id": str(user_id)})
        return profile

    def _current_role(self) -> Role | None:
        data = self.session_manager.session_data
        if data is None or data.profile is None:
            return None
        return data.profile.role

    def _require_management(self, action: str) -> Profile:
        actor = self.require_profile()
        if actor.role not in MANAGEMENT_ROLES:
            raise AuthorizationError(f"Only owners and managers can {action}")
        return actor

    def _callback_url(self) -> str:
        return f"{self.site_url.rstrip('/')}/auth/callback"

    async def _reload(self) -> None:
        self.session_manager.validator.clear_cache()
        await self.session_manager.refresh_session(force=True)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _parse_uuid(value: object, label: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError(f"Invalid {label}: {value}") from exc


def _require_fields(label: str, values: dict[str, str]) -> None:
    missing = [name for name, value in values.items() if not value.strip()]
    if missing:
        raise ValidationError(f"Missing required {label} fields: {', '.join(missing)}")
