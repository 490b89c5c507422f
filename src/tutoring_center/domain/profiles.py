"""Staff profile and invitation models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from tutoring_center.domain.roles import Role


class Profile(BaseModel):
    """Staff profile as returned by the identity backend."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: UUID
    school_id: UUID
    role: Role
    full_name: str
    phone: str | None = None
    avatar_url: str | None = None
    is_active: bool = True


class School(BaseModel):
    """Tenant the profile belongs to."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: UUID
    name: str
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    logo_url: str | None = None


@dataclass(frozen=True)
class Invitation:
    """Invitation that lets an email address join a school with a role."""

    id: UUID
    school_id: UUID
    email: str
    role: Role
    expires_at: datetime
    token: str = ""
    invited_by: UUID | None = None
    invited_by_name: str | None = None
    accepted_at: datetime | None = None

    def is_open(self, now: datetime) -> bool:
        """True while the invitation can still be used to sign up."""
        return self.accepted_at is None and self.expires_at > now


@dataclass(frozen=True)
class SentInvitation:
    """A created invitation and the sign-up link to share with the invitee."""

    invitation: Invitation
    link: str


@dataclass(frozen=True)
class SchoolDetails:
    name: str
    address: str
    phone: str
    email: str


@dataclass(frozen=True)
class OwnerDetails:
    email: str
    full_name: str
    phone: str


@dataclass(frozen=True)
class OwnerRegistration:
    """Result of registering a school; the owner must confirm their email."""

    school_id: UUID
    user: dict[str, Any]
    needs_email_confirmation: bool = True


@dataclass(frozen=True)
class CurrentUser:
    """Signed-in principal with its staff profile, if any."""

    id: str | None
    email: str | None
    profile: Profile | None
    school: School | None
