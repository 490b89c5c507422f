"""Request payloads accepted by the HTTP API."""

from pydantic import BaseModel, Field

from tutoring_center.domain.archives import EntityType
from tutoring_center.domain.roles import Role


class SignInRequest(BaseModel):
    """Email and password credentials."""

    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class SignUpRequest(BaseModel):
    """Credentials plus the invitation token that authorizes the sign-up."""

    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    token: str = Field(min_length=1)


class ArchiveRequestCreate(BaseModel):
    entity_type: EntityType
    entity_id: str = Field(min_length=1)
    entity_name: str = Field(min_length=1)
    reason: str | None = None


class RoleUpdate(BaseModel):
    role: Role


class VisibilityChange(BaseModel):
    """Window focus signal from the client."""

    hidden: bool = False


class InvitationCreate(BaseModel):
    email: str = Field(min_length=3)
    role: Role


class SchoolRegistrationRequest(BaseModel):
    """A new school and the owner account that manages it."""

    school_name: str
    school_address: str
    school_phone: str
    school_email: str
    email: str = Field(min_length=3)
    full_name: str
    phone: str
    password: str = Field(min_length=6)
