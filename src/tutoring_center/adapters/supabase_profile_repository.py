"""Supabase-backed school, profile and invitation repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from tutoring_center.domain.errors import BackendError
from tutoring_center.domain.profiles import (
    Invitation,
    OwnerDetails,
    Profile,
    SchoolDetails,
)
from tutoring_center.domain.roles import Role
from tutoring_center.services.auth import ProfileRepository

_PROFILE_COLUMNS = "id, school_id, role, full_name, phone, avatar_url, is_active"
_INVITATION_COLUMNS = (
    "id, school_id, email, role, token, expires_at, accepted_at, invited_by, "
    "invited_by_profile:profiles!invitations_invited_by_fkey(full_name)"
)


@dataclass
class SupabaseProfileRepository(ProfileRepository):
    """Supabase implementation for schools, staff profiles and invitations."""

    client: Client

    def find_invitation(
        self, token: str, email: str, now: datetime
    ) -> Invitation | None:
        """Return an unexpired, unaccepted invitation for token and email."""
        response = (
            self.client.table("invitations")
            .select(_INVITATION_COLUMNS)
            .eq("token", token)
            .eq("email", email)
            .gt("expires_at", now.isoformat())
            .is_("accepted_at", "null")
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_invitation(response.data[0])

    def find_open_invitation(
        self, school_id: UUID, email: str, now: datetime
    ) -> Invitation | None:
        """Return an unexpired, unaccepted invitation for email in a school."""
        response = (
            self.client.table("invitations")
            .select(_INVITATION_COLUMNS)
            .eq("email", email)
            .eq("school_id", str(school_id))
            .is_("accepted_at", "null")
            .gt("expires_at", now.isoformat())
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_invitation(response.data[0])

    def create_invitation(  # noqa: PLR0913
        self,
        school_id: UUID,
        email: str,
        role: Role,
        invited_by: UUID,
        expires_at: datetime,
    ) -> Invitation:
        """Insert an invitation; the token column is filled by the database."""
        response = (
            self.client.table("invitations")
            .insert(
                {
                    "school_id": str(school_id),
                    "email": email,
                    "role": role.value,
                    "invited_by": str(invited_by),
                    "expires_at": expires_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise BackendError("Failed to create invitation")
        return _to_invitation(response.data[0])

    def list_invitations(self, school_id: UUID) -> list[Invitation]:
        response = (
            self.client.table("invitations")
            .select(_INVITATION_COLUMNS)
            .eq("school_id", str(school_id))
            .order("created_at", desc=True)
            .execute()
        )
        return [_to_invitation(row) for row in response.data or []]

    def create_school(self, school: SchoolDetails) -> UUID:
        """Create the school through a security-definer RPC."""
        data = self._rpc(
            "create_school_for_owner",
            {
                "p_school_name": school.name,
                "p_school_address": school.address,
                "p_school_phone": school.phone,
                "p_school_email": school.email,
            },
        )
        if not data:
            raise BackendError("School creation returned no id")
        return UUID(str(data))

    def create_owner_profile(
        self, user_id: UUID, school_id: UUID, owner: OwnerDetails
    ) -> None:
        self._rpc(
            "create_owner_profile_manual",
            {
                "p_user_id": str(user_id),
                "p_school_id": str(school_id),
                "p_full_name": owner.full_name,
                "p_phone": owner.phone,
            },
        )

    def update_profile(
        self, user_id: UUID, updates: dict[str, object]
    ) -> Profile | None:
        """Update a profile row and return it."""
        response = (
            self.client.table("profiles")
            .update(updates)
            .eq("id", str(user_id))
            .execute()
        )
        return _first_profile(response.data)

    def list_profiles(self, school_id: UUID) -> list[Profile]:
        """Return every profile of a school, newest first."""
        response = (
            self.client.table("profiles")
            .select(_PROFILE_COLUMNS)
            .eq("school_id", str(school_id))
            .order("created_at", desc=True)
            .execute()
        )
        return [Profile.model_validate(row) for row in response.data or []]

    def update_role(self, school_id: UUID, user_id: UUID, role: Role) -> Profile | None:
        """Change a profile's role within the school."""
        response = (
            self.client.table("profiles")
            .update({"role": role.value})
            .eq("id", str(user_id))
            .eq("school_id", str(school_id))
            .execute()
        )
        return _first_profile(response.data)

    def deactivate(self, school_id: UUID, user_id: UUID) -> Profile | None:
        """Mark a profile inactive within the school."""
        response = (
            self.client.table("profiles")
            .update({"is_active": False})
            .eq("id", str(user_id))
            .eq("school_id", str(school_id))
            .execute()
        )
        return _first_profile(response.data)

    def _rpc(self, name: str, params: dict[str, str]) -> object:
        try:
            response = self.client.rpc(name, params).execute()
        except APIError as exc:
            raise BackendError(exc.message or str(exc), code=exc.code) from exc
        return response.data


def _first_profile(rows: list[dict[str, object]] | None) -> Profile | None:
    if not rows:
        return None
    return Profile.model_validate(rows[0])


def _to_invitation(row: dict[str, object]) -> Invitation:
    inviter = row.get("invited_by_profile")
    return Invitation(
        id=UUID(str(row["id"])),
        school_id=UUID(str(row["school_id"])),
        email=str(row["email"]),
        role=Role(row["role"]),
        expires_at=_parse_timestamp(row["expires_at"]),
        token=str(row.get("token") or ""),
        invited_by=UUID(str(row["invited_by"])) if row.get("invited_by") else None,
        invited_by_name=inviter.get("full_name") if isinstance(inviter, dict) else None,
        accepted_at=(
            _parse_timestamp(row["accepted_at"]) if row.get("accepted_at") else None
        ),
    )


def _parse_timestamp(value: object) -> datetime:
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
