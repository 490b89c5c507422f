"""Shared test fixtures."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import pytest

from tutoring_center.config import Settings
from tutoring_center.containers import AppContainer
from tutoring_center.domain.archives import (
    Approved,
    ArchiveRequest,
    Denied,
    EntityType,
    Pending,
)
from tutoring_center.domain.errors import (
    ArchiveRequestPendingError,
    ArchiveRequestResolvedError,
    AuthenticationError,
    BackendError,
)
from tutoring_center.domain.profiles import (
    Invitation,
    OwnerDetails,
    Profile,
    School,
    SchoolDetails,
)
from tutoring_center.domain.roles import Role
from tutoring_center.domain.sessions import CurrentUserSession
from tutoring_center.services.archives import ArchiveRepository, ArchiveService
from tutoring_center.services.auth import AuthService, ProfileRepository
from tutoring_center.services.session_manager import RetryPolicy, SessionManager
from tutoring_center.services.session_validator import SessionValidator

SCHOOL_ID = UUID("5c1f0d7e-2a51-4b7e-9d55-0e6f3a1b2c3d")


def make_profile(
    role: Role = Role.OWNER,
    *,
    full_name: str = "Amina Benali",
    is_active: bool = True,
    school_id: UUID = SCHOOL_ID,
) -> Profile:
    return Profile(
        id=uuid4(),
        school_id=school_id,
        role=role,
        full_name=full_name,
        is_active=is_active,
    )


def session_payload(profile: Profile) -> CurrentUserSession:
    """RPC payload for a signed-in user with an active profile."""
    return CurrentUserSession(
        session_valid=True,
        authenticated=True,
        user={"id": str(profile.id), "email": f"{profile.role}@example.com"},
        profile=profile,
        school=School(id=profile.school_id, name="Nour Academy"),
        permissions={"role": profile.role.value},
        profile_inactive=not profile.is_active,
    )


@dataclass
class FakeClock:
    """Monotonic clock that only moves when told to."""

    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeSleep:
    """Records requested delays without waiting."""

    calls: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


@dataclass
class FakeIdentityGateway:
    """Identity backend double with call counters and failure modes."""

    session: dict[str, Any] | None = None
    payload: CurrentUserSession = field(default_factory=CurrentUserSession)
    rpc_errors: list[Exception] = field(default_factory=list)
    session_error: Exception | None = None
    delay: float = 0.0
    rpc_delay: float = 0.0
    accounts: dict[str, tuple[str, Profile]] = field(default_factory=dict)
    session_calls: int = 0
    rpc_calls: int = 0
    sign_ups: list[dict[str, object]] = field(default_factory=list)
    callbacks: list[Callable[[str], None]] = field(default_factory=list)

    def sign_in_as(self, profile: Profile) -> None:
        self.session = {"user": {"id": str(profile.id)}}
        self.payload = session_payload(profile)

    async def get_session(self) -> dict[str, Any] | None:
        self.session_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.session_error is not None:
            raise self.session_error
        return self.session

    async def get_current_user_session(self) -> CurrentUserSession:
        self.rpc_calls += 1
        payload = self.payload
        if self.rpc_delay:
            await asyncio.sleep(self.rpc_delay)
        if self.rpc_errors:
            raise self.rpc_errors.pop(0)
        return payload

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise AuthenticationError("Invalid login credentials")
        self.sign_in_as(account[1])
        return {"id": str(account[1].id), "email": email}

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, object],
        redirect_to: str,
    ) -> dict[str, Any]:
        self.sign_ups.append(
            {"email": email, "metadata": metadata, "redirect_to": redirect_to}
        )
        return {"id": str(uuid4()), "email": email}

    async def sign_out(self) -> None:
        self.session = None
        self.payload = CurrentUserSession()

    def on_auth_state_change(
        self, callback: Callable[[str], None]
    ) -> Callable[[], None]:
        self.callbacks.append(callback)
        return lambda: self.callbacks.remove(callback)

    def emit(self, event: str) -> None:
        for callback in list(self.callbacks):
            callback(event)


@dataclass
class InMemoryProfileRepository(ProfileRepository):
    """In-memory profile and invitation repository for tests."""

    profiles: dict[UUID, Profile] = field(default_factory=dict)
    invitations: dict[str, Invitation] = field(default_factory=dict)
    schools: list[tuple[UUID, SchoolDetails]] = field(default_factory=list)
    owner_profiles: list[tuple[UUID, UUID, OwnerDetails]] = field(default_factory=list)
    owner_profile_error: BackendError | None = None

    def add(self, profile: Profile) -> Profile:
        self.profiles[profile.id] = profile
        return profile

    def find_invitation(
        self, token: str, email: str, now: datetime
    ) -> Invitation | None:
        invitation = self.invitations.get(token)
        if invitation is None or invitation.email != email:
            return None
        return invitation if invitation.is_open(now) else None

    def find_open_invitation(
        self, school_id: UUID, email: str, now: datetime
    ) -> Invitation | None:
        for invitation in self.invitations.values():
            if (
                invitation.school_id == school_id
                and invitation.email == email
                and invitation.is_open(now)
            ):
                return invitation
        return None

    def create_invitation(  # noqa: PLR0913
        self,
        school_id: UUID,
        email: str,
        role: Role,
        invited_by: UUID,
        expires_at: datetime,
    ) -> Invitation:
        invitation = Invitation(
            id=uuid4(),
            school_id=school_id,
            email=email,
            role=role,
            expires_at=expires_at,
            token=uuid4().hex,
            invited_by=invited_by,
        )
        self.invitations[invitation.token] = invitation
        return invitation

    def list_invitations(self, school_id: UUID) -> list[Invitation]:
        rows = [i for i in self.invitations.values() if i.school_id == school_id]
        return list(reversed(rows))

    def create_school(self, school: SchoolDetails) -> UUID:
        school_id = uuid4()
        self.schools.append((school_id, school))
        return school_id

    def create_owner_profile(
        self, user_id: UUID, school_id: UUID, owner: OwnerDetails
    ) -> None:
        if self.owner_profile_error is not None:
            raise self.owner_profile_error
        self.owner_profiles.append((user_id, school_id, owner))

    def update_profile(
        self, user_id: UUID, updates: dict[str, object]
    ) -> Profile | None:
        profile = self.profiles.get(user_id)
        if profile is None:
            return None
        return self.add(profile.model_copy(update=updates))

    def list_profiles(self, school_id: UUID) -> list[Profile]:
        return [p for p in self.profiles.values() if p.school_id == school_id]

    def update_role(self, school_id: UUID, user_id: UUID, role: Role) -> Profile | None:
        profile = self.profiles.get(user_id)
        if profile is None or profile.school_id != school_id:
            return None
        return self.add(profile.model_copy(update={"role": role}))

    def deactivate(self, school_id: UUID, user_id: UUID) -> Profile | None:
        profile = self.profiles.get(user_id)
        if profile is None or profile.school_id != school_id:
            return None
        return self.add(profile.model_copy(update={"is_active": False}))


@dataclass
class InMemoryArchiveRepository(ArchiveRepository):
    """In-memory archive requests and entity rows for tests."""

    requests: dict[UUID, ArchiveRequest] = field(default_factory=dict)
    entities: dict[tuple[UUID, EntityType, str], datetime | None] = field(
        default_factory=dict
    )
    inserts: int = 0

    def add_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        archived_date: datetime | None = None,
        school_id: UUID = SCHOOL_ID,
    ) -> None:
        self.entities[(school_id, entity_type, entity_id)] = archived_date

    def archived_date(
        self, entity_type: EntityType, entity_id: str, school_id: UUID = SCHOOL_ID
    ) -> datetime | None:
        return self.entities[(school_id, entity_type, entity_id)]

    def find_pending_request(
        self, school_id: UUID, entity_type: EntityType, entity_id: str
    ) -> ArchiveRequest | None:
        for request in self.requests.values():
            if (
                request.school_id == school_id
                and request.entity_type == entity_type
                and request.entity_id == entity_id
                and request.is_pending
            ):
                return request
        return None

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
        if self.find_pending_request(school_id, entity_type, entity_id):
            raise ArchiveRequestPendingError
        self.inserts += 1
        request = ArchiveRequest(
            id=uuid4(),
            school_id=school_id,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            requested_by=requested_by,
            requested_by_name=requested_by_name,
            requested_date=datetime.now(tz=UTC),
            reason=reason,
            state=Pending(),
        )
        self.requests[request.id] = request
        return request

    def get_request(self, school_id: UUID, request_id: UUID) -> ArchiveRequest | None:
        request = self.requests.get(request_id)
        if request is None or request.school_id != school_id:
            return None
        return request

    def list_requests(self, school_id: UUID) -> list[ArchiveRequest]:
        rows = [r for r in self.requests.values() if r.school_id == school_id]
        return sorted(rows, key=lambda r: r.requested_date, reverse=True)

    def list_pending_requests(self, school_id: UUID) -> list[ArchiveRequest]:
        return [r for r in self.list_requests(school_id) if r.is_pending]

    def resolve_request(
        self, school_id: UUID, request_id: UUID, decision: Approved | Denied
    ) -> ArchiveRequest:
        request = self.get_request(school_id, request_id)
        if request is None or not request.is_pending:
            raise ArchiveRequestResolvedError("Archive request is no longer pending")
        resolved = replace(request, state=decision)
        self.requests[request_id] = resolved
        return resolved

    def is_entity_archived(
        self, school_id: UUID, entity_type: EntityType, entity_id: str
    ) -> bool | None:
        key = (school_id, entity_type, entity_id)
        if key not in self.entities:
            return None
        return self.entities[key] is not None

    def set_entity_archived(
        self,
        school_id: UUID,
        entity_type: EntityType,
        entity_id: str,
        archived_date: datetime | None,
    ) -> bool:
        key = (school_id, entity_type, entity_id)
        if key not in self.entities:
            return False
        self.entities[key] = archived_date
        return True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_anon_key="header.payload.signature",
        console_token="console-token",
        site_url="https://app.example.com",
    )


@pytest.fixture
def identity_gateway() -> FakeIdentityGateway:
    return FakeIdentityGateway()


@pytest.fixture
def profile_repository() -> InMemoryProfileRepository:
    return InMemoryProfileRepository()


@pytest.fixture
def archive_repository() -> InMemoryArchiveRepository:
    return InMemoryArchiveRepository()


@pytest.fixture
def container(
    settings: Settings,
    identity_gateway: FakeIdentityGateway,
    profile_repository: InMemoryProfileRepository,
    archive_repository: InMemoryArchiveRepository,
) -> AppContainer:
    validator = SessionValidator(gateway=identity_gateway)
    session_manager = SessionManager(
        validator=validator,
        retry_policy=RetryPolicy(max_retries=settings.session_max_retries),
        sleep=FakeSleep(),
    )
    auth_service = AuthService(
        gateway=identity_gateway,
        profile_repository=profile_repository,
        session_manager=session_manager,
        site_url=settings.site_url,
    )

    async def close_resources() -> None:
        session_manager.close()

    return AppContainer(
        settings=settings,
        auth_events=identity_gateway,
        session_manager=session_manager,
        auth_service=auth_service,
        archive_service=ArchiveService(archive_repository),
        close_resources=close_resources,
    )
