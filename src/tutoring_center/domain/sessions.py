"""Domain models for session validation."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from tutoring_center.domain.profiles import Profile, School


class CurrentUserSession(BaseModel):
    """Payload of the get_current_user_session RPC."""

    model_config = ConfigDict(extra="ignore")

    session_valid: bool = False
    authenticated: bool = False
    user: dict[str, Any] | None = None
    profile: Profile | None = None
    school: School | None = None
    permissions: dict[str, Any] | None = None
    needs_profile_setup: bool = False
    profile_inactive: bool = False
    error: str | None = None


@dataclass(frozen=True)
class SessionResult:
    """Outcome of one session validation."""

    valid: bool
    authenticated: bool
    user: dict[str, Any] | None = None
    profile: Profile | None = None
    school: School | None = None
    permissions: dict[str, Any] | None = None
    needs_profile_setup: bool = False
    profile_inactive: bool = False
    error: str | None = None
    retryable: bool = False

    @classmethod
    def signed_out(cls) -> "SessionResult":
        """Definitive answer: no auth session exists."""
        return cls(valid=False, authenticated=False)

    @classmethod
    def failed(cls, error: str, *, retryable: bool = True) -> "SessionResult":
        """Invalid result carrying an error message."""
        return cls(valid=False, authenticated=False, error=error, retryable=retryable)

    @property
    def is_definitive(self) -> bool:
        """True when no retry can change the answer."""
        return not self.retryable

    @property
    def timed_out(self) -> bool:
        """True when the error came from a timeout."""
        return self.error is not None and "timed out" in self.error.lower()


class SessionGate(StrEnum):
    """What the application should render for the current session."""

    LOADING = "loading"
    SIGNED_OUT = "signed_out"
    NEEDS_PROFILE_SETUP = "needs_profile_setup"
    INACTIVE = "inactive"
    ERROR = "error"
    READY = "ready"


class AuthEvent(StrEnum):
    """Auth-state transitions emitted by the backend."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    MFA_CHALLENGE_VERIFIED = "MFA_CHALLENGE_VERIFIED"


# Events that force a session refresh.
REFRESH_EVENTS = frozenset(
    {AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT, AuthEvent.TOKEN_REFRESHED}
)

# Events after which a cached session belongs to a different identity.
IDENTITY_EVENTS = frozenset({AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT})
