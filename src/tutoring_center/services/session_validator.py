"""Session validation with caching and request deduplication."""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, TypeVar

from tutoring_center.domain.errors import BackendError
from tutoring_center.domain.sessions import CurrentUserSession, SessionResult
from tutoring_center.services.cache import TimestampedCache

T = TypeVar("T")

_logger = logging.getLogger(__name__)


class IdentityGateway(Protocol):
    """Backend calls needed to answer "who is signed in"."""

    async def get_session(self) -> dict[str, Any] | None:
        """Return the current auth session, or None when signed out."""

    async def get_current_user_session(self) -> CurrentUserSession:
        """Return profile, school and permissions in one round trip."""


@dataclass
class SessionValidator:
    """Validate the current session against the identity backend.

    Results are cached with two TTLs: ``ttl_seconds`` for normal reads and
    ``force_ttl_seconds`` which still applies when the caller skips the cache.
    Concurrent callers share a single in-flight validation.
    """

    gateway: IdentityGateway
    cache: TimestampedCache[SessionResult] = field(default_factory=TimestampedCache)
    ttl_seconds: float = 30.0
    force_ttl_seconds: float = 1.0
    timeout_seconds: float = 20.0
    _pending: "asyncio.Task[SessionResult] | None" = field(
        default=None, init=False, repr=False
    )
    _generation: int = field(default=0, init=False, repr=False)

    async def validate(self, skip_cache: bool = False) -> SessionResult:
        """Return the current session, hitting the backend only when needed."""
        max_age = self.force_ttl_seconds if skip_cache else self.ttl_seconds
        cached = self.cache.get(max_age)
        if cached is not None:
            return cached

        if self._pending is None:
            task = asyncio.ensure_future(self._validate(self._generation))
            task.add_done_callback(self._release)
            self._pending = task
        return await asyncio.shield(self._pending)

    def clear_cache(self) -> None:
        """Forget the cached session and detach any in-flight validation.

        A validation started before the reset still answers its own callers
        but no longer writes to the cache.
        """
        self._generation += 1
        self._pending = None
        self.cache.clear()

    def _release(self, task: "asyncio.Task[SessionResult]") -> None:
        if self._pending is task:
            self._pending = None

    async def _validate(self, generation: int) -> SessionResult:
        try:
            return await self._fetch(generation)
        except Exception as exc:
            stale = self.cache.peek() if generation == self._generation else None
            if stale is not None and stale.valid:
                _logger.warning(
                    "Session validation failed, using cached session: %s", exc
                )
                return replace(stale, error=None, retryable=False)
            message = _describe(exc)
            _logger.warning("Session validation failed: %s", message)
            return SessionResult.failed(message)

    async def _fetch(self, generation: int) -> SessionResult:
        try:
            session = await self._with_timeout(self.gateway.get_session())
        except BackendError as exc:
            _logger.info("Auth session check failed: %s", exc)
            session = None
        if session is None:
            result = SessionResult.signed_out()
            self._store(result, generation)
            return result

        try:
            payload = await self._with_timeout(
                self.gateway.get_current_user_session()
            )
        except BackendError as exc:
            _logger.warning("Profile lookup failed: %s", exc)
            result = SessionResult(
                valid=False,
                authenticated=True,
                user=_session_user(session),
                profile=None,
                error=str(exc),
            )
            self._store(result, generation)
            return result

        profile = payload.profile
        profile_inactive = payload.profile_inactive or (
            profile is not None and not profile.is_active
        )
        result = SessionResult(
            valid=(
                profile is not None
                and payload.authenticated
                and not profile_inactive
            ),
            authenticated=payload.authenticated,
            user=payload.user or _session_user(session),
            profile=profile,
            school=payload.school,
            permissions=payload.permissions,
            needs_profile_setup=payload.needs_profile_setup,
            profile_inactive=profile_inactive,
            error=payload.error,
        )
        self._store(result, generation)
        return result

    def _store(self, result: SessionResult, generation: int) -> None:
        if generation == self._generation:
            self.cache.set(result)

    async def _with_timeout(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)


def _session_user(session: dict[str, Any]) -> dict[str, Any] | None:
    user = session.get("user")
    return user if isinstance(user, dict) else None


def _describe(exc: Exception) -> str:
    if isinstance(exc, TimeoutError):
        return "Session validation timed out"
    return str(exc) or type(exc).__name__
