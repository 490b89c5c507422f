"""Session state holder driven by auth events, focus events and retries."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Protocol

from tutoring_center.domain.sessions import (
    IDENTITY_EVENTS,
    REFRESH_EVENTS,
    AuthEvent,
    SessionGate,
    SessionResult,
)
from tutoring_center.services.session_validator import SessionValidator

_logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionResult], None]


class AuthEventSource(Protocol):
    """Subscription to backend auth-state changes."""

    def on_auth_state_change(
        self, callback: Callable[[str], None]
    ) -> Callable[[], None]:
        """Register a callback and return an unsubscribe function."""


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to wait before re-validating a failed session."""

    max_retries: int = 2
    delay_seconds: float = 2.0

    def should_retry(self, result: SessionResult, retries: int) -> bool:
        """Return True when the result is transient and retries remain."""
        return result.retryable and retries < self.max_retries


class CancellationToken:
    """Signals that results of an in-flight refresh must be discarded."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        """Mark the token cancelled."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._cancelled


@dataclass
class SessionManager:
    """Hold the current session and decide when to re-validate it."""

    validator: SessionValidator
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    debounce_seconds: float = 2.0
    focus_debounce_seconds: float = 30.0
    focus_settle_seconds: float = 0.5
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    session_data: SessionResult | None = field(default=None, init=False)
    last_validation: float | None = field(default=None, init=False)
    _in_flight: int = field(default=0, init=False, repr=False)
    _latest_refresh: int = field(default=0, init=False, repr=False)
    _listeners: list[SessionListener] = field(
        default_factory=list, init=False, repr=False
    )
    _token: CancellationToken = field(
        default_factory=CancellationToken, init=False, repr=False
    )
    _focus_task: "asyncio.Task[None] | None" = field(
        default=None, init=False, repr=False
    )
    _unsubscribe: Callable[[], None] | None = field(
        default=None, init=False, repr=False
    )

    @property
    def is_validating(self) -> bool:
        """True while at least one validation is in flight."""
        return self._in_flight > 0

    @property
    def loading(self) -> bool:
        """True until the first validation result is published."""
        return self.session_data is None

    def gate(self) -> SessionGate:
        """Decide what the application should render for the session."""
        data = self.session_data
        if data is None:
            return SessionGate.LOADING
        if data.valid:
            return SessionGate.READY
        if data.retryable:
            # Timeouts render optimistically instead of blocking.
            return SessionGate.READY if data.timed_out else SessionGate.ERROR
        if not data.authenticated:
            return SessionGate.SIGNED_OUT
        if data.profile_inactive:
            return SessionGate.INACTIVE
        if data.needs_profile_setup:
            return SessionGate.NEEDS_PROFILE_SETUP
        if data.error is not None:
            return SessionGate.ERROR
        return SessionGate.NEEDS_PROFILE_SETUP

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call listener with every published result; return an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh_session(
        self, force: bool = False, cancellation: CancellationToken | None = None
    ) -> None:
        """Re-validate the session unless debounced or already in flight."""
        token = cancellation or self._token
        now = self.clock()
        if not force and self.is_validating:
            return
        if (
            not force
            and self.last_validation is not None
            and now - self.last_validation < self.debounce_seconds
        ):
            return

        self.last_validation = now
        self._latest_refresh += 1
        ticket = self._latest_refresh
        self._in_flight += 1
        try:
            result = await self._validate_with_retry(force, token)
        finally:
            self._in_flight -= 1
        # A refresh superseded by a later one must not overwrite its result.
        if result is None or token.cancelled or ticket != self._latest_refresh:
            return
        self._publish(result)

    async def handle_auth_event(self, event: AuthEvent | str) -> None:
        """Force a refresh on sign-in, sign-out and token refresh.

        Sign-in and sign-out also drop the cached session.
        """
        try:
            auth_event = AuthEvent(event)
        except ValueError:
            _logger.debug("Ignoring unknown auth event %s", event)
            return
        if auth_event not in REFRESH_EVENTS:
            return
        _logger.info("Auth event %s, refreshing session", auth_event)
        if auth_event in IDENTITY_EVENTS:
            self.validator.clear_cache()
        await self.refresh_session(force=True)

    def on_focus(self) -> "asyncio.Task[None] | None":
        """Schedule a settled, non-forced refresh after the window regains focus."""
        if (
            self.last_validation is not None
            and self.clock() - self.last_validation < self.focus_debounce_seconds
        ):
            return None
        if self._focus_task is not None and not self._focus_task.done():
            self._focus_task.cancel()
        self._focus_task = asyncio.get_running_loop().create_task(
            self._refresh_after_settle()
        )
        return self._focus_task

    def on_visibility_change(self, hidden: bool) -> "asyncio.Task[None] | None":
        """Treat the page becoming visible like a focus event."""
        if hidden:
            return None
        return self.on_focus()

    def attach(self, source: AuthEventSource) -> None:
        """Forward backend auth events onto the running event loop."""
        loop = asyncio.get_running_loop()

        def forward(event: str) -> None:
            future = asyncio.run_coroutine_threadsafe(
                self.handle_auth_event(event), loop
            )
            future.add_done_callback(_log_failure)

        self._unsubscribe = source.on_auth_state_change(forward)

    def close(self) -> None:
        """Stop publishing results and detach from event sources."""
        self._token.cancel()
        if self._focus_task is not None and not self._focus_task.done():
            self._focus_task.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _refresh_after_settle(self) -> None:
        await self.sleep(self.focus_settle_seconds)
        await self.refresh_session()

    async def _validate_with_retry(
        self, force: bool, token: CancellationToken
    ) -> SessionResult | None:
        retries = 0
        skip_cache = force
        while True:
            result = await self.validator.validate(skip_cache=skip_cache)
            if token.cancelled:
                return None
            if not self.retry_policy.should_retry(result, retries):
                return result
            retries += 1
            _logger.warning(
                "Session validation failed (%s), retry %s/%s in %ss",
                result.error,
                retries,
                self.retry_policy.max_retries,
                self.retry_policy.delay_seconds,
            )
            await self.sleep(self.retry_policy.delay_seconds)
            if token.cancelled:
                return None
            skip_cache = True

    def _publish(self, result: SessionResult) -> None:
        self.session_data = result
        _logger.info(
            "Session validated: valid=%s authenticated=%s has_profile=%s "
            "needs_setup=%s error=%s",
            result.valid,
            result.authenticated,
            result.profile is not None,
            result.needs_profile_setup,
            result.error,
        )
        if result.authenticated and not result.valid:
            if result.needs_profile_setup:
                _logger.info("User needs profile setup")
            elif result.profile_inactive:
                _logger.warning("Account is inactive")
        for listener in list(self._listeners):
            listener(result)


def _log_failure(future: Future[None]) -> None:
    exc = future.exception() if not future.cancelled() else None
    if exc is not None:
        _logger.error("Auth event handling failed", exc_info=exc)
