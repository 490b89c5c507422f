"""Supabase auth and identity RPC adapter."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from postgrest.exceptions import APIError
from supabase import Client
from supabase_auth.errors import AuthApiError
from supabase_auth.types import Session

from tutoring_center.domain.errors import AuthenticationError, BackendError
from tutoring_center.domain.sessions import CurrentUserSession

_SESSION_RPC = "get_current_user_session"


@dataclass
class SupabaseIdentityGateway:
    """Identity, auth and auth-event access through the Supabase client.

    The Supabase client is synchronous; calls run in a worker thread so the
    event loop stays responsive and callers can apply timeouts.
    """

    client: Client

    async def get_session(self) -> dict[str, Any] | None:
        """Return the current auth session, or None when signed out."""
        session = await asyncio.to_thread(self._get_session)
        return session.model_dump(mode="json") if session else None

    async def get_current_user_session(self) -> CurrentUserSession:
        """Call the RPC returning profile, school and permissions."""
        data = await asyncio.to_thread(self._call_session_rpc)
        if isinstance(data, list):
            data = data[0] if data else {}
        return CurrentUserSession.model_validate(data or {})

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        """Sign in with email and password."""
        return await asyncio.to_thread(self._sign_in, email, password)

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, object],
        redirect_to: str,
    ) -> dict[str, Any]:
        """Create an auth user; confirmation mail redirects to redirect_to."""
        return await asyncio.to_thread(
            self._sign_up, email, password, metadata, redirect_to
        )

    async def sign_out(self) -> None:
        """End the current auth session."""
        await asyncio.to_thread(self._sign_out)

    def on_auth_state_change(
        self, callback: Callable[[str], None]
    ) -> Callable[[], None]:
        """Forward auth event names to callback; return an unsubscribe."""
        subscription = self.client.auth.on_auth_state_change(
            lambda event, _session: callback(str(event))
        )
        return subscription.unsubscribe

    def _get_session(self) -> Session | None:
        try:
            return self.client.auth.get_session()
        except AuthApiError as exc:
            raise BackendError(exc.message, code=exc.code) from exc

    def _call_session_rpc(self) -> object:
        try:
            response = self.client.rpc(_SESSION_RPC).execute()
        except APIError as exc:
            raise BackendError(exc.message or str(exc), code=exc.code) from exc
        return response.data

    def _sign_in(self, email: str, password: str) -> dict[str, Any]:
        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthApiError as exc:
            raise AuthenticationError(exc.message) from exc
        return _user_payload(response)

    def _sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, object],
        redirect_to: str,
    ) -> dict[str, Any]:
        try:
            response = self.client.auth.sign_up(
                {
                    "email": email,
                    "password": password,
                    "options": {"email_redirect_to": redirect_to, "data": metadata},
                }
            )
        except AuthApiError as exc:
            raise BackendError(exc.message, code=exc.code) from exc
        return _user_payload(response)

    def _sign_out(self) -> None:
        try:
            self.client.auth.sign_out()
        except AuthApiError as exc:
            raise BackendError(exc.message, code=exc.code) from exc


def _user_payload(response: Any) -> dict[str, Any]:
    user = getattr(response, "user", None)
    return user.model_dump(mode="json") if user is not None else {}
