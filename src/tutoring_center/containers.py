"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from tutoring_center.adapters.supabase_archive_repository import (
    SupabaseArchiveRepository,
)
from tutoring_center.adapters.supabase_identity_gateway import (
    SupabaseIdentityGateway,
)
from tutoring_center.adapters.supabase_profile_repository import (
    SupabaseProfileRepository,
)
from tutoring_center.config import Settings
from tutoring_center.services.archives import ArchiveService
from tutoring_center.services.auth import AuthService
from tutoring_center.services.session_manager import (
    AuthEventSource,
    RetryPolicy,
    SessionManager,
)
from tutoring_center.services.session_validator import SessionValidator


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    auth_events: AuthEventSource
    session_manager: SessionManager
    auth_service: AuthService
    archive_service: ArchiveService
    close_resources: Callable[[], Awaitable[None]]


def build_session_manager(
    settings: Settings, validator: SessionValidator
) -> SessionManager:
    """Create a session manager tuned by settings."""
    return SessionManager(
        validator=validator,
        retry_policy=RetryPolicy(
            max_retries=settings.session_max_retries,
            delay_seconds=settings.session_retry_delay_seconds,
        ),
        debounce_seconds=settings.session_debounce_seconds,
        focus_debounce_seconds=settings.session_focus_debounce_seconds,
        focus_settle_seconds=settings.session_focus_settle_seconds,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_anon_key
    )
    identity_gateway = SupabaseIdentityGateway(supabase_client)
    validator = SessionValidator(
        gateway=identity_gateway,
        ttl_seconds=resolved_settings.session_cache_ttl_seconds,
        force_ttl_seconds=resolved_settings.session_force_cache_ttl_seconds,
        timeout_seconds=resolved_settings.session_timeout_seconds,
    )
    session_manager = build_session_manager(resolved_settings, validator)
    auth_service = AuthService(
        gateway=identity_gateway,
        profile_repository=SupabaseProfileRepository(supabase_client),
        session_manager=session_manager,
        site_url=resolved_settings.site_url,
    )
    archive_service = ArchiveService(SupabaseArchiveRepository(supabase_client))

    async def close_resources() -> None:
        session_manager.close()

    return AppContainer(
        settings=resolved_settings,
        auth_events=identity_gateway,
        session_manager=session_manager,
        auth_service=auth_service,
        archive_service=archive_service,
        close_resources=close_resources,
    )
