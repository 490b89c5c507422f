"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tutoring_center.api.archives import router as archives_router
from tutoring_center.api.auth import router as auth_router
from tutoring_center.api.errors import register_error_handlers
from tutoring_center.api.users import router as users_router
from tutoring_center.app_logging import configure_logging
from tutoring_center.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        session_manager = state_container.session_manager
        try:
            session_manager.attach(state_container.auth_events)
            await session_manager.refresh_session(force=True)
        except Exception:
            logger.exception("Initial session check failed")
        yield
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    register_error_handlers(app)
    app.include_router(auth_router)
    app.include_router(archives_router)
    app.include_router(users_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
