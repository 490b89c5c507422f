"""Console token check shared by every authenticated router."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from fastapi import Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from tutoring_center.containers import AppContainer


def _get_console_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.console_token


async def require_console_token(
    x_console_token: str | None = Header(default=None),
    console_token: str = Depends(_get_console_token),
) -> None:
    """Ensure requests carry the token of the console operating this process."""
    if not x_console_token or not secrets.compare_digest(
        x_console_token, console_token
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
