"""ASGI entrypoint for the tutoring center API."""

from tutoring_center.api.app import create_app
from tutoring_center.containers import build_container

app = create_app(build_container())
