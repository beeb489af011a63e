"""ASGI entrypoint for the sync engine control API."""

from frindr_sync.api.app import create_app
from frindr_sync.containers import build_container

app = create_app(build_container())
