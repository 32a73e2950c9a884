"""ASGI entrypoint for the catalog intake API."""

from vintage_catalog.api.app import create_app
from vintage_catalog.containers import build_container

app = create_app(build_container())
