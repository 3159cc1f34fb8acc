"""ASGI entrypoint for the gallery delivery API."""

from gallery_delivery.api.app import create_app
from gallery_delivery.containers import build_container

app = create_app(build_container())
