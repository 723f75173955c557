"""ASGI entrypoint for the AR publisher API."""

from ar_publisher.api.app import create_app
from ar_publisher.containers import build_container

app = create_app(build_container())
