"""ASGI entrypoint for the persistence API."""

from calorie_chat.api.app import create_app
from calorie_chat.containers import build_container

app = create_app(build_container())
