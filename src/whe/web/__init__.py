"""JSON web API exposing the engine queries."""

from .app import app, start_server  # noqa: F401
