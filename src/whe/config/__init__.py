"""Configuration management."""

from .settings import Settings, settings  # noqa: F401
