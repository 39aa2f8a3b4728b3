"""Tabular export of directory and assignment views."""

from .export import assignments_frame, directory_frame, export_frame  # noqa: F401
