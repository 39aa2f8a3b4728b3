"""Record sources: the backend collaborator the engine reads from."""

from pathlib import Path
from typing import Optional

from ..config.settings import settings
from .base import FetchError, RecordSource
from .postgrest import PostgrestRecordSource
from .snapshot import SnapshotRecordSource


def create_record_source(snapshot_path: Optional[Path] = None) -> RecordSource:
    """Pick a source: an explicit snapshot, then the configured backend, then a configured snapshot."""
    if snapshot_path is not None:
        return SnapshotRecordSource.from_file(snapshot_path)
    if settings.supabase_url:
        return PostgrestRecordSource()
    if settings.snapshot_path is not None:
        return SnapshotRecordSource.from_file(settings.snapshot_path)
    raise ValueError("No record source configured: set SUPABASE_URL or SNAPSHOT_PATH")


__all__ = [
    "FetchError",
    "RecordSource",
    "PostgrestRecordSource",
    "SnapshotRecordSource",
    "create_record_source",
]
