"""Export directory and assignment views as flat tables.

Directory rows are exploded to one line per membership so a person with
three roles appears on three lines; assignment items map one-to-one.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd  # type: ignore

from ..config.settings import settings
from ..core.models import AssignmentItem, DirectoryMember
from ..utils.logging import get_logger

logger = get_logger(__name__)

DIRECTORY_COLUMNS = ["person_id", "display_name", "organization", "node_id", "node_name", "node_type", "role"]
ASSIGNMENT_COLUMNS = [
    "id", "kind", "title", "status", "priority", "due_date", "progress",
    "node_id", "node_name", "node_type", "created_at", "updated_at",
]


def directory_frame(members: Iterable[DirectoryMember]) -> pd.DataFrame:
    records = [
        {
            "person_id": member.person_id,
            "display_name": member.display_name,
            "organization": member.organization,
            "node_id": membership.node_id,
            "node_name": membership.node_name,
            "node_type": membership.node_type,
            "role": membership.role,
        }
        for member in members
        for membership in member.memberships
    ]
    return pd.DataFrame(records, columns=DIRECTORY_COLUMNS)


def assignments_frame(items: Iterable[AssignmentItem]) -> pd.DataFrame:
    records = [
        {
            "id": item.id,
            "kind": item.kind.value,
            "title": item.title,
            "status": item.status,
            "priority": item.priority,
            "due_date": item.due_date.isoformat() if item.due_date else None,
            "progress": item.progress,
            "node_id": item.node.id,
            "node_name": item.node.name,
            "node_type": item.node.type,
            "created_at": item.created_at.isoformat(),
            "updated_at": item.updated_at.isoformat(),
        }
        for item in items
    ]
    return pd.DataFrame(records, columns=ASSIGNMENT_COLUMNS)


def export_frame(df: pd.DataFrame, name: str, output: Optional[Path] = None) -> Path:
    """Write ``df`` as CSV; defaults to a timestamped file in ``settings.export_dir``."""
    if output is None:
        settings.export_dir.mkdir(parents=True, exist_ok=True)
        output = settings.export_dir / f"{name}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output, index=False)
    logger.info(f"Exported {len(df)} rows to {output}")
    return output
