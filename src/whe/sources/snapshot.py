"""In-memory record source backed by a :class:`RecordSnapshot`."""

from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import ValidationError

from ..core.models import (
    ACTIVE_STATUS,
    ChecklistRecord,
    MembershipRecord,
    Person,
    RecordSnapshot,
    TaskRecord,
    WorkspaceNode,
)
from ..core.normalization import sort_timestamp
from ..utils.logging import get_logger
from .base import FetchError, RecordSource

logger = get_logger(__name__)


class SnapshotRecordSource(RecordSource):
    """Serve every query from records already held in memory."""

    def __init__(self, snapshot: RecordSnapshot, config: Optional[dict] = None) -> None:
        super().__init__(config)
        self.snapshot = snapshot

    @classmethod
    def from_file(cls, path: Path) -> "SnapshotRecordSource":
        """Load a JSON snapshot (keys: nodes, memberships, people, tasks, checklists)."""
        try:
            snapshot = RecordSnapshot.model_validate_json(Path(path).read_text(encoding="utf-8"))
        except OSError as exc:
            raise FetchError("snapshot", f"cannot read {path}: {exc}") from exc
        except ValidationError as exc:
            raise FetchError("snapshot", f"invalid snapshot {path}: {exc}") from exc
        logger.info(
            f"Loaded snapshot {path}",
            extra={"nodes": len(snapshot.nodes), "memberships": len(snapshot.memberships)},
        )
        return cls(snapshot)

    async def fetch_nodes(self, scope: Optional[str] = None) -> List[WorkspaceNode]:
        if scope is None:
            return list(self.snapshot.nodes)
        return [n for n in self.snapshot.nodes if n.event_id == scope]

    async def fetch_memberships(
        self, node_ids: Iterable[str], status: Optional[str] = ACTIVE_STATUS
    ) -> List[MembershipRecord]:
        wanted = set(node_ids)
        return [
            m
            for m in self.snapshot.memberships
            if m.node_id in wanted and (status is None or m.status == status)
        ]

    async def fetch_person_memberships(
        self, person_id: str, status: Optional[str] = ACTIVE_STATUS
    ) -> List[MembershipRecord]:
        return [
            m
            for m in self.snapshot.memberships
            if m.person_id == person_id and (status is None or m.status == status)
        ]

    async def fetch_people(self, person_ids: Iterable[str]) -> List[Person]:
        wanted = set(person_ids)
        return [p for p in self.snapshot.people if p.id in wanted]

    async def fetch_tasks(
        self, node_ids: Iterable[str], assignee_id: Optional[str] = None
    ) -> List[TaskRecord]:
        wanted = set(node_ids)
        return [
            t
            for t in self.snapshot.tasks
            if t.node_id in wanted and (assignee_id is None or t.assignee_id == assignee_id)
        ]

    async def fetch_delegated_tasks(
        self, source_node_id: str, node_ids: Iterable[str]
    ) -> List[TaskRecord]:
        wanted = set(node_ids)
        matches = [
            t for t in self.snapshot.tasks if t.source_node_id == source_node_id and t.node_id in wanted
        ]
        return sorted(matches, key=lambda t: sort_timestamp(t.created_at), reverse=True)

    async def fetch_checklists(
        self, node_ids: Iterable[str], delegated_only: bool = True
    ) -> List[ChecklistRecord]:
        wanted = set(node_ids)
        return [
            c
            for c in self.snapshot.checklists
            if c.node_id in wanted and (not delegated_only or c.delegation_status is not None)
        ]
