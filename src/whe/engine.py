"""Top-level queries over a record source.

Each query fetches exactly the record sets it needs, runs independent
fetches concurrently and hands the results to the pure aggregation
functions. Nothing is cached between calls, so queries can run
concurrently against the same engine. Fetch failures propagate as
:class:`~whe.sources.base.FetchError`.
"""

import asyncio
from datetime import datetime
from typing import Iterable, List, Optional

from .assignments.aggregator import AssignmentView, aggregate_assignments
from .core.models import DelegatedItem
from .delegation.tracker import classify_delegations
from .directory.members import MemberDirectory
from .hierarchy.tree import WorkspaceTree
from .sources.base import RecordSource
from .utils.logging import get_logger

logger = get_logger(__name__)


class WorkspaceEngine:
    """Answer hierarchy, directory, delegation and assignment queries."""

    def __init__(self, source: RecordSource, scope: Optional[str] = None) -> None:
        self.source = source
        self.scope = scope

    async def load_tree(self) -> WorkspaceTree:
        nodes = await self.source.fetch_nodes(self.scope)
        return WorkspaceTree(nodes)

    async def descendants_of(self, node_id: str) -> List[str]:
        tree = await self.load_tree()
        return tree.descendants_of(node_id)

    async def path_to_root(self, node_id: str, stop_at: Optional[str] = None) -> List[str]:
        tree = await self.load_tree()
        return tree.path_to_root(node_id, stop_at=stop_at)

    async def build_directory(self, node_id: str, include_descendants: bool = True) -> MemberDirectory:
        """Directory of everyone active in ``node_id`` (and, by default, below it)."""
        tree = await self.load_tree()
        node_ids = tree.self_and_descendants(node_id) if include_descendants else (
            [node_id] if node_id in tree else []
        )
        if not node_ids:
            logger.info(f"Workspace {node_id} not found; empty directory")
            return MemberDirectory([])
        memberships = await self.source.fetch_memberships(node_ids)
        person_ids = {m.person_id for m in memberships}
        people = await self.source.fetch_people(person_ids) if person_ids else []
        directory = MemberDirectory.build(
            memberships,
            node_ids,
            tree.nodes_by_id,
            {p.id: p for p in people},
        )
        logger.info(
            f"Directory for {node_id}: {directory.total_count} members",
            extra={"node_count": len(node_ids), "memberships": directory.membership_count},
        )
        return directory

    async def track_delegation(self, source_node_id: str) -> List[DelegatedItem]:
        """Tasks delegated from ``source_node_id`` into its descendants, newest first."""
        tree = await self.load_tree()
        descendants = tree.descendants_of(source_node_id)
        if not descendants:
            return []
        tasks = await self.source.fetch_delegated_tasks(source_node_id, descendants)
        assignee_ids = {t.assignee_id for t in tasks if t.assignee_id is not None}
        people = await self.source.fetch_people(assignee_ids) if assignee_ids else []
        items = classify_delegations(source_node_id, tree, tasks, {p.id: p for p in people})
        logger.info(
            f"Delegations from {source_node_id}: {len(items)} items",
            extra={"synced": sum(1 for i in items if i.is_synced)},
        )
        return items

    async def aggregate_assignments(
        self,
        person_id: str,
        now: datetime,
        node_ids: Optional[Iterable[str]] = None,
    ) -> AssignmentView:
        """Merged assignments for ``person_id``.

        Without ``node_ids`` the node set is every workspace the person is an
        active member of.
        """
        if node_ids is None:
            memberships = await self.source.fetch_person_memberships(person_id)
            node_list = list(dict.fromkeys(m.node_id for m in memberships))
        else:
            node_list = list(dict.fromkeys(node_ids))
        if not node_list:
            return AssignmentView(person_id=person_id)
        nodes, tasks, checklists = await asyncio.gather(
            self.source.fetch_nodes(self.scope),
            self.source.fetch_tasks(node_list, assignee_id=person_id),
            self.source.fetch_checklists(node_list, delegated_only=True),
        )
        view = aggregate_assignments(
            person_id,
            node_list,
            tasks,
            checklists,
            WorkspaceTree(nodes).nodes_by_id,
            now,
        )
        logger.info(
            f"Assignments for {person_id}: {view.stats.total} items",
            extra={"overdue": view.stats.overdue, "due_today": view.stats.due_today},
        )
        return view

    async def close(self) -> None:
        await self.source.close()
