"""Delegation lineage from a source workspace into its descendants.

A task delegated downwards is copied into a descendant workspace with
``source_node_id`` pointing at the workspace it came from and
``parent_task_id`` pointing at the original task. A copy is *synced* while
that parent link is present. Nothing here compares the copy's content with
the original: synced means still linked, not still identical.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ..assignments.aggregator import is_overdue, normalize_task
from ..core.models import UNKNOWN_ASSIGNEE, DelegatedItem, NodeRef, Person, TaskRecord
from ..core.normalization import collation_key, matches_text
from ..core.status import StatusVocabulary, default_vocabulary
from ..hierarchy.tree import WorkspaceTree
from ..utils.logging import get_logger

logger = get_logger(__name__)


class DelegationSummary(BaseModel):
    """Sync and progress counts over a list of delegated items."""

    total: int = 0
    synced: int = 0
    diverged: int = 0
    completed: int = 0
    in_progress: int = 0
    overdue: int = 0
    by_node: Dict[str, int] = Field(default_factory=dict)


def classify_delegations(
    source_node_id: str,
    tree: WorkspaceTree,
    tasks: Iterable[TaskRecord],
    people_by_id: Dict[str, Person],
) -> List[DelegatedItem]:
    """Tasks from ``source_node_id`` now held below it, in input order.

    Tasks held outside the source's subtree, or delegated from elsewhere,
    are ignored. A missing assignee profile is labelled ``"Unknown"``.
    """
    descendants = set(tree.descendants_of(source_node_id))
    if not descendants:
        return []
    nodes_by_id = tree.nodes_by_id
    delegated: List[DelegatedItem] = []
    for task in tasks:
        if task.source_node_id != source_node_id or task.node_id not in descendants:
            continue
        assignee_name = None
        if task.assignee_id is not None:
            person = people_by_id.get(task.assignee_id)
            assignee_name = person.display_name if person and person.display_name else UNKNOWN_ASSIGNEE
        delegated.append(
            DelegatedItem(
                item=normalize_task(task, nodes_by_id),
                holder=NodeRef.for_node(task.node_id, nodes_by_id),
                holder_path=tree.path_to_root(task.node_id, stop_at=source_node_id),
                assignee_id=task.assignee_id,
                assignee_name=assignee_name,
                is_synced=task.parent_task_id is not None,
            )
        )
    return delegated


class DelegationGroup(BaseModel):
    """Delegated items held by one workspace."""

    holder: NodeRef
    items: List[DelegatedItem] = Field(default_factory=list)


def summarize_delegations(
    items: Iterable[DelegatedItem],
    now: Optional[datetime] = None,
    vocabulary: Optional[StatusVocabulary] = None,
) -> DelegationSummary:
    """Counts over ``items``; ``overdue`` stays 0 unless ``now`` is given."""
    vocab = vocabulary or default_vocabulary
    summary = DelegationSummary()
    per_node: Counter = Counter()
    for entry in items:
        summary.total += 1
        if entry.is_synced:
            summary.synced += 1
        else:
            summary.diverged += 1
        if vocab.is_terminal(entry.item.status):
            summary.completed += 1
        elif vocab.is_active(entry.item.status):
            summary.in_progress += 1
        if now is not None and is_overdue(entry.item, now, vocab):
            summary.overdue += 1
        per_node[entry.holder.id] += 1
    summary.by_node = dict(per_node)
    return summary


def filter_delegations(
    items: Iterable[DelegatedItem],
    search: Optional[str] = None,
    status: Optional[str] = None,
) -> List[DelegatedItem]:
    """Items matching ``search`` (title, holder or assignee name) and ``status``.

    ``status`` compares case-insensitively; ``None``, ``""`` and ``"ALL"``
    disable it.
    """
    needle = (search or "").strip().casefold()
    wanted = (status or "").strip().casefold()
    if wanted == "all":
        wanted = ""
    matched: List[DelegatedItem] = []
    for entry in items:
        if wanted and entry.item.status.casefold() != wanted:
            continue
        if needle and not (
            matches_text(entry.item.title, needle)
            or matches_text(entry.holder.name, needle)
            or matches_text(entry.assignee_name, needle)
        ):
            continue
        matched.append(entry)
    return matched


def group_delegations(items: Iterable[DelegatedItem]) -> List[DelegationGroup]:
    """One group per holding workspace, sorted by workspace name."""
    groups: Dict[str, DelegationGroup] = {}
    for entry in items:
        group = groups.get(entry.holder.id)
        if group is None:
            group = groups[entry.holder.id] = DelegationGroup(holder=entry.holder)
        group.items.append(entry)
    return sorted(groups.values(), key=lambda g: collation_key(g.holder.name))
