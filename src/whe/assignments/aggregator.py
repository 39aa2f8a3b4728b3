"""Per-person assignment stream across tasks and checklists.

Tasks and checklists come from different tables with different shapes and
status conventions. Each kind has exactly one normalization function
producing :class:`AssignmentItem`; sorting, searching and statistics only
ever see the normalized shape.

Statistics take ``now`` from the caller so the same inputs always give the
same counts.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ..core.models import (
    AssignmentItem,
    AssignmentStats,
    ChecklistRecord,
    ItemKind,
    NodeRef,
    TaskRecord,
    WorkspaceNode,
)
from ..core.normalization import align_to, matches_text, percent_half_up, sort_timestamp, start_of_day
from ..core.status import StatusVocabulary, default_vocabulary
from ..utils.logging import get_logger

logger = get_logger(__name__)

CHECKLIST_PRIORITY = "MEDIUM"
COMPLETION_WINDOW = timedelta(days=7)


def checklist_progress(checklist: ChecklistRecord) -> int:
    checked = sum(1 for item in checklist.items if item.completed)
    return percent_half_up(checked, len(checklist.items))


def normalize_task(task: TaskRecord, nodes_by_id: Dict[str, WorkspaceNode]) -> AssignmentItem:
    return AssignmentItem(
        id=task.id,
        kind=ItemKind.TASK,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        due_date=task.due_date,
        progress=task.progress,
        node=NodeRef.for_node(task.node_id, nodes_by_id),
        created_at=task.created_at,
        updated_at=task.updated_at,
        source_node_id=task.source_node_id,
        parent_item_id=task.parent_task_id,
    )


def normalize_checklist(checklist: ChecklistRecord, nodes_by_id: Dict[str, WorkspaceNode]) -> AssignmentItem:
    return AssignmentItem(
        id=checklist.id,
        kind=ItemKind.CHECKLIST,
        title=checklist.title,
        status=checklist.delegation_status or "",
        priority=CHECKLIST_PRIORITY,
        due_date=checklist.due_date,
        progress=checklist_progress(checklist),
        node=NodeRef.for_node(checklist.node_id, nodes_by_id),
        created_at=checklist.created_at,
        updated_at=checklist.updated_at,
        source_node_id=checklist.delegated_from_node_id,
    )


def sort_by_due_date(items: Iterable[AssignmentItem], now: Optional[datetime] = None) -> List[AssignmentItem]:
    """Earliest due date first; items without a due date go last. Stable.

    With ``now`` given, due dates are read the way :func:`compute_stats`
    reads them (naive values in ``now``'s zone); otherwise naive values
    count as UTC.
    """

    def key(item: AssignmentItem):
        if item.due_date is None:
            return (True, 0.0)
        due = align_to(item.due_date, now) if now is not None else item.due_date
        return (False, sort_timestamp(due))

    return sorted(items, key=key)


def merge_assignments(
    person_id: str,
    node_ids: Iterable[str],
    tasks: Iterable[TaskRecord],
    checklists: Iterable[ChecklistRecord],
    nodes_by_id: Dict[str, WorkspaceNode],
    now: Optional[datetime] = None,
) -> List[AssignmentItem]:
    """Normalize the subject's tasks and delegated checklists into one sorted list.

    Checklists count as assignments only once they carry a delegation
    status; tasks must be assigned to ``person_id``. Both must sit in
    ``node_ids``.
    """
    node_set = set(node_ids)
    merged: List[AssignmentItem] = []
    for task in tasks:
        if task.assignee_id == person_id and task.node_id in node_set:
            merged.append(normalize_task(task, nodes_by_id))
    task_count = len(merged)
    for checklist in checklists:
        if checklist.delegation_status is not None and checklist.node_id in node_set:
            merged.append(normalize_checklist(checklist, nodes_by_id))
    logger.debug(f"Merged {task_count} tasks and {len(merged) - task_count} checklists for {person_id}")
    return sort_by_due_date(merged, now)


def compute_stats(
    items: Iterable[AssignmentItem],
    now: datetime,
    vocabulary: Optional[StatusVocabulary] = None,
) -> AssignmentStats:
    """All counts in a single pass over ``items`` at the instant ``now``."""
    vocab = vocabulary or default_vocabulary
    today_start = start_of_day(now)
    today = now.date()
    week_start = now - COMPLETION_WINDOW
    stats = AssignmentStats()
    for item in items:
        stats.total += 1
        terminal = vocab.is_terminal(item.status)
        if vocab.is_active(item.status):
            stats.in_progress += 1
        if item.due_date is not None:
            due = align_to(item.due_date, now)
            if due < today_start and not terminal:
                stats.overdue += 1
            if due.date() == today:
                stats.due_today += 1
        if terminal:
            updated = align_to(item.updated_at, now)
            if week_start <= updated <= now:
                stats.completed_this_week += 1
    return stats


def is_overdue(item: AssignmentItem, now: datetime, vocabulary: Optional[StatusVocabulary] = None) -> bool:
    vocab = vocabulary or default_vocabulary
    if item.due_date is None or vocab.is_terminal(item.status):
        return False
    return align_to(item.due_date, now) < start_of_day(now)


def search_assignments(items: Iterable[AssignmentItem], query: Optional[str]) -> List[AssignmentItem]:
    """Items whose title, description or workspace name contains ``query``."""
    needle = (query or "").strip().casefold()
    if not needle:
        return list(items)
    return [
        item
        for item in items
        if matches_text(item.title, needle)
        or matches_text(item.description, needle)
        or matches_text(item.node.name, needle)
    ]


class AssignmentView(BaseModel):
    """A person's merged assignments and the statistics derived from them."""

    person_id: str
    items: List[AssignmentItem] = Field(default_factory=list)
    stats: AssignmentStats = Field(default_factory=AssignmentStats)

    @property
    def tasks(self) -> List[AssignmentItem]:
        return [item for item in self.items if item.kind is ItemKind.TASK]

    @property
    def checklists(self) -> List[AssignmentItem]:
        return [item for item in self.items if item.kind is ItemKind.CHECKLIST]

    def overdue_items(self, now: datetime) -> List[AssignmentItem]:
        return [item for item in self.items if is_overdue(item, now)]

    def select(
        self,
        now: datetime,
        search: Optional[str] = None,
        kind: Optional[ItemKind] = None,
        overdue: bool = False,
    ) -> "AssignmentView":
        """Narrow the visible items; ``stats`` still describe the full list."""
        if overdue:
            items = self.overdue_items(now)
        elif kind is ItemKind.TASK:
            items = self.tasks
        elif kind is ItemKind.CHECKLIST:
            items = self.checklists
        else:
            items = list(self.items)
        if overdue and kind is not None:
            items = [item for item in items if item.kind is kind]
        return AssignmentView(
            person_id=self.person_id,
            items=search_assignments(items, search),
            stats=self.stats,
        )


def aggregate_assignments(
    person_id: str,
    node_ids: Iterable[str],
    tasks: Iterable[TaskRecord],
    checklists: Iterable[ChecklistRecord],
    nodes_by_id: Dict[str, WorkspaceNode],
    now: datetime,
) -> AssignmentView:
    items = merge_assignments(person_id, node_ids, tasks, checklists, nodes_by_id, now)
    return AssignmentView(person_id=person_id, items=items, stats=compute_stats(items, now))
