"""Unit tests for assignment normalization, ordering and statistics."""

from datetime import datetime, timedelta, timezone

import pytest

from whe.assignments.aggregator import (
    AssignmentView,
    aggregate_assignments,
    checklist_progress,
    compute_stats,
    is_overdue,
    merge_assignments,
    normalize_checklist,
    normalize_task,
    search_assignments,
    sort_by_due_date,
)
from whe.core.models import ChecklistRecord, ChecklistSubItem, ItemKind, TaskRecord, WorkspaceNode

NOW = datetime(2025, 6, 18, 15, 30)
NODES = {
    "ops": WorkspaceNode(id="ops", name="Operations", type="DEPARTMENT"),
    "cater": WorkspaceNode(id="cater", name="Catering", type="COMMITTEE", parent_id="ops"),
}


def make_task(
    task_id: str,
    status: str = "TODO",
    due_date: datetime | None = None,
    assignee_id: str | None = "U1",
    node_id: str = "ops",
    updated_at: datetime | None = None,
    title: str | None = None,
    progress: int | None = None,
) -> TaskRecord:
    """Helper to construct a TaskRecord for testing."""
    return TaskRecord(
        id=task_id,
        title=title or f"Task {task_id}",
        node_id=node_id,
        assignee_id=assignee_id,
        status=status,
        due_date=due_date,
        progress=progress,
        created_at=datetime(2025, 6, 1),
        updated_at=updated_at or datetime(2025, 6, 1),
    )


def make_checklist(
    checklist_id: str,
    delegation_status: str | None = "pending",
    checked: int = 0,
    total: int = 0,
    due_date: datetime | None = None,
    node_id: str = "cater",
    updated_at: datetime | None = None,
) -> ChecklistRecord:
    """Helper to construct a ChecklistRecord with ``checked`` of ``total`` items done."""
    return ChecklistRecord(
        id=checklist_id,
        title=f"Checklist {checklist_id}",
        node_id=node_id,
        delegation_status=delegation_status,
        due_date=due_date,
        items=[ChecklistSubItem(text=f"item {i}", completed=i < checked) for i in range(total)],
        created_at=datetime(2025, 6, 1),
        updated_at=updated_at or datetime(2025, 6, 1),
    )


class TestNormalization:
    """Tests for projecting each kind into the shared shape."""

    def test_task(self) -> None:
        item = normalize_task(make_task("t1", status="IN_PROGRESS", progress=40), NODES)
        assert item.kind is ItemKind.TASK
        assert item.status == "IN_PROGRESS"
        assert item.progress == 40
        assert item.node.name == "Operations"

    def test_task_lineage_fields(self) -> None:
        task = make_task("t1").model_copy(update={"source_node_id": "root", "parent_task_id": "t0"})
        item = normalize_task(task, NODES)
        assert item.source_node_id == "root"
        assert item.parent_item_id == "t0"

    def test_checklist(self) -> None:
        item = normalize_checklist(make_checklist("c1", checked=2, total=4), NODES)
        assert item.kind is ItemKind.CHECKLIST
        assert item.status == "pending"
        assert item.priority == "MEDIUM"
        assert item.progress == 50
        assert item.node.type == "COMMITTEE"

    @pytest.mark.parametrize(
        "checked,total,expected",
        [(0, 0, 0), (0, 3, 0), (3, 3, 100), (1, 3, 33), (1, 8, 13)],
    )
    def test_checklist_progress(self, checked: int, total: int, expected: int) -> None:
        assert checklist_progress(make_checklist("c", checked=checked, total=total)) == expected


class TestMerge:
    """Tests for selecting and merging items."""

    def test_only_subject_tasks_in_node_set(self) -> None:
        tasks = [
            make_task("mine"),
            make_task("theirs", assignee_id="U2"),
            make_task("elsewhere", node_id="far"),
            make_task("unassigned", assignee_id=None),
        ]
        items = merge_assignments("U1", ["ops", "cater"], tasks, [], NODES)
        assert [i.id for i in items] == ["mine"]

    def test_checklists_need_delegation_status(self) -> None:
        checklists = [
            make_checklist("delegated"),
            make_checklist("plain", delegation_status=None),
            make_checklist("outside", node_id="far"),
        ]
        items = merge_assignments("U1", ["ops", "cater"], [], checklists, NODES)
        assert [i.id for i in items] == ["delegated"]

    def test_null_due_dates_sort_last(self) -> None:
        tasks = [
            make_task("none-1"),
            make_task("late", due_date=NOW + timedelta(days=5)),
            make_task("early", due_date=NOW - timedelta(days=5)),
        ]
        checklists = [make_checklist("none-2"), make_checklist("mid", due_date=NOW)]
        items = merge_assignments("U1", ["ops", "cater"], tasks, checklists, NODES)
        assert [i.id for i in items] == ["early", "mid", "late", "none-1", "none-2"]

    def test_sort_is_stable_for_equal_due_dates(self) -> None:
        tasks = [make_task("a", due_date=NOW), make_task("b", due_date=NOW)]
        items = merge_assignments("U1", ["ops"], tasks, [], NODES)
        assert [i.id for i in items] == ["a", "b"]

    def test_sort_handles_mixed_timezones(self) -> None:
        aware = normalize_task(make_task("aware", due_date=datetime(2025, 6, 18, 10, tzinfo=timezone.utc)), NODES)
        naive = normalize_task(make_task("naive", due_date=datetime(2025, 6, 18, 9)), NODES)
        assert [i.id for i in sort_by_due_date([aware, naive])] == ["naive", "aware"]


class TestStats:
    """Tests for the time-windowed counts."""

    def test_reference_example(self) -> None:
        """Task due yesterday in progress plus half-done checklist due today."""
        tasks = [make_task("t1", status="IN_PROGRESS", due_date=NOW - timedelta(days=1))]
        checklists = [make_checklist("c1", delegation_status="pending", checked=2, total=4, due_date=NOW)]
        view = aggregate_assignments("U1", ["ops", "cater"], tasks, checklists, NODES, NOW)
        assert view.stats.total == 2
        assert view.stats.overdue == 1
        assert view.stats.due_today == 1
        assert view.stats.in_progress == 1
        assert view.stats.completed_this_week == 0
        checklist = next(i for i in view.items if i.kind is ItemKind.CHECKLIST)
        assert checklist.progress == 50

    def test_overdue_ignores_terminal_items_in_both_conventions(self) -> None:
        yesterday = NOW - timedelta(days=1)
        items = [
            normalize_task(make_task("done", status="DONE", due_date=yesterday), NODES),
            normalize_checklist(make_checklist("completed", delegation_status="completed", due_date=yesterday), NODES),
            normalize_task(make_task("open", due_date=yesterday), NODES),
        ]
        assert compute_stats(items, NOW).overdue == 1

    def test_earlier_today_is_not_overdue(self) -> None:
        item = normalize_task(make_task("t", due_date=NOW.replace(hour=0, minute=1)), NODES)
        stats = compute_stats([item], NOW)
        assert stats.overdue == 0
        assert stats.due_today == 1

    def test_due_today_is_calendar_day_not_rolling_window(self) -> None:
        items = [
            normalize_task(make_task("tonight", due_date=NOW.replace(hour=23, minute=59)), NODES),
            normalize_task(make_task("tomorrow", due_date=NOW + timedelta(hours=10)), NODES),
        ]
        assert compute_stats(items, NOW).due_today == 1

    def test_completed_this_week_window(self) -> None:
        items = [
            normalize_task(make_task("six", status="DONE", updated_at=NOW - timedelta(days=6)), NODES),
            normalize_task(make_task("eight", status="DONE", updated_at=NOW - timedelta(days=8)), NODES),
            normalize_task(make_task("edge", status="done", updated_at=NOW - timedelta(days=7)), NODES),
            normalize_task(make_task("future", status="DONE", updated_at=NOW + timedelta(hours=1)), NODES),
            normalize_task(make_task("open", status="TODO", updated_at=NOW - timedelta(days=1)), NODES),
            normalize_checklist(
                make_checklist("cl", delegation_status="completed", updated_at=NOW - timedelta(days=2)), NODES
            ),
        ]
        assert compute_stats(items, NOW).completed_this_week == 3

    def test_in_progress_both_conventions(self) -> None:
        items = [
            normalize_task(make_task("t", status="IN_PROGRESS"), NODES),
            normalize_checklist(make_checklist("c", delegation_status="in_progress"), NODES),
            normalize_checklist(make_checklist("p", delegation_status="accepted"), NODES),
        ]
        assert compute_stats(items, NOW).in_progress == 2

    def test_timezone_aware_now(self) -> None:
        """Due dates are compared on the caller's calendar day."""
        tz = timezone(timedelta(hours=-5))
        now = datetime(2025, 6, 18, 20, 0, tzinfo=tz)
        # 2025-06-19 00:30 UTC is still 2025-06-18 in UTC-5.
        item = normalize_task(make_task("t", due_date=datetime(2025, 6, 19, 0, 30, tzinfo=timezone.utc)), NODES)
        stats = compute_stats([item], now)
        assert stats.due_today == 1
        assert stats.overdue == 0

    def test_empty(self) -> None:
        assert compute_stats([], NOW).total == 0


class TestViewHelpers:
    """Tests for partitions and search."""

    @pytest.fixture
    def view(self) -> AssignmentView:
        tasks = [
            make_task("t1", due_date=NOW - timedelta(days=2), title="Order chairs"),
            make_task("t2", status="DONE", due_date=NOW - timedelta(days=2), title="Book venue"),
        ]
        checklists = [make_checklist("c1", due_date=NOW + timedelta(days=1))]
        return aggregate_assignments("U1", ["ops", "cater"], tasks, checklists, NODES, NOW)

    def test_partitions(self, view: AssignmentView) -> None:
        assert [i.id for i in view.tasks] == ["t1", "t2"]
        assert [i.id for i in view.checklists] == ["c1"]
        assert [i.id for i in view.overdue_items(NOW)] == ["t1"]

    def test_is_overdue_without_due_date(self) -> None:
        assert not is_overdue(normalize_task(make_task("t"), NODES), NOW)

    def test_search(self, view: AssignmentView) -> None:
        assert [i.id for i in search_assignments(view.items, "CHAIRS")] == ["t1"]
        assert [i.id for i in search_assignments(view.items, "catering")] == ["c1"]
        assert len(search_assignments(view.items, "")) == 3

    def test_view_serializes(self, view: AssignmentView) -> None:
        data = view.model_dump(mode="json")
        assert data["stats"]["total"] == 3
        assert data["items"][0]["kind"] == "task"


class TestMixedDueDateConventions:
    """Sorting reads due dates the same way the statistics do."""

    def test_date_only_checklist_sorts_after_aware_task_due_today(self) -> None:
        tz = timezone(timedelta(hours=-5))
        now = datetime(2025, 6, 18, 12, 0, tzinfo=tz)
        tasks = [make_task("task", due_date=datetime(2025, 6, 18, 22, 0, tzinfo=tz))]
        checklists = [
            ChecklistRecord(
                id="cl",
                title="Venue prep",
                node_id="cater",
                delegation_status="pending",
                due_date="2025-06-19",
                created_at=datetime(2025, 6, 1),
                updated_at=datetime(2025, 6, 1),
            )
        ]
        view = aggregate_assignments("U1", ["ops", "cater"], tasks, checklists, NODES, now)
        assert view.stats.due_today == 1
        assert [i.id for i in view.items] == ["task", "cl"]

    def test_sort_with_now_reads_naive_in_callers_zone(self) -> None:
        tz = timezone(timedelta(hours=-5))
        now = datetime(2025, 6, 18, 12, 0, tzinfo=tz)
        aware = normalize_task(make_task("aware", due_date=datetime(2025, 6, 19, 2, tzinfo=timezone.utc)), NODES)
        naive = normalize_task(make_task("naive", due_date=datetime(2025, 6, 18, 23)), NODES)
        assert [i.id for i in sort_by_due_date([naive, aware])] == ["naive", "aware"]
        assert [i.id for i in sort_by_due_date([naive, aware], now)] == ["aware", "naive"]


class TestSelect:
    """Tests for narrowing a view without touching its statistics."""

    @pytest.fixture
    def view(self) -> AssignmentView:
        tasks = [
            make_task("late", due_date=NOW - timedelta(days=2), title="Order chairs"),
            make_task("soon", due_date=NOW + timedelta(days=2), title="Book venue"),
        ]
        checklists = [make_checklist("cl", due_date=NOW - timedelta(days=1))]
        return aggregate_assignments("U1", ["ops", "cater"], tasks, checklists, NODES, NOW)

    def test_kind(self, view: AssignmentView) -> None:
        assert [i.id for i in view.select(NOW, kind=ItemKind.CHECKLIST).items] == ["cl"]
        assert [i.id for i in view.select(NOW, kind=ItemKind.TASK).items] == ["late", "soon"]

    def test_overdue(self, view: AssignmentView) -> None:
        assert [i.id for i in view.select(NOW, overdue=True).items] == ["late", "cl"]
        assert [i.id for i in view.select(NOW, overdue=True, kind=ItemKind.TASK).items] == ["late"]

    def test_search_and_stats_kept(self, view: AssignmentView) -> None:
        narrowed = view.select(NOW, search="venue")
        assert [i.id for i in narrowed.items] == ["soon"]
        assert narrowed.stats == view.stats
        assert narrowed.stats.total == 3

    def test_no_filters_returns_everything(self, view: AssignmentView) -> None:
        assert [i.id for i in view.select(NOW).items] == ["late", "cl", "soon"]
