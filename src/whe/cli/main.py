"""CLI application using Typer for the workspace hierarchy engine."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from ..core.models import ItemKind
from ..delegation.tracker import filter_delegations, group_delegations, summarize_delegations
from ..engine import WorkspaceEngine
from ..hierarchy.roles import assignable_roles, role_label, roles_by_level
from ..hierarchy.tree import TreeNode, WorkspaceTree
from ..io.export import assignments_frame, directory_frame, export_frame
from ..sources import FetchError, create_record_source
from ..utils.logging import get_logger

app = typer.Typer(
    name="whe",
    help="Workspace hierarchy, member directory, delegation and assignment queries",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

SnapshotOption = typer.Option(None, "--snapshot", "-s", help="JSON snapshot of records (default: configured backend)")
ScopeOption = typer.Option(None, "--scope", help="Limit workspaces to one event id")


async def _run(snapshot: Optional[Path], scope: Optional[str], query: Callable[[WorkspaceEngine], Awaitable[Any]]) -> Any:
    source = create_record_source(snapshot)
    async with source:
        return await query(WorkspaceEngine(source, scope=scope))


def _execute(snapshot: Optional[Path], scope: Optional[str], query: Callable[[WorkspaceEngine], Awaitable[Any]]) -> Any:
    try:
        return asyncio.run(_run(snapshot, scope, query))
    except (FetchError, ValueError) as exc:
        logger.error(f"Query failed: {exc}")
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)


def _parse_now(now: Optional[str]) -> datetime:
    try:
        return datetime.fromisoformat(now) if now else datetime.now().astimezone()
    except ValueError:
        console.print(f"[red]Error: invalid --now value {now!r}[/red]")
        raise typer.Exit(1)


def _add_branch(parent: Tree, node: TreeNode, workspace_tree: WorkspaceTree, max_depth: Optional[int]) -> None:
    label = f"[bold]{node.node.name}[/bold] [dim]{node.node.type or ''} ({node.id})[/dim]"
    if not workspace_tree.can_create_child(node.id, max_depth):
        label += " [yellow]max depth[/yellow]"
    branch = parent.add(label)
    for child in node.children:
        _add_branch(branch, child, workspace_tree, max_depth)


@app.command()
def tree(
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Depth limit to mark (default: configured)"),
    snapshot: Optional[Path] = SnapshotOption,
    scope: Optional[str] = ScopeOption,
) -> None:
    """Print the workspace forest, marking workspaces that cannot take sub-workspaces."""
    workspace_tree = _execute(snapshot, scope, lambda engine: engine.load_tree())
    root = Tree(f"[bold blue]Workspaces[/bold blue] ({len(workspace_tree)})")
    for node in workspace_tree.forest():
        _add_branch(root, node, workspace_tree, max_depth)
    console.print(root)


@app.command()
def members(
    node_id: str = typer.Argument(..., help="Workspace whose subtree to list"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Match name, organization, workspace or role"),
    role: Optional[str] = typer.Option(None, "--role", help="Exact role filter"),
    node_type: Optional[str] = typer.Option(None, "--type", help="Exact workspace type filter"),
    only_self: bool = typer.Option(False, "--only-self", help="Ignore descendant workspaces"),
    as_role: Optional[str] = typer.Option(None, "--as-role", help="Show which present roles this role may assign"),
    export: Optional[Path] = typer.Option(None, "--export", help="Write the filtered rows to this CSV file"),
    snapshot: Optional[Path] = SnapshotOption,
    scope: Optional[str] = ScopeOption,
) -> None:
    """Member directory for a workspace and its descendants."""
    directory = _execute(
        snapshot, scope, lambda engine: engine.build_directory(node_id, include_descendants=not only_self)
    )
    rows = directory.filter(search=search, role=role, node_type=node_type)
    table = Table(title=f"Members ({len(rows)} of {directory.total_count})")
    table.add_column("Name", style="cyan")
    table.add_column("Organization")
    table.add_column("Workspaces")
    table.add_column("Roles")
    for row in rows:
        table.add_row(
            row.display_name,
            row.organization or "",
            ", ".join(m.node_name for m in row.memberships),
            ", ".join(role_label(m.role) for m in row.memberships),
        )
    console.print(table)
    roles = directory.filter_options().roles
    for level, names in roles_by_level(roles).items():
        if names:
            console.print(f"[bold]{level.name.title()}[/bold]: {', '.join(role_label(n) for n in names)}")
    if as_role:
        allowed = assignable_roles(as_role, roles)
        console.print(f"{role_label(as_role)} can assign: {', '.join(allowed) or 'none'}")
    if export is not None:
        path = export_frame(directory_frame(rows), "members", export)
        console.print(f"[green]Exported to {path}[/green]")


@app.command()
def delegations(
    node_id: str = typer.Argument(..., help="Source workspace"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Match title, holding workspace or assignee"),
    status: Optional[str] = typer.Option(None, "--status", help="Exact status (ALL for every status)"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO 8601); default: current time"),
    snapshot: Optional[Path] = SnapshotOption,
    scope: Optional[str] = ScopeOption,
) -> None:
    """Tasks delegated from a workspace into its descendants, grouped by holder."""
    reference = _parse_now(now)
    items = _execute(snapshot, scope, lambda engine: engine.track_delegation(node_id))
    summary = summarize_delegations(items, now=reference)
    console.print(
        f"[bold]Total[/bold] {summary.total}  [green]Completed[/green] {summary.completed}  "
        f"[blue]In progress[/blue] {summary.in_progress}  [red]Overdue[/red] {summary.overdue}"
    )
    visible = filter_delegations(items, search=search, status=status)
    table = Table(title=f"Delegated items ({summary.synced} synced, {summary.diverged} diverged)")
    table.add_column("Held by")
    table.add_column("Title", style="cyan")
    table.add_column("Assignee")
    table.add_column("Status")
    table.add_column("Sync")
    for group in group_delegations(visible):
        for entry in group.items:
            table.add_row(
                " / ".join(entry.holder_path) or group.holder.name,
                entry.item.title,
                entry.assignee_name or "-",
                entry.item.status,
                "[green]synced[/green]" if entry.is_synced else "[yellow]diverged[/yellow]",
            )
    console.print(table)


@app.command()
def assignments(
    person_id: str = typer.Argument(..., help="Person whose assignments to list"),
    node: Optional[List[str]] = typer.Option(None, "--node", "-n", help="Workspace id (repeatable); default: memberships"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO 8601); default: current time"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Match title, description or workspace"),
    kind: Optional[ItemKind] = typer.Option(None, "--kind", help="Only tasks or only checklists"),
    overdue: bool = typer.Option(False, "--overdue", help="Only overdue items"),
    export: Optional[Path] = typer.Option(None, "--export", help="Write the items to this CSV file"),
    snapshot: Optional[Path] = SnapshotOption,
    scope: Optional[str] = ScopeOption,
) -> None:
    """A person's merged tasks and checklists with statistics."""
    reference = _parse_now(now)
    view = _execute(
        snapshot, scope, lambda engine: engine.aggregate_assignments(person_id, reference, node_ids=node or None)
    )
    stats = view.stats
    console.print(
        f"[bold]Total[/bold] {stats.total}  [red]Overdue[/red] {stats.overdue}  "
        f"[yellow]Due today[/yellow] {stats.due_today}  [blue]In progress[/blue] {stats.in_progress}  "
        f"[green]Completed this week[/green] {stats.completed_this_week}"
    )
    shown = view.select(reference, search=search, kind=kind, overdue=overdue)
    table = Table(title=f"Assignments for {person_id}")
    table.add_column("Kind")
    table.add_column("Title", style="cyan")
    table.add_column("Workspace")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Due")
    table.add_column("Progress", justify="right")
    for item in shown.items:
        table.add_row(
            "Task" if item.kind is ItemKind.TASK else "Checklist",
            item.title,
            item.node.name,
            item.status,
            item.priority,
            item.due_date.strftime("%Y-%m-%d") if item.due_date else "-",
            f"{item.progress}%" if item.progress is not None else "-",
        )
    console.print(table)
    if export is not None:
        path = export_frame(assignments_frame(shown.items), "assignments", export)
        console.print(f"[green]Exported to {path}[/green]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Hostname to bind the web server to."),
    port: int = typer.Option(8000, "--port", help="Port for the web server."),
    reload: bool = typer.Option(False, "--reload/--no-reload", help="Enable auto-reload (development only)."),
) -> None:
    """Start the JSON API server."""
    from ..web.app import start_server

    console.print(f"[bold blue]Starting web server[/bold blue] at http://{host}:{port}")
    start_server(host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
