"""API routes for the workspace console.

Each endpoint runs one engine query against the configured record source
and returns fully materialized, already sorted JSON.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ..assignments.aggregator import AssignmentView
from ..core.models import DelegatedItem, DirectoryMember, ItemKind
from ..delegation.tracker import (
    DelegationGroup,
    DelegationSummary,
    filter_delegations,
    group_delegations,
    summarize_delegations,
)
from ..engine import WorkspaceEngine
from ..hierarchy.roles import assignable_roles, roles_by_level
from ..sources import create_record_source

router = APIRouter(prefix="/api")


class DescendantsResponse(BaseModel):
    node_id: str
    descendants: List[str]


class PathResponse(BaseModel):
    """Root-relative path plus the depth rule for adding a sub-workspace."""

    node_id: str
    stop_at: Optional[str] = None
    path: List[str]
    depth: int
    can_create_child: bool


class FilterOptionsResponse(BaseModel):
    roles: List[str] = Field(default_factory=list)
    node_types: List[str] = Field(default_factory=list)
    roles_by_level: Dict[str, List[str]] = Field(default_factory=dict)


class MembersResponse(BaseModel):
    """Filtered directory rows plus the counts the directory page shows."""

    node_id: str
    total_count: int
    filtered_count: int
    members: List[DirectoryMember]
    filter_options: FilterOptionsResponse
    assignable_roles: Optional[List[str]] = None


class DelegationsResponse(BaseModel):
    """Summary over every delegated item; ``items`` and ``groups`` honour the filters."""

    node_id: str
    summary: DelegationSummary
    items: List[DelegatedItem]
    groups: List[DelegationGroup]


async def get_engine(scope: Optional[str] = Query(None, description="Event id limiting the workspaces")) -> AsyncIterator[WorkspaceEngine]:
    try:
        source = create_record_source()
    except ValueError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    async with source:
        yield WorkspaceEngine(source, scope=scope)


def _reference_time(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.get("/workspaces/{node_id}/descendants", response_model=DescendantsResponse)
async def descendants(node_id: str, engine: WorkspaceEngine = Depends(get_engine)) -> DescendantsResponse:
    return DescendantsResponse(node_id=node_id, descendants=await engine.descendants_of(node_id))


@router.get("/workspaces/{node_id}/path", response_model=PathResponse)
async def path(
    node_id: str,
    stop_at: Optional[str] = Query(None, description="Ancestor to stop before"),
    engine: WorkspaceEngine = Depends(get_engine),
) -> PathResponse:
    tree = await engine.load_tree()
    return PathResponse(
        node_id=node_id,
        stop_at=stop_at,
        path=tree.path_to_root(node_id, stop_at=stop_at),
        depth=tree.depth_of(node_id),
        can_create_child=node_id in tree and tree.can_create_child(node_id),
    )


@router.get("/workspaces/{node_id}/members", response_model=MembersResponse)
async def members(
    node_id: str,
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    node_type: Optional[str] = Query(None),
    include_descendants: bool = Query(True),
    as_role: Optional[str] = Query(None, description="List the present roles this role may assign"),
    engine: WorkspaceEngine = Depends(get_engine),
) -> MembersResponse:
    directory = await engine.build_directory(node_id, include_descendants=include_descendants)
    rows = directory.filter(search=search, role=role, node_type=node_type)
    options = directory.filter_options()
    grouped = roles_by_level(options.roles)
    return MembersResponse(
        node_id=node_id,
        total_count=directory.total_count,
        filtered_count=len(rows),
        members=rows,
        filter_options=FilterOptionsResponse(
            roles=options.roles,
            node_types=options.node_types,
            roles_by_level={level.name.lower(): names for level, names in grouped.items() if names},
        ),
        assignable_roles=assignable_roles(as_role, options.roles) if as_role else None,
    )


@router.get("/workspaces/{node_id}/delegations", response_model=DelegationsResponse)
async def delegations(
    node_id: str,
    search: Optional[str] = Query(None, description="Match title, holding workspace or assignee"),
    status: Optional[str] = Query(None, description="Exact status; ALL disables the filter"),
    now: Optional[datetime] = Query(None, description="Reference time for overdue counts"),
    engine: WorkspaceEngine = Depends(get_engine),
) -> DelegationsResponse:
    items = await engine.track_delegation(node_id)
    visible = filter_delegations(items, search=search, status=status)
    return DelegationsResponse(
        node_id=node_id,
        summary=summarize_delegations(items, now=_reference_time(now)),
        items=visible,
        groups=group_delegations(visible),
    )


@router.get("/people/{person_id}/assignments", response_model=AssignmentView)
async def assignments(
    person_id: str,
    now: Optional[datetime] = Query(None, description="Reference time; defaults to the request time (UTC)"),
    node_id: Optional[List[str]] = Query(None, description="Workspace ids; default: the person's memberships"),
    search: Optional[str] = Query(None, description="Match title, description or workspace name"),
    kind: Optional[ItemKind] = Query(None),
    overdue: bool = Query(False, description="Only overdue items"),
    engine: WorkspaceEngine = Depends(get_engine),
) -> AssignmentView:
    reference = _reference_time(now)
    view = await engine.aggregate_assignments(person_id, reference, node_ids=node_id or None)
    return view.select(reference, search=search, kind=kind, overdue=overdue)
