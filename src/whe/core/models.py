"""Core domain models for workspaces, memberships, people and work items."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from .normalization import coerce_datetime

ACTIVE_STATUS = "ACTIVE"
UNKNOWN_MEMBER = "Unknown Member"
UNKNOWN_ASSIGNEE = "Unknown"
UNKNOWN_WORKSPACE = "Unknown Workspace"


class WorkspaceNode(BaseModel):
    """A workspace in the hierarchy, as stored (flat parent pointer)."""
    id: str
    name: str
    type: Optional[str] = None
    parent_id: Optional[str] = None
    event_id: Optional[str] = None
    status: Optional[str] = None


class NodeRef(BaseModel):
    """Lightweight reference to the workspace holding an item."""
    id: str
    name: str
    type: Optional[str] = None

    @classmethod
    def for_node(cls, node_id: str, nodes_by_id: Dict[str, WorkspaceNode]) -> "NodeRef":
        node = nodes_by_id.get(node_id)
        if node is None:
            return cls(id=node_id, name=UNKNOWN_WORKSPACE)
        return cls(id=node.id, name=node.name, type=node.type)


class MembershipRecord(BaseModel):
    """One person's membership in one workspace."""
    person_id: str
    node_id: str
    role: str
    status: str = ACTIVE_STATUS
    joined_at: Optional[datetime] = None

    @field_validator("joined_at", mode="before")
    @classmethod
    def _coerce_joined(cls, v: Any) -> Any:
        return coerce_datetime(v)


class Person(BaseModel):
    """Profile projection used to label directory rows and assignees."""
    id: str
    display_name: Optional[str] = None
    avatar_ref: Optional[str] = None
    organization: Optional[str] = None
    email: Optional[str] = None


class ChecklistSubItem(BaseModel):
    """A single checkable line of a checklist."""
    id: Optional[str] = None
    text: str = ""
    completed: bool = False


class _TimestampedRecord(BaseModel):
    """Shared date coercion for work item source records."""

    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("due_date", "created_at", "updated_at", mode="before")
    @classmethod
    def _coerce_dates(cls, v: Any) -> Any:
        return coerce_datetime(v)


class TaskRecord(_TimestampedRecord):
    """Discrete task as stored by the backend."""
    id: str
    title: str
    description: Optional[str] = None
    node_id: str
    assignee_id: Optional[str] = None
    status: str = "TODO"
    priority: str = "MEDIUM"
    progress: Optional[int] = Field(None, ge=0, le=100)
    source_node_id: Optional[str] = None
    parent_task_id: Optional[str] = None


class ChecklistRecord(_TimestampedRecord):
    """Checklist as stored by the backend; progress is derived from ``items``."""
    id: str
    title: str
    node_id: str
    delegation_status: Optional[str] = None
    delegated_from_node_id: Optional[str] = None
    items: List[ChecklistSubItem] = Field(default_factory=list)


class ItemKind(str, Enum):
    """Tag of the work item variant an assignment was normalized from."""

    TASK = "task"
    CHECKLIST = "checklist"


class AssignmentItem(BaseModel):
    """Normalized work item shared by every item kind."""
    id: str
    kind: ItemKind
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[datetime] = None
    progress: Optional[int] = None
    node: NodeRef
    created_at: datetime
    updated_at: datetime
    source_node_id: Optional[str] = None
    parent_item_id: Optional[str] = None


class DirectoryMembership(BaseModel):
    """One (workspace, role) pair held by a directory member."""
    node_id: str
    node_name: str
    node_type: Optional[str] = None
    role: str


class DirectoryMember(BaseModel):
    """One row of the member directory: a person and all their memberships."""
    person_id: str
    display_name: str
    avatar_ref: Optional[str] = None
    organization: Optional[str] = None
    memberships: List[DirectoryMembership] = Field(default_factory=list)


class DelegatedItem(BaseModel):
    """A work item pushed from a source workspace into one of its descendants."""
    item: AssignmentItem
    holder: NodeRef
    holder_path: List[str] = Field(default_factory=list)
    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None
    is_synced: bool


class AssignmentStats(BaseModel):
    """Counts derived from one merged assignment list at one instant."""
    total: int = 0
    overdue: int = 0
    due_today: int = 0
    completed_this_week: int = 0
    in_progress: int = 0


class RecordSnapshot(BaseModel):
    """All record sets of one backend, held in memory (e.g. loaded from JSON)."""
    nodes: List[WorkspaceNode] = Field(default_factory=list)
    memberships: List[MembershipRecord] = Field(default_factory=list)
    people: List[Person] = Field(default_factory=list)
    tasks: List[TaskRecord] = Field(default_factory=list)
    checklists: List[ChecklistRecord] = Field(default_factory=list)

