"""Core models and normalization helpers."""

from .models import (  # noqa: F401
    AssignmentItem,
    AssignmentStats,
    ChecklistRecord,
    ChecklistSubItem,
    DelegatedItem,
    DirectoryMember,
    DirectoryMembership,
    ItemKind,
    MembershipRecord,
    NodeRef,
    Person,
    RecordSnapshot,
    TaskRecord,
    WorkspaceNode,
)
from .status import StatusCategory, StatusVocabulary, default_vocabulary  # noqa: F401
