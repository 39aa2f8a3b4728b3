"""Workspace hierarchy: forest reconstruction and role levels."""

from .tree import TreeNode, WorkspaceTree  # noqa: F401
from .roles import HierarchyLevel, can_manage_role, role_label, role_level  # noqa: F401
