"""Workspace role hierarchy.

Roles are free-form strings in membership records, but the console groups
them into four levels: the workspace owner, department managers, team
leads (any ``*_LEAD`` role plus two legacy titles) and coordinators
(everything else). A role may manage only roles on a strictly lower level.
"""

from enum import IntEnum
from typing import Dict, Iterable, List

OWNER_ROLE = "WORKSPACE_OWNER"
MANAGER_ROLE = "DEPARTMENT_MANAGER"
LEGACY_LEAD_ROLES = frozenset({"VOLUNTEER_MANAGER", "TECHNICAL_SPECIALIST"})

# Acronyms that stay uppercase in labels.
_ACRONYMS = {"IT"}


class HierarchyLevel(IntEnum):
    """Lower value means more authority."""

    OWNER = 1
    MANAGER = 2
    LEAD = 3
    COORDINATOR = 4


def role_level(role: str) -> HierarchyLevel:
    key = role.strip().upper()
    if key == OWNER_ROLE:
        return HierarchyLevel.OWNER
    if key == MANAGER_ROLE:
        return HierarchyLevel.MANAGER
    if key.endswith("_LEAD") or key in LEGACY_LEAD_ROLES:
        return HierarchyLevel.LEAD
    return HierarchyLevel.COORDINATOR


def role_label(role: str) -> str:
    """Human readable label, e.g. ``SOCIAL_MEDIA_LEAD`` -> ``Social Media Lead``."""
    words = [w for w in role.strip().split("_") if w]
    if not words:
        return role
    return " ".join(w.upper() if w.upper() in _ACRONYMS else w.capitalize() for w in words)


def can_manage_role(manager_role: str, target_role: str) -> bool:
    return role_level(manager_role) < role_level(target_role)


def assignable_roles(role: str, known_roles: Iterable[str]) -> List[str]:
    """Roles from ``known_roles`` that ``role`` may hand out."""
    level = role_level(role)
    return [r for r in known_roles if role_level(r) > level]


def roles_by_level(roles: Iterable[str]) -> Dict[HierarchyLevel, List[str]]:
    grouped: Dict[HierarchyLevel, List[str]] = {level: [] for level in HierarchyLevel}
    for role in roles:
        grouped[role_level(role)].append(role)
    return grouped
