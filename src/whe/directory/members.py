"""Member directory aggregated over a set of workspaces.

Membership records are scattered across workspaces; the directory folds
them into one row per person. Rows list every membership the person holds
inside the node set, including the same person holding different roles in
different workspaces.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..core.models import (
    ACTIVE_STATUS,
    UNKNOWN_MEMBER,
    UNKNOWN_WORKSPACE,
    DirectoryMember,
    DirectoryMembership,
    MembershipRecord,
    Person,
    WorkspaceNode,
)
from ..core.normalization import collation_key, matches_text
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FilterOptions:
    """Distinct values available to the role and workspace type filters."""

    roles: List[str]
    node_types: List[str]


def build_directory(
    memberships: Iterable[MembershipRecord],
    node_ids: Iterable[str],
    nodes_by_id: Dict[str, WorkspaceNode],
    people_by_id: Dict[str, Person],
) -> List[DirectoryMember]:
    """Group active memberships inside ``node_ids`` into one row per person.

    People missing from ``people_by_id`` still get a row, labelled
    ``"Unknown Member"``. Rows are sorted by display name, ignoring case and
    accents; ties keep first-seen order.
    """
    node_set = set(node_ids)
    grouped: Dict[str, List[DirectoryMembership]] = defaultdict(list)
    skipped = 0
    for record in memberships:
        if record.status != ACTIVE_STATUS or record.node_id not in node_set:
            skipped += 1
            continue
        node = nodes_by_id.get(record.node_id)
        grouped[record.person_id].append(
            DirectoryMembership(
                node_id=record.node_id,
                node_name=node.name if node else UNKNOWN_WORKSPACE,
                node_type=node.type if node else None,
                role=record.role,
            )
        )

    rows: List[DirectoryMember] = []
    missing_profiles = 0
    for person_id, person_memberships in grouped.items():
        person = people_by_id.get(person_id)
        if person is None:
            missing_profiles += 1
        rows.append(
            DirectoryMember(
                person_id=person_id,
                display_name=(person.display_name if person and person.display_name else UNKNOWN_MEMBER),
                avatar_ref=person.avatar_ref if person else None,
                organization=person.organization if person else None,
                memberships=person_memberships,
            )
        )
    rows.sort(key=lambda row: collation_key(row.display_name))
    if missing_profiles:
        logger.warning(f"{missing_profiles} directory members have no profile")
    logger.debug(f"Directory built: {len(rows)} members, {skipped} memberships skipped")
    return rows


def member_matches(
    member: DirectoryMember,
    search: Optional[str] = None,
    role: Optional[str] = None,
    node_type: Optional[str] = None,
) -> bool:
    if search:
        needle = search.strip().casefold()
        if needle and not (
            matches_text(member.display_name, needle)
            or matches_text(member.organization, needle)
            or any(
                matches_text(m.node_name, needle) or matches_text(m.role, needle)
                for m in member.memberships
            )
        ):
            return False
    if role and not any(m.role == role for m in member.memberships):
        return False
    if node_type and not any(m.node_type == node_type for m in member.memberships):
        return False
    return True


class MemberDirectory:
    """Built directory rows plus non-destructive filtering."""

    def __init__(self, members: List[DirectoryMember]) -> None:
        self._members = list(members)

    @classmethod
    def build(
        cls,
        memberships: Iterable[MembershipRecord],
        node_ids: Iterable[str],
        nodes_by_id: Dict[str, WorkspaceNode],
        people_by_id: Dict[str, Person],
    ) -> "MemberDirectory":
        return cls(build_directory(memberships, node_ids, nodes_by_id, people_by_id))

    @property
    def members(self) -> List[DirectoryMember]:
        return list(self._members)

    @property
    def total_count(self) -> int:
        return len(self._members)

    @property
    def membership_count(self) -> int:
        return sum(len(m.memberships) for m in self._members)

    def get(self, person_id: str) -> Optional[DirectoryMember]:
        for member in self._members:
            if member.person_id == person_id:
                return member
        return None

    def filter(
        self,
        search: Optional[str] = None,
        role: Optional[str] = None,
        node_type: Optional[str] = None,
    ) -> List[DirectoryMember]:
        """Rows matching every given filter; the directory itself is unchanged."""
        return [m for m in self._members if member_matches(m, search, role, node_type)]

    def filter_options(self) -> FilterOptions:
        roles = {m.role for member in self._members for m in member.memberships}
        node_types = {m.node_type for member in self._members for m in member.memberships if m.node_type}
        return FilterOptions(roles=sorted(roles), node_types=sorted(node_types))
