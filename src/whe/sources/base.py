"""Base classes and interfaces for record sources."""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from ..core.models import (
    ACTIVE_STATUS,
    ChecklistRecord,
    MembershipRecord,
    Person,
    TaskRecord,
    WorkspaceNode,
)


class FetchError(Exception):
    """A record set could not be fetched from the backend."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"Failed to fetch {table}: {message}")
        self.table = table


class RecordSource(ABC):
    """Read-only access to the flat record sets the engine aggregates.

    Implementations return unordered lists unless stated otherwise and raise
    :class:`FetchError` when a record set cannot be produced.
    """

    def __init__(self, config: Optional[dict] = None) -> None:
        self.config = config or {}
        self.source_name = self.__class__.__name__.replace("RecordSource", "").lower()

    @abstractmethod
    async def fetch_nodes(self, scope: Optional[str] = None) -> List[WorkspaceNode]:
        """All workspaces, optionally limited to one event scope."""
        raise NotImplementedError

    @abstractmethod
    async def fetch_memberships(
        self, node_ids: Iterable[str], status: Optional[str] = ACTIVE_STATUS
    ) -> List[MembershipRecord]:
        """Memberships held in ``node_ids``; ``status=None`` returns every status."""
        raise NotImplementedError

    @abstractmethod
    async def fetch_person_memberships(
        self, person_id: str, status: Optional[str] = ACTIVE_STATUS
    ) -> List[MembershipRecord]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_people(self, person_ids: Iterable[str]) -> List[Person]:
        """Profiles for the given ids; unknown ids are simply absent."""
        raise NotImplementedError

    @abstractmethod
    async def fetch_tasks(
        self, node_ids: Iterable[str], assignee_id: Optional[str] = None
    ) -> List[TaskRecord]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_delegated_tasks(
        self, source_node_id: str, node_ids: Iterable[str]
    ) -> List[TaskRecord]:
        """Tasks delegated from ``source_node_id`` held in ``node_ids``, newest first."""
        raise NotImplementedError

    @abstractmethod
    async def fetch_checklists(
        self, node_ids: Iterable[str], delegated_only: bool = True
    ) -> List[ChecklistRecord]:
        raise NotImplementedError

    async def close(self) -> None:
        """Clean up resources."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} source={self.source_name}>"
