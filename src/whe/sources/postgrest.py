"""PostgREST (Supabase) record source with retries and chunked id filters."""

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config.settings import settings
from ..core.models import (
    ACTIVE_STATUS,
    ChecklistRecord,
    ChecklistSubItem,
    MembershipRecord,
    Person,
    TaskRecord,
    WorkspaceNode,
)
from ..core.normalization import sort_timestamp
from ..utils.logging import get_logger
from .base import FetchError, RecordSource

logger = get_logger(__name__)

T = TypeVar("T")

NODE_COLUMNS = "id,name,workspace_type,parent_workspace_id,event_id,status"
MEMBER_COLUMNS = "user_id,workspace_id,role,status,joined_at"
PROFILE_COLUMNS = "id,full_name,avatar_url,organization,email"
TASK_COLUMNS = (
    "id,title,description,workspace_id,assigned_to,status,priority,due_date,progress,"
    "source_workspace_id,parent_task_id,created_at,updated_at"
)
CHECKLIST_COLUMNS = (
    "id,title,workspace_id,due_date,delegation_status,delegated_from_workspace_id,"
    "items,created_at,updated_at"
)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code == 429 or code >= 500
    return isinstance(exc, httpx.TransportError)


def _quote(value: str) -> str:
    if any(ch in value for ch in ',()" '):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return value


def in_filter(values: Iterable[str]) -> str:
    """PostgREST ``in`` operator value, e.g. ``in.(a,b)``."""
    return "in.(" + ",".join(_quote(v) for v in values) + ")"


def _chunks(values: List[str], size: int) -> List[List[str]]:
    return [values[i:i + size] for i in range(0, len(values), size)]


class PostgrestRecordSource(RecordSource):
    """Query the backend's REST interface for each record set."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        config: Optional[dict] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(config)
        self.base_url = (base_url or settings.supabase_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("A backend URL is required (set SUPABASE_URL)")
        self.api_key = api_key if api_key is not None else settings.supabase_key
        self.max_retries = self.config.get("max_retries", settings.max_retries)
        self.backoff = self.config.get("retry_backoff_factor", settings.retry_backoff_factor)
        self.max_wait = self.config.get("retry_max_wait", settings.retry_max_wait)
        self.chunk_size = self.config.get("in_filter_chunk_size", settings.in_filter_chunk_size)
        self.client = client or httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            timeout=self.config.get("request_timeout", settings.request_timeout),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            headers=self._build_headers(),
        )
        self._requests_made = 0

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "User-Agent": "WorkspaceHierarchyEngine/0.1.0"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _get(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff, min=0, max=self.max_wait),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    self._requests_made += 1
                    logger.debug("Fetching records", extra={"table": table, "params": params})
                    response = await self.client.get(f"/{table}", params=params)
                    response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(f"HTTP error fetching {table}: {exc.response.status_code}")
            raise FetchError(table, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error(f"Transport error fetching {table}: {exc}")
            raise FetchError(table, str(exc)) from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise FetchError(table, "response body is not JSON") from exc
        if not isinstance(data, list):
            raise FetchError(table, f"expected a list of rows, got {type(data).__name__}")
        return data

    async def _get_in(
        self, table: str, column: str, values: Iterable[str], params: Dict[str, str]
    ) -> List[Dict[str, Any]]:
        unique = list(dict.fromkeys(values))
        if not unique:
            return []
        pending = [
            asyncio.ensure_future(self._get(table, {**params, column: in_filter(chunk)}))
            for chunk in _chunks(unique, self.chunk_size)
        ]
        try:
            batches = await asyncio.gather(*pending)
        except BaseException:
            # One chunk failed: stop the others before the client is closed.
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise
        return [row for batch in batches for row in batch]

    def _parse_rows(self, table: str, rows: List[Dict[str, Any]], parser: Callable[[Dict[str, Any]], T]) -> List[T]:
        parsed: List[T] = []
        for row in rows:
            try:
                parsed.append(parser(row))
            except (ValidationError, KeyError, TypeError, AttributeError) as exc:
                row_id = row.get("id", "?") if isinstance(row, dict) else "?"
                raise FetchError(table, f"malformed row {row_id}: {exc}") from exc
        return parsed

    @staticmethod
    def _parse_node(row: Dict[str, Any]) -> WorkspaceNode:
        return WorkspaceNode(
            id=row["id"],
            name=row.get("name") or "",
            type=row.get("workspace_type"),
            parent_id=row.get("parent_workspace_id"),
            event_id=row.get("event_id"),
            status=row.get("status"),
        )

    @staticmethod
    def _parse_membership(row: Dict[str, Any]) -> MembershipRecord:
        return MembershipRecord(
            person_id=row["user_id"],
            node_id=row["workspace_id"],
            role=row.get("role") or "",
            status=row.get("status") or "",
            joined_at=row.get("joined_at"),
        )

    @staticmethod
    def _parse_person(row: Dict[str, Any]) -> Person:
        return Person(
            id=row["id"],
            display_name=row.get("full_name"),
            avatar_ref=row.get("avatar_url"),
            organization=row.get("organization"),
            email=row.get("email"),
        )

    @staticmethod
    def _parse_task(row: Dict[str, Any]) -> TaskRecord:
        return TaskRecord(
            id=row["id"],
            title=row.get("title") or "",
            description=row.get("description"),
            node_id=row["workspace_id"],
            assignee_id=row.get("assigned_to"),
            status=row.get("status") or "TODO",
            priority=row.get("priority") or "MEDIUM",
            due_date=row.get("due_date"),
            progress=row.get("progress"),
            source_node_id=row.get("source_workspace_id"),
            parent_task_id=row.get("parent_task_id"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _parse_checklist(row: Dict[str, Any]) -> ChecklistRecord:
        items = row.get("items") or []
        return ChecklistRecord(
            id=row["id"],
            title=row.get("title") or "",
            node_id=row["workspace_id"],
            due_date=row.get("due_date"),
            delegation_status=row.get("delegation_status"),
            delegated_from_node_id=row.get("delegated_from_workspace_id"),
            items=[ChecklistSubItem.model_validate(item) for item in items],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def fetch_nodes(self, scope: Optional[str] = None) -> List[WorkspaceNode]:
        params = {"select": NODE_COLUMNS, "order": "created_at.asc"}
        if scope is not None:
            params["event_id"] = f"eq.{scope}"
        rows = await self._get("workspaces", params)
        return self._parse_rows("workspaces", rows, self._parse_node)

    async def fetch_memberships(
        self, node_ids: Iterable[str], status: Optional[str] = ACTIVE_STATUS
    ) -> List[MembershipRecord]:
        params = {"select": MEMBER_COLUMNS}
        if status is not None:
            params["status"] = f"eq.{status}"
        rows = await self._get_in("workspace_team_members", "workspace_id", node_ids, params)
        return self._parse_rows("workspace_team_members", rows, self._parse_membership)

    async def fetch_person_memberships(
        self, person_id: str, status: Optional[str] = ACTIVE_STATUS
    ) -> List[MembershipRecord]:
        params = {"select": MEMBER_COLUMNS, "user_id": f"eq.{person_id}"}
        if status is not None:
            params["status"] = f"eq.{status}"
        rows = await self._get("workspace_team_members", params)
        return self._parse_rows("workspace_team_members", rows, self._parse_membership)

    async def fetch_people(self, person_ids: Iterable[str]) -> List[Person]:
        rows = await self._get_in("user_profiles", "id", person_ids, {"select": PROFILE_COLUMNS})
        return self._parse_rows("user_profiles", rows, self._parse_person)

    async def fetch_tasks(
        self, node_ids: Iterable[str], assignee_id: Optional[str] = None
    ) -> List[TaskRecord]:
        params = {"select": TASK_COLUMNS}
        if assignee_id is not None:
            params["assigned_to"] = f"eq.{assignee_id}"
        rows = await self._get_in("workspace_tasks", "workspace_id", node_ids, params)
        return self._parse_rows("workspace_tasks", rows, self._parse_task)

    async def fetch_delegated_tasks(
        self, source_node_id: str, node_ids: Iterable[str]
    ) -> List[TaskRecord]:
        params = {
            "select": TASK_COLUMNS,
            "source_workspace_id": f"eq.{source_node_id}",
            "order": "created_at.desc",
        }
        rows = await self._get_in("workspace_tasks", "workspace_id", node_ids, params)
        tasks = self._parse_rows("workspace_tasks", rows, self._parse_task)
        # Chunks arrive ordered independently; restore newest-first overall.
        return sorted(tasks, key=lambda t: sort_timestamp(t.created_at), reverse=True)

    async def fetch_checklists(
        self, node_ids: Iterable[str], delegated_only: bool = True
    ) -> List[ChecklistRecord]:
        params = {"select": CHECKLIST_COLUMNS}
        if delegated_only:
            params["delegation_status"] = "not.is.null"
        rows = await self._get_in("workspace_checklists", "workspace_id", node_ids, params)
        return self._parse_rows("workspace_checklists", rows, self._parse_checklist)

    async def close(self) -> None:
        await self.client.aclose()
