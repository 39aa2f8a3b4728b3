"""Unit tests for the PostgREST record source, with HTTP mocked by respx."""

import asyncio

import httpx
import pytest
import respx

from whe.sources.base import FetchError
from whe.sources.postgrest import PostgrestRecordSource, in_filter

HOST = "db.example.com"
FAST = {"max_retries": 2, "retry_backoff_factor": 0}


def make_source(**config) -> PostgrestRecordSource:
    """Helper returning a source against the mocked host with no retry waits."""
    return PostgrestRecordSource(base_url=f"https://{HOST}/", api_key="secret", config={**FAST, **config})


def task_row(task_id: str, node_id: str, created_at: str, **extra) -> dict:
    row = {
        "id": task_id,
        "title": f"Task {task_id}",
        "workspace_id": node_id,
        "assigned_to": "u1",
        "status": "TODO",
        "due_date": "2025-06-20",
        "source_workspace_id": "root",
        "parent_task_id": None,
        "created_at": created_at,
        "updated_at": created_at,
    }
    row.update(extra)
    return row


class TestInFilter:
    def test_plain_values(self) -> None:
        assert in_filter(["a", "b"]) == "in.(a,b)"

    def test_reserved_characters_are_quoted(self) -> None:
        assert in_filter(["a b", "c,d", "x"]) == 'in.("a b","c,d",x)'


class TestRequests:
    """Tests for query construction and row mapping."""

    def test_requires_url(self) -> None:
        with pytest.raises(ValueError):
            PostgrestRecordSource(base_url="")

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_nodes_maps_columns_and_sends_key(self) -> None:
        route = respx.get(host=HOST, path="/rest/v1/workspaces").mock(
            return_value=httpx.Response(
                200,
                json=[
                    {"id": "root", "name": "Summit", "workspace_type": "ROOT", "parent_workspace_id": None},
                    {"id": "ops", "name": "Ops", "workspace_type": "DEPARTMENT", "parent_workspace_id": "root"},
                ],
            )
        )
        async with make_source() as source:
            nodes = await source.fetch_nodes(scope="ev1")
        assert [(n.id, n.type, n.parent_id) for n in nodes] == [
            ("root", "ROOT", None),
            ("ops", "DEPARTMENT", "root"),
        ]
        request = route.calls.last.request
        assert request.headers["apikey"] == "secret"
        assert request.headers["authorization"] == "Bearer secret"
        assert request.url.params["event_id"] == "eq.ev1"
        assert request.url.params["order"] == "created_at.asc"

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_memberships_filters_status_and_nodes(self) -> None:
        route = respx.get(host=HOST, path="/rest/v1/workspace_team_members").mock(
            return_value=httpx.Response(
                200,
                json=[{"user_id": "u1", "workspace_id": "ops", "role": "DEPARTMENT_MANAGER", "status": "ACTIVE"}],
            )
        )
        async with make_source() as source:
            memberships = await source.fetch_memberships(["ops", "cater", "ops"])
        assert memberships[0].person_id == "u1"
        assert memberships[0].node_id == "ops"
        params = route.calls.last.request.url.params
        assert params["workspace_id"] == "in.(ops,cater)"
        assert params["status"] == "eq.ACTIVE"

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_people_chunks_large_id_sets(self) -> None:
        route = respx.get(host=HOST, path="/rest/v1/user_profiles").mock(
            side_effect=lambda request: httpx.Response(
                200,
                json=[
                    {"id": pid, "full_name": pid.upper()}
                    for pid in request.url.params["id"][len("in.("):-1].split(",")
                ],
            )
        )
        async with make_source(in_filter_chunk_size=2) as source:
            people = await source.fetch_people(["a", "b", "c"])
        assert route.call_count == 2
        assert sorted(p.display_name for p in people) == ["A", "B", "C"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_id_set_makes_no_request(self) -> None:
        async with make_source() as source:
            assert await source.fetch_people([]) == []
            assert await source.fetch_tasks([]) == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_delegated_tasks_newest_first_across_chunks(self) -> None:
        rows = {
            "in.(n1)": [task_row("t1", "n1", "2025-06-01T10:00:00+00:00")],
            "in.(n2)": [task_row("t2", "n2", "2025-06-03T10:00:00+00:00", parent_task_id="p2")],
        }
        route = respx.get(host=HOST, path="/rest/v1/workspace_tasks").mock(
            side_effect=lambda request: httpx.Response(200, json=rows[request.url.params["workspace_id"]])
        )
        async with make_source(in_filter_chunk_size=1) as source:
            tasks = await source.fetch_delegated_tasks("root", ["n1", "n2"])
        assert [t.id for t in tasks] == ["t2", "t1"]
        assert tasks[0].parent_task_id == "p2"
        assert tasks[1].due_date.hour == 0
        params = route.calls.last.request.url.params
        assert params["source_workspace_id"] == "eq.root"
        assert params["order"] == "created_at.desc"

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_checklists_delegated_only(self) -> None:
        route = respx.get(host=HOST, path="/rest/v1/workspace_checklists").mock(
            return_value=httpx.Response(
                200,
                json=[
                    {
                        "id": "c1",
                        "title": "Venue prep",
                        "workspace_id": "cater",
                        "delegation_status": "pending",
                        "delegated_from_workspace_id": "ops",
                        "items": [{"text": "chairs", "completed": True}, {"text": "tables"}],
                        "created_at": "2025-06-01T00:00:00Z",
                        "updated_at": "2025-06-02T00:00:00Z",
                    }
                ],
            )
        )
        async with make_source() as source:
            checklists = await source.fetch_checklists(["cater"])
        assert checklists[0].delegated_from_node_id == "ops"
        assert [i.completed for i in checklists[0].items] == [True, False]
        assert route.calls.last.request.url.params["delegation_status"] == "not.is.null"


class TestFailures:
    """Tests for retries and error reporting."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_error_is_not_retried(self) -> None:
        route = respx.get(host=HOST, path="/rest/v1/workspaces").mock(return_value=httpx.Response(404))
        async with make_source() as source:
            with pytest.raises(FetchError) as excinfo:
                await source.fetch_nodes()
        assert route.call_count == 1
        assert excinfo.value.table == "workspaces"
        assert "HTTP 404" in str(excinfo.value)

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_is_retried(self) -> None:
        route = respx.get(host=HOST, path="/rest/v1/workspaces").mock(
            side_effect=[httpx.Response(503), httpx.Response(200, json=[{"id": "root", "name": "Summit"}])]
        )
        async with make_source() as source:
            nodes = await source.fetch_nodes()
        assert route.call_count == 2
        assert [n.id for n in nodes] == ["root"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_retries_exhausted(self) -> None:
        route = respx.get(host=HOST, path="/rest/v1/workspaces").mock(return_value=httpx.Response(500))
        async with make_source() as source:
            with pytest.raises(FetchError, match="HTTP 500"):
                await source.fetch_nodes()
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error(self) -> None:
        route = respx.get(host=HOST, path="/rest/v1/workspaces").mock(side_effect=httpx.ConnectError)
        async with make_source() as source:
            with pytest.raises(FetchError):
                await source.fetch_nodes()
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_list_body(self) -> None:
        respx.get(host=HOST, path="/rest/v1/workspaces").mock(
            return_value=httpx.Response(200, json={"message": "not rows"})
        )
        async with make_source() as source:
            with pytest.raises(FetchError, match="expected a list"):
                await source.fetch_nodes()

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_body(self) -> None:
        respx.get(host=HOST, path="/rest/v1/workspaces").mock(return_value=httpx.Response(200, text="<html>"))
        async with make_source() as source:
            with pytest.raises(FetchError, match="not JSON"):
                await source.fetch_nodes()

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_row(self) -> None:
        respx.get(host=HOST, path="/rest/v1/workspace_tasks").mock(
            return_value=httpx.Response(200, json=[{"id": "t1", "workspace_id": "ops"}])
        )
        async with make_source() as source:
            with pytest.raises(FetchError, match="malformed row t1"):
                await source.fetch_tasks(["ops"])

    @pytest.mark.asyncio
    async def test_failed_chunk_cancels_sibling_requests(self) -> None:
        source = make_source(in_filter_chunk_size=1)
        cancelled = []

        async def fake_get(table, params):
            if params["id"] == "in.(a)":
                raise FetchError(table, "HTTP 404")
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.append(params["id"])
                raise
            return []

        source._get = fake_get
        try:
            with pytest.raises(FetchError, match="HTTP 404"):
                await source.fetch_people(["a", "b", "c"])
        finally:
            await source.close()
        assert sorted(cancelled) == ["in.(b)", "in.(c)"]
