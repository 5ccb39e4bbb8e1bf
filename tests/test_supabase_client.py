from __future__ import annotations

import pytest
import requests

from controller.app_controller import Status, TaskController
from core.exceptions import ConnectionFailure, StoreError
from storage.supabase import SupabaseClient, eq
from storage.task_repository import TaskRepository

from .fakes import FakeHTTPSession, FakeResponse


def _client(*responses) -> tuple[SupabaseClient, FakeHTTPSession]:
    http = FakeHTTPSession(*responses)
    return SupabaseClient("https://demo.supabase.co/", "anon-key", timeout=5, session=http), http


def test_auth_headers_and_select_params() -> None:
    client, http = _client(FakeResponse(200, [{"id": "t1"}]))

    rows = client.select("tasks", {"id": eq("t1")}, order="created_at.desc", limit=1)

    assert rows == [{"id": "t1"}]
    assert http.headers["apikey"] == "anon-key"
    assert http.headers["Authorization"] == "Bearer anon-key"
    call = http.calls[0]
    assert (call.method, call.url) == ("GET", "https://demo.supabase.co/rest/v1/tasks")
    assert call.params == {"select": "*", "id": "eq.t1", "order": "created_at.desc", "limit": 1}
    assert call.timeout == 5


def test_insert_asks_for_representation() -> None:
    client, http = _client(FakeResponse(201, [{"id": "t1", "title": "A"}]))

    row = client.insert("tasks", {"id": "t1", "title": "A"})

    assert row == {"id": "t1", "title": "A"}
    assert http.calls[0].json == [{"id": "t1", "title": "A"}]
    assert http.calls[0].headers == {"Prefer": "return=representation"}


def test_delete_with_no_match_returns_empty_list() -> None:
    client, _ = _client(FakeResponse(200, []))
    assert client.delete("tasks", {"id": eq("nope")}) == []


def test_rejected_request_raises_store_error() -> None:
    client, _ = _client(FakeResponse(409, text='{"message":"duplicate key"}'))
    with pytest.raises(StoreError) as exc:
        client.insert("tasks", {"id": "t1"})
    assert exc.value.status_code == 409
    assert not isinstance(exc.value, ConnectionFailure)


@pytest.mark.parametrize(
    "error",
    [requests.ConnectionError("Name or service not known"), requests.Timeout("read timed out")],
)
def test_unreachable_backend_is_connection_failure(error) -> None:
    client, _ = _client(error)
    with pytest.raises(ConnectionFailure):
        client.select("tasks")


def test_dropped_stream_is_connection_failure() -> None:
    client, _ = _client(requests.exceptions.ChunkedEncodingError("connection broken"))
    with pytest.raises(ConnectionFailure):
        client.select("tasks")


def test_url_without_scheme_is_store_error() -> None:
    client = SupabaseClient("your-project.supabase.co", "anon-key", session=requests.Session())
    with pytest.raises(StoreError) as exc:
        client.select("tasks")
    assert not isinstance(exc.value, ConnectionFailure)
    assert isinstance(exc.value.__cause__, requests.exceptions.MissingSchema)


def test_non_json_body_is_store_error() -> None:
    client, _ = _client(FakeResponse(200, text="<html>Sign in to the Wi-Fi</html>"))
    with pytest.raises(StoreError) as exc:
        client.select("tasks")
    assert exc.value.status_code == 200


@pytest.mark.parametrize(
    "reply",
    [
        requests.exceptions.ChunkedEncodingError("connection broken"),
        requests.exceptions.InvalidURL("bad host"),
        FakeResponse(200, text="<html>proxy</html>"),
        FakeResponse(200, {"message": "not a list"}),
        FakeResponse(200, [{"title": "row without id"}]),
    ],
)
def test_controller_never_raises_on_bad_backend(reply) -> None:
    client, _ = _client(reply)
    controller = TaskController(TaskRepository(client))

    result = controller.refresh()

    assert result.status is Status.FAILED
    assert controller.error
