from __future__ import annotations

import datetime as dt
import json as _json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from core.exceptions import StoreError


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text or ("" if payload is None else _json.dumps(payload))
        self.content = self.text.encode()

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        # a text-only body behaves like an HTML page: not JSON
        if self._payload is None and self.text:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeHTTPSession:
    """
    Stand-in for requests.Session.

    Responses are served in order; an Exception in the queue is raised instead.
    Every call is recorded for assertions.
    """

    def __init__(self, *responses: Any) -> None:
        self.headers: Dict[str, str] = {}
        self.queue: List[Any] = list(responses)
        self.calls: List[SimpleNamespace] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(SimpleNamespace(method=method, url=url, **kwargs))
        if not self.queue:
            raise AssertionError(f"unexpected {method} {url}")
        nxt = self.queue.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("POST", url, **kwargs)


class FakeSupabase:
    """
    In-memory replacement for SupabaseClient (same select/insert/update/delete
    surface), so TaskRepository runs its real translation code.
    """

    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail_on: Dict[str, Exception] = {}
        self._clock = dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc)

    def _enter(self, op: str, payload: Any = None) -> None:
        self.calls.append((op, payload))
        if op in self.fail_on:
            raise self.fail_on[op]

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    @staticmethod
    def _id(filters: Optional[Dict[str, str]]) -> Optional[str]:
        if not filters or "id" not in filters:
            return None
        return filters["id"].removeprefix("eq.")

    def select(self, table, filters=None, *, order=None, limit=None):
        self._enter("select", filters)
        rows = [dict(r) for r in self.rows.values()]
        wanted = self._id(filters)
        if wanted is not None:
            rows = [r for r in rows if r["id"] == wanted]
        if order == "created_at.desc":
            rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[:limit] if limit is not None else rows

    def insert(self, table, row):
        self._enter("insert", dict(row))
        if row["id"] in self.rows:
            raise StoreError("duplicate key value violates unique constraint", 409)
        self._clock += dt.timedelta(seconds=1)
        stored = dict(row)
        stored.setdefault("completed", False)
        stored["created_at"] = self._clock.isoformat()
        stored["updated_at"] = self._clock.isoformat()
        self.rows[row["id"]] = stored
        return dict(stored)

    def update(self, table, filters, fields):
        self._enter("update", dict(fields))
        row = self.rows.get(self._id(filters))
        if row is None:
            return []
        row.update(fields)
        return [dict(row)]

    def delete(self, table, filters):
        self._enter("delete", filters)
        row = self.rows.pop(self._id(filters), None)
        return [row] if row else []


class FakeGateway:
    """Records calls; returns canned results."""

    def __init__(self, event_id: Optional[str] = "evt-1", color_ok: bool = True) -> None:
        self.event_id = event_id
        self.color_ok = color_ok
        self.created: list = []
        self.colored: list = []

    def create_event(self, task):
        self.created.append(task)
        return self.event_id

    def update_event_color(self, event_id, completed, original_color):
        self.colored.append((event_id, completed, original_color))
        return self.color_ok


class FakeCredentials:
    """What InstalledAppFlow.run_local_server hands back, reduced to what is used."""

    def __init__(self, token: Optional[str]) -> None:
        self.token = token

    def to_json(self) -> str:
        return _json.dumps({
            "token": self.token,
            "refresh_token": "refresh-123",
            "client_id": "client-id",
            "client_secret": "client-secret",
            "scopes": ["https://www.googleapis.com/auth/calendar.events"],
        })


class FakeFlow:
    def __init__(self, token: Optional[str] = "token-123", error: Optional[Exception] = None) -> None:
        self.token = token
        self.error = error
        self.runs = 0

    def run_local_server(self, port: int = 0):
        self.runs += 1
        if self.error is not None:
            raise self.error
        return FakeCredentials(self.token)


class FakeFlowFactory:
    def __init__(self, flow: FakeFlow) -> None:
        self.flow = flow
        self.calls: list = []

    def __call__(self, client_config, scopes):
        self.calls.append((client_config, scopes))
        return self.flow
