from __future__ import annotations
import datetime as dt
import logging
from typing import Any, Dict, List, Optional

from core.exceptions import NotFound, StoreError
from core.models import CalendarSync, Task, utcnow
from core.validation import parse_date
from storage.supabase import SupabaseClient, eq

logger = logging.getLogger(__name__)

TABLE = "tasks"
PENDING_CALENDAR_ID = "pending"

# Task field -> column
UPDATABLE_FIELDS = {
    "title": "title",
    "category": "category",
    "color": "color",
    "due_date": "due_date",
    "completed": "completed",
}


def _parse_timestamp(value: Optional[str]) -> dt.datetime:
    if not value:
        return utcnow()
    return dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def task_to_row(task: Task, user_id: str) -> Dict[str, Any]:
    if task.remote_event_id:
        calendar_id = task.remote_event_id
    elif task.synced_to_calendar:
        calendar_id = PENDING_CALENDAR_ID
    else:
        calendar_id = None
    return {
        "id": task.id,
        "user_id": user_id,
        "title": task.title,
        "category": task.category,
        "color": task.color,
        "due_date": task.due_date.isoformat(),
        "completed": task.completed,
        "calendar_id": calendar_id,
    }


def row_to_task(row: Dict[str, Any]) -> Task:
    """The row has no sync flag: a non-null calendar_id is what marks a synced task."""
    calendar_id = row.get("calendar_id")
    sync = None
    if calendar_id is not None:
        remote = None if calendar_id == PENDING_CALENDAR_ID else calendar_id
        sync = CalendarSync(remote_event_id=remote)
    return Task(
        id=row["id"],
        title=row.get("title") or "",
        category=row.get("category") or "",
        color=row.get("color") or "",
        due_date=parse_date(row.get("due_date")),
        completed=bool(row.get("completed")),
        created_at=_parse_timestamp(row.get("created_at")),
        calendar_sync=sync,
    )


class TaskRepository:
    """Task <-> row translation plus CRUD. Holds no state of its own."""
    def __init__(self, client: SupabaseClient, user_id: str = "anonymous"):
        self.client = client
        self.user_id = user_id

    @staticmethod
    def _to_task(row: Dict[str, Any]) -> Task:
        try:
            return row_to_task(row)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Unreadable task row: {e!r}") from e

    def list(self) -> List[Task]:
        rows = self.client.select(TABLE, order="created_at.desc")
        return [self._to_task(r) for r in rows]

    def create(self, task: Task) -> Task:
        row = self.client.insert(TABLE, task_to_row(task, self.user_id))
        return self._to_task(row)

    def update(self, task_id: str, **fields) -> Task:
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")
        payload: Dict[str, Any] = {}
        for name, value in fields.items():
            if name == "due_date":
                day = parse_date(value)
                if day is None:
                    raise ValueError("due_date cannot be empty")
                value = day.isoformat()
            payload[UPDATABLE_FIELDS[name]] = value
        payload["updated_at"] = utcnow().isoformat()
        rows = self.client.update(TABLE, {"id": eq(task_id)}, payload)
        if not rows:
            raise NotFound(f"Task {task_id} not found", 404)
        return self._to_task(rows[0])

    def delete(self, task_id: str) -> None:
        rows = self.client.delete(TABLE, {"id": eq(task_id)})
        if not rows:
            raise NotFound(f"Task {task_id} not found", 404)

    def get_by_id(self, task_id: str) -> Optional[Task]:
        rows = self.client.select(TABLE, {"id": eq(task_id)}, limit=1)
        if not rows:
            return None
        return self._to_task(rows[0])

    def set_remote_event_id(self, task_id: str, event_id: Optional[str]) -> None:
        rows = self.client.update(TABLE, {"id": eq(task_id)}, {"calendar_id": event_id})
        if not rows:
            raise NotFound(f"Task {task_id} not found", 404)
        logger.debug("calendar_id of %s set to %s", task_id, event_id)
