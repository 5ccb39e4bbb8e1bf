import datetime as dt
import uuid
from dataclasses import dataclass, field, replace
from typing import Optional

CATEGORIES = ("Work", "Personal", "Study", "Home", "Health", "Travel")

# (name, hex) - the first entry is the default color
TASK_COLORS = (
    ("Teal", "#00A19D"),
    ("Blue", "#4A90E2"),
    ("Green", "#7ED321"),
    ("Orange", "#F5A623"),
    ("Pink", "#F8B6D3"),
    ("Purple", "#9013FE"),
)
PALETTE = tuple(value for _, value in TASK_COLORS)
DEFAULT_COLOR = PALETTE[0]

DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "10:00"


def new_task_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class CalendarSync:
    is_all_day: bool = True
    start_time: Optional[str] = None  # HH:MM, only when not all-day
    end_time: Optional[str] = None
    calendar_date: Optional[dt.date] = None
    remote_event_id: Optional[str] = None


@dataclass
class Task:
    id: str
    title: str
    category: str
    color: str
    due_date: dt.date
    completed: bool = False
    created_at: dt.datetime = field(default_factory=utcnow)
    calendar_sync: Optional[CalendarSync] = None

    @property
    def synced_to_calendar(self) -> bool:
        return self.calendar_sync is not None

    @property
    def remote_event_id(self) -> Optional[str]:
        return self.calendar_sync.remote_event_id if self.calendar_sync else None

    @property
    def event_date(self) -> dt.date:
        if self.calendar_sync and self.calendar_sync.calendar_date:
            return self.calendar_sync.calendar_date
        return self.due_date

    def with_remote_event_id(self, event_id: Optional[str]) -> "Task":
        sync = replace(self.calendar_sync or CalendarSync(), remote_event_id=event_id)
        return replace(self, calendar_sync=sync)
