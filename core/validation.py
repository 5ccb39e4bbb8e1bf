"""Task form: raw field values -> Task candidate.

Pure: no network or storage access. The caller resets the form after a
successful submission.
"""
from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from typing import List, Optional, Union

from core.exceptions import TaskValidationError
from core.models import (
    CATEGORIES,
    DEFAULT_COLOR,
    DEFAULT_END_TIME,
    DEFAULT_START_TIME,
    PALETTE,
    CalendarSync,
    Task,
    new_task_id,
    utcnow,
)

DateLike = Union[dt.date, str, None]

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_date(value: DateLike) -> Optional[dt.date]:
    """Accepts a date or 'YYYY-MM-DD' (anything after the date part is ignored)."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = str(value).strip()
    if not text:
        return None
    return dt.date.fromisoformat(text[:10])


def parse_time(value: str) -> dt.time:
    m = _TIME_RE.match((value or "").strip())
    if not m:
        raise ValueError(f"Invalid time: {value!r}")
    return dt.time(int(m.group(1)), int(m.group(2)))


@dataclass
class TaskForm:
    title: str = ""
    category: str = ""
    color: str = DEFAULT_COLOR
    due_date: DateLike = None
    add_to_calendar: bool = False
    is_all_day: bool = True
    start_time: str = DEFAULT_START_TIME
    end_time: str = DEFAULT_END_TIME
    calendar_date: DateLike = None
    problems: List[str] = field(default_factory=list, repr=False)

    def missing_fields(self) -> List[str]:
        missing = []
        if not (self.title or "").strip():
            missing.append("title")
        if not self.category:
            missing.append("category")
        if self.due_date is None or (isinstance(self.due_date, str) and not self.due_date.strip()):
            missing.append("due_date")
        return missing

    def validate(self) -> Task:
        problems = [f"{name} is required" for name in self.missing_fields()]
        if self.category and self.category not in CATEGORIES:
            problems.append(f"unknown category {self.category!r}")
        if self.color not in PALETTE:
            problems.append(f"color {self.color!r} is not in the palette")

        due = calendar_date = None
        if "due_date" not in self.missing_fields():
            try:
                due = parse_date(self.due_date)
            except ValueError:
                problems.append(f"invalid due_date {self.due_date!r}")
        if self.add_to_calendar:
            try:
                calendar_date = parse_date(self.calendar_date)
            except ValueError:
                problems.append(f"invalid calendar_date {self.calendar_date!r}")
            if not self.is_all_day:
                for label, value in (("start_time", self.start_time), ("end_time", self.end_time)):
                    try:
                        parse_time(value)
                    except ValueError:
                        problems.append(f"invalid {label} {value!r}")

        self.problems = problems
        if problems:
            raise TaskValidationError(problems)

        sync = None
        if self.add_to_calendar:
            sync = CalendarSync(
                is_all_day=self.is_all_day,
                start_time=None if self.is_all_day else self.start_time.strip(),
                end_time=None if self.is_all_day else self.end_time.strip(),
                calendar_date=calendar_date or due,
            )
        return Task(
            id=new_task_id(),
            title=self.title.strip(),
            category=self.category,
            color=self.color,
            due_date=due,
            completed=False,
            created_at=utcnow(),
            calendar_sync=sync,
        )

    def submit(self) -> Optional[Task]:
        """Candidate Task, or None when the submission is withheld."""
        try:
            return self.validate()
        except TaskValidationError:
            return None

    def reset(self) -> None:
        self.title = ""
        self.category = ""
        self.color = DEFAULT_COLOR
        self.due_date = None
        self.add_to_calendar = False
        self.is_all_day = True
        self.start_time = DEFAULT_START_TIME
        self.end_time = DEFAULT_END_TIME
        self.calendar_date = None
        self.problems = []
