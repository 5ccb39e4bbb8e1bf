"""Grouping / counters used by list views."""
from __future__ import annotations

import datetime as dt
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from core.models import Task

_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MONTHS = ("January", "February", "March", "April", "May", "June", "July",
           "August", "September", "October", "November", "December")


def group_tasks_by_date(tasks: Iterable[Task]) -> "OrderedDict[dt.date, List[Task]]":
    """Oldest date first; inside a day pending tasks go before completed ones."""
    groups: Dict[dt.date, List[Task]] = {}
    for t in tasks:
        groups.setdefault(t.due_date, []).append(t)
    out: "OrderedDict[dt.date, List[Task]]" = OrderedDict()
    for day in sorted(groups):
        # sort is stable: original order kept inside each bucket
        out[day] = sorted(groups[day], key=lambda t: t.completed)
    return out


def task_stats(tasks: Iterable[Task]) -> Dict[str, int]:
    items = list(tasks)
    done = sum(1 for t in items if t.completed)
    return {"total": len(items), "completed": done, "pending": len(items) - done}


def date_label(day: dt.date, today: Optional[dt.date] = None, with_year: bool = False) -> str:
    if today is None:
        today = dt.date.today()
    if not with_year:
        if day == today:
            return "Today"
        if day == today + dt.timedelta(days=1):
            return "Tomorrow"
    label = f"{_WEEKDAYS[day.weekday()]}, {day.day} {_MONTHS[day.month - 1]}"
    return f"{label} {day.year}" if with_year else label
