import argparse
import logging
import sys
from pathlib import Path

from core.config import Settings, get_settings
from core.exceptions import ConfigError
from core.grouping import date_label
from core.logging_setup import setup_logging
from core.models import CATEGORIES, TASK_COLORS
from core.validation import TaskForm
from controller.app_controller import Status, TaskController
from services.calendar_service import CalendarEventGateway, CalendarSession
from storage.supabase import SupabaseClient
from storage.task_repository import TaskRepository

_COLOR_BY_NAME = {name.lower(): value for name, value in TASK_COLORS}
GOOGLE_TOKEN_FILE = "google_token.json"


def build_controller(settings: Settings) -> TaskController:
    client = SupabaseClient(settings.supabase_url, settings.supabase_key, timeout=settings.http_timeout)
    repository = TaskRepository(client, user_id=settings.user_id)
    gateway = None
    if settings.calendar_enabled:
        session = CalendarSession(settings.google_client_id, settings.google_client_secret,
                                  settings.google_scopes,
                                  token_path=Path(settings.data_dir) / GOOGLE_TOKEN_FILE,
                                  timeout=settings.http_timeout)
        gateway = CalendarEventGateway(session, api_key=settings.google_api_key,
                                       timezone=settings.timezone, timeout=settings.http_timeout)
    return TaskController(repository, gateway)


def _color(value: str) -> str:
    return _COLOR_BY_NAME.get(value.lower(), value.upper())


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="taskify", description="Personal tasks with Google Calendar mirroring")
    sub = p.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("list", help="List tasks grouped by date")
    state = ls.add_mutually_exclusive_group()
    state.add_argument("--pending", action="store_true")
    state.add_argument("--completed", action="store_true")

    add = sub.add_parser("add", help="Create a task")
    add.add_argument("title")
    add.add_argument("--category", required=True, choices=CATEGORIES)
    add.add_argument("--date", required=True, help="YYYY-MM-DD")
    add.add_argument("--color", type=_color, default=TASK_COLORS[0][1],
                     help="Palette name or hex: " + ", ".join(n for n, _ in TASK_COLORS))
    add.add_argument("--calendar", action="store_true", help="Mirror on Google Calendar")
    add.add_argument("--start", help="HH:MM, makes the calendar event timed")
    add.add_argument("--end", help="HH:MM")
    add.add_argument("--calendar-date", help="Event date when it differs from the due date")

    for name, help_ in (("done", "Toggle completion"), ("delete", "Delete a task"),
                        ("resync", "Create the missing calendar event")):
        sub.add_parser(name, help=help_).add_argument("task_id")

    sub.add_parser("stats", help="Totals")
    return p


def _print_tasks(controller: TaskController, completed=None):
    groups = controller.grouped(completed)
    if not groups:
        print("No tasks")
        return
    for day, tasks in groups.items():
        print(f"{date_label(day)} ({len(tasks)})")
        for t in tasks:
            mark = "x" if t.completed else " "
            cal = " [cal]" if t.synced_to_calendar else ""
            print(f"  [{mark}] {t.title} · {t.category}{cal}  {t.id}")


def run(controller: TaskController, args: argparse.Namespace) -> int:
    loaded = controller.refresh()
    if not loaded.ok:
        if loaded.connectivity:
            print("Database not reachable; only calendar operations are available.", file=sys.stderr)
        else:
            print(f"Error: {loaded.message}", file=sys.stderr)
        if args.command != "add":
            return 1

    if args.command == "list":
        _print_tasks(controller, True if args.completed else False if args.pending else None)
        return 0
    if args.command == "stats":
        s = controller.stats()
        print(f"total {s['total']} · pending {s['pending']} · completed {s['completed']}")
        return 0

    if args.command == "add":
        form = TaskForm(title=args.title, category=args.category, color=args.color,
                        due_date=args.date, add_to_calendar=args.calendar,
                        calendar_date=args.calendar_date)
        if args.start or args.end:
            form.is_all_day = False
            form.start_time = args.start or form.start_time
            form.end_time = args.end or form.end_time
        candidate = form.submit()
        if candidate is None:
            print("Invalid task: " + "; ".join(form.problems), file=sys.stderr)
            return 2
        result = controller.create(candidate)
        form.reset()
    elif args.command == "done":
        result = controller.toggle_complete(args.task_id)
    elif args.command == "delete":
        result = controller.delete(args.task_id)
    else:
        result = controller.resync_calendar(args.task_id)

    stream = sys.stdout if result.status is Status.SUCCESS else sys.stderr
    print(result.message, file=stream)
    if result.warning:
        print(f"Warning: {result.warning}", file=sys.stderr)
    return {Status.SUCCESS: 0, Status.PARTIAL: 3}.get(result.status, 1)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(log_dir=settings.data_dir,
                  console_level=getattr(logging, settings.log_level, logging.INFO))
    try:
        settings.validate()
    except ConfigError as e:
        # no backend, no start
        print(f"Config error: {e}", file=sys.stderr)
        return 1
    return run(build_controller(settings), args)


if __name__ == "__main__":
    sys.exit(main())
