from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from core.exceptions import ConnectionFailure, NotFound, StoreError
from core.grouping import group_tasks_by_date, task_stats
from core.models import Task
from services.calendar_service import CalendarEventGateway
from storage.task_repository import TaskRepository

logger = logging.getLogger(__name__)


class Status(Enum):
    SUCCESS = "success"
    PARTIAL = "partial"  # calendar mirror exists, durable store failed
    FAILED = "failed"


@dataclass
class OperationResult:
    status: Status
    message: str = ""
    task: Optional[Task] = None
    connectivity: bool = False
    # set when the task was saved but the calendar step did not go through
    warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is Status.SUCCESS


class TaskController:
    """Coordinates the repository, the calendar and the in-memory collection.

    No operation raises: the outcome travels in OperationResult and in
    `error` / `is_db_error`. Local changes are applied only after the backend
    confirms them.
    """
    def __init__(self, repository: TaskRepository, gateway: Optional[CalendarEventGateway] = None):
        self.repository = repository
        self.gateway = gateway
        self.tasks: List[Task] = []
        self.error: Optional[str] = None
        self.is_db_error = False

    # ---- state channel ----
    def _clear_error(self):
        self.error = None
        self.is_db_error = False

    def _failed(self, message: str, exc: Optional[Exception] = None,
                status: Status = Status.FAILED) -> OperationResult:
        connectivity = isinstance(exc, ConnectionFailure)
        self.error = message
        self.is_db_error = connectivity
        return OperationResult(status, message, connectivity=connectivity)

    def find(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def _replace(self, task: Task):
        self.tasks = [task if t.id == task.id else t for t in self.tasks]

    # ---- tasks ----
    def refresh(self) -> OperationResult:
        self._clear_error()
        try:
            tasks = self.repository.list()
        except StoreError as e:
            logger.error("Loading tasks failed: %s", e)
            return self._failed(str(e), e)
        self.tasks = tasks
        logger.debug("Loaded %d tasks", len(tasks))
        return OperationResult(Status.SUCCESS, f"{len(tasks)} tasks loaded")

    def create(self, candidate: Task) -> OperationResult:
        self._clear_error()
        event_id = None
        if candidate.synced_to_calendar:
            if self.gateway is None:
                logger.warning("Calendar sync requested but Google Calendar is not configured")
            else:
                event_id = self.gateway.create_event(candidate)
                if event_id:
                    candidate = candidate.with_remote_event_id(event_id)
                else:
                    logger.warning("Task %s will be stored without a calendar event", candidate.id)

        try:
            persisted = self.repository.create(candidate)
        except StoreError as e:
            if event_id:
                logger.warning("Task %s is in the calendar but was not saved: %s", candidate.id, e)
                return self._failed(
                    f'"{candidate.title}" was added to the calendar but the database is not available.',
                    e, status=Status.PARTIAL)
            logger.error("Creating task %s failed: %s", candidate.id, e)
            return self._failed(str(e), e)

        self.tasks = [persisted] + self.tasks
        if event_id:
            logger.info("Task %s created and added to the calendar", persisted.id)
            return OperationResult(Status.SUCCESS, f'"{persisted.title}" saved and added to the calendar.',
                                   task=persisted)
        logger.info("Task %s created", persisted.id)
        if not persisted.synced_to_calendar:
            return OperationResult(Status.SUCCESS, f'"{persisted.title}" saved.', task=persisted)
        warning = "not added to the calendar; run resync to retry"
        return OperationResult(Status.SUCCESS, f'"{persisted.title}" saved, but {warning}.',
                               task=persisted, warning=warning)

    def update(self, task_id: str, **changes) -> OperationResult:
        self._clear_error()
        try:
            updated = self.repository.update(task_id, **changes)
        except (StoreError, ValueError) as e:
            logger.error("Updating task %s failed: %s", task_id, e)
            return self._failed(str(e), e)
        self._replace(updated)
        return OperationResult(Status.SUCCESS, f'"{updated.title}" updated.', task=updated)

    def toggle_complete(self, task_id: str) -> OperationResult:
        self._clear_error()
        task = self.find(task_id)
        if task is None:
            return self._failed(f"Task {task_id} not found")

        completed = not task.completed
        result = self.update(task_id, completed=completed)
        if not result.ok:
            return result

        # cosmetic only, the toggle already succeeded
        event_id = task.remote_event_id
        if event_id and self.gateway is not None:
            if not self.gateway.update_event_color(event_id, completed, task.color):
                logger.info("Calendar color for %s not updated", task_id)

        result.message = f'"{task.title}" ' + ("completed." if completed else "marked as pending.")
        return result

    def delete(self, task_id: str) -> OperationResult:
        """Deletes in the backend, then locally. The calendar event is left in place."""
        self._clear_error()
        task = self.find(task_id)
        try:
            self.repository.delete(task_id)
        except NotFound:
            logger.info("Task %s was already deleted", task_id)
        except StoreError as e:
            logger.error("Deleting task %s failed: %s", task_id, e)
            return self._failed(str(e), e)
        self.tasks = [t for t in self.tasks if t.id != task_id]
        title = task.title if task else task_id
        return OperationResult(Status.SUCCESS, f'"{title}" deleted.', task=task)

    def resync_calendar(self, task_id: str) -> OperationResult:
        """Creates the event for a task stored as pending."""
        self._clear_error()
        task = self.find(task_id)
        if task is None:
            return self._failed(f"Task {task_id} not found")
        if not task.synced_to_calendar:
            return self._failed(f'"{task.title}" was not created with calendar sync')
        if task.remote_event_id:
            return OperationResult(Status.SUCCESS, f'"{task.title}" is already in the calendar', task=task)
        if self.gateway is None:
            return self._failed("Google Calendar is not configured")

        event_id = self.gateway.create_event(task)
        if not event_id:
            return self._failed(f'Could not add "{task.title}" to the calendar')
        try:
            self.repository.set_remote_event_id(task_id, event_id)
        except StoreError as e:
            logger.warning("Event %s created but not linked to %s: %s", event_id, task_id, e)
            return self._failed(str(e), e, status=Status.PARTIAL)
        linked = task.with_remote_event_id(event_id)
        self._replace(linked)
        return OperationResult(Status.SUCCESS, f'"{task.title}" added to the calendar.', task=linked)

    # ---- views ----
    def stats(self) -> Dict[str, int]:
        return task_stats(self.tasks)

    def grouped(self, completed: Optional[bool] = None):
        tasks = self.tasks if completed is None else [t for t in self.tasks if t.completed == completed]
        return group_tasks_by_date(tasks)
