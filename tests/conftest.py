from __future__ import annotations

import pytest

from controller.app_controller import TaskController
from core.validation import TaskForm
from services.calendar_service import CalendarSession
from storage.task_repository import TaskRepository

from .fakes import FakeFlow, FakeFlowFactory, FakeGateway, FakeSupabase


@pytest.fixture()
def store() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture()
def repository(store: FakeSupabase) -> TaskRepository:
    return TaskRepository(store, user_id="anonymous")


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def controller(repository: TaskRepository, gateway: FakeGateway) -> TaskController:
    return TaskController(repository, gateway)


@pytest.fixture()
def flow() -> FakeFlow:
    return FakeFlow()


@pytest.fixture()
def session(flow: FakeFlow) -> CalendarSession:
    """Calendar session wired to a fake consent flow (never opens a browser)."""
    return CalendarSession(
        "client-id",
        "client-secret",
        ["https://www.googleapis.com/auth/calendar.events"],
        flow_factory=FakeFlowFactory(flow),
    )


@pytest.fixture()
def pay_bills() -> TaskForm:
    return TaskForm(title="Pay bills", category="Personal", due_date="2025-06-01")
