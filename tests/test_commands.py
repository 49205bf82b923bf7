# tests/test_commands.py

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from todo_keeper.cli.bootstrap import create_initial_state
from todo_keeper.cli.commands import CommandRegistry, parse_due, registry
from todo_keeper.core.state import AppState
from todo_keeper.tasks.errors import ValidationError
from todo_keeper.tasks.task_models import Priority

from .fakes import FakeTaskStore, RecordingNotifier


@pytest.fixture()
def state(settings):
    st = create_initial_state(
        settings=settings,
        store=FakeTaskStore(),
        notifier=RecordingNotifier(),
        start_scheduler=False,
    )
    yield st
    st.service.shutdown()


def test_command_registry_routes_and_aliases(state: AppState) -> None:
    reg = CommandRegistry()
    called: list[list[str]] = []

    def handler(state, args):
        called.append(args)
        return "ok"

    reg.register("a", handler, "a", aliases=["alpha"])

    assert reg.handle(state, "/a x y") == "ok"
    assert reg.handle(state, "/ALPHA") == "ok"
    assert called == [["x", "y"], []]
    assert "/a - a" in reg.build_help()


def test_command_registry_unknown_and_non_command(state: AppState) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_add_list_done_delete_flow(state: AppState) -> None:
    reply = registry.handle(state, "/add Buy milk | two litres | high | +90")
    assert reply.startswith("Created: [ ] #1 (High) Buy milk")

    task = state.service.get_all_tasks()[0]
    assert task.description == "two litres"
    assert task.priority is Priority.HIGH
    assert state.scheduler.is_scheduled(task.id)

    assert "Buy milk" in registry.handle(state, "/list")
    assert "Buy milk" in registry.handle(state, "/list high")
    assert registry.handle(state, "/list done") == "No completed tasks."
    assert "Buy milk" in registry.handle(state, "/due 120")

    assert registry.handle(state, "/done 1") == "Completed task #1."
    assert "[x] #1" in registry.handle(state, "/list done")
    assert not state.scheduler.is_scheduled(1)

    assert registry.handle(state, "/undo 1") == "Reopened task #1."
    assert state.service.get_all_tasks()[0].completed is False

    assert registry.handle(state, "/delete 1") == "Deleted task #1."
    assert registry.handle(state, "/delete 1") == "No task #1."
    assert registry.handle(state, "/list") == "No tasks."


def test_add_reports_validation_errors(state: AppState) -> None:
    reply = registry.handle(state, "/add " + "x" * 256)
    assert reply.startswith("Invalid task:")
    assert registry.handle(state, "/add ok | | urgent").startswith("Invalid task:")
    assert len(state.service.get_all_tasks()) == 0


def test_snooze_and_search(state: AppState) -> None:
    registry.handle(state, "/add Dentist | bring forms | | 2030-05-01 10:00")
    assert registry.handle(state, "/snooze 1 15") == "Snoozed task #1 for 15 minutes."
    assert state.service.get_all_tasks()[0].due_date == datetime(2030, 5, 1, 10, 15)

    assert "Dentist" in registry.handle(state, "/search forms")
    assert registry.handle(state, "/search nothing-here") == "Nothing matches 'nothing-here'."
    assert registry.handle(state, "/snooze abc") == "Usage: /snooze <id> [minutes]"


def test_status_shows_degraded_mode(state: AppState) -> None:
    registry.handle(state, "/add one")
    assert "DATABASE" in registry.handle(state, "/status")

    state.store.fail_all = True
    registry.handle(state, "/add two")
    status = registry.handle(state, "/status")
    assert "IN-MEMORY" in status
    assert "2 total" in status


def test_parse_due_formats() -> None:
    now = datetime(2026, 1, 1, 8, 0)
    assert parse_due("+30", now) == now + timedelta(minutes=30)
    assert parse_due("2026-02-03 04:05") == datetime(2026, 2, 3, 4, 5)
    assert parse_due("2026-02-03") == datetime(2026, 2, 3)
    with pytest.raises(ValidationError):
        parse_due("tomorrow")
