"""
Tests for TaskRepository: nested CRUD, completion sync, cross-project queries.
"""
from datetime import date, timedelta

import pytest

from tracker.projects import ProjectRepository
from tracker.results import Updated, NotFound
from tracker.schema import TaskView
from tracker.storage import StorageError

YESTERDAY = date.today() - timedelta(days=1)
TOMORROW = date.today() + timedelta(days=1)


@pytest.fixture
def launch(projects):
    return projects.create("Launch", status="Active", priority="High", deadline=None)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Scenarios
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_progress_follows_task_status(tasks, launch):
    task = tasks.create(launch.id, "Design", status="To Do").value
    assert launch.progress == 0

    result = tasks.update(launch.id, task.id, status="Done")
    assert isinstance(result, Updated)
    assert launch.progress == 100
    assert result.value.completed is True


def test_overdue_cleared_when_done(tasks, launch):
    task = tasks.create(launch.id, "Design", status="To Do", due_date=YESTERDAY).value
    assert task.is_overdue()
    tasks.update(launch.id, task.id, status="Done")
    assert not task.is_overdue()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CRUD
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_create_appends_in_order_and_persists(store, tasks, launch):
    first = tasks.create(launch.id, "Design").value
    second = tasks.create(launch.id, "Build", status="Done", due_date="2024-05-01", assignee="sam").value

    assert [t.id for t in launch.tasks] == [first.id, second.id]
    assert second.completed
    assert second.due_date == date(2024, 5, 1)
    assert first.project_id == launch.id

    saved = store.load("projects")[0]["tasks"]
    assert [t["name"] for t in saved] == ["Design", "Build"]
    assert saved[1]["completed"] is True
    assert saved[1]["assignee"] == "sam"


def test_create_under_missing_project_returns_not_found(store, tasks, launch):
    result = tasks.create("nope", "Orphan")
    assert isinstance(result, NotFound)
    assert result.kind == "project"
    assert tasks.list_all() == []
    assert store.load("projects")[0]["tasks"] == []


def test_update_without_status_keeps_completed_in_sync(tasks, launch):
    task = tasks.create(launch.id, "Design", status="Done").value
    tasks.update(launch.id, task.id, name="Design v2")
    assert task.name == "Design v2"
    assert task.status == "Done"
    assert task.completed is True

    tasks.update(launch.id, task.id, status="In Progress")
    tasks.update(launch.id, task.id, description="still going")
    assert task.completed is False


def test_update_cannot_force_completed(tasks, launch):
    task = tasks.create(launch.id, "Design", status="To Do").value
    tasks.update(launch.id, task.id, completed=True)
    assert task.completed is False


def test_update_missing_project_or_task(tasks, launch):
    assert tasks.update("nope", "t1", name="x").kind == "project"
    assert tasks.update(launch.id, "t1", name="x").kind == "task"


def test_update_clears_due_date(tasks, launch):
    task = tasks.create(launch.id, "Design", due_date=YESTERDAY).value
    tasks.update(launch.id, task.id, due_date="")
    assert task.due_date is None


def test_update_with_bad_date_changes_nothing(store, tasks, launch):
    task = tasks.create(launch.id, "Design").value
    with pytest.raises(ValueError):
        tasks.update(launch.id, task.id, name="Renamed", due_date="not-a-date")
    assert task.name == "Design"
    assert tasks.get(launch.id, task.id).name == "Design"
    assert store.load("projects")[0]["tasks"][0]["name"] == "Design"


def _failing_save(key, value):
    raise StorageError("disk full")


def test_failed_save_rolls_back_task_changes(store, tasks, launch, monkeypatch):
    task = tasks.create(launch.id, "Design").value
    monkeypatch.setattr(store, "save", _failing_save)

    with pytest.raises(StorageError):
        tasks.create(launch.id, "Ghost")
    with pytest.raises(StorageError):
        tasks.update(launch.id, task.id, status="Done")
    with pytest.raises(StorageError):
        tasks.delete(launch.id, task.id)

    assert [(v.task.name, v.task.status) for v in tasks.list_all()] == [("Design", "To Do")]
    assert tasks.stats()["total"] == 1


def test_get_and_delete(store, tasks, launch):
    task = tasks.create(launch.id, "Design").value
    assert tasks.get(launch.id, task.id) is task
    assert tasks.get("nope", task.id) is None

    assert tasks.delete(launch.id, task.id)
    assert tasks.get(launch.id, task.id) is None
    assert store.load("projects")[0]["tasks"] == []


def test_delete_missing_is_noop(tasks, launch):
    tasks.create(launch.id, "Design")
    assert isinstance(tasks.delete(launch.id, "nope"), NotFound)
    assert isinstance(tasks.delete("nope", "nope"), NotFound)
    assert len(launch.tasks) == 1


def test_toggle_complete(tasks, launch):
    task = tasks.create(launch.id, "Design", status="In Progress").value
    tasks.toggle_complete(launch.id, task.id, True)
    assert task.status == "Done" and task.completed
    tasks.toggle_complete(launch.id, task.id, False)
    assert task.status == "To Do" and not task.completed


def test_tasks_survive_reload(store, tasks, launch):
    task = tasks.create(launch.id, "Design", status="Done", due_date=TOMORROW).value
    reloaded = ProjectRepository(store).get(launch.id)
    restored = reloaded.find_task(task.id)
    assert restored.to_dict() == task.to_dict()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Cross-project queries
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.fixture
def board(projects, tasks):
    alpha = projects.create("Alpha")
    beta = projects.create("Beta")
    tasks.create(alpha.id, "A1", status="To Do", due_date=YESTERDAY)
    tasks.create(alpha.id, "A2", status="Done", due_date=YESTERDAY)
    tasks.create(beta.id, "B1", status="In Progress", due_date=TOMORROW)
    tasks.create(beta.id, "B2", status="To Do")
    return alpha, beta


def test_list_all_flattens_in_order(tasks, board):
    views = tasks.list_all()
    assert all(isinstance(v, TaskView) for v in views)
    assert [(v.project_name, v.task.name) for v in views] == [
        ("Alpha", "A1"), ("Alpha", "A2"), ("Beta", "B1"), ("Beta", "B2"),
    ]


def test_list_by_status_is_exact(tasks, board):
    assert [v.task.name for v in tasks.list_by_status("To Do")] == ["A1", "B2"]
    assert tasks.list_by_status("to do") == []


def test_list_overdue_and_pending(tasks, board):
    assert [v.task.name for v in tasks.list_overdue()] == ["A1"]
    assert [v.task.name for v in tasks.list_pending()] == ["A1", "B1", "B2"]
    assert tasks.overdue_count() == 1


def test_stats(tasks, board):
    assert tasks.stats() == {
        "pending": 3,
        "overdue": 1,
        "completed": 1,
        "toDo": 2,
        "inProgress": 1,
        "total": 4,
    }


def test_stats_empty(tasks):
    assert tasks.stats() == {
        "pending": 0, "overdue": 0, "completed": 0, "toDo": 0, "inProgress": 0, "total": 0,
    }


def test_deleting_project_removes_its_tasks_everywhere(projects, tasks, board):
    alpha, _ = board
    projects.delete(alpha.id)
    assert [v.task.name for v in tasks.list_all()] == ["B1", "B2"]
    assert tasks.list_overdue() == []
    assert tasks.stats()["total"] == 2
    assert tasks.stats()["completed"] == 0


def test_search(tasks, board, launch):
    tasks.create(launch.id, "Write copy", description="landing page A1 hero")
    assert [v.task.name for v in tasks.search("a1")] == ["A1", "Write copy"]
