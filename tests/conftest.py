"""Shared fixtures for tracker tests."""

import sys
from pathlib import Path

import pytest

# Ensure the repository root is importable without an install
sys.path.insert(0, str(Path(__file__).parent.parent))

from tracker.storage import KeyValueStore
from tracker.projects import ProjectRepository
from tracker.tasks import TaskRepository


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "tracker.db")


@pytest.fixture
def store(db_path):
    return KeyValueStore(db_path)


@pytest.fixture
def projects(store):
    return ProjectRepository(store)


@pytest.fixture
def tasks(projects):
    return TaskRepository(projects)
