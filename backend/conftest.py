"""
Shared fixtures: every test gets its own SQLite file and fresh services.

Users u1 (owner in most scenarios), u2 and u3 are seeded as profiles.
"""

import pytest

from backend.db import init_db
from backend.store import DocumentStore
from backend.modules.messages import MessageService
from backend.modules.notifications import NotificationService
from backend.modules.projects import ProjectService
from backend.modules.propagation import PropagationEngine
from backend.modules.tasks import TaskService
from backend.modules.users import UserService


@pytest.fixture
def store(tmp_path):
    db_path = str(tmp_path / "test.db")
    init_db(db_path)
    return DocumentStore(db_path)


@pytest.fixture
def users(store):
    service = UserService(store)
    service.ensure_user_profile("u1", "u1@x.com", "Una")
    service.ensure_user_profile("u2", "u2@x.com", "Dos")
    service.ensure_user_profile("u3", "u3@x.com", "Tres")
    return service


@pytest.fixture
def propagation(store):
    return PropagationEngine(store)


@pytest.fixture
def projects(store, propagation, users):
    return ProjectService(store, propagation, users)


@pytest.fixture
def tasks(store, propagation):
    return TaskService(store, propagation)


@pytest.fixture
def messages(store, propagation):
    return MessageService(store, propagation)


@pytest.fixture
def notifications(store):
    return NotificationService(store)


@pytest.fixture
def project_id(projects):
    """Private project owned by u1 with u2 as Member."""
    pid = projects.create_project("Launch", "Go live", "private", "u1")["projectId"]
    projects.add_collaborator(pid, "u2@x.com", "Member", "u1")
    return pid
