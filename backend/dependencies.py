"""
backend/dependencies.py

Reusable FastAPI dependencies: the document store and the services built on it.

Tests point the app at a temporary database with
    app.dependency_overrides[get_store] = lambda: DocumentStore(tmp_path)
"""

from __future__ import annotations

from fastapi import Depends

try:
    from backend.store import DocumentStore
    from backend.modules.messages import MessageService
    from backend.modules.notifications import NotificationService
    from backend.modules.projects import ProjectService
    from backend.modules.propagation import PropagationEngine
    from backend.modules.tasks import TaskService
    from backend.modules.users import UserService
except ModuleNotFoundError:
    from store import DocumentStore
    from modules.messages import MessageService
    from modules.notifications import NotificationService
    from modules.projects import ProjectService
    from modules.propagation import PropagationEngine
    from modules.tasks import TaskService
    from modules.users import UserService


def get_store() -> DocumentStore:
    """Store bound to the configured database (DATABASE_URL or DATABASE_PATH)."""
    return DocumentStore()


def get_user_service(store: DocumentStore = Depends(get_store)) -> UserService:
    return UserService(store)


def get_project_service(store: DocumentStore = Depends(get_store)) -> ProjectService:
    return ProjectService(store, PropagationEngine(store), UserService(store))


def get_task_service(store: DocumentStore = Depends(get_store)) -> TaskService:
    return TaskService(store, PropagationEngine(store))


def get_message_service(store: DocumentStore = Depends(get_store)) -> MessageService:
    return MessageService(store, PropagationEngine(store))


def get_notification_service(store: DocumentStore = Depends(get_store)) -> NotificationService:
    return NotificationService(store)
