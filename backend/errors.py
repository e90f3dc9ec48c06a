"""
backend/errors.py

Semantic error kinds raised by the core services.

Services never raise HTTPException: the transport mapping lives in
backend/main.py. Every operation either succeeds or raises exactly one of
the kinds below with a human-readable message.
"""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, Dict


class ServiceError(Exception):
    """Base class for all error kinds surfaced by the services."""
    kind = "Internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(ServiceError):
    """Missing or empty required field, or a value outside its domain."""
    kind = "InvalidArgument"


class NotFound(ServiceError):
    """Referenced project/task/user/notification does not exist."""
    kind = "NotFound"


class PermissionDenied(ServiceError):
    """Authenticated user lacks the required relationship to the project."""
    kind = "PermissionDenied"


class AlreadyExists(ServiceError):
    """Attempted duplicate state (collaborator already present, already owner)."""
    kind = "AlreadyExists"


class Internal(ServiceError):
    """Store failure or unexpected exception."""
    kind = "Internal"


# Contextual ids printed when an operation fails
_CONTEXT_ARGS = (
    "project_id",
    "task_id",
    "user_id",
    "owner_id",
    "target_user_id",
    "notification_id",
    "email",
    "index",
)


def _call_context(func: Callable, args: tuple, kwargs: Dict[str, Any]) -> str:
    try:
        bound = inspect.signature(func).bind(*args, **kwargs)
    except TypeError:
        return ""
    parts = [f"{name}={bound.arguments[name]}" for name in _CONTEXT_ARGS if name in bound.arguments]
    return ", ".join(parts)


def service_operation(label: str) -> Callable:
    """
    Decorator for service methods.

    ServiceError subclasses propagate unchanged. Anything else (sqlite3 /
    SQLAlchemy errors, bugs) is printed with the operation name and the call's
    ids, then re-raised as Internal so callers see one of the documented kinds.

    Usage:
        @service_operation("PROJECTS")
        def delete_project(self, project_id, user_id): ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ServiceError:
                raise
            except Exception as e:
                context = _call_context(func, args, kwargs)
                print(f"[{label}] {func.__name__} failed: {context} error={type(e).__name__}: {e}")
                raise Internal(f"{func.__name__} failed: {e}") from e
        return wrapper
    return decorator
