"""
backend/routes_projects.py

Project, collaborator, project-task and message endpoints.

Security guarantees:
- All endpoints require authentication (require_auth_context)
- The caller's id comes from the auth context ONLY
- Permission checks happen in the services against the freshly loaded project
- Service errors are mapped to HTTP status codes in backend/main.py
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Path

try:
    from backend.auth_context import AuthContext, require_auth_context
    from backend.dependencies import (
        get_message_service,
        get_project_service,
        get_task_service,
    )
    from backend.modules.messages import MessageService
    from backend.modules.projects import ProjectService
    from backend.modules.tasks import TaskService
    from backend.schemas import (
        CollaboratorAddRequest,
        MessageCreateRequest,
        ProjectCreateRequest,
        ProjectUpdateRequest,
        TaskCreateRequest,
    )
except ModuleNotFoundError:
    from auth_context import AuthContext, require_auth_context
    from dependencies import (
        get_message_service,
        get_project_service,
        get_task_service,
    )
    from modules.messages import MessageService
    from modules.projects import ProjectService
    from modules.tasks import TaskService
    from schemas import (
        CollaboratorAddRequest,
        MessageCreateRequest,
        ProjectCreateRequest,
        ProjectUpdateRequest,
        TaskCreateRequest,
    )


router = APIRouter(
    prefix="/projects",
    tags=["projects"],
)


# ---------------------------------------------------------
# Projects
# ---------------------------------------------------------
@router.get("")
def list_projects(
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    """Dashboard: projects owned/shared with the caller, plus other users' public projects."""
    return projects.list_projects(ctx.user_id)


@router.post("", status_code=201)
def create_project(
    request: ProjectCreateRequest,
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    return projects.create_project(request.name, request.description, request.visibility, ctx.user_id)


@router.get("/{project_id}")
def get_project(
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    return projects.get_project(project_id, ctx.user_id)


@router.patch("/{project_id}")
def update_project(
    request: ProjectUpdateRequest,
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    return projects.update_project(project_id, request.patch(), ctx.user_id)


@router.delete("/{project_id}")
def delete_project(
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    """Owner only. Removes the project with all of its tasks and messages."""
    return projects.delete_project(project_id, ctx.user_id)


# ---------------------------------------------------------
# Collaborators
# ---------------------------------------------------------
@router.get("/{project_id}/collaborators")
def list_collaborators(
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    return projects.list_collaborators(project_id, ctx.user_id)


@router.post("/{project_id}/collaborators", status_code=201)
def add_collaborator(
    request: CollaboratorAddRequest,
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    return projects.add_collaborator(project_id, request.email, request.role, ctx.user_id)


@router.delete("/{project_id}/collaborators/{user_id}")
def remove_collaborator(
    project_id: str = Path(..., description="Project ID"),
    user_id: str = Path(..., description="Collaborator user ID"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    return projects.remove_collaborator(project_id, user_id, ctx.user_id)


# ---------------------------------------------------------
# Tasks of a project
# ---------------------------------------------------------
@router.get("/{project_id}/tasks")
def list_tasks(
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    return tasks.list_tasks(project_id, ctx.user_id)


@router.post("/{project_id}/tasks", status_code=201)
def create_task(
    request: TaskCreateRequest,
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    return tasks.create_task(
        project_id,
        request.name,
        description=request.description,
        priority=request.priority,
        due_date=request.dueDate,
        user_id=ctx.user_id,
    )


# ---------------------------------------------------------
# Messages
# ---------------------------------------------------------
@router.get("/{project_id}/messages")
def list_messages(
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    messages: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    return messages.list_messages(project_id, ctx.user_id)


@router.post("/{project_id}/messages", status_code=201)
def post_message(
    request: MessageCreateRequest,
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    messages: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    return messages.post_message(project_id, request.text, ctx.user_id)
