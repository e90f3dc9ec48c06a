"""
backend/routes_tasks.py

Task and subtask endpoints addressed by task id.

The parent project is resolved from the stored task; permissions are
re-verified against it on every call.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Path

try:
    from backend.auth_context import AuthContext, require_auth_context
    from backend.dependencies import get_task_service
    from backend.modules.tasks import TaskService
    from backend.schemas import SubtaskCreateRequest, TaskUpdateRequest
except ModuleNotFoundError:
    from auth_context import AuthContext, require_auth_context
    from dependencies import get_task_service
    from modules.tasks import TaskService
    from schemas import SubtaskCreateRequest, TaskUpdateRequest


router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)


@router.get("/{task_id}")
def get_task_details(
    task_id: str = Path(..., description="Task ID"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    return tasks.get_task_details(task_id, ctx.user_id)


@router.patch("/{task_id}")
def update_task(
    request: TaskUpdateRequest,
    task_id: str = Path(..., description="Task ID"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    return tasks.update_task(task_id, request.projectId, request.updates(), ctx.user_id)


@router.delete("/{task_id}")
def delete_task(
    task_id: str = Path(..., description="Task ID"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    return tasks.delete_task(task_id, None, ctx.user_id)


@router.post("/{task_id}/toggle")
def toggle_completion(
    task_id: str = Path(..., description="Task ID"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    return tasks.toggle_completion(task_id, ctx.user_id)


# ---------------------------------------------------------
# Subtasks
# ---------------------------------------------------------
@router.post("/{task_id}/subtasks", status_code=201)
def add_subtask(
    request: SubtaskCreateRequest,
    task_id: str = Path(..., description="Task ID"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    return tasks.add_subtask(task_id, request.name, None, ctx.user_id)


@router.post("/{task_id}/subtasks/{index}")
def toggle_subtask(
    task_id: str = Path(..., description="Task ID"),
    index: int = Path(..., description="Zero-based subtask position"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    return tasks.toggle_subtask(task_id, index, ctx.user_id)


@router.delete("/{task_id}/subtasks/{index}")
def remove_subtask(
    task_id: str = Path(..., description="Task ID"),
    index: int = Path(..., description="Zero-based subtask position"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    return tasks.remove_subtask(task_id, index, ctx.user_id)
