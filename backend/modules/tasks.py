"""
backend/modules/tasks.py

Tasks and their embedded subtasks.

Tasks inherit permissions from their parent project: every mutation
re-loads the project and re-verifies can_edit, reads require can_view.
After a task write project statistics are recomputed, which also stamps the
parent project's updatedAt; both are separate writes from the task itself.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

try:
    from backend.access import require_edit, require_view
    from backend.config import IS_DEV
    from backend.errors import InvalidArgument, NotFound, service_operation
    from backend.models import Priority, Subtask, Task, load_project, now_iso
    from backend.modules.propagation import PropagationEngine
    from backend.scoping import assert_docs_scoped, require_project_id
    from backend.store import DocumentStore
except ModuleNotFoundError:
    from access import require_edit, require_view
    from config import IS_DEV
    from errors import InvalidArgument, NotFound, service_operation
    from models import Priority, Subtask, Task, load_project, now_iso
    from modules.propagation import PropagationEngine
    from scoping import assert_docs_scoped, require_project_id
    from store import DocumentStore


UPDATABLE_FIELDS = ("name", "description", "priority", "dueDate", "completed", "subtasks")


def normalize_due_date(value: Any) -> Optional[str]:
    """
    Due date as YYYY-MM-DD.

    Accepts a date, a datetime (aware values are converted to UTC first) or an
    ISO date/datetime string. None or "" clears the due date.

    Raises:
        InvalidArgument: For anything that cannot be read as a date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text).isoformat()
            return normalize_due_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
    raise InvalidArgument(f"Invalid due date: {value!r}")


def normalize_priority(value: Any) -> str:
    if value is None or value == "":
        return Priority.medium.value
    try:
        return Priority(str(value).strip().lower()).value
    except ValueError:
        raise InvalidArgument(f"Priority must be one of low, medium, high; got {value!r}")


def _subtask_index(subtasks: List[Dict[str, Any]], index: Any) -> int:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(subtasks):
        raise InvalidArgument(f"Subtask index out of range: {index!r}")
    return index


class TaskService:
    def __init__(self, store: DocumentStore, propagation: Optional[PropagationEngine] = None):
        self.store = store
        self.propagation = propagation or PropagationEngine(store)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def _load_project(self, project_id: str) -> Dict[str, Any]:
        project = load_project(self.store.get("projects", project_id))
        if project is None:
            raise NotFound("Project not found")
        return project

    def _load_task(self, task_id: str, project_id: Optional[str] = None) -> Dict[str, Any]:
        if not task_id:
            raise InvalidArgument("Task ID is required")
        task = self.store.get("tasks", task_id)
        if task is None:
            raise NotFound("Task not found")
        if project_id and project_id != task.get("projectId"):
            raise InvalidArgument("Task does not belong to this project")
        return task

    def _load_parent(self, task: Dict[str, Any]) -> Dict[str, Any]:
        project = load_project(self.store.get("projects", task.get("projectId")))
        if project is None:
            raise NotFound("Related project not found")
        return project

    def _after_write(self, project_id: str) -> None:
        """Refresh the parent project's statistics and timestamp."""
        self.propagation.recompute_project_stats(project_id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------
    @service_operation("TASKS")
    def create_task(
        self,
        project_id: str,
        name: str,
        description: Optional[str] = None,
        priority: Optional[str] = None,
        due_date: Any = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        project_id = require_project_id(project_id)
        project = self._load_project(project_id)
        require_edit(project, user_id, "create tasks in this project")

        name = (name or "").strip()
        if not name:
            raise InvalidArgument("Task name is required")

        now = now_iso()
        task = Task(
            projectId=project_id,
            name=name,
            description=(description or "").strip(),
            priority=normalize_priority(priority),
            dueDate=normalize_due_date(due_date),
            completed=False,
            subtasks=[],
            createdAt=now,
            updatedAt=now,
            createdBy=user_id,
        )
        data = task.model_dump(mode="json", exclude={"id"})
        task_id = self.store.add("tasks", data)

        self.propagation.entity_created("tasks", {"id": task_id, **data})
        self.propagation.recompute_project_stats(project_id)

        print(f"[TASKS] Created task_id={task_id}, project_id={project_id}, user_id={user_id}")
        return {"success": True, "message": "Task created successfully", "taskId": task_id, "projectId": project_id}

    @service_operation("TASKS")
    def list_tasks(self, project_id: str, user_id: str) -> Dict[str, Any]:
        project_id = require_project_id(project_id)
        project = self._load_project(project_id)
        access = require_view(project, user_id, "view tasks of this project")

        tasks = assert_docs_scoped(self.store.query("tasks", projectId=project_id), project_id, "list_tasks")
        tasks.sort(key=lambda t: t.get("createdAt") or "")
        return {"tasks": tasks, "projectId": project_id, "canEdit": access.can_edit}

    @service_operation("TASKS")
    def get_task_details(self, task_id: str, user_id: str) -> Dict[str, Any]:
        task = self._load_task(task_id)
        project = self._load_parent(task)
        access = require_view(project, user_id, "view this task")
        return {**task, "canEdit": access.can_edit}

    @service_operation("TASKS")
    def update_task(
        self,
        task_id: str,
        project_id: Optional[str],
        updates: Dict[str, Any],
        user_id: str,
    ) -> Dict[str, Any]:
        if not isinstance(updates, dict):
            raise InvalidArgument("Task ID, project ID, and updates are required")

        task = self._load_task(task_id, project_id)
        project = self._load_parent(task)
        require_edit(project, user_id, "edit this task")

        changes = self._validate_updates(updates)
        now = now_iso()
        changes["updatedAt"] = now

        was_completed = bool(task.get("completed"))
        is_completed = changes.get("completed", was_completed)
        just_completed = is_completed and not was_completed
        if just_completed:
            changes["completedAt"] = now
            changes["completedBy"] = user_id
        elif was_completed and not is_completed:
            changes["completedAt"] = None
            changes["completedBy"] = None

        updated = self.store.update("tasks", task["id"], changes)
        if updated is None:
            raise NotFound("Task not found")

        if just_completed:
            self.propagation.task_completed(updated)
        else:
            self.propagation.recompute_project_stats(task["projectId"])

        if IS_DEV:
            print(f"[TASKS] Updated task_id={task['id']}, fields={sorted(changes)}")
        return {"success": True, "message": "Task updated successfully", "task": updated}

    @service_operation("TASKS")
    def delete_task(self, task_id: str, project_id: Optional[str], user_id: str) -> Dict[str, Any]:
        task = self._load_task(task_id, project_id)
        project = self._load_parent(task)
        require_edit(project, user_id, "delete this task")

        self.store.delete("tasks", task["id"])
        self._after_write(task["projectId"])

        print(f"[TASKS] Deleted task_id={task['id']}, project_id={task['projectId']}")
        return {"success": True, "message": "Task deleted successfully"}

    @service_operation("TASKS")
    def toggle_completion(self, task_id: str, user_id: str) -> Dict[str, Any]:
        task = self._load_task(task_id)
        return self.update_task(task["id"], task["projectId"], {"completed": not task.get("completed")}, user_id)

    # ------------------------------------------------------------------
    # Subtasks
    # ------------------------------------------------------------------
    @service_operation("TASKS")
    def add_subtask(self, task_id: str, name: str, project_id: Optional[str], user_id: str) -> Dict[str, Any]:
        task = self._load_task(task_id, project_id)
        project = self._load_parent(task)
        require_edit(project, user_id, "edit this task")

        name = (name or "").strip()
        if not name:
            raise InvalidArgument("Subtask name is required")

        subtask = Subtask(name=name, completed=False, createdAt=now_iso()).model_dump()
        subtasks = list(task.get("subtasks") or []) + [subtask]
        self.store.update("tasks", task["id"], {"subtasks": subtasks, "updatedAt": now_iso()})
        self._after_write(task["projectId"])

        return {"success": True, "message": "Subtask added successfully", "subtask": subtask}

    @service_operation("TASKS")
    def toggle_subtask(self, task_id: str, index: int, user_id: str) -> Dict[str, Any]:
        task = self._load_task(task_id)
        project = self._load_parent(task)
        require_edit(project, user_id, "edit this task")

        subtasks = [dict(s) for s in task.get("subtasks") or []]
        i = _subtask_index(subtasks, index)
        subtasks[i]["completed"] = not subtasks[i].get("completed", False)

        self.store.update("tasks", task["id"], {"subtasks": subtasks, "updatedAt": now_iso()})
        self._after_write(task["projectId"])
        return {"success": True, "message": "Subtask updated successfully", "subtask": subtasks[i]}

    @service_operation("TASKS")
    def remove_subtask(self, task_id: str, index: int, user_id: str) -> Dict[str, Any]:
        task = self._load_task(task_id)
        project = self._load_parent(task)
        require_edit(project, user_id, "edit this task")

        subtasks = list(task.get("subtasks") or [])
        removed = subtasks.pop(_subtask_index(subtasks, index))

        self.store.update("tasks", task["id"], {"subtasks": subtasks, "updatedAt": now_iso()})
        self._after_write(task["projectId"])
        return {"success": True, "message": "Subtask removed successfully", "subtask": removed}

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def _validate_updates(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        ignored = [key for key in updates if key not in UPDATABLE_FIELDS]
        if ignored and IS_DEV:
            print(f"[TASKS] Ignoring non-updatable fields: {sorted(ignored)}")

        if "name" in updates:
            name = (updates["name"] or "").strip()
            if not name:
                raise InvalidArgument("Task name must not be empty")
            changes["name"] = name
        if "description" in updates:
            changes["description"] = (updates["description"] or "").strip()
        if "priority" in updates:
            changes["priority"] = normalize_priority(updates["priority"])
        if "dueDate" in updates:
            changes["dueDate"] = normalize_due_date(updates["dueDate"])
        if "completed" in updates:
            if not isinstance(updates["completed"], bool):
                raise InvalidArgument("completed must be true or false")
            changes["completed"] = updates["completed"]
        if "subtasks" in updates:
            if not isinstance(updates["subtasks"], list):
                raise InvalidArgument("subtasks must be a list")
            try:
                changes["subtasks"] = [Subtask.model_validate(s).model_dump() for s in updates["subtasks"]]
            except ValidationError as e:
                raise InvalidArgument(f"Invalid subtask: {e.errors()[0].get('msg')}")
        return changes
