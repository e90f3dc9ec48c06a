"""
backend/modules/propagation.py

Derived-state propagation: project statistics and notifications.

The services call these reactions explicitly after their own write has been
committed; a reaction is never part of the caller's transaction.

Every reaction is safe to replay:
- statistics are recomputed from the project's current tasks, never incremented
- notification ids are derived from the triggering event and only written
  when absent, so a redelivered event does not create a second notification
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List, Optional

try:
    from backend.config import IS_DEV
    from backend.errors import service_operation
    from backend.models import (
        Notification,
        NotificationType,
        Priority,
        ProjectStats,
        collaborator_id,
        now_iso,
        today_utc,
    )
    from backend.scoping import assert_docs_scoped
    from backend.store import DocumentStore
except ModuleNotFoundError:
    from config import IS_DEV
    from errors import service_operation
    from models import (
        Notification,
        NotificationType,
        Priority,
        ProjectStats,
        collaborator_id,
        now_iso,
        today_utc,
    )
    from scoping import assert_docs_scoped
    from store import DocumentStore


def parse_due_date(value: Any) -> Optional[date]:
    """Stored dueDate as a date; tolerates legacy full timestamps, None for anything unreadable."""
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def is_overdue(task: Dict[str, Any], today: date) -> bool:
    due = parse_due_date(task.get("dueDate"))
    return due is not None and due < today and not task.get("completed")


def compute_stats(tasks: Iterable[Dict[str, Any]], today: Optional[date] = None) -> ProjectStats:
    """Project statistics from scratch over the given task documents."""
    today = today or today_utc()
    stats = ProjectStats()
    for task in tasks:
        stats.totalTasks += 1
        if task.get("completed"):
            stats.completedTasks += 1
        if task.get("priority") == Priority.high.value:
            stats.highPriorityTasks += 1
        if is_overdue(task, today):
            stats.overdueTasks += 1
    return stats


class PropagationEngine:
    """Reactions to committed task, roster and content writes."""

    def __init__(self, store: DocumentStore):
        self.store = store

    # ------------------------------------------------------------------
    # Project timestamp
    # ------------------------------------------------------------------
    @service_operation("PROPAGATION")
    def touch_project(self, project_id: str, fields: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Write fields plus a fresh updatedAt to the project, then mirror the new
        timestamp onto its tasks.

        Returns the updated project, or None if it no longer exists.
        """
        project = self.store.update("projects", project_id, {**(fields or {}), "updatedAt": now_iso()})
        if project is None:
            if IS_DEV:
                print(f"[PROPAGATION] Stamp skipped, project gone: project_id={project_id}")
            return None
        self.project_updated(project_id, project["updatedAt"])
        return project

    @service_operation("PROPAGATION")
    def project_updated(self, project_id: str, updated_at: str) -> int:
        """Copy the project's updatedAt into projectUpdatedAt of every task, in one batch."""
        tasks = assert_docs_scoped(
            self.store.query("tasks", projectId=project_id),
            project_id,
            label="project_updated",
        )
        batch = self.store.batch()
        for task in tasks:
            if task.get("projectUpdatedAt") != updated_at:
                batch.update("tasks", task["id"], {"projectUpdatedAt": updated_at})
        if len(batch):
            batch.commit()
        return len(batch)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    @service_operation("PROPAGATION")
    def recompute_project_stats(self, project_id: str) -> Optional[Dict[str, int]]:
        """
        Rewrite project.stats from the project's current tasks and stamp the project.

        Returns the written stats, or None if the project no longer exists.
        """
        if self.store.get("projects", project_id) is None:
            if IS_DEV:
                print(f"[PROPAGATION] Stats skipped, project gone: project_id={project_id}")
            return None

        tasks = assert_docs_scoped(
            self.store.query("tasks", projectId=project_id),
            project_id,
            label="recompute_project_stats",
        )
        stats = compute_stats(tasks).model_dump()
        if self.touch_project(project_id, {"stats": stats}) is None:
            return None

        if IS_DEV:
            print(f"[PROPAGATION] Stats recomputed: project_id={project_id}, stats={stats}")
        return stats

    # ------------------------------------------------------------------
    # Task completion
    # ------------------------------------------------------------------
    @service_operation("PROPAGATION")
    def task_completed(self, task: Dict[str, Any]) -> Optional[str]:
        """
        React to a pending -> completed transition of one task.

        The creator is told; nobody is told about completing their own task.
        Callers must only invoke this on the transition itself; re-saving an
        already completed task is not a completion.
        """
        project_id = task["projectId"]
        self.recompute_project_stats(project_id)

        recipient = task.get("createdBy")
        if not recipient:
            print(f"[PROPAGATION] Completed task has no creator: task_id={task.get('id')}")
            return None
        if recipient == task.get("completedBy"):
            return None

        notification_id = f"task-completed-{task['id']}-{task.get('completedAt') or ''}"
        self._create_once(notification_id, NotificationType.TASK_COMPLETED, {
            "taskId": task["id"],
            "taskName": task.get("name", ""),
            "projectId": project_id,
            "userId": recipient,
            "completedBy": task.get("completedBy"),
        })
        return notification_id

    # ------------------------------------------------------------------
    # Roster changes
    # ------------------------------------------------------------------
    @service_operation("PROPAGATION")
    def collaborators_changed(
        self,
        project: Dict[str, Any],
        old_roster: List[Any],
        new_roster: List[Any],
    ) -> List[str]:
        """One ADDED_TO_PROJECT notification per user present in new_roster but not in old_roster."""
        old_ids = {collaborator_id(entry) for entry in old_roster or []}
        added = []
        for entry in new_roster or []:
            user_id = collaborator_id(entry)
            if user_id and user_id not in old_ids and user_id not in added:
                added.append(user_id)

        created = []
        for user_id in added:
            entry = next(e for e in new_roster if collaborator_id(e) == user_id)
            added_at = entry.get("addedAt") if isinstance(entry, dict) else None
            notification_id = f"added-{project['id']}-{user_id}-{added_at or ''}"
            if self._create_once(notification_id, NotificationType.ADDED_TO_PROJECT, {
                "projectId": project["id"],
                "projectName": project.get("name", ""),
                "userId": user_id,
            }):
                created.append(notification_id)
        return created

    # ------------------------------------------------------------------
    # New content
    # ------------------------------------------------------------------
    @service_operation("PROPAGATION")
    def entity_created(self, collection: str, doc: Dict[str, Any]) -> Optional[str]:
        """NEW_PROJECT / NEW_TASK / NEW_MESSAGE notification for a freshly created document."""
        if collection == "projects":
            notification_type = NotificationType.NEW_PROJECT
            fields = {
                "projectId": doc["id"],
                "projectName": doc.get("name", ""),
                "recipients": [collaborator_id(c) for c in doc.get("collaborators") or [] if collaborator_id(c)],
            }
        elif collection == "tasks":
            notification_type = NotificationType.NEW_TASK
            fields = {
                "taskId": doc["id"],
                "taskName": doc.get("name", ""),
                "projectId": doc.get("projectId"),
            }
        elif collection == "messages":
            notification_type = NotificationType.NEW_MESSAGE
            fields = {
                "messageId": doc["id"],
                "projectId": doc.get("projectId"),
                "senderId": doc.get("userId"),
            }
        else:
            return None

        notification_id = f"new-{collection[:-1]}-{doc['id']}"
        self._create_once(notification_id, notification_type, fields)
        return notification_id

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _create_once(self, notification_id: str, notification_type: NotificationType, fields: Dict[str, Any]) -> bool:
        """Write the notification unless an event with the same id was already delivered."""
        if self.store.get("notifications", notification_id) is not None:
            if IS_DEV:
                print(f"[PROPAGATION] Duplicate event ignored: notification_id={notification_id}")
            return False

        notification = Notification(type=notification_type, createdAt=now_iso(), **fields)
        self.store.set("notifications", notification_id, notification.model_dump(mode="json", exclude={"id"}))

        if IS_DEV:
            print(f"[PROPAGATION] Notification created: id={notification_id}, type={notification_type.value}")
        return True
