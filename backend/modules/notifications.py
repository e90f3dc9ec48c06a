"""
backend/modules/notifications.py

Read side of the notification feed.

A notification reaches a user in one of three ways:
- direct:     notification.userId == user (TASK_COMPLETED, ADDED_TO_PROJECT)
- recipients: user listed in notification.recipients (NEW_PROJECT)
- project:    NEW_TASK / NEW_MESSAGE of a project the user can edit right now;
              the roster is resolved at read time, own messages excluded

Direct notifications keep a single `read` flag; shared ones track readers in
`readBy`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

try:
    from backend.access import evaluate
    from backend.config import IS_DEV, NOTIFICATIONS_LIMIT
    from backend.errors import InvalidArgument, NotFound, PermissionDenied, service_operation
    from backend.models import NotificationType
    from backend.modules.projects import member_projects
    from backend.store import DocumentStore
except ModuleNotFoundError:
    from access import evaluate
    from config import IS_DEV, NOTIFICATIONS_LIMIT
    from errors import InvalidArgument, NotFound, PermissionDenied, service_operation
    from models import NotificationType
    from modules.projects import member_projects
    from store import DocumentStore


PROJECT_SCOPED_TYPES = (NotificationType.NEW_TASK.value, NotificationType.NEW_MESSAGE.value)


def is_direct(notification: Dict[str, Any], user_id: str) -> bool:
    return bool(user_id) and notification.get("userId") == user_id


class NotificationService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _editable_project_ids(self, user_id: str) -> Set[str]:
        return {p["id"] for p in member_projects(self.store, user_id) if evaluate(p, user_id).can_edit}

    def _candidates(self, user_id: str, editable: Set[str]) -> List[Dict[str, Any]]:
        """Notifications addressed to the user plus those of the user's projects (indexed lookups only)."""
        found = {n["id"]: n for n in self.store.query("notifications", userId=user_id)}
        for project_id in sorted(editable):
            for n in self.store.query("notifications", projectId=project_id):
                found.setdefault(n["id"], n)
        return list(found.values())

    def _reaches(self, notification: Dict[str, Any], user_id: str, editable: Set[str]) -> bool:
        if is_direct(notification, user_id):
            return True
        if user_id in (notification.get("recipients") or []):
            return True
        if notification.get("type") in PROJECT_SCOPED_TYPES and notification.get("projectId") in editable:
            return notification.get("senderId") != user_id
        return False

    @staticmethod
    def _present(notification: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        out = {k: v for k, v in notification.items() if k not in ("readBy", "recipients")}
        if is_direct(notification, user_id):
            out["read"] = bool(notification.get("read"))
        else:
            out["read"] = user_id in (notification.get("readBy") or [])
        return out

    @service_operation("NOTIFICATIONS")
    def list_notifications(self, user_id: str, limit: Optional[int] = None) -> Dict[str, Any]:
        """Newest first, at most `limit` entries, with `read` computed for this user."""
        limit = NOTIFICATIONS_LIMIT if limit is None else limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise InvalidArgument("limit must be a positive integer")

        editable = self._editable_project_ids(user_id)
        visible: List[Dict[str, Any]] = [
            self._present(n, user_id)
            for n in self._candidates(user_id, editable)
            if self._reaches(n, user_id, editable)
        ]
        visible.sort(key=lambda n: n.get("createdAt") or "", reverse=True)

        if IS_DEV:
            print(f"[NOTIFICATIONS] List: user_id={user_id}, visible={len(visible)}, limit={limit}")
        return {"notifications": visible[:limit], "unread": sum(1 for n in visible if not n["read"])}

    @service_operation("NOTIFICATIONS")
    def mark_read(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        notification = self.store.get("notifications", notification_id)
        if notification is None or not self._reaches(notification, user_id, self._editable_project_ids(user_id)):
            raise NotFound("Notification not found")

        if is_direct(notification, user_id):
            self.store.update("notifications", notification_id, {"read": True})
        else:
            readers = list(notification.get("readBy") or [])
            if user_id not in readers:
                readers.append(user_id)
                self.store.update("notifications", notification_id, {"readBy": readers})

        return {"success": True, "message": "Notification marked as read"}

    @service_operation("NOTIFICATIONS")
    def delete_notification(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        notification = self.store.get("notifications", notification_id)
        if notification is None:
            raise NotFound("Notification not found")
        if not is_direct(notification, user_id):
            print(f"[ACCESS] Notification delete denied: notification_id={notification_id}, user_id={user_id}")
            raise PermissionDenied("You can only delete notifications addressed to you")

        self.store.delete("notifications", notification_id)
        return {"success": True, "message": "Notification deleted"}
