"""
backend/modules/users.py

User profile mirror.

Identities are issued by the external identity provider; this module keeps
the `users` collection in step with them (first sign-in creates the profile)
and maintains each profile's denormalized `projects` list.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

try:
    from backend.config import IS_DEV
    from backend.errors import InvalidArgument, NotFound, service_operation
    from backend.models import User, now_iso
    from backend.store import DocumentStore
except ModuleNotFoundError:
    from config import IS_DEV
    from errors import InvalidArgument, NotFound, service_operation
    from models import User, now_iso
    from store import DocumentStore


PUBLIC_USER_FIELDS = ("id", "email", "displayName", "createdAt")


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def public_profile(user: Dict[str, Any]) -> Dict[str, Any]:
    """Fields of a profile other users may see (no project list)."""
    return {field: user.get(field) for field in PUBLIC_USER_FIELDS}


class UserService:
    def __init__(self, store: DocumentStore):
        self.store = store

    @service_operation("USERS")
    def ensure_user_profile(self, user_id: str, email: str, display_name: Optional[str] = None) -> Dict[str, Any]:
        """Create the profile on first sign-in; an existing profile is returned untouched."""
        if not user_id:
            raise InvalidArgument("User ID is required")
        email = normalize_email(email)
        if not email:
            raise InvalidArgument("Email is required")

        existing = self.store.get("users", user_id)
        if existing is not None:
            return existing

        user = User(email=email, displayName=(display_name or "").strip(), createdAt=now_iso())
        self.store.set("users", user_id, user.model_dump(exclude={"id"}))
        print(f"[USERS] Profile created: user_id={user_id}")
        return {"id": user_id, **user.model_dump(exclude={"id"})}

    @service_operation("USERS")
    def get_user_profile(self, user_id: str) -> Dict[str, Any]:
        user = self.store.get("users", user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    @service_operation("USERS")
    def update_display_name(self, user_id: str, display_name: str) -> Dict[str, Any]:
        display_name = (display_name or "").strip()
        if not display_name:
            raise InvalidArgument("Display name is required")

        updated = self.store.update("users", user_id, {"displayName": display_name})
        if updated is None:
            raise NotFound("User not found")

        if IS_DEV:
            print(f"[USERS] Display name updated: user_id={user_id}")
        return {"success": True, "message": "User profile updated successfully."}

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Profile with this email (case-insensitive), or None."""
        matches = self.store.query("users", email=normalize_email(email))
        return matches[0] if matches else None

    # ------------------------------------------------------------------
    # Denormalized project list
    # ------------------------------------------------------------------
    def link_project(self, user_id: str, project_id: str) -> None:
        user = self.store.get("users", user_id)
        if user is None:
            print(f"[USERS] Cannot link project, profile missing: user_id={user_id}, project_id={project_id}")
            return
        projects = list(user.get("projects") or [])
        if project_id not in projects:
            projects.append(project_id)
            self.store.update("users", user_id, {"projects": projects})

    def unlink_project(self, user_id: str, project_id: str) -> None:
        user = self.store.get("users", user_id)
        if user is None:
            return
        projects = [pid for pid in user.get("projects") or [] if pid != project_id]
        if len(projects) != len(user.get("projects") or []):
            self.store.update("users", user_id, {"projects": projects})
