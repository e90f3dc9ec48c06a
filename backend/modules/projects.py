"""
backend/modules/projects.py

Project lifecycle and collaborator roster.

Rules:
- every operation re-reads the project before deciding permission
- owner: roster changes and deletion; owner + collaborators: metadata edits
- the owner is never stored in `collaborators`; roster entries are unique per user
- deleting a project removes its tasks, messages, notifications and the
  project id from every member's profile in ONE atomic batch
- dashboard and feed lookups go through the ownerId/visibility indexes and the
  users.projects list, never a scan of every project
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

try:
    from backend.access import evaluate, find_collaborator, require_edit, require_owner, require_view
    from backend.config import IS_DEV
    from backend.errors import AlreadyExists, InvalidArgument, NotFound, PermissionDenied, service_operation
    from backend.models import (
        DEFAULT_ROLE,
        OWNER_ROLE,
        Collaborator,
        Project,
        Visibility,
        load_project,
        now_iso,
    )
    from backend.modules.propagation import PropagationEngine
    from backend.modules.users import UserService, normalize_email, public_profile
    from backend.scoping import assert_docs_scoped, require_project_id
    from backend.store import DocumentStore
except ModuleNotFoundError:
    from access import evaluate, find_collaborator, require_edit, require_owner, require_view
    from config import IS_DEV
    from errors import AlreadyExists, InvalidArgument, NotFound, PermissionDenied, service_operation
    from models import (
        DEFAULT_ROLE,
        OWNER_ROLE,
        Collaborator,
        Project,
        Visibility,
        load_project,
        now_iso,
    )
    from modules.propagation import PropagationEngine
    from modules.users import UserService, normalize_email, public_profile
    from scoping import assert_docs_scoped, require_project_id
    from store import DocumentStore


def parse_visibility(value: Optional[str]) -> str:
    """Validated visibility value; None/empty means private."""
    if value is None or value == "":
        return Visibility.private.value
    try:
        return Visibility(str(value).strip().lower()).value
    except ValueError:
        raise InvalidArgument(f"Visibility must be 'private' or 'public', got {value!r}")


def member_projects(store: DocumentStore, user_id: Optional[str]) -> List[Dict[str, Any]]:
    """
    Projects the user owns or collaborates on.

    Owned projects come from the ownerId index, shared ones from the user's
    denormalized `projects` list, re-checked against each roster.
    """
    if not user_id:
        return []
    found = {p["id"]: p for p in store.query("projects", ownerId=user_id)}
    user = store.get("users", user_id) or {}
    linked = [pid for pid in user.get("projects") or [] if pid not in found]
    for pid, doc in store.get_many("projects", linked).items():
        if evaluate(doc, user_id).is_collaborator:
            found[pid] = doc
    return list(found.values())


def _sort_newest_first(projects: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(projects, key=lambda p: p.get("createdAt") or "", reverse=True)


class ProjectService:
    def __init__(
        self,
        store: DocumentStore,
        propagation: Optional[PropagationEngine] = None,
        users: Optional[UserService] = None,
    ):
        self.store = store
        self.propagation = propagation or PropagationEngine(store)
        self.users = users or UserService(store)

    def load(self, project_id: str) -> Dict[str, Any]:
        """Project with normalized roster; raises NotFound."""
        project_id = require_project_id(project_id)
        project = load_project(self.store.get("projects", project_id))
        if project is None:
            raise NotFound("Project not found")
        return project

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @service_operation("PROJECTS")
    def create_project(
        self,
        name: str,
        description: Optional[str],
        visibility: Optional[str],
        owner_id: str,
    ) -> Dict[str, Any]:
        name = (name or "").strip()
        if not name or not owner_id:
            raise InvalidArgument("Project name and owner ID are required")

        now = now_iso()
        project = Project(
            name=name,
            description=(description or "").strip(),
            visibility=parse_visibility(visibility),
            ownerId=owner_id,
            collaborators=[],
            createdAt=now,
            updatedAt=now,
        )
        data = project.model_dump(mode="json", exclude={"id", "stats"})
        project_id = self.store.add("projects", data)

        self.users.link_project(owner_id, project_id)
        self.propagation.entity_created("projects", {"id": project_id, **data})

        print(f"[PROJECTS] Created project_id={project_id}, owner_id={owner_id}, visibility={data['visibility']}")
        return {"success": True, "message": "Project created successfully", "projectId": project_id}

    @service_operation("PROJECTS")
    def get_project(self, project_id: str, user_id: str) -> Dict[str, Any]:
        """Project document plus the caller's access flags."""
        project = self.load(project_id)
        access = require_view(project, user_id)
        return {**project, **access.as_flags()}

    @service_operation("PROJECTS")
    def list_projects(self, user_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """
        Dashboard listing, recomputed from the store on every call.

        Returns:
            projects: owned or shared with the user (any visibility)
            publicProjects: public projects of other users
        """
        mine: List[Dict[str, Any]] = []
        public: List[Dict[str, Any]] = []

        for doc in member_projects(self.store, user_id):
            access = evaluate(doc, user_id)
            mine.append({**load_project(doc), "isOwner": access.is_owner, "isCollaborator": access.is_collaborator})

        mine_ids = {p["id"] for p in mine}
        for doc in self.store.query("projects", visibility=Visibility.public.value):
            if doc["id"] not in mine_ids:
                public.append({**load_project(doc), "isOwner": False, "isCollaborator": False})

        if IS_DEV:
            print(f"[PROJECTS] List: user_id={user_id}, projects={len(mine)}, public={len(public)}")
        return {"projects": _sort_newest_first(mine), "publicProjects": _sort_newest_first(public)}

    @service_operation("PROJECTS")
    def update_project(self, project_id: str, patch: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        """Apply name/description/visibility changes; other keys are ignored."""
        if patch is None:
            raise InvalidArgument("Project ID and updates are required")

        project = self.load(project_id)
        require_edit(project, user_id, "edit this project")

        changes: Dict[str, Any] = {}
        if "name" in patch:
            name = (patch.get("name") or "").strip()
            if not name:
                raise InvalidArgument("Project name must not be empty")
            changes["name"] = name
        if "description" in patch:
            changes["description"] = (patch.get("description") or "").strip()
        if "visibility" in patch:
            if patch.get("visibility") is None:
                raise InvalidArgument("Visibility must be 'private' or 'public'")
            changes["visibility"] = parse_visibility(patch["visibility"])

        if self.propagation.touch_project(project["id"], changes) is None:
            raise NotFound("Project not found")

        if IS_DEV:
            print(f"[PROJECTS] Updated project_id={project['id']}, fields={sorted(changes)}")
        return {"success": True, "message": "Project updated successfully"}

    @service_operation("PROJECTS")
    def delete_project(self, project_id: str, user_id: str) -> Dict[str, Any]:
        """Owner-only cascade delete: tasks, messages, notifications, member profile links and the project, atomically."""
        project = self.load(project_id)
        require_owner(project, user_id, "delete this project")
        project_id = project["id"]

        tasks = assert_docs_scoped(self.store.query("tasks", projectId=project_id), project_id, "delete_project")
        messages = assert_docs_scoped(self.store.query("messages", projectId=project_id), project_id, "delete_project")
        notifications = self.store.query("notifications", projectId=project_id)

        member_ids = [project["ownerId"]] + [c["userId"] for c in project["collaborators"]]
        members = self.store.get_many("users", member_ids)

        batch = self.store.batch()
        for task in tasks:
            batch.delete("tasks", task["id"])
        for message in messages:
            batch.delete("messages", message["id"])
        for notification in notifications:
            batch.delete("notifications", notification["id"])
        for member in members.values():
            linked = member.get("projects") or []
            if project_id in linked:
                batch.update("users", member["id"], {"projects": [pid for pid in linked if pid != project_id]})
        batch.delete("projects", project_id)
        batch.commit()

        print(f"[PROJECTS] Deleted project_id={project_id}, tasks={len(tasks)}, messages={len(messages)}")
        return {
            "success": True,
            "message": "Project and all associated tasks deleted successfully",
            "deletedTasks": len(tasks),
            "deletedMessages": len(messages),
            "deletedNotifications": len(notifications),
        }

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------
    @service_operation("PROJECTS")
    def add_collaborator(self, project_id: str, email: str, role: Optional[str], user_id: str) -> Dict[str, Any]:
        email = normalize_email(email)
        if not project_id or not email:
            raise InvalidArgument("Project ID and user email are required")

        project = self.load(project_id)
        require_owner(project, user_id, "manage collaborators")

        target = self.users.find_by_email(email)
        if target is None:
            raise NotFound("No user found with this email address")
        target_id = target["id"]

        if target_id == project["ownerId"]:
            raise AlreadyExists("This user is already the project owner")
        if find_collaborator(project, target_id) is not None:
            raise AlreadyExists("This user is already added to the project")

        entry = Collaborator(userId=target_id, role=(role or "").strip() or DEFAULT_ROLE, addedAt=now_iso())
        old_roster = project["collaborators"]
        new_roster = old_roster + [entry.model_dump()]

        self.propagation.touch_project(project["id"], {"collaborators": new_roster})
        self.users.link_project(target_id, project["id"])
        self.propagation.collaborators_changed(project, old_roster, new_roster)

        print(f"[PROJECTS] Collaborator added: project_id={project['id']}, user_id={target_id}, role={entry.role}")
        return {
            "success": True,
            "message": "Collaborator added successfully.",
            "userId": target_id,
            "projectId": project["id"],
            "role": entry.role,
        }

    @service_operation("PROJECTS")
    def remove_collaborator(self, project_id: str, target_user_id: str, user_id: str) -> Dict[str, Any]:
        """Owner removes anyone but themself; a collaborator may only remove themself."""
        if not project_id or not target_user_id:
            raise InvalidArgument("Project ID and user ID are required")

        project = self.load(project_id)
        if target_user_id == project["ownerId"]:
            raise PermissionDenied("Project owner cannot be removed from the project")

        access = evaluate(project, user_id)
        if not access.is_owner and not (access.is_collaborator and target_user_id == user_id):
            print(f"[ACCESS] Roster change denied: project_id={project['id']}, user_id={user_id}")
            raise PermissionDenied("Only the project owner can manage collaborators")

        if find_collaborator(project, target_user_id) is None:
            raise NotFound("This user is not a collaborator on the project")

        new_roster = [c for c in project["collaborators"] if c["userId"] != target_user_id]
        self.propagation.touch_project(project["id"], {"collaborators": new_roster})
        self.users.unlink_project(target_user_id, project["id"])

        print(f"[PROJECTS] Collaborator removed: project_id={project['id']}, user_id={target_user_id}")
        return {
            "success": True,
            "message": "Collaborator removed successfully.",
            "userId": target_user_id,
            "projectId": project["id"],
        }

    @service_operation("PROJECTS")
    def list_collaborators(self, project_id: str, user_id: str) -> Dict[str, Any]:
        """Owner first, then collaborators in roster order; collaborators without a profile are skipped."""
        project = self.load(project_id)
        require_view(project, user_id)

        owner_id = project["ownerId"]
        roster = project["collaborators"]
        profiles = self.store.get_many("users", [owner_id] + [c["userId"] for c in roster])

        owner_profile = profiles.get(owner_id) or {"id": owner_id}
        people = [{**public_profile(owner_profile), "isOwner": True, "role": OWNER_ROLE}]
        for collab in roster:
            profile = profiles.get(collab["userId"])
            if profile is None:
                print(f"[PROJECTS] Collaborator without profile skipped: project_id={project['id']}, user_id={collab['userId']}")
                continue
            people.append({
                **public_profile(profile),
                "isOwner": False,
                "role": collab["role"],
                "addedAt": collab.get("addedAt"),
            })

        return {"collaborators": people, "projectId": project["id"]}
