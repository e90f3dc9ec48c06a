"""
backend/access.py

Project access control: single source of truth for who may read or write a
project and everything that inherits its permissions (tasks, subtasks,
messages, collaborator roster).

Relationship hierarchy: owner > collaborator > public viewer > stranger

- owner:         view + edit + owner-only actions (delete, roster changes)
- collaborator:  view + edit, role label taken from the roster entry
- public viewer: view only, and only when visibility == "public"
- stranger:      nothing

evaluate() is pure Python logic - no FastAPI imports, no database access,
never mutates its input. Callers load the project first and decide
"not found" themselves; evaluate(None, ...) is simply fully unauthorized.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

try:
    from backend.errors import PermissionDenied
    from backend.models import OWNER_ROLE, Visibility, normalize_collaborator, collaborator_id
except ModuleNotFoundError:
    from errors import PermissionDenied
    from models import OWNER_ROLE, Visibility, normalize_collaborator, collaborator_id


@dataclass(frozen=True)
class AccessResult:
    """Outcome of evaluating one user against one project."""
    is_owner: bool = False
    is_collaborator: bool = False
    role: Optional[str] = None
    can_view: bool = False
    can_edit: bool = False

    def as_flags(self) -> Dict[str, Any]:
        """camelCase flags as returned to API clients."""
        return {
            "isOwner": self.is_owner,
            "isCollaborator": self.is_collaborator,
            "role": self.role,
            "canView": self.can_view,
            "canEdit": self.can_edit,
        }


UNAUTHORIZED = AccessResult()


# ============================================================================
# Evaluation
# ============================================================================

def find_collaborator(project: Optional[Dict[str, Any]], user_id: Optional[str]) -> Optional[Any]:
    """
    Raw roster entry for user_id, matching both stored representations.

    Returns the entry exactly as stored (string or dict), or None.
    """
    if not project or not user_id:
        return None
    for entry in project.get("collaborators") or []:
        if collaborator_id(entry) == user_id:
            return entry
    return None


def evaluate(project: Optional[Dict[str, Any]], user_id: Optional[str]) -> AccessResult:
    """
    Compute the access a user has on a project.

    Args:
        project: Project document (raw or normalized roster) or None
        user_id: Verified user id from the auth context

    Returns:
        AccessResult; UNAUTHORIZED for a missing project or anonymous user.
    """
    if not project or not user_id:
        return UNAUTHORIZED

    is_owner = project.get("ownerId") == user_id
    entry = None if is_owner else find_collaborator(project, user_id)
    is_collaborator = entry is not None
    is_public = project.get("visibility") == Visibility.public.value

    if is_owner:
        role = OWNER_ROLE
    elif is_collaborator:
        role = normalize_collaborator(entry).role
    else:
        role = None

    return AccessResult(
        is_owner=is_owner,
        is_collaborator=is_collaborator,
        role=role,
        can_view=is_owner or is_collaborator or is_public,
        can_edit=is_owner or is_collaborator,
    )


# ============================================================================
# Enforcement helpers
# ============================================================================

def require_view(project: Dict[str, Any], user_id: str, action: str = "view this project") -> AccessResult:
    """Raise PermissionDenied unless the user can view the project."""
    access = evaluate(project, user_id)
    if not access.can_view:
        print(f"[ACCESS] View denied: project_id={project.get('id')}, user_id={user_id}")
        raise PermissionDenied(f"You do not have permission to {action}")
    return access


def require_edit(project: Dict[str, Any], user_id: str, action: str = "modify this project") -> AccessResult:
    """Raise PermissionDenied unless the user is the owner or a collaborator."""
    access = evaluate(project, user_id)
    if not access.can_edit:
        print(f"[ACCESS] Edit denied: project_id={project.get('id')}, user_id={user_id}")
        raise PermissionDenied(f"You do not have permission to {action}")
    return access


def require_owner(project: Dict[str, Any], user_id: str, action: str = "perform this action") -> AccessResult:
    """Raise PermissionDenied unless the user owns the project."""
    access = evaluate(project, user_id)
    if not access.is_owner:
        print(f"[ACCESS] Owner-only action denied: project_id={project.get('id')}, user_id={user_id}")
        raise PermissionDenied(f"Only the project owner can {action}")
    return access
