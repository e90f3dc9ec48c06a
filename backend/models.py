from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Union
from datetime import date, datetime, timezone
from enum import Enum


def now_iso() -> str:
    """UTC timestamp, lexicographically sortable (microsecond precision)."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


# Enums
class Visibility(str, Enum):
    private = "private"
    public = "public"

class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"

class NotificationType(str, Enum):
    TASK_COMPLETED = "TASK_COMPLETED"
    ADDED_TO_PROJECT = "ADDED_TO_PROJECT"
    NEW_PROJECT = "NEW_PROJECT"
    NEW_TASK = "NEW_TASK"
    NEW_MESSAGE = "NEW_MESSAGE"

OWNER_ROLE = "Project Owner"
DEFAULT_ROLE = "Member"

# Embedded values
class Collaborator(BaseModel):
    model_config = ConfigDict(extra="ignore")

    userId: str
    role: str = DEFAULT_ROLE
    addedAt: Optional[str] = None

class Subtask(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    completed: bool = False
    createdAt: Optional[str] = None

class ProjectStats(BaseModel):
    totalTasks: int = 0
    completedTasks: int = 0
    highPriorityTasks: int = 0
    overdueTasks: int = 0

# Documents
class User(BaseModel):
    id: Optional[str] = None
    email: str
    displayName: str = ""
    createdAt: Optional[str] = None
    projects: List[str] = Field(default_factory=list)

class Project(BaseModel):
    id: Optional[str] = None
    name: str
    description: str = ""
    visibility: Visibility = Visibility.private
    ownerId: str
    collaborators: List[Collaborator] = Field(default_factory=list)
    stats: Optional[ProjectStats] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

class Task(BaseModel):
    id: Optional[str] = None
    projectId: str
    name: str
    description: str = ""
    priority: Priority = Priority.medium
    dueDate: Optional[str] = None  # YYYY-MM-DD
    completed: bool = False
    completedAt: Optional[str] = None
    completedBy: Optional[str] = None
    subtasks: List[Subtask] = Field(default_factory=list)
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    createdBy: str
    projectUpdatedAt: Optional[str] = None  # mirror of the parent project.updatedAt


class Message(BaseModel):
    id: Optional[str] = None
    projectId: str
    text: str
    userId: str
    createdAt: Optional[str] = None

class Notification(BaseModel):
    model_config = ConfigDict(extra="allow")  # type-specific fields ride along

    id: Optional[str] = None
    type: NotificationType
    createdAt: Optional[str] = None
    read: bool = False
    readBy: List[str] = Field(default_factory=list)


# ---------------------------------------------------------
# Collaborator normalization (load boundary)
# ---------------------------------------------------------
RawCollaborator = Union[str, Dict[str, Any]]


def collaborator_id(entry: RawCollaborator) -> Optional[str]:
    """User id of a stored roster entry in either representation (legacy string or object)."""
    if isinstance(entry, str):
        return entry or None
    if isinstance(entry, dict):
        return entry.get("userId") or None
    return None


def normalize_collaborator(entry: RawCollaborator) -> Optional[Collaborator]:
    """Canonical Collaborator for a stored entry; None for unreadable entries."""
    user_id = collaborator_id(entry)
    if not user_id:
        return None
    if isinstance(entry, str):
        return Collaborator(userId=user_id)
    return Collaborator(
        userId=user_id,
        role=entry.get("role") or DEFAULT_ROLE,
        addedAt=entry.get("addedAt"),
    )


def normalize_collaborators(raw: Optional[List[RawCollaborator]], owner_id: Optional[str] = None) -> List[Collaborator]:
    """
    Canonical roster: one Collaborator per user id, owner excluded.

    Legacy projects may carry bare-string ids, the owner seeded as first
    entry, or repeated ids; all of that is resolved here so the rest of the
    backend only sees Collaborator objects.
    """
    roster: List[Collaborator] = []
    seen = set()
    for entry in raw or []:
        collab = normalize_collaborator(entry)
        if collab is None:
            print(f"[MODELS] Skipping unreadable collaborator entry: {entry!r}")
            continue
        if collab.userId == owner_id or collab.userId in seen:
            continue
        seen.add(collab.userId)
        roster.append(collab)
    return roster


def load_project(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copy of a stored project document with its roster normalized to plain dicts."""
    if doc is None:
        return None
    project = dict(doc)
    project["collaborators"] = [
        c.model_dump() for c in normalize_collaborators(doc.get("collaborators"), doc.get("ownerId"))
    ]
    return project
