"""
backend/schemas.py

Pydantic request schemas for the HTTP layer.

Schemas only shape and trim input; domain validation (blank names, unknown
priorities, bad dates) stays in the services so every transport reports the
same InvalidArgument errors. Unknown fields are ignored.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _trim(v):
    if isinstance(v, str):
        return v.strip()
    return v


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ========================================================================
# USERS
# ========================================================================

class ProfileEnsureRequest(RequestModel):
    """Optional display name for the first-sign-in profile; email comes from the token."""
    displayName: Optional[str] = Field(None, max_length=200)

    @field_validator("displayName", mode="before")
    @classmethod
    def trim_display_name(cls, v):
        return _trim(v)


class DisplayNameUpdateRequest(RequestModel):
    displayName: str = Field("", max_length=200)

    @field_validator("displayName", mode="before")
    @classmethod
    def trim_display_name(cls, v):
        return _trim(v)


# ========================================================================
# PROJECTS
# ========================================================================

class ProjectCreateRequest(RequestModel):
    name: str = Field("", max_length=200, description="Project name (required)")
    description: Optional[str] = Field(None, max_length=5000)
    visibility: Optional[str] = Field(None, description="private (default) or public")

    @field_validator("name", "description", "visibility", mode="before")
    @classmethod
    def trim_strings(cls, v):
        return _trim(v)


class ProjectUpdateRequest(RequestModel):
    """Partial update; only fields present in the body are applied."""
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    visibility: Optional[str] = None

    @field_validator("name", "description", "visibility", mode="before")
    @classmethod
    def trim_strings(cls, v):
        return _trim(v)

    def patch(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CollaboratorAddRequest(RequestModel):
    email: str = Field("", max_length=320)
    role: Optional[str] = Field(None, max_length=100, description="Role label (default: Member)")

    @field_validator("email", "role", mode="before")
    @classmethod
    def trim_strings(cls, v):
        return _trim(v)


# ========================================================================
# TASKS
# ========================================================================

class TaskCreateRequest(RequestModel):
    name: str = Field("", max_length=500)
    description: Optional[str] = Field(None, max_length=10000)
    priority: Optional[str] = Field(None, description="low | medium | high (default: medium)")
    dueDate: Optional[str] = Field(None, description="ISO date or datetime")

    @field_validator("name", "description", "priority", "dueDate", mode="before")
    @classmethod
    def trim_strings(cls, v):
        return _trim(v)


class TaskUpdateRequest(RequestModel):
    """Partial update. projectId, when sent, must match the task's project."""
    projectId: Optional[str] = None
    name: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = Field(None, max_length=10000)
    priority: Optional[str] = None
    dueDate: Optional[str] = None
    completed: Optional[bool] = None
    subtasks: Optional[List[Dict[str, Any]]] = None

    def updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"projectId"})


class SubtaskCreateRequest(RequestModel):
    name: str = Field("", max_length=500)

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _trim(v)


# ========================================================================
# MESSAGES
# ========================================================================

class MessageCreateRequest(RequestModel):
    text: str = Field("", max_length=5000)
