"""
backend/modules/messages.py

Project chat. Members post, anyone who can view the project reads.
Clients poll list_messages.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

try:
    from backend.access import require_edit, require_view
    from backend.config import IS_DEV
    from backend.errors import InvalidArgument, NotFound, service_operation
    from backend.models import Message, load_project, now_iso
    from backend.modules.propagation import PropagationEngine
    from backend.scoping import assert_docs_scoped, require_project_id
    from backend.store import DocumentStore
except ModuleNotFoundError:
    from access import require_edit, require_view
    from config import IS_DEV
    from errors import InvalidArgument, NotFound, service_operation
    from models import Message, load_project, now_iso
    from modules.propagation import PropagationEngine
    from scoping import assert_docs_scoped, require_project_id
    from store import DocumentStore


class MessageService:
    def __init__(self, store: DocumentStore, propagation: Optional[PropagationEngine] = None):
        self.store = store
        self.propagation = propagation or PropagationEngine(store)

    def _load_project(self, project_id: str) -> Dict[str, Any]:
        project = load_project(self.store.get("projects", require_project_id(project_id)))
        if project is None:
            raise NotFound("Project not found")
        return project

    @service_operation("MESSAGES")
    def post_message(self, project_id: str, text: str, user_id: str) -> Dict[str, Any]:
        project = self._load_project(project_id)
        require_edit(project, user_id, "post messages in this project")

        text = (text or "").strip()
        if not text:
            raise InvalidArgument("Message text is required")

        data = Message(projectId=project["id"], text=text, userId=user_id, createdAt=now_iso()).model_dump(exclude={"id"})
        message_id = self.store.add("messages", data)
        self.propagation.entity_created("messages", {"id": message_id, **data})

        if IS_DEV:
            print(f"[MESSAGES] Posted message_id={message_id}, project_id={project['id']}")
        return {"id": message_id, **data}

    @service_operation("MESSAGES")
    def list_messages(self, project_id: str, user_id: str) -> Dict[str, Any]:
        project = self._load_project(project_id)
        require_view(project, user_id, "read messages of this project")

        messages = assert_docs_scoped(self.store.query("messages", projectId=project["id"]), project["id"], "list_messages")
        messages.sort(key=lambda m: m.get("createdAt") or "")
        return {"messages": messages, "projectId": project["id"]}
