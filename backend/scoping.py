"""
backend/scoping.py

Project scoping guardrails (defense in depth).

Queries that feed the cascade delete and the statistics recompute must only
return documents of one project. These helpers check that before the results
are acted on.

- In DEV: emit warnings and drop the foreign documents
- In STAGING/PROD: fail fast with Internal
"""

from __future__ import annotations

from typing import Any, Dict, List

try:
    from backend.config import IS_DEV
    from backend.errors import Internal, InvalidArgument
except ModuleNotFoundError:
    from config import IS_DEV
    from errors import Internal, InvalidArgument


def require_project_id(project_id: Any) -> str:
    """
    Guardrail: project-scoped operations need a non-empty string id.

    Raises:
        InvalidArgument: If project_id is missing or blank
    """
    if not isinstance(project_id, str) or not project_id.strip():
        print(f"[SCOPE] Missing or invalid project_id: {project_id!r}")
        raise InvalidArgument("Project ID is required")
    return project_id.strip()


def assert_docs_scoped(
    docs: List[Dict[str, Any]],
    project_id: str,
    label: str = "",
) -> List[Dict[str, Any]]:
    """
    Guardrail: every document must carry projectId == project_id.

    Args:
        docs: Documents returned by a project-scoped query
        project_id: Expected project id
        label: Identifier for logging (e.g. operation name)

    Returns:
        The documents that belong to the project

    Raises:
        Internal: On mismatch in non-dev environments
    """
    if not docs:
        return []

    scoped = [doc for doc in docs if doc.get("projectId") == project_id]
    if len(scoped) == len(docs):
        return docs

    mismatches = [
        {"id": doc.get("id"), "found": doc.get("projectId")}
        for doc in docs
        if doc.get("projectId") != project_id
    ]
    error_msg = f"[SCOPE] Project scope violation{f' in {label}' if label else ''}"
    detail_msg = f"Found {len(mismatches)} document(s) outside project_id={project_id}"

    if IS_DEV:
        print(f"{error_msg}: {detail_msg}")
        print(f"[SCOPE][DEV] First mismatches: {mismatches[:3]}")
        return scoped

    print(f"{error_msg}: {detail_msg} (PRODUCTION - failing fast)")
    raise Internal("Project scope violation detected - this is a server error")
