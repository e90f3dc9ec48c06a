"""
backend/store.py

Document store over the `documents` table (see backend/db.py).

Collections: users, projects, tasks, messages, notifications.
Documents are JSON objects keyed by generated ids. Returned documents carry
their id under "id"; the id is never persisted inside the JSON body.

Guarantees:
- get / query / add / set / update / delete are each a single transaction
- WriteBatch commits all of its writes in ONE transaction or none of them
- no optimistic concurrency: the last writer of a document wins
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

try:
    from backend.db import (
        get_db_connection,
        execute_query,
        fetch_all,
        commit,
        rollback,
        json_field_sql,
    )
    from backend.config import IS_DEV
except ModuleNotFoundError:
    from db import (
        get_db_connection,
        execute_query,
        fetch_all,
        commit,
        rollback,
        json_field_sql,
    )
    from config import IS_DEV


COLLECTIONS = ("users", "projects", "tasks", "messages", "notifications")

# (action, collection, doc_id, payload)
WriteOp = Tuple[str, str, str, Optional[Dict[str, Any]]]

_UPSERT_SQL = """
    INSERT INTO documents (collection, id, data)
    VALUES (:collection, :id, :data)
    ON CONFLICT (collection, id) DO UPDATE SET data = excluded.data
"""


def _check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection!r}")


def _dumps(data: Dict[str, Any]) -> str:
    body = {k: v for k, v in data.items() if k != "id"}
    return json.dumps(body, separators=(",", ":"))


def _to_doc(row: Dict[str, Any]) -> Dict[str, Any]:
    doc = json.loads(row["data"])
    doc["id"] = row["id"]
    return doc


def _select_one(conn, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
    rows = fetch_all(execute_query(
        conn,
        "SELECT id, data FROM documents WHERE collection = :collection AND id = :id",
        {"collection": collection, "id": doc_id},
    ))
    return _to_doc(rows[0]) if rows else None


def _apply_write(conn, op: WriteOp) -> None:
    """Apply one write inside the caller's transaction (no commit)."""
    action, collection, doc_id, payload = op

    if action == "set":
        execute_query(conn, _UPSERT_SQL, {"collection": collection, "id": doc_id, "data": _dumps(payload or {})})
    elif action == "update":
        current = _select_one(conn, collection, doc_id)
        if current is None:
            raise KeyError(f"{collection}/{doc_id} does not exist")
        current.update(payload or {})
        execute_query(
            conn,
            "UPDATE documents SET data = :data WHERE collection = :collection AND id = :id",
            {"collection": collection, "id": doc_id, "data": _dumps(current)},
        )
    elif action == "delete":
        execute_query(
            conn,
            "DELETE FROM documents WHERE collection = :collection AND id = :id",
            {"collection": collection, "id": doc_id},
        )
    else:
        raise ValueError(f"Unknown write action: {action!r}")


class WriteBatch:
    """
    Accumulates writes and commits them atomically.

    Usage:
        batch = store.batch()
        batch.delete("tasks", task_id)
        batch.update("users", user_id, {"projects": remaining})
        batch.commit()
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._ops: List[WriteOp] = []
        self._committed = False

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> "WriteBatch":
        _check_collection(collection)
        self._ops.append(("set", collection, doc_id, dict(data)))
        return self

    def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> "WriteBatch":
        _check_collection(collection)
        self._ops.append(("update", collection, doc_id, dict(patch)))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        _check_collection(collection)
        self._ops.append(("delete", collection, doc_id, None))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> int:
        """Apply every queued write in one transaction. Returns the number of writes."""
        if self._committed:
            raise RuntimeError("WriteBatch already committed")

        with get_db_connection(self._store.database_path) as conn:
            try:
                for op in self._ops:
                    _apply_write(conn, op)
                commit(conn)
            except Exception:
                rollback(conn)
                print(f"[STORE] Batch of {len(self._ops)} writes rolled back")
                raise

        self._committed = True
        if IS_DEV:
            print(f"[STORE] Batch committed: writes={len(self._ops)}")
        return len(self._ops)


class DocumentStore:
    """
    Per-collection document access.

    Holds no document state: every call goes to the database, so instances are
    safe to share between concurrent requests.
    """

    def __init__(self, database_path: Optional[str] = None):
        self.database_path = database_path

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        _check_collection(collection)
        if not doc_id:
            return None
        with get_db_connection(self.database_path) as conn:
            return _select_one(conn, collection, doc_id)

    def get_many(self, collection: str, doc_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """Fetch several documents in one query; missing ids are simply absent."""
        _check_collection(collection)
        ids = [doc_id for doc_id in dict.fromkeys(doc_ids) if doc_id]
        if not ids:
            return {}

        params: Dict[str, Any] = {"collection": collection}
        placeholders = []
        for i, doc_id in enumerate(ids):
            params[f"id{i}"] = doc_id
            placeholders.append(f":id{i}")

        with get_db_connection(self.database_path) as conn:
            rows = fetch_all(execute_query(
                conn,
                f"SELECT id, data FROM documents WHERE collection = :collection AND id IN ({', '.join(placeholders)})",
                params,
            ))
        return {row["id"]: _to_doc(row) for row in rows}

    def query(self, collection: str, **filters: str) -> List[Dict[str, Any]]:
        """
        Documents whose top-level string fields equal the given values.

        Example:
            store.query("tasks", projectId=project_id)
        """
        _check_collection(collection)
        params: Dict[str, Any] = {"collection": collection}
        clauses = ["collection = :collection"]
        for i, (field, value) in enumerate(sorted(filters.items())):
            clauses.append(f"{json_field_sql(field)} = :v{i}")
            params[f"v{i}"] = value

        with get_db_connection(self.database_path) as conn:
            rows = fetch_all(execute_query(
                conn,
                f"SELECT id, data FROM documents WHERE {' AND '.join(clauses)}",
                params,
            ))
        return [_to_doc(row) for row in rows]

    # ------------------------------------------------------------------
    # Single-document writes
    # ------------------------------------------------------------------
    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Insert a document under a generated id and return the id."""
        doc_id = self.new_id()
        self.set(collection, doc_id, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or fully replace a document."""
        _check_collection(collection)
        with get_db_connection(self.database_path) as conn:
            _apply_write(conn, ("set", collection, doc_id, data))
            commit(conn)

    def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Shallow-merge patch into an existing document.

        Returns the merged document, or None if the document does not exist.
        """
        _check_collection(collection)
        with get_db_connection(self.database_path) as conn:
            current = _select_one(conn, collection, doc_id)
            if current is None:
                return None
            current.update(patch)
            execute_query(
                conn,
                "UPDATE documents SET data = :data WHERE collection = :collection AND id = :id",
                {"collection": collection, "id": doc_id, "data": _dumps(current)},
            )
            commit(conn)
        return current

    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""
        _check_collection(collection)
        with get_db_connection(self.database_path) as conn:
            result = execute_query(
                conn,
                "DELETE FROM documents WHERE collection = :collection AND id = :id",
                {"collection": collection, "id": doc_id},
            )
            deleted = result.rowcount
            commit(conn)
        return deleted > 0

    def batch(self) -> WriteBatch:
        return WriteBatch(self)
