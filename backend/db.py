# backend/db.py
# Database abstraction layer supporting PostgreSQL (production) and SQLite (dev)
#
# Every collection lives in one `documents` table as JSON text keyed by
# (collection, id). All SQL uses named parameters (:name), which both sqlite3
# and SQLAlchemy's text() accept.

import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path as FsPath
from typing import Any, Dict, Generator, List, Optional, Union
from urllib.parse import urlparse

from sqlalchemy import create_engine, text, pool
from sqlalchemy.engine import Engine, Connection

try:
    from backend.config import DATABASE_URL, DATABASE_PATH, IS_POSTGRES
except ModuleNotFoundError:
    from config import DATABASE_URL, DATABASE_PATH, IS_POSTGRES

# Global engine (SQLAlchemy) or None for SQLite
_engine: Union[Engine, None] = None

# Document fields used in WHERE clauses; keep this list in sync with init_db indexes
INDEXED_FIELDS = ("projectId", "email", "ownerId", "userId", "visibility")

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def init_engine() -> None:
    """Initialize SQLAlchemy engine for PostgreSQL if DATABASE_URL is set."""
    global _engine

    if not IS_POSTGRES:
        # SQLite mode - no engine needed
        _engine = None
        print("[DB] Using SQLite (local dev mode)")
        return

    # Parse and validate URL
    parsed = urlparse(DATABASE_URL)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid DATABASE_URL: {DATABASE_URL[:20]}...")

    _engine = create_engine(
        DATABASE_URL,
        poolclass=pool.QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before use
        echo=False,
    )

    print(f"[DB] Using PostgreSQL ({parsed.hostname})")


def resolve_sqlite_path(database_path: Optional[str] = None) -> str:
    """Absolute path of the SQLite file; relative paths resolve next to this package."""
    path = FsPath(database_path or DATABASE_PATH)
    if not path.is_absolute():
        path = FsPath(__file__).resolve().parent / path
    return str(path)


@contextmanager
def get_db_connection(
    database_path: Optional[str] = None,
) -> Generator[Union[sqlite3.Connection, Connection], None, None]:
    """
    Context manager for database connections.
    Returns sqlite3.Connection for SQLite or sqlalchemy.Connection for Postgres.

    database_path only applies to SQLite (tests point it at a temp file).
    """
    if IS_POSTGRES:
        if _engine is None:
            init_engine()

        with _engine.connect() as conn:
            yield conn
    else:
        conn = sqlite3.connect(resolve_sqlite_path(database_path), check_same_thread=False, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()


def execute_query(
    conn: Union[sqlite3.Connection, Connection],
    query: str,
    params: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Execute a query with named parameters.

    Returns:
        Cursor (SQLite) or Result (PostgreSQL)
    """
    if IS_POSTGRES:
        return conn.execute(text(query), params or {})

    cur = conn.cursor()
    if params:
        return cur.execute(query, params)
    return cur.execute(query)


def fetch_all(result: Any) -> List[Dict[str, Any]]:
    """Materialize a query result as plain dicts (sqlite3.Row has no .get())."""
    if IS_POSTGRES:
        return [dict(row) for row in result.mappings().all()]
    return [dict(row) for row in result.fetchall()]


def commit(conn: Union[sqlite3.Connection, Connection]) -> None:
    """Commit transaction (handles SQLite and Postgres differences)."""
    conn.commit()


def rollback(conn: Union[sqlite3.Connection, Connection]) -> None:
    """Rollback transaction (handles SQLite and Postgres differences)."""
    conn.rollback()


def json_field_sql(field: str) -> str:
    """
    SQL expression extracting a top-level string field from the `data` column.

    Field names are interpolated into SQL, so only plain identifiers are accepted.
    """
    if not _FIELD_RE.match(field):
        raise ValueError(f"Invalid document field name: {field!r}")
    if IS_POSTGRES:
        return f"(data::jsonb ->> '{field}')"
    return f"json_extract(data, '$.{field}')"


def init_db(database_path: Optional[str] = None) -> None:
    """Create the documents table and the per-field lookup indexes (idempotent)."""
    with get_db_connection(database_path) as conn:
        execute_query(
            conn,
            """
            CREATE TABLE IF NOT EXISTS documents (
                collection TEXT NOT NULL,
                id TEXT NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY (collection, id)
            )
            """,
        )
        for field in INDEXED_FIELDS:
            execute_query(
                conn,
                f"CREATE INDEX IF NOT EXISTS idx_documents_{field.lower()} "
                f"ON documents (collection, ({json_field_sql(field)}))",
            )
        commit(conn)

    print("[MIGRATION] Ensured documents table and field indexes")


# Initialize engine on module import if Postgres mode
if IS_POSTGRES and _engine is None:
    init_engine()
