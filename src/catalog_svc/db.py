"""SQLite database connection, schema initialization and transactions."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from .errors import StoreTimeoutError

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = "catalog.db"
DEFAULT_TIMEOUT_SECONDS = 5.0

SCHEMA_SQL = """
-- Scanned warehouse metadata (written only by the refresh passthrough)
CREATE TABLE IF NOT EXISTS catalog_tables (
    full_name TEXT PRIMARY KEY,
    database_name TEXT NOT NULL,
    schema_name TEXT NOT NULL,
    table_name TEXT NOT NULL,
    table_type TEXT,
    row_count INTEGER,
    bytes INTEGER,
    comment TEXT,
    owner TEXT,
    created TEXT,
    last_altered TEXT,
    refreshed_at TEXT
);

CREATE TABLE IF NOT EXISTS catalog_columns (
    id INTEGER PRIMARY KEY,
    table_full_name TEXT NOT NULL,
    column_name TEXT NOT NULL,
    data_type TEXT,
    is_nullable TEXT,
    comment TEXT,
    ordinal_position INTEGER,
    UNIQUE(table_full_name, column_name)
);

-- Moderated content (written only by approved change requests)
CREATE TABLE IF NOT EXISTS table_descriptions (
    table_full_name TEXT PRIMARY KEY,
    user_description TEXT NOT NULL,
    last_updated_by TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS column_descriptions (
    column_full_name TEXT PRIMARY KEY,
    table_full_name TEXT NOT NULL,
    column_name TEXT NOT NULL,
    description TEXT NOT NULL,
    last_updated_by TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS table_tags (
    tag_id TEXT PRIMARY KEY,
    table_full_name TEXT NOT NULL,
    tag_name TEXT NOT NULL,
    tag_value TEXT,
    created_by TEXT,
    created_at TEXT,
    UNIQUE(table_full_name, tag_name)
);

CREATE TABLE IF NOT EXISTS attribute_definitions (
    attribute_name TEXT PRIMARY KEY,
    display_name TEXT NOT NULL,
    description TEXT,
    created_by TEXT,
    created_at TEXT,
    updated_by TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS attribute_enumerations (
    enumeration_id TEXT PRIMARY KEY,
    attribute_name TEXT NOT NULL REFERENCES attribute_definitions(attribute_name),
    value_code TEXT NOT NULL,
    value_description TEXT,
    sort_order INTEGER NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_by TEXT,
    created_at TEXT,
    updated_by TEXT,
    updated_at TEXT,
    UNIQUE(attribute_name, value_code)
);

-- Column -> attribute links (from the snapshot or linked by users)
CREATE TABLE IF NOT EXISTS column_attributes (
    link_id INTEGER PRIMARY KEY,
    table_full_name TEXT NOT NULL,
    column_name TEXT NOT NULL,
    attribute_name TEXT NOT NULL,
    linked_by TEXT,
    linked_at TEXT,
    UNIQUE(table_full_name, column_name, attribute_name)
);

-- View counts per table; kept across metadata reloads
CREATE TABLE IF NOT EXISTS table_popularity (
    table_full_name TEXT PRIMARY KEY,
    view_count INTEGER NOT NULL DEFAULT 0,
    last_viewed TEXT
);

-- Unmoderated user content (append-only)
CREATE TABLE IF NOT EXISTS user_ratings (
    id INTEGER PRIMARY KEY,
    table_full_name TEXT NOT NULL,
    user_name TEXT NOT NULL,
    rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS user_comments (
    comment_id INTEGER PRIMARY KEY,
    table_full_name TEXT NOT NULL,
    user_name TEXT NOT NULL,
    comment_text TEXT NOT NULL,
    created_at TEXT
);

-- Workflows
CREATE TABLE IF NOT EXISTS change_requests (
    request_id TEXT PRIMARY KEY,
    request_type TEXT NOT NULL,
    target_object TEXT NOT NULL,
    requester TEXT NOT NULL,
    justification TEXT NOT NULL,
    proposed_change TEXT NOT NULL,
    current_value TEXT,
    status TEXT NOT NULL,
    assigned_to TEXT,
    decision_comment TEXT,
    decision_date TEXT,
    requested_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS access_requests (
    request_id TEXT PRIMARY KEY,
    table_full_name TEXT NOT NULL,
    requester TEXT NOT NULL,
    justification TEXT NOT NULL,
    access_type TEXT NOT NULL,
    grant_to_name TEXT NOT NULL,
    access_start_date TEXT NOT NULL,
    access_end_date TEXT NOT NULL,
    status TEXT NOT NULL,
    approver TEXT,
    decision_comment TEXT,
    decision_date TEXT,
    requested_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS role_permissions (
    role TEXT NOT NULL,
    permission_type TEXT NOT NULL,
    granted_by TEXT,
    granted_at TEXT,
    PRIMARY KEY (role, permission_type)
);

CREATE INDEX IF NOT EXISTS idx_columns_table ON catalog_columns(table_full_name);
CREATE INDEX IF NOT EXISTS idx_tags_table ON table_tags(table_full_name);
CREATE INDEX IF NOT EXISTS idx_enum_attribute ON attribute_enumerations(attribute_name);
CREATE INDEX IF NOT EXISTS idx_ratings_table ON user_ratings(table_full_name);
CREATE INDEX IF NOT EXISTS idx_comments_table ON user_comments(table_full_name);
CREATE INDEX IF NOT EXISTS idx_cr_status ON change_requests(status);
CREATE INDEX IF NOT EXISTS idx_cr_requester ON change_requests(requester);
CREATE INDEX IF NOT EXISTS idx_ar_status ON access_requests(status);
"""


def utc_now() -> str:
    """Current UTC time as an ISO string (the store's timestamp format)."""
    return datetime.now(timezone.utc).isoformat()


def connect(
    db_path: str | Path = DEFAULT_DB_PATH,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> sqlite3.Connection:
    """Open a connection in autocommit mode.

    Transactions are opened explicitly with ``transaction()``.
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(
    db_path: str | Path = DEFAULT_DB_PATH,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> sqlite3.Connection:
    """Initialize the database and create tables if they don't exist.

    Args:
        db_path: Path to the SQLite database file.
        timeout: Seconds to wait for a lock before giving up.

    Returns:
        A connection to the database.
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = connect(db_path, timeout)
    conn.execute("PRAGMA journal_mode = WAL")
    conn.executescript(SCHEMA_SQL)
    return conn


@contextmanager
def get_db(
    db_path: str | Path = DEFAULT_DB_PATH,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Generator[sqlite3.Connection, None, None]:
    """Get a database connection as a context manager.

    The schema must already exist (see ``init_db``).
    """
    conn = connect(db_path, timeout)
    try:
        yield conn
    finally:
        conn.close()


def is_lock_timeout(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Run a block as one write transaction.

    ``BEGIN IMMEDIATE`` takes the database write lock up front, so two
    transitions on the same row are serialised; the second re-reads the row
    after the first commits. Any exception rolls the whole block back.
    """
    try:
        conn.execute("BEGIN IMMEDIATE")
    except sqlite3.OperationalError as e:
        if is_lock_timeout(e):
            logger.warning(f"Store lock timeout: {e}")
            raise StoreTimeoutError("Store is busy; retry the operation") from e
        raise

    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise

    try:
        conn.execute("COMMIT")
    except sqlite3.OperationalError as e:
        conn.execute("ROLLBACK")
        if is_lock_timeout(e):
            logger.warning(f"Store lock timeout on commit: {e}")
            raise StoreTimeoutError("Store is busy; retry the operation") from e
        raise
