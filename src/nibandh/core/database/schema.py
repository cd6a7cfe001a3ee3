"""SQLite schema creation and migration for the draft store."""

import sqlite3

from loguru import logger

SCHEMA_VERSION = 2

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS drafts (
    id TEXT PRIMARY KEY,
    slug TEXT NOT NULL DEFAULT '',
    title TEXT NOT NULL DEFAULT '',
    date TEXT NOT NULL DEFAULT '',
    tags TEXT NOT NULL DEFAULT '[]',
    description TEXT NOT NULL DEFAULT '',
    cover TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL DEFAULT '',
    text_content TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    synced_at TEXT,
    published_at TEXT,
    status TEXT NOT NULL DEFAULT 'draft'
);

CREATE INDEX IF NOT EXISTS idx_drafts_updated ON drafts(updated_at DESC);

CREATE VIRTUAL TABLE IF NOT EXISTS drafts_fts USING fts5(
    title, description, text_content,
    content='drafts',
    content_rowid='rowid',
    tokenize='porter unicode61'
);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_FTS_TRIGGERS_SQL = """\
CREATE TRIGGER IF NOT EXISTS drafts_ai AFTER INSERT ON drafts BEGIN
    INSERT INTO drafts_fts(rowid, title, description, text_content)
    VALUES (new.rowid, new.title, new.description, new.text_content);
END;

CREATE TRIGGER IF NOT EXISTS drafts_ad AFTER DELETE ON drafts BEGIN
    INSERT INTO drafts_fts(drafts_fts, rowid, title, description, text_content)
    VALUES ('delete', old.rowid, old.title, old.description, old.text_content);
END;

CREATE TRIGGER IF NOT EXISTS drafts_au AFTER UPDATE ON drafts BEGIN
    INSERT INTO drafts_fts(drafts_fts, rowid, title, description, text_content)
    VALUES ('delete', old.rowid, old.title, old.description, old.text_content);
    INSERT INTO drafts_fts(rowid, title, description, text_content)
    VALUES (new.rowid, new.title, new.description, new.text_content);
END;
"""

# Columns added after the first release, with their definitions.
_ADDED_COLUMNS = (("cover_position", "REAL DEFAULT 50"),)


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}


def _add_missing_columns(conn: sqlite3.Connection) -> None:
    existing = _columns(conn, "drafts")
    for name, definition in _ADDED_COLUMNS:
        if name not in existing:
            logger.debug("Adding column drafts.{}", name)
            conn.execute(f"ALTER TABLE drafts ADD COLUMN {name} {definition}")


def set_metadata(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
        (key, value),
    )


def get_metadata(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables, indexes, and triggers."""
    conn.executescript(_SCHEMA_SQL)
    conn.executescript(_FTS_TRIGGERS_SQL)
    _add_missing_columns(conn)
    set_metadata(conn, "schema_version", str(SCHEMA_VERSION))
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Return the current schema version, or None if metadata table doesn't exist."""
    try:
        value = get_metadata(conn, "schema_version")
    except sqlite3.OperationalError:
        return None
    return int(value) if value else None


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Create or migrate the database schema to the latest version."""
    version = get_schema_version(conn)
    if version is None:
        create_schema(conn)
        return
    if version < SCHEMA_VERSION:
        logger.info("Migrating draft database from schema {} to {}", version, SCHEMA_VERSION)
        create_schema(conn)
        conn.execute("INSERT INTO drafts_fts(drafts_fts) VALUES ('rebuild')")
        conn.commit()
