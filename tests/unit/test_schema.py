"""Tests for database schema."""

import sqlite3

from nibandh.core.database.schema import (
    SCHEMA_VERSION,
    create_schema,
    get_metadata,
    get_schema_version,
    migrate_schema,
    set_metadata,
)

_FIRST_RELEASE_SQL = """\
CREATE TABLE drafts (
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
CREATE TABLE metadata (key TEXT PRIMARY KEY, value TEXT NOT NULL);
INSERT INTO metadata (key, value) VALUES ('schema_version', '1');
INSERT INTO drafts (id, title, text_content, created_at, updated_at)
VALUES ('old', 'Legacy post', 'written before covers moved', '2023-01-01T00:00:00.000Z',
        '2023-01-01T00:00:00.000Z');
"""


def _tables(conn: sqlite3.Connection) -> set[str]:
    return {
        row[0]
        for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    }


def test_create_schema_creates_drafts_table_and_fts() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    tables = _tables(conn)
    assert "drafts" in tables
    assert "drafts_fts" in tables
    assert "metadata" in tables


def test_migrate_schema_on_empty_db_creates_schema_and_sets_version() -> None:
    conn = sqlite3.connect(":memory:")
    assert get_schema_version(conn) is None
    migrate_schema(conn)
    assert get_schema_version(conn) == SCHEMA_VERSION


def test_migrate_schema_is_idempotent() -> None:
    conn = sqlite3.connect(":memory:")
    migrate_schema(conn)
    migrate_schema(conn)
    assert get_schema_version(conn) == SCHEMA_VERSION


def test_migrate_adds_cover_position_and_rebuilds_index() -> None:
    conn = sqlite3.connect(":memory:")
    conn.executescript(_FIRST_RELEASE_SQL)

    migrate_schema(conn)

    assert get_schema_version(conn) == SCHEMA_VERSION
    row = conn.execute("SELECT cover_position FROM drafts WHERE id = 'old'").fetchone()
    assert row[0] == 50
    hits = conn.execute(
        "SELECT d.id FROM drafts_fts JOIN drafts d ON d.rowid = drafts_fts.rowid "
        "WHERE drafts_fts MATCH 'covers'"
    ).fetchall()
    assert hits == [("old",)]


def test_fts_follows_updates_and_deletes() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    conn.execute(
        "INSERT INTO drafts (id, title, created_at, updated_at) VALUES ('a', 'apples', 'x', 'x')"
    )

    def matches(term: str) -> int:
        return conn.execute(
            "SELECT COUNT(*) FROM drafts_fts WHERE drafts_fts MATCH ?", (term,)
        ).fetchone()[0]

    assert matches("apples") == 1
    conn.execute("UPDATE drafts SET title = 'pears' WHERE id = 'a'")
    assert matches("apples") == 0
    assert matches("pears") == 1
    conn.execute("DELETE FROM drafts WHERE id = 'a'")
    assert matches("pears") == 0


def test_metadata_round_trip() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    assert get_metadata(conn, "missing") is None
    set_metadata(conn, "last_opened", "abc")
    set_metadata(conn, "last_opened", "def")
    assert get_metadata(conn, "last_opened") == "def"
