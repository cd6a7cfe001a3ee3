"""SQLite-backed draft storage."""

import json
import sqlite3
import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from loguru import logger

from nibandh.config import DEFAULT_COVER_POSITION
from nibandh.core.database.schema import migrate_schema
from nibandh.core.timestamps import rfc3339, utc_now
from nibandh.models.draft import Draft, DraftStatus, DraftSummary

_DRAFT_COLUMNS = (
    "id, slug, title, date, tags, description, cover, cover_position, content, "
    "text_content, created_at, updated_at, synced_at, published_at, status"
)


def open_database(db_path: Path | str) -> sqlite3.Connection:
    """Open (creating if needed) the draft database and bring its schema up to date."""
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    # Controller calls arrive from worker threads; access is serialized by the storage lock.
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    migrate_schema(conn)
    return conn


def _decode_tags(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    try:
        tags = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed tags column: {!r}", raw)
        return ()
    return tuple(str(tag) for tag in tags) if isinstance(tags, list) else ()


def decode_status(raw: str | None) -> DraftStatus:
    try:
        return DraftStatus(raw or DraftStatus.DRAFT)
    except ValueError:
        logger.warning("Unknown draft status {!r}, treating as draft", raw)
        return DraftStatus.DRAFT


def row_to_draft(row: sqlite3.Row | tuple) -> Draft:
    return Draft(
        id=row[0],
        slug=row[1],
        title=row[2],
        date=row[3],
        tags=_decode_tags(row[4]),
        description=row[5],
        cover=row[6],
        cover_position=row[7] if row[7] is not None else DEFAULT_COVER_POSITION,
        content=row[8],
        text_content=row[9],
        created_at=row[10],
        updated_at=row[11],
        synced_at=row[12],
        published_at=row[13],
        status=decode_status(row[14]),
    )


class SqliteDraftStorage:
    """Draft storage over one SQLite connection.

    ``save`` assigns an id and ``created_at`` to drafts that have none and
    always stamps ``updated_at``.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.conn = conn
        self._clock = clock
        self._lock = threading.Lock()

    @classmethod
    def open(
        cls, db_path: Path | str, *, clock: Callable[[], datetime] = utc_now
    ) -> "SqliteDraftStorage":
        return cls(open_database(db_path), clock=clock)

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def save(self, draft: Draft) -> Draft:
        now = rfc3339(self._clock())
        if not draft.id:
            draft = replace(draft, id=str(uuid.uuid4()), created_at=now)
        draft = replace(draft, updated_at=now, created_at=draft.created_at or now)
        with self._lock:
            self.conn.execute(
                f"""INSERT INTO drafts ({_DRAFT_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        slug = excluded.slug,
                        title = excluded.title,
                        date = excluded.date,
                        tags = excluded.tags,
                        description = excluded.description,
                        cover = excluded.cover,
                        cover_position = excluded.cover_position,
                        content = excluded.content,
                        text_content = excluded.text_content,
                        updated_at = excluded.updated_at,
                        synced_at = excluded.synced_at,
                        published_at = excluded.published_at,
                        status = excluded.status""",
                (
                    draft.id, draft.slug, draft.title, draft.date,
                    json.dumps(list(draft.tags), ensure_ascii=False),
                    draft.description, draft.cover, draft.cover_position,
                    draft.content, draft.text_content, draft.created_at,
                    draft.updated_at, draft.synced_at, draft.published_at,
                    draft.status.value,
                ),
            )
            self.conn.commit()
        logger.debug("Saved draft {}", draft.id)
        return draft

    def get(self, draft_id: str) -> Draft | None:
        with self._lock:
            row = self.conn.execute(
                f"SELECT {_DRAFT_COLUMNS} FROM drafts WHERE id = ?", (draft_id,)
            ).fetchone()
        return row_to_draft(row) if row else None

    def get_latest(self) -> Draft | None:
        with self._lock:
            row = self.conn.execute(
                f"SELECT {_DRAFT_COLUMNS} FROM drafts ORDER BY updated_at DESC, rowid DESC LIMIT 1"
            ).fetchone()
        return row_to_draft(row) if row else None

    def list(self) -> list[DraftSummary]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT id, title, status, updated_at FROM drafts "
                "ORDER BY updated_at DESC, rowid DESC"
            ).fetchall()
        return [
            DraftSummary(id=r[0], title=r[1], status=decode_status(r[2]), updated_at=r[3])
            for r in rows
        ]

    def delete(self, draft_id: str) -> bool:
        with self._lock:
            cursor = self.conn.execute("DELETE FROM drafts WHERE id = ?", (draft_id,))
            self.conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.debug("Deleted draft {}", draft_id)
        return deleted
