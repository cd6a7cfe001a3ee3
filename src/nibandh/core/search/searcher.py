"""FTS5 search over stored drafts."""

import re
import sqlite3

from loguru import logger

from nibandh.core.storage.repository import decode_status
from nibandh.models.draft import DraftSearchResult, DraftSummary


_OPERATORS = ("AND", "OR", "NOT")


def _sanitize_fts_token(token: str) -> str:
    """Remove FTS5 special characters (whitelist approach)."""
    return re.sub(r"[^\w]", "", token, flags=re.UNICODE)


def _prepare_fts_query(query: str) -> str:
    """Convert user query to FTS5 query with prefix matching.

    - 3+ char words get * suffix for prefix matching
    - Quoted phrases are preserved as-is
    - FTS5 operators AND, OR, NOT are preserved between terms; a leading,
      trailing or repeated operator is dropped
    """
    tokens: list[str] = []
    for match in re.finditer(r'"[^"]*"?|[^\s"]+', query):
        word = match.group(0)
        if word.startswith('"'):
            phrase = word.strip('"')
            if phrase.strip():
                tokens.append(f'"{phrase}"')
            continue
        if word.upper() in _OPERATORS:
            if tokens and tokens[-1] not in _OPERATORS:
                tokens.append(word.upper())
            continue
        sanitized = _sanitize_fts_token(word)
        if not sanitized:
            continue
        tokens.append(f"{sanitized}*" if len(sanitized) >= 3 else sanitized)
    # A dangling operator is a syntax error in FTS5.
    while tokens and tokens[-1] in _OPERATORS:
        tokens.pop()
    return " ".join(tokens)


def search_drafts(
    conn: sqlite3.Connection,
    *,
    query: str = "",
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[DraftSearchResult], int]:
    """Search drafts by title, description and body text.

    Args:
        conn: Database connection.
        query: Search query text.
        limit: Max results to return.
        offset: Pagination offset.

    Returns:
        Tuple of (results, total_count).
    """
    fts_query = _prepare_fts_query(query)
    if not fts_query:
        return [], 0

    try:
        total = conn.execute(
            "SELECT COUNT(*) FROM drafts_fts WHERE drafts_fts MATCH ?", (fts_query,)
        ).fetchone()[0]

        rows = conn.execute(
            """
            SELECT d.id, d.title, d.status, d.updated_at,
                   snippet(drafts_fts, 2, '**', '**', '...', 32) AS snippet,
                   bm25(drafts_fts) AS score
            FROM drafts_fts
            JOIN drafts d ON d.rowid = drafts_fts.rowid
            WHERE drafts_fts MATCH ?
            ORDER BY rank
            LIMIT ? OFFSET ?
            """,
            (fts_query, limit, offset),
        ).fetchall()
    except sqlite3.OperationalError as exc:
        logger.warning("Search query {!r} was rejected: {}", fts_query, exc)
        return [], 0
    results = [
        DraftSearchResult(
            summary=DraftSummary(
                id=row[0], title=row[1], status=decode_status(row[2]), updated_at=row[3]
            ),
            snippet=row[4],
            score=row[5],
        )
        for row in rows
    ]
    return results, total
