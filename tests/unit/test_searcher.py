"""Tests for the FTS5 search engine."""

from dataclasses import replace

import pytest

from nibandh.core.search.searcher import _prepare_fts_query, search_drafts
from nibandh.core.storage.repository import SqliteDraftStorage
from nibandh.models.draft import DraftStatus


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("python", "python*"),
        ("go is fun", "go is fun*"),
        ('"exact phrase" more', '"exact phrase" more*'),
        ("cats or dogs", "cats* OR dogs*"),
        ("rust NOT", "rust*"),
        ("AND rust", "rust*"),
        ("NOT python", "python*"),
        ("a AND OR b", "a AND b"),
        ("rust OR NOT go", "rust* OR go"),
        ("c++ (draft)", "c draft*"),
        ('""', ""),
        ("  ", ""),
    ],
)
def test_prepare_fts_query(query: str, expected: str) -> None:
    assert _prepare_fts_query(query) == expected


def test_search_finds_matching_drafts(populated_storage: SqliteDraftStorage) -> None:
    results, total = search_drafts(populated_storage.conn, query="python")
    assert total == 2
    titles = {r.summary.title for r in results}
    assert titles == {"Python packaging notes", "Rust for Python developers"}
    packaging = next(r for r in results if r.summary.title == "Python packaging notes")
    assert packaging.summary.status == DraftStatus.PUBLISHED
    assert "**" in packaging.snippet


def test_search_matches_description_and_prefix(populated_storage: SqliteDraftStorage) -> None:
    results, total = search_drafts(populated_storage.conn, query="explain")
    assert total == 1
    assert results[0].summary.title == "Rust for Python developers"


def test_search_words_are_anded(populated_storage: SqliteDraftStorage) -> None:
    _, total = search_drafts(populated_storage.conn, query="python borrow")
    assert total == 1


def test_search_empty_query_returns_nothing(populated_storage: SqliteDraftStorage) -> None:
    assert search_drafts(populated_storage.conn, query="") == ([], 0)
    assert search_drafts(populated_storage.conn, query="OR") == ([], 0)


def test_search_with_operator_words_does_not_raise(populated_storage: SqliteDraftStorage) -> None:
    _, total = search_drafts(populated_storage.conn, query="NOT python")
    assert total == 2
    _, total = search_drafts(populated_storage.conn, query="python AND OR NOT")
    assert total == 2


def test_search_rejected_by_sqlite_returns_nothing(
    populated_storage: SqliteDraftStorage,
) -> None:
    populated_storage.conn.execute("DROP TABLE drafts_fts")
    assert search_drafts(populated_storage.conn, query="python") == ([], 0)


def test_search_pagination(populated_storage: SqliteDraftStorage) -> None:
    page1, total = search_drafts(populated_storage.conn, query="python", limit=1, offset=0)
    page2, _ = search_drafts(populated_storage.conn, query="python", limit=1, offset=1)
    assert total == 2
    assert len(page1) == 1
    assert len(page2) == 1
    assert page1[0].summary.id != page2[0].summary.id


def test_search_sees_saved_changes(populated_storage: SqliteDraftStorage) -> None:
    summary = next(s for s in populated_storage.list() if s.title == "Baking sourdough")
    draft = populated_storage.get(summary.id)
    assert draft is not None
    populated_storage.save(replace(draft, title="Baking rye bread"))

    assert search_drafts(populated_storage.conn, query="sourdough") == ([], 0)
    results, _ = search_drafts(populated_storage.conn, query="rye")
    assert [r.summary.id for r in results] == [summary.id]

    populated_storage.delete(summary.id)
    assert search_drafts(populated_storage.conn, query="rye") == ([], 0)
