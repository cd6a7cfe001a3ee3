"""Tests for settings persistence and repository validation."""

import json
from pathlib import Path

import pytest

from nibandh.core.settings.store import JsonSettingsStore, validate_repo_location
from nibandh.models.settings import Settings


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    assert JsonSettingsStore(tmp_path / "settings.json").get() == Settings()


def test_save_then_get(tmp_path: Path) -> None:
    store = JsonSettingsStore(tmp_path / "conf" / "settings.json")
    store.save(Settings(repo_path="/srv/blog", theme="light", editor_width="wide"))

    data = json.loads(store.path.read_text(encoding="utf-8"))
    assert data == {"repoPath": "/srv/blog", "theme": "light", "editorWidth": "wide"}
    assert store.get() == Settings(repo_path="/srv/blog", theme="light", editor_width="wide")


def test_partial_file_fills_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text('{"repoPath": "~/blog"}', encoding="utf-8")
    assert JsonSettingsStore(path).get() == Settings(repo_path="~/blog")


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_malformed_file_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "settings.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ValueError, match="Failed to parse settings"):
        JsonSettingsStore(path).get()


def test_validate_missing_path(tmp_path: Path) -> None:
    result = validate_repo_location(str(tmp_path / "nope"))
    assert not result.valid
    assert result.message == "Path does not exist"
    assert not result.exists
    assert not validate_repo_location("").valid


def test_validate_plain_directory(tmp_path: Path) -> None:
    result = validate_repo_location(str(tmp_path))
    assert not result.valid
    assert result.exists
    assert not result.is_git_repo
    assert "Not a git repository" in result.message


def test_validate_git_repo_without_content_dir_is_valid(tmp_path: Path) -> None:
    (tmp_path / ".git").mkdir()
    result = validate_repo_location(str(tmp_path))
    assert result.valid
    assert result.is_git_repo
    assert not result.has_content_dir

    (tmp_path / "content").mkdir()
    assert validate_repo_location(str(tmp_path)).has_content_dir
