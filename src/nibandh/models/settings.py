"""User settings models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Persisted user preferences. Only ``repo_path`` matters to the core."""

    repo_path: str = ""
    theme: str = "dark"
    editor_width: str = "medium"


@dataclass(frozen=True)
class RepoValidation:
    """Result of checking a directory as a publishing target."""

    valid: bool
    message: str
    exists: bool = False
    is_git_repo: bool = False
    has_content_dir: bool = False
