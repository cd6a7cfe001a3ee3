"""JSON file persistence for user settings."""

import json
from pathlib import Path

from loguru import logger

from nibandh.models.settings import RepoValidation, Settings

# Field name in settings.json -> attribute of Settings.
_JSON_FIELDS = (("repoPath", "repo_path"), ("theme", "theme"), ("editorWidth", "editor_width"))


class JsonSettingsStore:
    """Settings kept in one pretty-printed JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def get(self) -> Settings:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Settings()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            msg = f"Failed to parse settings {self.path}: {e}"
            raise ValueError(msg) from e
        if not isinstance(data, dict):
            msg = f"Failed to parse settings {self.path}: expected an object"
            raise ValueError(msg)
        defaults = Settings()
        return Settings(
            **{
                attr: str(data.get(name, getattr(defaults, attr)))
                for name, attr in _JSON_FIELDS
            }
        )

    def save(self, settings: Settings) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {name: getattr(settings, attr) for name, attr in _JSON_FIELDS}
        self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        logger.debug("Wrote settings to {}", self.path)


def validate_repo_location(path: str) -> RepoValidation:
    """Check that path exists and is a git working tree.

    A missing ``content/`` directory is reported but does not make the
    location invalid; publishing creates it.
    """
    repo = Path(path).expanduser()
    if not path or not repo.exists():
        return RepoValidation(valid=False, message="Path does not exist")
    is_git_repo = (repo / ".git").exists()
    has_content_dir = (repo / "content").is_dir()
    return RepoValidation(
        valid=is_git_repo,
        message="" if is_git_repo else "Not a git repository (no .git directory)",
        exists=True,
        is_git_repo=is_git_repo,
        has_content_dir=has_content_dir,
    )
