"""Configuration constants for nibandh."""

import os
from pathlib import Path

# Directory with the drafts database and settings. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/nibandh").expanduser(),
    Path("~/.config/nibandh").expanduser(),
    Path("~/.nibandh").expanduser(),
]

# Overrides DATA_DIRECTORIES when set.
DATA_DIR_ENV = "NIBANDH_DATA_DIR"

DB_FILENAME = "drafts.db"
SETTINGS_FILENAME = "settings.json"
LOG_FILENAME = "nibandh.log"

# Seconds of inactivity before an edited draft is saved.
DEBOUNCE_DELAY: float = 2.0

# Slug used when a title has no usable characters.
DEFAULT_SLUG = "untitled"

# Vertical focal point of the cover image, percent.
DEFAULT_COVER_POSITION: float = 50.0

# Repository layout.
PRIMARY_BRANCH = "main"
SECONDARY_BRANCH_PREFIX = "drafts/"
REMOTE_NAME = "origin"
ARTICLES_DIR = "content/articles"
ARTICLE_IMAGES_DIR = "content/images"
ARTICLE_IMAGES_URL = "/images"
DRAFTS_DIR = "drafts"
DRAFT_IMAGES_DIR = "drafts/images"
DRAFT_IMAGES_URL = "/drafts/images"

# Seconds to wait for a remote image while publishing.
IMAGE_DOWNLOAD_TIMEOUT: float = 20.0


def resolve_data_directory() -> Path:
    """Return the data directory: env override, first existing candidate, or the default."""
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
