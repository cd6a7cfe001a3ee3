"""Requests and results exchanged with the version-control collaborator."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SyncRequest:
    """Everything needed to back a draft up to its secondary branch."""

    slug: str
    title: str
    date: str
    tags: tuple[str, ...]
    description: str
    cover: str
    cover_position: float
    updated_at: str
    markup: str
    repo_path: str
    draft_id: str


@dataclass(frozen=True)
class PublishRequest:
    """Everything needed to commit an article to the primary branch."""

    slug: str
    title: str
    date: str
    tags: tuple[str, ...]
    description: str
    cover: str
    cover_position: float
    markup: str
    commit_message: str
    repo_path: str
    updated_at: str = ""


@dataclass(frozen=True)
class CommitResult:
    success: bool
    message: str
    file_path: str | None = None
    branch: str | None = None
