"""Protocols for the collaborators the draft controller depends on."""

from typing import Protocol, runtime_checkable

from nibandh.models.draft import Draft, DraftSummary
from nibandh.models.publish import CommitResult, PublishRequest, SyncRequest
from nibandh.models.settings import Settings


@runtime_checkable
class StorageProtocol(Protocol):
    """Protocol for draft storage backends."""

    def save(self, draft: Draft) -> Draft:
        """Store draft, assigning an id when it has none, and return the stored form."""
        ...

    def get(self, draft_id: str) -> Draft | None:
        """Return the draft with draft_id, or None."""
        ...

    def get_latest(self) -> Draft | None:
        """Return the most recently updated draft, or None when empty."""
        ...

    def list(self) -> list[DraftSummary]:
        """Return summaries, most recently updated first."""
        ...

    def delete(self, draft_id: str) -> bool:
        """Delete a draft and report whether it existed."""
        ...


@runtime_checkable
class VersionControlProtocol(Protocol):
    """Protocol for the repository that receives synced and published drafts."""

    def sync_to_secondary_branch(self, request: SyncRequest) -> CommitResult:
        """Commit the draft to its backup branch."""
        ...

    def publish_to_primary_branch(self, request: PublishRequest) -> CommitResult:
        """Commit the article to the primary branch."""
        ...


@runtime_checkable
class SettingsProtocol(Protocol):
    """Protocol for user settings persistence."""

    def get(self) -> Settings:
        """Return the current settings, defaults when none are stored."""
        ...

    def save(self, settings: Settings) -> None:
        """Persist settings."""
        ...
