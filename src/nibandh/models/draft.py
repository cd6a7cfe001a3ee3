"""Domain models for drafts and their lifecycle."""

from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from nibandh.config import DEFAULT_COVER_POSITION


class DraftStatus(StrEnum):
    """Workflow marker of a draft. Only ever moves forward."""

    DRAFT = "draft"
    SYNCED = "synced"
    PUBLISHED = "published"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def advance(self, target: "DraftStatus") -> "DraftStatus":
        """Return target if it is further along than self, else self."""
        return target if target.rank > self.rank else self


_STATUS_ORDER = (DraftStatus.DRAFT, DraftStatus.SYNCED, DraftStatus.PUBLISHED)


class SaveStatus(StrEnum):
    """Persistence state of the active draft."""

    SAVED = "saved"
    SAVING = "saving"
    UNSAVED = "unsaved"


@dataclass(frozen=True)
class Draft:
    """One persisted unit of authorship.

    ``id`` is empty until the draft is first stored. ``content`` holds the
    JSON form of the document tree, ``text_content`` its plain text.
    Timestamps are RFC 3339 strings, ``date`` an ISO calendar date.
    """

    id: str
    slug: str
    title: str
    date: str
    tags: tuple[str, ...]
    description: str
    cover: str
    cover_position: float
    content: str
    text_content: str
    created_at: str
    updated_at: str
    synced_at: str | None = None
    published_at: str | None = None
    status: DraftStatus = DraftStatus.DRAFT

    @classmethod
    def new(cls, today: date, *, content: str = "", now: str = "") -> "Draft":
        return cls(
            id="",
            slug="",
            title="",
            date=today.isoformat(),
            tags=(),
            description="",
            cover="",
            cover_position=DEFAULT_COVER_POSITION,
            content=content,
            text_content="",
            created_at=now,
            updated_at=now,
        )

    @property
    def is_persisted(self) -> bool:
        return bool(self.id)

    def summary(self) -> "DraftSummary":
        return DraftSummary(
            id=self.id, title=self.title, status=self.status, updated_at=self.updated_at
        )


@dataclass(frozen=True)
class DraftSummary:
    """Read-only listing projection of a draft."""

    id: str
    title: str
    status: DraftStatus
    updated_at: str


@dataclass(frozen=True)
class DraftSearchResult:
    """A full-text search hit."""

    summary: DraftSummary
    snippet: str
    score: float = 0.0


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a lifecycle operation, shown to the user as-is."""

    success: bool
    message: str
    missing: tuple[str, ...] = ()
