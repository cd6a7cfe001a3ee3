"""Lifecycle controller for the single active draft.

The controller owns the active draft, its document tree, the save state and
the autosave timer. Storage, version control and settings are synchronous
collaborators; every call to them runs in a worker thread so edits keep
flowing while they are in flight.

Save states::

    mutation          -> unsaved (timer restarted)
    timer fires       -> saving -> saved | unsaved
    mutation in save  -> stays unsaved once the save lands
"""

import asyncio
import re
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Any

from loguru import logger

from nibandh.config import DEBOUNCE_DELAY, DEFAULT_SLUG
from nibandh.core.lifecycle.debounce import DebouncedSave, Scheduler
from nibandh.core.markdown.builtin import DEFAULT_REGISTRY
from nibandh.core.markdown.importer import import_markdown
from nibandh.core.markdown.serializer import MarkdownSerializer
from nibandh.core.markdown.transformers import TransformerRegistry
from nibandh.core.timestamps import rfc3339, today, utc_now
from nibandh.core.tree.codec import tree_from_json, tree_to_json
from nibandh.core.tree.document import DocumentTree
from nibandh.core.tree.text import extract_plain_text
from nibandh.models.draft import (
    Draft,
    DraftStatus,
    DraftSummary,
    OperationResult,
    SaveStatus,
)
from nibandh.models.publish import CommitResult, PublishRequest, SyncRequest
from nibandh.protocols import SettingsProtocol, StorageProtocol, VersionControlProtocol

# Draft fields callers may change through update().
EDITABLE_FIELDS = frozenset({"title", "slug", "date", "tags", "description", "cover", "cover_position"})

_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")


def derive_slug(title: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', trim; fallback 'untitled'."""
    return _SLUG_SEPARATORS.sub("-", title.lower()).strip("-") or DEFAULT_SLUG


def default_commit_message(title: str) -> str:
    return f"Add: {title}" if title.strip() else "Add new article"


def missing_publish_fields(draft: Draft, repo_path: str) -> list[str]:
    """Names of the fields that must be filled in before publishing."""
    missing = []
    if not draft.title.strip():
        missing.append("title")
    if not draft.tags:
        missing.append("tags")
    if not draft.description.strip():
        missing.append("description")
    if not repo_path.strip():
        missing.append("repository")
    return missing


def clamp_cover_position(value: float) -> float:
    return min(100.0, max(0.0, float(value)))


class DraftController:
    def __init__(
        self,
        storage: StorageProtocol,
        version_control: VersionControlProtocol,
        settings: SettingsProtocol,
        *,
        registry: TransformerRegistry = DEFAULT_REGISTRY,
        debounce_delay: float = DEBOUNCE_DELAY,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.storage = storage
        self.version_control = version_control
        self.settings = settings
        self.registry = registry
        self._serializer = MarkdownSerializer(registry)
        self._clock = clock

        self.draft: Draft | None = None
        self.tree = DocumentTree.empty()
        self.save_status = SaveStatus.SAVED
        self.last_saved: datetime | None = None
        self.drafts: list[DraftSummary] = []

        # revision counts mutations; generation counts switches of the active draft.
        self._revision = 0
        self._generation = 0
        self._save_lock = asyncio.Lock()
        self._in_flight: str | None = None
        self._autosave: asyncio.Task[bool] | None = None
        self._deleted: set[str] = set()
        self._debounce = DebouncedSave(debounce_delay, self._on_debounce, scheduler)

    @property
    def autosave_pending(self) -> bool:
        return self._debounce.pending

    def markup(self) -> str:
        """Render the active tree as markdown."""
        return self._serializer.serialize(self.tree)

    # -- mutations -----------------------------------------------------------

    def update(self, **fields: Any) -> Draft:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            msg = f"not editable: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        if "tags" in fields:
            fields["tags"] = _unique_tags(fields["tags"])
        if "cover_position" in fields:
            fields["cover_position"] = clamp_cover_position(fields["cover_position"])
        return self._mutate(**fields)

    def set_content(self, tree: DocumentTree) -> Draft:
        self.tree = tree
        return self._mutate(content=tree_to_json(tree), text_content=extract_plain_text(tree))

    def set_markdown(self, text: str) -> Draft:
        return self.set_content(import_markdown(text, self.registry))

    def add_tag(self, tag: str) -> bool:
        draft = self._require_draft()
        tag = tag.strip()
        if not tag or tag in draft.tags:
            return False
        self._mutate(tags=(*draft.tags, tag))
        return True

    def remove_tag(self, tag: str) -> bool:
        draft = self._require_draft()
        if tag not in draft.tags:
            return False
        self._mutate(tags=tuple(t for t in draft.tags if t != tag))
        return True

    def set_cover_position(self, value: float) -> Draft:
        return self._mutate(cover_position=clamp_cover_position(value))

    def _require_draft(self) -> Draft:
        if self.draft is None:
            msg = "no active draft"
            raise RuntimeError(msg)
        return self.draft

    def _stamp(self, **fields: Any) -> Draft:
        draft = self._require_draft()
        self.draft = replace(draft, updated_at=rfc3339(self._clock()), **fields)
        self._revision += 1
        self.save_status = SaveStatus.UNSAVED
        return self.draft

    def _mutate(self, **fields: Any) -> Draft:
        draft = self._stamp(**fields)
        self._debounce.trigger()
        return draft

    def _on_debounce(self) -> None:
        if self.draft is None or self.save_status != SaveStatus.UNSAVED:
            return
        self._autosave = asyncio.get_running_loop().create_task(self.save())

    # -- persistence ---------------------------------------------------------

    async def save(self) -> bool:
        """Persist the active draft. Returns False (and stays unsaved) on failure."""
        self._debounce.cancel()
        async with self._save_lock:
            if self.draft is None:
                return False
            snapshot = self.draft
            if snapshot.id in self._deleted:
                logger.debug("Not saving deleted draft {}", snapshot.id)
                return False
            revision = self._revision
            generation = self._generation
            self.save_status = SaveStatus.SAVING
            try:
                stored = await asyncio.to_thread(self.storage.save, snapshot)
            except Exception:
                logger.exception("Saving draft {} failed", snapshot.id or "(new)")
                if generation == self._generation:
                    self.save_status = SaveStatus.UNSAVED
                return False

            if generation != self._generation:
                logger.debug("Active draft changed while saving {}", stored.id)
                return True
            if revision == self._revision:
                self.draft = stored
                self.save_status = SaveStatus.SAVED
                self.last_saved = self._clock()
            else:
                # Newer edits landed meanwhile: keep them, adopt the stored identity.
                self.draft = replace(
                    self._require_draft(), id=stored.id, created_at=stored.created_at
                )
                self.save_status = SaveStatus.UNSAVED
            logger.debug("Saved draft {}", stored.id)
        await self.refresh_drafts()
        return True

    async def flush(self) -> bool:
        """Wait for an autosave in flight and save whatever is still unsaved."""
        if self._autosave is not None and not self._autosave.done():
            await self._autosave
        if self.draft is not None and self.save_status != SaveStatus.SAVED:
            return await self.save()
        return True

    async def refresh_drafts(self) -> list[DraftSummary]:
        try:
            self.drafts = await asyncio.to_thread(self.storage.list)
        except Exception:
            logger.exception("Listing drafts failed")
        return self.drafts

    # -- active draft selection ----------------------------------------------

    def create_new(self) -> Draft:
        """Replace the active draft with a fresh, not yet persisted one."""
        self._debounce.cancel()
        now = self._clock()
        tree = DocumentTree.empty()
        draft = Draft.new(today(now), content=tree_to_json(tree), now=rfc3339(now))
        self._activate(draft, tree, SaveStatus.UNSAVED)
        logger.debug("Created new draft")
        return draft

    def _activate(self, draft: Draft, tree: DocumentTree, status: SaveStatus) -> None:
        self.draft = draft
        self.tree = tree
        self.save_status = status
        self._generation += 1
        self._revision += 1

    def _tree_for(self, draft: Draft) -> DocumentTree:
        if not draft.content:
            return DocumentTree.empty()
        try:
            return tree_from_json(draft.content)
        except ValueError:
            logger.warning("Draft {} has unreadable content, starting from an empty tree", draft.id)
            return DocumentTree.empty()

    async def load(self, draft_id: str) -> bool:
        """Activate a stored draft. A missing draft gives a new one and False."""
        self._debounce.cancel()
        try:
            draft = await asyncio.to_thread(self.storage.get, draft_id)
        except Exception:
            logger.exception("Loading draft {} failed", draft_id)
            draft = None
        if draft is None:
            logger.info("Draft {} not found, starting a new one", draft_id)
            self.create_new()
            return False
        self._activate(draft, self._tree_for(draft), SaveStatus.SAVED)
        return True

    async def load_latest(self) -> bool:
        self._debounce.cancel()
        try:
            draft = await asyncio.to_thread(self.storage.get_latest)
        except Exception:
            logger.exception("Loading the latest draft failed")
            draft = None
        if draft is None:
            self.create_new()
            return False
        self._activate(draft, self._tree_for(draft), SaveStatus.SAVED)
        return True

    async def delete(self, draft_id: str) -> bool:
        """Delete a stored draft; deleting the active one activates a replacement."""
        was_active = self.draft is not None and self.draft.id == draft_id
        if was_active:
            self._debounce.cancel()
            if self._autosave is not None and not self._autosave.done():
                await self._autosave
        async with self._save_lock:
            try:
                deleted = await asyncio.to_thread(self.storage.delete, draft_id)
            except Exception:
                logger.exception("Deleting draft {} failed", draft_id)
                return False
            if not deleted:
                return False
            # A save queued behind the lock must not bring the draft back.
            self._deleted.add(draft_id)
            if was_active:
                self._generation += 1
        await self.refresh_drafts()
        if was_active:
            remaining = [s for s in self.drafts if s.id != draft_id]
            if remaining:
                await self.load(remaining[0].id)
            else:
                self.create_new()
        return True

    def close(self) -> None:
        """Tear down: the pending autosave timer is cancelled."""
        self._debounce.cancel()

    # -- sync and publish ----------------------------------------------------

    async def _repo_path(self) -> str:
        try:
            settings = await asyncio.to_thread(self.settings.get)
        except Exception:
            logger.exception("Reading settings failed")
            return ""
        return settings.repo_path

    async def sync(self) -> OperationResult:
        """Commit the draft to its backup branch and mark it synced."""
        if self.draft is None:
            return OperationResult(False, "No active draft")
        repo_path = await self._repo_path()
        if not repo_path:
            return OperationResult(
                False, "Please configure a repository path in settings", missing=("repository",)
            )
        if self._in_flight is not None:
            return OperationResult(False, f"A {self._in_flight} is already in progress")

        self._in_flight = "sync"
        try:
            if self.save_status != SaveStatus.SAVED and not await self.save():
                return OperationResult(False, "Could not save the draft before syncing")
            draft = self._require_draft()
            generation = self._generation
            slug = derive_slug(draft.title)
            request = SyncRequest(
                slug=slug,
                title=draft.title,
                date=draft.date,
                tags=draft.tags,
                description=draft.description,
                cover=draft.cover,
                cover_position=draft.cover_position,
                updated_at=draft.updated_at,
                markup=self.markup(),
                repo_path=repo_path,
                draft_id=draft.id,
            )
            result = await self._call_version_control(
                self.version_control.sync_to_secondary_branch, request
            )
            if not result.success:
                logger.warning("Sync of draft {} failed: {}", draft.id, result.message)
                return OperationResult(False, result.message)

            if generation == self._generation:
                current = self._require_draft()
                self._stamp(
                    status=current.status.advance(DraftStatus.SYNCED),
                    synced_at=rfc3339(self._clock()),
                    slug=slug,
                )
                await self.save()
            logger.info("Synced draft {} to {}", draft.id, result.branch or "its branch")
            return OperationResult(True, result.message)
        finally:
            self._in_flight = None

    async def publish(self, commit_message: str | None = None) -> OperationResult:
        """Commit the article to the primary branch and mark it published.

        The published stamp is applied before the commit; if the commit fails
        it is rolled back and the rollback is saved.
        """
        if self.draft is None:
            return OperationResult(False, "No active draft")
        repo_path = await self._repo_path()
        missing = missing_publish_fields(self.draft, repo_path)
        if missing:
            return OperationResult(
                False, f"Please fill in: {', '.join(missing)}", missing=tuple(missing)
            )
        if self._in_flight is not None:
            return OperationResult(False, f"A {self._in_flight} is already in progress")

        self._in_flight = "publish"
        try:
            draft = self._require_draft()
            generation = self._generation
            previous = {
                "status": draft.status,
                "published_at": draft.published_at,
                "slug": draft.slug,
            }
            slug = derive_slug(draft.title)
            draft = self._stamp(
                status=draft.status.advance(DraftStatus.PUBLISHED),
                published_at=rfc3339(self._clock()),
                slug=slug,
            )
            request = PublishRequest(
                slug=slug,
                title=draft.title,
                date=draft.date,
                tags=draft.tags,
                description=draft.description,
                cover=draft.cover,
                cover_position=draft.cover_position,
                markup=self.markup(),
                commit_message=commit_message or default_commit_message(draft.title),
                repo_path=repo_path,
                updated_at=draft.updated_at,
            )
            result = await self._call_version_control(
                self.version_control.publish_to_primary_branch, request
            )
            if generation != self._generation:
                return OperationResult(result.success, result.message)
            if not result.success:
                logger.warning("Publishing draft {} failed: {}", draft.id, result.message)
                self._stamp(**previous)
                await self.save()
                return OperationResult(False, result.message)

            await self.save()
            logger.info("Published draft {} as {}", draft.id, result.file_path or slug)
            return OperationResult(True, result.message)
        finally:
            self._in_flight = None

    async def _call_version_control(
        self, method: Callable[[Any], CommitResult], request: SyncRequest | PublishRequest
    ) -> CommitResult:
        try:
            return await asyncio.to_thread(method, request)
        except Exception as e:
            logger.exception("Version control call failed")
            return CommitResult(success=False, message=str(e))


def _unique_tags(tags: Any) -> tuple[str, ...]:
    result: list[str] = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in result:
            result.append(tag)
    return tuple(result)
