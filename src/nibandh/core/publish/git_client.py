"""Version control collaborator that drives the ``git`` command line.

Both operations follow the same flow: stash local changes, switch to the
target branch, write the article, add, commit, push, then switch back and
restore the stash. A failure anywhere restores the original branch and
stash and is reported as an unsuccessful ``CommitResult``.
"""

import shlex
import subprocess
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import requests
from loguru import logger

from nibandh.config import (
    ARTICLE_IMAGES_DIR,
    ARTICLE_IMAGES_URL,
    ARTICLES_DIR,
    DRAFT_IMAGES_DIR,
    DRAFT_IMAGES_URL,
    DRAFTS_DIR,
    PRIMARY_BRANCH,
    REMOTE_NAME,
    SECONDARY_BRANCH_PREFIX,
)
from nibandh.core.publish.frontmatter import FrontMatter, render_document
from nibandh.core.publish.images import ImageLocalizer
from nibandh.models.publish import CommitResult, PublishRequest, SyncRequest

STASH_MESSAGE = "nibandh auto-stash"


class GitCommandError(RuntimeError):
    """A git command exited with a non-zero status."""

    def __init__(self, cmd: list[str], output: str) -> None:
        self.cmd = cmd
        self.output = output
        super().__init__(f"{' '.join(cmd[:2])} failed: {output}")


class GitRepo:
    """Thin wrapper running git commands in one working tree."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        cmd = ["git", *args]
        logger.debug("Running: {}", " ".join(map(shlex.quote, cmd)))
        proc = subprocess.run(cmd, cwd=self.path, capture_output=True, text=True, check=False)
        if check and proc.returncode != 0:
            raise GitCommandError(cmd, (proc.stderr or proc.stdout).strip())
        return proc

    def is_dirty(self) -> bool:
        return bool(self.run("status", "--porcelain").stdout.strip())

    def current_branch(self) -> str:
        return self.run("rev-parse", "--abbrev-ref", "HEAD").stdout.strip()

    def branch_exists(self, branch: str) -> bool:
        proc = self.run("show-ref", "--verify", "--quiet", f"refs/heads/{branch}", check=False)
        return proc.returncode == 0

    def commit(self, message: str) -> bool:
        """Commit staged changes. Returns False when there was nothing to commit."""
        proc = self.run("commit", "-m", message, check=False)
        if proc.returncode == 0:
            logger.info("Made a git commit: {}", message)
            return True
        output = f"{proc.stdout}\n{proc.stderr}"
        if "nothing to commit" in output or "no changes added to commit" in output:
            logger.debug("git up to date, not committing")
            return False
        raise GitCommandError(["git", "commit"], proc.stderr.strip() or proc.stdout.strip())


class GitVersionControl:
    """Syncs drafts to ``drafts/<slug>`` branches and publishes to the primary branch."""

    def __init__(
        self,
        *,
        primary_branch: str = PRIMARY_BRANCH,
        remote: str = REMOTE_NAME,
        push: bool = True,
        session: requests.Session | None = None,
    ) -> None:
        self.primary_branch = primary_branch
        self.remote = remote
        self.push = push
        self.sess = session or requests.Session()

    def _open(self, repo_path: str) -> GitRepo:
        path = Path(repo_path).expanduser()
        if not path.exists():
            msg = f"Repository path does not exist: {repo_path}"
            raise FileNotFoundError(msg)
        return GitRepo(path)

    def _restore(self, repo: GitRepo, original: str, stashed: bool, *, strict: bool) -> None:
        proc = repo.run("checkout", original, check=False)
        if proc.returncode != 0:
            logger.warning("Could not switch back to {}: {}", original, proc.stderr.strip())
        if stashed:
            proc = repo.run("stash", "pop", check=False)
            if proc.returncode != 0:
                if strict:
                    raise GitCommandError(["git", "stash", "pop"], proc.stderr.strip())
                logger.warning("git stash pop failed: {}", proc.stderr.strip())

    def _switch_to_secondary(self, repo: GitRepo, branch: str) -> None:
        if repo.branch_exists(branch):
            repo.run("checkout", branch)
            repo.run("pull", self.remote, branch, check=False)
            return
        fetched = repo.run("fetch", self.remote, branch, check=False).returncode == 0
        start = f"{self.remote}/{branch}" if fetched else self.primary_branch
        if repo.run("checkout", "-b", branch, start, check=False).returncode != 0:
            repo.run("checkout", "-b", branch)

    def _switch_to_primary(self, repo: GitRepo, branch: str) -> None:
        repo.run("checkout", branch)
        repo.run("pull", self.remote, branch, check=False)

    @contextmanager
    def _on_branch(self, repo: GitRepo, branch: str, *, secondary: bool) -> Iterator[None]:
        stashed = False
        if repo.is_dirty():
            repo.run("stash", "push", "-u", "-m", STASH_MESSAGE)
            stashed = True
        original = repo.current_branch()
        try:
            if original != branch:
                if secondary:
                    self._switch_to_secondary(repo, branch)
                else:
                    self._switch_to_primary(repo, branch)
            yield
        except BaseException:
            self._restore(repo, original, stashed, strict=False)
            raise
        else:
            self._restore(repo, original, stashed, strict=True)

    def _push(self, repo: GitRepo, branch: str) -> None:
        if self.push:
            repo.run("push", "-u", self.remote, branch)

    def sync_to_secondary_branch(self, request: SyncRequest) -> CommitResult:
        branch = f"{SECONDARY_BRANCH_PREFIX}{request.slug}"
        relative = f"{DRAFTS_DIR}/{request.slug}.md"
        try:
            repo = self._open(request.repo_path)
            with self._on_branch(repo, branch, secondary=True):
                localizer = ImageLocalizer(
                    repo.path / DRAFT_IMAGES_DIR, DRAFT_IMAGES_URL, session=self.sess
                )
                meta = FrontMatter(
                    title=request.title,
                    date=request.date,
                    tags=request.tags,
                    description=request.description,
                    cover=localizer.localize_cover(request.cover, request.slug),
                    cover_position=request.cover_position,
                    last_updated=request.updated_at,
                    draft_id=request.draft_id,
                )
                body = localizer.localize_markup(request.markup, request.slug)
                target = repo.path / relative
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(render_document(meta, body), encoding="utf-8")
                repo.run("add", f"{DRAFTS_DIR}/")
                repo.commit(f"Sync draft: {request.title}")
                self._push(repo, branch)
        except (GitCommandError, OSError) as e:
            logger.warning("Sync to {} failed: {}", branch, e)
            return CommitResult(success=False, message=str(e), branch=branch)
        return CommitResult(
            success=True,
            message=f"Draft '{request.title}' synced to drafts branch",
            file_path=relative,
            branch=branch,
        )

    def publish_to_primary_branch(self, request: PublishRequest) -> CommitResult:
        branch = self.primary_branch
        relative = f"{ARTICLES_DIR}/{request.slug}.md"
        try:
            repo = self._open(request.repo_path)
            with self._on_branch(repo, branch, secondary=False):
                localizer = ImageLocalizer(
                    repo.path / ARTICLE_IMAGES_DIR, ARTICLE_IMAGES_URL, session=self.sess
                )
                cover = localizer.localize_cover(
                    request.cover,
                    request.slug,
                    staged_prefix=DRAFT_IMAGES_URL,
                    staged_dir=repo.path / DRAFT_IMAGES_DIR,
                )
                meta = FrontMatter(
                    title=request.title,
                    date=request.date,
                    tags=request.tags,
                    description=request.description,
                    cover=cover,
                    cover_position=request.cover_position,
                    last_updated=request.updated_at,
                )
                body = localizer.localize_markup(request.markup, request.slug)
                target = repo.path / relative
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(render_document(meta, body), encoding="utf-8")
                repo.run("add", f"{ARTICLES_DIR.split('/')[0]}/")
                repo.commit(request.commit_message)
                self._push(repo, branch)
        except (GitCommandError, OSError) as e:
            logger.warning("Publish to {} failed: {}", branch, e)
            return CommitResult(success=False, message=str(e), branch=branch)
        return CommitResult(
            success=True,
            message=f"Article '{request.title}' published",
            file_path=relative,
            branch=branch,
        )
