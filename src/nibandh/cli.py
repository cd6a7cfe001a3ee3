"""CLI for nibandh: write, sync and publish article drafts."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer
from loguru import logger

from nibandh.config import DB_FILENAME, SETTINGS_FILENAME, resolve_data_directory
from nibandh.core.lifecycle.controller import DraftController
from nibandh.core.publish.frontmatter import parse_front_matter
from nibandh.core.publish.git_client import GitVersionControl
from nibandh.core.search.searcher import search_drafts
from nibandh.core.settings.store import JsonSettingsStore, validate_repo_location
from nibandh.core.storage.repository import SqliteDraftStorage
from nibandh.core.tree.text import count_nodes, word_count
from nibandh.logging_config import configure_logging
from nibandh.models.draft import Draft, OperationResult
from nibandh.models.node import NodeType
from nibandh.models.settings import Settings

app = typer.Typer(help="nibandh: write article drafts, sync them and publish them to a git repository.")

T = TypeVar("T")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Directory with the drafts database and settings"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _data_dir(data_dir: Path | None) -> Path:
    return data_dir or resolve_data_directory()


@contextmanager
def _storage(data_dir: Path | None):  # type: ignore[no-untyped-def]
    storage = SqliteDraftStorage.open(_data_dir(data_dir) / DB_FILENAME)
    try:
        yield storage
    finally:
        storage.close()


def _run_with_controller(
    data_dir: Path | None, action: Callable[[DraftController], Awaitable[T]]
) -> T:
    """Run action against a controller wired to the on-disk store, flushing saves."""
    settings = JsonSettingsStore(_data_dir(data_dir) / SETTINGS_FILENAME)
    with _storage(data_dir) as storage:

        async def runner() -> T:
            controller = DraftController(storage, GitVersionControl(), settings)
            try:
                result = await action(controller)
                await controller.flush()
                return result
            finally:
                controller.close()

        return asyncio.run(runner())


async def _load_or_exit(controller: DraftController, draft_id: str) -> None:
    if not await controller.load(draft_id):
        controller.close()
        typer.echo(f"Draft '{draft_id}' not found.")
        raise typer.Exit(1)


def _active_draft(controller: DraftController) -> Draft:
    if controller.draft is None:
        typer.echo("No active draft.", err=True)
        raise typer.Exit(1)
    return controller.draft


def _report(result: OperationResult) -> None:
    if result.success:
        typer.echo(result.message)
        return
    typer.echo(f"Error: {result.message}", err=True)
    raise typer.Exit(1)


@app.command()
def new(
    title: str = typer.Option("", "--title", "-t", help="Draft title"),
    tag: Annotated[list[str] | None, typer.Option("--tag", help="Tag (repeatable)")] = None,
    description: str = typer.Option("", "--description", help="Short description"),
    body: Annotated[
        Path | None, typer.Option("--body", "-b", help="Markdown file with the draft body")
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Create a new draft."""

    async def action(controller: DraftController) -> str:
        controller.create_new()
        controller.update(title=title, tags=tag or [], description=description)
        if body is not None:
            controller.set_markdown(body.read_text(encoding="utf-8"))
        await controller.save()
        return _active_draft(controller).id

    draft_id = _run_with_controller(data_dir, action)
    typer.echo(f"Created draft {draft_id}")


@app.command(name="list")
def list_cmd(
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    data_dir: DataDirOption = None,
) -> None:
    """List drafts, most recently updated first."""
    with _storage(data_dir) as storage:
        summaries = storage.list()
    if output_json:
        data = [
            {"id": s.id, "title": s.title, "status": s.status.value, "updated_at": s.updated_at}
            for s in summaries
        ]
        typer.echo(json.dumps(data, indent=2))
        return
    if not summaries:
        typer.echo("No drafts.")
        return
    for s in summaries:
        typer.echo(f"{s.id}  [{s.status.value:9}] {s.updated_at}  {s.title or '(untitled)'}")


@app.command()
def show(
    draft_id: str = typer.Argument(..., help="Draft id"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output metadata as JSON"),
    data_dir: DataDirOption = None,
) -> None:
    """Show a draft's metadata and its body as markdown."""

    async def action(controller: DraftController) -> dict[str, Any]:
        await _load_or_exit(controller, draft_id)
        draft = _active_draft(controller)
        return {
            "id": draft.id,
            "title": draft.title,
            "slug": draft.slug,
            "date": draft.date,
            "tags": list(draft.tags),
            "description": draft.description,
            "cover": draft.cover,
            "cover_position": draft.cover_position,
            "status": draft.status.value,
            "updated_at": draft.updated_at,
            "synced_at": draft.synced_at,
            "published_at": draft.published_at,
            "words": word_count(draft.text_content),
            "images": count_nodes(controller.tree, NodeType.IMAGE),
            "markdown": controller.markup(),
        }

    info = _run_with_controller(data_dir, action)
    if output_json:
        typer.echo(json.dumps(info, indent=2, ensure_ascii=False))
        return
    typer.echo(f"{info['title'] or '(untitled)'}  [{info['status']}]")
    typer.echo(f"  id={info['id']}  date={info['date']}  tags={', '.join(info['tags'])}")
    if info["description"]:
        typer.echo(f"  {info['description']}")
    typer.echo(f"  {info['words']} words, {info['images']} images")
    typer.echo()
    typer.echo(info["markdown"])


@app.command()
def edit(
    draft_id: str = typer.Argument(..., help="Draft id"),
    title: Annotated[str | None, typer.Option("--title", "-t", help="New title")] = None,
    add_tag: Annotated[list[str] | None, typer.Option("--tag", help="Add a tag")] = None,
    remove_tag: Annotated[
        list[str] | None, typer.Option("--remove-tag", help="Remove a tag")
    ] = None,
    description: Annotated[
        str | None, typer.Option("--description", help="New description")
    ] = None,
    cover: Annotated[str | None, typer.Option("--cover", help="Cover image URL or path")] = None,
    cover_position: Annotated[
        float | None, typer.Option("--cover-position", help="Cover focal point, 0-100")
    ] = None,
    body: Annotated[
        Path | None, typer.Option("--body", "-b", help="Markdown file replacing the body")
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Change a draft's metadata or replace its body."""

    async def action(controller: DraftController) -> bool:
        await _load_or_exit(controller, draft_id)
        changes = {
            k: v
            for k, v in (("title", title), ("description", description), ("cover", cover))
            if v is not None
        }
        if changes:
            controller.update(**changes)
        for tag in add_tag or []:
            controller.add_tag(tag)
        for tag in remove_tag or []:
            controller.remove_tag(tag)
        if cover_position is not None:
            controller.set_cover_position(cover_position)
        if body is not None:
            controller.set_markdown(body.read_text(encoding="utf-8"))
        return await controller.flush()

    if not _run_with_controller(data_dir, action):
        typer.echo("Error: could not save the draft", err=True)
        raise typer.Exit(1)
    typer.echo(f"Updated draft {draft_id}")


@app.command(name="import")
def import_cmd(
    path: Path = typer.Argument(..., help="Markdown file, optionally with front-matter"),
    data_dir: DataDirOption = None,
) -> None:
    """Create a draft from a markdown file."""
    if not path.exists():
        logger.error("File not found: {}", path)
        raise typer.Exit(1)
    fields, markdown = parse_front_matter(path.read_text(encoding="utf-8"))

    async def action(controller: DraftController) -> str:
        controller.create_new()
        changes: dict[str, Any] = {"title": str(fields.get("title") or path.stem)}
        for key in ("date", "description", "cover"):
            if fields.get(key):
                changes[key] = str(fields[key])
        if isinstance(fields.get("tags"), list):
            changes["tags"] = [str(tag) for tag in fields["tags"]]
        if isinstance(fields.get("cover_position"), int | float):
            changes["cover_position"] = fields["cover_position"]
        controller.update(**changes)
        controller.set_markdown(markdown)
        await controller.save()
        return _active_draft(controller).id

    draft_id = _run_with_controller(data_dir, action)
    typer.echo(f"Imported {path} as draft {draft_id}")


@app.command()
def delete(
    draft_id: str = typer.Argument(..., help="Draft id"),
    data_dir: DataDirOption = None,
) -> None:
    """Delete a draft."""
    with _storage(data_dir) as storage:
        deleted = storage.delete(draft_id)
    if not deleted:
        typer.echo(f"Draft '{draft_id}' not found.")
        raise typer.Exit(1)
    typer.echo(f"Deleted draft {draft_id}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: int = typer.Option(10, "--limit", "-n", help="Max results"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    data_dir: DataDirOption = None,
) -> None:
    """Search drafts by title, description and body."""
    with _storage(data_dir) as storage:
        results, total = search_drafts(storage.conn, query=query, limit=limit)
    if output_json:
        data = {
            "results": [
                {"id": r.summary.id, "title": r.summary.title, "snippet": r.snippet}
                for r in results
            ],
            "total": total,
        }
        typer.echo(json.dumps(data, indent=2))
        return
    typer.echo(f"Found {total} results (showing {len(results)}):\n")
    for r in results:
        typer.echo(f"  {r.summary.title or '(untitled)'}  [{r.summary.status.value}]")
        typer.echo(f"    {r.snippet}")
        typer.echo(f"    id={r.summary.id}")
        typer.echo()


@app.command()
def sync(
    draft_id: str = typer.Argument(..., help="Draft id"),
    data_dir: DataDirOption = None,
) -> None:
    """Back a draft up to its drafts/<slug> branch."""

    async def action(controller: DraftController) -> OperationResult:
        await _load_or_exit(controller, draft_id)
        return await controller.sync()

    _report(_run_with_controller(data_dir, action))


@app.command()
def publish(
    draft_id: str = typer.Argument(..., help="Draft id"),
    message: Annotated[
        str | None, typer.Option("--message", "-m", help="Commit message")
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Publish a draft to the primary branch of the repository."""

    async def action(controller: DraftController) -> OperationResult:
        await _load_or_exit(controller, draft_id)
        return await controller.publish(message)

    _report(_run_with_controller(data_dir, action))


@app.command()
def settings(
    repo_path: Annotated[
        str | None, typer.Option("--repo-path", "-r", help="Git repository to publish to")
    ] = None,
    theme: Annotated[str | None, typer.Option("--theme", help="Editor theme")] = None,
    editor_width: Annotated[
        str | None, typer.Option("--editor-width", help="Editor width")
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Show settings, or change them when options are given."""
    store = JsonSettingsStore(_data_dir(data_dir) / SETTINGS_FILENAME)
    current = store.get()
    if repo_path is not None:
        validation = validate_repo_location(repo_path)
        if not validation.valid:
            typer.echo(f"Error: {validation.message}", err=True)
            raise typer.Exit(1)
        if not validation.has_content_dir:
            logger.warning("{} has no content/ directory yet", repo_path)
    if any(v is not None for v in (repo_path, theme, editor_width)):
        current = Settings(
            repo_path=current.repo_path if repo_path is None else repo_path,
            theme=theme or current.theme,
            editor_width=editor_width or current.editor_width,
        )
        store.save(current)
    typer.echo(f"repo_path: {current.repo_path or '(not set)'}")
    typer.echo(f"theme: {current.theme}")
    typer.echo(f"editor_width: {current.editor_width}")


@app.command()
def serve() -> None:
    """Run the MCP server (stdio transport)."""
    from nibandh.mcp.server import run_mcp_server

    run_mcp_server()
