"""MCP server exposing the draft store: listing, reading, search and creation."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from nibandh.config import DB_FILENAME, LOG_FILENAME, resolve_data_directory
from nibandh.core.markdown.importer import import_markdown
from nibandh.core.markdown.serializer import serialize
from nibandh.core.search.searcher import search_drafts
from nibandh.core.storage.repository import SqliteDraftStorage
from nibandh.core.timestamps import rfc3339, today, utc_now
from nibandh.core.tree.codec import tree_from_json, tree_to_json
from nibandh.core.tree.text import extract_plain_text, word_count
from nibandh.models.draft import Draft


def _summary_dict(draft_id: str, title: str, status: str, updated_at: str) -> dict[str, Any]:
    return {"id": draft_id, "title": title or "(untitled)", "status": status, "updated_at": updated_at}


# --- Core functions (testable without MCP context) ---


def drafts_list(storage: SqliteDraftStorage) -> dict[str, Any]:
    """List all drafts, most recently updated first."""
    summaries = storage.list()
    return {
        "drafts": [
            _summary_dict(s.id, s.title, s.status.value, s.updated_at) for s in summaries
        ],
        "count": len(summaries),
    }


def drafts_read(storage: SqliteDraftStorage, *, draft_id: str) -> dict[str, Any]:
    """Return one draft's metadata and its body rendered as markdown."""
    draft = storage.get(draft_id)
    if draft is None:
        return {"error": f"Draft '{draft_id}' not found."}
    try:
        markdown = serialize(tree_from_json(draft.content)) if draft.content else ""
    except ValueError:
        logger.warning("Draft {} has unreadable content", draft_id)
        markdown = ""
    return {
        **_summary_dict(draft.id, draft.title, draft.status.value, draft.updated_at),
        "slug": draft.slug,
        "date": draft.date,
        "tags": list(draft.tags),
        "description": draft.description,
        "cover": draft.cover,
        "synced_at": draft.synced_at,
        "published_at": draft.published_at,
        "word_count": word_count(draft.text_content),
        "markdown": markdown,
    }


def drafts_search(
    storage: SqliteDraftStorage,
    *,
    query: str = "",
    limit: int = 20,
    offset: int = 0,
) -> dict[str, Any]:
    """Full-text search over titles, descriptions and bodies.

    Words are ANDed. Use "quoted phrases" for exact matches. Prefix
    matching is automatic for 3+ char words.
    """
    if not query.strip():
        return {"error": "No search query provided.", "results": [], "count": 0, "total": 0}
    limit = max(1, min(limit, 50))
    results, total = search_drafts(storage.conn, query=query, limit=limit, offset=offset)
    has_more = offset + len(results) < total
    return {
        "results": [
            {
                **_summary_dict(
                    r.summary.id, r.summary.title, r.summary.status.value, r.summary.updated_at
                ),
                "snippet": r.snippet,
            }
            for r in results
        ],
        "count": len(results),
        "total": total,
        "has_more": has_more,
        "next_offset": offset + len(results) if has_more else None,
    }


def drafts_create(
    storage: SqliteDraftStorage,
    *,
    title: str,
    markdown: str,
    tags: list[str] | None = None,
    description: str = "",
) -> dict[str, Any]:
    """Store a new draft whose body is parsed from markdown."""
    now = utc_now()
    tree = import_markdown(markdown)
    draft = replace(
        Draft.new(today(now), now=rfc3339(now)),
        title=title,
        tags=tuple(dict.fromkeys(t.strip() for t in tags or () if t.strip())),
        description=description,
        content=tree_to_json(tree),
        text_content=extract_plain_text(tree),
    )
    stored = storage.save(draft)
    logger.info("Created draft {} via MCP", stored.id)
    return _summary_dict(stored.id, stored.title, stored.status.value, stored.updated_at)


# --- Server ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    storage: SqliteDraftStorage


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open the draft database on startup, close on shutdown."""
    db_path = resolve_data_directory() / DB_FILENAME
    storage = SqliteDraftStorage.open(db_path)
    try:
        yield ServerContext(storage=storage)
    finally:
        storage.close()


mcp_server = FastMCP(
    "nibandh",
    instructions="""\
nibandh stores article drafts. Use drafts_list_tool or drafts_search_tool to
find a draft, then drafts_read_tool with its id to read the body as markdown.
drafts_create_tool stores new markdown as a draft; it is not published.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def drafts_list_tool(ctx: Context) -> dict[str, Any]:
    """List all drafts, most recently updated first."""
    return drafts_list(_ctx(ctx).storage)


@mcp_server.tool()
async def drafts_read_tool(ctx: Context, draft_id: str) -> dict[str, Any]:
    """Read a draft's metadata and its body as markdown.

    Args:
        draft_id: Draft id from drafts_list_tool or drafts_search_tool.
    """
    return drafts_read(_ctx(ctx).storage, draft_id=draft_id)


@mcp_server.tool()
async def drafts_search_tool(
    ctx: Context, query: str = "", limit: int = 20, offset: int = 0
) -> dict[str, Any]:
    """Search drafts by title, description and body text.

    Pagination: When has_more is true, use next_offset in a follow-up call.

    Args:
        query: Search text.
        limit: Max results (1-50, default 20).
        offset: Pagination offset.
    """
    return drafts_search(_ctx(ctx).storage, query=query, limit=limit, offset=offset)


@mcp_server.tool()
async def drafts_create_tool(
    ctx: Context,
    title: str,
    markdown: str,
    tags: list[str] | None = None,
    description: str = "",
) -> dict[str, Any]:
    """Create a draft from markdown.

    Args:
        title: Draft title.
        markdown: Body text.
        tags: Optional tags.
        description: Optional short description.
    """
    return drafts_create(
        _ctx(ctx).storage, title=title, markdown=markdown, tags=tags, description=description
    )


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from nibandh.logging_config import configure_logging

    configure_logging(verbose=False, log_file=resolve_data_directory() / LOG_FILENAME)
    mcp_server.run(transport="stdio")
