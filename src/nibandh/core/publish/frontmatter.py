"""Front-matter header written above published and synced articles."""

from dataclasses import dataclass
from typing import Any

import yaml
from loguru import logger

FENCE = "---"


@dataclass(frozen=True)
class FrontMatter:
    title: str
    date: str
    tags: tuple[str, ...]
    description: str
    cover: str
    cover_position: float
    last_updated: str
    draft_id: str | None = None


class _Quoted(str):
    """A string value always written in double quotes."""


class _FrontMatterDumper(yaml.SafeDumper):
    pass


def _represent_quoted(dumper: yaml.SafeDumper, value: _Quoted) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", str(value), style='"')


_FrontMatterDumper.add_representer(_Quoted, _represent_quoted)


def _number(value: float) -> int | float:
    return int(value) if float(value).is_integer() else float(value)


def render_front_matter(meta: FrontMatter) -> str:
    """Render the header, including the blank line that separates it from the body.

    ``last_updated`` falls back to the article date when empty; ``draft_id``
    is only written for synced drafts.
    """
    fields: dict[str, Any] = {
        "title": _Quoted(meta.title),
        "date": _Quoted(meta.date),
        "tags": [_Quoted(tag) for tag in meta.tags],
        "description": _Quoted(meta.description),
        "cover": _Quoted(meta.cover),
        "cover_position": _number(meta.cover_position),
        "last_updated": _Quoted(meta.last_updated or meta.date),
    }
    if meta.draft_id is not None:
        fields["draft_id"] = _Quoted(meta.draft_id)
    header = yaml.dump(
        fields,
        Dumper=_FrontMatterDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=None,
        width=float("inf"),
    )
    return f"{FENCE}\n{header}{FENCE}\n\n"


def render_document(meta: FrontMatter, body: str) -> str:
    return render_front_matter(meta) + body


def parse_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split a document into its header fields and body.

    Text without a header, with an unterminated header, or with a header
    that is not a YAML mapping yields ``({}, text)``.
    """
    lines = text.split("\n")
    if not lines or lines[0].strip() != FENCE:
        return {}, text
    for index in range(1, len(lines)):
        if lines[index].rstrip() != FENCE:
            continue
        try:
            fields = yaml.safe_load("\n".join(lines[1:index]))
        except yaml.YAMLError as exc:
            logger.warning("Ignoring unreadable front matter: {}", exc)
            return {}, text
        if fields is None:
            fields = {}
        if not isinstance(fields, dict):
            logger.warning("Ignoring front matter that is not a mapping")
            return {}, text
        body = "\n".join(lines[index + 1 :])
        return fields, body.removeprefix("\n")
    return {}, text
