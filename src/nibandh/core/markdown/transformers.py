"""Bidirectional markup transformers and the priority-ordered registry.

A transformer maps node types to markup fragments (export) and markup back to
nodes (import). Priority is the position in the registry: during export the
first transformer returning a fragment wins, during import the first matching
transformer wins.
"""

import html
import re
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import ClassVar, Protocol

from nibandh.models.node import DocumentNode, NodeType, TextFormat


class ExportContext(Protocol):
    """Rendering services the serializer offers to export functions."""

    def inline(self, node: DocumentNode) -> str:
        """Render the children of node as one inline fragment."""
        ...

    def render_inline(self, nodes: Iterable[DocumentNode]) -> str:
        """Render a run of inline nodes."""
        ...


ExportFn = Callable[[DocumentNode, ExportContext], str | None]
InlineImporter = Callable[[str], list[DocumentNode]]


class TransformerKind(StrEnum):
    ELEMENT = "element"
    MULTILINE = "multiline"
    TEXT_FORMAT = "text-format"
    TEXT_MATCH = "text-match"


@dataclass(frozen=True)
class ElementTransformer:
    """Single-line block construct recognised at the start of a line.

    ``replace`` receives the match, the imported inline children of the rest of
    the line and the previous block (None after a blank line). It returns a new
    block, or None when the line was merged into the previous block.
    """

    kind: ClassVar[TransformerKind] = TransformerKind.ELEMENT

    name: str
    node_types: frozenset[NodeType]
    export: ExportFn
    reg_exp: re.Pattern[str]
    replace: Callable[[re.Match[str], list[DocumentNode], DocumentNode | None], DocumentNode | None]


@dataclass(frozen=True)
class MultilineTransformer:
    """Block construct spanning several lines, emitted and consumed atomically.

    ``handle`` gets all lines, the index of the line matching ``start_reg_exp``
    and an inline importer. It returns the built block and the index of the
    first line it did not consume, or None to decline.
    """

    kind: ClassVar[TransformerKind] = TransformerKind.MULTILINE

    name: str
    node_types: frozenset[NodeType]
    export: ExportFn
    start_reg_exp: re.Pattern[str]
    handle: Callable[[Sequence[str], int, InlineImporter], tuple[DocumentNode, int] | None]


@dataclass(frozen=True)
class TextFormatTransformer:
    """Inline marker pair for one format flag, e.g. ``**`` for bold.

    Markers of non-intraword transformers only count at word boundaries.
    """

    kind: ClassVar[TransformerKind] = TransformerKind.TEXT_FORMAT

    name: str
    format: TextFormat
    tag: str
    intraword: bool = True


@dataclass(frozen=True)
class TextMatchTransformer:
    """Inline construct recognised by regular expression.

    ``import_reg_exp`` is used for bulk import (paste), ``reg_exp`` is anchored
    at the end of the text before the caret and only consulted once
    ``trigger`` has been typed. ``replace`` builds the node for a match, or
    returns None to decline it.
    """

    kind: ClassVar[TransformerKind] = TransformerKind.TEXT_MATCH

    name: str
    node_types: frozenset[NodeType]
    export: ExportFn
    import_reg_exp: re.Pattern[str]
    reg_exp: re.Pattern[str]
    trigger: str
    replace: Callable[[re.Match[str]], DocumentNode | None]


Transformer = ElementTransformer | MultilineTransformer | TextFormatTransformer | TextMatchTransformer


class TransformerRegistry:
    """Immutable, ordered set of transformers; earlier entries win."""

    def __init__(self, transformers: Iterable[Transformer]) -> None:
        self._transformers: tuple[Transformer, ...] = tuple(transformers)
        names = [t.name for t in self._transformers]
        if len(names) != len(set(names)):
            msg = f"duplicate transformer names: {names!r}"
            raise ValueError(msg)

        self.element = tuple(t for t in self._transformers if isinstance(t, ElementTransformer))
        self.multiline = tuple(
            t for t in self._transformers if isinstance(t, MultilineTransformer)
        )
        self.text_format = tuple(
            t for t in self._transformers if isinstance(t, TextFormatTransformer)
        )
        self.text_match = tuple(
            t for t in self._transformers if isinstance(t, TextMatchTransformer)
        )

    def __iter__(self) -> Iterator[Transformer]:
        return iter(self._transformers)

    def __len__(self) -> int:
        return len(self._transformers)

    def priority(self, name: str) -> int:
        for i, transformer in enumerate(self._transformers):
            if transformer.name == name:
                return i
        raise KeyError(name)

    def export(self, node: DocumentNode, ctx: ExportContext) -> str | None:
        """Return the fragment of the first transformer that accepts node."""
        for transformer in self._transformers:
            if isinstance(transformer, TextFormatTransformer):
                continue
            if node.type not in transformer.node_types:
                continue
            fragment = transformer.export(node, ctx)
            if fragment is not None:
                return fragment
        return None

    def format_markers(self, fmt: TextFormat) -> list[str]:
        """Export markers for fmt, outermost first; one per flag, first transformer wins."""
        markers: list[str] = []
        seen = TextFormat.NONE
        for transformer in self.text_format:
            if fmt & transformer.format and not seen & transformer.format:
                markers.append(transformer.tag)
                seen |= transformer.format
        return markers

    def triggered_by(self, char: str) -> tuple[TextMatchTransformer, ...]:
        return tuple(t for t in self.text_match if t.trigger == char)


def escape_markup(value: str) -> str:
    """Escape & < > " ' and backslashes for embedding in a raw-markup fragment."""
    escaped = html.escape(value, quote=True).replace("&#x27;", "&#39;")
    return escaped.replace("\\", "&#92;")


def unescape_markup(value: str) -> str:
    return html.unescape(value)


# Backslash escapes, as in CommonMark: any ASCII punctuation may be escaped.
_ESCAPE_RE = re.compile(r"\\([!-/:-@\[-`{-~])")
# Escaped characters are parked in a private-use plane while markup is parsed.
_PARKED_BASE = 0xF0000
_PARKED_RE = re.compile(f"[{chr(_PARKED_BASE + 0x21)}-{chr(_PARKED_BASE + 0x7E)}]")

_ALWAYS_ESCAPED = frozenset("\\*+~[")
_SHORTCODE_RE = re.compile(r":[a-z0-9_+-]+:")
_TAG_START_RE = re.compile(r"<[A-Za-z/]")
_BLOCK_START_RE = re.compile(r"^([ \t]*)(#|>|-|\||```)", re.MULTILINE)
_ORDERED_START_RE = re.compile(r"^([ \t]*\d{1,9})\.(?=\s|$)", re.MULTILINE)


def _is_intraword(text: str, index: int) -> bool:
    return 0 < index < len(text) - 1 and text[index - 1].isalnum() and text[index + 1].isalnum()


def escape_text(content: str) -> str:
    """Backslash-escape characters in plain text that would read back as markup.

    Format markers, link and image openers, tags and emoji shortcodes are
    escaped. An underscore inside a word is left alone since it cannot open
    or close emphasis there.
    """
    escaped: list[str] = []
    for index, char in enumerate(content):
        if (
            char in _ALWAYS_ESCAPED
            or (char == "_" and not _is_intraword(content, index))
            or (char == "<" and _TAG_START_RE.match(content, index))
            or (char == ":" and _SHORTCODE_RE.match(content, index))
        ):
            escaped.append("\\")
        escaped.append(char)
    return "".join(escaped)


def escape_line_starts(text: str) -> str:
    """Escape line openings that would otherwise start a heading, list, quote, table or fence."""
    text = _BLOCK_START_RE.sub(r"\1\\\2", text)
    return _ORDERED_START_RE.sub(r"\1\\.", text)


def park_escapes(text: str) -> str:
    """Replace each backslash escape with a placeholder no markup pattern matches."""
    return _ESCAPE_RE.sub(lambda m: chr(_PARKED_BASE + ord(m.group(1))), text)


def restore_escapes(text: str) -> str:
    """Turn placeholders left by ``park_escapes`` back into the literal characters."""
    return _PARKED_RE.sub(lambda m: chr(ord(m.group(0)) - _PARKED_BASE), text)
