"""Plain-text extraction and document statistics."""

from collections.abc import Iterator
from typing import assert_never, cast

from loguru import logger

from nibandh.core.tree.document import DocumentTree
from nibandh.models.node import DocumentNode, NodeType, Text, iter_subtree

# Separator between the contents of consecutive text nodes.
TEXT_SEPARATOR = " "


def _text_parts(node: DocumentNode) -> Iterator[str]:
    match node.type:
        case NodeType.TEXT:
            content = cast(Text, node).content
            if content:
                yield content
        case NodeType.IMAGE | NodeType.HORIZONTAL_RULE | NodeType.EMBED:
            return
        case (
            NodeType.ROOT
            | NodeType.PARAGRAPH
            | NodeType.HEADING
            | NodeType.LIST
            | NodeType.LIST_ITEM
            | NodeType.QUOTE
            | NodeType.CODE
            | NodeType.TABLE
            | NodeType.TABLE_ROW
            | NodeType.TABLE_CELL
            | NodeType.COLUMN_LAYOUT
        ):
            for child in node.children:
                yield from _text_parts(child)
        case _ as unreachable:
            assert_never(unreachable)


def extract_plain_text(source: DocumentTree | DocumentNode | None) -> str:
    """Concatenate all text node contents in document order.

    Never raises: an empty or malformed tree yields "".
    """
    if source is None:
        return ""
    node = source.root if isinstance(source, DocumentTree) else source
    try:
        return TEXT_SEPARATOR.join(_text_parts(node))
    except Exception:
        logger.opt(exception=True).warning("Plain text extraction failed, using empty text")
        return ""


def word_count(text: str) -> int:
    return len(text.split())


def count_nodes(tree: DocumentTree, node_type: NodeType) -> int:
    """Count nodes of one type, e.g. images shown before publishing."""
    return sum(1 for node in iter_subtree(tree.root) if node.type == node_type)
