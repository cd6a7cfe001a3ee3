"""Render a document tree as markdown through the transformer registry."""

from collections.abc import Iterable
from typing import assert_never, cast

from loguru import logger

from nibandh.core.markdown.builtin import DEFAULT_REGISTRY
from nibandh.core.markdown.transformers import (
    TransformerRegistry,
    escape_line_starts,
    escape_text,
)
from nibandh.core.tree.document import DocumentTree
from nibandh.models.node import DocumentNode, NodeType, Text

BLOCK_SEPARATOR = "\n\n"


class MarkdownSerializer:
    """Walks a tree and renders block and inline fragments.

    Exports are dispatched to the first transformer in the registry that
    accepts a node. Nodes no transformer accepts fall back to a structural
    rendering; nodes that fail to render are skipped so one bad node never
    costs the rest of the document.
    """

    def __init__(self, registry: TransformerRegistry = DEFAULT_REGISTRY) -> None:
        self.registry = registry

    def serialize(self, tree: DocumentTree) -> str:
        return BLOCK_SEPARATOR.join(b for b in self._blocks(tree.root.children) if b)

    # ExportContext

    def inline(self, node: DocumentNode) -> str:
        return self.render_inline(node.children)

    def render_inline(self, nodes: Iterable[DocumentNode]) -> str:
        return "".join(self._inline_node(node) for node in nodes)

    def format_text(self, node: Text) -> str:
        """Escape text and wrap it in format markers, keeping surrounding whitespace outside them."""
        content = escape_text(node.content)
        markers = self.registry.format_markers(node.format)
        stripped = content.strip()
        if not markers or not stripped:
            return content
        lead = content[: len(content) - len(content.lstrip())]
        trail = content[len(content.rstrip()) :]
        opening = "".join(markers)
        closing = "".join(reversed(markers))
        return f"{lead}{opening}{stripped}{closing}{trail}"

    def _blocks(self, nodes: Iterable[DocumentNode]) -> list[str]:
        blocks: list[str] = []
        for node in nodes:
            blocks.extend(self._block(node))
        return blocks

    def _block(self, node: DocumentNode) -> list[str]:
        try:
            fragment = self.registry.export(node, self)
        except Exception:
            logger.opt(exception=True).warning("Skipping {} node that failed to export", node.type)
            return []
        if fragment is not None:
            return [fragment]

        match node.type:
            case NodeType.PARAGRAPH:
                return [escape_line_starts(self.inline(node))]
            case NodeType.TEXT:
                return [escape_line_starts(self.format_text(cast(Text, node)))]
            case (
                NodeType.ROOT
                | NodeType.COLUMN_LAYOUT
                | NodeType.LIST_ITEM
                | NodeType.TABLE_ROW
                | NodeType.TABLE_CELL
            ):
                return self._blocks(node.children)
            case (
                NodeType.HEADING
                | NodeType.LIST
                | NodeType.QUOTE
                | NodeType.CODE
                | NodeType.TABLE
                | NodeType.IMAGE
                | NodeType.HORIZONTAL_RULE
                | NodeType.EMBED
            ):
                logger.warning("No transformer exported {} node, skipping", node.type)
                return []
            case _ as unreachable:
                assert_never(unreachable)

    def _inline_node(self, node: DocumentNode) -> str:
        if isinstance(node, Text):
            return self.format_text(node)
        try:
            fragment = self.registry.export(node, self)
        except Exception:
            logger.opt(exception=True).warning("Skipping {} node that failed to export", node.type)
            return ""
        if fragment is not None:
            return fragment
        if node.children:
            return self.render_inline(node.children)
        logger.warning("No inline form for {} node, skipping", node.type)
        return ""


def serialize(tree: DocumentTree, registry: TransformerRegistry = DEFAULT_REGISTRY) -> str:
    """Render tree as markdown. Same tree, same registry: byte-identical output."""
    return MarkdownSerializer(registry).serialize(tree)
