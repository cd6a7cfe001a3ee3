"""Persisted JSON form of a document tree.

The stored form is ``{"root": {"type": "root", "children": [...]}}`` with one
object per node. Keys are not persisted; a loaded tree gets fresh keys.
"""

import json
from typing import Any

from loguru import logger

from nibandh.core.tree.document import DocumentTree
from nibandh.models.node import (
    NODE_CLASSES,
    DocumentNode,
    ListType,
    NodeType,
    Root,
    TextFormat,
)

# Per node type: (json field name, attribute name).
_ATTRIBUTES: dict[NodeType, tuple[tuple[str, str], ...]] = {
    NodeType.HEADING: (("level", "level"),),
    NodeType.TEXT: (("text", "content"), ("format", "format")),
    NodeType.LIST: (("listType", "list_type"), ("start", "start")),
    NodeType.LIST_ITEM: (("checked", "checked"),),
    NodeType.CODE: (("language", "language"),),
    NodeType.TABLE_CELL: (("header", "header"),),
    NodeType.IMAGE: (
        ("src", "src"),
        ("altText", "alt_text"),
        ("width", "width"),
        ("caption", "caption"),
        ("showCaption", "show_caption"),
    ),
    NodeType.EMBED: (("kind", "kind"), ("url", "url")),
    NodeType.COLUMN_LAYOUT: (("columns", "columns"),),
}


def node_to_dict(node: DocumentNode) -> dict[str, Any]:
    data: dict[str, Any] = {"type": node.type.value}
    for json_name, attr in _ATTRIBUTES.get(node.type, ()):
        value = getattr(node, attr)
        if isinstance(value, TextFormat):
            value = int(value)
        elif isinstance(value, ListType):
            value = value.value
        data[json_name] = value
    if not node.IS_LEAF:
        data["children"] = [node_to_dict(child) for child in node.children]
    return data


def tree_to_dict(tree: DocumentTree) -> dict[str, Any]:
    return {"root": node_to_dict(tree.root)}


def tree_to_json(tree: DocumentTree) -> str:
    return json.dumps(tree_to_dict(tree), ensure_ascii=False, separators=(",", ":"))


def _coerce(node_type: NodeType, attr: str, value: Any) -> Any:
    if node_type == NodeType.TEXT and attr == "format":
        return TextFormat(int(value or 0))
    if node_type == NodeType.LIST and attr == "list_type":
        return ListType(value)
    return value


def node_from_dict(data: Any) -> DocumentNode | None:
    """Build a detached subtree. Unrecognised nodes are skipped with a warning."""
    if not isinstance(data, dict):
        logger.warning("Skipping malformed node: {!r}", data)
        return None
    try:
        node_type = NodeType(data.get("type"))
    except ValueError:
        logger.warning("Skipping unknown node type {!r}", data.get("type"))
        return None
    if node_type == NodeType.ROOT:
        logger.warning("Skipping nested root node")
        return None

    kwargs: dict[str, Any] = {}
    try:
        for json_name, attr in _ATTRIBUTES.get(node_type, ()):
            if json_name in data:
                kwargs[attr] = _coerce(node_type, attr, data[json_name])
    except (TypeError, ValueError):
        logger.warning("Skipping {} node with invalid attributes", node_type)
        return None

    cls = NODE_CLASSES[node_type]
    if not cls.IS_LEAF:
        raw_children = data.get("children") or []
        if not isinstance(raw_children, list):
            logger.warning("Skipping {} node whose children are not a list", node_type)
            return None
        children = [node_from_dict(child) for child in raw_children]
        kwargs["children"] = [child for child in children if child is not None]
    return cls(**kwargs)


def tree_from_dict(data: Any) -> DocumentTree:
    root_data = data.get("root") if isinstance(data, dict) else None
    if not isinstance(root_data, dict) or root_data.get("type") != NodeType.ROOT.value:
        msg = "document state has no root node"
        raise ValueError(msg)
    raw_children = root_data.get("children") or []
    if not isinstance(raw_children, list):
        msg = "root node children are not a list"
        raise ValueError(msg)
    children = [node_from_dict(child) for child in raw_children]
    return DocumentTree(Root(children=[child for child in children if child is not None]))


def tree_from_json(text: str) -> DocumentTree:
    """Parse the stored JSON form. Raises ValueError on unusable input."""
    return tree_from_dict(json.loads(text))
