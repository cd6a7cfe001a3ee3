"""Node variants of the rich-text document tree."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntFlag, StrEnum
from typing import ClassVar


class NodeType(StrEnum):
    """Closed set of node variants."""

    ROOT = "root"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    TEXT = "text"
    LIST = "list"
    LIST_ITEM = "listItem"
    QUOTE = "quote"
    CODE = "code"
    TABLE = "table"
    TABLE_ROW = "tableRow"
    TABLE_CELL = "tableCell"
    IMAGE = "image"
    HORIZONTAL_RULE = "horizontalRule"
    EMBED = "embed"
    COLUMN_LAYOUT = "columnLayout"


class TextFormat(IntFlag):
    """Inline format bitmask carried by text nodes."""

    NONE = 0
    BOLD = 1
    ITALIC = 2
    STRIKETHROUGH = 4
    UNDERLINE = 8
    # 16 is inline code in the editor; it has no markup marker here.
    SUBSCRIPT = 32
    SUPERSCRIPT = 64


class ListType(StrEnum):
    ORDERED = "ordered"
    UNORDERED = "unordered"
    CHECKLIST = "checklist"


class TreeStructureError(ValueError):
    """Raised when an operation would break the single-root/single-parent/acyclic shape."""


@dataclass(eq=False)
class DocumentNode:
    """Base class of every node variant.

    Nodes compare by identity. Children passed to the constructor are adopted
    immediately, so detached subtrees can be built bottom-up and attached to a
    tree in one operation.
    """

    TYPE: ClassVar[NodeType]
    IS_LEAF: ClassVar[bool] = False

    children: list["DocumentNode"] = field(default_factory=list, kw_only=True, repr=False)
    key: str = field(default="", kw_only=True)
    parent: "DocumentNode | None" = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        adopted = self.children
        self.children = []
        for child in adopted:
            check_attachable(self, child)
            child.parent = self
            self.children.append(child)

    @property
    def type(self) -> NodeType:
        return self.TYPE

    def ancestors(self) -> Iterator["DocumentNode"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def index_in_parent(self) -> int:
        if self.parent is None:
            msg = f"{self.type} node is not attached"
            raise TreeStructureError(msg)
        for i, sibling in enumerate(self.parent.children):
            if sibling is self:
                return i
        msg = "node missing from its parent's children"
        raise TreeStructureError(msg)


def check_attachable(parent: DocumentNode, child: DocumentNode) -> None:
    """Raise TreeStructureError unless child may become a child of parent."""
    if parent.IS_LEAF:
        msg = f"{parent.type} nodes cannot have children"
        raise TreeStructureError(msg)
    if isinstance(child, Root):
        msg = "root node cannot be a child"
        raise TreeStructureError(msg)
    if child.parent is not None:
        msg = f"{child.type} node already has a parent"
        raise TreeStructureError(msg)
    if child is parent or any(a is child for a in parent.ancestors()):
        msg = "attaching node would create a cycle"
        raise TreeStructureError(msg)


def iter_subtree(node: DocumentNode) -> Iterator[DocumentNode]:
    """Yield node and its descendants in depth-first pre-order."""
    todo = [node]
    while todo:
        current = todo.pop()
        yield current
        todo.extend(reversed(current.children))


@dataclass(eq=False)
class Root(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.ROOT


@dataclass(eq=False)
class Paragraph(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.PARAGRAPH


@dataclass(eq=False)
class Heading(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.HEADING

    level: int = 1


@dataclass(eq=False)
class Text(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.TEXT
    IS_LEAF: ClassVar[bool] = True

    content: str = ""
    format: TextFormat = TextFormat.NONE

    def has_format(self, flag: TextFormat) -> bool:
        return bool(self.format & flag)


@dataclass(eq=False)
class ListNode(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.LIST

    list_type: ListType = ListType.UNORDERED
    start: int = 1


@dataclass(eq=False)
class ListItem(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.LIST_ITEM

    checked: bool | None = None


@dataclass(eq=False)
class Quote(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.QUOTE


@dataclass(eq=False)
class Code(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.CODE

    language: str = ""


@dataclass(eq=False)
class Table(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.TABLE


@dataclass(eq=False)
class TableRow(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.TABLE_ROW


@dataclass(eq=False)
class TableCell(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.TABLE_CELL

    header: bool = False


@dataclass(eq=False)
class Image(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.IMAGE
    IS_LEAF: ClassVar[bool] = True

    src: str = ""
    alt_text: str = ""
    width: int | None = None
    caption: str = ""
    show_caption: bool = False


@dataclass(eq=False)
class HorizontalRule(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.HORIZONTAL_RULE
    IS_LEAF: ClassVar[bool] = True


@dataclass(eq=False)
class Embed(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.EMBED
    IS_LEAF: ClassVar[bool] = True

    kind: str = ""
    url: str = ""


@dataclass(eq=False)
class ColumnLayout(DocumentNode):
    TYPE: ClassVar[NodeType] = NodeType.COLUMN_LAYOUT

    columns: str = "1fr 1fr"


NODE_CLASSES: dict[NodeType, type[DocumentNode]] = {
    cls.TYPE: cls
    for cls in (
        Root,
        Paragraph,
        Heading,
        Text,
        ListNode,
        ListItem,
        Quote,
        Code,
        Table,
        TableRow,
        TableCell,
        Image,
        HorizontalRule,
        Embed,
        ColumnLayout,
    )
}


def attach(parent: DocumentNode, child: DocumentNode) -> DocumentNode:
    """Append child to a detached parent while building a subtree."""
    check_attachable(parent, child)
    child.parent = parent
    parent.children.append(child)
    return child
