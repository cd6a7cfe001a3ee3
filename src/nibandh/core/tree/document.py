"""Document tree: keyed node graph with invariant-preserving structural operations."""

from collections.abc import Iterator

from nibandh.models.node import (
    DocumentNode,
    Paragraph,
    Root,
    TreeStructureError,
    check_attachable,
    iter_subtree,
)


class DocumentTree:
    """A single-rooted tree of document nodes.

    Every attached node gets a key unique within this tree instance. Keys are
    handed out on attachment, so the same content parsed twice yields
    different keys.
    """

    def __init__(self, root: Root | None = None) -> None:
        self.root = root if root is not None else Root()
        if self.root.parent is not None:
            msg = "root node cannot have a parent"
            raise TreeStructureError(msg)
        self._nodes: dict[str, DocumentNode] = {}
        self._next_key = 1
        self._register(self.root)

    @classmethod
    def empty(cls) -> "DocumentTree":
        """Return the state of a fresh draft: root plus one empty paragraph."""
        return cls(Root(children=[Paragraph()]))

    @classmethod
    def from_blocks(cls, *blocks: DocumentNode) -> "DocumentTree":
        return cls(Root(children=list(blocks)))

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[DocumentNode]:
        return self.walk()

    def walk(self) -> Iterator[DocumentNode]:
        """Depth-first pre-order traversal from the root."""
        return iter_subtree(self.root)

    def find(self, key: str) -> DocumentNode | None:
        return self._nodes.get(key)

    def contains(self, node: DocumentNode) -> bool:
        return self._nodes.get(node.key) is node

    def append(self, parent: DocumentNode, child: DocumentNode) -> DocumentNode:
        return self.insert(parent, len(parent.children), child)

    def insert(self, parent: DocumentNode, index: int, child: DocumentNode) -> DocumentNode:
        """Attach a detached subtree under parent at index."""
        self._check_owned(parent)
        check_attachable(parent, child)
        parent.children.insert(index, child)
        child.parent = parent
        self._register(child)
        return child

    def remove(self, node: DocumentNode) -> DocumentNode:
        """Detach node (with its subtree) and return it."""
        self._check_owned(node)
        if node is self.root:
            msg = "cannot remove the root node"
            raise TreeStructureError(msg)
        parent = node.parent
        if parent is None:
            msg = "node is not attached to a parent"
            raise TreeStructureError(msg)
        del parent.children[node.index_in_parent()]
        node.parent = None
        for detached in iter_subtree(node):
            self._nodes.pop(detached.key, None)
            detached.key = ""
        return node

    def replace(self, node: DocumentNode, *replacements: DocumentNode) -> None:
        """Put replacements where node was. No replacements means plain removal."""
        self._check_owned(node)
        parent = node.parent
        if parent is None:
            msg = "cannot replace the root node"
            raise TreeStructureError(msg)
        index = node.index_in_parent()
        self.remove(node)
        for offset, replacement in enumerate(replacements):
            self.insert(parent, index + offset, replacement)

    def _check_owned(self, node: DocumentNode) -> None:
        if not self.contains(node):
            msg = f"{node.type} node does not belong to this tree"
            raise TreeStructureError(msg)

    def _register(self, subtree: DocumentNode) -> None:
        for node in iter_subtree(subtree):
            node.key = str(self._next_key)
            self._next_key += 1
            self._nodes[node.key] = node
