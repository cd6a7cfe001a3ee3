"""Build tree fragments from markdown.

Two modes share the registry's text-match transformers:

* bulk (``import_inline``, ``import_markdown``, ``paste``) scans whole text
  with each transformer's ``import_reg_exp``;
* incremental (``handle_typed_character``) runs only the transformers whose
  trigger was just typed, with their ``reg_exp`` anchored at the caret.
"""

from functools import partial

from loguru import logger

from nibandh.core.markdown.builtin import DEFAULT_REGISTRY, append_line
from nibandh.core.markdown.transformers import (
    TextFormatTransformer,
    TransformerRegistry,
    park_escapes,
    restore_escapes,
)
from nibandh.core.tree.document import DocumentTree
from nibandh.models.node import (
    DocumentNode,
    Embed,
    Image,
    NodeType,
    Paragraph,
    Root,
    Text,
    TextFormat,
    iter_subtree,
)


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def _find_closing(text: str, transformer: TextFormatTransformer, start: int) -> int:
    """Index of the closing marker for an opener ending at start, or -1."""
    tag = transformer.tag
    index = text.find(tag, start + 1)
    while index != -1:
        after = index + len(tag)
        valid = not text[index - 1].isspace()
        if valid and not transformer.intraword and after < len(text):
            valid = not _is_word_char(text[after])
        if valid:
            return index
        index = text.find(tag, index + 1)
    return -1


def _opening_at(
    text: str, pos: int, fmt: TextFormat, candidates: list[TextFormatTransformer]
) -> tuple[TextFormatTransformer, int] | None:
    for transformer in candidates:
        tag = transformer.tag
        if fmt & transformer.format or not text.startswith(tag, pos):
            continue
        inner_start = pos + len(tag)
        if inner_start >= len(text) or text[inner_start].isspace():
            continue
        if not transformer.intraword and pos > 0 and _is_word_char(text[pos - 1]):
            continue
        close = _find_closing(text, transformer, inner_start)
        if close != -1:
            return transformer, close
    return None


def _parse_formats(
    text: str, fmt: TextFormat, candidates: list[TextFormatTransformer]
) -> list[Text]:
    nodes: list[Text] = []
    plain_start = pos = 0
    while pos < len(text):
        found = _opening_at(text, pos, fmt, candidates)
        if found is None:
            pos += 1
            continue
        transformer, close = found
        if pos > plain_start:
            nodes.append(Text(content=text[plain_start:pos], format=fmt))
        inner = text[pos + len(transformer.tag) : close]
        nodes.extend(_parse_formats(inner, fmt | transformer.format, candidates))
        pos = plain_start = close + len(transformer.tag)
    if plain_start < len(text):
        nodes.append(Text(content=text[plain_start:], format=fmt))
    return nodes


def _text_match_segments(text: str, registry: TransformerRegistry) -> list[str | DocumentNode]:
    """Split text around text-match constructs. Earlier transformers win overlaps."""
    if not text:
        return []
    for transformer in registry.text_match:
        for match in transformer.import_reg_exp.finditer(text):
            node = transformer.replace(match)
            if node is None:
                continue
            if isinstance(node, Text) and node.format == TextFormat.NONE:
                # Plain replacements (emoji) are spliced back into the text.
                spliced = text[: match.start()] + node.content + text[match.end() :]
                return _text_match_segments(spliced, registry)
            return [
                *_text_match_segments(text[: match.start()], registry),
                node,
                *_text_match_segments(text[match.end() :], registry),
            ]
    return [text]


def _restore_literals(node: DocumentNode) -> None:
    for current in iter_subtree(node):
        if isinstance(current, Text):
            current.content = restore_escapes(current.content)
        elif isinstance(current, Image):
            current.src = restore_escapes(current.src)
            current.alt_text = restore_escapes(current.alt_text)
            current.caption = restore_escapes(current.caption)
        elif isinstance(current, Embed):
            current.url = restore_escapes(current.url)


def import_inline(text: str, registry: TransformerRegistry = DEFAULT_REGISTRY) -> list[DocumentNode]:
    """Convert one line of inline markdown into text and inline nodes.

    Backslash-escaped characters are taken literally.
    """
    candidates = sorted(registry.text_format, key=lambda t: -len(t.tag))
    segments = _text_match_segments(park_escapes(text), registry)
    # A spliced emoji can leave two adjacent strings; join them before format parsing.
    merged: list[str | DocumentNode] = []
    for segment in segments:
        if isinstance(segment, str) and merged and isinstance(merged[-1], str):
            merged[-1] += segment
        else:
            merged.append(segment)

    nodes: list[DocumentNode] = []
    for segment in merged:
        if isinstance(segment, str):
            nodes.extend(_parse_formats(segment, TextFormat.NONE, candidates))
        else:
            nodes.append(segment)
    for node in nodes:
        _restore_literals(node)
    return nodes


def import_blocks(text: str, registry: TransformerRegistry = DEFAULT_REGISTRY) -> list[DocumentNode]:
    """Convert markdown into detached block nodes."""
    inline = partial(import_inline, registry=registry)
    lines = text.replace("\r\n", "\n").split("\n")
    blocks: list[DocumentNode] = []
    previous: DocumentNode | None = None
    index = 0
    while index < len(lines):
        line = lines[index]
        if not line.strip():
            previous = None
            index += 1
            continue

        handled = False
        for multiline in registry.multiline:
            if not multiline.start_reg_exp.match(line):
                continue
            result = multiline.handle(lines, index, inline)
            if result is None:
                continue
            block, index = result
            blocks.append(block)
            previous = block
            handled = True
            break
        if handled:
            continue

        for element in registry.element:
            match = element.reg_exp.match(line)
            if match is None:
                continue
            block = element.replace(match, inline(line[match.end() :]), previous)
            if block is not None:
                blocks.append(block)
                previous = block
            handled = True
            break

        if not handled:
            children = inline(line)
            if isinstance(previous, Paragraph):
                append_line(previous, children)
            else:
                previous = Paragraph(children=children)
                blocks.append(previous)
        index += 1
    return blocks


def import_markdown(text: str, registry: TransformerRegistry = DEFAULT_REGISTRY) -> DocumentTree:
    """Parse a whole markdown document. Empty input gives the empty-draft tree."""
    blocks = import_blocks(text, registry)
    if not blocks:
        return DocumentTree.empty()
    return DocumentTree(Root(children=blocks))


_INLINE_PARENTS = frozenset(
    {NodeType.PARAGRAPH, NodeType.HEADING, NodeType.QUOTE, NodeType.LIST_ITEM, NodeType.TABLE_CELL}
)


def paste(
    tree: DocumentTree,
    parent: DocumentNode,
    index: int,
    text: str,
    registry: TransformerRegistry = DEFAULT_REGISTRY,
) -> list[DocumentNode]:
    """Insert pasted text under parent at index and return the inserted nodes.

    A single line pasted into a text-holding block is imported inline;
    anything else is imported as blocks.
    """
    single_line = "\n" not in text.strip("\n")
    if single_line and parent.type in _INLINE_PARENTS:
        nodes = import_inline(text.strip("\n"), registry)
    else:
        nodes = import_blocks(text, registry)
    for offset, node in enumerate(nodes):
        tree.insert(parent, index + offset, node)
    logger.debug("Pasted {} node(s) into {} node", len(nodes), parent.type)
    return nodes


def handle_typed_character(
    tree: DocumentTree,
    text_node: Text,
    caret: int,
    char: str,
    registry: TransformerRegistry = DEFAULT_REGISTRY,
) -> DocumentNode | None:
    """Apply the first text-match transformer completed by typing char.

    ``char`` has already been inserted, so it is the last character before
    ``caret``. Returns the produced node, or None when nothing matched. Only
    transformers triggered by char are consulted.
    """
    before = text_node.content[:caret]
    if not char or not before.endswith(char):
        return None
    after = text_node.content[caret:]

    for transformer in registry.triggered_by(char):
        match = transformer.reg_exp.search(before)
        if match is None:
            continue
        node = transformer.replace(match)
        if node is None:
            continue
        left = before[: match.start()]
        if isinstance(node, Text):
            text_node.content = left + node.content + after
            return text_node

        replacements: list[DocumentNode] = []
        if left:
            replacements.append(Text(content=left, format=text_node.format))
        replacements.append(node)
        if after:
            replacements.append(Text(content=after, format=text_node.format))
        tree.replace(text_node, *replacements)
        logger.debug("Typed {!r} completed {} transformer", char, transformer.name)
        return node
    return None
