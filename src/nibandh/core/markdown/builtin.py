"""Built-in transformers and the default registry.

Order of ``DEFAULT_TRANSFORMERS`` is load-bearing: the specific constructs
(table, horizontal rule, image) come before the generic element and
text-format transformers so they get first refusal on export and import.
"""

import re
from collections.abc import Callable, Sequence

from nibandh.core.markdown.transformers import (
    ElementTransformer,
    ExportContext,
    InlineImporter,
    MultilineTransformer,
    TextFormatTransformer,
    TextMatchTransformer,
    TransformerRegistry,
    escape_markup,
    unescape_markup,
)
from nibandh.models.node import (
    Code,
    DocumentNode,
    Embed,
    Heading,
    HorizontalRule,
    Image,
    ListItem,
    ListNode,
    ListType,
    NodeType,
    Paragraph,
    Quote,
    Table,
    TableCell,
    TableRow,
    Text,
    TextFormat,
    attach,
)

LIST_INDENT = "    "

EMOJI_SHORTCODES: dict[str, str] = {
    "+1": "\U0001f44d",
    "-1": "\U0001f44e",
    "100": "\U0001f4af",
    "bulb": "\U0001f4a1",
    "check": "✔️",
    "clap": "\U0001f44f",
    "coffee": "☕",
    "cry": "\U0001f622",
    "eyes": "\U0001f440",
    "fire": "\U0001f525",
    "heart": "❤️",
    "joy": "\U0001f602",
    "laughing": "\U0001f606",
    "memo": "\U0001f4dd",
    "pray": "\U0001f64f",
    "rocket": "\U0001f680",
    "see_no_evil": "\U0001f648",
    "smile": "\U0001f604",
    "smiley": "\U0001f603",
    "sparkles": "✨",
    "star": "⭐",
    "tada": "\U0001f389",
    "thinking": "\U0001f914",
    "thumbsup": "\U0001f44d",
    "warning": "⚠️",
    "wave": "\U0001f44b",
    "wink": "\U0001f609",
    "x": "❌",
}


def _text_content(node: DocumentNode) -> str:
    if isinstance(node, Text):
        return node.content
    return "".join(_text_content(child) for child in node.children)


def append_line(block: DocumentNode, children: list[DocumentNode]) -> None:
    """Merge the inline children of a continuation line into block."""
    last = block.children[-1] if block.children else None
    first = children[0] if children else None
    if isinstance(last, Text) and isinstance(first, Text) and last.format == first.format:
        last.content += "\n" + first.content
        children = children[1:]
    elif isinstance(last, Text):
        last.content += "\n"
    elif isinstance(first, Text):
        first.content = "\n" + first.content
    elif block.children:
        attach(block, Text(content="\n"))
    for child in children:
        attach(block, child)


# -- table -------------------------------------------------------------------

_TABLE_ROW_RE = re.compile(r"^\|(.*)\|\s*$")
_TABLE_DIVIDER_RE = re.compile(r"^\|(\s*:?-{3,}:?\s*\|)+\s*$")
_CELL_SPLIT_RE = re.compile(r"(?<!\\)\|")


def _export_table(node: DocumentNode, ctx: ExportContext) -> str | None:
    rows = [row for row in node.children if isinstance(row, TableRow)]
    if not rows:
        return None
    lines: list[str] = []
    for index, row in enumerate(rows):
        cells = [
            ctx.inline(cell).replace("\n", " ").replace("|", "\\|")
            for cell in row.children
            if isinstance(cell, TableCell)
        ]
        lines.append("| " + " | ".join(cells) + " |")
        if index == 0:
            lines.append("| " + " | ".join("---" for _ in cells) + " |")
    return "\n".join(lines)


def _import_table(
    lines: Sequence[str], start: int, import_inline: InlineImporter
) -> tuple[DocumentNode, int] | None:
    end = start
    while end < len(lines) and _TABLE_ROW_RE.match(lines[end]):
        end += 1
    has_header = end - start > 1 and bool(_TABLE_DIVIDER_RE.match(lines[start + 1]))

    rows: list[DocumentNode] = []
    for index in range(start, end):
        if has_header and index == start + 1:
            continue
        match = _TABLE_ROW_RE.match(lines[index])
        if match is None:
            continue
        cells: list[DocumentNode] = []
        for raw in _CELL_SPLIT_RE.split(match.group(1)):
            content = raw.strip().replace("\\|", "|")
            cells.append(
                TableCell(
                    header=has_header and index == start,
                    children=[Paragraph(children=import_inline(content))],
                )
            )
        rows.append(TableRow(children=cells))
    return Table(children=rows), end


TABLE = MultilineTransformer(
    name="table",
    node_types=frozenset({NodeType.TABLE}),
    export=_export_table,
    start_reg_exp=_TABLE_ROW_RE,
    handle=_import_table,
)

# -- horizontal rule ---------------------------------------------------------

HORIZONTAL_RULE = ElementTransformer(
    name="horizontal_rule",
    node_types=frozenset({NodeType.HORIZONTAL_RULE}),
    export=lambda node, ctx: "***",
    reg_exp=re.compile(r"^(---|\*\*\*|___)\s?$"),
    replace=lambda match, children, previous: HorizontalRule(),
)

# -- image -------------------------------------------------------------------


_BRACKETS_RE = re.compile(r"[\\\[\]]")
_PARENS_RE = re.compile(r"[\\()]")


def _export_image(node: DocumentNode, ctx: ExportContext) -> str | None:
    if not isinstance(node, Image):
        return None
    if node.show_caption and node.caption.strip():
        return (
            f'<figure><img src="{escape_markup(node.src)}" alt="{escape_markup(node.alt_text)}" />'
            f"<figcaption>{escape_markup(node.caption)}</figcaption></figure>"
        )
    alt = _BRACKETS_RE.sub(r"\\\g<0>", node.alt_text)
    src = _PARENS_RE.sub(r"\\\g<0>", node.src)
    return f"![{alt}]({src})"


def _import_image(match: re.Match[str]) -> DocumentNode | None:
    groups = match.groupdict()
    if groups.get("fig_src") is not None:
        return Image(
            src=unescape_markup(match.group("fig_src")),
            alt_text=unescape_markup(match.group("fig_alt")),
            caption=unescape_markup(match.group("caption")),
            show_caption=True,
        )
    return Image(src=match.group("src"), alt_text=match.group("alt"))


IMAGE = TextMatchTransformer(
    name="image",
    node_types=frozenset({NodeType.IMAGE}),
    export=_export_image,
    import_reg_exp=re.compile(
        r'<figure><img src="(?P<fig_src>[^"]*)" alt="(?P<fig_alt>[^"]*)" />'
        r"<figcaption>(?P<caption>.*?)</figcaption></figure>"
        r"|!(?:\[(?P<alt>[^\[]*)\])(?:\((?P<src>[^()]+)\))"
    ),
    reg_exp=re.compile(r"!(?:\[(?P<alt>[^\[]*)\])(?:\((?P<src>[^()]+)\))$"),
    trigger=")",
    replace=_import_image,
)

# -- emoji -------------------------------------------------------------------


def _import_emoji(match: re.Match[str]) -> DocumentNode | None:
    emoji = EMOJI_SHORTCODES.get(match.group(1))
    if emoji is None:
        return None
    return Text(content=emoji)


EMOJI = TextMatchTransformer(
    name="emoji",
    node_types=frozenset(),
    export=lambda node, ctx: None,
    import_reg_exp=re.compile(r":([a-z0-9_+-]+):"),
    reg_exp=re.compile(r":([a-z0-9_+-]+):$"),
    trigger=":",
    replace=_import_emoji,
)

# -- tweet and generic embeds ------------------------------------------------

_TWEET_ID_RE = re.compile(r"/status(?:es)?/(\d+)")
TWEET_URL = "https://twitter.com/i/status/{}"


def _export_tweet(node: DocumentNode, ctx: ExportContext) -> str | None:
    if not isinstance(node, Embed) or node.kind != "tweet":
        return None
    match = _TWEET_ID_RE.search(node.url)
    if match is None:
        return None
    return f'<tweet id="{match.group(1)}" />'


TWEET = TextMatchTransformer(
    name="tweet",
    node_types=frozenset({NodeType.EMBED}),
    export=_export_tweet,
    import_reg_exp=re.compile(r'<tweet id="(\d+)" />'),
    reg_exp=re.compile(r'<tweet id="(\d+)" />$'),
    trigger=">",
    replace=lambda match: Embed(kind="tweet", url=TWEET_URL.format(match.group(1))),
)


def _export_embed(node: DocumentNode, ctx: ExportContext) -> str | None:
    if not isinstance(node, Embed) or not node.url:
        return None
    return f"[embed:{node.kind or 'link'}]({node.url})"


EMBED = TextMatchTransformer(
    name="embed",
    node_types=frozenset({NodeType.EMBED}),
    export=_export_embed,
    import_reg_exp=re.compile(r"\[embed:([a-z][\w-]*)\]\(([^()\s]+)\)"),
    reg_exp=re.compile(r"\[embed:([a-z][\w-]*)\]\(([^()\s]+)\)$"),
    trigger=")",
    replace=lambda match: Embed(kind=match.group(1), url=match.group(2)),
)

# -- lists -------------------------------------------------------------------


def _list_marker(node: ListNode, offset: int, item: ListItem) -> str:
    match node.list_type:
        case ListType.ORDERED:
            return f"{node.start + offset}. "
        case ListType.CHECKLIST:
            return "- [x] " if item.checked else "- [ ] "
        case ListType.UNORDERED:
            return "- "


def _render_list(node: ListNode, ctx: ExportContext, depth: int = 0) -> list[str]:
    lines: list[str] = []
    indent = LIST_INDENT * depth
    items = [item for item in node.children if isinstance(item, ListItem)]
    for offset, item in enumerate(items):
        inline = [child for child in item.children if not isinstance(child, ListNode)]
        lines.append(indent + _list_marker(node, offset, item) + ctx.render_inline(inline))
        for nested in item.children:
            if isinstance(nested, ListNode):
                lines.extend(_render_list(nested, ctx, depth + 1))
    return lines


def _list_exporter(list_type: ListType) -> Callable[[DocumentNode, ExportContext], str | None]:
    def export(node: DocumentNode, ctx: ExportContext) -> str | None:
        if not isinstance(node, ListNode) or node.list_type != list_type:
            return None
        return "\n".join(_render_list(node, ctx))

    return export


def _list_for_item(top: ListNode, depth: int, list_type: ListType, start: int) -> ListNode | None:
    """Find (or open) the list an item at depth belongs to, None to start a new top list."""
    current = top
    level = 0
    while level < depth and current.children:
        item = current.children[-1]
        last = item.children[-1] if item.children else None
        if not isinstance(last, ListNode):
            nested = ListNode(list_type=list_type, start=start)
            attach(item, nested)
            return nested
        current = last
        level += 1
    if current.list_type == list_type:
        return current
    if current is top or current.parent is None:
        return None
    nested = ListNode(list_type=list_type, start=start)
    attach(current.parent, nested)
    return nested


def _list_replacer(
    list_type: ListType,
) -> Callable[[re.Match[str], list[DocumentNode], DocumentNode | None], DocumentNode | None]:
    def replace(
        match: re.Match[str], children: list[DocumentNode], previous: DocumentNode | None
    ) -> DocumentNode | None:
        depth = len(match.group(1).expandtabs(len(LIST_INDENT))) // len(LIST_INDENT)
        start = int(match.group(2)) if list_type == ListType.ORDERED else 1
        checked = match.group(2).lower() == "x" if list_type == ListType.CHECKLIST else None
        item = ListItem(checked=checked, children=children)
        if isinstance(previous, ListNode):
            target = _list_for_item(previous, depth, list_type, start)
            if target is not None:
                attach(target, item)
                return None
        return ListNode(list_type=list_type, start=start, children=[item])

    return replace


CHECK_LIST = ElementTransformer(
    name="check_list",
    node_types=frozenset({NodeType.LIST}),
    export=_list_exporter(ListType.CHECKLIST),
    reg_exp=re.compile(r"^(\s*)[-*+]\s\[([ xX])\]\s"),
    replace=_list_replacer(ListType.CHECKLIST),
)

UNORDERED_LIST = ElementTransformer(
    name="unordered_list",
    node_types=frozenset({NodeType.LIST}),
    export=_list_exporter(ListType.UNORDERED),
    reg_exp=re.compile(r"^(\s*)[-*+]\s"),
    replace=_list_replacer(ListType.UNORDERED),
)

ORDERED_LIST = ElementTransformer(
    name="ordered_list",
    node_types=frozenset({NodeType.LIST}),
    export=_list_exporter(ListType.ORDERED),
    reg_exp=re.compile(r"^(\s*)(\d{1,9})\.\s"),
    replace=_list_replacer(ListType.ORDERED),
)

# -- headings and quotes -----------------------------------------------------


def _export_heading(node: DocumentNode, ctx: ExportContext) -> str | None:
    if not isinstance(node, Heading) or not 1 <= node.level <= 6:
        return None
    return "#" * node.level + " " + ctx.inline(node)


HEADING = ElementTransformer(
    name="heading",
    node_types=frozenset({NodeType.HEADING}),
    export=_export_heading,
    reg_exp=re.compile(r"^(#{1,6})\s"),
    replace=lambda match, children, previous: Heading(
        level=len(match.group(1)), children=children
    ),
)


def _export_quote(node: DocumentNode, ctx: ExportContext) -> str | None:
    return "\n".join("> " + line for line in ctx.inline(node).split("\n"))


def _import_quote(
    match: re.Match[str], children: list[DocumentNode], previous: DocumentNode | None
) -> DocumentNode | None:
    if isinstance(previous, Quote):
        append_line(previous, children)
        return None
    return Quote(children=children)


QUOTE = ElementTransformer(
    name="quote",
    node_types=frozenset({NodeType.QUOTE}),
    export=_export_quote,
    reg_exp=re.compile(r"^>\s?"),
    replace=_import_quote,
)

# -- code --------------------------------------------------------------------

_CODE_FENCE_RE = re.compile(r"^```([\w+#.-]*)\s*$")


def _export_code(node: DocumentNode, ctx: ExportContext) -> str | None:
    if not isinstance(node, Code):
        return None
    return f"```{node.language}\n{_text_content(node)}\n```"


def _import_code(
    lines: Sequence[str], start: int, import_inline: InlineImporter
) -> tuple[DocumentNode, int] | None:
    match = _CODE_FENCE_RE.match(lines[start])
    if match is None:
        return None
    end = start + 1
    while end < len(lines) and lines[end].strip() != "```":
        end += 1
    body = "\n".join(lines[start + 1 : end])
    children: list[DocumentNode] = [Text(content=body)] if body else []
    # An unclosed fence runs to the end of the document.
    return Code(language=match.group(1), children=children), min(end + 1, len(lines))


CODE = MultilineTransformer(
    name="code",
    node_types=frozenset({NodeType.CODE}),
    export=_export_code,
    start_reg_exp=_CODE_FENCE_RE,
    handle=_import_code,
)

# -- text formats ------------------------------------------------------------

STRIKETHROUGH = TextFormatTransformer(name="strikethrough", format=TextFormat.STRIKETHROUGH, tag="~~")
UNDERLINE = TextFormatTransformer(name="underline", format=TextFormat.UNDERLINE, tag="++")
BOLD = TextFormatTransformer(name="bold", format=TextFormat.BOLD, tag="**")
ITALIC_UNDERSCORE = TextFormatTransformer(
    name="italic_underscore", format=TextFormat.ITALIC, tag="_", intraword=False
)
ITALIC_STAR = TextFormatTransformer(name="italic_star", format=TextFormat.ITALIC, tag="*")


DEFAULT_TRANSFORMERS = (
    TABLE,
    HORIZONTAL_RULE,
    IMAGE,
    EMOJI,
    TWEET,
    EMBED,
    CHECK_LIST,
    HEADING,
    QUOTE,
    UNORDERED_LIST,
    ORDERED_LIST,
    CODE,
    STRIKETHROUGH,
    UNDERLINE,
    BOLD,
    ITALIC_UNDERSCORE,
    ITALIC_STAR,
)

DEFAULT_REGISTRY = TransformerRegistry(DEFAULT_TRANSFORMERS)
