"""Tests for rendering document trees as markdown."""

import pytest

from nibandh.core.markdown.serializer import MarkdownSerializer, serialize
from nibandh.core.markdown.transformers import ExportContext
from nibandh.core.tree.document import DocumentTree
from nibandh.models.node import (
    Code,
    ColumnLayout,
    DocumentNode,
    Embed,
    Heading,
    HorizontalRule,
    Image,
    ListItem,
    ListNode,
    ListType,
    Paragraph,
    Quote,
    Table,
    TableCell,
    TableRow,
    Text,
    TextFormat,
)


def _p(*texts: str) -> Paragraph:
    return Paragraph(children=[Text(content=t) for t in texts])


def test_empty_tree_serializes_to_empty_string() -> None:
    assert serialize(DocumentTree.empty()) == ""


def test_blocks_are_joined_with_blank_lines_and_empty_blocks_dropped() -> None:
    tree = DocumentTree.from_blocks(
        Heading(level=2, children=[Text(content="Intro")]),
        Paragraph(),
        _p("Body ", "text."),
        HorizontalRule(),
    )
    assert serialize(tree) == "## Intro\n\nBody text.\n\n***"


def test_text_formats_wrap_content_and_keep_whitespace_outside() -> None:
    tree = DocumentTree.from_blocks(
        Paragraph(
            children=[
                Text(content="a "),
                Text(content="bold ", format=TextFormat.BOLD),
                Text(content="both", format=TextFormat.BOLD | TextFormat.ITALIC),
                Text(content=" ~"),
                Text(content="gone", format=TextFormat.STRIKETHROUGH),
                Text(content="under", format=TextFormat.UNDERLINE),
            ]
        )
    )
    assert serialize(tree) == "a **bold** **_both_** \\~~~gone~~++under++"


def test_image_without_caption_uses_markdown_form() -> None:
    tree = DocumentTree.from_blocks(
        Paragraph(children=[Image(src="/img/a.png", alt_text="A cat", caption="hidden")])
    )
    assert serialize(tree) == "![A cat](/img/a.png)"


def test_image_with_shown_caption_uses_figure_form_and_escapes() -> None:
    image = Image(src="/a.png?x=1&y=2", alt_text='say "hi"', caption="<b>Tom & Jerry's</b>", show_caption=True)
    tree = DocumentTree.from_blocks(Paragraph(children=[image]))
    assert serialize(tree) == (
        '<figure><img src="/a.png?x=1&amp;y=2" alt="say &quot;hi&quot;" />'
        "<figcaption>&lt;b&gt;Tom &amp; Jerry&#39;s&lt;/b&gt;</figcaption></figure>"
    )


def test_shown_but_empty_caption_falls_back_to_markdown_form() -> None:
    tree = DocumentTree.from_blocks(Image(src="a.png", alt_text="a", show_caption=True))
    assert serialize(tree) == "![a](a.png)"


def test_whitespace_only_caption_falls_back_to_markdown_form() -> None:
    tree = DocumentTree.from_blocks(
        Paragraph(children=[Image(src="/a.png", alt_text="a", caption="   ", show_caption=True)])
    )
    assert serialize(tree) == "![a](/a.png)"


def test_markdown_image_form_escapes_brackets_and_parentheses() -> None:
    image = Image(src="/img/cat(1).png", alt_text="[draft] cat")
    tree = DocumentTree.from_blocks(Paragraph(children=[image]))
    assert serialize(tree) == r"![\[draft\] cat](/img/cat\(1\).png)"


def test_lists_render_markers_and_nesting() -> None:
    nested = ListNode(
        list_type=ListType.ORDERED,
        start=3,
        children=[ListItem(children=[Text(content="three")]), ListItem(children=[Text(content="four")])],
    )
    tree = DocumentTree.from_blocks(
        ListNode(children=[ListItem(children=[Text(content="top"), nested])]),
        ListNode(
            list_type=ListType.CHECKLIST,
            children=[
                ListItem(checked=True, children=[Text(content="done")]),
                ListItem(checked=False, children=[Text(content="todo")]),
            ],
        ),
    )
    assert serialize(tree) == "- top\n    3. three\n    4. four\n\n- [x] done\n- [ ] todo"


def test_quote_code_and_embeds() -> None:
    tree = DocumentTree.from_blocks(
        Quote(children=[Text(content="line one\nline two")]),
        Code(language="python", children=[Text(content="print('hi')")]),
        Paragraph(children=[Embed(kind="tweet", url="https://twitter.com/i/status/42")]),
        Paragraph(children=[Embed(kind="youtube", url="https://youtu.be/x")]),
    )
    assert serialize(tree) == (
        "> line one\n> line two\n\n"
        "```python\nprint('hi')\n```\n\n"
        '<tweet id="42" />\n\n'
        "[embed:youtube](https://youtu.be/x)"
    )


def test_table_renders_divider_after_first_row() -> None:
    def row(*cells: str) -> TableRow:
        return TableRow(children=[TableCell(children=[_p(c)]) for c in cells])

    tree = DocumentTree.from_blocks(Table(children=[row("a", "b|c"), row("1", "2")]))
    assert serialize(tree) == "| a | b\\|c |\n| --- | --- |\n| 1 | 2 |"


def test_containers_without_transformer_render_their_children() -> None:
    tree = DocumentTree.from_blocks(
        ColumnLayout(children=[_p("left"), _p("right")]),
        ListItem(children=[Text(content="stray")]),
    )
    assert serialize(tree) == "left\n\nright\n\nstray"


def test_unexportable_nodes_are_skipped() -> None:
    tree = DocumentTree.from_blocks(
        _p("before"),
        Heading(level=9, children=[Text(content="too deep")]),
        Embed(kind="video", url=""),
        _p("after"),
    )
    assert serialize(tree) == "before\n\nafter"


def test_failing_exporter_does_not_abort_render(monkeypatch: pytest.MonkeyPatch) -> None:
    serializer = MarkdownSerializer()
    original = serializer.registry.export

    def flaky(node: DocumentNode, ctx: ExportContext) -> str | None:
        if isinstance(node, Heading):
            raise RuntimeError("boom")
        return original(node, ctx)

    monkeypatch.setattr(serializer.registry, "export", flaky)
    tree = DocumentTree.from_blocks(Heading(children=[Text(content="x")]), _p("kept"))
    assert serializer.serialize(tree) == "kept"


def test_serialize_is_deterministic() -> None:
    tree = DocumentTree.from_blocks(
        Heading(children=[Text(content="T")]),
        _p("one"),
        Paragraph(children=[Image(src="a.png", alt_text="a")]),
    )
    assert serialize(tree) == serialize(tree)


@pytest.mark.parametrize(
    ("content", "markdown"),
    [
        ("2*3*4 and snake_case_name", r"2\*3\*4 and snake_case_name"),
        ("_private and C++", r"\_private and C\+\+"),
        ("~~kept~~", r"\~\~kept\~\~"),
        ("see :fire: here", r"see \:fire: here"),
        ("at 10: noon", "at 10: noon"),
        ("![x](y) and [link]", r"!\[x](y) and \[link]"),
        ("a <tweet> but 1 < 2", r"a \<tweet> but 1 < 2"),
        (r"C:\temp", r"C:\\temp"),
    ],
)
def test_plain_text_markup_characters_are_escaped(content: str, markdown: str) -> None:
    assert serialize(DocumentTree.from_blocks(_p(content))) == markdown


@pytest.mark.parametrize(
    ("content", "markdown"),
    [
        ("# not a heading", r"\# not a heading"),
        ("> not a quote", r"\> not a quote"),
        ("- not a list", r"\- not a list"),
        ("12. not a list", r"12\. not a list"),
        ("| not | a table |", r"\| not | a table |"),
        ("```not a fence", r"\```not a fence"),
        ("---", r"\---"),
        ("first\n## second", "first\n\\## second"),
        ("mid-line # and - stay", "mid-line # and - stay"),
    ],
)
def test_block_openers_at_line_start_are_escaped(content: str, markdown: str) -> None:
    assert serialize(DocumentTree.from_blocks(_p(content))) == markdown


def test_code_and_formatted_text_escaping() -> None:
    tree = DocumentTree.from_blocks(
        Paragraph(children=[Text(content="a*b", format=TextFormat.BOLD)]),
        Code(children=[Text(content="x = a*b_c  # [1]")]),
    )
    assert serialize(tree) == "**a\\*b**\n\n```\nx = a*b_c  # [1]\n```"
