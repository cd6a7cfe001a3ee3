"""Tests for the transformer registry."""

import re

import pytest

from nibandh.core.markdown.builtin import (
    BOLD,
    DEFAULT_REGISTRY,
    DEFAULT_TRANSFORMERS,
    EMBED,
    IMAGE,
    ITALIC_STAR,
    TWEET,
)
from nibandh.core.markdown.serializer import MarkdownSerializer
from nibandh.core.markdown.transformers import (
    TextMatchTransformer,
    TransformerRegistry,
    escape_line_starts,
    escape_markup,
    escape_text,
    park_escapes,
    restore_escapes,
    unescape_markup,
)
from nibandh.models.node import Embed, NodeType, Paragraph, TextFormat


def test_default_order() -> None:
    assert [t.name for t in DEFAULT_REGISTRY] == [
        "table",
        "horizontal_rule",
        "image",
        "emoji",
        "tweet",
        "embed",
        "check_list",
        "heading",
        "quote",
        "unordered_list",
        "ordered_list",
        "code",
        "strikethrough",
        "underline",
        "bold",
        "italic_underscore",
        "italic_star",
    ]
    assert len(DEFAULT_REGISTRY) == len(DEFAULT_TRANSFORMERS)


def test_priority_is_position() -> None:
    assert DEFAULT_REGISTRY.priority("image") < DEFAULT_REGISTRY.priority("embed")
    with pytest.raises(KeyError):
        DEFAULT_REGISTRY.priority("nope")


def test_kind_views_preserve_order() -> None:
    assert [t.name for t in DEFAULT_REGISTRY.multiline] == ["table", "code"]
    assert [t.name for t in DEFAULT_REGISTRY.text_match] == ["image", "emoji", "tweet", "embed"]
    assert DEFAULT_REGISTRY.element[0].name == "horizontal_rule"
    assert DEFAULT_REGISTRY.text_format[-1] is ITALIC_STAR


def test_duplicate_names_are_rejected() -> None:
    with pytest.raises(ValueError, match="duplicate"):
        TransformerRegistry([BOLD, BOLD])


def test_triggered_by_filters_on_trigger() -> None:
    assert DEFAULT_REGISTRY.triggered_by(")") == (IMAGE, EMBED)
    assert DEFAULT_REGISTRY.triggered_by(">") == (TWEET,)
    assert DEFAULT_REGISTRY.triggered_by("x") == ()


def test_export_first_non_null_wins() -> None:
    ctx = MarkdownSerializer()
    tweet = Embed(kind="tweet", url="https://twitter.com/jack/status/20")
    assert DEFAULT_REGISTRY.export(tweet, ctx) == '<tweet id="20" />'

    # Without a status id the tweet exporter declines and the generic embed wins.
    bare = Embed(kind="tweet", url="https://twitter.com/jack")
    assert DEFAULT_REGISTRY.export(bare, ctx) == "[embed:tweet](https://twitter.com/jack)"

    assert DEFAULT_REGISTRY.export(Paragraph(), ctx) is None


def test_custom_registry_order_changes_winner() -> None:
    shout = TextMatchTransformer(
        name="shout",
        node_types=frozenset({NodeType.EMBED}),
        export=lambda node, ctx: "EMBED!",
        import_reg_exp=re.compile(r"!!"),
        reg_exp=re.compile(r"!!$"),
        trigger="!",
        replace=lambda match: Embed(kind="shout"),
    )
    ctx = MarkdownSerializer()
    node = Embed(kind="video", url="https://example.com/v")
    assert TransformerRegistry([EMBED, shout]).export(node, ctx) == "[embed:video](https://example.com/v)"
    assert TransformerRegistry([shout, EMBED]).export(node, ctx) == "EMBED!"


def test_format_markers_one_per_flag_outermost_first() -> None:
    markers = DEFAULT_REGISTRY.format_markers(TextFormat.BOLD | TextFormat.ITALIC)
    assert markers == ["**", "_"]
    assert DEFAULT_REGISTRY.format_markers(TextFormat.NONE) == []
    # Subscript has no marker.
    assert DEFAULT_REGISTRY.format_markers(TextFormat.SUBSCRIPT) == []


def test_escape_markup_round_trip() -> None:
    raw = """a & b < c > "d" 'e'"""
    escaped = escape_markup(raw)
    assert escaped == "a &amp; b &lt; c &gt; &quot;d&quot; &#39;e&#39;"
    assert unescape_markup(escaped) == raw


def test_escape_markup_hides_backslashes() -> None:
    assert escape_markup(r"a\b") == "a&#92;b"
    assert unescape_markup(escape_markup(r"a\*b")) == r"a\*b"


def test_parked_escapes_are_restored_as_literals() -> None:
    parked = park_escapes(r"\*a\_b\\ \q")
    assert "*" not in parked
    assert "_" not in parked
    assert parked.endswith(r" \q")
    assert restore_escapes(parked) == r"*a_b\ \q"


def test_escaped_text_parks_back_to_the_original() -> None:
    text = r"2*3 _x_ ~~y~~ ++z++ [a](b) <tag> :fire: C:\dir snake_case"
    assert restore_escapes(park_escapes(escape_text(text))) == text


def test_escape_line_starts_touches_only_line_openings() -> None:
    assert escape_line_starts("# a\ntext # b\n  - c\n3. d") == "\\# a\ntext # b\n  \\- c\n3\\. d"
