"""Tests for article front matter."""

from nibandh.core.publish.frontmatter import (
    FrontMatter,
    parse_front_matter,
    render_document,
    render_front_matter,
)


def _meta(**overrides: object) -> FrontMatter:
    fields: dict = {
        "title": 'Say "hello"',
        "date": "2024-05-01",
        "tags": ("python", "web"),
        "description": "A short intro",
        "cover": "/images/cover_intro.png",
        "cover_position": 50.0,
        "last_updated": "2024-05-02T08:00:00.000Z",
    }
    fields.update(overrides)
    return FrontMatter(**fields)


def test_render_front_matter_layout() -> None:
    assert render_front_matter(_meta()) == (
        "---\n"
        'title: "Say \\"hello\\""\n'
        'date: "2024-05-01"\n'
        'tags: ["python", "web"]\n'
        'description: "A short intro"\n'
        'cover: "/images/cover_intro.png"\n'
        "cover_position: 50\n"
        'last_updated: "2024-05-02T08:00:00.000Z"\n'
        "---\n\n"
    )


def test_render_includes_draft_id_only_when_given() -> None:
    assert "draft_id" not in render_front_matter(_meta())
    rendered = render_front_matter(_meta(draft_id="abc-123"))
    assert 'draft_id: "abc-123"\n---' in rendered


def test_render_fractional_position_and_missing_last_updated() -> None:
    rendered = render_front_matter(_meta(cover_position=33.5, last_updated="", tags=()))
    assert "cover_position: 33.5\n" in rendered
    assert 'last_updated: "2024-05-01"\n' in rendered
    assert "tags: []\n" in rendered


def test_parse_reads_rendered_header() -> None:
    fields, body = parse_front_matter(render_document(_meta(draft_id="d1"), "# Body\n\ntext"))
    assert fields == {
        "title": 'Say "hello"',
        "date": "2024-05-01",
        "tags": ["python", "web"],
        "description": "A short intro",
        "cover": "/images/cover_intro.png",
        "cover_position": 50,
        "last_updated": "2024-05-02T08:00:00.000Z",
        "draft_id": "d1",
    }
    assert body == "# Body\n\ntext"


def test_parse_without_header_returns_text() -> None:
    assert parse_front_matter("just text") == ({}, "just text")


def test_parse_unterminated_header_is_treated_as_body() -> None:
    text = "---\ntitle: x\nno closing fence"
    assert parse_front_matter(text) == ({}, text)


def test_parse_hand_written_values() -> None:
    fields, body = parse_front_matter("---\ntitle: Plain title\ncover_position: 12.5\n---\nbody")
    assert fields == {"title": "Plain title", "cover_position": 12.5}
    assert body == "body"


def test_backslashes_survive_round_trip() -> None:
    meta = _meta(title=r"C:\temp\new", cover=r"\\share\cover.png")
    rendered = render_front_matter(meta)
    assert 'title: "C:\\\\temp\\\\new"\n' in rendered
    fields, _ = parse_front_matter(render_document(meta, "body"))
    assert fields["title"] == r"C:\temp\new"
    assert fields["cover"] == r"\\share\cover.png"


def test_newlines_stay_inside_the_header() -> None:
    meta = _meta(description='line1\n---\nline2 "quoted"', title="Two\nlines")
    fields, body = parse_front_matter(render_document(meta, "BODY"))
    assert fields["description"] == 'line1\n---\nline2 "quoted"'
    assert fields["title"] == "Two\nlines"
    assert fields["cover"] == "/images/cover_intro.png"
    assert body == "BODY"


def test_unicode_is_written_verbatim() -> None:
    rendered = render_front_matter(_meta(title="नमस्ते दुनिया"))
    assert 'title: "नमस्ते दुनिया"\n' in rendered
    assert parse_front_matter(rendered)[0]["title"] == "नमस्ते दुनिया"


def test_parse_non_mapping_header_is_treated_as_body() -> None:
    text = "---\n- just\n- a list\n---\nbody"
    assert parse_front_matter(text) == ({}, text)


def test_parse_invalid_yaml_is_treated_as_body() -> None:
    text = '---\ntitle: "unclosed\n---\nbody'
    assert parse_front_matter(text) == ({}, text)
