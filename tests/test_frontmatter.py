"""
Tests for frontmatter parsing, previews and embedded labels.
"""

import pytest

from keepsake.frontmatter import (
    LABEL_KEY,
    PREVIEW_MAX_LENGTH,
    extract_label,
    generate_preview,
    inject_label,
    join_frontmatter,
    split_frontmatter,
    strip_label,
)

POST = "---\ntitle: Hello\ntags:\n- a\n- b\n---\n\nFirst paragraph.\n\nSecond.\n"


class TestSplit:

    def test_no_frontmatter(self):
        assert split_frontmatter("just text") == ({}, "just text")

    def test_parses_mapping(self):
        data, body = split_frontmatter(POST)
        assert data == {"title": "Hello", "tags": ["a", "b"]}
        assert body == "\nFirst paragraph.\n\nSecond.\n"

    def test_empty_block(self):
        data, body = split_frontmatter("---\n---\nbody")
        assert data == {}
        assert body == "body"

    def test_crlf(self):
        data, body = split_frontmatter("---\r\ntitle: x\r\n---\r\nbody")
        assert data == {"title": "x"}
        assert body == "body"

    def test_invalid_yaml_raises(self):
        with pytest.raises(ValueError):
            split_frontmatter("---\ntitle: [unclosed\n---\nbody")

    def test_non_mapping_raises(self):
        with pytest.raises(ValueError):
            split_frontmatter("---\n- a\n- b\n---\nbody")

    def test_dashes_later_in_document_are_body(self):
        content = "intro\n---\nnot: frontmatter\n---\n"
        assert split_frontmatter(content) == ({}, content)

    def test_join_keeps_body(self):
        data, body = split_frontmatter(POST)
        again, again_body = split_frontmatter(join_frontmatter(data, body))
        assert again == data
        assert again_body == body


class TestPreview:

    def test_strips_frontmatter(self):
        assert generate_preview(POST) == "First paragraph.\n\nSecond."

    def test_truncates(self):
        preview = generate_preview("x" * 500)
        assert len(preview) == PREVIEW_MAX_LENGTH

    def test_plain_content(self):
        assert generate_preview("  A  ") == "A"

    def test_malformed_frontmatter_uses_whole_content(self):
        content = "---\ntitle: [unclosed\n---\nbody"
        assert generate_preview(content) == content[:PREVIEW_MAX_LENGTH]


class TestLabels:
    """Labels are embedded in the snapshot file and hidden from callers."""

    def test_inject_into_existing_frontmatter(self):
        labeled = inject_label(POST, "Draft 1")
        data, body = split_frontmatter(labeled)
        assert data[LABEL_KEY] == "Draft 1"
        assert data["title"] == "Hello"
        assert body == split_frontmatter(POST)[1]

    def test_inject_creates_frontmatter(self):
        labeled = inject_label("plain body\n", "keep")
        assert extract_label(labeled) == "keep"
        assert split_frontmatter(labeled)[1] == "plain body\n"

    def test_inject_replaces_previous_label(self):
        labeled = inject_label(inject_label(POST, "one"), "two")
        assert extract_label(labeled) == "two"

    def test_extract_missing(self):
        assert extract_label(POST) is None
        assert extract_label("no frontmatter") is None

    def test_extract_ignores_non_string(self):
        assert extract_label(f"---\n{LABEL_KEY}: 12\n---\nx") is None

    def test_strip_restores_plain_content(self):
        assert strip_label(inject_label("plain body\n", "keep")) == "plain body\n"

    def test_strip_keeps_other_keys(self):
        stripped = strip_label(inject_label(POST, "keep"))
        data, body = split_frontmatter(stripped)
        assert data == {"title": "Hello", "tags": ["a", "b"]}
        assert body == "\nFirst paragraph.\n\nSecond.\n"

    def test_strip_without_label_is_identity(self):
        assert strip_label(POST) == POST

    def test_malformed_frontmatter(self):
        """A label can still be stored in front of an unparseable header."""
        content = "---\ntitle: [unclosed\n---\nbody"
        labeled = inject_label(content, "keep")
        assert extract_label(labeled) == "keep"
        assert strip_label(labeled) == content

    def test_unicode_label(self):
        labeled = inject_label("text", "Версия ✓")
        assert extract_label(labeled) == "Версия ✓"
