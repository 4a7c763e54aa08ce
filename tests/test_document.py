"""Tests for document decoding and preview extraction."""
import json

import pytest

from calming_notes.models.document import (
    BlockDoc,
    LegacyTreeDoc,
    PlainTextFallback,
    extract_preview,
    extract_text,
    parse_document,
    plain_text_to_document,
    to_plain_text,
)
from calming_notes.models.schema import EMPTY_DOCUMENT, UNTITLED_NOTE
from tests.fakes import block_doc, legacy_doc


class TestParseDocument:
    """Tests for structural shape detection."""

    def test_root_children_selects_legacy_tree(self):
        doc = parse_document(legacy_doc("Hello"))
        assert isinstance(doc, LegacyTreeDoc)

    def test_type_and_content_selects_block_doc(self):
        doc = parse_document(block_doc("Hello"))
        assert isinstance(doc, BlockDoc)

    def test_empty_document_is_block_doc(self):
        assert isinstance(parse_document(EMPTY_DOCUMENT), BlockDoc)

    def test_invalid_json_is_not_json_fallback(self):
        doc = parse_document("not json")
        assert isinstance(doc, PlainTextFallback)
        assert doc.is_json is False
        assert doc.text == "not json"

    def test_json_string_scalar_is_coerced(self):
        doc = parse_document(json.dumps("just text"))
        assert isinstance(doc, PlainTextFallback)
        assert doc.text == "just text"

    def test_number_scalar_is_coerced(self):
        doc = parse_document("42")
        assert doc.text == "42"

    def test_unrecognised_object_has_no_text(self):
        doc = parse_document(json.dumps({"blocks": [{"runs": []}]}))
        assert isinstance(doc, PlainTextFallback)
        assert doc.text == ""

    def test_non_string_input(self):
        doc = parse_document(None)
        assert isinstance(doc, PlainTextFallback)
        assert doc.is_json is False

    def test_non_list_children_degrade_to_empty(self):
        content = json.dumps({"root": {"children": "oops"}})
        doc = parse_document(content)
        assert isinstance(doc, LegacyTreeDoc)
        assert doc.root.children == []

    def test_non_object_children_are_dropped(self):
        content = json.dumps(
            {"type": "doc", "content": [1, "x", None, {"type": "text", "text": "ok"}]}
        )
        doc = parse_document(content)
        assert isinstance(doc, BlockDoc)
        assert len(doc.root.content) == 1

    def test_non_string_text_becomes_empty(self):
        content = json.dumps({"type": "doc", "content": [{"type": "text", "text": 5}]})
        doc = parse_document(content)
        assert doc.root.content[0].text == ""

    def test_empty_type_is_not_block_doc(self):
        content = json.dumps({"type": "", "content": [{"type": "text", "text": "x"}]})
        assert isinstance(parse_document(content), PlainTextFallback)


class TestExtractText:
    """Tests for text extraction from decoded documents."""

    def test_legacy_blocks_are_followed_by_space(self):
        text = extract_text(parse_document(legacy_doc("One", "Two")))
        assert text == "One Two "

    def test_legacy_heading_counts_as_block(self):
        content = json.dumps(
            {
                "root": {
                    "children": [
                        {"type": "heading", "children": [{"type": "text", "text": "Title"}]},
                        {"type": "paragraph", "children": [{"type": "text", "text": "Body"}]},
                    ]
                }
            }
        )
        assert extract_text(parse_document(content)) == "Title Body "

    def test_block_doc_concatenates_without_separator(self):
        text = extract_text(parse_document(block_doc("One", "Two")))
        assert text == "OneTwo"

    def test_block_doc_with_explicit_separator(self):
        text = extract_text(parse_document(block_doc("One", "Two")), "\n\n")
        assert text == "One\n\nTwo\n\n"

    def test_nested_marks_are_flattened(self):
        content = json.dumps(
            {
                "type": "doc",
                "content": [
                    {
                        "type": "bulletList",
                        "content": [
                            {
                                "type": "listItem",
                                "content": [
                                    {
                                        "type": "paragraph",
                                        "content": [
                                            {"type": "text", "text": "a "},
                                            {"type": "text", "text": "b", "marks": [{"type": "bold"}]},
                                        ],
                                    }
                                ],
                            }
                        ],
                    }
                ],
            }
        )
        assert extract_text(parse_document(content)) == "a b"

    def test_fallback_returns_its_text(self):
        assert extract_text(PlainTextFallback(text="raw")) == "raw"


class TestExtractPreview:
    """Tests for the list-view preview."""

    def test_legacy_shape(self):
        content = (
            '{"root":{"children":[{"type":"paragraph","children":'
            '[{"type":"text","text":"Hello world"}]}]}}'
        )
        assert extract_preview(content) == "Hello world"

    def test_block_shape(self):
        content = (
            '{"type":"doc","content":[{"type":"paragraph","content":'
            '[{"type":"text","text":"Hi"}]}]}'
        )
        assert extract_preview(content) == "Hi"

    def test_invalid_json(self):
        assert extract_preview("not json") == UNTITLED_NOTE

    def test_empty_document(self):
        assert extract_preview(EMPTY_DOCUMENT) == UNTITLED_NOTE

    def test_whitespace_only_text(self):
        assert extract_preview(block_doc("   ")) == UNTITLED_NOTE

    def test_long_text_is_cut_to_100_characters(self):
        preview = extract_preview(block_doc("x" * 250))
        assert len(preview) == 100
        assert preview == preview.strip()

    def test_long_legacy_text_is_cut_to_100_characters(self):
        preview = extract_preview(legacy_doc("a" * 60, "b" * 60))
        assert len(preview) == 100
        assert preview.startswith("a" * 60 + " ")

    def test_leading_whitespace_is_trimmed(self):
        assert extract_preview(block_doc("   padded  ")) == "padded"

    def test_custom_length(self):
        assert extract_preview(block_doc("abcdefgh"), length=3) == "abc"

    def test_scalar_json(self):
        assert extract_preview('"quoted"') == "quoted"

    @pytest.mark.parametrize(
        "content,expected",
        [
            ('["Buy milk"]', "Buy milk"),
            ('["a", 1, null, ["b", true]]', "a,1,,b,true"),
            ("[1.0, 2.5]", "1,2.5"),
            ("false", "false"),
        ],
    )
    def test_array_json_joins_elements(self, content, expected):
        """Arrays preview as their elements joined with commas."""
        assert extract_preview(content) == expected

    @pytest.mark.parametrize(
        "content", ["NaN", "Infinity", "-Infinity", '{"x": NaN}', "[NaN]"]
    )
    def test_non_finite_numbers_are_invalid(self, content):
        assert extract_preview(content) == UNTITLED_NOTE
        assert parse_document(content).is_json is False

    @pytest.mark.parametrize(
        "content",
        [
            "",
            "null",
            "[]",
            "{}",
            '{"root": null}',
            '{"root": {"children": [null, 1, {"type": "text"}]}}',
            '{"type": "doc", "content": {"not": "a list"}}',
            "[" * 5000 + "]" * 5000,
        ],
    )
    def test_never_raises(self, content):
        preview = extract_preview(content)
        assert isinstance(preview, str)
        assert preview


class TestPlainTextConversion:
    """Tests for the plain-text editor conversions."""

    def test_blocks_joined_by_blank_lines(self):
        assert to_plain_text(block_doc("One", "Two")) == "One\n\nTwo"

    def test_legacy_blocks_joined_by_blank_lines(self):
        assert to_plain_text(legacy_doc("One", "Two")) == "One\n\nTwo"

    def test_invalid_json_returned_verbatim(self):
        assert to_plain_text("plain words") == "plain words"

    def test_empty_content(self):
        assert to_plain_text("") == ""

    def test_plain_text_to_document(self):
        content = plain_text_to_document("Line one\nLine two")
        assert json.loads(content) == {
            "type": "doc",
            "content": [
                {
                    "type": "paragraph",
                    "content": [{"type": "text", "text": "Line one\nLine two"}],
                }
            ],
        }
        assert to_plain_text(content) == "Line one\nLine two"

    def test_empty_plain_text_is_empty_document(self):
        assert plain_text_to_document("") == EMPTY_DOCUMENT

    def test_unicode_is_not_escaped(self):
        assert "café" in plain_text_to_document("café")
