"""Tests for the front-matter codec and deterministic writer."""

from __future__ import annotations

import datetime as dt

import pytest
import yaml

from kira.frontmatter import (
    FrontMatterWriteError,
    ParseError,
    WorkItem,
    format_field,
    needs_yaml_quoting,
    parse_document,
    render_document,
    yaml_quoted_string,
)
from tests._factory import make_item


class TestParseDocument:
    def test_hardcoded_and_dynamic_fields(self) -> None:
        item, body = parse_document(make_item("001", extra="priority: high\ntags: [a, b]"))
        assert item.id == "001"
        assert item.title == "Test item"
        assert item.created == "2024-01-15"
        assert item.fields == {"priority": "high", "tags": ["a", "b"]}
        assert "id" not in item.fields
        assert body == ["# Test item", "", "Some body text.", ""]

    def test_hardcoded_keep_source_text(self) -> None:
        item, _ = parse_document(make_item("001", created="2024-01-15T10:30:00Z"))
        assert item.id == "001"
        assert item.created == "2024-01-15T10:30:00Z"

    def test_empty_hardcoded_is_empty_string(self) -> None:
        item, _ = parse_document("---\nid:\ntitle: x\n---\n")
        assert item.id == ""

    def test_leading_blank_lines_allowed(self) -> None:
        item, body = parse_document("\n\n---\nid: 002\n---\nbody")
        assert item.id == "002"
        assert body == ["body"]

    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ("# just markdown\n", "missing front matter"),
            ("", "missing front matter"),
            ("---\nid: 001\n", "unterminated front matter"),
            ("---\nid: [001\n---\n", "failed to parse front matter"),
            ("---\n- a\n- b\n---\n", "front matter must be a mapping"),
            ("---\nid: [1, 2]\n---\n", "field 'id' must be a scalar value"),
            ("---\nid: 001\ntitle: bad\x00title\n---\n", "failed to parse front matter: unacceptable character"),
        ],
    )
    def test_parse_errors(self, text: str, message: str) -> None:
        with pytest.raises(ParseError, match=message):
            parse_document(text)


class TestQuoting:
    @pytest.mark.parametrize(
        "value",
        ["", " padded", "trailing ", "a: b", "#tag", "[x]", "x, y", 'say "hi"', "it's", "a\\b", "line\nbreak",
         "100%", "a & b", "*ref", "!tag", "a | b", "> x", "@user", "`code`", "- item", "?",
         "bell\x07", "nul\x00", "a\x85b", "a\u2028b", "a\u2029b", "\ufeffbom"],
    )
    def test_needs_quoting(self, value: str) -> None:
        assert needs_yaml_quoting(value)

    @pytest.mark.parametrize("value", ["plain", "hello world", "-x", "a-b", "v1.2.3-beta"])
    def test_plain(self, value: str) -> None:
        assert not needs_yaml_quoting(value)

    @pytest.mark.parametrize("value", ["true", "no", "null", "~", "123", "1.5", "2024-01-15"])
    def test_type_changing_strings_quoted(self, value: str) -> None:
        assert needs_yaml_quoting(value)
        assert not needs_yaml_quoting(value, keep_type=False)

    def test_escapes(self) -> None:
        assert yaml_quoted_string('a"b\\c\n\r\t') == '"a\\"b\\\\c\\n\\r\\t"'

    def test_control_characters_and_line_breaks_escaped(self) -> None:
        assert yaml_quoted_string("\x07\x00\x01\x7f\x85\u2028\u2029\ufeff") == '"\\a\\0\\x01\\x7F\\N\\L\\P\\uFEFF"'
        assert yaml_quoted_string("café \U0001f600") == '"café \U0001f600"'

    @pytest.mark.parametrize("value", ['quote "x"', "back\\slash", "tab\there", "a: b # c", "true", "  "])
    def test_quoted_values_reparse_identically(self, value: str) -> None:
        loaded = yaml.safe_load(format_field("k", value))
        assert loaded == {"k": value}


class TestFormatField:
    def test_scalars(self) -> None:
        assert format_field("n", 3) == "n: 3\n"
        assert format_field("f", 2.5) == "f: 2.5\n"
        assert format_field("big", 1e20) == "big: 1.0e+20\n"
        assert format_field("flag", True) == "flag: true\n"
        assert format_field("none", None) == "none: null\n"
        assert format_field("when", dt.date(2024, 1, 15)) == "when: 2024-01-15\n"

    def test_array_flow_style(self) -> None:
        assert format_field("tags", ["a b", "c,d", 1, True]) == 'tags: [a b, "c,d", 1, true]\n'
        assert format_field("empty", []) == "empty: []\n"

    def test_nested_mapping_block_style(self) -> None:
        assert format_field("meta", {"b": 1, "a": 2}) == "meta:\n  a: 2\n  b: 1\n"

    def test_unrepresentable_value_raises(self) -> None:
        with pytest.raises(FrontMatterWriteError, match="failed to write field 'obj'"):
            format_field("obj", object())


class TestRenderDocument:
    def test_canonical_order(self) -> None:
        item = WorkItem(
            id="001",
            title="Title",
            status="todo",
            kind="task",
            created="2024-01-15",
            fields={"zeta": "z", "alpha": "a"},
        )
        assert render_document(item, ["body"]) == (
            "---\nid: 001\ntitle: Title\nstatus: todo\nkind: task\ncreated: 2024-01-15\n"
            "alpha: a\nzeta: z\n---\nbody"
        )

    def test_round_trip_is_idempotent(self) -> None:
        source = make_item(
            "001",
            title="Fix the parser (v2)",
            extra="""
                tags: [beta, alpha]
                due: 2024-03-01
                estimate: 5
                note: "true"
                meta:
                  owner: team
            """,
            body="\n# Heading\n\n\n- list\n",
        )
        item, body = parse_document(source)
        first = render_document(item, body)
        again, again_body = parse_document(first)
        assert again == item
        assert again_body == body
        assert render_document(again, again_body) == first
        assert first.endswith("---\n\n# Heading\n\n\n- list\n")

    @pytest.mark.parametrize(
        "value", ["a\u2028b", "a\u2029b", "a\x85b", "bell\x07", "esc\x1b[0m", "del\x7f", "nul\x00"]
    )
    def test_unusual_characters_round_trip(self, value: str) -> None:
        item = WorkItem(id="001", title=f"title {value}", fields={"note": value, "tags": [value]})
        first = render_document(item, ["body"])
        again, body = parse_document(first)
        assert again == item
        assert render_document(again, body) == first

    def test_escaped_source_value_rewritten_escaped(self) -> None:
        item, body = parse_document(make_item("001", extra='note: "bell\\a"\nsep: "a\\Lb"'))
        assert item.fields == {"note": "bell\x07", "sep": "a\u2028b"}
        rendered = render_document(item, body)
        assert 'note: "bell\\a"\n' in rendered
        assert 'sep: "a\\Lb"\n' in rendered
        assert parse_document(rendered)[0] == item

    def test_body_without_trailing_newline_preserved(self) -> None:
        item, body = parse_document("---\nid: 001\n---\nlast line")
        assert render_document(item, body).endswith("---\nlast line")

    def test_crlf_body_preserved(self) -> None:
        item, body = parse_document("---\nid: 001\n---\r\nline one\r\nline two\r\n")
        assert body == ["line one\r", "line two\r", ""]
        assert render_document(item, body).endswith("---\nline one\r\nline two\r\n")
