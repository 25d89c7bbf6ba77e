"""Tests for per-item and cross-file work-item validation."""

from __future__ import annotations

import dataclasses

from kira.config import KiraConfig
from kira.frontmatter import parse_document
from kira.validation import (
    ValidationIssue,
    ValidationResult,
    categorize_issue,
    group_issues,
    validate_work_item,
    validate_work_items,
)
from tests._factory import WriteItem, make_item


def _strict(config: KiraConfig) -> KiraConfig:
    return dataclasses.replace(config, validation=dataclasses.replace(config.validation, strict=True))


class TestValidateWorkItem:
    def test_valid_item(self, config: KiraConfig) -> None:
        item, _ = parse_document(make_item("001", extra="priority: high\ntags: [a, b]"))
        assert validate_work_item(item, config) == []

    def test_missing_required_hardcoded(self, config: KiraConfig) -> None:
        item, _ = parse_document(make_item("001", title="", kind=""))
        assert validate_work_item(item, config) == [
            "missing required field: title",
            "missing required field: kind",
        ]

    def test_required_configured_field(self, config: KiraConfig) -> None:
        fields = dict(config.fields)
        fields["owner"] = dataclasses.replace(fields["assignee"], required=True)
        item, _ = parse_document(make_item("001"))
        assert validate_work_item(item, dataclasses.replace(config, fields=fields)) == [
            "missing required field: owner",
        ]

    def test_id_status_and_created(self, config: KiraConfig) -> None:
        item, _ = parse_document(make_item("1", status="bogus", created="2024/01/15"))
        assert validate_work_item(item, config) == [
            r"invalid ID format: 1 (expected format: ^\d{3}$)",
            "invalid status 'bogus'. Valid values: backlog, todo, doing, review, done, released, abandoned, archived",
            "invalid created date format: 2024/01/15",
        ]

    def test_configured_field_errors_joined(self, config: KiraConfig) -> None:
        item, _ = parse_document(make_item("001", extra="assignee: bad\nestimate: 500"))
        assert validate_work_item(item, config) == [
            "field 'assignee': invalid email format: bad; field 'estimate': value 500 is greater than max 100",
        ]

    def test_empty_configured_value_skipped(self, config: KiraConfig) -> None:
        item, _ = parse_document(make_item("001", extra='assignee: ""\ntags: []'))
        assert validate_work_item(item, config) == []

    def test_unconfigured_date_like_field(self, config: KiraConfig) -> None:
        item, _ = parse_document(make_item("001", extra="start_date: 2024/01/01\nnotes: anything"))
        assert validate_work_item(item, config) == ["invalid start_date date format: 2024/01/01"]

    def test_unknown_fields_only_in_strict_mode(self, config: KiraConfig) -> None:
        item, _ = parse_document(make_item("001", extra="zeta: 1\nalpha: 2"))
        assert validate_work_item(item, config) == []
        assert validate_work_item(item, _strict(config)) == [
            "unknown fields found (not in configuration): alpha, zeta",
        ]


class TestValidateWorkItems:
    def test_clean_project(self, config: KiraConfig, write_item: WriteItem) -> None:
        write_item("001-a.prd.md", make_item("001"))
        write_item("002-b.prd.md", make_item("002", status="todo"), folder="1_todo")
        result = validate_work_items(config)
        assert not result.has_errors()
        assert str(result) == ""

    def test_errors_keep_file_labels(self, config: KiraConfig, write_item: WriteItem) -> None:
        write_item("001-a.prd.md", make_item("001", status="bogus"))
        result = validate_work_items(config)
        assert [i.file for i in result.issues] == [".work/0_backlog/001-a.prd.md"]
        assert str(result).startswith(".work/0_backlog/001-a.prd.md: invalid status 'bogus'")

    def test_parse_failure_reported_and_others_still_checked(self, config: KiraConfig, write_item: WriteItem) -> None:
        write_item("001-a.prd.md", "# no front matter\n")
        write_item("002-b.prd.md", make_item("2"))
        messages = [i.message for i in validate_work_items(config).issues]
        assert messages == [
            "failed to parse file: missing front matter: first non-empty line must be '---'",
            r"invalid ID format: 2 (expected format: ^\d{3}$)",
        ]

    def test_control_character_reported_and_others_still_checked(
        self, config: KiraConfig, write_item: WriteItem
    ) -> None:
        write_item("001-a.prd.md", make_item("001", title="bad\x00title"))
        write_item("002-b.prd.md", make_item("2"))
        issues = validate_work_items(config).issues
        assert [i.file for i in issues] == [".work/0_backlog/001-a.prd.md", ".work/0_backlog/002-b.prd.md"]
        assert issues[0].message.startswith("failed to parse file: failed to parse front matter: unacceptable")
        assert issues[1].message == r"invalid ID format: 2 (expected format: ^\d{3}$)"

    def test_duplicate_ids(self, config: KiraConfig, write_item: WriteItem) -> None:
        write_item("001-a.prd.md", make_item("001"))
        write_item("001-b.prd.md", make_item("001"), folder="1_todo")
        result = validate_work_items(config)
        assert result.issues == [
            ValidationIssue(
                ".work/0_backlog/001-a.prd.md",
                "duplicate ID found: 001 in files .work/0_backlog/001-a.prd.md, .work/1_todo/001-b.prd.md",
            )
        ]

    def test_empty_ids_not_duplicates(self, config: KiraConfig, write_item: WriteItem) -> None:
        write_item("a.md", make_item(""))
        write_item("b.md", make_item(""))
        messages = [i.message for i in validate_work_items(config).issues]
        assert not any("duplicate" in m for m in messages)

    def test_single_doing_item_allowed(self, config: KiraConfig, write_item: WriteItem) -> None:
        write_item("001-a.prd.md", make_item("001", status="doing"), folder="2_doing")
        assert not validate_work_items(config).has_errors()

    def test_workflow_violation(self, config: KiraConfig, write_item: WriteItem) -> None:
        write_item("001-a.prd.md", make_item("001", status="doing"), folder="2_doing")
        write_item("002-b.prd.md", make_item("002", status="doing"), folder="2_doing")
        result = validate_work_items(config)
        assert result.issues == [
            ValidationIssue(
                "workflow",
                "multiple items in doing folder. Only one item allowed at a time. Found: 001-a.prd.md, 002-b.prd.md",
            )
        ]


class TestReporting:
    def test_categories(self) -> None:
        cases = {
            ValidationIssue("workflow", "multiple items in doing folder."): "workflow",
            ValidationIssue("f", "duplicate ID found: 001 in files f, g"): "duplicate",
            ValidationIssue("f", "failed to parse file: boom"): "parse",
            ValidationIssue("f", "unknown fields found (not in configuration): x"): "unknown_field",
            ValidationIssue("f", "field 'due': date 'x' does not match format: %Y-%m-%d"): "field",
            ValidationIssue("f", "invalid created date format: 2024/01/01"): "field",
            ValidationIssue("f", "invalid status 'x'. Valid values: a"): "other",
            ValidationIssue("f", "missing required field: title"): "other",
        }
        for issue, category in cases.items():
            assert categorize_issue(issue) == category, issue

    def test_group_issues_keeps_order(self) -> None:
        result = ValidationResult()
        result.add_error("a", "missing required field: id")
        result.add_error("b", "field 'x': expected string, got number")
        result.add_error("c", "missing required field: kind")
        groups = group_issues(result.issues)
        assert [i.file for i in groups["other"]] == ["a", "c"]
        assert [i.file for i in groups["field"]] == ["b"]
        assert groups["parse"] == []
