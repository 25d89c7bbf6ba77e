"""Work-item validation -- per-file checks plus cross-file invariants.

Problems are accumulated into a ``ValidationResult`` rather than raised, so
one broken file never hides the report for the rest. Only a
``ConfigurationError`` (raised while loading the schema) stops a run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from kira.config import KiraConfig, is_hardcoded_field
from kira.dates import DEFAULT_DATE_FORMAT, parse_date
from kira.fields import validate_field_value
from kira.frontmatter import ParseError, WorkItem, parse_document
from kira.values import is_empty_value
from kira.workspace import WorkspaceError, display_path, get_work_item_files, read_work_item

logger = logging.getLogger(__name__)

WORKFLOW_FILE = "workflow"
DOING_STATUS = "doing"

IssueCategory = Literal["field", "unknown_field", "workflow", "duplicate", "parse", "other"]


@dataclass(frozen=True)
class ValidationIssue:
    """One (file, message) entry of a report."""

    file: str
    message: str

    def __str__(self) -> str:
        return f"{self.file}: {self.message}"


@dataclass
class ValidationResult:
    """Ordered list of issues. Fix operations reuse it to report applied fixes."""

    issues: list[ValidationIssue] = field(default_factory=list)

    def add_error(self, file: str, message: str) -> None:
        self.issues.append(ValidationIssue(file=file, message=message))

    def extend(self, other: ValidationResult) -> None:
        self.issues.extend(other.issues)

    def has_errors(self) -> bool:
        return bool(self.issues)

    def __len__(self) -> int:
        return len(self.issues)

    def __str__(self) -> str:
        return "\n".join(str(issue) for issue in self.issues)


# ---------------------------------------------------------------------------
# Per-item checks
# ---------------------------------------------------------------------------


def _check_required(item: WorkItem, config: KiraConfig) -> list[str]:
    errors: list[str] = []
    for name in config.validation.required_fields:
        if is_hardcoded_field(name) and not item.get_hardcoded(name):
            errors.append(f"missing required field: {name}")
    for name in sorted(config.fields):
        if config.fields[name].required and is_empty_value(item.fields.get(name)):
            errors.append(f"missing required field: {name}")
    return errors


def _check_id(item: WorkItem, config: KiraConfig) -> str | None:
    settings = config.validation
    if settings.id_pattern.search(item.id) is None:
        return f"invalid ID format: {item.id} (expected format: {settings.id_format})"
    return None


def _check_status(item: WorkItem, config: KiraConfig) -> str | None:
    values = config.validation.status_values
    if item.status in values:
        return None
    return f"invalid status '{item.status}'. Valid values: {', '.join(values)}"


def _check_dates(item: WorkItem, config: KiraConfig) -> list[str]:
    errors: list[str] = []
    if item.created and parse_date(item.created, DEFAULT_DATE_FORMAT) is None:
        errors.append(f"invalid created date format: {item.created}")
    # Unconfigured fields that look like dates still get the default format.
    for name in sorted(item.fields):
        if name in config.fields or not ("date" in name or "due" in name):
            continue
        value = item.fields[name]
        if isinstance(value, str) and value and parse_date(value, DEFAULT_DATE_FORMAT) is None:
            errors.append(f"invalid {name} date format: {value}")
    return errors


def _check_configured_fields(item: WorkItem, config: KiraConfig) -> str | None:
    errors: list[str] = []
    for name in sorted(item.fields):
        fc = config.fields.get(name)
        if fc is None or is_hardcoded_field(name):
            continue
        value = item.fields[name]
        if is_empty_value(value):
            # unset; the required-field check owns this case
            continue
        err = validate_field_value(name, value, fc)
        if err:
            errors.append(err)
    return "; ".join(errors) if errors else None


def _check_unknown_fields(item: WorkItem, config: KiraConfig) -> str | None:
    unknown = sorted(name for name in item.fields if not is_hardcoded_field(name) and name not in config.fields)
    if unknown:
        return f"unknown fields found (not in configuration): {', '.join(unknown)}"
    return None


def validate_work_item(item: WorkItem, config: KiraConfig) -> list[str]:
    """All problems with a single parsed work item, in reporting order."""
    errors = _check_required(item, config)
    for err in (_check_id(item, config), _check_status(item, config)):
        if err:
            errors.append(err)
    errors.extend(_check_dates(item, config))
    configured = _check_configured_fields(item, config)
    if configured:
        errors.append(configured)
    if config.validation.strict:
        unknown = _check_unknown_fields(item, config)
        if unknown:
            errors.append(unknown)
    return errors


# ---------------------------------------------------------------------------
# Whole-workspace validation
# ---------------------------------------------------------------------------


def load_work_item(path: Path, config: KiraConfig) -> tuple[WorkItem, list[str]]:
    """Read and parse one work item (confined to the work folder).

    Raises:
        ParseError: For unreadable files or malformed front matter.
    """
    try:
        text = read_work_item(path, config.work_dir)
    except (OSError, UnicodeDecodeError, WorkspaceError) as exc:
        msg = f"cannot read file: {exc}"
        raise ParseError(msg) from exc
    return parse_document(text)


def check_workflow(config: KiraConfig) -> str | None:
    """At most one work item may sit in the doing folder."""
    folder = config.status_folders.get(DOING_STATUS)
    if not folder:
        return None
    doing_dir = config.work_dir / folder
    if not doing_dir.is_dir():
        return None
    try:
        names = sorted(p.name for p in doing_dir.iterdir() if p.is_file() and p.suffix == ".md")
    except OSError as exc:
        return f"failed to read doing folder: {exc}"
    if len(names) > 1:
        return f"multiple items in doing folder. Only one item allowed at a time. Found: {', '.join(names)}"
    return None


def validate_work_items(config: KiraConfig) -> ValidationResult:
    """Validate every work item under the work folder.

    Raises:
        FileNotFoundError: If the work folder does not exist.
    """
    result = ValidationResult()
    ids: dict[str, list[str]] = {}

    files = get_work_item_files(config)
    for path in files:
        label = display_path(path, config)
        try:
            item, _ = load_work_item(path, config)
        except ParseError as exc:
            logger.warning("Skipping unparseable work item %s: %s", label, exc)
            result.add_error(label, f"failed to parse file: {exc}")
            continue
        for message in validate_work_item(item, config):
            result.add_error(label, message)
        if item.id:
            ids.setdefault(item.id, []).append(label)

    for item_id, owners in ids.items():
        if len(owners) > 1:
            result.add_error(owners[0], f"duplicate ID found: {item_id} in files {', '.join(owners)}")

    workflow_error = check_workflow(config)
    if workflow_error:
        result.add_error(WORKFLOW_FILE, workflow_error)

    logger.info("Validated %d work items: %d issues", len(files), len(result))
    return result


# ---------------------------------------------------------------------------
# Reporting helpers
# ---------------------------------------------------------------------------

_FIELD_KEYWORDS = (
    "date format",
    "email",
    "format",
    "enum",
    "number",
    "not in allowed values",
    "does not match format",
)


def _is_field_error(message: str) -> bool:
    if message.startswith("field '"):
        return True
    if "invalid " not in message:
        return False
    return any(keyword in message for keyword in _FIELD_KEYWORDS)


def categorize_issue(issue: ValidationIssue) -> IssueCategory:
    if issue.file == WORKFLOW_FILE:
        return "workflow"
    if "duplicate ID" in issue.message:
        return "duplicate"
    if issue.message.startswith("failed to parse"):
        return "parse"
    if "unknown fields found" in issue.message:
        return "unknown_field"
    if _is_field_error(issue.message):
        return "field"
    return "other"


def group_issues(issues: list[ValidationIssue]) -> dict[IssueCategory, list[ValidationIssue]]:
    """Bucket issues by category, keeping report order within each bucket."""
    groups: dict[IssueCategory, list[ValidationIssue]] = {
        "field": [],
        "unknown_field": [],
        "workflow": [],
        "duplicate": [],
        "parse": [],
        "other": [],
    }
    for issue in issues:
        groups[categorize_issue(issue)].append(issue)
    return groups

