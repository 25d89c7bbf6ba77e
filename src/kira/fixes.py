"""Auto-fixes for work items: defaults, value repairs, created dates and duplicate IDs.

Each fix operation walks the work folder, mutates parsed items in memory and
rewrites a file only when something actually changed. Applied fixes and
per-file write failures are reported through a ``ValidationResult`` so the
CLI can print them the same way it prints validation errors.
"""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Any

from kira.config import FieldConfig, KiraConfig, is_hardcoded_field
from kira.dates import DEFAULT_DATE_FORMAT, format_date, parse_alternate_date, parse_date
from kira.defaults import apply_field_defaults
from kira.fields import is_valid_email
from kira.frontmatter import FrontMatterWriteError, ParseError, WorkItem, render_document
from kira.validation import ValidationResult, load_work_item
from kira.values import is_empty_value
from kira.workspace import WorkspaceError, display_path, get_work_item_files, write_work_item

logger = logging.getLogger(__name__)

_WRITE_ERRORS = (OSError, FrontMatterWriteError, WorkspaceError)


# ---------------------------------------------------------------------------
# Value repairs
# ---------------------------------------------------------------------------


def try_fix_date_value(value: Any, fc: FieldConfig) -> tuple[Any, bool]:
    fmt = fc.date_format
    if isinstance(value, dt.datetime):
        return format_date(value.date(), fmt), True
    if isinstance(value, dt.date):
        # a bare YAML date is written back as YYYY-MM-DD
        if fmt == DEFAULT_DATE_FORMAT:
            return value, False
        return format_date(value, fmt), True
    if not isinstance(value, str) or parse_date(value, fmt) is not None:
        return value, False
    parsed = parse_alternate_date(value.strip())
    if parsed is None:
        return value, False
    fixed = format_date(parsed, fmt)
    return fixed, fixed != value


def try_fix_enum_value(value: Any, fc: FieldConfig) -> tuple[Any, bool]:
    """Canonicalise the case of an enum value when matching is case-insensitive."""
    if fc.case_sensitive or not isinstance(value, str):
        return value, False
    if value in fc.allowed_values:
        return value, False
    folded = value.strip().casefold()
    for allowed in fc.allowed_values:
        if folded == allowed.casefold():
            return allowed, True
    return value, False


def try_fix_email_value(value: Any) -> tuple[Any, bool]:
    if not isinstance(value, str):
        return value, False
    fixed = value.strip()
    if is_valid_email(fixed.lower()):
        fixed = fixed.lower()
    return fixed, fixed != value


def try_fix_field_value(value: Any, fc: FieldConfig) -> tuple[Any, bool]:
    """Best-effort, non-lossy repair of one value.

    Returns:
        ``(value, changed)``; the value is returned untouched when no repair applies.
    """
    if fc.type == "date":
        return try_fix_date_value(value, fc)
    if fc.type == "enum":
        return try_fix_enum_value(value, fc)
    if fc.type == "email":
        return try_fix_email_value(value)
    return value, False


def fix_item_fields(item: WorkItem, config: KiraConfig) -> list[str]:
    """Apply defaults then value repairs to *item*; returns fix messages."""
    messages = [f"fixed field '{name}': applied default value" for name in apply_field_defaults(item, config)]
    for name in sorted(config.fields):
        if is_hardcoded_field(name) or name not in item.fields:
            continue
        value = item.fields[name]
        if is_empty_value(value):
            continue
        fixed, changed = try_fix_field_value(value, config.fields[name])
        if changed:
            item.fields[name] = fixed
            messages.append(f"fixed field '{name}': corrected value")
    return messages


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _load(path: Path, config: KiraConfig) -> tuple[WorkItem, list[str]] | None:
    try:
        return load_work_item(path, config)
    except ParseError as exc:
        # already reported by validation; nothing safe to rewrite
        logger.warning("Skipping unparseable work item %s: %s", display_path(path, config), exc)
        return None


def _save(path: Path, item: WorkItem, body_lines: list[str], config: KiraConfig) -> None:
    write_work_item(path, render_document(item, body_lines), config.work_dir)


# ---------------------------------------------------------------------------
# Fix operations
# ---------------------------------------------------------------------------


def fix_field_issues(config: KiraConfig) -> ValidationResult:
    """Apply defaults and value repairs to every work item.

    Raises:
        ConfigurationError: If a configured default is invalid.
        FileNotFoundError: If the work folder does not exist.
    """
    result = ValidationResult()
    if not config.fields:
        return result
    for path in get_work_item_files(config):
        loaded = _load(path, config)
        if loaded is None:
            continue
        item, body_lines = loaded
        label = display_path(path, config)
        messages = fix_item_fields(item, config)
        if not messages:
            continue
        try:
            _save(path, item, body_lines, config)
        except _WRITE_ERRORS as exc:
            logger.error("Failed to write fixes", extra={"file": label, "error": str(exc)})
            result.add_error(label, f"failed to write fixes: {exc}")
            continue
        for message in messages:
            result.add_error(label, message)
        logger.info("Fixed %d field issue(s) in %s", len(messages), label, extra={"file": label})
    return result


def fix_hardcoded_date_formats(config: KiraConfig) -> ValidationResult:
    """Normalise ``created`` dates written in a recognised alternate encoding."""
    result = ValidationResult()
    for path in get_work_item_files(config):
        loaded = _load(path, config)
        if loaded is None:
            continue
        item, body_lines = loaded
        original = item.created
        if not original or parse_date(original, DEFAULT_DATE_FORMAT) is not None:
            continue
        parsed = parse_alternate_date(original.strip())
        if parsed is None:
            continue
        item.created = format_date(parsed, DEFAULT_DATE_FORMAT)
        label = display_path(path, config)
        try:
            _save(path, item, body_lines, config)
        except _WRITE_ERRORS as exc:
            logger.error("Failed to write created date", extra={"file": label, "error": str(exc)})
            result.add_error(label, f"failed to fix created date: {exc}")
            continue
        result.add_error(label, f"fixed created date format: {original} -> {item.created}")
        logger.info("Fixed created date in %s", label, extra={"file": label, "field": "created"})
    return result


def _numeric_id(item_id: str) -> int | None:
    text = item_id.strip()
    return int(text) if text.isascii() and text.isdigit() else None


def get_next_id(config: KiraConfig) -> str:
    """Next free ID: one past the highest numeric ID, zero-padded to three digits."""
    highest = 0
    for path in get_work_item_files(config):
        try:
            item, _ = load_work_item(path, config)
        except ParseError:
            continue
        number = _numeric_id(item.id)
        if number is not None and number > highest:
            highest = number
    return f"{highest + 1:03d}"


def _mtime_key(path: Path) -> tuple[float, str]:
    try:
        return path.stat().st_mtime, str(path)
    except OSError:
        return float("inf"), str(path)


def fix_duplicate_ids(config: KiraConfig) -> ValidationResult:
    """Give every duplicate of an ID except the oldest file a fresh ID."""
    result = ValidationResult()
    loaded: dict[Path, tuple[WorkItem, list[str]]] = {}
    groups: dict[str, list[Path]] = {}
    for path in get_work_item_files(config):
        entry = _load(path, config)
        if entry is None:
            continue
        loaded[path] = entry
        if entry[0].id:
            groups.setdefault(entry[0].id, []).append(path)

    next_number = int(get_next_id(config))

    for item_id, paths in groups.items():
        if len(paths) < 2:
            continue
        for path in sorted(paths, key=_mtime_key)[1:]:
            item, body_lines = loaded[path]
            new_id = f"{next_number:03d}"
            item.id = new_id
            label = display_path(path, config)
            try:
                _save(path, item, body_lines, config)
            except _WRITE_ERRORS as exc:
                logger.error("Failed to update ID", extra={"file": label, "error": str(exc)})
                result.add_error(label, f"failed to update ID: {exc}")
                item.id = item_id
                continue
            next_number += 1
            result.add_error(label, f"fixed duplicate ID: {item_id} -> {new_id}")
            logger.info("Reassigned duplicate ID %s -> %s in %s", item_id, new_id, label, extra={"file": label})
    return result
