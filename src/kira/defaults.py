"""Default resolution for missing or empty configurable fields."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Callable
from typing import Any

from kira.config import ConfigurationError, FieldConfig, KiraConfig, is_hardcoded_field
from kira.dates import TODAY, format_date, parse_date, today
from kira.fields import is_valid_email, is_valid_url, matches_allowed
from kira.frontmatter import WorkItem
from kira.values import is_empty_value, is_numeric, type_name

logger = logging.getLogger(__name__)


def _resolve_date(default: Any, fc: FieldConfig) -> str:
    fmt = fc.date_format
    if isinstance(default, dt.date):
        # YAML reads an unquoted 2024-01-31 as a date object
        return format_date(default, fmt)
    if not isinstance(default, str):
        msg = f"date default must be a string, got {type_name(default)}"
        raise ValueError(msg)
    if default == TODAY:
        return format_date(today(), fmt)
    if parse_date(default, fmt) is None:
        msg = f"invalid date default value '{default}' for format {fmt}"
        raise ValueError(msg)
    return default


def _resolve_number(default: Any) -> int | float:
    if is_numeric(default):
        number: int | float = default
        return number
    if isinstance(default, str):
        for convert in (int, float):
            try:
                return convert(default.strip())
            except ValueError:
                continue
    msg = f"number default must be numeric, got {type_name(default)}"
    raise ValueError(msg)


def _resolve_checked_string(default: Any, label: str, check: Callable[[str], bool]) -> str:
    if not isinstance(default, str):
        msg = f"{label} default must be a string, got {type_name(default)}"
        raise ValueError(msg)
    # Empty placeholders are allowed; validation reports them later.
    if default and not check(default):
        msg = f"invalid {label} default value: {default}"
        raise ValueError(msg)
    return default


def _resolve_enum(default: Any, fc: FieldConfig) -> str:
    if not isinstance(default, str):
        msg = f"enum default must be a string, got {type_name(default)}"
        raise ValueError(msg)
    if not fc.allowed_values:
        return default
    if not matches_allowed(default, fc.allowed_values, fc.case_sensitive):
        msg = f"enum default '{default}' is not in allowed values: {', '.join(fc.allowed_values)}"
        raise ValueError(msg)
    if default in fc.allowed_values:
        return default
    # stored in its configured spelling so the enum fixer has nothing left to do
    folded = default.casefold()
    return next((allowed for allowed in fc.allowed_values if allowed.casefold() == folded), default)


def resolve_default_value(name: str, default: Any, fc: FieldConfig) -> Any:
    """Convert a configured default to the field's native type.

    Raises:
        ConfigurationError: If the default cannot be used for this field.
    """
    try:
        if fc.type == "string":
            return default if isinstance(default, str) else str(default)
        if fc.type == "date":
            return _resolve_date(default, fc)
        if fc.type == "email":
            return _resolve_checked_string(default, "email", is_valid_email)
        if fc.type == "url":
            return _resolve_checked_string(default, "URL", is_valid_url)
        if fc.type == "number":
            return _resolve_number(default)
        if fc.type == "array":
            return list(default) if isinstance(default, list | tuple) else [default]
        if fc.type == "enum":
            return _resolve_enum(default, fc)
    except ValueError as exc:
        msg = f"failed to resolve default value for field '{name}': {exc}"
        raise ConfigurationError(msg) from exc
    return default


def apply_field_defaults(item: WorkItem, config: KiraConfig) -> list[str]:
    """Fill missing or empty configurable fields from their defaults.

    Existing non-empty values are never overwritten and hardcoded fields are
    never touched.

    Returns:
        Sorted names of the fields that received a default.

    Raises:
        ConfigurationError: If a configured default is invalid.
    """
    added: list[str] = []
    for name in sorted(config.fields):
        fc = config.fields[name]
        if is_hardcoded_field(name) or fc.default is None:
            continue
        current = item.fields.get(name)
        if not is_empty_value(current):
            continue
        value = resolve_default_value(name, fc.default, fc)
        if name in item.fields and current == value:
            # an empty placeholder default that is already in place
            continue
        item.fields[name] = value
        added.append(name)
    if added:
        logger.debug("Applied defaults for %s", ", ".join(added))
    return added
