"""Field validation -- type, format, enum and range checks for one value.

Pure functions: no filesystem access, no logging. Every check returns an
error message, or None when the value passes.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlsplit

from kira.config import FieldConfig
from kira.dates import as_calendar_date, check_date_range, parse_date
from kira.values import is_numeric, item_key, type_name, value_kind

_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")
_MAX_URL_LENGTH = 2048
_MAX_IPV6_LENGTH = 45
_IPV6_CHARS = frozenset("0123456789abcdefABCDEF:.")


# ---------------------------------------------------------------------------
# Well-formedness helpers
# ---------------------------------------------------------------------------


def is_valid_email(email: str) -> bool:
    return _EMAIL_PATTERN.fullmatch(email) is not None


def _is_valid_bracketed_ipv6(url: str) -> bool:
    """Sanity-check the bracketed host before handing the URL to urlsplit()."""
    start = url.find("[")
    end = url.find("]")
    if start == -1 or end == -1 or end <= start:
        return False
    host = url[start + 1 : end]
    if not host or len(host) > _MAX_IPV6_LENGTH:
        return False
    return all(ch in _IPV6_CHARS for ch in host)


def is_valid_url(url: str) -> bool:
    """Absolute URI check: a scheme plus a host or path."""
    if not url or len(url) > _MAX_URL_LENGTH:
        return False
    if any(ch.isspace() for ch in url):
        return False
    if "[" in url and "]" in url and not _is_valid_bracketed_ipv6(url):
        return False
    try:
        parts = urlsplit(url)
        # Accessing .port validates the port and bracketed host syntax.
        parts.port  # noqa: B018
    except ValueError:
        return False
    if not parts.scheme:
        return False
    return bool(parts.netloc or parts.path)


def matches_allowed(value: str, allowed_values: tuple[str, ...], case_sensitive: bool) -> bool:
    if case_sensitive:
        return value in allowed_values
    folded = value.casefold()
    return any(folded == allowed.casefold() for allowed in allowed_values)


# ---------------------------------------------------------------------------
# 1. Type
# ---------------------------------------------------------------------------


def check_type(value: Any, field_type: str) -> str | None:
    kind = value_kind(value)
    if field_type == "string":
        return None if kind == "string" else f"expected string, got {type_name(value)}"
    if field_type == "date":
        return None if kind in ("string", "date") else f"expected date string or date, got {type_name(value)}"
    if field_type == "email":
        if kind != "string":
            return f"expected email string, got {type_name(value)}"
        return None if is_valid_email(value) else f"invalid email format: {value}"
    if field_type == "url":
        if kind != "string":
            return f"expected URL string, got {type_name(value)}"
        return None if is_valid_url(value) else f"invalid URL format: {value}"
    if field_type == "number":
        return None if kind == "number" else f"expected number, got {type_name(value)}"
    if field_type == "array":
        return None if kind == "sequence" else f"expected array, got {type_name(value)}"
    if field_type == "enum":
        return None if kind == "string" else f"expected enum string, got {type_name(value)}"
    return f"unknown field type: {field_type}"


# ---------------------------------------------------------------------------
# 2. Format
# ---------------------------------------------------------------------------


def check_format(value: Any, fc: FieldConfig) -> str | None:
    if fc.type == "string" and fc.format:
        pattern = fc.pattern or re.compile(fc.format)
        if pattern.search(value) is None:
            return f"value '{value}' does not match format pattern: {fc.format}"
    elif fc.type == "date" and isinstance(value, str) and parse_date(value, fc.date_format) is None:
        return f"date '{value}' does not match format: {fc.date_format}"
    return None


# ---------------------------------------------------------------------------
# 3. Enum membership
# ---------------------------------------------------------------------------


def check_enum(value: str, fc: FieldConfig) -> str | None:
    if matches_allowed(value, fc.allowed_values, fc.case_sensitive):
        return None
    return f"value '{value}' is not in allowed values: {', '.join(fc.allowed_values)}"


# ---------------------------------------------------------------------------
# 4. Range
# ---------------------------------------------------------------------------


def _check_length(length: int, fc: FieldConfig, what: str) -> str | None:
    if fc.min_length is not None and length < fc.min_length:
        return f"{what} length {length} is less than min_length {fc.min_length}"
    if fc.max_length is not None and length > fc.max_length:
        return f"{what} length {length} is greater than max_length {fc.max_length}"
    return None


def _check_number_range(value: int | float, fc: FieldConfig) -> str | None:
    if fc.min_value is not None and value < fc.min_value:
        return f"value {value:g} is less than min {fc.min_value:g}"
    if fc.max_value is not None and value > fc.max_value:
        return f"value {value:g} is greater than max {fc.max_value:g}"
    return None


def _check_array_item(item: Any, fc: FieldConfig) -> str | None:
    if fc.item_type == "string" and not isinstance(item, str):
        return f"expected string item, got {type_name(item)}"
    if fc.item_type == "number" and not is_numeric(item):
        return f"expected number item, got {type_name(item)}"
    if fc.item_type == "enum":
        if not isinstance(item, str):
            return f"expected enum string item, got {type_name(item)}"
        return check_enum(item, fc)
    return None


def _check_array(value: list[Any], fc: FieldConfig) -> str | None:
    err = _check_length(len(value), fc, "array")
    if err:
        return err
    if fc.item_type:
        for i, item in enumerate(value):
            err = _check_array_item(item, fc)
            if err:
                return f"array item at index {i}: {err}"
    if fc.unique:
        seen: set[Any] = set()
        for item in value:
            key = item_key(item)
            if key in seen:
                return f"array contains duplicate value: {item}"
            seen.add(key)
    return None


def _check_url_scheme(value: str, fc: FieldConfig) -> str | None:
    if not fc.schemes:
        return None
    scheme = urlsplit(value).scheme
    if scheme in fc.schemes:
        return None
    return f"URL scheme '{scheme}' is not allowed. Allowed schemes: {', '.join(fc.schemes)}"


def check_range(value: Any, fc: FieldConfig) -> str | None:
    if fc.type == "string":
        return _check_length(len(value), fc, "string")
    if fc.type == "number":
        return _check_number_range(value, fc)
    if fc.type == "date":
        date = as_calendar_date(value, fc.date_format)
        if date is None:
            return None
        return check_date_range(date, fc.min_date, fc.max_date)
    if fc.type == "array":
        return _check_array(list(value), fc)
    if fc.type == "url":
        return _check_url_scheme(value, fc)
    return None


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def validate_value(value: Any, fc: FieldConfig) -> str | None:
    """Run type, format, enum and range checks in order; first failure wins."""
    try:
        err = check_type(value, fc.type)
    except TypeError as exc:
        return str(exc)
    if err:
        return err
    err = check_format(value, fc)
    if err:
        return err
    if fc.type == "enum":
        err = check_enum(value, fc)
        if err:
            return err
    return check_range(value, fc)


def validate_field_value(name: str, value: Any, fc: FieldConfig) -> str | None:
    """Validate one field value; the message is prefixed with the field name."""
    err = validate_value(value, fc)
    if err:
        return f"field '{name}': {err}"
    return None
