"""Calendar-date helpers shared by validation, defaults and fixes.

Date formats are ``strftime``/``strptime`` patterns. All comparisons happen
on ``datetime.date`` values, so a stored date and "today" are always compared
as plain calendar dates regardless of timezone.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

DEFAULT_DATE_FORMAT = "%Y-%m-%d"
TODAY = "today"
FUTURE = "future"

# Encodings the fixers recognise, tried in order. RFC 3339 / ISO 8601 with
# arbitrary fractional precision is handled by fromisoformat() afterwards.
ALTERNATE_DATE_FORMATS: tuple[str, ...] = (
    DEFAULT_DATE_FORMAT,
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y/%m/%d",
    "%m/%d/%Y",
)

# Reference instants used to sanity-check configured formats.
_REFERENCE_A = dt.datetime(2006, 1, 2, 15, 4, 5)
_REFERENCE_B = dt.datetime(2007, 2, 3, 16, 5, 6)


def today() -> dt.date:
    """The current calendar date on this machine."""
    return dt.date.today()


def effective_format(fmt: str | None) -> str:
    return fmt or DEFAULT_DATE_FORMAT


def parse_date(text: str, fmt: str | None = None) -> dt.date | None:
    """Strictly parse *text* with *fmt*; None when it does not match.

    Strict means the parsed value must format back to exactly *text*, so
    ``2024-1-5`` is rejected for ``%Y-%m-%d`` even though strptime accepts it.
    """
    fmt = effective_format(fmt)
    try:
        parsed = dt.datetime.strptime(text, fmt)
    except ValueError:
        return None
    if parsed.strftime(fmt) != text:
        return None
    return parsed.date()


def format_date(value: dt.date, fmt: str | None = None) -> str:
    return value.strftime(effective_format(fmt))


def as_calendar_date(value: Any, fmt: str | None = None) -> dt.date | None:
    """Reduce a string, date or datetime to a calendar date (None if unparseable)."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        return parse_date(value, fmt)
    return None


def parse_alternate_date(text: str) -> dt.date | None:
    """Try every known alternate encoding; return the first calendar date found."""
    for fmt in ALTERNATE_DATE_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return dt.datetime.fromisoformat(text).date()
    except ValueError:
        return None


def check_date_format(fmt: str) -> str | None:
    """Return an error if *fmt* cannot serve as a date format.

    A usable format must tell two different instants apart (otherwise it is
    literal text that would accept anything) and must parse its own output.
    """
    formatted_a = _REFERENCE_A.strftime(fmt)
    formatted_b = _REFERENCE_B.strftime(fmt)
    if formatted_a == formatted_b:
        return f"invalid date format '{fmt}': format does not contain time components"
    try:
        parsed = dt.datetime.strptime(formatted_a, fmt)
    except ValueError as exc:
        return f"invalid date format '{fmt}': {exc}"
    if parsed.strftime(fmt) != formatted_a:
        return f"invalid date format '{fmt}': does not round-trip"
    return None


def _resolve_bound(token: str, *, is_min: bool, current: dt.date) -> tuple[dt.date | None, str | None]:
    if token == TODAY:
        return current, None
    if token == FUTURE:
        # "future" is strictly after today; as an upper bound it means no bound
        return (current + dt.timedelta(days=1), None) if is_min else (None, None)
    bound = parse_date(token, DEFAULT_DATE_FORMAT)
    if bound is None:
        label = "min_date" if is_min else "max_date"
        return None, f"invalid {label} format: {token}"
    return bound, None


def check_date_bound(token: str) -> str | None:
    """Config-time check of a min_date/max_date token."""
    if token in (TODAY, FUTURE):
        return None
    if parse_date(token, DEFAULT_DATE_FORMAT) is None:
        return f"'{token}' must be 'today', 'future' or a YYYY-MM-DD date"
    return None


def check_date_range(value: dt.date, min_date: str, max_date: str) -> str | None:
    """Check *value* against min/max bounds; returns an error message or None."""
    current = today()
    if min_date:
        bound, err = _resolve_bound(min_date, is_min=True, current=current)
        if err:
            return err
        if bound is not None and value < bound:
            return f"date {value.isoformat()} is before min_date {min_date}"
    if max_date:
        bound, err = _resolve_bound(max_date, is_min=False, current=current)
        if err:
            return err
        if bound is not None and value > bound:
            return f"date {value.isoformat()} is after max_date {max_date}"
    return None
