"""Value kinds for dynamically-typed front-matter values.

YAML hands us str, int, float, bool, date/datetime, list, dict or None.
``value_kind()`` maps each onto a closed set of kinds once, so the
validators, resolver and writer switch on a kind instead of probing types.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

ValueKind = Literal["string", "number", "bool", "date", "sequence", "nested", "null"]


def value_kind(value: Any) -> ValueKind:
    """Classify *value*. Raises TypeError for objects YAML cannot produce."""
    if value is None:
        return "null"
    # bool is an int subclass -- check it first so True never counts as a number
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, str):
        return "string"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, dt.date):
        return "date"
    if isinstance(value, list | tuple):
        return "sequence"
    if isinstance(value, dict):
        return "nested"
    msg = f"unsupported value type: {type(value).__name__}"
    raise TypeError(msg)


def type_name(value: Any) -> str:
    """Human-readable type name used in error messages."""
    try:
        return value_kind(value)
    except TypeError:
        return type(value).__name__


def is_numeric(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, int | float)


def is_empty_value(value: Any) -> bool:
    """None, empty strings and empty sequences count as unset."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, list | tuple):
        return len(value) == 0
    return False


def item_key(item: Any) -> Any:
    """Key used to detect duplicate array elements.

    Scalars compare by value; anything else by its string form.
    """
    if isinstance(item, bool):
        # keep True distinct from 1
        return ("bool", item)
    if isinstance(item, str | int | float):
        return item
    return str(item)
