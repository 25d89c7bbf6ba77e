"""Front-matter codec: parse and deterministically re-emit work-item documents.

A document is a YAML block between two ``---`` lines followed by a markdown
body. Parsing returns the body as raw lines; rendering re-emits the YAML in
canonical order (hardcoded fields, then sorted configurable fields) and
appends those lines untouched, so the body round-trips byte-for-byte.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Any

import yaml

from kira.config import HARDCODED_FIELDS, is_hardcoded_field
from kira.values import value_kind

DELIMITER = "---"
_NULL_TAG = "tag:yaml.org,2002:null"
_STR_TAG = "tag:yaml.org,2002:str"
_RESOLVER = yaml.resolver.Resolver()

# Characters that force a scalar into double quotes.
YAML_SPECIAL_CHARS = frozenset(":#[]{},\"'\\\n\r\t&*!|>%")
# Reserved indicators can never start a plain scalar; entry indicators only
# when followed by a space.
_RESERVED_INDICATORS = frozenset("@`")
_ENTRY_INDICATORS = frozenset("-?")
_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\x00": "\\0",
    "\x07": "\\a",
    "\x08": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\x0b": "\\v",
    "\x0c": "\\f",
    "\r": "\\r",
    "\x1b": "\\e",
    "\x85": "\\N",
    "\u2028": "\\L",
    "\u2029": "\\P",
    "\ufeff": "\\uFEFF",
}
# Line breaks YAML knows besides \n and \r; a plain scalar would be split on them.
_LINE_BREAKS = frozenset("\x85\u2028\u2029")
_NON_PRINTABLE = yaml.reader.Reader.NON_PRINTABLE


class ParseError(ValueError):
    """Raised when a document's front matter cannot be read."""


class FrontMatterWriteError(ValueError):
    """Raised when a field value cannot be represented in YAML."""


@dataclass
class WorkItem:
    """One parsed work item.

    The five hardcoded fields are attributes and never appear in ``fields``.
    """

    id: str = ""
    title: str = ""
    status: str = ""
    kind: str = ""
    created: str = ""
    fields: dict[str, Any] = field(default_factory=dict)

    def get_hardcoded(self, name: str) -> str:
        value: str = getattr(self, name)
        return value


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _find_delimiters(lines: list[str]) -> tuple[int, int]:
    opening = None
    for i, line in enumerate(lines):
        if not line.strip():
            continue
        if line.strip() != DELIMITER:
            msg = "missing front matter: first non-empty line must be '---'"
            raise ParseError(msg)
        opening = i
        break
    if opening is None:
        msg = "missing front matter: document is empty"
        raise ParseError(msg)
    for j in range(opening + 1, len(lines)):
        if lines[j].strip() == DELIMITER:
            return opening, j
    msg = "unterminated front matter: closing '---' not found"
    raise ParseError(msg)


def _load_mapping(yaml_text: str) -> list[tuple[str, Any]]:
    """Load the YAML block as (key, value) pairs in document order.

    Hardcoded fields keep their source text (``id: 001`` stays ``"001"``), so
    they are taken from the node rather than constructed.
    """
    loader: yaml.SafeLoader | None = None
    try:
        # the reader rejects non-printable characters while constructing
        loader = yaml.SafeLoader(yaml_text)
        node = loader.get_single_node()
        if node is None:
            return []
        if not isinstance(node, yaml.MappingNode):
            msg = f"front matter must be a mapping, got {node.id}"
            raise ParseError(msg)
        entries: list[tuple[str, Any]] = []
        for key_node, value_node in node.value:
            key = loader.construct_object(key_node, deep=True)
            if not isinstance(key, str):
                key = str(key)
            if is_hardcoded_field(key):
                if not isinstance(value_node, yaml.ScalarNode):
                    msg = f"field '{key}' must be a scalar value"
                    raise ParseError(msg)
                raw = "" if value_node.tag == _NULL_TAG else value_node.value
                entries.append((key, raw))
            else:
                entries.append((key, loader.construct_object(value_node, deep=True)))
        return entries
    except yaml.YAMLError as exc:
        msg = f"failed to parse front matter: {exc}"
        raise ParseError(msg) from exc
    finally:
        if loader is not None:
            loader.dispose()


def parse_document(text: str) -> tuple[WorkItem, list[str]]:
    """Split *text* into a WorkItem and the body lines after the front matter.

    Raises:
        ParseError: If the delimiters are missing or the YAML is malformed.
    """
    lines = text.split("\n")
    opening, closing = _find_delimiters(lines)
    body_lines = lines[closing + 1 :]

    item = WorkItem()
    for key, value in _load_mapping("\n".join(lines[opening + 1 : closing])):
        if is_hardcoded_field(key):
            setattr(item, key, value)
        else:
            item.fields[key] = value
    return item, body_lines


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _resolves_to_other_type(s: str) -> bool:
    """True if a plain scalar *s* would be re-read by YAML as a non-string."""
    return bool(_RESOLVER.resolve(yaml.ScalarNode, s, (True, False)) != _STR_TAG)


def needs_yaml_quoting(s: str, *, keep_type: bool = True) -> bool:
    """Whether *s* must be double-quoted to survive a YAML round trip.

    With ``keep_type`` strings that YAML would read back as a number, bool,
    null or timestamp are quoted too. Hardcoded fields skip that check since
    the parser keeps their source text.
    """
    if s == "" or s.strip() != s:
        return True
    if any(ch in YAML_SPECIAL_CHARS or ch in _LINE_BREAKS for ch in s):
        return True
    if "\ufeff" in s or _NON_PRINTABLE.search(s):
        return True
    if s[0] in _RESERVED_INDICATORS:
        return True
    if s[0] in _ENTRY_INDICATORS and (len(s) == 1 or s[1] == " "):
        return True
    return keep_type and _resolves_to_other_type(s)


def _escape_char(ch: str) -> str:
    if ch in _ESCAPES:
        return _ESCAPES[ch]
    if not _NON_PRINTABLE.match(ch):
        return ch
    code = ord(ch)
    if code <= 0xFF:
        return f"\\x{code:02X}"
    if code <= 0xFFFF:
        return f"\\u{code:04X}"
    return f"\\U{code:08X}"


def yaml_quoted_string(s: str) -> str:
    """Double-quoted YAML scalar; control characters and YAML line breaks are escaped."""
    return '"' + "".join(_escape_char(ch) for ch in s) + '"'


def format_string_value(s: str, *, keep_type: bool = True) -> str:
    return yaml_quoted_string(s) if needs_yaml_quoting(s, keep_type=keep_type) else s


def _format_number(value: int | float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return ".nan"
        if math.isinf(value):
            return ".inf" if value > 0 else "-.inf"
        text = repr(value)
        # YAML 1.1 floats need a dot: 1e+20 would read back as a string
        if "e" in text and "." not in text:
            mantissa, exponent = text.split("e")
            text = f"{mantissa}.0e{exponent}"
        return text
    return repr(value)


def _format_date(value: dt.date) -> str:
    # datetime is a date subclass; its ISO form still resolves as a timestamp
    return value.isoformat()


def _flow_dump(value: Any) -> str:
    try:
        dumped = yaml.safe_dump(value, default_flow_style=True, sort_keys=True, width=math.inf)
    except yaml.YAMLError as exc:
        msg = f"cannot represent {type(value).__name__} in YAML: {exc}"
        raise FrontMatterWriteError(msg) from exc
    return str(dumped).strip()


def format_array_item(item: Any) -> str:
    """Flow-style representation of one array element."""
    try:
        kind = value_kind(item)
    except TypeError as exc:
        raise FrontMatterWriteError(str(exc)) from exc
    if kind == "string":
        return format_string_value(item)
    if kind == "number":
        return _format_number(item)
    if kind == "bool":
        return "true" if item else "false"
    if kind == "date":
        return _format_date(item)
    if kind == "null":
        return "null"
    return _flow_dump(item)


def format_field(key: str, value: Any) -> str:
    """Render one ``key: value`` entry (possibly several lines for mappings)."""
    try:
        kind = value_kind(value)
    except TypeError as exc:
        msg = f"failed to write field '{key}': {exc}"
        raise FrontMatterWriteError(msg) from exc

    label = format_string_value(key)
    if kind == "sequence":
        return f"{label}: [" + ", ".join(format_array_item(v) for v in value) + "]\n"
    if kind != "nested":
        return f"{label}: {format_array_item(value)}\n"

    try:
        dumped = yaml.safe_dump({key: value}, default_flow_style=False, sort_keys=True, allow_unicode=True)
    except yaml.YAMLError as exc:
        msg = f"failed to write field '{key}': {exc}"
        raise FrontMatterWriteError(msg) from exc
    return str(dumped).rstrip("\n") + "\n"


def render_front_matter(item: WorkItem) -> str:
    """Canonical YAML block, delimiters included.

    Raises:
        FrontMatterWriteError: If a field holds a value YAML cannot represent.
    """
    parts = [f"{DELIMITER}\n"]
    for name in HARDCODED_FIELDS:
        parts.append(f"{name}: {format_string_value(item.get_hardcoded(name), keep_type=False)}\n")
    for key in sorted(k for k in item.fields if not is_hardcoded_field(k)):
        parts.append(format_field(key, item.fields[key]))
    parts.append(f"{DELIMITER}\n")
    return "".join(parts)


def render_document(item: WorkItem, body_lines: list[str]) -> str:
    return render_front_matter(item) + "\n".join(body_lines)
