"""Project configuration -- loading ``kira.yml`` into an immutable schema.

The schema (``KiraConfig``) is built once per run and passed explicitly to
every validator, resolver and fixer. Anything wrong with it is a
``ConfigurationError``: nothing downstream can be trusted without a valid
schema, so loading fails fast instead of reporting per file.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml

from kira.dates import DEFAULT_DATE_FORMAT, check_date_bound, check_date_format

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "kira.yml"
DEFAULT_WORK_FOLDER = ".work"

FieldType = Literal["string", "date", "email", "url", "number", "array", "enum"]
ItemType = Literal["string", "number", "enum"]

VALID_FIELD_TYPES: frozenset[str] = frozenset({"string", "date", "email", "url", "number", "array", "enum"})
VALID_ITEM_TYPES: frozenset[str] = frozenset({"string", "number", "enum"})

# Fields every work item carries. They are validated by fixed rules and can
# never be configured.
HARDCODED_FIELDS: tuple[str, ...] = ("id", "title", "status", "kind", "created")

DEFAULT_STATUS_FOLDERS: dict[str, str] = {
    "backlog": "0_backlog",
    "todo": "1_todo",
    "doing": "2_doing",
    "review": "3_review",
    "done": "4_done",
    "archived": "z_archive",
}
DEFAULT_ID_FORMAT = r"^\d{3}$"
DEFAULT_STATUS_VALUES: tuple[str, ...] = (
    "backlog",
    "todo",
    "doing",
    "review",
    "done",
    "released",
    "abandoned",
    "archived",
)
DEFAULT_STATUS = "backlog"


class ConfigurationError(ValueError):
    """Raised when the schema itself is invalid and the run must stop."""


def is_hardcoded_field(name: str) -> bool:
    return name in HARDCODED_FIELDS


# ---------------------------------------------------------------------------
# Frozen dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldConfig:
    """Schema entry for one configurable front-matter field."""

    type: FieldType
    required: bool = False
    default: Any = None
    format: str = ""
    allowed_values: tuple[str, ...] = ()
    min_length: int | None = None
    max_length: int | None = None
    min_value: float | None = None
    max_value: float | None = None
    min_date: str = ""
    max_date: str = ""
    item_type: ItemType | None = None
    unique: bool = False
    schemes: tuple[str, ...] = ()
    case_sensitive: bool = True
    description: str = ""
    display_name: str = ""
    category: str = ""
    deprecated: bool = False
    # Compiled ``format`` for string fields, built once at load time.
    pattern: re.Pattern[str] | None = field(default=None, compare=False, repr=False)

    @property
    def date_format(self) -> str:
        return self.format or DEFAULT_DATE_FORMAT


@dataclass(frozen=True)
class ValidationSettings:
    """The ``validation:`` section of kira.yml."""

    required_fields: tuple[str, ...] = HARDCODED_FIELDS
    id_format: str = DEFAULT_ID_FORMAT
    status_values: tuple[str, ...] = DEFAULT_STATUS_VALUES
    strict: bool = False
    id_pattern: re.Pattern[str] = field(default=re.compile(DEFAULT_ID_FORMAT), compare=False, repr=False)


@dataclass(frozen=True)
class KiraConfig:
    """Complete, validated project schema."""

    status_folders: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_STATUS_FOLDERS))
    validation: ValidationSettings = field(default_factory=ValidationSettings)
    fields: dict[str, FieldConfig] = field(default_factory=dict)
    work_folder: str = DEFAULT_WORK_FOLDER
    default_status: str = DEFAULT_STATUS
    version: str = "1.0"
    config_dir: Path = field(default_factory=Path.cwd)

    @property
    def work_dir(self) -> Path:
        """Absolute path of the work folder."""
        return (self.config_dir / self.work_folder).resolve()


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _optional_int(raw: dict[str, Any], key: str, field_name: str) -> int | None:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"field '{field_name}': {key} must be an integer"
        raise ConfigurationError(msg)
    return value


def _optional_float(raw: dict[str, Any], key: str, field_name: str) -> float | None:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        msg = f"field '{field_name}': {key} must be a number"
        raise ConfigurationError(msg)
    return float(value)


def _string_tuple(raw: dict[str, Any], key: str, field_name: str) -> tuple[str, ...]:
    value = raw.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        msg = f"field '{field_name}': {key} must be a list"
        raise ConfigurationError(msg)
    return tuple(str(v) for v in value)


def _optional_str(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    return "" if value is None else str(value)


def _check_field_type(name: str, raw: dict[str, Any]) -> None:
    field_type = raw.get("type")
    if not field_type:
        msg = f"field '{name}': type is required"
        raise ConfigurationError(msg)
    if field_type not in VALID_FIELD_TYPES:
        msg = (
            f"field '{name}': invalid type '{field_type}'. "
            "Valid types: string, date, email, url, number, array, enum"
        )
        raise ConfigurationError(msg)
    if field_type == "enum" and not raw.get("allowed_values"):
        msg = f"field '{name}': enum type requires allowed_values"
        raise ConfigurationError(msg)
    if field_type == "array":
        item_type = raw.get("item_type")
        if not item_type:
            msg = f"field '{name}': array type requires item_type"
            raise ConfigurationError(msg)
        if item_type not in VALID_ITEM_TYPES:
            msg = (
                f"field '{name}': invalid item_type '{item_type}' for array. "
                "Valid item types: string, number, enum"
            )
            raise ConfigurationError(msg)
        if item_type == "enum" and not raw.get("allowed_values"):
            msg = f"field '{name}': array with enum item_type requires allowed_values"
            raise ConfigurationError(msg)


def _check_constraints(name: str, fc: FieldConfig) -> None:
    if fc.min_length is not None and fc.min_length < 0:
        msg = f"field '{name}': min_length ({fc.min_length}) cannot be negative"
        raise ConfigurationError(msg)
    if fc.max_length is not None and fc.max_length < 0:
        msg = f"field '{name}': max_length ({fc.max_length}) cannot be negative"
        raise ConfigurationError(msg)
    if fc.min_length is not None and fc.max_length is not None and fc.min_length > fc.max_length:
        msg = f"field '{name}': min_length ({fc.min_length}) cannot be greater than max_length ({fc.max_length})"
        raise ConfigurationError(msg)
    # A negative max with no (or a non-negative) min would reject every value.
    if fc.max_value is not None and fc.max_value < 0 and (fc.min_value is None or fc.min_value >= 0):
        msg = f"field '{name}': max ({fc.max_value:g}) cannot be negative when min is not set or is non-negative"
        raise ConfigurationError(msg)
    if fc.min_value is not None and fc.max_value is not None and fc.min_value > fc.max_value:
        msg = f"field '{name}': min ({fc.min_value:g}) cannot be greater than max ({fc.max_value:g})"
        raise ConfigurationError(msg)
    for key, token in (("min_date", fc.min_date), ("max_date", fc.max_date)):
        if token:
            err = check_date_bound(token)
            if err:
                msg = f"field '{name}': invalid {key} {err}"
                raise ConfigurationError(msg)


def parse_field_config(name: str, raw: Any) -> FieldConfig:
    """Parse and validate one ``fields:`` entry.

    Raises:
        ConfigurationError: If the entry is malformed or inconsistent.
    """
    if not name:
        msg = "field name cannot be empty"
        raise ConfigurationError(msg)
    if is_hardcoded_field(name):
        msg = f"field '{name}' cannot be configured and must use hardcoded validation"
        raise ConfigurationError(msg)
    if not isinstance(raw, dict):
        msg = f"field '{name}': configuration must be a mapping, got {type(raw).__name__}"
        raise ConfigurationError(msg)

    _check_field_type(name, raw)

    fmt = _optional_str(raw, "format")
    pattern: re.Pattern[str] | None = None
    if fmt and raw["type"] == "string":
        try:
            pattern = re.compile(fmt)
        except re.error as exc:
            msg = f"field '{name}': invalid regex format '{fmt}': {exc}"
            raise ConfigurationError(msg) from exc
    if fmt and raw["type"] == "date":
        err = check_date_format(fmt)
        if err:
            msg = f"field '{name}': {err}"
            raise ConfigurationError(msg)

    case_sensitive = raw.get("case_sensitive")
    fc = FieldConfig(
        type=raw["type"],
        required=bool(raw.get("required", False)),
        default=raw.get("default"),
        format=fmt,
        allowed_values=_string_tuple(raw, "allowed_values", name),
        min_length=_optional_int(raw, "min_length", name),
        max_length=_optional_int(raw, "max_length", name),
        min_value=_optional_float(raw, "min", name),
        max_value=_optional_float(raw, "max", name),
        min_date=_optional_str(raw, "min_date"),
        max_date=_optional_str(raw, "max_date"),
        item_type=raw.get("item_type"),
        unique=bool(raw.get("unique", False)),
        schemes=_string_tuple(raw, "schemes", name),
        case_sensitive=True if case_sensitive is None else bool(case_sensitive),
        description=_optional_str(raw, "description"),
        display_name=_optional_str(raw, "display_name"),
        category=_optional_str(raw, "category"),
        deprecated=bool(raw.get("deprecated", False)),
        pattern=pattern,
    )
    _check_constraints(name, fc)
    return fc


def _parse_validation(raw: Any) -> ValidationSettings:
    if raw is None:
        return ValidationSettings()
    if not isinstance(raw, dict):
        msg = "validation must be a mapping"
        raise ConfigurationError(msg)

    required = raw.get("required_fields")
    status_values = raw.get("status_values")
    id_format = raw.get("id_format") or DEFAULT_ID_FORMAT
    try:
        id_pattern = re.compile(str(id_format))
    except re.error as exc:
        msg = f"invalid validation.id_format regex '{id_format}': {exc}"
        raise ConfigurationError(msg) from exc
    for key, value in (("required_fields", required), ("status_values", status_values)):
        if value is not None and not isinstance(value, list):
            msg = f"validation.{key} must be a list"
            raise ConfigurationError(msg)

    return ValidationSettings(
        required_fields=HARDCODED_FIELDS if required is None else tuple(str(v) for v in required),
        id_format=str(id_format),
        status_values=DEFAULT_STATUS_VALUES if status_values is None else tuple(str(v) for v in status_values),
        strict=bool(raw.get("strict", False)),
        id_pattern=id_pattern,
    )


def _parse_work_folder(raw: Any) -> str:
    if not isinstance(raw, dict):
        return DEFAULT_WORK_FOLDER
    work_folder = raw.get("work_folder")
    if work_folder is None or work_folder == "":
        return DEFAULT_WORK_FOLDER
    work_folder = str(work_folder)
    if not work_folder.strip():
        msg = "workspace.work_folder cannot be empty or whitespace only"
        raise ConfigurationError(msg)
    if "\x00" in work_folder:
        msg = "workspace.work_folder cannot contain null byte"
        raise ConfigurationError(msg)
    return work_folder.strip()


def parse_config(raw: dict[str, Any] | None, config_dir: Path) -> KiraConfig:
    """Build a KiraConfig from a parsed kira.yml mapping, merging defaults.

    Raises:
        ConfigurationError: If any section is invalid, including field defaults
            that cannot be resolved to their field's type.
    """
    from kira.defaults import resolve_default_value

    raw = raw or {}
    if not isinstance(raw, dict):
        msg = f"{CONFIG_FILENAME} must contain a mapping, got {type(raw).__name__}"
        raise ConfigurationError(msg)

    status_folders = dict(DEFAULT_STATUS_FOLDERS)
    raw_folders = raw.get("status_folders")
    if raw_folders is not None:
        if not isinstance(raw_folders, dict):
            msg = "status_folders must be a mapping"
            raise ConfigurationError(msg)
        status_folders.update({str(k): str(v) for k, v in raw_folders.items()})

    raw_fields = raw.get("fields") or {}
    if not isinstance(raw_fields, dict):
        msg = "fields must be a mapping"
        raise ConfigurationError(msg)
    fields: dict[str, FieldConfig] = {}
    for name, field_raw in raw_fields.items():
        fc = parse_field_config(str(name), field_raw)
        if fc.default is not None:
            # Surfaces a bad default now rather than halfway through a fix run.
            resolve_default_value(str(name), fc.default, fc)
        fields[str(name)] = fc

    config = KiraConfig(
        status_folders=status_folders,
        validation=_parse_validation(raw.get("validation")),
        fields=fields,
        work_folder=_parse_work_folder(raw.get("workspace")),
        default_status=str(raw.get("default_status") or DEFAULT_STATUS),
        version=str(raw.get("version") or "1.0"),
        config_dir=config_dir.resolve(),
    )
    logger.debug("Parsed configuration: %d configured fields", len(fields))
    return config


def find_config_file(project_dir: Path) -> Path | None:
    """Root-level kira.yml wins; a legacy .work/kira.yml is used as fallback."""
    for candidate in (project_dir / CONFIG_FILENAME, project_dir / DEFAULT_WORK_FOLDER / CONFIG_FILENAME):
        if candidate.is_file():
            return candidate
    return None


def load_config(project_dir: Path | None = None) -> KiraConfig:
    """Load kira.yml from *project_dir* (default cwd), or defaults if absent.

    Raises:
        ConfigurationError: If the file is unreadable, not valid YAML, or
            describes an invalid schema.
    """
    project_dir = (project_dir or Path.cwd()).resolve()
    config_path = find_config_file(project_dir)
    if config_path is None:
        logger.debug("No %s in %s, using defaults", CONFIG_FILENAME, project_dir)
        return KiraConfig(config_dir=project_dir)

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        msg = f"failed to read config file: {exc}"
        raise ConfigurationError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"failed to parse config file: {exc}"
        raise ConfigurationError(msg) from exc

    logger.info("Loaded configuration from %s", config_path)
    return parse_config(raw, project_dir)
