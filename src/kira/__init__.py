"""Kira: schema-driven validation, defaulting and repair of work-item front matter."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kira")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from kira.config import ConfigurationError, FieldConfig, KiraConfig, load_config
from kira.frontmatter import ParseError, WorkItem, parse_document, render_document
from kira.validation import ValidationIssue, ValidationResult, validate_work_items

__all__ = [
    "ConfigurationError",
    "FieldConfig",
    "KiraConfig",
    "ParseError",
    "ValidationIssue",
    "ValidationResult",
    "WorkItem",
    "__version__",
    "load_config",
    "parse_document",
    "render_document",
    "validate_work_items",
]
