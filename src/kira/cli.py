"""CLI for kira work-item front-matter checks.

Reads kira.yml from the current directory (falling back to .work/kira.yml).

Usage:
    kira lint                 # Report front-matter problems, exit 1 if any
    kira lint --strict        # Also flag fields missing from kira.yml
    kira lint --json          # Machine-readable report
    kira doctor               # Report, auto-fix what can be fixed, list the rest
"""

from __future__ import annotations

import dataclasses
import json as json_mod
import logging
import sys
import time
from pathlib import Path

import click

from kira import __version__
from kira.config import ConfigurationError, KiraConfig, load_config
from kira.fixes import fix_duplicate_ids, fix_field_issues, fix_hardcoded_date_formats
from kira.logging import setup_logging
from kira.validation import ValidationIssue, ValidationResult, group_issues, validate_work_items

logger = logging.getLogger(__name__)

_CATEGORY_TITLES = (
    ("field", "Field Validation Errors"),
    ("unknown_field", "Unknown Fields"),
    ("workflow", "Workflow Errors"),
    ("duplicate", "Duplicate ID Errors"),
    ("parse", "Parse Errors"),
    ("other", "Other Errors"),
)


def _load(strict: bool) -> KiraConfig:
    """Load kira.yml and make sure the work folder exists, or exit 1."""
    try:
        config = load_config(Path.cwd())
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if not config.work_dir.is_dir():
        click.echo(f"Error: work folder not found: {config.work_dir}", err=True)
        sys.exit(1)
    if strict:
        config = dataclasses.replace(config, validation=dataclasses.replace(config.validation, strict=True))
    setup_logging(config.work_dir)
    return config


def _print_issues(issues: list[ValidationIssue]) -> None:
    groups = group_issues(issues)
    for category, title in _CATEGORY_TITLES:
        bucket = groups[category]
        if not bucket:
            continue
        click.echo(f"\n{title} ({len(bucket)}):")
        for issue in bucket:
            # workflow issues have no real file to point at
            click.echo(f"  {issue.message}" if category == "workflow" else f"  {issue}")


def _print_fixes(title: str, result: ValidationResult) -> int:
    if not result.has_errors():
        return 0
    click.echo(f"\n{title}:")
    for issue in result.issues:
        click.echo(f"  {issue}")
    return len(result)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="kira")
def cli() -> None:
    """Kira: validate and repair work-item front matter."""


@cli.command()
@click.option("--strict", is_flag=True, help="Flag fields not defined in configuration")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def lint(strict: bool, as_json: bool) -> None:
    """Check all work items and exit 1 if any problem is found."""
    config = _load(strict)
    t0 = time.monotonic()
    result = validate_work_items(config)
    logger.info(
        "lint finished",
        extra={"command": "lint", "duration_ms": round((time.monotonic() - t0) * 1000, 1)},
    )

    if as_json:
        click.echo(json_mod.dumps([dataclasses.asdict(i) for i in result.issues], indent=2))
    elif not result.has_errors():
        click.echo("No issues found. All work items are valid.")
    else:
        click.echo(f"Validation errors found ({len(result)}):")
        _print_issues(result.issues)

    if result.has_errors():
        sys.exit(1)


@cli.command()
@click.option("--strict", is_flag=True, help="Flag fields not defined in configuration")
def doctor(strict: bool) -> None:
    """Fix duplicate IDs, date formats and field values; list what is left."""
    config = _load(strict)
    t0 = time.monotonic()

    click.echo("Validating work items...")
    result = validate_work_items(config)
    if not result.has_errors():
        click.echo("No issues found. All work items are valid.")
        return
    click.echo(f"Validation errors found ({len(result)}):")
    _print_issues(result.issues)

    click.echo("\nAttempting to fix issues...")
    try:
        fixed = _print_fixes("Fixed duplicate IDs", fix_duplicate_ids(config))
        fixed += _print_fixes("Fixed date formats", fix_hardcoded_date_formats(config))
        fixed += _print_fixes("Fixed field issues", fix_field_issues(config))
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    remaining = validate_work_items(config)
    logger.info(
        "doctor finished: %d fixes, %d issues remaining",
        fixed,
        len(remaining),
        extra={"command": "doctor", "duration_ms": round((time.monotonic() - t0) * 1000, 1)},
    )
    if remaining.has_errors():
        click.echo("\nIssues requiring manual attention:")
        _print_issues(remaining.issues)
        click.echo("\nThese issues cannot be fixed automatically and need manual intervention.")
    else:
        click.echo("\nAll issues have been resolved!")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
