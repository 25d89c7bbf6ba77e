"""Work-folder discovery and confined file access.

Work items are ``*.md`` files anywhere under the work folder (``.work/`` by
default). Every read and write is checked against the work folder so a
crafted path can never touch anything outside it.
"""

from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path

from kira.config import KiraConfig

logger = logging.getLogger(__name__)

IDEAS_FILENAME = "IDEAS.md"
_TEMPLATE_MARKER = "template"


class WorkspaceError(ValueError):
    """Raised for paths that resolve outside the work folder."""


def is_excluded(relative: Path) -> bool:
    """Templates and the ideas list live beside work items but are not work items."""
    return _TEMPLATE_MARKER in relative.as_posix() or relative.name == IDEAS_FILENAME


def get_work_item_files(config: KiraConfig) -> list[Path]:
    """All work-item files under the work folder, in sorted order.

    Raises:
        FileNotFoundError: If the work folder does not exist.
    """
    work_dir = config.work_dir
    if not work_dir.is_dir():
        msg = f"work folder not found: {work_dir}"
        raise FileNotFoundError(msg)
    files = [
        path
        for path in sorted(work_dir.rglob("*.md"))
        if path.is_file() and not is_excluded(path.relative_to(work_dir))
    ]
    logger.debug("Discovered %d work item files under %s", len(files), work_dir)
    return files


def display_path(path: Path, config: KiraConfig) -> str:
    """Path shown in reports: relative to the project root when possible."""
    try:
        return path.relative_to(config.config_dir).as_posix()
    except ValueError:
        return str(path)


def validate_work_item_path(path: Path, work_dir: Path) -> Path:
    """Resolve *path* and make sure it sits inside *work_dir*.

    Raises:
        WorkspaceError: If the resolved path escapes the work folder.
    """
    resolved = path.resolve()
    root = work_dir.resolve()
    if resolved != root and root not in resolved.parents:
        msg = f"path outside work folder: {path}"
        raise WorkspaceError(msg)
    return resolved


def read_work_item(path: Path, work_dir: Path) -> str:
    # newline="" keeps CRLF bodies byte-for-byte
    with validate_work_item_path(path, work_dir).open(encoding="utf-8", newline="") as fh:
        return fh.read()


def write_atomic(path: Path, content: str) -> None:
    """Write content to path atomically via temp file + os.replace()."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8", newline="")
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise


def write_work_item(path: Path, content: str, work_dir: Path) -> None:
    """Replace a work item's content; on failure the old content stays intact."""
    write_atomic(validate_work_item_path(path, work_dir), content)
