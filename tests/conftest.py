"""Shared pytest fixtures for kira tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from kira.config import KiraConfig, load_config
from tests._factory import KIRA_YML, WriteItem


@pytest.fixture(autouse=True)
def _reset_kira_logger() -> Generator[None, None, None]:
    """Keep the kira logger's file handlers from leaking between tests."""
    yield
    logger = logging.getLogger("kira")
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)


@pytest.fixture
def kira_project(tmp_path: Path) -> Path:
    """A tmp directory set up as a kira project (kira.yml + .work/ status folders).

    Returns the project root.
    """
    (tmp_path / "kira.yml").write_text(KIRA_YML)
    work = tmp_path / ".work"
    for folder in ("0_backlog", "1_todo", "2_doing", "3_review", "4_done", "z_archive"):
        (work / folder).mkdir(parents=True)
    return tmp_path


@pytest.fixture
def config(kira_project: Path) -> KiraConfig:
    return load_config(kira_project)


@pytest.fixture
def write_item(kira_project: Path) -> WriteItem:
    """Write a work item under .work/<folder>/<name> and return its path."""

    def _write(name: str, content: str, folder: str = "0_backlog") -> Path:
        path = kira_project / ".work" / folder / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content.encode("utf-8"))
        return path

    return _write


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_in_project(
    kira_project: Path, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch
) -> tuple[CliRunner, Path]:
    """CliRunner with cwd set to the kira project root."""
    monkeypatch.chdir(kira_project)
    return cli_runner, kira_project
