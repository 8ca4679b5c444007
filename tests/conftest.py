"""Pytest configuration and fixtures."""

import logging
import shutil
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from tests.fill_helpers import PROJECTS


@pytest.fixture
def project_copy(tmp_path) -> Callable[[str], Path]:
    """Factory fixture that copies a fixture project into tmp_path.

    Returns:
        Function taking the case name (``simple``, ``nested_struct``, ...)
        and returning the resolved import root of the copy
    """

    def _copy(case: str) -> Path:
        dest = tmp_path / case
        shutil.copytree(
            PROJECTS / case, dest, ignore=shutil.ignore_patterns("__pycache__")
        )
        return dest.resolve()

    return _copy


@pytest.fixture
def make_project(tmp_path) -> Callable[[dict[str, str]], Path]:
    """Factory fixture that writes ``{relative path: source}`` under tmp_path.

    Sources are dedented, so tests can use indented triple-quoted strings.
    """

    def _make(files: dict[str, str]) -> Path:
        root = tmp_path / "project"
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content).lstrip("\n"))
        return root.resolve()

    return _make


@pytest.fixture
def clean_root_logger():
    """Remove all handlers from root logger after test.

    setup_logging() modifies global state (root logger). This fixture ensures
    tests don't leak handlers between test runs.
    """
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
