"""Serialize a rewritten module and run the canonical formatter over it."""

from __future__ import annotations

import logging
import subprocess
import sys

import libcst as cst

from fillfields.errors import SerializationError

logger = logging.getLogger(__name__)


def ruff_format(code: str, path: str) -> str:
    """Format ``code`` with ``ruff format``, reading settings for ``path``.

    Raises:
        SerializationError: If ruff is missing or rejects the code
    """
    command = [sys.executable, "-m", "ruff", "format", "--stdin-filename", path, "-"]
    try:
        completed = subprocess.run(
            command, input=code, capture_output=True, text=True, check=False
        )
    except OSError as e:
        raise SerializationError(path, f"failed to run ruff: {e}") from e
    if completed.returncode != 0:
        message = completed.stderr.strip() or f"ruff exited with {completed.returncode}"
        raise SerializationError(path, f"failed to format source: {message}")
    return completed.stdout


def render(module: cst.Module, path: str, formatter: str = "ruff") -> bytes:
    """Print ``module`` (comments and whitespace intact) and format it.

    Returns:
        The new file contents, in the module's original encoding
    """
    try:
        code = module.code
    except Exception as e:
        raise SerializationError(path, f"failed to print CST: {e}") from e
    if formatter == "ruff":
        code = ruff_format(code, path)
        logger.debug(f"{path}: formatted with ruff")
    try:
        return code.encode(module.encoding)
    except UnicodeEncodeError as e:
        raise SerializationError(path, f"failed to encode output: {e}") from e
