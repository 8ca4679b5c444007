"""Tests for CLI module.

Tests are organized into groups:
1. Pure function tests (resolve_*, setup_logging): no Typer
2. Typer CLI tests (--version, --help, completion runs): using CliRunner
"""

import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from fillfields.cli import (
    app,
    resolve_formatter,
    resolve_log_level,
    resolve_workers,
    setup_logging,
)
from tests.fill_helpers import read_golden

runner = CliRunner()


pytestmark = pytest.mark.usefixtures("clean_root_logger")


@pytest.fixture
def invoke(tmp_path):
    """Run the CLI with a throwaway log directory."""

    def _invoke(*args: str):
        return runner.invoke(app, [*args, "--log-dir", str(tmp_path / "logs")])

    return _invoke


# === Pure function tests: resolve_*() ===


def test_resolve_formatter_flag_takes_priority(monkeypatch):
    """CLI flag overrides FILLFIELDS_FORMATTER env var."""
    monkeypatch.setenv("FILLFIELDS_FORMATTER", "ruff")
    assert resolve_formatter("none") == "none"


def test_resolve_formatter_env_var_fallback(monkeypatch):
    monkeypatch.setenv("FILLFIELDS_FORMATTER", "none")
    assert resolve_formatter(None) == "none"


def test_resolve_formatter_default(monkeypatch):
    monkeypatch.delenv("FILLFIELDS_FORMATTER", raising=False)
    assert resolve_formatter(None) == "ruff"


def test_resolve_workers(monkeypatch):
    monkeypatch.setenv("FILLFIELDS_WORKERS", "3")
    assert resolve_workers(5) == 5
    assert resolve_workers(None) == 3


def test_resolve_workers_ignores_invalid_env(monkeypatch):
    monkeypatch.setenv("FILLFIELDS_WORKERS", "many")
    assert resolve_workers(None) >= 1


def test_resolve_log_level(monkeypatch):
    monkeypatch.delenv("FILLFIELDS_LOG_LEVEL", raising=False)
    assert resolve_log_level(None) == "info"
    monkeypatch.setenv("FILLFIELDS_LOG_LEVEL", "debug")
    assert resolve_log_level(None) == "debug"
    assert resolve_log_level("error") == "error"


# === Pure function tests: setup_logging() ===


def test_setup_logging_creates_log_file(tmp_path):
    """setup_logging() creates log directory and file if missing."""
    log_dir = tmp_path / "logs"
    setup_logging(log_dir, "info")
    assert (log_dir / "fillfields.log").exists()


def test_setup_logging_configures_handlers(tmp_path):
    """Root logger gets one RotatingFileHandler and a critical-only stderr handler."""
    log_dir = tmp_path / "logs"
    setup_logging(log_dir, "debug")

    root = logging.getLogger()
    file_handlers = [h for h in root.handlers if hasattr(h, "baseFilename")]
    stream_handlers = [h for h in root.handlers if not hasattr(h, "baseFilename")]
    assert len(file_handlers) == 1
    assert file_handlers[0].baseFilename == str(log_dir / "fillfields.log")
    assert [h.level for h in stream_handlers] == [logging.CRITICAL]
    assert root.level == logging.DEBUG


def test_setup_logging_replaces_previous_handlers(tmp_path):
    setup_logging(tmp_path / "logs", "info")
    setup_logging(tmp_path / "logs", "info")
    assert len(logging.getLogger().handlers) == 2


# === Typer CLI tests ===


def test_cli_version():
    """--version prints version and exits 0."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "fillfields 0.1.0" in result.output


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "--type" in result.output
    assert "--default" in result.output


def test_cli_without_type_does_nothing(invoke, project_copy):
    root = project_copy("simple")
    orders = root / "shop" / "orders.py"
    before = orders.read_bytes()

    result = invoke(str(root), "--root", str(root), "--formatter", "none")

    assert result.exit_code == 0
    assert orders.read_bytes() == before


def test_cli_completes_target_type(invoke, project_copy):
    root = project_copy("simple")

    result = invoke(
        str(root), "--root", str(root), "--type", "shop.models.Customer", "--formatter", "none"
    )

    assert result.exit_code == 0, result.output
    orders = root / "shop" / "orders.py"
    assert f"completed {orders}" in result.output
    assert orders.read_text() == read_golden("simple", "shop/orders.py")


def test_cli_custom_defaults(invoke, project_copy):
    root = project_copy("custom_default")

    result = invoke(
        str(root),
        "--root",
        str(root),
        "-t",
        "Config",
        "-d",
        "app.status.Status=StatusUnknown",
        "-d",
        "builtins.int=-1",
        "--formatter",
        "none",
    )

    assert result.exit_code == 0, result.output
    config = root / "app" / "config.py"
    assert config.read_text() == read_golden("custom_default_mixed", "app/config.py")


def test_cli_all(invoke, project_copy):
    root = project_copy("nested_struct")

    result = invoke(str(root), "--root", str(root), "--all", "--formatter", "none")

    assert result.exit_code == 0, result.output
    registry = root / "people" / "registry.py"
    assert registry.read_text() == read_golden("nested_struct_all", "people/registry.py")


def test_cli_all_with_type_is_rejected(invoke, project_copy):
    root = project_copy("simple")
    orders = root / "shop" / "orders.py"
    before = orders.read_bytes()

    result = invoke(str(root), "--root", str(root), "--all", "-t", "Customer")

    assert result.exit_code == 1
    assert "--all cannot be combined with --type" in result.output
    assert orders.read_bytes() == before


def test_cli_single_file_path(invoke, project_copy):
    """Only the named files are loaded and rewritten."""
    root = project_copy("external_package")
    drawing = root / "pkg" / "drawing.py"

    result = invoke(
        str(drawing),
        str(root / "pkg" / "shapes.py"),
        "--root",
        str(root),
        "-t",
        "Segment",
        "--formatter",
        "none",
    )

    assert result.exit_code == 0, result.output
    # geo.py was not loaded, so Point is unknown and falls back to None
    assert drawing.read_text().endswith(
        'SEGMENT = Segment(start=None, end=None, label="diagonal")\n'
    )


def test_cli_check_mode(invoke, project_copy):
    root = project_copy("simple")
    orders = root / "shop" / "orders.py"
    before = orders.read_bytes()

    result = invoke(
        str(root), "--root", str(root), "-t", "Customer", "--check", "--formatter", "none"
    )

    assert result.exit_code == 1
    assert f"would complete {orders}" in result.output
    assert orders.read_bytes() == before


def test_cli_check_mode_clean_project(invoke, project_copy):
    root = project_copy("simple")
    result = invoke(str(root), "--root", str(root), "-t", "Address", "--check", "--formatter", "none")
    assert result.exit_code == 0
    assert "would complete" not in result.output


def test_cli_formatter_from_env(invoke, project_copy, monkeypatch):
    monkeypatch.setenv("FILLFIELDS_FORMATTER", "none")
    root = project_copy("unexported")

    result = invoke(str(root), "--root", str(root), "-t", "Account")

    assert result.exit_code == 0, result.output
    assert (root / "vault" / "bank.py").read_text() == read_golden("unexported", "vault/bank.py")


def test_cli_unknown_type(invoke, project_copy):
    root = project_copy("simple")
    orders = root / "shop" / "orders.py"
    before = orders.read_bytes()

    result = invoke(str(root), "--root", str(root), "-t", "shop.models.Nope")

    assert result.exit_code == 1
    assert "Error resolving target types: Type not found: shop.models.Nope" in result.output
    assert orders.read_bytes() == before


def test_cli_malformed_default(invoke, project_copy):
    root = project_copy("simple")
    result = invoke(str(root), "--root", str(root), "-t", "Customer", "-d", "int")
    assert result.exit_code == 1
    assert "Error parsing default values" in result.output


def test_cli_missing_path(invoke, tmp_path):
    result = invoke(str(tmp_path / "missing"), "--root", str(tmp_path), "--all")
    assert result.exit_code == 1
    assert "Error loading files" in result.output


def test_cli_unknown_formatter(invoke, project_copy):
    root = project_copy("simple")
    result = invoke(str(root), "--root", str(root), "--all", "--formatter", "black")
    assert result.exit_code == 1
    assert "Unknown formatter 'black'" in result.output


def test_cli_reports_file_errors(invoke, project_copy):
    root = project_copy("simple")
    (root / "shop" / "broken.py").write_text("def broken(:\n")

    result = invoke(str(root), "--root", str(root), "-t", "Customer", "--formatter", "none")

    assert result.exit_code == 1
    assert "failed with 1 error(s)" in result.output
    # the rest of the project is still completed
    assert (root / "shop" / "orders.py").read_text() == read_golden("simple", "shop/orders.py")


def test_cli_writes_log_file(invoke, project_copy, tmp_path):
    root = project_copy("simple")
    invoke(str(root), "--root", str(root), "-t", "Customer", "--formatter", "none")
    log_text = Path(tmp_path / "logs" / "fillfields.log").read_text()
    assert "completed 3 call(s)" in log_text
    assert "Loaded 3 files" in log_text
