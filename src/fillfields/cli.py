"""Typer-based CLI for fillfields.

Completes keyword-only constructions of dataclasses and NamedTuples in
place. Diagnostics go to stderr; logs go to files
(~/.fillfields/logs/fillfields.log).
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import typer

from fillfields import __version__
from fillfields.config import FORMATTERS, FillConfig, default_workers
from fillfields.cst.defaults import parse_default_specs
from fillfields.cst.index import load_project, resolve_target_types
from fillfields.errors import DefaultSpecError, TypeResolutionError
from fillfields.runner import run

app = typer.Typer(
    name="fillfields",
    help="Fill in missing fields of dataclass and NamedTuple constructor calls",
    add_completion=False,
)


def resolve_formatter(formatter_flag: str | None) -> str:
    """Resolve the formatter from CLI flag, env var, or default.

    Priority: CLI flag > FILLFIELDS_FORMATTER env var > "ruff" default.
    """
    if formatter_flag:
        return formatter_flag
    return os.getenv("FILLFIELDS_FORMATTER", "ruff")


def resolve_workers(workers_flag: int | None) -> int:
    """Resolve the worker count from CLI flag, env var, or default.

    Priority: CLI flag > FILLFIELDS_WORKERS env var > CPU count.
    """
    if workers_flag:
        return workers_flag
    env_value = os.getenv("FILLFIELDS_WORKERS")
    if env_value and env_value.isdigit() and int(env_value) > 0:
        return int(env_value)
    return default_workers()


def resolve_log_level(log_level_flag: str | None) -> str:
    """Priority: CLI flag > FILLFIELDS_LOG_LEVEL env var > "info" default."""
    if log_level_flag:
        return log_level_flag
    return os.getenv("FILLFIELDS_LOG_LEVEL", "info")


def setup_logging(log_dir: Path, log_level: str) -> None:
    """Configure file logging with RotatingFileHandler.

    Args:
        log_dir: Directory for log files (created if missing)
        log_level: Logging level (info, debug, warning, error, critical)
    """
    log_dir = log_dir.expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level.upper())

    # Clear existing handlers to prevent duplicates
    root_logger.handlers.clear()

    # File handler with rotation (10MB max, 3 backups)
    file_handler = RotatingFileHandler(
        log_dir / "fillfields.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=3,
    )
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s",
        ),
    )
    root_logger.addHandler(file_handler)

    # Per-file errors are already reported on stderr; only critical logs go there
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.CRITICAL)
    stderr_handler.setFormatter(
        logging.Formatter("%(levelname)s: %(message)s"),
    )
    root_logger.addHandler(stderr_handler)


@app.command()
def main(
    paths: list[Path] | None = typer.Argument(
        None,
        help="Files or directories to process (default: current directory)",
    ),
    type_specs: list[str] | None = typer.Option(
        None,
        "--type",
        "-t",
        help="Target type (module.TypeName), can be specified multiple times",
    ),
    match_all: bool = typer.Option(
        False,
        "--all",
        help="Complete every dataclass/NamedTuple construction (cannot be combined with --type)",
    ),
    default_specs: list[str] | None = typer.Option(
        None,
        "--default",
        "-d",
        help="Custom default value (TypeSpec=ConstantName), can be specified multiple times",
    ),
    root: Path | None = typer.Option(
        None,
        "--root",
        help="Import root used to compute module names (default: current directory)",
    ),
    fill_defaulted: bool = typer.Option(
        False,
        "--fill-defaulted/--skip-defaulted",
        help="Also insert fields that declare a default value",
    ),
    formatter: str | None = typer.Option(
        None,
        "--formatter",
        help=f"Formatter run over changed files ({', '.join(FORMATTERS)}; overrides FILLFIELDS_FORMATTER)",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        help="Number of files processed in parallel (overrides FILLFIELDS_WORKERS)",
    ),
    check: bool = typer.Option(
        False,
        "--check",
        help="Only report files that would change; exit 1 if any",
    ),
    log_dir: Path = typer.Option(
        Path("~/.fillfields/logs"),
        "--log-dir",
        help="Directory for log files",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Logging level (debug, info, warning, error, critical)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Print version and exit",
    ),
) -> None:
    """Fill in missing keyword arguments of record constructor calls.

    Only calls whose arguments are all passed by keyword are completed.
    Missing fields get a zero value (False, "", 0, None, Nested()) or the
    replacement given with --default.
    """
    if version:
        typer.echo(f"fillfields {__version__}", err=True)
        raise typer.Exit(0)

    setup_logging(log_dir, resolve_log_level(log_level))
    logger = logging.getLogger(__name__)

    if type_specs and match_all:
        typer.echo("Error: --all cannot be combined with --type", err=True)
        raise typer.Exit(1)

    # Without --type or --all there is nothing to do
    if not type_specs and not match_all:
        logger.info("No --type given, nothing to do")
        raise typer.Exit(0)

    try:
        custom_defaults = parse_default_specs(default_specs or [])
    except DefaultSpecError as e:
        typer.echo(f"Error parsing default values: {e}", err=True)
        raise typer.Exit(1)

    import_root = root if root is not None else Path.cwd()
    try:
        index = load_project(import_root, paths or [Path(".")])
    except FileNotFoundError as e:
        typer.echo(f"Error loading files: {e}", err=True)
        raise typer.Exit(1)

    try:
        target_types = resolve_target_types(type_specs or [], index)
    except TypeResolutionError as e:
        typer.echo(f"Error resolving target types: {e}", err=True)
        raise typer.Exit(1)

    try:
        config = FillConfig(
            target_types=target_types,
            custom_defaults=custom_defaults,
            fill_defaulted=fill_defaulted,
            formatter=resolve_formatter(formatter),
            workers=resolve_workers(workers),
            check=check,
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    try:
        summary = run(index, config)
    except OSError as e:
        logger.exception("Failed to write results")
        typer.echo(f"Error writing results: {e}", err=True)
        raise typer.Exit(1)

    if check:
        for path in summary.changed:
            typer.echo(f"would complete {path}")
    else:
        for path in summary.changed:
            typer.echo(f"completed {path}")

    if summary.error_count > 0:
        typer.echo(f"failed with {summary.error_count} error(s)", err=True)
        raise typer.Exit(1)
    if check and summary.changed:
        raise typer.Exit(1)
