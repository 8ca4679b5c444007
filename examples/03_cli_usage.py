"""Example: CLI utility usage.

Demonstrates option resolution and logging setup programmatically.
These utilities can be used outside the CLI context.

Usage:
    python examples/03_cli_usage.py
"""

import logging
import os
import tempfile
from pathlib import Path

from fillfields.cli import resolve_formatter, resolve_workers, setup_logging


def demonstrate_formatter_resolution():
    """Show how resolve_formatter() prioritizes CLI flag > env var > default."""
    print("=== Formatter Resolution Examples ===")
    previous = os.environ.pop("FILLFIELDS_FORMATTER", None)
    try:
        # Priority 1: CLI flag
        assert resolve_formatter("none") == "none"

        # Priority 2: FILLFIELDS_FORMATTER env var
        os.environ["FILLFIELDS_FORMATTER"] = "none"
        assert resolve_formatter(None) == "none"

        # Priority 3: Default
        del os.environ["FILLFIELDS_FORMATTER"]
        assert resolve_formatter(None) == "ruff"
    finally:
        if previous is not None:
            os.environ["FILLFIELDS_FORMATTER"] = previous
    print(f"Workers without flag: {resolve_workers(None)}")


def demonstrate_logging_setup(log_dir: Path):
    """Show how setup_logging() configures file logging."""
    print("\n=== Logging Setup Example ===")
    setup_logging(log_dir, "debug")

    logger = logging.getLogger(__name__)
    logger.debug("Debug messages are visible at debug level")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert (log_dir / "fillfields.log").exists()
    for handler in root.handlers:
        print(f"  - {handler.__class__.__name__}")

    # Leave the root logger as we found it
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)


def main() -> None:
    demonstrate_formatter_resolution()
    with tempfile.TemporaryDirectory() as tmp:
        demonstrate_logging_setup(Path(tmp) / "logs")


if __name__ == "__main__":
    main()
