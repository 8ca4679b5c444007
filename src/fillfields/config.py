"""Run configuration for fillfields.

FillConfig is built once by the CLI (or by a library caller) and shared
read-only by every per-file worker.
"""

import os
from dataclasses import dataclass, field

from fillfields.cst.model import TypeIdentity

FORMATTERS = ("ruff", "none")


def default_workers() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class FillConfig:
    """Options for one completion run.

    Attributes:
        target_types: Record classes to complete; empty means every record
            (the CLI only passes an empty set with --all)
        custom_defaults: Override table from parse_default_specs
        fill_defaulted: Also insert fields that declare a default value
        formatter: Canonical formatter run over changed files ("ruff" or "none")
        workers: Threads used to process files
        check: Report files that would change instead of writing them
    """

    target_types: frozenset[TypeIdentity] = frozenset()
    custom_defaults: dict[str, str] = field(default_factory=dict)
    fill_defaulted: bool = False
    formatter: str = "ruff"
    workers: int = field(default_factory=default_workers)
    check: bool = False

    def __post_init__(self) -> None:
        if self.formatter not in FORMATTERS:
            raise ValueError(
                f"Unknown formatter {self.formatter!r}, expected one of {', '.join(FORMATTERS)}"
            )
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
