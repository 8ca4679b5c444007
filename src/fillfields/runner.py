"""Run the completion engine over every file of a project.

Each file is an independent unit of work on a thread pool. The only state
shared between workers is the error counter and stderr, both guarded by
one lock. A failed write aborts the run; nothing is retried.
"""

import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from fillfields.config import FillConfig
from fillfields.cst.index import ProjectIndex
from fillfields.cst.models import FormatResult
from fillfields.cst.transform import format_path
from fillfields.errors import FillFieldsError

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Aggregate outcome of a run.

    Attributes:
        files: Number of files processed
        changed: Paths that were rewritten (or would be, in check mode)
        error_count: Per-file failures plus site-level errors
    """

    files: int = 0
    changed: list[Path] = field(default_factory=list)
    error_count: int = 0


class _Reporter:
    """Lock-protected error counter and stderr writer shared by workers."""

    def __init__(self, stream: TextIO) -> None:
        self._lock = threading.Lock()
        self._stream = stream
        self.error_count = 0
        self.changed: list[Path] = []

    def error(self, message: str) -> None:
        with self._lock:
            self.error_count += 1
            print(message, file=self._stream)

    def record_change(self, path: Path) -> None:
        with self._lock:
            self.changed.append(path)


def _process(
    path: Path, index: ProjectIndex, config: FillConfig, reporter: _Reporter
) -> FormatResult | None:
    try:
        result = format_path(path, index, config)
    except FillFieldsError as e:
        logger.error(f"{path}: {e}")
        reporter.error(str(e))
        return None

    for error in result.errors:
        reporter.error(str(error))
    if not result.changed:
        return result

    reporter.record_change(path)
    if config.check:
        return result
    # OSError propagates: a failed write is unrecoverable
    Path(result.path).write_bytes(result.output)
    logger.info(f"Wrote {result.path}")
    return result


def run(
    index: ProjectIndex, config: FillConfig, stream: TextIO | None = None
) -> RunSummary:
    """Complete every file in ``index`` concurrently.

    Args:
        index: Loaded project
        config: Targets, overrides and run options
        stream: Where per-file errors are printed (default: stderr)

    Returns:
        RunSummary with changed paths and the error count

    Raises:
        OSError: If writing a changed file fails
    """
    reporter = _Reporter(stream if stream is not None else sys.stderr)
    paths = index.paths
    with ThreadPoolExecutor(max_workers=config.workers) as executor:
        futures = [executor.submit(_process, path, index, config, reporter) for path in paths]
        try:
            for future in futures:
                future.result()
        except OSError:
            executor.shutdown(wait=False, cancel_futures=True)
            raise
    return RunSummary(
        files=len(paths),
        changed=sorted(reporter.changed),
        error_count=reporter.error_count,
    )
